"""
Test helpers - payload builders and collaborator doubles shared by tests
"""

from typing import Any

from site_ledger.integrations.invoice_registry import ValidationRequest, ValidationResult

SUPPLIER_ID = "sup-acme"
OTHER_SUPPLIER_ID = "sup-beta"
BLACKLISTED_SUPPLIER_ID = "sup-shady"
PROJECT_ID = "proj-tower-a"


class FakeInvoiceValidator:
    """Invoice registry double: answers with ``result`` or raises ``error``"""

    def __init__(self) -> None:
        self.result = ValidationResult(valid=True, message="ok")
        self.error: Exception | None = None
        self.calls: list[ValidationRequest] = []

    def validate(self, request: ValidationRequest) -> ValidationResult:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return self.result


def budget_payload(code: str = "B-2025-001", amount: str = "1000.00", **overrides: Any) -> dict:
    payload = {
        "code": code,
        "name": "Tower A structure",
        "project_id": PROJECT_ID,
        "fiscal_year": 2025,
        "type": "project",
        "amount": amount,
        "items": [{"name": "Concrete", "category": "material", "planned_amount": amount}],
    }
    payload.update(overrides)
    return payload


def cost_payload(budget_id: str | None, amount: str, **overrides: Any) -> dict:
    payload = {
        "project_id": PROJECT_ID,
        "budget_id": budget_id,
        "type": "material",
        "amount": amount,
        "date": "2025-01-14",
        "item": "C30 concrete",
    }
    payload.update(overrides)
    return payload


def invoice_payload(number: str = "INV-0001", amount: str = "1000", **overrides: Any) -> dict:
    payload = {
        "number": number,
        "type": "vat_special",
        "project_id": PROJECT_ID,
        "supplier_id": SUPPLIER_ID,
        "issue_date": "2025-01-13",
        "amount": amount,
        "tax_rate": "13",
    }
    payload.update(overrides)
    return payload


def payment_payload(invoice_ids: list[str], amount: str = "1130.00", **overrides: Any) -> dict:
    payload = {
        "project_id": PROJECT_ID,
        "payee_id": SUPPLIER_ID,
        "type": "progress",
        "amount": amount,
        "planned_date": "2025-01-20",
        "invoice_ids": invoice_ids,
    }
    payload.update(overrides)
    return payload

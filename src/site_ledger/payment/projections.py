"""
Payment Module Projections - Read Models for Query Operations

PaymentRegistry: current state of all payments
"""

from site_ledger.kernel.events import Event
from site_ledger.payment.models import PaymentStatus


class PaymentRegistry:
    """
    Built from events: PaymentCreated, PaymentUpdated, PaymentApproved,
                       PaymentRejected, PaymentResubmitted, PaymentPaid

    Query methods: get, list_by_project, list_by_payee, list_by_status,
                   list_all
    """

    def __init__(self) -> None:
        self.payments: dict[str, dict] = {}

    @classmethod
    def from_events(cls, events: list[Event]) -> "PaymentRegistry":
        registry = cls()
        for event in events:
            registry.apply_event(event)
        return registry

    def replay(self, payment_id: str, events: list[Event]) -> None:
        self.payments.pop(payment_id, None)
        for event in events:
            self.apply_event(event)

    def apply_event(self, event: Event) -> None:
        if event.stream_type != "payment":
            return

        payload = event.payload
        if event.event_type == "PaymentCreated":
            self.payments[payload["payment_id"]] = {
                "payment_id": payload["payment_id"],
                "code": payload["code"],
                "project_id": payload["project_id"],
                "payee_id": payload["payee_id"],
                "type": payload["type"],
                "amount": payload["amount"],
                "planned_date": payload["planned_date"],
                "actual_date": None,
                "method": payload["method"],
                "invoice_ids": list(payload["invoice_ids"]),
                "bank_info": payload["bank_info"],
                "currency": payload["currency"],
                "status": PaymentStatus.PENDING.value,
                "approvals": [],
                "attachments": payload["attachments"],
                "remarks": payload["remarks"],
                "created_by": payload["created_by"],
                "updated_by": payload["created_by"],
                "created_at": payload["created_at"],
                "updated_at": payload["created_at"],
                "version": event.version,
            }
            return

        payment = self.payments.get(event.stream_id)
        if payment is None:
            return

        if event.event_type == "PaymentUpdated":
            payment.update(payload["changes"])
        elif event.event_type in ("PaymentApproved", "PaymentRejected"):
            payment["approvals"].append(payload["approval"])
            payment["status"] = payload["approval"]["decision"]
        elif event.event_type == "PaymentResubmitted":
            payment.update(payload["changes"])
            payment["status"] = PaymentStatus.PENDING.value
        elif event.event_type == "PaymentPaid":
            payment["status"] = PaymentStatus.PAID.value
            payment["actual_date"] = payload["actual_date"]

        payment["updated_by"] = event.actor_id
        payment["updated_at"] = event.occurred_at.isoformat()
        payment["version"] = event.version

    # ========== Query Methods ==========

    def get(self, payment_id: str) -> dict | None:
        return self.payments.get(payment_id)

    def list_by_project(self, project_id: str) -> list[dict]:
        return [p for p in self.payments.values() if p["project_id"] == project_id]

    def list_by_payee(self, payee_id: str) -> list[dict]:
        return [p for p in self.payments.values() if p["payee_id"] == payee_id]

    def list_by_status(self, status: PaymentStatus) -> list[dict]:
        return [p for p in self.payments.values() if p["status"] == status.value]

    def list_all(self) -> list[dict]:
        return list(self.payments.values())

"""
Invoice Module Projections - Read Models for Query Operations

InvoiceRegistry: current state of all invoices, including which payment
each one backs.
"""

from site_ledger.invoice.models import InvoiceStatus
from site_ledger.kernel.events import Event


class InvoiceRegistry:
    """
    Built from events: InvoiceCreated, InvoiceUpdated, InvoiceVerified,
                       InvoiceCancelled, InvoiceLinked, InvoiceUnlinked,
                       InvoiceReimbursed

    Query methods: get, get_by_number, list_by_project, list_by_supplier,
                   list_by_status, list_by_payment, list_all
    """

    def __init__(self) -> None:
        self.invoices: dict[str, dict] = {}

    @classmethod
    def from_events(cls, events: list[Event]) -> "InvoiceRegistry":
        registry = cls()
        for event in events:
            registry.apply_event(event)
        return registry

    def replay(self, invoice_id: str, events: list[Event]) -> None:
        self.invoices.pop(invoice_id, None)
        for event in events:
            self.apply_event(event)

    def apply_event(self, event: Event) -> None:
        if event.stream_type != "invoice":
            return

        payload = event.payload
        if event.event_type == "InvoiceCreated":
            self.invoices[payload["invoice_id"]] = {
                "invoice_id": payload["invoice_id"],
                "code": payload["code"],
                "number": payload["number"],
                "type": payload["type"],
                "project_id": payload["project_id"],
                "supplier_id": payload["supplier_id"],
                "issue_date": payload["issue_date"],
                "amount": payload["amount"],
                "tax_rate": payload["tax_rate"],
                "tax_amount": payload["tax_amount"],
                "total_amount": payload["total_amount"],
                "currency": payload["currency"],
                "status": InvoiceStatus.PENDING.value,
                "payment_id": None,
                "images": payload["images"],
                "remarks": payload["remarks"],
                "created_by": payload["created_by"],
                "updated_by": payload["created_by"],
                "created_at": payload["created_at"],
                "updated_at": payload["created_at"],
                "version": event.version,
            }
            return

        invoice = self.invoices.get(event.stream_id)
        if invoice is None:
            return

        if event.event_type == "InvoiceUpdated":
            invoice.update(payload["changes"])
        elif event.event_type == "InvoiceVerified":
            invoice["status"] = InvoiceStatus.VERIFIED.value
        elif event.event_type == "InvoiceCancelled":
            invoice["status"] = InvoiceStatus.CANCELLED.value
            invoice["remarks"] = payload["remarks"]
        elif event.event_type == "InvoiceLinked":
            invoice["payment_id"] = payload["payment_id"]
        elif event.event_type == "InvoiceUnlinked":
            invoice["payment_id"] = None
        elif event.event_type == "InvoiceReimbursed":
            invoice["status"] = InvoiceStatus.REIMBURSED.value
            invoice["payment_id"] = None

        invoice["updated_by"] = event.actor_id
        invoice["updated_at"] = event.occurred_at.isoformat()
        invoice["version"] = event.version

    # ========== Query Methods ==========

    def get(self, invoice_id: str) -> dict | None:
        return self.invoices.get(invoice_id)

    def get_by_number(self, supplier_id: str, number: str) -> dict | None:
        for invoice in self.invoices.values():
            if invoice["supplier_id"] == supplier_id and invoice["number"] == number:
                return invoice
        return None

    def list_by_project(self, project_id: str) -> list[dict]:
        return [i for i in self.invoices.values() if i["project_id"] == project_id]

    def list_by_supplier(self, supplier_id: str) -> list[dict]:
        return [i for i in self.invoices.values() if i["supplier_id"] == supplier_id]

    def list_by_status(self, status: InvoiceStatus) -> list[dict]:
        return [i for i in self.invoices.values() if i["status"] == status.value]

    def list_by_payment(self, payment_id: str) -> list[dict]:
        return [i for i in self.invoices.values() if i["payment_id"] == payment_id]

    def list_all(self) -> list[dict]:
        return list(self.invoices.values())

"""
Invoice Module Events - Domain events for invoices

Link events (InvoiceLinked, InvoiceUnlinked, InvoiceReimbursed) are emitted
by the payment settlement engine in the same batch as the payment event
that caused them.
"""

import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from site_ledger.integrations.blob_store import Attachment
from site_ledger.invoice.models import InvoiceType


class InvoiceNumberReserved(BaseModel):
    """Claims (supplier_id, number) in a single-event stream"""

    supplier_id: str
    number: str
    invoice_id: str


class InvoiceCreated(BaseModel):
    invoice_id: str
    code: str
    number: str
    type: InvoiceType
    project_id: str
    supplier_id: str
    issue_date: datetime.date
    amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    currency: str
    images: list[Attachment] = Field(default_factory=list)
    remarks: str
    created_at: datetime.datetime
    created_by: str | None


class InvoiceUpdated(BaseModel):
    """A pending invoice was amended; ``changes`` holds changed fields"""

    invoice_id: str
    changes: dict
    updated_at: datetime.datetime
    updated_by: str | None


class InvoiceVerified(BaseModel):
    """The registry confirmed the invoice; it may now back a payment"""

    invoice_id: str
    registry_message: str | None
    verified_at: datetime.datetime
    verified_by: str | None


class InvoiceCancelled(BaseModel):
    invoice_id: str
    reason: str
    remarks: str
    cancelled_at: datetime.datetime
    cancelled_by: str | None


class InvoiceLinked(BaseModel):
    """The invoice now backs a pending payment"""

    invoice_id: str
    payment_id: str
    linked_at: datetime.datetime


class InvoiceUnlinked(BaseModel):
    """The invoice no longer backs the payment (payment rejected or amended)"""

    invoice_id: str
    payment_id: str
    reason: str
    unlinked_at: datetime.datetime


class InvoiceReimbursed(BaseModel):
    """The backing payment was confirmed as paid"""

    invoice_id: str
    payment_id: str
    reimbursed_at: datetime.datetime

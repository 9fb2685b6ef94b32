"""
Invoice Domain Models - supplier invoices backing payments

Status lifecycle:
    pending → verified → reimbursed
    pending | verified → cancelled

reimbursed and cancelled are terminal. An invoice backs a payment only
while verified, and at most one non-terminal payment at a time; the link is
tracked in ``payment_id``.
"""

import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from site_ledger.integrations.blob_store import Attachment
from site_ledger.kernel.money import round_money


class InvoiceType(str, Enum):
    VAT_SPECIAL = "vat_special"
    VAT_NORMAL = "vat_normal"
    OTHER = "other"


class InvoiceStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REIMBURSED = "reimbursed"
    CANCELLED = "cancelled"

    def is_terminal(self) -> bool:
        return self in (InvoiceStatus.REIMBURSED, InvoiceStatus.CANCELLED)


def compute_tax(amount: Decimal, tax_rate: Decimal) -> tuple[Decimal, Decimal]:
    """
    Derive tax and total from a pre-tax amount and a percentage rate

    Example:
        >>> compute_tax(Decimal("1000"), Decimal("13"))
        (Decimal('130.00'), Decimal('1130.00'))
    """
    tax_amount = round_money(amount * tax_rate / 100)
    return tax_amount, round_money(amount + tax_amount)


class Invoice(BaseModel):
    """
    Supplier invoice

    Attributes:
        number: Supplier-issued number, unique per supplier
        amount: Pre-tax amount
        tax_rate: Percentage (13 means 13%)
        tax_amount: amount * tax_rate / 100, rounded to cents
        total_amount: amount + tax_amount
        payment_id: Non-terminal payment this invoice currently backs
    """

    invoice_id: str
    code: str
    number: str
    type: InvoiceType
    project_id: str
    supplier_id: str
    issue_date: datetime.date
    amount: Decimal = Field(ge=0)
    tax_rate: Decimal = Field(ge=0, le=100)
    tax_amount: Decimal = Field(ge=0)
    total_amount: Decimal = Field(ge=0)
    currency: str
    status: InvoiceStatus = InvoiceStatus.PENDING
    payment_id: str | None = None
    images: list[Attachment] = Field(default_factory=list)
    remarks: str = ""
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime.datetime
    updated_at: datetime.datetime
    version: int = Field(ge=1)

    def is_linked(self) -> bool:
        return self.payment_id is not None

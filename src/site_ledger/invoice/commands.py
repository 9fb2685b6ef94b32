"""
Invoice Module Commands
"""

import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from site_ledger.invoice.models import InvoiceType
from site_ledger.kernel.money import Money


class CreateInvoice(BaseModel):
    """
    Register a supplier invoice (status pending)

    Requirements:
    - supplier exists and is not blacklisted
    - number is unique for the supplier
    """

    number: str = Field(..., min_length=1, max_length=64)
    type: InvoiceType
    project_id: str = Field(..., min_length=1)
    supplier_id: str = Field(..., min_length=1)
    issue_date: datetime.date
    amount: Money = Field(..., gt=0)
    tax_rate: Decimal = Field(..., ge=0, le=100)
    currency: str | None = Field(default=None, min_length=1)
    remarks: str = ""


class UpdateInvoice(BaseModel):
    """
    Amend a pending invoice; tax and total are recomputed

    Number and supplier identify the invoice and cannot change.
    """

    invoice_id: str
    type: InvoiceType | None = None
    project_id: str | None = Field(default=None, min_length=1)
    issue_date: datetime.date | None = None
    amount: Money | None = Field(default=None, gt=0)
    tax_rate: Decimal | None = Field(default=None, ge=0, le=100)
    currency: str | None = Field(default=None, min_length=1)
    remarks: str | None = None


class VerifyInvoice(BaseModel):
    """Check a pending invoice against the registry"""

    invoice_id: str


class CancelInvoice(BaseModel):
    """Void an invoice that has not been reimbursed"""

    invoice_id: str
    reason: str = Field(..., min_length=1, max_length=1000)

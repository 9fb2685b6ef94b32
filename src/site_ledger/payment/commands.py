"""
Payment Module Commands
"""

import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field

from site_ledger.approval.models import Decision
from site_ledger.kernel.money import Money
from site_ledger.payment.models import BankInfo, PaymentMethod, PaymentType


def _unique_ids(value: list[str]) -> list[str]:
    if len(set(value)) != len(value):
        raise ValueError("invoice_ids must not contain duplicates")
    return value


InvoiceIds = Annotated[list[str], AfterValidator(_unique_ids)]


class CreatePayment(BaseModel):
    """
    Request a payment to a supplier (status pending)

    Requirements:
    - payee exists and is not blacklisted
    - every invoice belongs to the payee, is verified and unlinked
    - amount <= sum of the invoices' total_amount
    """

    project_id: str = Field(..., min_length=1)
    payee_id: str = Field(..., min_length=1)
    type: PaymentType
    amount: Money = Field(..., gt=0)
    planned_date: datetime.date
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    invoice_ids: InvoiceIds = Field(default_factory=list)
    bank_info: BankInfo | None = None
    currency: str | None = Field(default=None, min_length=1)
    remarks: str = ""


class UpdatePayment(BaseModel):
    """
    Amend a pending payment

    The payee is fixed at creation. A new invoice_ids list replaces the old
    one and is validated like a creation.
    """

    payment_id: str
    type: PaymentType | None = None
    amount: Money | None = Field(default=None, gt=0)
    planned_date: datetime.date | None = None
    method: PaymentMethod | None = None
    invoice_ids: InvoiceIds | None = None
    bank_info: BankInfo | None = None
    currency: str | None = Field(default=None, min_length=1)
    remarks: str | None = None


class DecidePayment(BaseModel):
    """Approve or reject a pending payment"""

    payment_id: str
    decision: Decision
    comments: str = Field(default="", max_length=2000)


class ResubmitPayment(UpdatePayment):
    """
    Send a rejected payment back to review, optionally amended

    Its invoices were released on rejection and are linked again.
    """


class ConfirmPayment(BaseModel):
    """Record that an approved payment went out"""

    payment_id: str
    actual_date: datetime.date | None = None

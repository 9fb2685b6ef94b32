"""
Payment Domain Models - outgoing payments to suppliers

Status lifecycle:
    pending → approved → paid
    pending → rejected → pending (explicit resubmission)

A payment is backed by verified invoices of its payee. Its amount never
exceeds their summed total_amount, and each invoice backs at most one
non-terminal payment.
"""

import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from site_ledger.approval.models import ApprovalRecord
from site_ledger.integrations.blob_store import Attachment


class PaymentType(str, Enum):
    ADVANCE = "advance"
    PROGRESS = "progress"
    SETTLEMENT = "settlement"
    OTHER = "other"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"
    CHECK = "check"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class BankInfo(BaseModel):
    """Payee bank details (redacted from logs)"""

    bank_name: str = ""
    account_name: str = ""
    account_no: str = ""


class Payment(BaseModel):
    """
    Payment to a supplier

    Attributes:
        payee_id: Supplier receiving the payment
        invoice_ids: Verified invoices of the payee backing this payment
        planned_date: When the payment is scheduled
        actual_date: Set when the payment is confirmed as paid
    """

    payment_id: str
    code: str
    project_id: str
    payee_id: str
    type: PaymentType
    amount: Decimal = Field(gt=0)
    planned_date: datetime.date
    actual_date: datetime.date | None = None
    method: PaymentMethod
    invoice_ids: list[str] = Field(default_factory=list)
    bank_info: BankInfo | None = None
    currency: str
    status: PaymentStatus = PaymentStatus.PENDING
    approvals: list[ApprovalRecord] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    remarks: str = ""
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime.datetime
    updated_at: datetime.datetime
    version: int = Field(ge=1)

    def is_terminal(self) -> bool:
        return self.status == PaymentStatus.PAID

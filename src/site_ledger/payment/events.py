"""
Payment Module Events - Domain events for payments
"""

import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from site_ledger.approval.models import ApprovalRecord
from site_ledger.integrations.blob_store import Attachment
from site_ledger.payment.models import BankInfo, PaymentMethod, PaymentType


class PaymentCreated(BaseModel):
    payment_id: str
    code: str
    project_id: str
    payee_id: str
    type: PaymentType
    amount: Decimal
    planned_date: datetime.date
    method: PaymentMethod
    invoice_ids: list[str]
    bank_info: BankInfo | None
    currency: str
    attachments: list[Attachment] = Field(default_factory=list)
    remarks: str
    created_at: datetime.datetime
    created_by: str | None


class PaymentUpdated(BaseModel):
    """A pending payment was amended; ``changes`` holds changed fields"""

    payment_id: str
    changes: dict
    updated_at: datetime.datetime
    updated_by: str | None


class PaymentApproved(BaseModel):
    payment_id: str
    approval: ApprovalRecord


class PaymentRejected(BaseModel):
    """Rejection releases every invoice the payment held"""

    payment_id: str
    approval: ApprovalRecord
    released_invoice_ids: list[str]


class PaymentResubmitted(BaseModel):
    """A rejected payment re-entered review, possibly amended"""

    payment_id: str
    changes: dict
    resubmitted_at: datetime.datetime
    resubmitted_by: str | None


class PaymentPaid(BaseModel):
    """The payment went out; its invoices are reimbursed in the same batch"""

    payment_id: str
    actual_date: datetime.date
    invoice_ids: list[str]
    paid_at: datetime.datetime
    paid_by: str | None

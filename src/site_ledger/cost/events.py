"""
Cost Module Events - Domain events for cost entries

Budget movements caused by these events are recorded separately, as
BudgetCharged events in the budget's own stream, committed in the same
batch.
"""

import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from site_ledger.cost.models import CostType
from site_ledger.integrations.blob_store import Attachment


class CostRecorded(BaseModel):
    cost_id: str
    code: str
    project_id: str
    budget_id: str | None
    type: CostType
    amount: Decimal
    date: datetime.date
    item: str
    description: str
    supplier_id: str | None
    remarks: str
    attachments: list[Attachment] = Field(default_factory=list)
    recorded_at: datetime.datetime
    recorded_by: str | None


class CostUpdated(BaseModel):
    """
    A cost entry was amended

    ``changes`` holds the changed fields in serialized form; the previous
    amount and budget link are kept for the audit trail.
    """

    cost_id: str
    changes: dict
    previous_amount: Decimal
    previous_budget_id: str | None
    updated_at: datetime.datetime
    updated_by: str | None


class CostDeleted(BaseModel):
    """
    A cost entry was removed

    Its budget charge was reversed in the same batch.
    """

    cost_id: str
    amount: Decimal
    budget_id: str | None
    deleted_at: datetime.datetime
    deleted_by: str | None

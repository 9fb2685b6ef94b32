"""
Cost Module Commands - Intentions to record, amend or remove costs

All three go through the balance engine because each may move a budget's
used_amount.
"""

import datetime

from pydantic import BaseModel, Field

from site_ledger.cost.models import CostType
from site_ledger.kernel.money import Money


class RecordCost(BaseModel):
    """
    Record a new cost entry

    If budget_id is set, the budget is charged in the same atomic write;
    when the charge is refused, no cost entry is created.
    """

    project_id: str = Field(..., min_length=1)
    budget_id: str | None = None
    type: CostType
    amount: Money = Field(..., gt=0)
    date: datetime.date
    item: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    supplier_id: str | None = None
    remarks: str = ""


class UpdateCost(BaseModel):
    """
    Amend a cost entry

    Only supplied fields change. Supplying ``budget_id=None`` explicitly
    detaches the entry from its budget; omitting it keeps the link.
    """

    cost_id: str
    budget_id: str | None = None
    type: CostType | None = None
    amount: Money | None = Field(default=None, gt=0)
    date: datetime.date | None = None
    item: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    supplier_id: str | None = None
    remarks: str | None = None

    def relinks_budget(self) -> bool:
        """Whether the caller addressed the budget link at all"""
        return "budget_id" in self.model_fields_set


class DeleteCost(BaseModel):
    """Remove a cost entry, reversing its budget charge"""

    cost_id: str

"""
Budget Module Commands - Intentions to change budget state

Commands are validated at the boundary (pydantic) and converted to events
by handlers after the budget invariants pass.
"""

from pydantic import BaseModel, Field

from site_ledger.approval.models import Decision
from site_ledger.budget.models import BudgetItem, BudgetType
from site_ledger.kernel.money import Money


class CreateBudget(BaseModel):
    """
    Create a new budget in draft

    Requirements:
    - code is unique across all budgets
    - items add up to amount
    """

    code: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=200)
    project_id: str = Field(..., min_length=1)
    fiscal_year: int = Field(..., ge=1900, le=2200)
    type: BudgetType
    amount: Money = Field(..., ge=0)
    items: list[BudgetItem] = Field(..., min_length=1)
    currency: str | None = Field(default=None, min_length=1)
    remarks: str = ""


class UpdateBudget(BaseModel):
    """
    Revise a draft budget

    Only supplied fields change. The resulting amount and items must still
    reconcile, whether or not both were supplied.
    """

    budget_id: str
    name: str | None = Field(default=None, min_length=1, max_length=200)
    fiscal_year: int | None = Field(default=None, ge=1900, le=2200)
    type: BudgetType | None = None
    amount: Money | None = Field(default=None, ge=0)
    items: list[BudgetItem] | None = Field(default=None, min_length=1)
    currency: str | None = Field(default=None, min_length=1)
    remarks: str | None = None


class SubmitBudget(BaseModel):
    """Send a draft budget for approval (draft → pending)"""

    budget_id: str


class DecideBudget(BaseModel):
    """Record a reviewer decision on a pending budget"""

    budget_id: str
    decision: Decision
    comments: str = Field(default="", max_length=1000)


class ReopenBudget(BaseModel):
    """Bring a rejected budget back to draft for revision"""

    budget_id: str


class ChargeBudget(BaseModel):
    """
    Move a budget's used_amount by delta

    Positive deltas consume the ceiling; negative deltas reverse earlier
    consumption and are never checked against the ceiling.
    """

    budget_id: str
    delta: Money
    cost_id: str | None = None
    reason: str = Field(default="adjustment", min_length=1, max_length=64)

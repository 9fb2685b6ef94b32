"""
Budget Module Events - Domain events for budgets

Every budget change is an immutable fact in the budget's stream. Consumption
is recorded as BudgetCharged with the resulting used_amount, so the stream
alone tells the full story of how the ceiling was spent.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from site_ledger.approval.models import ApprovalRecord
from site_ledger.budget.models import BudgetItem, BudgetType


class BudgetCodeReserved(BaseModel):
    """
    A budget code was claimed

    Lives in its own single-event stream; a second claim on the same code
    collides on version 1.
    """

    code: str
    budget_id: str


class BudgetCreated(BaseModel):
    """A new budget was created in draft"""

    budget_id: str
    code: str
    name: str
    project_id: str
    fiscal_year: int
    type: BudgetType
    currency: str
    amount: Decimal
    items: list[BudgetItem]
    remarks: str
    created_at: datetime
    created_by: str | None


class BudgetRevised(BaseModel):
    """
    A draft budget was edited

    ``changes`` holds only the fields that changed, in serialized form.
    """

    budget_id: str
    changes: dict
    revised_at: datetime
    revised_by: str | None


class BudgetSubmitted(BaseModel):
    """A draft budget entered review (draft → pending)"""

    budget_id: str
    submitted_at: datetime
    submitted_by: str | None


class BudgetApproved(BaseModel):
    """A reviewer approved the budget; it can now be consumed"""

    budget_id: str
    approval: ApprovalRecord


class BudgetRejected(BaseModel):
    """A reviewer rejected the budget"""

    budget_id: str
    approval: ApprovalRecord


class BudgetReopened(BaseModel):
    """A rejected budget went back to draft for revision"""

    budget_id: str
    reopened_at: datetime
    reopened_by: str | None


class BudgetCharged(BaseModel):
    """
    used_amount moved by delta

    Positive deltas consume the ceiling, negative ones reverse an earlier
    charge. ``used_amount`` is the value after this charge.
    """

    budget_id: str
    delta: Decimal
    used_amount: Decimal
    cost_id: str | None
    reason: str
    charged_at: datetime
    charged_by: str | None

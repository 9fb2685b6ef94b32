"""
Budget Domain Models - ceilings that cost entries draw against

Key concepts:
- Ceiling: ``amount`` is the most a budget may ever be consumed up to
- Consumption: ``used_amount`` moves only through BudgetCharged events
- Breakdown: item planned amounts always add up to ``amount``
- Approval: only approved budgets can be consumed; only drafts can be edited
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from site_ledger.approval.models import ApprovalRecord, ApprovalStatus
from site_ledger.kernel.money import ZERO, Money, percentage

# Budgets share the generic approval states
BudgetStatus = ApprovalStatus


class BudgetType(str, Enum):
    """Who owns the budget"""

    PROJECT = "project"
    DEPARTMENT = "department"


class BudgetItem(BaseModel):
    """
    Single line of a budget breakdown

    Attributes:
        name: Line name (e.g., "Rebar")
        category: Grouping for reporting
        planned_amount: Share of the budget ceiling
        actual_amount: Recorded actuals, informational
        remarks: Free text
    """

    name: str = Field(..., min_length=1, max_length=200)
    category: str = Field(default="", max_length=100)
    planned_amount: Money = Field(..., ge=0)
    actual_amount: Money = Field(default=ZERO, ge=0)
    remarks: str = ""


class Budget(BaseModel):
    """
    Project or department budget

    Invariants:
    - 0 <= used_amount <= amount once approved
    - sum(items.planned_amount) == amount
    - never deleted (financial audit retention)
    """

    budget_id: str
    code: str
    name: str
    project_id: str
    fiscal_year: int = Field(ge=1900, le=2200)
    type: BudgetType
    currency: str
    amount: Decimal = Field(ge=0)
    used_amount: Decimal = Field(default=ZERO, ge=0)
    items: list[BudgetItem] = Field(default_factory=list)
    status: BudgetStatus = BudgetStatus.DRAFT
    approvals: list[ApprovalRecord] = Field(default_factory=list)
    remarks: str = ""
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime
    updated_at: datetime
    version: int = Field(ge=1)

    def items_total(self) -> Decimal:
        """Sum of planned amounts across the breakdown"""
        return sum((item.planned_amount for item in self.items), ZERO)

    def remaining_amount(self) -> Decimal:
        return self.amount - self.used_amount

    def usage_rate(self) -> Decimal:
        """Consumed share of the ceiling, in percent (0 for a zero ceiling)"""
        return percentage(self.used_amount, self.amount)

    def is_approved(self) -> bool:
        return self.status == BudgetStatus.APPROVED

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "budget_id": "01908e9a-1111-7000-8000-000000000001",
                    "code": "B-2025-001",
                    "name": "Tower A structure",
                    "project_id": "proj-tower-a",
                    "fiscal_year": 2025,
                    "type": "project",
                    "currency": "CNY",
                    "amount": "1000.00",
                    "used_amount": "400.00",
                    "items": [
                        {
                            "name": "Concrete",
                            "category": "material",
                            "planned_amount": "1000.00",
                            "actual_amount": "0",
                            "remarks": "",
                        }
                    ],
                    "status": "approved",
                    "approvals": [],
                    "created_at": "2025-01-15T10:00:00Z",
                    "updated_at": "2025-01-15T12:00:00Z",
                    "version": 4,
                }
            ]
        }
    }

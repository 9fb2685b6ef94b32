"""
Budget Module - ceilings, breakdowns and approval of budgets

Budgets are consumed only through BudgetCharged events emitted by the
balance engine; everything else here is the draft/review lifecycle.
"""

from site_ledger.budget.models import Budget, BudgetItem, BudgetStatus, BudgetType

__all__ = [
    "Budget",
    "BudgetItem",
    "BudgetStatus",
    "BudgetType",
]

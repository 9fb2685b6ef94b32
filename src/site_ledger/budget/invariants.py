"""
Budget Module Invariants - ceiling and breakdown rules

Pure functions; each either returns quietly or raises the specific ledger
error. The balance engine relies on validate_charge for every movement of
used_amount.
"""

from decimal import Decimal

from site_ledger.budget.models import Budget, BudgetItem, BudgetStatus
from site_ledger.kernel.errors import (
    BudgetExceeded,
    BudgetItemsMismatch,
    BudgetNotApproved,
    BudgetNotEditable,
    BudgetNotFound,
    DuplicateBudgetCode,
    InvariantViolation,
)
from site_ledger.kernel.money import ZERO, money_str


def validate_budget_exists(budget_id: str, budgets: dict[str, dict]) -> Budget:
    """
    Resolve a budget from a registry

    Returns:
        Typed budget model

    Raises:
        BudgetNotFound: If budget_id is not in the registry
    """
    budget = budgets.get(budget_id)
    if budget is None:
        raise BudgetNotFound(budget_id)
    return Budget.model_validate(budget)


def validate_budget_code_available(code: str, reservation_version: int) -> None:
    """
    Raises:
        DuplicateBudgetCode: If the code's reservation stream already exists
    """
    if reservation_version > 0:
        raise DuplicateBudgetCode(code)


def validate_items_match_amount(amount: Decimal, items: list[BudgetItem]) -> None:
    """
    Breakdown must reconcile with the ceiling

    Enforced on creation and on every revision, whichever of amount and
    items the revision touched.

    Raises:
        BudgetItemsMismatch: If planned amounts don't sum to amount
    """
    items_total = sum((item.planned_amount for item in items), ZERO)
    if items_total != amount:
        raise BudgetItemsMismatch(money_str(amount), money_str(items_total))


def validate_budget_editable(budget: Budget) -> None:
    """
    Raises:
        BudgetNotEditable: If the budget has left draft
    """
    if budget.status != BudgetStatus.DRAFT:
        raise BudgetNotEditable(budget.budget_id, budget.status.value)


def validate_charge(budget: Budget, delta: Decimal) -> Decimal:
    """
    Check that used_amount may move by delta

    The ceiling applies to positive deltas only; reversals never fail it.
    The zero floor applies to every delta and signals a caller bug.

    Args:
        budget: Budget as currently committed
        delta: Requested change of used_amount

    Returns:
        used_amount after the charge

    Raises:
        BudgetNotApproved: If budget status is not approved
        BudgetExceeded: If used_amount + delta > amount
        InvariantViolation: If used_amount + delta < 0
    """
    if budget.status != BudgetStatus.APPROVED:
        raise BudgetNotApproved(budget.budget_id, budget.status.value)

    new_used = budget.used_amount + delta

    if delta > 0 and new_used > budget.amount:
        raise BudgetExceeded(
            budget_id=budget.budget_id,
            delta=money_str(delta),
            used_amount=money_str(budget.used_amount),
            amount=money_str(budget.amount),
        )

    if new_used < 0:
        raise InvariantViolation(
            f"Budget {budget.budget_id} used_amount would drop below zero "
            f"(used: {money_str(budget.used_amount)}, delta: {money_str(delta)})"
        )

    return new_used

"""
Budget Module Projections - Read Models for Query Operations

BudgetRegistry: Current state of all budgets (main projection)
BudgetChargeLog: Every movement of used_amount, for audit queries

Both are rebuilt from events and can replay a single budget stream, which
is how the ledger refreshes them after each committed write.
"""

from decimal import Decimal

from site_ledger.budget.models import BudgetStatus
from site_ledger.kernel.events import Event
from site_ledger.kernel.money import money_str, percentage


class BudgetRegistry:
    """
    Main budget projection - current state of all budgets

    Built from events: BudgetCreated, BudgetRevised, BudgetSubmitted,
                       BudgetApproved, BudgetRejected, BudgetReopened,
                       BudgetCharged

    Query methods: get, list_by_project, list_by_status, list_all
    """

    def __init__(self) -> None:
        self.budgets: dict[str, dict] = {}

    @classmethod
    def from_events(cls, events: list[Event]) -> "BudgetRegistry":
        registry = cls()
        for event in events:
            registry.apply_event(event)
        return registry

    def replay(self, budget_id: str, events: list[Event]) -> None:
        """Replace one budget with the fold of its stream"""
        self.budgets.pop(budget_id, None)
        for event in events:
            self.apply_event(event)

    def apply_event(self, event: Event) -> None:
        """
        Apply an event to update the projection

        Args:
            event: Event to apply
        """
        if event.stream_type != "budget":
            return

        if event.event_type == "BudgetCreated":
            self._apply_budget_created(event)
            return

        budget = self.budgets.get(event.stream_id)
        if budget is None:
            return

        if event.event_type == "BudgetRevised":
            budget.update(event.payload["changes"])
        elif event.event_type == "BudgetSubmitted":
            budget["status"] = BudgetStatus.PENDING.value
        elif event.event_type in ("BudgetApproved", "BudgetRejected"):
            budget["approvals"].append(event.payload["approval"])
            budget["status"] = event.payload["approval"]["decision"]
        elif event.event_type == "BudgetReopened":
            budget["status"] = BudgetStatus.DRAFT.value
        elif event.event_type == "BudgetCharged":
            budget["used_amount"] = event.payload["used_amount"]

        budget["updated_by"] = event.actor_id
        budget["updated_at"] = event.occurred_at.isoformat()
        budget["version"] = event.version
        self._refresh_derived(budget)

    def _apply_budget_created(self, event: Event) -> None:
        payload = event.payload
        budget = {
            "budget_id": payload["budget_id"],
            "code": payload["code"],
            "name": payload["name"],
            "project_id": payload["project_id"],
            "fiscal_year": payload["fiscal_year"],
            "type": payload["type"],
            "currency": payload["currency"],
            "amount": payload["amount"],
            "used_amount": "0.00",
            "items": payload["items"],
            "status": BudgetStatus.DRAFT.value,
            "approvals": [],
            "remarks": payload["remarks"],
            "created_by": payload["created_by"],
            "updated_by": payload["created_by"],
            "created_at": payload["created_at"],
            "updated_at": payload["created_at"],
            "version": event.version,
        }
        self._refresh_derived(budget)
        self.budgets[payload["budget_id"]] = budget

    @staticmethod
    def _refresh_derived(budget: dict) -> None:
        amount = Decimal(budget["amount"])
        used = Decimal(budget["used_amount"])
        budget["remaining_amount"] = money_str(amount - used)
        budget["usage_rate"] = str(percentage(used, amount))

    # ========== Query Methods ==========

    def get(self, budget_id: str) -> dict | None:
        return self.budgets.get(budget_id)

    def list_by_project(self, project_id: str) -> list[dict]:
        return [b for b in self.budgets.values() if b["project_id"] == project_id]

    def list_by_status(self, status: BudgetStatus) -> list[dict]:
        return [b for b in self.budgets.values() if b["status"] == status.value]

    def list_all(self) -> list[dict]:
        return list(self.budgets.values())


class BudgetChargeLog:
    """
    Audit log of budget consumption

    Keeps every BudgetCharged event in commit order per budget. The running
    sum of deltas always equals the budget's used_amount.
    """

    def __init__(self) -> None:
        self.charges: dict[str, list[dict]] = {}

    def replay(self, budget_id: str, events: list[Event]) -> None:
        self.charges.pop(budget_id, None)
        for event in events:
            self.apply_event(event)

    def apply_event(self, event: Event) -> None:
        if event.event_type != "BudgetCharged":
            return
        payload = event.payload
        self.charges.setdefault(payload["budget_id"], []).append(
            {
                "budget_id": payload["budget_id"],
                "delta": payload["delta"],
                "used_amount": payload["used_amount"],
                "cost_id": payload["cost_id"],
                "reason": payload["reason"],
                "charged_at": payload["charged_at"],
                "charged_by": payload["charged_by"],
                "version": event.version,
            }
        )

    def get_by_budget(self, budget_id: str) -> list[dict]:
        return list(self.charges.get(budget_id, []))

    def get_by_cost(self, cost_id: str) -> list[dict]:
        return [
            charge
            for charges in self.charges.values()
            for charge in charges
            if charge["cost_id"] == cost_id
        ]

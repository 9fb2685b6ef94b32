"""
Balance Engine - keeps budget consumption equal to the costs charged to it

Rule: a budget's used_amount is the sum of the amounts of the live cost
entries charged against it, and never exceeds the budget amount.

Every balance-affecting write goes through here. A cost change and the
budget charge it implies are committed as one atomic batch, budget events
first, each carrying the budget version it was decided on. Two concurrent
writers that both read used_amount=400 cannot both commit: the second
append conflicts, is re-run on the fresh used_amount, and is then either
admitted or refused with BudgetExceeded.
"""

from collections.abc import Callable
from decimal import Decimal

from site_ledger.budget.commands import ChargeBudget
from site_ledger.budget.handlers import BudgetCommandHandlers
from site_ledger.budget.projections import BudgetRegistry
from site_ledger.cost.commands import DeleteCost, RecordCost, UpdateCost
from site_ledger.cost.handlers import CostCommandHandlers
from site_ledger.cost.invariants import validate_cost_exists
from site_ledger.cost.models import CostEntry
from site_ledger.cost.projections import CostRegistry
from site_ledger.integrations.blob_store import (
    Attachment,
    AttachmentUpload,
    BlobStore,
    discard_attachments,
    store_uploads,
)
from site_ledger.kernel.errors import (
    BudgetExceeded,
    BudgetNotApproved,
    InvariantViolation,
    ValidationError,
)
from site_ledger.kernel.events import Event
from site_ledger.kernel.logging import get_logger
from site_ledger.kernel.metrics import (
    budget_charges_rejected_total,
    update_budget_utilization,
)
from site_ledger.kernel.repository import StreamRepository

logger = get_logger(__name__)

ATTACHMENT_FOLDER = "costs"

# (budget_id, delta, reason)
BalanceEffect = tuple[str, Decimal, str]


class BalanceEngine:
    """
    Budget consumption through cost entries

    Operations return the committed events; callers refresh their read
    models from them.
    """

    def __init__(
        self,
        repository: StreamRepository,
        budget_handlers: BudgetCommandHandlers,
        cost_handlers: CostCommandHandlers,
        blob_store: BlobStore | None = None,
    ) -> None:
        self.repository = repository
        self.budget_handlers = budget_handlers
        self.cost_handlers = cost_handlers
        self.blob_store = blob_store

    # ========== Budget charges ==========

    def charge_budget(
        self, command: ChargeBudget, command_id: str, actor_id: str | None
    ) -> list[Event]:
        """
        Move a budget's used_amount by delta as a compare-and-swap

        Raises:
            BudgetNotFound, BudgetNotApproved, BudgetExceeded,
            InvariantViolation, ConcurrencyConflictError
        """
        events = self.repository.commit(
            lambda: self._charge_events(
                command.budget_id,
                command.delta,
                cost_id=command.cost_id,
                reason=command.reason,
                command_id=command_id,
                actor_id=actor_id,
            ),
            command_id,
        )
        self._after_commit(events)
        return events

    def _charge_events(
        self,
        budget_id: str,
        delta: Decimal,
        *,
        cost_id: str | None,
        reason: str,
        command_id: str,
        actor_id: str | None,
    ) -> list[Event]:
        budgets = self.repository.load_many(BudgetRegistry, [budget_id])
        command = ChargeBudget(budget_id=budget_id, delta=delta, cost_id=cost_id, reason=reason)
        try:
            return self.budget_handlers.handle_charge_budget(
                command, command_id, actor_id, budgets
            )
        except BudgetExceeded:
            budget_charges_rejected_total.labels(reason="exceeded").inc()
            raise
        except BudgetNotApproved:
            budget_charges_rejected_total.labels(reason="not_approved").inc()
            raise
        except InvariantViolation as e:
            budget_charges_rejected_total.labels(reason="below_zero").inc()
            logger.critical(
                "Budget floor invariant violated",
                budget_id=budget_id,
                cost_id=cost_id,
                delta=str(delta),
                error=str(e),
            )
            raise

    def _effects_events(
        self,
        effects: list[BalanceEffect],
        *,
        cost_id: str,
        command_id: str,
        actor_id: str | None,
    ) -> list[Event]:
        events: list[Event] = []
        for budget_id, delta, reason in effects:
            if delta == 0:
                continue
            events.extend(
                self._charge_events(
                    budget_id,
                    delta,
                    cost_id=cost_id,
                    reason=reason,
                    command_id=command_id,
                    actor_id=actor_id,
                )
            )
        return events

    # ========== Cost operations ==========

    def record_cost(
        self,
        command: RecordCost,
        command_id: str,
        actor_id: str | None,
        uploads: list[AttachmentUpload] | None = None,
    ) -> list[Event]:
        """
        Record a cost entry, charging its budget first

        Uploads are stored before the write and deleted again if the write
        is refused, so a rejected cost leaves no orphaned files behind.

        Raises:
            BudgetNotFound, BudgetNotApproved, BudgetExceeded,
            ConcurrencyConflictError
        """
        attachments = self._store_uploads(uploads)

        def decide() -> list[Event]:
            cost_events = self.cost_handlers.handle_record_cost(
                command, command_id, actor_id, attachments
            )
            if command.budget_id is None:
                return cost_events
            charge_events = self._effects_events(
                [(command.budget_id, command.amount, "cost_recorded")],
                cost_id=cost_events[0].stream_id,
                command_id=command_id,
                actor_id=actor_id,
            )
            return charge_events + cost_events

        events = self._commit_with_compensation(decide, attachments, command_id)
        self._after_commit(events)
        return events

    def update_cost(
        self,
        command: UpdateCost,
        command_id: str,
        actor_id: str | None,
        uploads: list[AttachmentUpload] | None = None,
    ) -> list[Event]:
        """
        Amend a cost entry and rebalance its budget(s)

        Same budget: one charge of new - old. Moved to another budget: a
        reversal on the old one and a charge on the new one, in the same
        batch as the cost change.

        Raises:
            CostNotFound, BudgetNotFound, BudgetNotApproved, BudgetExceeded,
            InvariantViolation, ConcurrencyConflictError
        """
        attachments = self._store_uploads(uploads)

        def decide() -> list[Event]:
            costs = self.repository.load_many(CostRegistry, [command.cost_id])
            cost = validate_cost_exists(command.cost_id, costs)
            cost_events = self.cost_handlers.handle_update_cost(
                command, command_id, actor_id, costs, attachments
            )
            if not cost_events:
                return []
            charge_events = self._effects_events(
                self._update_effects(cost, command),
                cost_id=cost.cost_id,
                command_id=command_id,
                actor_id=actor_id,
            )
            return charge_events + cost_events

        events = self._commit_with_compensation(decide, attachments, command_id)
        self._after_commit(events)
        return events

    def delete_cost(
        self, command: DeleteCost, command_id: str, actor_id: str | None
    ) -> list[Event]:
        """
        Remove a cost entry and reverse its charge

        The reversal is never held to the ceiling; only the zero floor
        applies.

        Raises:
            CostNotFound, InvariantViolation, ConcurrencyConflictError
        """

        def decide() -> list[Event]:
            costs = self.repository.load_many(CostRegistry, [command.cost_id])
            cost = validate_cost_exists(command.cost_id, costs)
            cost_events = self.cost_handlers.handle_delete_cost(
                command, command_id, actor_id, costs
            )
            effects = (
                [(cost.budget_id, -cost.amount, "cost_deleted")] if cost.budget_id else []
            )
            charge_events = self._effects_events(
                effects, cost_id=cost.cost_id, command_id=command_id, actor_id=actor_id
            )
            return charge_events + cost_events

        events = self.repository.commit(decide, command_id)
        self._after_commit(events)
        return events

    @staticmethod
    def _update_effects(cost: CostEntry, command: UpdateCost) -> list[BalanceEffect]:
        """Budget movements implied by an amendment"""
        old_budget = cost.budget_id
        new_budget = command.budget_id if command.relinks_budget() else cost.budget_id
        new_amount = command.amount if command.amount is not None else cost.amount

        if old_budget == new_budget:
            if old_budget is None:
                return []
            return [(old_budget, new_amount - cost.amount, "cost_updated")]

        effects: list[BalanceEffect] = []
        if old_budget is not None:
            effects.append((old_budget, -cost.amount, "cost_unlinked"))
        if new_budget is not None:
            effects.append((new_budget, new_amount, "cost_linked"))
        return effects

    # ========== Helpers ==========

    def _store_uploads(self, uploads: list[AttachmentUpload] | None) -> list[Attachment]:
        if not uploads:
            return []
        if self.blob_store is None:
            raise ValidationError("Attachments were supplied but no blob store is configured")
        return store_uploads(self.blob_store, uploads, ATTACHMENT_FOLDER)

    def _commit_with_compensation(
        self,
        decide: Callable[[], list[Event]],
        attachments: list[Attachment],
        command_id: str,
    ) -> list[Event]:
        try:
            return self.repository.commit(decide, command_id)
        except Exception:
            if attachments and self.blob_store is not None:
                discard_attachments(self.blob_store, attachments)
            raise

    def _after_commit(self, events: list[Event]) -> None:
        for event in events:
            if event.event_type != "BudgetCharged":
                continue
            payload = event.payload
            logger.info(
                "Budget charged",
                budget_id=payload["budget_id"],
                cost_id=payload["cost_id"],
                delta=payload["delta"],
                used_amount=payload["used_amount"],
                reason=payload["reason"],
            )
            budget = self.repository.load(BudgetRegistry, payload["budget_id"])
            if budget is not None:
                update_budget_utilization(
                    budget["budget_id"],
                    Decimal(budget["amount"]),
                    Decimal(budget["used_amount"]),
                )

"""
Budget Module Handlers - Command→Event transformation

Handlers are the decision-making layer. They:
1. Receive current state (freshly folded from the event store)
2. Validate invariants
3. Generate events if valid

They never append; the caller commits the returned events, possibly in the
same atomic batch as events of other streams.
"""

from pydantic import BaseModel

from site_ledger.approval.models import ApprovalLog
from site_ledger.approval.workflow import (
    ensure_draft,
    ensure_pending,
    ensure_rejected,
    resolve_decision,
)
from site_ledger.budget.commands import (
    ChargeBudget,
    CreateBudget,
    DecideBudget,
    ReopenBudget,
    SubmitBudget,
    UpdateBudget,
)
from site_ledger.budget.events import (
    BudgetApproved,
    BudgetCharged,
    BudgetCodeReserved,
    BudgetCreated,
    BudgetRejected,
    BudgetReopened,
    BudgetRevised,
    BudgetSubmitted,
)
from site_ledger.budget.invariants import (
    validate_budget_code_available,
    validate_budget_editable,
    validate_budget_exists,
    validate_charge,
    validate_items_match_amount,
)
from site_ledger.budget.models import BudgetStatus
from site_ledger.kernel.events import Event, create_event
from site_ledger.kernel.ids import generate_id
from site_ledger.kernel.policy import LedgerPolicy
from site_ledger.kernel.time import TimeProvider

STREAM_TYPE = "budget"


def budget_code_stream(code: str) -> str:
    """Reservation stream that makes a budget code unique"""
    return f"budget-code:{code}"


class BudgetCommandHandlers:
    """
    Command handlers for the budget module

    Every handler takes the budgets it decides on as a dict keyed by
    budget_id, in read-model form.
    """

    def __init__(self, time_provider: TimeProvider, policy: LedgerPolicy) -> None:
        self.time_provider = time_provider
        self.policy = policy

    def _event(
        self,
        budget_id: str,
        event_type: str,
        payload: BaseModel,
        version: int,
        command_id: str,
        actor_id: str | None,
    ) -> Event:
        return create_event(
            event_id=generate_id(),
            stream_id=budget_id,
            stream_type=STREAM_TYPE,
            event_type=event_type,
            occurred_at=self.time_provider.now(),
            command_id=command_id,
            actor_id=actor_id,
            payload=payload.model_dump(mode="json"),
            version=version,
        )

    def handle_create_budget(
        self,
        command: CreateBudget,
        command_id: str,
        actor_id: str | None,
        code_reservation_version: int,
    ) -> list[Event]:
        """
        Handle CreateBudget command

        Emits the code reservation and the BudgetCreated event; both must
        be committed together.

        Args:
            command: CreateBudget command
            command_id: Idempotency key
            actor_id: Operator creating the budget
            code_reservation_version: Current version of the code's
                reservation stream (0 if the code is free)

        Raises:
            DuplicateBudgetCode: If the code is taken
            BudgetItemsMismatch: If items don't add up to amount
        """
        validate_budget_code_available(command.code, code_reservation_version)
        validate_items_match_amount(command.amount, command.items)

        now = self.time_provider.now()
        budget_id = generate_id()

        reservation = create_event(
            event_id=generate_id(),
            stream_id=budget_code_stream(command.code),
            stream_type="reservation",
            event_type="BudgetCodeReserved",
            occurred_at=now,
            command_id=command_id,
            actor_id=actor_id,
            payload=BudgetCodeReserved(code=command.code, budget_id=budget_id).model_dump(
                mode="json"
            ),
            version=1,
        )

        created = self._event(
            budget_id,
            "BudgetCreated",
            BudgetCreated(
                budget_id=budget_id,
                code=command.code,
                name=command.name,
                project_id=command.project_id,
                fiscal_year=command.fiscal_year,
                type=command.type,
                currency=command.currency or self.policy.default_currency,
                amount=command.amount,
                items=command.items,
                remarks=command.remarks,
                created_at=now,
                created_by=actor_id,
            ),
            version=1,
            command_id=command_id,
            actor_id=actor_id,
        )

        return [reservation, created]

    def handle_update_budget(
        self,
        command: UpdateBudget,
        command_id: str,
        actor_id: str | None,
        budgets: dict[str, dict],
    ) -> list[Event]:
        """
        Handle UpdateBudget command

        Raises:
            BudgetNotFound: If budget doesn't exist
            BudgetNotEditable: If budget is not draft
            BudgetItemsMismatch: If the revised breakdown doesn't reconcile
        """
        budget = validate_budget_exists(command.budget_id, budgets)
        validate_budget_editable(budget)

        amount = command.amount if command.amount is not None else budget.amount
        items = command.items if command.items is not None else budget.items
        validate_items_match_amount(amount, items)

        supplied = command.model_dump(
            mode="json", exclude={"budget_id"}, exclude_none=True
        )
        current = budget.model_dump(mode="json")
        changes = {key: value for key, value in supplied.items() if current.get(key) != value}
        if not changes:
            return []

        return [
            self._event(
                budget.budget_id,
                "BudgetRevised",
                BudgetRevised(
                    budget_id=budget.budget_id,
                    changes=changes,
                    revised_at=self.time_provider.now(),
                    revised_by=actor_id,
                ),
                version=budget.version + 1,
                command_id=command_id,
                actor_id=actor_id,
            )
        ]

    def handle_submit_budget(
        self,
        command: SubmitBudget,
        command_id: str,
        actor_id: str | None,
        budgets: dict[str, dict],
    ) -> list[Event]:
        """
        Handle SubmitBudget command (draft → pending)

        Raises:
            BudgetNotFound: If budget doesn't exist
            NotDraft: If budget is not draft
        """
        budget = validate_budget_exists(command.budget_id, budgets)
        ensure_draft("Budget", budget.budget_id, budget.status.value)

        return [
            self._event(
                budget.budget_id,
                "BudgetSubmitted",
                BudgetSubmitted(
                    budget_id=budget.budget_id,
                    submitted_at=self.time_provider.now(),
                    submitted_by=actor_id,
                ),
                version=budget.version + 1,
                command_id=command_id,
                actor_id=actor_id,
            )
        ]

    def handle_decide_budget(
        self,
        command: DecideBudget,
        command_id: str,
        actor_id: str,
        budgets: dict[str, dict],
    ) -> list[Event]:
        """
        Handle DecideBudget command (pending → approved | rejected)

        Raises:
            BudgetNotFound: If budget doesn't exist
            NotPending: If budget is not pending
        """
        budget = validate_budget_exists(command.budget_id, budgets)
        ensure_pending("Budget", budget.budget_id, budget.status.value)

        record, status = resolve_decision(
            ApprovalLog(records=tuple(budget.approvals)),
            approver=actor_id,
            decision=command.decision,
            comments=command.comments,
            decided_at=self.time_provider.now(),
        )

        if status == BudgetStatus.APPROVED:
            event_type, payload = "BudgetApproved", BudgetApproved(
                budget_id=budget.budget_id, approval=record
            )
        else:
            event_type, payload = "BudgetRejected", BudgetRejected(
                budget_id=budget.budget_id, approval=record
            )

        return [
            self._event(
                budget.budget_id,
                event_type,
                payload,
                version=budget.version + 1,
                command_id=command_id,
                actor_id=actor_id,
            )
        ]

    def handle_reopen_budget(
        self,
        command: ReopenBudget,
        command_id: str,
        actor_id: str | None,
        budgets: dict[str, dict],
    ) -> list[Event]:
        """
        Handle ReopenBudget command (rejected → draft)

        Raises:
            BudgetNotFound: If budget doesn't exist
            NotRejected: If budget is not rejected
        """
        budget = validate_budget_exists(command.budget_id, budgets)
        ensure_rejected("Budget", budget.budget_id, budget.status.value)

        return [
            self._event(
                budget.budget_id,
                "BudgetReopened",
                BudgetReopened(
                    budget_id=budget.budget_id,
                    reopened_at=self.time_provider.now(),
                    reopened_by=actor_id,
                ),
                version=budget.version + 1,
                command_id=command_id,
                actor_id=actor_id,
            )
        ]

    def handle_charge_budget(
        self,
        command: ChargeBudget,
        command_id: str,
        actor_id: str | None,
        budgets: dict[str, dict],
    ) -> list[Event]:
        """
        Handle ChargeBudget command

        The emitted event carries version budget.version + 1, so committing
        it is a compare-and-swap on the budget stream: if another charge
        landed since the budget was read, the append conflicts and the
        whole decision is re-run on fresh state.

        Returns:
            One BudgetCharged event, or nothing for a zero delta

        Raises:
            BudgetNotFound: If budget doesn't exist
            BudgetNotApproved: If budget is not approved
            BudgetExceeded: If the charge would pass the ceiling
            InvariantViolation: If used_amount would drop below zero
        """
        budget = validate_budget_exists(command.budget_id, budgets)
        new_used = validate_charge(budget, command.delta)

        if command.delta == 0:
            return []

        return [
            self._event(
                budget.budget_id,
                "BudgetCharged",
                BudgetCharged(
                    budget_id=budget.budget_id,
                    delta=command.delta,
                    used_amount=new_used,
                    cost_id=command.cost_id,
                    reason=command.reason,
                    charged_at=self.time_provider.now(),
                    charged_by=actor_id,
                ),
                version=budget.version + 1,
                command_id=command_id,
                actor_id=actor_id,
            )
        ]

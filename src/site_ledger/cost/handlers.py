"""
Cost Module Handlers - Command→Event transformation for cost entries

These handlers only produce events for the cost stream. The balance engine
pairs them with the budget charges they imply and commits both together.
"""

from pydantic import BaseModel

from site_ledger.cost.commands import DeleteCost, RecordCost, UpdateCost
from site_ledger.cost.events import CostDeleted, CostRecorded, CostUpdated
from site_ledger.cost.invariants import validate_cost_exists
from site_ledger.integrations.blob_store import Attachment
from site_ledger.kernel.events import Event, create_event
from site_ledger.kernel.ids import generate_code, generate_id
from site_ledger.kernel.policy import LedgerPolicy
from site_ledger.kernel.time import TimeProvider

STREAM_TYPE = "cost"


class CostCommandHandlers:
    """Command handlers for the cost module"""

    def __init__(self, time_provider: TimeProvider, policy: LedgerPolicy) -> None:
        self.time_provider = time_provider
        self.policy = policy

    def _event(
        self,
        cost_id: str,
        event_type: str,
        payload: BaseModel,
        version: int,
        command_id: str,
        actor_id: str | None,
    ) -> Event:
        return create_event(
            event_id=generate_id(),
            stream_id=cost_id,
            stream_type=STREAM_TYPE,
            event_type=event_type,
            occurred_at=self.time_provider.now(),
            command_id=command_id,
            actor_id=actor_id,
            payload=payload.model_dump(mode="json"),
            version=version,
        )

    def handle_record_cost(
        self,
        command: RecordCost,
        command_id: str,
        actor_id: str | None,
        attachments: list[Attachment],
    ) -> list[Event]:
        """
        Handle RecordCost command

        Args:
            command: RecordCost command
            command_id: Idempotency key
            actor_id: Operator recording the cost
            attachments: Uploads already stored in the blob store

        Returns:
            A single CostRecorded event opening a new cost stream
        """
        now = self.time_provider.now()
        cost_id = generate_id()

        return [
            self._event(
                cost_id,
                "CostRecorded",
                CostRecorded(
                    cost_id=cost_id,
                    code=generate_code(self.policy.cost_code_prefix, now),
                    project_id=command.project_id,
                    budget_id=command.budget_id,
                    type=command.type,
                    amount=command.amount,
                    date=command.date,
                    item=command.item,
                    description=command.description,
                    supplier_id=command.supplier_id,
                    remarks=command.remarks,
                    attachments=attachments,
                    recorded_at=now,
                    recorded_by=actor_id,
                ),
                version=1,
                command_id=command_id,
                actor_id=actor_id,
            )
        ]

    def handle_update_cost(
        self,
        command: UpdateCost,
        command_id: str,
        actor_id: str | None,
        costs: dict[str, dict],
        attachments: list[Attachment],
    ) -> list[Event]:
        """
        Handle UpdateCost command

        Args:
            attachments: Newly stored uploads, appended to the existing ones

        Returns:
            A CostUpdated event, or nothing if no field actually changes

        Raises:
            CostNotFound: If cost doesn't exist
        """
        cost = validate_cost_exists(command.cost_id, costs)
        current = cost.model_dump(mode="json")

        supplied = command.model_dump(mode="json", exclude={"cost_id"}, exclude_unset=True)
        changes = {key: value for key, value in supplied.items() if current.get(key) != value}
        if attachments:
            changes["attachments"] = current["attachments"] + [
                a.model_dump(mode="json") for a in attachments
            ]
        if not changes:
            return []

        return [
            self._event(
                cost.cost_id,
                "CostUpdated",
                CostUpdated(
                    cost_id=cost.cost_id,
                    changes=changes,
                    previous_amount=cost.amount,
                    previous_budget_id=cost.budget_id,
                    updated_at=self.time_provider.now(),
                    updated_by=actor_id,
                ),
                version=cost.version + 1,
                command_id=command_id,
                actor_id=actor_id,
            )
        ]

    def handle_delete_cost(
        self,
        command: DeleteCost,
        command_id: str,
        actor_id: str | None,
        costs: dict[str, dict],
    ) -> list[Event]:
        """
        Handle DeleteCost command

        Raises:
            CostNotFound: If cost doesn't exist
        """
        cost = validate_cost_exists(command.cost_id, costs)

        return [
            self._event(
                cost.cost_id,
                "CostDeleted",
                CostDeleted(
                    cost_id=cost.cost_id,
                    amount=cost.amount,
                    budget_id=cost.budget_id,
                    deleted_at=self.time_provider.now(),
                    deleted_by=actor_id,
                ),
                version=cost.version + 1,
                command_id=command_id,
                actor_id=actor_id,
            )
        ]

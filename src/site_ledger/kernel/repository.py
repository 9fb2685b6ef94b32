"""
Stream repository - fresh reads and retried commits

Every ledger write follows the same cycle:
1. Fold the streams it decides on straight from the event store
2. Let pure handlers decide and emit events carrying expected versions
3. Append all events atomically

If any stream moved between 1 and 3, the append raises a version conflict
and the cycle is re-run from step 1, up to the policy's retry budget.
"""

from collections.abc import Callable, Iterable
from typing import Protocol

from site_ledger.kernel.event_store import SQLiteEventStore
from site_ledger.kernel.events import Event
from site_ledger.kernel.policy import LedgerPolicy
from site_ledger.kernel.retry import run_with_conflict_retry


class Registry(Protocol):
    """A read model that can be folded from events and queried by id"""

    @classmethod
    def from_events(cls, events: list[Event]) -> "Registry":
        ...

    def get(self, entity_id: str) -> dict | None:
        ...


class StreamRepository:
    """Per-operation access to entity state, bypassing shared read models"""

    def __init__(self, event_store: SQLiteEventStore, policy: LedgerPolicy) -> None:
        self.event_store = event_store
        self.policy = policy

    def load(self, registry_cls: type[Registry], stream_id: str) -> dict | None:
        """Fold one stream and return the entity (None if absent or deleted)"""
        registry = registry_cls.from_events(self.event_store.load_stream(stream_id))
        return registry.get(stream_id)

    def load_many(
        self, registry_cls: type[Registry], stream_ids: Iterable[str]
    ) -> dict[str, dict]:
        """Fold several streams into a dict keyed by entity id, skipping missing ones"""
        entities = {}
        for stream_id in dict.fromkeys(stream_ids):
            entity = self.load(registry_cls, stream_id)
            if entity is not None:
                entities[stream_id] = entity
        return entities

    def version(self, stream_id: str) -> int:
        return self.event_store.get_stream_version(stream_id)

    def recorded(self, command_id: str) -> list[Event]:
        """Events an earlier run of this command committed (empty if none)"""
        return self.event_store.load_command_events(command_id)

    def commit(
        self, decide: Callable[[], list[Event]], command_id: str | None = None
    ) -> list[Event]:
        """
        Run decide-and-append until it commits or the retry budget runs out

        A command_id that already committed returns its recorded events
        without deciding again, so a retried request after success is a
        no-op rather than a state conflict.

        Args:
            decide: Loads what it needs and returns the events to append;
                called again from scratch after every version conflict
            command_id: Idempotency key of the request

        Returns:
            Committed events (empty if the decision produced none)

        Raises:
            ConcurrencyConflictError: If every attempt conflicted
        """
        if command_id is not None:
            recorded = self.recorded(command_id)
            if recorded:
                return recorded

        def attempt() -> list[Event]:
            events = decide()
            if not events:
                return []
            return self.event_store.append_atomic(events)

        return run_with_conflict_retry(
            attempt,
            max_attempts=self.policy.max_conflict_retries,
            min_wait_ms=self.policy.conflict_backoff_min_ms,
            max_wait_ms=self.policy.conflict_backoff_max_ms,
        )

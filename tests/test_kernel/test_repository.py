"""
Tests for StreamRepository - fresh folds and conflict-retried commits
"""

from datetime import datetime, timezone

import pytest

from site_ledger.budget.projections import BudgetRegistry
from site_ledger.kernel.errors import ConcurrencyConflictError
from site_ledger.kernel.event_store import SQLiteEventStore
from site_ledger.kernel.events import Event, create_event
from site_ledger.kernel.ids import generate_id
from site_ledger.kernel.policy import LedgerPolicy
from site_ledger.kernel.repository import StreamRepository


def budget_created(budget_id: str, command_id: str) -> Event:
    return create_event(
        event_id=generate_id(),
        stream_id=budget_id,
        stream_type="budget",
        event_type="BudgetCreated",
        occurred_at=datetime(2025, 1, 15, tzinfo=timezone.utc),
        command_id=command_id,
        actor_id="alice",
        version=1,
        payload={
            "budget_id": budget_id,
            "code": "B-1",
            "name": "Tower A",
            "project_id": "proj-1",
            "fiscal_year": 2025,
            "type": "project",
            "currency": "CNY",
            "amount": "1000.00",
            "items": [],
            "remarks": "",
            "created_by": "alice",
            "created_at": "2025-01-15T00:00:00+00:00",
        },
    )


def marker(stream_id: str, version: int, command_id: str | None = None) -> Event:
    return create_event(
        event_id=generate_id(),
        stream_id=stream_id,
        stream_type="budget",
        event_type="Marker",
        occurred_at=datetime(2025, 1, 15, tzinfo=timezone.utc),
        command_id=command_id or generate_id(),
        version=version,
    )


def test_load_folds_a_single_stream(repository: StreamRepository) -> None:
    repository.event_store.append_atomic([budget_created("b-1", generate_id())])

    budget = repository.load(BudgetRegistry, "b-1")

    assert budget is not None
    assert budget["code"] == "B-1"
    assert budget["used_amount"] == "0.00"
    assert repository.load(BudgetRegistry, "missing") is None


def test_load_many_skips_missing(repository: StreamRepository) -> None:
    repository.event_store.append_atomic([budget_created("b-2", generate_id())])

    budgets = repository.load_many(BudgetRegistry, ["b-2", "missing", "b-2"])

    assert list(budgets) == ["b-2"]


def test_commit_appends_decided_events(repository: StreamRepository) -> None:
    events = repository.commit(lambda: [marker("s-1", 1)])

    assert len(events) == 1
    assert repository.version("s-1") == 1


def test_commit_with_no_events_writes_nothing(repository: StreamRepository) -> None:
    assert repository.commit(lambda: []) == []
    assert repository.event_store.count_events() == 0


def test_commit_replays_recorded_command(repository: StreamRepository) -> None:
    """A command_id that already committed is not decided again"""
    command_id = generate_id()
    first = repository.commit(lambda: [marker("s-2", 1, command_id)], command_id)

    calls = []

    def decide() -> list[Event]:
        calls.append(1)
        return [marker("s-2", 2, command_id)]

    again = repository.commit(decide, command_id)

    assert calls == []
    assert [e.event_id for e in again] == [e.event_id for e in first]
    assert repository.version("s-2") == 1


def test_commit_retries_on_version_conflict(repository: StreamRepository) -> None:
    """The decision is re-run on fresh state after a conflict"""
    attempts = []

    def decide() -> list[Event]:
        attempts.append(1)
        if len(attempts) == 1:
            # Someone else writes between our read and our append
            repository.event_store.append_atomic([marker("s-3", 1)])
            return [marker("s-3", 1)]
        return [marker("s-3", repository.version("s-3") + 1)]

    events = repository.commit(decide)

    assert len(attempts) == 2
    assert events[0].version == 2
    assert repository.version("s-3") == 2


def test_commit_gives_up_after_retry_budget(event_store: SQLiteEventStore) -> None:
    policy = LedgerPolicy(max_conflict_retries=3, conflict_backoff_min_ms=0, conflict_backoff_max_ms=0)
    repository = StreamRepository(event_store, policy)
    event_store.append_atomic([marker("s-4", 1)])

    attempts = []

    def always_stale() -> list[Event]:
        attempts.append(1)
        return [marker("s-4", 1)]

    with pytest.raises(ConcurrencyConflictError) as exc_info:
        repository.commit(always_stale)

    assert len(attempts) == 3
    assert exc_info.value.stream_id == "s-4"
    assert exc_info.value.attempts == 3
    assert exc_info.value.kind == "concurrency_conflict"


def test_commit_propagates_business_errors_without_retry(repository: StreamRepository) -> None:
    attempts = []

    def refuse() -> list[Event]:
        attempts.append(1)
        raise ValueError("no")

    with pytest.raises(ValueError):
        repository.commit(refuse)
    assert len(attempts) == 1

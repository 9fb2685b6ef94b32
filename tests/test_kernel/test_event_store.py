"""
Tests for SQLite Event Store

Verifies the event sourcing properties the ledger depends on:
- Append-only semantics
- Idempotency via command_id
- Optimistic locking via stream versioning
- All-or-nothing appends across several streams
"""

from datetime import datetime, timedelta, timezone

import pytest

from site_ledger.kernel.errors import EventStoreError, StreamVersionConflict
from site_ledger.kernel.event_store import SQLiteEventStore
from site_ledger.kernel.events import Event
from site_ledger.kernel.ids import generate_id


def make_event(
    stream_id: str,
    version: int,
    *,
    command_id: str | None = None,
    stream_type: str = "budget",
    event_type: str = "BudgetCharged",
    occurred_at: datetime | None = None,
    payload: dict | None = None,
) -> Event:
    return Event(
        event_id=generate_id(),
        stream_id=stream_id,
        stream_type=stream_type,
        event_type=event_type,
        occurred_at=occurred_at or datetime.now(timezone.utc),
        actor_id="alice",
        command_id=command_id or generate_id(),
        payload=payload or {},
        version=version,
    )


def test_append_and_load_single_event(event_store: SQLiteEventStore) -> None:
    """Test appending and loading a single event"""
    event = make_event("budget-1", 1, payload={"delta": "400.00"})

    appended = event_store.append("budget-1", 0, [event])
    assert len(appended) == 1
    assert appended[0].event_id == event.event_id

    loaded = event_store.load_stream("budget-1")
    assert len(loaded) == 1
    assert loaded[0].event_id == event.event_id
    assert loaded[0].payload == {"delta": "400.00"}
    assert loaded[0].actor_id == "alice"


def test_stream_versioning(event_store: SQLiteEventStore) -> None:
    """Test that stream versioning works correctly"""
    event_store.append("budget-2", 0, [make_event("budget-2", 1)])
    assert event_store.get_stream_version("budget-2") == 1

    event_store.append("budget-2", 1, [make_event("budget-2", 2)])
    assert event_store.get_stream_version("budget-2") == 2

    events = event_store.load_stream("budget-2")
    assert [e.version for e in events] == [1, 2]


def test_unknown_stream_has_version_zero(event_store: SQLiteEventStore) -> None:
    assert event_store.get_stream_version("nothing-here") == 0
    assert event_store.load_stream("nothing-here") == []


def test_optimistic_locking_conflict(event_store: SQLiteEventStore) -> None:
    """Two writers that read the same version cannot both commit"""
    event_store.append("budget-3", 0, [make_event("budget-3", 1)])

    first = make_event("budget-3", 2)
    second = make_event("budget-3", 2)

    event_store.append_atomic([first])
    with pytest.raises(StreamVersionConflict) as exc_info:
        event_store.append_atomic([second])

    assert exc_info.value.expected_version == 1
    assert exc_info.value.actual_version == 2
    assert len(event_store.load_stream("budget-3")) == 2


def test_append_rejects_version_gap(event_store: SQLiteEventStore) -> None:
    with pytest.raises(EventStoreError):
        event_store.append("budget-4", 0, [make_event("budget-4", 3)])


def test_append_rejects_foreign_stream(event_store: SQLiteEventStore) -> None:
    with pytest.raises(EventStoreError):
        event_store.append("budget-5", 0, [make_event("budget-6", 1)])


def test_command_idempotency(event_store: SQLiteEventStore) -> None:
    """Test that same command_id doesn't create duplicate events"""
    command_id = generate_id()

    first = make_event("budget-7", 1, command_id=command_id, payload={"attempt": 1})
    event_store.append("budget-7", 0, [first])

    # Same command, different event_id and payload
    retry = make_event("budget-7", 2, command_id=command_id, payload={"attempt": 2})
    result = event_store.append("budget-7", 1, [retry])

    assert len(result) == 1
    assert result[0].event_id == first.event_id
    assert result[0].payload["attempt"] == 1
    assert len(event_store.load_stream("budget-7")) == 1


def test_atomic_append_across_streams(event_store: SQLiteEventStore) -> None:
    """A budget charge and a cost entry land together"""
    command_id = generate_id()
    charge = make_event("budget-8", 1, command_id=command_id)
    cost = make_event(
        "cost-8", 1, command_id=command_id, stream_type="cost", event_type="CostRecorded"
    )

    event_store.append_atomic([charge, cost])

    assert event_store.get_stream_version("budget-8") == 1
    assert event_store.get_stream_version("cost-8") == 1
    assert [e.event_id for e in event_store.load_command_events(command_id)] == [
        charge.event_id,
        cost.event_id,
    ]


def test_atomic_append_is_all_or_nothing(event_store: SQLiteEventStore) -> None:
    """If one stream conflicts, no event of the batch is written"""
    event_store.append("budget-9", 0, [make_event("budget-9", 1)])

    command_id = generate_id()
    stale_charge = make_event("budget-9", 1, command_id=command_id)
    cost = make_event(
        "cost-9", 1, command_id=command_id, stream_type="cost", event_type="CostRecorded"
    )

    with pytest.raises(StreamVersionConflict):
        event_store.append_atomic([cost, stale_charge])

    assert event_store.load_stream("cost-9") == []
    assert event_store.load_command_events(command_id) == []


def test_atomic_append_requires_consecutive_versions(event_store: SQLiteEventStore) -> None:
    command_id = generate_id()
    with pytest.raises(EventStoreError):
        event_store.append_atomic(
            [
                make_event("budget-10", 1, command_id=command_id),
                make_event("budget-10", 3, command_id=command_id),
            ]
        )


def test_append_empty_events_list(event_store: SQLiteEventStore) -> None:
    assert event_store.append("budget-11", 0, []) == []
    assert event_store.append_atomic([]) == []


def test_load_command_events_unknown(event_store: SQLiteEventStore) -> None:
    assert event_store.load_command_events("never-ran") == []


def test_load_all_events_in_commit_order(event_store: SQLiteEventStore) -> None:
    created = []
    for i in range(4):
        stream_id = f"stream-{i % 2}"
        event = make_event(stream_id, i // 2 + 1, payload={"index": i})
        event_store.append(stream_id, i // 2, [event])
        created.append(event.event_id)

    assert [e.event_id for e in event_store.load_all_events()] == created


def test_query_by_stream_and_event_type(event_store: SQLiteEventStore) -> None:
    event_store.append("budget-a", 0, [make_event("budget-a", 1, event_type="BudgetCreated")])
    event_store.append("budget-b", 0, [make_event("budget-b", 1, event_type="BudgetCreated")])
    event_store.append(
        "cost-a", 0, [make_event("cost-a", 1, stream_type="cost", event_type="CostRecorded")]
    )

    assert len(event_store.query_events(stream_type="budget")) == 2
    assert len(event_store.query_events(event_type="CostRecorded")) == 1
    assert len(event_store.query_events(stream_type="cost", event_type="BudgetCreated")) == 0
    assert len(event_store.query_events(limit=2)) == 2


def test_query_events_with_time_filters(event_store: SQLiteEventStore) -> None:
    now = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
    event_store.append(
        "stream-old", 0, [make_event("stream-old", 1, occurred_at=now - timedelta(days=3))]
    )
    event_store.append("stream-new", 0, [make_event("stream-new", 1, occurred_at=now)])

    recent = event_store.query_events(from_time=now - timedelta(days=1))
    assert [e.stream_id for e in recent] == ["stream-new"]

    older = event_store.query_events(to_time=now - timedelta(days=1))
    assert [e.stream_id for e in older] == ["stream-old"]


def test_count_operations(event_store: SQLiteEventStore) -> None:
    assert event_store.count_events() == 0
    assert event_store.count_streams() == 0

    for stream_num in range(2):
        for version in range(1, 4):
            event_store.append(
                f"stream-{stream_num}",
                version - 1,
                [make_event(f"stream-{stream_num}", version)],
            )

    assert event_store.count_events() == 6
    assert event_store.count_streams() == 2


def test_events_survive_reopen(temp_db) -> None:
    """A second store on the same file sees everything the first wrote"""
    SQLiteEventStore(temp_db).append("budget-x", 0, [make_event("budget-x", 1)])

    reopened = SQLiteEventStore(temp_db)
    assert reopened.get_stream_version("budget-x") == 1

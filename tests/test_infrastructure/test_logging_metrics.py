"""
Test infrastructure components: logging, metrics and retry.
"""

import sqlite3
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from site_ledger.kernel.errors import BudgetExceeded, InvariantViolation
from site_ledger.kernel.event_store import SQLiteEventStore
from site_ledger.kernel.events import Event
from site_ledger.kernel.logging import (
    LogOperation,
    configure_logging,
    get_correlation_id,
    get_logger,
    redact_context,
    set_correlation_id,
)
from site_ledger.kernel.metrics import (
    budget_utilization_ratio,
    commands_processed_total,
    events_appended_total,
    events_loaded_total,
    track_command_duration,
    update_budget_utilization,
)
from site_ledger.kernel.retry import retry_on_sqlite_lock


def _event(stream_id: str = "stream-1") -> Event:
    return Event(
        event_id=f"evt-{stream_id}",
        stream_id=stream_id,
        stream_type="metrics_test",
        version=1,
        command_id=f"cmd-{stream_id}",
        event_type="MetricsProbe",
        occurred_at=datetime.now(timezone.utc),
        actor_id="actor-1",
        payload={"test": "data"},
    )


class TestLoggingFramework:
    """Test structured logging framework."""

    def test_configure_logging_console(self) -> None:
        configure_logging(json_output=False, log_level="INFO")
        assert get_logger(__name__) is not None

    def test_configure_logging_json(self) -> None:
        configure_logging(json_output=True, log_level="DEBUG")
        assert get_logger(__name__) is not None

    def test_correlation_id(self) -> None:
        assert get_correlation_id()

        set_correlation_id("req-123")
        assert get_correlation_id() == "req-123"

    def test_redact_context_hides_operator_and_bank_details(self) -> None:
        redacted = redact_context(
            {"operator_id": "alice", "account_no": "6222", "operation": "record_cost"}
        )
        assert redacted == {
            "operator_id": "***REDACTED***",
            "account_no": "***REDACTED***",
            "operation": "record_cost",
        }

    def test_log_operation_context_manager(self) -> None:
        configure_logging(json_output=False, log_level="INFO")
        with LogOperation(get_logger(__name__), "record_cost", operator_id="alice"):
            pass

    def test_log_operation_reraises_business_rejection(self) -> None:
        configure_logging(json_output=False, log_level="INFO")
        with pytest.raises(BudgetExceeded):
            with LogOperation(get_logger(__name__), "record_cost"):
                raise BudgetExceeded("b-1", "700.00", "400.00", "1000.00")

    def test_log_operation_reraises_invariant_violation(self) -> None:
        configure_logging(json_output=False, log_level="INFO")
        with pytest.raises(InvariantViolation):
            with LogOperation(get_logger(__name__), "delete_cost"):
                raise InvariantViolation("used_amount below zero")

    def test_log_operation_reraises_unexpected_error(self) -> None:
        configure_logging(json_output=False, log_level="INFO")
        with pytest.raises(ValueError):
            with LogOperation(get_logger(__name__), "failing_operation"):
                raise ValueError("Test error")


class TestMetrics:
    """Test Prometheus metrics collection."""

    def test_events_appended_metric(self, event_store: SQLiteEventStore) -> None:
        counter = events_appended_total.labels(
            stream_type="metrics_test", event_type="MetricsProbe"
        )
        before = counter._value.get()

        event_store.append("stream-1", 0, [_event("stream-1")])

        assert counter._value.get() == before + 1

    def test_events_loaded_metric(self, event_store: SQLiteEventStore) -> None:
        event_store.append("stream-2", 0, [_event("stream-2")])
        counter = events_loaded_total.labels(stream_type="metrics_test")
        before = counter._value.get()

        event_store.load_stream("stream-2")

        assert counter._value.get() == before + 1

    def test_track_command_duration_counts_outcomes(self) -> None:
        @track_command_duration("probe_command")
        def probe(fail: bool) -> str:
            if fail:
                raise ValueError("boom")
            return "ok"

        success = commands_processed_total.labels(command_type="probe_command", status="success")
        failure = commands_processed_total.labels(command_type="probe_command", status="failure")
        before_success, before_failure = success._value.get(), failure._value.get()

        assert probe(False) == "ok"
        with pytest.raises(ValueError):
            probe(True)

        assert success._value.get() == before_success + 1
        assert failure._value.get() == before_failure + 1

    def test_update_budget_utilization(self) -> None:
        update_budget_utilization("budget-m1", Decimal("1000"), Decimal("400"))
        assert budget_utilization_ratio.labels(budget_id="budget-m1")._value.get() == 0.4

        update_budget_utilization("budget-m2", Decimal("0"), Decimal("0"))
        assert budget_utilization_ratio.labels(budget_id="budget-m2")._value.get() == 0.0


class TestRetryLogic:
    """Test retry logic with exponential backoff."""

    def test_retry_decorator(self) -> None:
        call_count = 0

        @retry_on_sqlite_lock(max_attempts=3, min_wait_ms=1, max_wait_ms=2)
        def flaky() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise sqlite3.OperationalError("database is locked")
            return "success"

        assert flaky() == "success"
        assert call_count == 2

    def test_retry_decorator_gives_up(self) -> None:
        call_count = 0

        @retry_on_sqlite_lock(max_attempts=2, min_wait_ms=1, max_wait_ms=2)
        def locked() -> None:
            nonlocal call_count
            call_count += 1
            raise sqlite3.OperationalError("database is locked")

        with pytest.raises(sqlite3.OperationalError):
            locked()
        assert call_count == 2

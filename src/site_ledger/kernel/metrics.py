"""
Prometheus metrics collection for Site Ledger.

Provides observability into ledger operations, budget consumption and
settlement flow.
"""

import time
from collections.abc import Callable
from decimal import Decimal
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Gauge, Histogram, start_http_server

# ============================================================================
# Core Event Store Metrics
# ============================================================================

events_appended_total = Counter(
    "site_ledger_events_appended_total",
    "Total number of events appended to the event store",
    ["stream_type", "event_type"],
)

events_loaded_total = Counter(
    "site_ledger_events_loaded_total",
    "Total number of events loaded from the event store",
    ["stream_type"],
)

stream_version_conflicts_total = Counter(
    "site_ledger_stream_version_conflicts_total",
    "Total number of optimistic locking version conflicts",
    ["stream_type"],
)

# ============================================================================
# Operation Metrics
# ============================================================================

command_duration_seconds = Histogram(
    "site_ledger_command_duration_seconds",
    "Duration of ledger operations in seconds",
    ["command_type"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

commands_processed_total = Counter(
    "site_ledger_commands_processed_total",
    "Total number of ledger operations processed",
    ["command_type", "status"],  # status: success, failure
)

# ============================================================================
# Budget Metrics
# ============================================================================

budget_utilization_ratio = Gauge(
    "site_ledger_budget_utilization_ratio",
    "Budget utilization ratio (used_amount/amount)",
    ["budget_id"],
)

budget_charges_rejected_total = Counter(
    "site_ledger_budget_charges_rejected_total",
    "Budget charges refused by the balance engine",
    ["reason"],  # reason: exceeded, not_approved, below_zero
)

# ============================================================================
# Invoice & Payment Metrics
# ============================================================================

invoice_verifications_total = Counter(
    "site_ledger_invoice_verifications_total",
    "Invoice registry verifications by result",
    ["result"],  # result: verified, rejected, error
)

payments_settled_total = Counter(
    "site_ledger_payments_settled_total",
    "Payments confirmed as paid",
    ["type"],
)

invoices_reimbursed_total = Counter(
    "site_ledger_invoices_reimbursed_total",
    "Invoices reimbursed through payment settlement",
)

# ============================================================================
# System Metrics
# ============================================================================

read_model_rebuild_duration_seconds = Histogram(
    "site_ledger_read_model_rebuild_duration_seconds",
    "Duration of full read model rebuild in seconds",
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0),
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_command_duration(command_type: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator to track ledger operation duration.

    Args:
        command_type: Operation name, e.g. "record_cost"
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                duration = time.perf_counter() - start
                command_duration_seconds.labels(command_type=command_type).observe(duration)
                commands_processed_total.labels(
                    command_type=command_type, status=status
                ).inc()

        return wrapper

    return decorator


def start_metrics_server(port: int = 9090) -> None:
    """
    Start Prometheus metrics HTTP server.

    Args:
        port: Port to listen on (default: 9090)
    """
    start_http_server(port)


def update_budget_utilization(budget_id: str, amount: Decimal, used_amount: Decimal) -> None:
    """Publish a budget's consumption ratio (0 for zero-amount budgets)"""
    ratio = float(used_amount / amount) if amount else 0.0
    budget_utilization_ratio.labels(budget_id=budget_id).set(ratio)

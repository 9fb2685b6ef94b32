"""
Kernel - Core event sourcing infrastructure

The kernel provides the machinery every ledger module builds upon: an
append-only event store with per-stream versions, atomic multi-stream
appends, injectable time, decimal money helpers and the error taxonomy.

Accountants never erase ledger entries, they add correcting entries. The
event log works the same way: a deleted cost is a reversal plus a deletion
event, never a removed row.
"""

from site_ledger.kernel.errors import (
    CommandIdempotencyViolation,
    EventStoreError,
    InvariantViolation,
    LedgerError,
    StreamVersionConflict,
)
from site_ledger.kernel.events import Event, create_event
from site_ledger.kernel.ids import generate_code, generate_id
from site_ledger.kernel.policy import LedgerPolicy
from site_ledger.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # IDs
    "generate_id",
    "generate_code",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Events
    "Event",
    "create_event",
    # Policy
    "LedgerPolicy",
    # Errors
    "LedgerError",
    "EventStoreError",
    "CommandIdempotencyViolation",
    "StreamVersionConflict",
    "InvariantViolation",
]

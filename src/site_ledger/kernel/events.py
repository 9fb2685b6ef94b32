"""
Base Event model for the ledger's event log

Every change to a budget, cost entry, invoice or payment is recorded as an
immutable event. Entity state is the fold of its stream; nothing is ever
updated in place, which is what keeps the financial audit trail intact.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class Event(BaseModel):
    """
    Base event class - all domain events are stored in this envelope

    The combination of stream_id + version provides optimistic locking,
    while command_id ties together every event produced by one operation
    (possibly across several streams) and makes retries idempotent.
    """

    event_id: str = Field(
        ...,
        description="Unique event identifier (UUIDv7 for time-ordering)",
    )

    stream_id: str = Field(
        ...,
        description="Entity identifier - groups the events of one budget, invoice, etc.",
    )

    stream_type: str = Field(
        ...,
        description="Type of entity: 'budget', 'cost', 'invoice', 'payment', 'reservation'",
    )

    event_type: str = Field(
        ...,
        description="Specific event type: 'BudgetCharged', 'InvoiceVerified', etc.",
    )

    occurred_at: datetime = Field(
        ...,
        description="UTC timestamp when event occurred",
    )

    actor_id: str | None = Field(
        default=None,
        description="Operator who triggered this event (None for system events)",
    )

    command_id: str = Field(
        ...,
        description="ID of the operation that caused this event (idempotency key)",
    )

    payload: dict = Field(
        default_factory=dict,
        description="Event-specific data (must be JSON-serializable)",
    )

    version: int = Field(
        ...,
        description="Stream version after this event (monotonically increasing)",
        ge=1,
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "event_id": "01908e9a-3b87-7000-8000-123456789abc",
                    "stream_id": "01908e9a-1111-7000-8000-000000000001",
                    "stream_type": "budget",
                    "event_type": "BudgetCharged",
                    "occurred_at": "2025-01-15T10:30:00Z",
                    "actor_id": "user-li",
                    "command_id": "01908e9a-2222-7000-8000-000000000002",
                    "payload": {"delta": "400.00", "used_amount": "400.00"},
                    "version": 4,
                }
            ]
        },
    }


def create_event(
    *,
    event_id: str,
    stream_id: str,
    stream_type: str,
    event_type: str,
    occurred_at: datetime,
    command_id: str,
    version: int,
    actor_id: str | None = None,
    payload: dict | None = None,
) -> Event:
    """
    Factory function for creating events with all required fields
    """
    return Event(
        event_id=event_id,
        stream_id=stream_id,
        stream_type=stream_type,
        event_type=event_type,
        occurred_at=occurred_at,
        actor_id=actor_id,
        command_id=command_id,
        payload=payload or {},
        version=version,
    )

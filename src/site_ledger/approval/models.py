"""
Approval Models - append-only decision log shared by budgets and payments

An approval log is an immutable, insertion-ordered tuple of records.
Appending returns a new log; the entity's status after a decision is read
from the latest record, never recomputed from the rest of the history.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ApprovalStatus(str, Enum):
    """
    Workflow states for approvable entities

    DRAFT → PENDING → {APPROVED | REJECTED}

    REJECTED may re-enter PENDING (payments) or DRAFT (budgets) through an
    explicit resubmission, never automatically.
    """

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Decision(str, Enum):
    """Outcome of a single review"""

    APPROVED = "approved"
    REJECTED = "rejected"

    def resulting_status(self) -> ApprovalStatus:
        return {
            Decision.APPROVED: ApprovalStatus.APPROVED,
            Decision.REJECTED: ApprovalStatus.REJECTED,
        }[self]


class ApprovalRecord(BaseModel):
    """One reviewer decision"""

    approver: str = Field(..., min_length=1)
    decision: Decision
    comments: str = ""
    decided_at: datetime

    model_config = {"frozen": True}


class ApprovalLog(BaseModel):
    """
    Immutable approval history

    Example:
        >>> log = ApprovalLog().append(record)
        >>> log.latest().decision
        <Decision.APPROVED: 'approved'>
    """

    records: tuple[ApprovalRecord, ...] = ()

    model_config = {"frozen": True}

    @classmethod
    def from_snapshot(cls, records: list[dict]) -> "ApprovalLog":
        """Rebuild a log from its serialized form in a read model"""
        return cls(records=tuple(ApprovalRecord.model_validate(r) for r in records))

    def append(self, record: ApprovalRecord) -> "ApprovalLog":
        return ApprovalLog(records=self.records + (record,))

    def latest(self) -> ApprovalRecord | None:
        return self.records[-1] if self.records else None

    def derived_status(self) -> ApprovalStatus | None:
        """Status dictated by the latest decision (None before any review)"""
        latest = self.latest()
        return latest.decision.resulting_status() if latest else None

    def __len__(self) -> int:
        return len(self.records)

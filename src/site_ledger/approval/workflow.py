"""
Approval Workflow - transition guards for approvable entities

Pure functions; handlers call them before emitting any workflow event.
"""

from datetime import datetime

from site_ledger.approval.models import (
    ApprovalLog,
    ApprovalRecord,
    ApprovalStatus,
    Decision,
)
from site_ledger.kernel.errors import NotDraft, NotPending, NotRejected


def ensure_draft(entity: str, entity_id: str, status: str) -> None:
    """
    Raises:
        NotDraft: If the entity has left draft
    """
    if status != ApprovalStatus.DRAFT.value:
        raise NotDraft(entity, entity_id, status)


def ensure_pending(entity: str, entity_id: str, status: str) -> None:
    """
    Only pending entities accept a decision or an amendment

    Raises:
        NotPending: If status is anything but pending
    """
    if status != ApprovalStatus.PENDING.value:
        raise NotPending(entity, entity_id, status)


def ensure_rejected(entity: str, entity_id: str, status: str) -> None:
    """
    Raises:
        NotRejected: If the entity is not in a rejected state
    """
    if status != ApprovalStatus.REJECTED.value:
        raise NotRejected(entity, entity_id, status)


def resolve_decision(
    log: ApprovalLog,
    *,
    approver: str,
    decision: Decision,
    comments: str,
    decided_at: datetime,
) -> tuple[ApprovalRecord, ApprovalStatus]:
    """
    Record a decision and derive the resulting status

    Args:
        log: Current approval history
        approver: Reviewer identity
        decision: approved or rejected
        comments: Reviewer comments
        decided_at: Decision time

    Returns:
        (new record, status dictated by the extended log)
    """
    record = ApprovalRecord(
        approver=approver,
        decision=decision,
        comments=comments,
        decided_at=decided_at,
    )
    return record, log.append(record).derived_status() or ApprovalStatus.PENDING

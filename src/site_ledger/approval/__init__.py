"""
Approval Module - shared draft/pending/approved/rejected workflow

Budgets and payments both run through the same guards and keep the same
append-only decision log.
"""

from site_ledger.approval.models import (
    ApprovalLog,
    ApprovalRecord,
    ApprovalStatus,
    Decision,
)

__all__ = [
    "ApprovalLog",
    "ApprovalRecord",
    "ApprovalStatus",
    "Decision",
]

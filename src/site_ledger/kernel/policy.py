"""
Ledger Policy - operating parameters for the financial core

Every default that changes observable behaviour is stated here, validated
once at construction, and passed explicitly to the code that needs it.
"""

from pydantic import BaseModel, Field, model_validator


class LedgerPolicy(BaseModel):
    """
    Operating parameters of a ledger instance

    Defaults: CNY books, a one-week window for the pending invoice
    report, invoice-backed payments only.
    """

    policy_version: str = Field(
        default="1.0",
        description="Policy version for tracking changes over time",
    )

    # Optimistic concurrency
    max_conflict_retries: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Attempts per operation before a version conflict surfaces",
    )

    conflict_backoff_min_ms: int = Field(
        default=5,
        ge=0,
        description="Lower bound of the jittered backoff between attempts",
    )

    conflict_backoff_max_ms: int = Field(
        default=200,
        ge=0,
        description="Upper bound of the jittered backoff between attempts",
    )

    # Money
    default_currency: str = Field(
        default="CNY",
        min_length=1,
        description="Currency tag for entities created without one (never converted)",
    )

    # Payments
    allow_unbacked_payments: bool = Field(
        default=False,
        description=(
            "Accept payments that reference no invoices (advances). Off by "
            "default so every payment is covered by verified invoices"
        ),
    )

    # Reporting
    pending_invoice_days: int = Field(
        default=7,
        ge=1,
        description="Look-back window in days for the pending invoice report",
    )

    # Document codes
    cost_code_prefix: str = Field(default="CST", min_length=1)
    invoice_code_prefix: str = Field(default="INV", min_length=1)
    payment_code_prefix: str = Field(default="PAY", min_length=1)

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "description": "Operating parameters of the financial reconciliation core"
        },
    }

    @model_validator(mode="after")
    def _check_backoff_bounds(self) -> "LedgerPolicy":
        if self.conflict_backoff_max_ms < self.conflict_backoff_min_ms:
            raise ValueError("conflict_backoff_max_ms must be >= conflict_backoff_min_ms")
        return self


# Default global policy instance
default_ledger_policy = LedgerPolicy()

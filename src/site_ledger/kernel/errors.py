"""
Custom exceptions for Site Ledger

Every failure surfaced by the ledger is a LedgerError carrying a stable
machine-readable ``code`` and a ``kind`` that tells the caller how to react:

- validation: malformed input, never retried
- not_found: referenced entity missing
- state_conflict: business rule rejection, retrying without a fix repeats it
- concurrency_conflict: optimistic retry budget exhausted, safe to retry
- external_service / verification_failed: registry check did not pass
- invariant_violation: a caller bug, logged as fatal
"""

from typing import Any


class LedgerError(Exception):
    """Base exception for all Site Ledger errors"""

    kind = "error"
    code = "LEDGER_ERROR"

    def to_dict(self) -> dict[str, Any]:
        """Tagged, JSON-serializable form for API boundaries"""
        details = {
            key: value
            for key, value in vars(self).items()
            if not key.startswith("_") and isinstance(value, (str, int, float, bool, list, type(None)))
        }
        return {
            "kind": self.kind,
            "code": self.code,
            "message": str(self),
            "details": details,
        }


# ============================================================================
# Event store
# ============================================================================


class EventStoreError(LedgerError):
    """Base class for event store errors"""

    kind = "event_store"
    code = "EVENT_STORE_ERROR"


class CommandIdempotencyViolation(EventStoreError):
    """
    Raised when a command_id was already processed

    The original events are returned instead wherever possible.
    """

    code = "COMMAND_ALREADY_PROCESSED"

    def __init__(self, command_id: str, message: str = "") -> None:
        self.command_id = command_id
        super().__init__(message or f"Command {command_id} already processed")


class StreamVersionConflict(EventStoreError):
    """
    Raised when stream version doesn't match expected (optimistic locking)

    Indicates concurrent modification - caller should reload and retry.
    """

    code = "STREAM_VERSION_CONFLICT"

    def __init__(
        self, stream_id: str, expected_version: int, actual_version: int
    ) -> None:
        self.stream_id = stream_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Stream {stream_id} version mismatch: "
            f"expected {expected_version}, got {actual_version}"
        )


# ============================================================================
# Error kinds
# ============================================================================


class ValidationError(LedgerError):
    """Malformed or missing input"""

    kind = "validation"
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)


class NotFoundError(LedgerError):
    """Referenced entity doesn't exist"""

    kind = "not_found"
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: str, message: str = "") -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(message or f"{entity} {entity_id} not found")


class StateConflictError(LedgerError):
    """Business rule rejection"""

    kind = "state_conflict"
    code = "STATE_CONFLICT"


class ConcurrencyConflictError(LedgerError):
    """Optimistic concurrency retries exhausted"""

    kind = "concurrency_conflict"
    code = "CONCURRENCY_CONFLICT"

    def __init__(self, stream_id: str, attempts: int) -> None:
        self.stream_id = stream_id
        self.attempts = attempts
        super().__init__(
            f"Stream {stream_id} kept changing underneath the operation "
            f"({attempts} attempts)"
        )


class ExternalServiceError(LedgerError):
    """External collaborator unreachable or erroring"""

    kind = "external_service"
    code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, service: str, message: str) -> None:
        self.service = service
        super().__init__(f"{service} failed: {message}")


class InvariantViolation(LedgerError):
    """
    Raised when a ledger invariant check fails

    Never part of normal business contention; indicates caller misuse
    or corrupted state and is logged as fatal.
    """

    kind = "invariant_violation"
    code = "INVARIANT_VIOLATION"


# ============================================================================
# Validation
# ============================================================================


class BudgetItemsMismatch(ValidationError):
    """Raised when budget item planned amounts don't add up to the budget amount"""

    code = "BUDGET_ITEMS_MISMATCH"

    def __init__(self, amount: str, items_total: str) -> None:
        self.amount = amount
        self.items_total = items_total
        super().__init__(
            f"Budget items total {items_total} does not match budget amount {amount}"
        )


# ============================================================================
# Not found
# ============================================================================


class BudgetNotFound(NotFoundError):
    code = "BUDGET_NOT_FOUND"

    def __init__(self, budget_id: str) -> None:
        self.budget_id = budget_id
        super().__init__("Budget", budget_id)


class CostNotFound(NotFoundError):
    code = "COST_NOT_FOUND"

    def __init__(self, cost_id: str) -> None:
        self.cost_id = cost_id
        super().__init__("Cost entry", cost_id)


class InvoiceNotFound(NotFoundError):
    """Raised when an invoice doesn't exist (or not for the expected supplier)"""

    code = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str, supplier_id: str | None = None) -> None:
        self.invoice_id = invoice_id
        self.supplier_id = supplier_id
        super().__init__(
            "Invoice",
            invoice_id,
            f"Invoice {invoice_id} not found for supplier {supplier_id}" if supplier_id else "",
        )


class PaymentNotFound(NotFoundError):
    code = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str) -> None:
        self.payment_id = payment_id
        super().__init__("Payment", payment_id)


class SupplierNotFound(NotFoundError):
    code = "SUPPLIER_NOT_FOUND"

    def __init__(self, supplier_id: str) -> None:
        self.supplier_id = supplier_id
        super().__init__("Supplier", supplier_id)


# ============================================================================
# State conflicts - workflow
# ============================================================================


class NotDraft(StateConflictError):
    code = "NOT_DRAFT"

    def __init__(self, entity: str, entity_id: str, current_status: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        self.current_status = current_status
        super().__init__(
            f"{entity} {entity_id} is {current_status}, must be draft for this operation"
        )


class BudgetNotEditable(NotDraft):
    code = "BUDGET_NOT_EDITABLE"

    def __init__(self, budget_id: str, current_status: str) -> None:
        super().__init__("Budget", budget_id, current_status)


class NotPending(StateConflictError):
    code = "NOT_PENDING"

    def __init__(self, entity: str, entity_id: str, current_status: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        self.current_status = current_status
        super().__init__(
            f"{entity} {entity_id} is {current_status}, only pending entities accept this operation"
        )


class NotRejected(StateConflictError):
    code = "NOT_REJECTED"

    def __init__(self, entity: str, entity_id: str, current_status: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        self.current_status = current_status
        super().__init__(
            f"{entity} {entity_id} is {current_status}, only rejected entities can re-enter review"
        )


class NotApproved(StateConflictError):
    code = "NOT_APPROVED"

    def __init__(self, payment_id: str, current_status: str) -> None:
        self.payment_id = payment_id
        self.current_status = current_status
        super().__init__(
            f"Payment {payment_id} is {current_status}, only approved payments can be confirmed"
        )


# ============================================================================
# State conflicts - budget
# ============================================================================


class DuplicateBudgetCode(StateConflictError):
    code = "DUPLICATE_BUDGET_CODE"

    def __init__(self, budget_code: str) -> None:
        self.budget_code = budget_code
        super().__init__(f"Budget code {budget_code} already exists")


class BudgetNotApproved(StateConflictError):
    code = "BUDGET_NOT_APPROVED"

    def __init__(self, budget_id: str, current_status: str) -> None:
        self.budget_id = budget_id
        self.current_status = current_status
        super().__init__(
            f"Budget {budget_id} is {current_status}, only approved budgets can be consumed"
        )


class BudgetExceeded(StateConflictError):
    """Raised when a charge would push used_amount above the budget ceiling"""

    code = "BUDGET_EXCEEDED"

    def __init__(
        self, budget_id: str, delta: str, used_amount: str, amount: str
    ) -> None:
        self.budget_id = budget_id
        self.delta = delta
        self.used_amount = used_amount
        self.amount = amount
        super().__init__(
            f"Budget {budget_id} charge {delta} exceeds ceiling "
            f"(used: {used_amount}, amount: {amount})"
        )


# ============================================================================
# State conflicts - invoice
# ============================================================================


class DuplicateInvoiceNumber(StateConflictError):
    code = "DUPLICATE_INVOICE_NUMBER"

    def __init__(self, number: str, supplier_id: str) -> None:
        self.number = number
        self.supplier_id = supplier_id
        super().__init__(f"Invoice number {number} already exists for supplier {supplier_id}")


class SupplierBlacklisted(StateConflictError):
    code = "SUPPLIER_BLACKLISTED"

    def __init__(self, supplier_id: str) -> None:
        self.supplier_id = supplier_id
        super().__init__(f"Supplier {supplier_id} is blacklisted")


class AlreadyProcessed(StateConflictError):
    code = "ALREADY_PROCESSED"

    def __init__(self, invoice_id: str, current_status: str) -> None:
        self.invoice_id = invoice_id
        self.current_status = current_status
        super().__init__(f"Invoice {invoice_id} is already {current_status}")


class AlreadyReimbursed(StateConflictError):
    code = "ALREADY_REIMBURSED"

    def __init__(self, invoice_id: str) -> None:
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} is reimbursed and cannot be cancelled")


class AlreadyCancelled(StateConflictError):
    code = "ALREADY_CANCELLED"

    def __init__(self, invoice_id: str) -> None:
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} is already cancelled")


class InvoiceInUse(StateConflictError):
    """Raised when an invoice is linked to another non-terminal payment"""

    code = "INVOICE_IN_USE"

    def __init__(self, invoice_id: str, payment_id: str) -> None:
        self.invoice_id = invoice_id
        self.payment_id = payment_id
        super().__init__(f"Invoice {invoice_id} is linked to payment {payment_id}")


class VerificationFailed(LedgerError):
    """Registry validation did not pass; the invoice stays pending"""

    kind = "verification_failed"
    code = "VERIFICATION_FAILED"

    def __init__(self, invoice_id: str, reason: str) -> None:
        self.invoice_id = invoice_id
        self.reason = reason
        super().__init__(f"Invoice {invoice_id} verification failed: {reason}")


# ============================================================================
# State conflicts - payment
# ============================================================================


class InvoiceNotVerified(StateConflictError):
    code = "INVOICE_NOT_VERIFIED"

    def __init__(self, invoice_id: str, current_status: str) -> None:
        self.invoice_id = invoice_id
        self.current_status = current_status
        super().__init__(
            f"Invoice {invoice_id} is {current_status}, only verified invoices back a payment"
        )


class AmountExceedsInvoices(StateConflictError):
    code = "AMOUNT_EXCEEDS_INVOICES"

    def __init__(self, amount: str, invoice_total: str) -> None:
        self.amount = amount
        self.invoice_total = invoice_total
        super().__init__(
            f"Payment amount {amount} exceeds linked invoice total {invoice_total}"
        )

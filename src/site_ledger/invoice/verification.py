"""
Invoice Verification Service

Owns the invoice lifecycle up to the point where an invoice can back a
payment:

    create → (update)* → verify → verified
                       ↘ cancel

Verification asks the external registry first and only then commits. The
registry call runs outside the commit cycle, so a slow registry never holds
the event store; the commit re-checks that the invoice is still pending and
unchanged since the registry saw it.
"""

from collections.abc import Callable

import httpx

from site_ledger.integrations.blob_store import (
    Attachment,
    AttachmentUpload,
    BlobStore,
    discard_attachments,
    store_uploads,
)
from site_ledger.integrations.invoice_registry import InvoiceValidator, ValidationRequest
from site_ledger.integrations.supplier_directory import SupplierDirectory
from site_ledger.invoice.commands import (
    CancelInvoice,
    CreateInvoice,
    UpdateInvoice,
    VerifyInvoice,
)
from site_ledger.invoice.handlers import InvoiceCommandHandlers, invoice_number_stream
from site_ledger.invoice.invariants import validate_invoice_exists, validate_invoice_pending
from site_ledger.invoice.projections import InvoiceRegistry
from site_ledger.kernel.errors import ExternalServiceError, ValidationError, VerificationFailed
from site_ledger.kernel.events import Event
from site_ledger.kernel.logging import get_logger
from site_ledger.kernel.metrics import invoice_verifications_total
from site_ledger.kernel.repository import StreamRepository

logger = get_logger(__name__)

IMAGE_FOLDER = "invoices"


class InvoiceVerificationService:
    """Invoice registration, amendment, verification and cancellation"""

    def __init__(
        self,
        repository: StreamRepository,
        handlers: InvoiceCommandHandlers,
        supplier_directory: SupplierDirectory,
        validator: InvoiceValidator | None = None,
        blob_store: BlobStore | None = None,
    ) -> None:
        self.repository = repository
        self.handlers = handlers
        self.supplier_directory = supplier_directory
        self.validator = validator
        self.blob_store = blob_store

    def create_invoice(
        self,
        command: CreateInvoice,
        command_id: str,
        actor_id: str | None,
        uploads: list[AttachmentUpload] | None = None,
    ) -> list[Event]:
        """
        Register an invoice in status pending

        Two concurrent creations of the same (supplier, number) both try to
        open the reservation stream at version 1; only one append succeeds,
        the other is re-decided and refused with DuplicateInvoiceNumber.

        Raises:
            SupplierNotFound, SupplierBlacklisted, DuplicateInvoiceNumber
        """
        supplier = self.supplier_directory.get(command.supplier_id)
        images = self._store_uploads(uploads)
        reservation = invoice_number_stream(command.supplier_id, command.number)

        def decide() -> list[Event]:
            return self.handlers.handle_create_invoice(
                command,
                command_id,
                actor_id,
                supplier,
                self.repository.version(reservation),
                images,
            )

        return self._commit_with_compensation(decide, images, command_id)

    def update_invoice(
        self,
        command: UpdateInvoice,
        command_id: str,
        actor_id: str | None,
        uploads: list[AttachmentUpload] | None = None,
    ) -> list[Event]:
        """
        Amend a pending invoice

        Raises:
            InvoiceNotFound, AlreadyProcessed
        """
        images = self._store_uploads(uploads)

        def decide() -> list[Event]:
            invoices = self.repository.load_many(InvoiceRegistry, [command.invoice_id])
            return self.handlers.handle_update_invoice(
                command, command_id, actor_id, invoices, images
            )

        return self._commit_with_compensation(decide, images, command_id)

    def verify_invoice(
        self, command: VerifyInvoice, command_id: str, actor_id: str | None
    ) -> list[Event]:
        """
        Check a pending invoice with the registry and mark it verified

        On any failure the invoice stays pending and can be verified again.

        Raises:
            InvoiceNotFound: If invoice doesn't exist
            AlreadyProcessed: If invoice is not pending
            VerificationFailed: If the registry rejects the invoice or cannot
                be reached (then caused by ExternalServiceError), or if the
                invoice was amended while the registry was checking it
        """
        recorded = self.repository.recorded(command_id)
        if recorded:
            return recorded

        invoices = self.repository.load_many(InvoiceRegistry, [command.invoice_id])
        invoice = validate_invoice_exists(command.invoice_id, invoices)
        validate_invoice_pending(invoice)

        request = ValidationRequest(
            number=invoice.number,
            amount=invoice.amount,
            tax_rate=invoice.tax_rate,
            issue_date=invoice.issue_date,
            supplier_id=invoice.supplier_id,
        )
        try:
            if self.validator is None:
                raise ExternalServiceError("invoice registry", "not configured")
            result = self.validator.validate(request)
        except (ExternalServiceError, httpx.HTTPError) as e:
            invoice_verifications_total.labels(result="error").inc()
            cause = (
                e
                if isinstance(e, ExternalServiceError)
                else ExternalServiceError("invoice registry", str(e))
            )
            logger.warning(
                "Invoice registry unavailable",
                invoice_id=invoice.invoice_id,
                number=invoice.number,
                error=str(e),
            )
            raise VerificationFailed(invoice.invoice_id, str(cause)) from cause

        if not result.valid:
            invoice_verifications_total.labels(result="rejected").inc()
            logger.warning(
                "Invoice rejected by registry",
                invoice_id=invoice.invoice_id,
                number=invoice.number,
                registry_message=result.message,
            )
            raise VerificationFailed(
                invoice.invoice_id, result.message or "rejected by invoice registry"
            )

        def decide() -> list[Event]:
            fresh = self.repository.load_many(InvoiceRegistry, [command.invoice_id])
            return self.handlers.handle_verify_invoice(
                command,
                command_id,
                actor_id,
                fresh,
                result.message,
                checked_version=invoice.version,
            )

        events = self.repository.commit(decide, command_id)
        invoice_verifications_total.labels(result="verified").inc()
        return events

    def cancel_invoice(
        self, command: CancelInvoice, command_id: str, actor_id: str | None
    ) -> list[Event]:
        """
        Void an invoice

        Raises:
            InvoiceNotFound, AlreadyReimbursed, AlreadyCancelled, InvoiceInUse
        """

        def decide() -> list[Event]:
            invoices = self.repository.load_many(InvoiceRegistry, [command.invoice_id])
            return self.handlers.handle_cancel_invoice(command, command_id, actor_id, invoices)

        return self.repository.commit(decide, command_id)

    # ========== Helpers ==========

    def _store_uploads(self, uploads: list[AttachmentUpload] | None) -> list[Attachment]:
        if not uploads:
            return []
        if self.blob_store is None:
            raise ValidationError("Images were supplied but no blob store is configured")
        return store_uploads(self.blob_store, uploads, IMAGE_FOLDER)

    def _commit_with_compensation(
        self,
        decide: Callable[[], list[Event]],
        images: list[Attachment],
        command_id: str,
    ) -> list[Event]:
        try:
            return self.repository.commit(decide, command_id)
        except Exception:
            if images and self.blob_store is not None:
                discard_attachments(self.blob_store, images)
            raise

"""
Payment Settlement Engine - payments and the invoices backing them

Rule: every invoice backs at most one pending or approved payment, and a
payment never pays out more than the verified invoices behind it.

Each operation writes the payment event and the invoice events it implies
(InvoiceLinked, InvoiceUnlinked, InvoiceReimbursed) as one atomic batch,
each invoice event carrying the invoice version it was decided on. A
concurrent change to any of those invoices (another payment linking it, a
cancellation) makes the batch conflict, and the decision is re-run on
fresh state.
"""

from collections.abc import Callable, Iterable
from decimal import Decimal

from site_ledger.integrations.blob_store import (
    Attachment,
    AttachmentUpload,
    BlobStore,
    discard_attachments,
    store_uploads,
)
from site_ledger.integrations.supplier_directory import SupplierDirectory
from site_ledger.invoice.handlers import InvoiceCommandHandlers
from site_ledger.invoice.invariants import validate_invoice_exists, validate_supplier_eligible
from site_ledger.invoice.models import Invoice
from site_ledger.invoice.projections import InvoiceRegistry
from site_ledger.kernel.errors import InvariantViolation, ValidationError
from site_ledger.kernel.events import Event
from site_ledger.kernel.logging import get_logger
from site_ledger.kernel.metrics import invoices_reimbursed_total, payments_settled_total
from site_ledger.kernel.repository import StreamRepository
from site_ledger.payment.commands import (
    ConfirmPayment,
    CreatePayment,
    DecidePayment,
    ResubmitPayment,
    UpdatePayment,
)
from site_ledger.payment.handlers import PaymentCommandHandlers
from site_ledger.payment.invariants import validate_payment_backing, validate_payment_exists
from site_ledger.payment.models import Payment
from site_ledger.payment.projections import PaymentRegistry

logger = get_logger(__name__)

ATTACHMENT_FOLDER = "payments"


class PaymentSettlementEngine:
    """
    Payment lifecycle with invoice linking

    Operations return the committed events; callers refresh their read
    models from them.
    """

    def __init__(
        self,
        repository: StreamRepository,
        payment_handlers: PaymentCommandHandlers,
        invoice_handlers: InvoiceCommandHandlers,
        supplier_directory: SupplierDirectory,
        blob_store: BlobStore | None = None,
    ) -> None:
        self.repository = repository
        self.payment_handlers = payment_handlers
        self.invoice_handlers = invoice_handlers
        self.supplier_directory = supplier_directory
        self.blob_store = blob_store

    def create_payment(
        self,
        command: CreatePayment,
        command_id: str,
        actor_id: str | None,
        uploads: list[AttachmentUpload] | None = None,
    ) -> list[Event]:
        """
        Request a payment and link its invoices

        Raises:
            SupplierNotFound, SupplierBlacklisted, ValidationError,
            InvoiceNotFound, InvoiceNotVerified, InvoiceInUse,
            AmountExceedsInvoices, ConcurrencyConflictError
        """
        validate_supplier_eligible(command.payee_id, self.supplier_directory.get(command.payee_id))
        attachments = self._store_uploads(uploads)

        def decide() -> list[Event]:
            invoices = self.repository.load_many(InvoiceRegistry, command.invoice_ids)
            backing = validate_payment_backing(
                command.invoice_ids,
                invoices,
                command.payee_id,
                command.amount,
                self.payment_handlers.policy,
            )
            payment_events = self.payment_handlers.handle_create_payment(
                command, command_id, actor_id, attachments
            )
            payment_id = payment_events[0].stream_id
            return payment_events + [
                self.invoice_handlers.link_invoice(invoice, payment_id, command_id, actor_id)
                for invoice in backing
            ]

        return self._commit_with_compensation(decide, attachments, command_id)

    def update_payment(
        self,
        command: UpdatePayment,
        command_id: str,
        actor_id: str | None,
        uploads: list[AttachmentUpload] | None = None,
    ) -> list[Event]:
        """
        Amend a pending payment, relinking invoices if the set changed

        Raises:
            PaymentNotFound, NotPending, ValidationError, InvoiceNotFound,
            InvoiceNotVerified, InvoiceInUse, AmountExceedsInvoices,
            ConcurrencyConflictError
        """
        attachments = self._store_uploads(uploads)

        def decide() -> list[Event]:
            payment = self._load_payment(command.payment_id)
            payment_events = self.payment_handlers.handle_update_payment(
                command, command_id, actor_id, payment, attachments
            )
            if not payment_events:
                return []
            link_events = self._relink(
                payment,
                command,
                currently_linked=payment.invoice_ids,
                reason="payment_updated",
                command_id=command_id,
                actor_id=actor_id,
            )
            return payment_events + link_events

        return self._commit_with_compensation(decide, attachments, command_id)

    def decide_payment(
        self, command: DecidePayment, command_id: str, actor_id: str
    ) -> list[Event]:
        """
        Approve or reject a pending payment

        A rejection releases every linked invoice in the same batch, so the
        invoices can back another payment right away.

        Raises:
            PaymentNotFound, NotPending, ConcurrencyConflictError
        """

        def decide() -> list[Event]:
            payment = self._load_payment(command.payment_id)
            payment_events = self.payment_handlers.handle_decide_payment(
                command, command_id, actor_id, payment
            )
            if payment_events[0].event_type != "PaymentRejected":
                return payment_events
            invoices = self.repository.load_many(InvoiceRegistry, payment.invoice_ids)
            return payment_events + [
                self.invoice_handlers.unlink_invoice(
                    invoice, payment.payment_id, "payment_rejected", command_id, actor_id
                )
                for invoice in self._linked(payment, invoices)
            ]

        events = self.repository.commit(decide, command_id)
        if events:
            logger.info(
                "Payment decided",
                payment_id=command.payment_id,
                decision=command.decision.value,
                released_invoices=len(events) - 1,
            )
        return events

    def resubmit_payment(
        self,
        command: ResubmitPayment,
        command_id: str,
        actor_id: str | None,
        uploads: list[AttachmentUpload] | None = None,
    ) -> list[Event]:
        """
        Send a rejected payment back to review

        Its invoices were released on rejection, so the (possibly amended)
        invoice set is validated from scratch and linked again.

        Raises:
            PaymentNotFound, NotRejected, ValidationError, InvoiceNotFound,
            InvoiceNotVerified, InvoiceInUse, AmountExceedsInvoices,
            ConcurrencyConflictError
        """
        attachments = self._store_uploads(uploads)

        def decide() -> list[Event]:
            payment = self._load_payment(command.payment_id)
            payment_events = self.payment_handlers.handle_resubmit_payment(
                command, command_id, actor_id, payment, attachments
            )
            link_events = self._relink(
                payment,
                command,
                currently_linked=[],
                reason="payment_resubmitted",
                command_id=command_id,
                actor_id=actor_id,
            )
            return payment_events + link_events

        return self._commit_with_compensation(decide, attachments, command_id)

    def confirm_payment(
        self, command: ConfirmPayment, command_id: str, actor_id: str | None
    ) -> list[Event]:
        """
        Mark an approved payment as paid and reimburse its invoices

        PaymentPaid and one InvoiceReimbursed per linked invoice are
        appended together; if any invoice moved since it was read, nothing
        is written and the decision is re-run.

        Raises:
            PaymentNotFound, NotApproved, InvariantViolation,
            ConcurrencyConflictError
        """

        def decide() -> list[Event]:
            payment = self._load_payment(command.payment_id)
            payment_events = self.payment_handlers.handle_confirm_payment(
                payment, command.actual_date, command_id, actor_id
            )
            invoices = self.repository.load_many(InvoiceRegistry, payment.invoice_ids)
            linked = self._linked(payment, invoices)
            if len(linked) != len(payment.invoice_ids):
                raise InvariantViolation(
                    f"Payment {payment.payment_id} references invoices it does not hold"
                )
            return payment_events + [
                self.invoice_handlers.reimburse_invoice(
                    invoice, payment.payment_id, command_id, actor_id
                )
                for invoice in linked
            ]

        events = self.repository.commit(decide, command_id)
        self._record_settlement(events)
        return events

    # ========== Helpers ==========

    def _load_payment(self, payment_id: str) -> Payment:
        payments = self.repository.load_many(PaymentRegistry, [payment_id])
        return validate_payment_exists(payment_id, payments)

    @staticmethod
    def _linked(payment: Payment, invoices: dict[str, dict]) -> list[Invoice]:
        """Invoices of the payment that are currently linked to it"""
        linked = []
        for invoice_id in payment.invoice_ids:
            invoice = invoices.get(invoice_id)
            if invoice is not None and invoice["payment_id"] == payment.payment_id:
                linked.append(Invoice.model_validate(invoice))
        return linked

    def _relink(
        self,
        payment: Payment,
        command: UpdatePayment,
        *,
        currently_linked: Iterable[str],
        reason: str,
        command_id: str,
        actor_id: str | None,
    ) -> list[Event]:
        """Validate the payment's new invoice set and emit the link changes"""
        invoice_ids = command.invoice_ids if command.invoice_ids is not None else payment.invoice_ids
        amount: Decimal = command.amount if command.amount is not None else payment.amount
        currently_linked = list(currently_linked)

        invoices = self.repository.load_many(InvoiceRegistry, [*currently_linked, *invoice_ids])
        backing = validate_payment_backing(
            invoice_ids,
            invoices,
            payment.payee_id,
            amount,
            self.payment_handlers.policy,
            payment_id=payment.payment_id,
        )

        events = [
            self.invoice_handlers.unlink_invoice(
                validate_invoice_exists(invoice_id, invoices),
                payment.payment_id,
                reason,
                command_id,
                actor_id,
            )
            for invoice_id in currently_linked
            if invoice_id not in invoice_ids
        ]
        events.extend(
            self.invoice_handlers.link_invoice(invoice, payment.payment_id, command_id, actor_id)
            for invoice in backing
            if invoice.payment_id != payment.payment_id
        )
        return events

    def _record_settlement(self, events: list[Event]) -> None:
        reimbursed = [e for e in events if e.event_type == "InvoiceReimbursed"]
        for event in events:
            if event.event_type != "PaymentPaid":
                continue
            payment = self.repository.load(PaymentRegistry, event.stream_id)
            payment_type = payment["type"] if payment else "unknown"
            payments_settled_total.labels(type=payment_type).inc()
            logger.info(
                "Payment settled",
                payment_id=event.stream_id,
                actual_date=event.payload["actual_date"],
                invoices_reimbursed=len(reimbursed),
            )
        if reimbursed:
            invoices_reimbursed_total.inc(len(reimbursed))

    def _store_uploads(self, uploads: list[AttachmentUpload] | None) -> list[Attachment]:
        if not uploads:
            return []
        if self.blob_store is None:
            raise ValidationError("Attachments were supplied but no blob store is configured")
        return store_uploads(self.blob_store, uploads, ATTACHMENT_FOLDER)

    def _commit_with_compensation(
        self,
        decide: Callable[[], list[Event]],
        attachments: list[Attachment],
        command_id: str,
    ) -> list[Event]:
        try:
            return self.repository.commit(decide, command_id)
        except Exception:
            if attachments and self.blob_store is not None:
                discard_attachments(self.blob_store, attachments)
            raise

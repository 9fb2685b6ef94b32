"""
Invoice Module Handlers - Command→Event transformation for invoices

The link builders at the bottom are used by the payment settlement engine;
their events are committed in the same batch as the payment event.
"""

from pydantic import BaseModel

from site_ledger.integrations.blob_store import Attachment
from site_ledger.integrations.supplier_directory import SupplierInfo
from site_ledger.invoice.commands import (
    CancelInvoice,
    CreateInvoice,
    UpdateInvoice,
    VerifyInvoice,
)
from site_ledger.invoice.events import (
    InvoiceCancelled,
    InvoiceCreated,
    InvoiceLinked,
    InvoiceNumberReserved,
    InvoiceReimbursed,
    InvoiceUnlinked,
    InvoiceUpdated,
    InvoiceVerified,
)
from site_ledger.invoice.invariants import (
    validate_invoice_cancellable,
    validate_invoice_exists,
    validate_invoice_number_available,
    validate_invoice_pending,
    validate_supplier_eligible,
)
from site_ledger.invoice.models import Invoice, compute_tax
from site_ledger.kernel.errors import VerificationFailed
from site_ledger.kernel.events import Event, create_event
from site_ledger.kernel.ids import generate_code, generate_id
from site_ledger.kernel.policy import LedgerPolicy
from site_ledger.kernel.time import TimeProvider

STREAM_TYPE = "invoice"


def invoice_number_stream(supplier_id: str, number: str) -> str:
    """Reservation stream that makes an invoice number unique per supplier"""
    return f"invoice-number:{supplier_id}:{number}"


class InvoiceCommandHandlers:
    """Command handlers for the invoice module"""

    def __init__(self, time_provider: TimeProvider, policy: LedgerPolicy) -> None:
        self.time_provider = time_provider
        self.policy = policy

    def _event(
        self,
        invoice_id: str,
        event_type: str,
        payload: BaseModel,
        version: int,
        command_id: str,
        actor_id: str | None,
    ) -> Event:
        return create_event(
            event_id=generate_id(),
            stream_id=invoice_id,
            stream_type=STREAM_TYPE,
            event_type=event_type,
            occurred_at=self.time_provider.now(),
            command_id=command_id,
            actor_id=actor_id,
            payload=payload.model_dump(mode="json"),
            version=version,
        )

    def handle_create_invoice(
        self,
        command: CreateInvoice,
        command_id: str,
        actor_id: str | None,
        supplier: SupplierInfo | None,
        number_reservation_version: int,
        images: list[Attachment],
    ) -> list[Event]:
        """
        Handle CreateInvoice command

        Emits the number reservation and the InvoiceCreated event; both must
        be committed together.

        Args:
            supplier: Directory entry for command.supplier_id (None if unknown)
            number_reservation_version: Current version of the
                (supplier, number) reservation stream
            images: Scans already stored in the blob store

        Raises:
            SupplierNotFound: If the supplier is unknown
            SupplierBlacklisted: If the supplier is blacklisted
            DuplicateInvoiceNumber: If the supplier already filed this number
        """
        validate_supplier_eligible(command.supplier_id, supplier)
        validate_invoice_number_available(
            command.number, command.supplier_id, number_reservation_version
        )

        now = self.time_provider.now()
        invoice_id = generate_id()
        tax_amount, total_amount = compute_tax(command.amount, command.tax_rate)

        reservation = create_event(
            event_id=generate_id(),
            stream_id=invoice_number_stream(command.supplier_id, command.number),
            stream_type="reservation",
            event_type="InvoiceNumberReserved",
            occurred_at=now,
            command_id=command_id,
            actor_id=actor_id,
            payload=InvoiceNumberReserved(
                supplier_id=command.supplier_id,
                number=command.number,
                invoice_id=invoice_id,
            ).model_dump(mode="json"),
            version=1,
        )

        created = self._event(
            invoice_id,
            "InvoiceCreated",
            InvoiceCreated(
                invoice_id=invoice_id,
                code=generate_code(self.policy.invoice_code_prefix, now),
                number=command.number,
                type=command.type,
                project_id=command.project_id,
                supplier_id=command.supplier_id,
                issue_date=command.issue_date,
                amount=command.amount,
                tax_rate=command.tax_rate,
                tax_amount=tax_amount,
                total_amount=total_amount,
                currency=command.currency or self.policy.default_currency,
                images=images,
                remarks=command.remarks,
                created_at=now,
                created_by=actor_id,
            ),
            version=1,
            command_id=command_id,
            actor_id=actor_id,
        )

        return [reservation, created]

    def handle_update_invoice(
        self,
        command: UpdateInvoice,
        command_id: str,
        actor_id: str | None,
        invoices: dict[str, dict],
        images: list[Attachment],
    ) -> list[Event]:
        """
        Handle UpdateInvoice command

        Tax and total follow amount and tax_rate; new images are appended.

        Raises:
            InvoiceNotFound: If invoice doesn't exist
            AlreadyProcessed: If invoice is no longer pending
        """
        invoice = validate_invoice_exists(command.invoice_id, invoices)
        validate_invoice_pending(invoice)

        current = invoice.model_dump(mode="json")
        revised = command.model_dump(mode="json", exclude={"invoice_id"}, exclude_none=True)

        amount = command.amount if command.amount is not None else invoice.amount
        tax_rate = command.tax_rate if command.tax_rate is not None else invoice.tax_rate
        tax_amount, total_amount = compute_tax(amount, tax_rate)
        revised["tax_amount"] = str(tax_amount)
        revised["total_amount"] = str(total_amount)

        changes = {key: value for key, value in revised.items() if current.get(key) != value}
        if images:
            changes["images"] = current["images"] + [i.model_dump(mode="json") for i in images]
        if not changes:
            return []

        return [
            self._event(
                invoice.invoice_id,
                "InvoiceUpdated",
                InvoiceUpdated(
                    invoice_id=invoice.invoice_id,
                    changes=changes,
                    updated_at=self.time_provider.now(),
                    updated_by=actor_id,
                ),
                version=invoice.version + 1,
                command_id=command_id,
                actor_id=actor_id,
            )
        ]

    def handle_verify_invoice(
        self,
        command: VerifyInvoice,
        command_id: str,
        actor_id: str | None,
        invoices: dict[str, dict],
        registry_message: str | None = None,
        checked_version: int | None = None,
    ) -> list[Event]:
        """
        Handle VerifyInvoice command once the registry has confirmed it

        The registry call itself happens outside this handler; this only
        records a positive verdict on an invoice that is still pending and
        still at the version the registry was shown.

        Raises:
            InvoiceNotFound: If invoice doesn't exist
            AlreadyProcessed: If invoice left pending meanwhile
            VerificationFailed: If invoice was amended after the registry check
        """
        invoice = validate_invoice_exists(command.invoice_id, invoices)
        validate_invoice_pending(invoice)
        if checked_version is not None and invoice.version != checked_version:
            raise VerificationFailed(
                invoice.invoice_id, "invoice changed during verification, verify it again"
            )

        return [
            self._event(
                invoice.invoice_id,
                "InvoiceVerified",
                InvoiceVerified(
                    invoice_id=invoice.invoice_id,
                    registry_message=registry_message,
                    verified_at=self.time_provider.now(),
                    verified_by=actor_id,
                ),
                version=invoice.version + 1,
                command_id=command_id,
                actor_id=actor_id,
            )
        ]

    def handle_cancel_invoice(
        self,
        command: CancelInvoice,
        command_id: str,
        actor_id: str | None,
        invoices: dict[str, dict],
    ) -> list[Event]:
        """
        Handle CancelInvoice command

        Raises:
            InvoiceNotFound: If invoice doesn't exist
            AlreadyReimbursed: If invoice was paid out
            AlreadyCancelled: If invoice is already void
            InvoiceInUse: If invoice backs a pending or approved payment
        """
        invoice = validate_invoice_exists(command.invoice_id, invoices)
        validate_invoice_cancellable(invoice)

        note = f"Cancellation reason: {command.reason}"
        remarks = f"{invoice.remarks}\n{note}" if invoice.remarks else note

        return [
            self._event(
                invoice.invoice_id,
                "InvoiceCancelled",
                InvoiceCancelled(
                    invoice_id=invoice.invoice_id,
                    reason=command.reason,
                    remarks=remarks,
                    cancelled_at=self.time_provider.now(),
                    cancelled_by=actor_id,
                ),
                version=invoice.version + 1,
                command_id=command_id,
                actor_id=actor_id,
            )
        ]

    # ========== Payment links ==========

    def link_invoice(
        self, invoice: Invoice, payment_id: str, command_id: str, actor_id: str | None
    ) -> Event:
        return self._event(
            invoice.invoice_id,
            "InvoiceLinked",
            InvoiceLinked(
                invoice_id=invoice.invoice_id,
                payment_id=payment_id,
                linked_at=self.time_provider.now(),
            ),
            version=invoice.version + 1,
            command_id=command_id,
            actor_id=actor_id,
        )

    def unlink_invoice(
        self,
        invoice: Invoice,
        payment_id: str,
        reason: str,
        command_id: str,
        actor_id: str | None,
    ) -> Event:
        return self._event(
            invoice.invoice_id,
            "InvoiceUnlinked",
            InvoiceUnlinked(
                invoice_id=invoice.invoice_id,
                payment_id=payment_id,
                reason=reason,
                unlinked_at=self.time_provider.now(),
            ),
            version=invoice.version + 1,
            command_id=command_id,
            actor_id=actor_id,
        )

    def reimburse_invoice(
        self, invoice: Invoice, payment_id: str, command_id: str, actor_id: str | None
    ) -> Event:
        return self._event(
            invoice.invoice_id,
            "InvoiceReimbursed",
            InvoiceReimbursed(
                invoice_id=invoice.invoice_id,
                payment_id=payment_id,
                reimbursed_at=self.time_provider.now(),
            ),
            version=invoice.version + 1,
            command_id=command_id,
            actor_id=actor_id,
        )

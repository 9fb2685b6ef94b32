"""
Invoice Module Invariants

Pure checks shared by the verification service and the payment settlement
engine.
"""

from site_ledger.integrations.supplier_directory import SupplierInfo
from site_ledger.invoice.models import Invoice, InvoiceStatus
from site_ledger.kernel.errors import (
    AlreadyCancelled,
    AlreadyProcessed,
    AlreadyReimbursed,
    DuplicateInvoiceNumber,
    InvoiceInUse,
    InvoiceNotFound,
    InvoiceNotVerified,
    SupplierBlacklisted,
    SupplierNotFound,
)


def validate_invoice_exists(invoice_id: str, invoices: dict[str, dict]) -> Invoice:
    """
    Raises:
        InvoiceNotFound: If invoice_id is unknown
    """
    invoice = invoices.get(invoice_id)
    if invoice is None:
        raise InvoiceNotFound(invoice_id)
    return Invoice.model_validate(invoice)


def validate_supplier_eligible(supplier_id: str, supplier: SupplierInfo | None) -> None:
    """
    Raises:
        SupplierNotFound: If the directory doesn't know the supplier
        SupplierBlacklisted: If the supplier is blacklisted
    """
    if supplier is None:
        raise SupplierNotFound(supplier_id)
    if supplier.is_blacklisted:
        raise SupplierBlacklisted(supplier_id)


def validate_invoice_number_available(
    number: str, supplier_id: str, reservation_version: int
) -> None:
    """
    Raises:
        DuplicateInvoiceNumber: If (supplier, number) is already claimed
    """
    if reservation_version > 0:
        raise DuplicateInvoiceNumber(number, supplier_id)


def validate_invoice_pending(invoice: Invoice) -> None:
    """
    Raises:
        AlreadyProcessed: If the invoice has left pending
    """
    if invoice.status != InvoiceStatus.PENDING:
        raise AlreadyProcessed(invoice.invoice_id, invoice.status.value)


def validate_invoice_cancellable(invoice: Invoice) -> None:
    """
    Cancellation is refused for terminal invoices and for invoices backing
    a payment that is still pending or approved.

    Raises:
        AlreadyReimbursed: If status is reimbursed
        AlreadyCancelled: If status is cancelled
        InvoiceInUse: If linked to a non-terminal payment
    """
    if invoice.status == InvoiceStatus.REIMBURSED:
        raise AlreadyReimbursed(invoice.invoice_id)
    if invoice.status == InvoiceStatus.CANCELLED:
        raise AlreadyCancelled(invoice.invoice_id)
    if invoice.payment_id is not None:
        raise InvoiceInUse(invoice.invoice_id, invoice.payment_id)


def validate_invoice_backs_payment(
    invoice_id: str,
    invoices: dict[str, dict],
    payee_id: str,
    payment_id: str | None = None,
) -> Invoice:
    """
    Check that an invoice may back a payment to payee_id

    Args:
        invoice_id: Invoice referenced by the payment
        invoices: Freshly loaded invoices
        payee_id: Payment payee; must be the invoice's supplier
        payment_id: The payment being amended, whose own links are allowed

    Raises:
        InvoiceNotFound: If missing or issued by another supplier
        InvoiceNotVerified: If status is not verified
        InvoiceInUse: If linked to a different non-terminal payment
    """
    raw = invoices.get(invoice_id)
    if raw is None or raw["supplier_id"] != payee_id:
        raise InvoiceNotFound(invoice_id, payee_id)
    invoice = Invoice.model_validate(raw)

    if invoice.status != InvoiceStatus.VERIFIED:
        raise InvoiceNotVerified(invoice.invoice_id, invoice.status.value)
    if invoice.payment_id is not None and invoice.payment_id != payment_id:
        raise InvoiceInUse(invoice.invoice_id, invoice.payment_id)
    return invoice

"""
Payment Module Invariants
"""

from decimal import Decimal

from site_ledger.invoice.invariants import validate_invoice_backs_payment
from site_ledger.invoice.models import Invoice
from site_ledger.kernel.errors import (
    AmountExceedsInvoices,
    NotApproved,
    PaymentNotFound,
    ValidationError,
)
from site_ledger.kernel.money import ZERO, money_str
from site_ledger.kernel.policy import LedgerPolicy
from site_ledger.payment.models import Payment, PaymentStatus


def validate_payment_exists(payment_id: str, payments: dict[str, dict]) -> Payment:
    """
    Raises:
        PaymentNotFound: If payment_id is unknown
    """
    payment = payments.get(payment_id)
    if payment is None:
        raise PaymentNotFound(payment_id)
    return Payment.model_validate(payment)


def validate_payment_approved(payment: Payment) -> None:
    """
    Raises:
        NotApproved: If the payment is not approved (including already paid)
    """
    if payment.status != PaymentStatus.APPROVED:
        raise NotApproved(payment.payment_id, payment.status.value)


def validate_payment_backing(
    invoice_ids: list[str],
    invoices: dict[str, dict],
    payee_id: str,
    amount: Decimal,
    policy: LedgerPolicy,
    payment_id: str | None = None,
) -> list[Invoice]:
    """
    Check that a payment is covered by its invoices

    Args:
        invoice_ids: Invoices the payment will reference
        invoices: Freshly loaded invoices (at least those in invoice_ids)
        payee_id: Payment payee
        amount: Payment amount
        policy: Decides whether a payment may reference no invoice at all
        payment_id: Payment being amended, None for a new one

    Returns:
        The backing invoices, in invoice_ids order

    Raises:
        ValidationError: If there are no invoices and the policy forbids it
        InvoiceNotFound, InvoiceNotVerified, InvoiceInUse: Per invoice
        AmountExceedsInvoices: If amount > sum of total_amount
    """
    if not invoice_ids:
        if not policy.allow_unbacked_payments:
            raise ValidationError(
                "A payment must reference at least one verified invoice",
                errors=[{"loc": ["invoice_ids"], "msg": "must not be empty"}],
            )
        return []

    backing = [
        validate_invoice_backs_payment(invoice_id, invoices, payee_id, payment_id)
        for invoice_id in invoice_ids
    ]
    invoice_total = sum((invoice.total_amount for invoice in backing), ZERO)
    if amount > invoice_total:
        raise AmountExceedsInvoices(money_str(amount), money_str(invoice_total))
    return backing

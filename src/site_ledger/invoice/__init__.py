"""
Invoice Module - supplier invoices and their verification
"""

from site_ledger.invoice.models import Invoice, InvoiceStatus, InvoiceType, compute_tax
from site_ledger.invoice.verification import InvoiceVerificationService

__all__ = [
    "Invoice",
    "InvoiceStatus",
    "InvoiceType",
    "InvoiceVerificationService",
    "compute_tax",
]

"""
Payment Module - supplier payments backed by verified invoices
"""

from site_ledger.payment.models import (
    BankInfo,
    Payment,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
)
from site_ledger.payment.settlement import PaymentSettlementEngine

__all__ = [
    "BankInfo",
    "Payment",
    "PaymentMethod",
    "PaymentSettlementEngine",
    "PaymentStatus",
    "PaymentType",
]

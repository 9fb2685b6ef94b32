"""
Site Ledger - Event-sourced financial core for construction project management

Tracks budgets, the costs charged against them, supplier invoices and the
payments those invoices back. Every change is an event; a budget can never
be consumed beyond its approved amount, and an invoice can back at most
one payment.
"""

from site_ledger.ledger import Ledger

__version__ = "0.1.0"
__all__ = ["Ledger", "__version__"]

"""
Balance Module - budget consumption through cost entries

All movements of a budget's used_amount are decided and committed here.
"""

from site_ledger.balance.engine import BalanceEngine

__all__ = ["BalanceEngine"]

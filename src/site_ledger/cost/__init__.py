"""
Cost Module - expenditure records that may draw against a budget
"""

from site_ledger.cost.models import CostEntry, CostType

__all__ = ["CostEntry", "CostType"]

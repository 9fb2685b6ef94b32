"""
Reporting Module - read-only rollups over costs, invoices, payments and budgets
"""

from site_ledger.reporting.aggregations import (
    ReportPeriod,
    budget_report,
    budget_stats,
    cost_stats,
    cost_trend,
    invoice_stats,
    invoice_summary,
    payment_plan,
    payment_stats,
    pending_invoices,
)

__all__ = [
    "ReportPeriod",
    "budget_report",
    "budget_stats",
    "cost_stats",
    "cost_trend",
    "invoice_stats",
    "invoice_summary",
    "payment_plan",
    "payment_stats",
    "pending_invoices",
]

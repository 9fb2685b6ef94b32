"""
Reporting aggregations - pure rollups over registry snapshots

Every function takes plain snapshot dicts (as held by the registries),
filters them, and returns JSON-ready dicts with amounts as strings. Empty
inputs yield empty results; percentages of an empty total are "0.00".
"""

import datetime
from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal
from enum import Enum

from site_ledger.budget.models import BudgetStatus
from site_ledger.invoice.models import InvoiceStatus
from site_ledger.kernel.money import ZERO, money_str, percentage
from site_ledger.payment.models import PaymentStatus


class ReportPeriod(str, Enum):
    """Time bucket granularity"""

    DAY = "day"
    MONTH = "month"
    YEAR = "year"

    def bucket(self, day: datetime.date) -> str:
        if self == ReportPeriod.DAY:
            return day.strftime("%Y-%m-%d")
        if self == ReportPeriod.MONTH:
            return day.strftime("%Y-%m")
        return day.strftime("%Y")


def _date(value: str | datetime.date | None) -> datetime.date | None:
    if value is None or isinstance(value, datetime.date):
        return value
    return datetime.date.fromisoformat(value[:10])


def _in_range(
    value: str | None,
    start_date: datetime.date | None,
    end_date: datetime.date | None,
) -> bool:
    """Inclusive date range check; open ends match everything"""
    if start_date is None and end_date is None:
        return True
    day = _date(value)
    if day is None:
        return False
    if start_date is not None and day < start_date:
        return False
    return end_date is None or day <= end_date


def _per_type(
    rows: Iterable[dict], amount_field: str, tax_field: str | None = None
) -> list[dict]:
    """Group rows by type with totals, counts and share of the grand total"""
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    taxes: dict[str, Decimal] = defaultdict(lambda: ZERO)
    counts: dict[str, int] = defaultdict(int)

    for row in rows:
        totals[row["type"]] += Decimal(row[amount_field])
        if tax_field is not None:
            taxes[row["type"]] += Decimal(row[tax_field])
        counts[row["type"]] += 1

    grand_total = sum(totals.values(), ZERO)
    stats = []
    for kind in sorted(totals):
        entry = {
            "type": kind,
            "total_amount": money_str(totals[kind]),
            "count": counts[kind],
            "percentage": str(percentage(totals[kind], grand_total)),
        }
        if tax_field is not None:
            entry["total_tax_amount"] = money_str(taxes[kind])
        stats.append(entry)
    return stats


# ========== Costs ==========


def cost_stats(costs: Iterable[dict], project_id: str | None = None) -> list[dict]:
    """Per-type cost totals with their share of all costs"""
    return _per_type(
        (c for c in costs if project_id is None or c["project_id"] == project_id),
        "amount",
    )


def cost_trend(
    costs: Iterable[dict],
    period: ReportPeriod = ReportPeriod.MONTH,
    *,
    project_id: str | None = None,
    cost_type: str | None = None,
    start_date: datetime.date | None = None,
    end_date: datetime.date | None = None,
) -> list[dict]:
    """
    Cost totals per time bucket, oldest first

    Example:
        >>> cost_trend(costs, ReportPeriod.MONTH)
        [{"period": "2025-01", "total_amount": "400.00", "count": 1}]
    """
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    counts: dict[str, int] = defaultdict(int)

    for cost in costs:
        if project_id is not None and cost["project_id"] != project_id:
            continue
        if cost_type is not None and cost["type"] != cost_type:
            continue
        if not _in_range(cost["date"], start_date, end_date):
            continue
        bucket = period.bucket(_date(cost["date"]))
        totals[bucket] += Decimal(cost["amount"])
        counts[bucket] += 1

    return [
        {"period": bucket, "total_amount": money_str(totals[bucket]), "count": counts[bucket]}
        for bucket in sorted(totals)
    ]


# ========== Invoices ==========

_ACCOUNTED_INVOICES = (InvoiceStatus.VERIFIED.value, InvoiceStatus.REIMBURSED.value)


def invoice_stats(
    invoices: Iterable[dict],
    *,
    project_id: str | None = None,
    supplier_id: str | None = None,
    start_date: datetime.date | None = None,
    end_date: datetime.date | None = None,
) -> list[dict]:
    """Per-type totals (with tax) of verified and reimbursed invoices"""
    rows = (
        i
        for i in invoices
        if i["status"] in _ACCOUNTED_INVOICES
        and (project_id is None or i["project_id"] == project_id)
        and (supplier_id is None or i["supplier_id"] == supplier_id)
        and _in_range(i["issue_date"], start_date, end_date)
    )
    return _per_type(rows, "total_amount", "tax_amount")


def invoice_summary(
    invoices: Iterable[dict],
    group_by: ReportPeriod = ReportPeriod.MONTH,
    *,
    start_date: datetime.date | None = None,
    end_date: datetime.date | None = None,
) -> list[dict]:
    """
    Verified and reimbursed invoices per issue-date bucket, split by type

    Returns:
        [{"date", "total", "total_tax", "types": {type: {"amount",
        "tax_amount", "count"}}}], oldest bucket first
    """
    buckets: dict[str, dict] = {}
    for invoice in invoices:
        if invoice["status"] not in _ACCOUNTED_INVOICES:
            continue
        if not _in_range(invoice["issue_date"], start_date, end_date):
            continue

        key = group_by.bucket(_date(invoice["issue_date"]))
        bucket = buckets.setdefault(key, {"total": ZERO, "total_tax": ZERO, "types": {}})
        per_type = bucket["types"].setdefault(
            invoice["type"], {"amount": ZERO, "tax_amount": ZERO, "count": 0}
        )
        total, tax = Decimal(invoice["total_amount"]), Decimal(invoice["tax_amount"])
        bucket["total"] += total
        bucket["total_tax"] += tax
        per_type["amount"] += total
        per_type["tax_amount"] += tax
        per_type["count"] += 1

    return [
        {
            "date": key,
            "total": money_str(bucket["total"]),
            "total_tax": money_str(bucket["total_tax"]),
            "types": {
                kind: {
                    "amount": money_str(values["amount"]),
                    "tax_amount": money_str(values["tax_amount"]),
                    "count": values["count"],
                }
                for kind, values in sorted(bucket["types"].items())
            },
        }
        for key, bucket in sorted(buckets.items())
    ]


def pending_invoices(
    invoices: Iterable[dict],
    now: datetime.datetime,
    days: int = 7,
    supplier_id: str | None = None,
) -> list[dict]:
    """Pending invoices issued within the last ``days`` days, oldest first"""
    since = (now - datetime.timedelta(days=days)).date()
    rows = [
        i
        for i in invoices
        if i["status"] == InvoiceStatus.PENDING.value
        and _date(i["issue_date"]) >= since
        and (supplier_id is None or i["supplier_id"] == supplier_id)
    ]
    return sorted(rows, key=lambda i: i["issue_date"])


# ========== Payments ==========


def payment_stats(
    payments: Iterable[dict],
    *,
    project_id: str | None = None,
    start_date: datetime.date | None = None,
    end_date: datetime.date | None = None,
) -> list[dict]:
    """Per-type totals of paid payments, filtered on the actual payout date"""
    rows = (
        p
        for p in payments
        if p["status"] == PaymentStatus.PAID.value
        and (project_id is None or p["project_id"] == project_id)
        and _in_range(p["actual_date"], start_date, end_date)
    )
    return _per_type(rows, "amount")


def payment_plan(
    payments: Iterable[dict],
    *,
    start_date: datetime.date | None = None,
    end_date: datetime.date | None = None,
    statuses: Iterable[PaymentStatus] = (PaymentStatus.PENDING, PaymentStatus.APPROVED),
) -> list[dict]:
    """
    Upcoming payments grouped by planned date

    Returns:
        [{"date", "total_amount", "payments": [{"payment_id", "code",
        "amount", "status", "type", "payee_id"}]}], earliest date first
    """
    wanted = {status.value for status in statuses}
    plan: dict[str, dict] = {}
    for payment in sorted(payments, key=lambda p: p["planned_date"]):
        if payment["status"] not in wanted:
            continue
        if not _in_range(payment["planned_date"], start_date, end_date):
            continue
        day = plan.setdefault(payment["planned_date"], {"total_amount": ZERO, "payments": []})
        day["total_amount"] += Decimal(payment["amount"])
        day["payments"].append(
            {
                "payment_id": payment["payment_id"],
                "code": payment["code"],
                "amount": payment["amount"],
                "status": payment["status"],
                "type": payment["type"],
                "payee_id": payment["payee_id"],
            }
        )

    return [
        {"date": key, "total_amount": money_str(day["total_amount"]), "payments": day["payments"]}
        for key, day in plan.items()
    ]


# ========== Budgets ==========


def budget_stats(budgets: Iterable[dict], project_id: str) -> list[dict]:
    """Approved budgets of a project grouped by type"""
    totals: dict[str, dict] = {}
    for budget in budgets:
        if budget["project_id"] != project_id or budget["status"] != BudgetStatus.APPROVED.value:
            continue
        entry = totals.setdefault(
            budget["type"], {"total_amount": ZERO, "used_amount": ZERO, "count": 0}
        )
        entry["total_amount"] += Decimal(budget["amount"])
        entry["used_amount"] += Decimal(budget["used_amount"])
        entry["count"] += 1

    return [
        {
            "type": kind,
            "total_amount": money_str(entry["total_amount"]),
            "used_amount": money_str(entry["used_amount"]),
            "count": entry["count"],
        }
        for kind, entry in sorted(totals.items())
    ]


def budget_report(
    budgets: Iterable[dict],
    *,
    project_id: str | None = None,
    fiscal_year: int | None = None,
    budget_type: str | None = None,
) -> dict:
    """
    Execution report of approved budgets

    Returns:
        {"summary": {"total_budget", "total_used", "total_remaining"},
         "details": [per-budget amounts, usage and items]}
    """
    selected = [
        b
        for b in budgets
        if b["status"] == BudgetStatus.APPROVED.value
        and (project_id is None or b["project_id"] == project_id)
        and (fiscal_year is None or b["fiscal_year"] == fiscal_year)
        and (budget_type is None or b["type"] == budget_type)
    ]

    total_budget = sum((Decimal(b["amount"]) for b in selected), ZERO)
    total_used = sum((Decimal(b["used_amount"]) for b in selected), ZERO)

    return {
        "summary": {
            "total_budget": money_str(total_budget),
            "total_used": money_str(total_used),
            "total_remaining": money_str(total_budget - total_used),
        },
        "details": [
            {
                "budget_id": b["budget_id"],
                "code": b["code"],
                "name": b["name"],
                "project_id": b["project_id"],
                "amount": money_str(Decimal(b["amount"])),
                "used_amount": money_str(Decimal(b["used_amount"])),
                "remaining_amount": money_str(Decimal(b["amount"]) - Decimal(b["used_amount"])),
                "usage_rate": str(percentage(Decimal(b["used_amount"]), Decimal(b["amount"]))),
                "items": b["items"],
            }
            for b in sorted(selected, key=lambda b: b["code"])
        ],
    }

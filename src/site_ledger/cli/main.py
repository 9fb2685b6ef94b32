"""
Site Ledger CLI

Command-line interface for the Site Ledger financial core.
Commands take JSON payloads and print the resulting entity.

Usage:
    site-ledger init --db ledger.db
    site-ledger budget create --data '{"code": "B-001", ...}' --operator alice
    site-ledger budget submit --id <budget_id> --operator alice
    site-ledger budget decide --id <budget_id> --decision approved --operator carol
    site-ledger cost record --data '{"budget_id": "<budget_id>", ...}' --operator bob
    site-ledger invoice verify --id <invoice_id> --operator bob
    site-ledger payment confirm --id <payment_id> --operator dave
    site-ledger report budget-report --project P1

Environment:
    SITE_LEDGER_DB                Database path (default .site-ledger.db)
    SITE_LEDGER_SUPPLIERS         Supplier directory JSON file
    SITE_LEDGER_REGISTRY_URL      Invoice registry base URL
    SITE_LEDGER_REGISTRY_API_KEY  Invoice registry API key
    SITE_LEDGER_BLOB_DIR          Directory for attachments and images
"""

import json
import mimetypes
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional, TypeVar

import typer
from typing_extensions import Annotated

from site_ledger.integrations.blob_store import AttachmentUpload, LocalBlobStore
from site_ledger.integrations.invoice_registry import HttpInvoiceRegistry
from site_ledger.integrations.supplier_directory import StaticSupplierDirectory
from site_ledger.kernel.errors import LedgerError
from site_ledger.kernel.logging import configure_logging
from site_ledger.ledger import Ledger

# Configure logging (quiet by default so command output stays readable)
configure_logging(json_output=False, log_level=os.getenv("SITE_LEDGER_LOG_LEVEL", "WARNING"))

app = typer.Typer(
    name="site-ledger",
    help="Site Ledger - Budgets, costs, invoices and payments for construction projects",
    add_completion=False,
)

# Sub-apps
budget_app = typer.Typer(help="Budget lifecycle commands")
cost_app = typer.Typer(help="Cost entry commands")
invoice_app = typer.Typer(help="Invoice registration and verification commands")
payment_app = typer.Typer(help="Payment approval and settlement commands")
report_app = typer.Typer(help="Financial reports (JSON output)")

app.add_typer(budget_app, name="budget")
app.add_typer(cost_app, name="cost")
app.add_typer(invoice_app, name="invoice")
app.add_typer(payment_app, name="payment")
app.add_typer(report_app, name="report")

DEFAULT_DB = Path(".site-ledger.db")

T = TypeVar("T")

DbOption = Annotated[
    Optional[Path],
    typer.Option("--db", help="Database path", envvar="SITE_LEDGER_DB"),
]
OperatorOption = Annotated[str, typer.Option("--operator", help="Operator performing the action")]
DataOption = Annotated[str, typer.Option("--data", help="Payload (JSON object)")]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]
AttachOption = Annotated[
    Optional[list[Path]],
    typer.Option("--attach", help="File to attach (repeatable)"),
]
CommandIdOption = Annotated[
    Optional[str],
    typer.Option("--command-id", help="Idempotency key; repeating it replays the first result"),
]


def build_ledger(db: Path) -> Ledger:
    """Ledger wired with the collaborators named in the environment"""
    suppliers_file = os.getenv("SITE_LEDGER_SUPPLIERS")
    registry_url = os.getenv("SITE_LEDGER_REGISTRY_URL")
    blob_dir = os.getenv("SITE_LEDGER_BLOB_DIR")

    return Ledger(
        db,
        supplier_directory=(
            StaticSupplierDirectory.from_json_file(suppliers_file) if suppliers_file else None
        ),
        invoice_validator=(
            HttpInvoiceRegistry(registry_url, api_key=os.getenv("SITE_LEDGER_REGISTRY_API_KEY"))
            if registry_url
            else None
        ),
        blob_store=LocalBlobStore(blob_dir) if blob_dir else None,
    )


def get_ledger(db_path: Optional[Path] = None) -> Ledger:
    """Get Ledger instance"""
    db = db_path or DEFAULT_DB
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'site-ledger init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    return build_ledger(db)


def run(operation: Callable[[], T]) -> T:
    """Run a ledger call, turning ledger errors into a JSON error and exit code 1"""
    try:
        return operation()
    except LedgerError as e:
        typer.echo(json.dumps({"error": e.to_dict()}, indent=2, default=str), err=True)
        raise typer.Exit(1) from e


def parse_payload(data: str) -> dict[str, Any]:
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        typer.echo(f"Error: --data is not valid JSON: {e}", err=True)
        raise typer.Exit(2) from e
    if not isinstance(payload, dict):
        typer.echo("Error: --data must be a JSON object", err=True)
        raise typer.Exit(2)
    return payload


def read_uploads(paths: Optional[list[Path]]) -> list[AttachmentUpload] | None:
    if not paths:
        return None
    return [
        AttachmentUpload(
            filename=path.name,
            content_type=mimetypes.guess_type(path.name)[0] or "application/octet-stream",
            data=path.read_bytes(),
        )
        for path in paths
    ]


def echo_json(value: Any) -> None:
    typer.echo(json.dumps(value, indent=2, default=str))


# Initialization command


@app.command()
def init(
    db: Annotated[
        Path,
        typer.Option(help="Database path", envvar="SITE_LEDGER_DB"),
    ] = DEFAULT_DB,
) -> None:
    """Initialize a new ledger database"""
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    Ledger(db)
    typer.echo(f"✓ Initialized ledger database: {db}")


@app.command()
def health(db: DbOption = None, json_output: JsonOption = False) -> None:
    """Show ledger health summary"""
    ledger = get_ledger(db)
    summary = ledger.health()

    if json_output:
        echo_json(summary)
        return

    typer.echo("\nLedger Health:")
    typer.echo(f"  Events: {summary['event_count']} in {summary['stream_count']} streams")
    typer.echo(
        f"  Budgets: {summary['budgets']} ({summary['approved_budgets']} approved, "
        f"{summary['exhausted_budgets']} exhausted)"
    )
    typer.echo(f"  Invoices awaiting verification: {summary['pending_invoices']}")
    typer.echo(f"  Payments awaiting approval: {summary['payments_awaiting_approval']}")


# Budget commands


@budget_app.command("create")
def budget_create(
    data: DataOption,
    operator: OperatorOption,
    db: DbOption = None,
    command_id: CommandIdOption = None,
) -> None:
    """Create a draft budget"""
    ledger = get_ledger(db)
    budget = run(lambda: ledger.create_budget(parse_payload(data), operator, command_id))

    typer.echo(f"✓ Created budget: {budget['budget_id']}")
    typer.echo(f"  Code: {budget['code']}")
    typer.echo(f"  Amount: {budget['amount']} {budget['currency']}")
    typer.echo(f"  Items: {len(budget['items'])}")
    typer.echo(f"  Status: {budget['status']}")


@budget_app.command("update")
def budget_update(
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    data: DataOption,
    operator: OperatorOption,
    db: DbOption = None,
) -> None:
    """Revise a draft budget"""
    ledger = get_ledger(db)
    budget = run(lambda: ledger.update_budget(budget_id, parse_payload(data), operator))

    typer.echo(f"✓ Updated budget: {budget['budget_id']}")
    typer.echo(f"  Amount: {budget['amount']} {budget['currency']}")


@budget_app.command("submit")
def budget_submit(
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    operator: OperatorOption,
    db: DbOption = None,
) -> None:
    """Submit a draft budget for approval (draft → pending)"""
    ledger = get_ledger(db)
    budget = run(lambda: ledger.submit_budget(budget_id, operator))

    typer.echo(f"✓ Submitted budget: {budget['budget_id']}")
    typer.echo(f"  Status: {budget['status']}")


@budget_app.command("decide")
def budget_decide(
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    decision: Annotated[str, typer.Option("--decision", help="approved or rejected")],
    operator: OperatorOption,
    comments: Annotated[str, typer.Option("--comments", help="Reviewer comments")] = "",
    db: DbOption = None,
) -> None:
    """Approve or reject a pending budget"""
    ledger = get_ledger(db)
    budget = run(lambda: ledger.decide_budget(budget_id, decision, operator, comments))

    typer.echo(f"✓ Decided budget: {budget['budget_id']}")
    typer.echo(f"  Status: {budget['status']}")


@budget_app.command("reopen")
def budget_reopen(
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    operator: OperatorOption,
    db: DbOption = None,
) -> None:
    """Bring a rejected budget back to draft"""
    ledger = get_ledger(db)
    budget = run(lambda: ledger.reopen_budget(budget_id, operator))

    typer.echo(f"✓ Reopened budget: {budget['budget_id']}")
    typer.echo(f"  Status: {budget['status']}")


@budget_app.command("charge")
def budget_charge(
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    delta: Annotated[str, typer.Option("--delta", help="Signed amount, e.g. 150.00 or -20")],
    operator: OperatorOption,
    reason: Annotated[str, typer.Option("--reason", help="Reason for the adjustment")] = "adjustment",
    db: DbOption = None,
    command_id: CommandIdOption = None,
) -> None:
    """Adjust a budget's used amount directly"""
    ledger = get_ledger(db)
    budget = run(lambda: ledger.charge_budget(budget_id, delta, operator, reason, command_id))

    typer.echo(f"✓ Charged budget: {budget['budget_id']}")
    typer.echo(f"  Used: {budget['used_amount']} of {budget['amount']}")
    typer.echo(f"  Remaining: {budget['remaining_amount']}")


@budget_app.command("show")
def budget_show(
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show budget details"""
    ledger = get_ledger(db)
    budget = run(lambda: ledger.get_budget(budget_id))

    if json_output:
        echo_json(budget)
        return

    typer.echo(f"\nBudget: {budget['budget_id']} ({budget['code']})")
    typer.echo(f"  Name: {budget['name']}")
    typer.echo(f"  Project: {budget['project_id']}")
    typer.echo(f"  Fiscal Year: {budget['fiscal_year']}")
    typer.echo(f"  Status: {budget['status']}")
    typer.echo(f"  Amount: {budget['amount']} {budget['currency']}")
    typer.echo(f"  Used: {budget['used_amount']} ({budget['usage_rate']}%)")
    typer.echo(f"  Remaining: {budget['remaining_amount']}")

    typer.echo(f"\n  Items ({len(budget['items'])}):")
    for item in budget["items"]:
        typer.echo(f"    {item['name']}: {item['planned_amount']}")

    if budget["approvals"]:
        typer.echo("\n  Approvals:")
        for record in budget["approvals"]:
            typer.echo(f"    {record['decided_at']}: {record['decision']} by {record['approver']}")


@budget_app.command("list")
def budget_list(
    project_id: Annotated[
        Optional[str],
        typer.Option("--project", help="Filter by project ID"),
    ] = None,
    status: Annotated[
        Optional[str],
        typer.Option("--status", help="Filter by status (draft, pending, approved, rejected)"),
    ] = None,
    db: DbOption = None,
) -> None:
    """List budgets"""
    ledger = get_ledger(db)
    budgets = ledger.list_budgets(project_id=project_id, status=status)

    if not budgets:
        typer.echo("No budgets")
        return

    typer.echo(f"Budgets ({len(budgets)}):")
    for budget in budgets:
        typer.echo(
            f"  {budget['budget_id']}: {budget['code']} [{budget['status']}] - "
            f"{budget['used_amount']} / {budget['amount']}"
        )


@budget_app.command("charges")
def budget_charges(
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    db: DbOption = None,
) -> None:
    """Show every movement of a budget's used amount"""
    ledger = get_ledger(db)
    charges = ledger.get_budget_charges(budget_id)

    typer.echo(f"Charges for budget {budget_id}: {len(charges)}")
    for charge in charges:
        typer.echo(
            f"  {charge['charged_at']}: {charge['delta']} ({charge['reason']}) → {charge['used_amount']}"
        )


# Cost commands


@cost_app.command("record")
def cost_record(
    data: DataOption,
    operator: OperatorOption,
    attach: AttachOption = None,
    db: DbOption = None,
    command_id: CommandIdOption = None,
) -> None:
    """Record a cost entry (charges its budget)"""
    ledger = get_ledger(db)
    cost = run(
        lambda: ledger.record_cost(
            parse_payload(data), operator, read_uploads(attach), command_id
        )
    )

    typer.echo(f"✓ Recorded cost: {cost['cost_id']}")
    typer.echo(f"  Code: {cost['code']}")
    typer.echo(f"  Amount: {cost['amount']}")
    if cost["budget_id"]:
        typer.echo(f"  Budget: {cost['budget_id']}")


@cost_app.command("update")
def cost_update(
    cost_id: Annotated[str, typer.Option("--id", help="Cost ID")],
    data: DataOption,
    operator: OperatorOption,
    attach: AttachOption = None,
    db: DbOption = None,
) -> None:
    """Amend a cost entry (rebalances its budget)"""
    ledger = get_ledger(db)
    cost = run(
        lambda: ledger.update_cost(cost_id, parse_payload(data), operator, read_uploads(attach))
    )

    typer.echo(f"✓ Updated cost: {cost['cost_id']}")
    typer.echo(f"  Amount: {cost['amount']}")


@cost_app.command("delete")
def cost_delete(
    cost_id: Annotated[str, typer.Option("--id", help="Cost ID")],
    operator: OperatorOption,
    db: DbOption = None,
) -> None:
    """Delete a cost entry (reverses its charge)"""
    ledger = get_ledger(db)
    run(lambda: ledger.delete_cost(cost_id, operator))

    typer.echo(f"✓ Deleted cost: {cost_id}")


@cost_app.command("show")
def cost_show(
    cost_id: Annotated[str, typer.Option("--id", help="Cost ID")],
    db: DbOption = None,
) -> None:
    """Show cost entry (JSON)"""
    ledger = get_ledger(db)
    echo_json(run(lambda: ledger.get_cost(cost_id)))


@cost_app.command("list")
def cost_list(
    project_id: Annotated[Optional[str], typer.Option("--project", help="Filter by project ID")] = None,
    budget_id: Annotated[Optional[str], typer.Option("--budget", help="Filter by budget ID")] = None,
    db: DbOption = None,
) -> None:
    """List cost entries"""
    ledger = get_ledger(db)
    costs = ledger.list_costs(project_id=project_id, budget_id=budget_id)

    if not costs:
        typer.echo("No costs")
        return

    typer.echo(f"Costs ({len(costs)}):")
    for cost in costs:
        typer.echo(f"  {cost['cost_id']}: {cost['code']} {cost['date']} [{cost['type']}] - {cost['amount']}")


# Invoice commands


@invoice_app.command("create")
def invoice_create(
    data: DataOption,
    operator: OperatorOption,
    attach: AttachOption = None,
    db: DbOption = None,
    command_id: CommandIdOption = None,
) -> None:
    """Register a supplier invoice"""
    ledger = get_ledger(db)
    invoice = run(
        lambda: ledger.create_invoice(
            parse_payload(data), operator, read_uploads(attach), command_id
        )
    )

    typer.echo(f"✓ Created invoice: {invoice['invoice_id']}")
    typer.echo(f"  Number: {invoice['number']}")
    typer.echo(f"  Total: {invoice['total_amount']} (tax {invoice['tax_amount']})")
    typer.echo(f"  Status: {invoice['status']}")


@invoice_app.command("update")
def invoice_update(
    invoice_id: Annotated[str, typer.Option("--id", help="Invoice ID")],
    data: DataOption,
    operator: OperatorOption,
    attach: AttachOption = None,
    db: DbOption = None,
) -> None:
    """Amend a pending invoice"""
    ledger = get_ledger(db)
    invoice = run(
        lambda: ledger.update_invoice(
            invoice_id, parse_payload(data), operator, read_uploads(attach)
        )
    )

    typer.echo(f"✓ Updated invoice: {invoice['invoice_id']}")
    typer.echo(f"  Total: {invoice['total_amount']} (tax {invoice['tax_amount']})")


@invoice_app.command("verify")
def invoice_verify(
    invoice_id: Annotated[str, typer.Option("--id", help="Invoice ID")],
    operator: OperatorOption,
    db: DbOption = None,
) -> None:
    """Verify a pending invoice with the invoice registry"""
    ledger = get_ledger(db)
    invoice = run(lambda: ledger.verify_invoice(invoice_id, operator))

    typer.echo(f"✓ Verified invoice: {invoice['invoice_id']}")
    typer.echo(f"  Status: {invoice['status']}")


@invoice_app.command("cancel")
def invoice_cancel(
    invoice_id: Annotated[str, typer.Option("--id", help="Invoice ID")],
    reason: Annotated[str, typer.Option("--reason", help="Cancellation reason")],
    operator: OperatorOption,
    db: DbOption = None,
) -> None:
    """Cancel an invoice"""
    ledger = get_ledger(db)
    invoice = run(lambda: ledger.cancel_invoice(invoice_id, reason, operator))

    typer.echo(f"✓ Cancelled invoice: {invoice['invoice_id']}")
    typer.echo(f"  Status: {invoice['status']}")


@invoice_app.command("show")
def invoice_show(
    invoice_id: Annotated[str, typer.Option("--id", help="Invoice ID")],
    db: DbOption = None,
) -> None:
    """Show invoice (JSON)"""
    ledger = get_ledger(db)
    echo_json(run(lambda: ledger.get_invoice(invoice_id)))


@invoice_app.command("list")
def invoice_list(
    project_id: Annotated[Optional[str], typer.Option("--project", help="Filter by project ID")] = None,
    supplier_id: Annotated[Optional[str], typer.Option("--supplier", help="Filter by supplier ID")] = None,
    status: Annotated[Optional[str], typer.Option("--status", help="Filter by status")] = None,
    db: DbOption = None,
) -> None:
    """List invoices"""
    ledger = get_ledger(db)
    invoices = ledger.list_invoices(project_id=project_id, supplier_id=supplier_id, status=status)

    if not invoices:
        typer.echo("No invoices")
        return

    typer.echo(f"Invoices ({len(invoices)}):")
    for invoice in invoices:
        typer.echo(
            f"  {invoice['invoice_id']}: {invoice['number']} [{invoice['status']}] - {invoice['total_amount']}"
        )


# Payment commands


@payment_app.command("create")
def payment_create(
    data: DataOption,
    operator: OperatorOption,
    attach: AttachOption = None,
    db: DbOption = None,
    command_id: CommandIdOption = None,
) -> None:
    """Request a payment backed by verified invoices"""
    ledger = get_ledger(db)
    payment = run(
        lambda: ledger.create_payment(
            parse_payload(data), operator, read_uploads(attach), command_id
        )
    )

    typer.echo(f"✓ Created payment: {payment['payment_id']}")
    typer.echo(f"  Code: {payment['code']}")
    typer.echo(f"  Amount: {payment['amount']}")
    typer.echo(f"  Invoices: {len(payment['invoice_ids'])}")
    typer.echo(f"  Status: {payment['status']}")


@payment_app.command("update")
def payment_update(
    payment_id: Annotated[str, typer.Option("--id", help="Payment ID")],
    data: DataOption,
    operator: OperatorOption,
    attach: AttachOption = None,
    db: DbOption = None,
) -> None:
    """Amend a pending payment"""
    ledger = get_ledger(db)
    payment = run(
        lambda: ledger.update_payment(
            payment_id, parse_payload(data), operator, read_uploads(attach)
        )
    )

    typer.echo(f"✓ Updated payment: {payment['payment_id']}")
    typer.echo(f"  Amount: {payment['amount']}")


@payment_app.command("approve")
def payment_approve(
    payment_id: Annotated[str, typer.Option("--id", help="Payment ID")],
    decision: Annotated[str, typer.Option("--decision", help="approved or rejected")],
    operator: OperatorOption,
    comments: Annotated[str, typer.Option("--comments", help="Reviewer comments")] = "",
    db: DbOption = None,
) -> None:
    """Approve or reject a pending payment"""
    ledger = get_ledger(db)
    payment = run(lambda: ledger.approve_payment(payment_id, decision, operator, comments))

    typer.echo(f"✓ Decided payment: {payment['payment_id']}")
    typer.echo(f"  Status: {payment['status']}")


@payment_app.command("resubmit")
def payment_resubmit(
    payment_id: Annotated[str, typer.Option("--id", help="Payment ID")],
    operator: OperatorOption,
    data: Annotated[str, typer.Option("--data", help="Corrections (JSON object)")] = "{}",
    attach: AttachOption = None,
    db: DbOption = None,
) -> None:
    """Send a rejected payment back to review"""
    ledger = get_ledger(db)
    payment = run(
        lambda: ledger.resubmit_payment(
            payment_id, parse_payload(data), operator, read_uploads(attach)
        )
    )

    typer.echo(f"✓ Resubmitted payment: {payment['payment_id']}")
    typer.echo(f"  Status: {payment['status']}")


@payment_app.command("confirm")
def payment_confirm(
    payment_id: Annotated[str, typer.Option("--id", help="Payment ID")],
    operator: OperatorOption,
    actual_date: Annotated[
        Optional[str],
        typer.Option("--actual-date", help="Payout date (YYYY-MM-DD, default today)"),
    ] = None,
    db: DbOption = None,
    command_id: CommandIdOption = None,
) -> None:
    """Mark an approved payment as paid"""
    ledger = get_ledger(db)
    payment = run(lambda: ledger.confirm_payment(payment_id, operator, actual_date, command_id))

    typer.echo(f"✓ Paid payment: {payment['payment_id']}")
    typer.echo(f"  Paid on: {payment['actual_date']}")
    typer.echo(f"  Invoices reimbursed: {len(payment['invoice_ids'])}")


@payment_app.command("show")
def payment_show(
    payment_id: Annotated[str, typer.Option("--id", help="Payment ID")],
    db: DbOption = None,
) -> None:
    """Show payment (JSON)"""
    ledger = get_ledger(db)
    echo_json(run(lambda: ledger.get_payment(payment_id)))


@payment_app.command("list")
def payment_list(
    project_id: Annotated[Optional[str], typer.Option("--project", help="Filter by project ID")] = None,
    payee_id: Annotated[Optional[str], typer.Option("--payee", help="Filter by payee ID")] = None,
    status: Annotated[Optional[str], typer.Option("--status", help="Filter by status")] = None,
    db: DbOption = None,
) -> None:
    """List payments"""
    ledger = get_ledger(db)
    payments = ledger.list_payments(project_id=project_id, payee_id=payee_id, status=status)

    if not payments:
        typer.echo("No payments")
        return

    typer.echo(f"Payments ({len(payments)}):")
    for payment in payments:
        typer.echo(
            f"  {payment['payment_id']}: {payment['code']} [{payment['status']}] - {payment['amount']}"
        )


# Report commands

ProjectFilter = Annotated[Optional[str], typer.Option("--project", help="Filter by project ID")]
StartDate = Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD, inclusive)")]
EndDate = Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD, inclusive)")]


@report_app.command("cost-stats")
def report_cost_stats(project_id: ProjectFilter = None, db: DbOption = None) -> None:
    """Cost totals per type"""
    ledger = get_ledger(db)
    echo_json(ledger.cost_stats(project_id))


@report_app.command("cost-trend")
def report_cost_trend(
    period: Annotated[str, typer.Option("--period", help="day, month or year")] = "month",
    project_id: ProjectFilter = None,
    cost_type: Annotated[Optional[str], typer.Option("--type", help="Filter by cost type")] = None,
    start: StartDate = None,
    end: EndDate = None,
    db: DbOption = None,
) -> None:
    """Cost totals per period"""
    ledger = get_ledger(db)
    echo_json(run(lambda: ledger.cost_trend(period, project_id, cost_type, start, end)))


@report_app.command("invoice-stats")
def report_invoice_stats(
    project_id: ProjectFilter = None,
    supplier_id: Annotated[Optional[str], typer.Option("--supplier", help="Filter by supplier ID")] = None,
    start: StartDate = None,
    end: EndDate = None,
    db: DbOption = None,
) -> None:
    """Verified and reimbursed invoice totals per type"""
    ledger = get_ledger(db)
    echo_json(run(lambda: ledger.invoice_stats(project_id, supplier_id, start, end)))


@report_app.command("invoice-summary")
def report_invoice_summary(
    group_by: Annotated[str, typer.Option("--group-by", help="day, month or year")] = "month",
    start: StartDate = None,
    end: EndDate = None,
    db: DbOption = None,
) -> None:
    """Invoice totals per period, split by type"""
    ledger = get_ledger(db)
    echo_json(run(lambda: ledger.invoice_summary(group_by, start, end)))


@report_app.command("pending-invoices")
def report_pending_invoices(
    days: Annotated[Optional[int], typer.Option("--days", help="Look-back window in days")] = None,
    supplier_id: Annotated[Optional[str], typer.Option("--supplier", help="Filter by supplier ID")] = None,
    db: DbOption = None,
) -> None:
    """Recently issued invoices still awaiting verification"""
    ledger = get_ledger(db)
    echo_json(ledger.pending_invoices(days, supplier_id))


@report_app.command("payment-stats")
def report_payment_stats(
    project_id: ProjectFilter = None,
    start: StartDate = None,
    end: EndDate = None,
    db: DbOption = None,
) -> None:
    """Paid payment totals per type"""
    ledger = get_ledger(db)
    echo_json(run(lambda: ledger.payment_stats(project_id, start, end)))


@report_app.command("payment-plan")
def report_payment_plan(
    start: StartDate = None,
    end: EndDate = None,
    status: Annotated[
        Optional[list[str]],
        typer.Option("--status", help="Statuses to include (repeatable, default pending+approved)"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Upcoming payments grouped by planned date"""
    ledger = get_ledger(db)
    echo_json(run(lambda: ledger.payment_plan(start, end, status)))


@report_app.command("budget-stats")
def report_budget_stats(
    project_id: Annotated[str, typer.Option("--project", help="Project ID")],
    db: DbOption = None,
) -> None:
    """Approved budget totals per type for a project"""
    ledger = get_ledger(db)
    echo_json(ledger.budget_stats(project_id))


@report_app.command("budget-report")
def report_budget_report(
    project_id: ProjectFilter = None,
    fiscal_year: Annotated[Optional[int], typer.Option("--fiscal-year", help="Fiscal year")] = None,
    budget_type: Annotated[Optional[str], typer.Option("--type", help="Budget type")] = None,
    db: DbOption = None,
) -> None:
    """Budget execution report"""
    ledger = get_ledger(db)
    echo_json(ledger.budget_report(project_id, fiscal_year, budget_type))


def main() -> None:
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()

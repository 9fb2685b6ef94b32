"""
CLI Integration Tests

Drives the site-ledger commands end-to-end against a temporary database.
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from site_ledger.cli.main import app
from tests.helpers import (
    BLACKLISTED_SUPPLIER_ID,
    SUPPLIER_ID,
    budget_payload,
    cost_payload,
    invoice_payload,
)

runner = CliRunner()


@pytest.fixture
def env(tmp_path: Path) -> dict[str, str]:
    """Environment pointing the CLI at a fresh database and supplier file"""
    suppliers = tmp_path / "suppliers.json"
    suppliers.write_text(
        json.dumps(
            [
                {"supplier_id": SUPPLIER_ID, "name": "Acme Steel"},
                {"supplier_id": BLACKLISTED_SUPPLIER_ID, "name": "Shady", "is_blacklisted": True},
            ]
        ),
        encoding="utf-8",
    )
    values = {
        "SITE_LEDGER_DB": str(tmp_path / "cli.db"),
        "SITE_LEDGER_SUPPLIERS": str(suppliers),
        "SITE_LEDGER_BLOB_DIR": str(tmp_path / "blobs"),
    }
    result = runner.invoke(app, ["init"], env=values)
    assert result.exit_code == 0
    assert "Initialized ledger database" in result.stdout
    return values


def invoke(env: dict[str, str], *args: str):
    return runner.invoke(app, list(args), env=env)


def created_id(output: str, label: str) -> str:
    return output.split(f"{label}: ")[1].split("\n")[0].strip()


def approved_budget_id(env: dict[str, str], code: str = "B-CLI-1") -> str:
    result = invoke(
        env, "budget", "create", "--data", json.dumps(budget_payload(code)), "--operator", "alice"
    )
    assert result.exit_code == 0, result.output
    budget_id = created_id(result.stdout, "Created budget")

    assert invoke(env, "budget", "submit", "--id", budget_id, "--operator", "alice").exit_code == 0
    result = invoke(
        env, "budget", "decide", "--id", budget_id, "--decision", "approved", "--operator", "carol"
    )
    assert result.exit_code == 0
    assert "Status: approved" in result.stdout
    return budget_id


def test_init_refuses_existing_database(env: dict[str, str]) -> None:
    result = invoke(env, "init")
    assert result.exit_code == 1


def test_missing_database(tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["budget", "list"], env={"SITE_LEDGER_DB": str(tmp_path / "nope.db")}
    )
    assert result.exit_code == 1
    assert "Database not found" in result.output


def test_budget_and_cost_flow(env: dict[str, str]) -> None:
    budget_id = approved_budget_id(env)

    result = invoke(
        env,
        "cost",
        "record",
        "--data",
        json.dumps(cost_payload(budget_id, "400")),
        "--operator",
        "bob",
    )
    assert result.exit_code == 0, result.output
    cost_id = created_id(result.stdout, "Recorded cost")

    result = invoke(env, "budget", "show", "--id", budget_id, "--json")
    assert result.exit_code == 0
    budget = json.loads(result.stdout)
    assert budget["used_amount"] == "400.00"
    assert budget["remaining_amount"] == "600.00"

    result = invoke(env, "budget", "charges", "--id", budget_id)
    assert "cost_recorded" in result.stdout

    result = invoke(env, "cost", "delete", "--id", cost_id, "--operator", "bob")
    assert result.exit_code == 0
    assert f"Deleted cost: {cost_id}" in result.stdout

    result = invoke(env, "budget", "show", "--id", budget_id, "--json")
    assert json.loads(result.stdout)["used_amount"] == "0.00"
    assert invoke(env, "cost", "list").stdout.strip() == "No costs"


def test_overspend_prints_error_and_exits_1(env: dict[str, str]) -> None:
    budget_id = approved_budget_id(env)

    result = invoke(
        env,
        "cost",
        "record",
        "--data",
        json.dumps(cost_payload(budget_id, "1500")),
        "--operator",
        "bob",
    )

    assert result.exit_code == 1
    assert "BUDGET_EXCEEDED" in result.output
    assert "state_conflict" in result.output


def test_cost_with_attachment(env: dict[str, str], tmp_path: Path) -> None:
    budget_id = approved_budget_id(env)
    receipt = tmp_path / "receipt.pdf"
    receipt.write_bytes(b"%PDF-1.4")

    result = invoke(
        env,
        "cost",
        "record",
        "--data",
        json.dumps(cost_payload(budget_id, "50")),
        "--operator",
        "bob",
        "--attach",
        str(receipt),
    )
    assert result.exit_code == 0, result.output
    cost_id = created_id(result.stdout, "Recorded cost")

    cost = json.loads(invoke(env, "cost", "show", "--id", cost_id).stdout)
    assert cost["attachments"][0]["filename"] == "receipt.pdf"
    assert cost["attachments"][0]["content_type"] == "application/pdf"


def test_direct_charge(env: dict[str, str]) -> None:
    budget_id = approved_budget_id(env)

    result = invoke(
        env, "budget", "charge", "--id", budget_id, "--delta", "120.5", "--operator", "carol"
    )

    assert result.exit_code == 0, result.output
    assert "Used: 120.50 of 1000.00" in result.stdout


def test_bad_json_exits_2(env: dict[str, str]) -> None:
    result = invoke(env, "budget", "create", "--data", "{not json", "--operator", "alice")
    assert result.exit_code == 2

    result = invoke(env, "budget", "create", "--data", "[1, 2]", "--operator", "alice")
    assert result.exit_code == 2


def test_validation_error_lists_fields(env: dict[str, str]) -> None:
    result = invoke(
        env,
        "budget",
        "create",
        "--data",
        json.dumps(budget_payload(fiscal_year="next year")),
        "--operator",
        "alice",
    )
    assert result.exit_code == 1
    assert "VALIDATION_ERROR" in result.output
    assert "fiscal_year" in result.output


def test_invoice_commands(env: dict[str, str]) -> None:
    result = invoke(
        env, "invoice", "create", "--data", json.dumps(invoice_payload()), "--operator", "bob"
    )
    assert result.exit_code == 0, result.output
    invoice_id = created_id(result.stdout, "Created invoice")

    # No registry configured: verification fails and the invoice stays pending
    result = invoke(env, "invoice", "verify", "--id", invoice_id, "--operator", "bob")
    assert result.exit_code == 1
    assert "VERIFICATION_FAILED" in result.output

    result = invoke(env, "invoice", "list", "--status", "pending")
    assert invoice_id in result.stdout

    result = invoke(
        env, "invoice", "cancel", "--id", invoice_id, "--reason", "typo", "--operator", "bob"
    )
    assert result.exit_code == 0
    assert f"Cancelled invoice: {invoice_id}" in result.stdout


def test_blacklisted_supplier_via_cli(env: dict[str, str]) -> None:
    result = invoke(
        env,
        "invoice",
        "create",
        "--data",
        json.dumps(invoice_payload(supplier_id=BLACKLISTED_SUPPLIER_ID)),
        "--operator",
        "bob",
    )
    assert result.exit_code == 1
    assert "SUPPLIER_BLACKLISTED" in result.output


def test_reports(env: dict[str, str]) -> None:
    budget_id = approved_budget_id(env)
    invoke(
        env,
        "cost",
        "record",
        "--data",
        json.dumps(cost_payload(budget_id, "400")),
        "--operator",
        "bob",
    )

    result = invoke(env, "report", "budget-report")
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["summary"]["total_used"] == "400.00"

    result = invoke(env, "report", "cost-stats")
    assert json.loads(result.stdout)[0]["type"] == "material"

    result = invoke(env, "report", "cost-trend", "--period", "week")
    assert result.exit_code == 1


def test_health_command(env: dict[str, str]) -> None:
    approved_budget_id(env)

    result = invoke(env, "health", "--json")

    assert result.exit_code == 0
    summary = json.loads(result.stdout)
    assert summary["approved_budgets"] == 1

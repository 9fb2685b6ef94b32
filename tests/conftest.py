"""
Pytest configuration and shared fixtures

Every test gets its own SQLite file, a frozen clock and in-memory
collaborators (supplier directory, invoice registry, blob store), so
ledger tests are deterministic and never touch the network.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from site_ledger.budget.handlers import BudgetCommandHandlers
from site_ledger.cost.handlers import CostCommandHandlers
from site_ledger.integrations.blob_store import LocalBlobStore
from site_ledger.integrations.supplier_directory import StaticSupplierDirectory, SupplierInfo
from site_ledger.invoice.handlers import InvoiceCommandHandlers
from site_ledger.kernel.event_store import SQLiteEventStore
from site_ledger.kernel.policy import LedgerPolicy
from site_ledger.kernel.repository import StreamRepository
from site_ledger.kernel.time import TestTimeProvider
from site_ledger.ledger import Ledger
from site_ledger.payment.handlers import PaymentCommandHandlers
from tests.helpers import (
    BLACKLISTED_SUPPLIER_ID,
    OTHER_SUPPLIER_ID,
    SUPPLIER_ID,
    FakeInvoiceValidator,
    budget_payload,
    invoice_payload,
)


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    """Path of a fresh database file inside the test's temp dir"""
    return tmp_path / "ledger.db"


@pytest.fixture
def event_store(temp_db: Path) -> SQLiteEventStore:
    """Provide a fresh event store for each test"""
    return SQLiteEventStore(temp_db)


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-01-15 12:00:00 UTC
    """
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy() -> LedgerPolicy:
    return LedgerPolicy()


@pytest.fixture
def repository(event_store: SQLiteEventStore, policy: LedgerPolicy) -> StreamRepository:
    return StreamRepository(event_store, policy)


@pytest.fixture
def budget_handlers(test_time: TestTimeProvider, policy: LedgerPolicy) -> BudgetCommandHandlers:
    return BudgetCommandHandlers(test_time, policy)


@pytest.fixture
def cost_handlers(test_time: TestTimeProvider, policy: LedgerPolicy) -> CostCommandHandlers:
    return CostCommandHandlers(test_time, policy)


@pytest.fixture
def invoice_handlers(test_time: TestTimeProvider, policy: LedgerPolicy) -> InvoiceCommandHandlers:
    return InvoiceCommandHandlers(test_time, policy)


@pytest.fixture
def payment_handlers(test_time: TestTimeProvider, policy: LedgerPolicy) -> PaymentCommandHandlers:
    return PaymentCommandHandlers(test_time, policy)


@pytest.fixture
def suppliers() -> StaticSupplierDirectory:
    return StaticSupplierDirectory(
        [
            SupplierInfo(supplier_id=SUPPLIER_ID, name="Acme Steel"),
            SupplierInfo(supplier_id=OTHER_SUPPLIER_ID, name="Beta Concrete"),
            SupplierInfo(supplier_id=BLACKLISTED_SUPPLIER_ID, name="Shady", is_blacklisted=True),
        ]
    )


@pytest.fixture
def validator() -> FakeInvoiceValidator:
    return FakeInvoiceValidator()


@pytest.fixture
def blob_store(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture
def ledger(
    temp_db: Path,
    test_time: TestTimeProvider,
    suppliers: StaticSupplierDirectory,
    validator: FakeInvoiceValidator,
    blob_store: LocalBlobStore,
) -> Ledger:
    """Ledger wired with the fake collaborators above"""
    return Ledger(
        temp_db,
        time_provider=test_time,
        supplier_directory=suppliers,
        invoice_validator=validator,
        blob_store=blob_store,
    )


# =============================================================================
# Scenario factories
# =============================================================================
@pytest.fixture
def approved_budget(ledger: Ledger) -> Callable[..., dict]:
    """Factory: create, submit and approve a budget; returns its snapshot"""

    def make(code: str = "B-2025-001", amount: str = "1000.00", **overrides: Any) -> dict:
        budget = ledger.create_budget(budget_payload(code, amount, **overrides), "alice")
        ledger.submit_budget(budget["budget_id"], "alice")
        return ledger.decide_budget(budget["budget_id"], "approved", "carol")

    return make


@pytest.fixture
def verified_invoice(ledger: Ledger) -> Callable[..., dict]:
    """Factory: register and verify an invoice; returns its snapshot"""

    def make(number: str = "INV-0001", amount: str = "1000", **overrides: Any) -> dict:
        invoice = ledger.create_invoice(invoice_payload(number, amount, **overrides), "bob")
        return ledger.verify_invoice(invoice["invoice_id"], "bob")

    return make

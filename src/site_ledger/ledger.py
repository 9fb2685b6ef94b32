"""
Ledger - Main façade class

This is the primary interface of the Site Ledger financial core. Every
operation takes a plain payload plus the operator's id and returns a
JSON-serializable snapshot of the entity it changed, or raises a tagged
LedgerError. Event sourcing, read models and retries stay behind it.

Example:
    >>> from site_ledger import Ledger
    >>> ledger = Ledger("ledger.db", supplier_directory=suppliers)
    >>> budget = ledger.create_budget({...}, operator_id="alice")
    >>> ledger.submit_budget(budget["budget_id"], operator_id="alice")
    >>> ledger.decide_budget(budget["budget_id"], "approved", operator_id="carol")
    >>> cost = ledger.record_cost({"budget_id": budget["budget_id"], ...}, operator_id="bob")
    >>> ledger.get_budget(budget["budget_id"])["used_amount"]
    '400.00'
"""

import copy
import datetime
import threading
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from site_ledger.balance.engine import BalanceEngine
from site_ledger.budget.commands import (
    ChargeBudget,
    CreateBudget,
    DecideBudget,
    ReopenBudget,
    SubmitBudget,
    UpdateBudget,
)
from site_ledger.budget.handlers import BudgetCommandHandlers, budget_code_stream
from site_ledger.budget.models import BudgetStatus
from site_ledger.budget.projections import BudgetChargeLog, BudgetRegistry
from site_ledger.cost.commands import DeleteCost, RecordCost, UpdateCost
from site_ledger.cost.handlers import CostCommandHandlers
from site_ledger.cost.projections import CostRegistry
from site_ledger.integrations.blob_store import AttachmentUpload, BlobStore
from site_ledger.integrations.invoice_registry import InvoiceValidator
from site_ledger.integrations.supplier_directory import (
    StaticSupplierDirectory,
    SupplierDirectory,
)
from site_ledger.invoice.commands import (
    CancelInvoice,
    CreateInvoice,
    UpdateInvoice,
    VerifyInvoice,
)
from site_ledger.invoice.handlers import InvoiceCommandHandlers
from site_ledger.invoice.models import InvoiceStatus
from site_ledger.invoice.projections import InvoiceRegistry
from site_ledger.invoice.verification import InvoiceVerificationService
from site_ledger.kernel.errors import (
    BudgetNotFound,
    CostNotFound,
    InvoiceNotFound,
    NotFoundError,
    PaymentNotFound,
    ValidationError,
)
from site_ledger.kernel.event_store import SQLiteEventStore
from site_ledger.kernel.events import Event
from site_ledger.kernel.ids import generate_id
from site_ledger.kernel.logging import LogOperation, get_logger
from site_ledger.kernel.metrics import read_model_rebuild_duration_seconds, track_command_duration
from site_ledger.kernel.policy import LedgerPolicy
from site_ledger.kernel.repository import StreamRepository
from site_ledger.kernel.retry import retry_read_model_rebuild
from site_ledger.kernel.time import RealTimeProvider, TimeProvider
from site_ledger.payment.commands import (
    ConfirmPayment,
    CreatePayment,
    DecidePayment,
    ResubmitPayment,
    UpdatePayment,
)
from site_ledger.payment.handlers import PaymentCommandHandlers
from site_ledger.payment.models import PaymentStatus
from site_ledger.payment.projections import PaymentRegistry
from site_ledger.payment.settlement import PaymentSettlementEngine
from site_ledger.reporting import aggregations

logger = get_logger(__name__)

C = TypeVar("C", bound=BaseModel)

DateLike = datetime.date | str | None


def _as_date(value: DateLike, field: str) -> datetime.date | None:
    if value is None or isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f"{field} must be an ISO date, got {value!r}") from e


def _as_period(value: str | aggregations.ReportPeriod) -> aggregations.ReportPeriod:
    try:
        return aggregations.ReportPeriod(value)
    except ValueError as e:
        raise ValidationError(f"period must be day, month or year, got {value!r}") from e


class Ledger:
    """
    Site Ledger main façade

    Provides a unified API for:
    - Budget lifecycle and consumption
    - Cost entries (through the balance engine)
    - Invoice registration and verification
    - Payment approval and settlement
    - Reporting rollups
    """

    def __init__(
        self,
        sqlite_path: str | Path,
        policy: LedgerPolicy | None = None,
        time_provider: TimeProvider | None = None,
        blob_store: BlobStore | None = None,
        invoice_validator: InvoiceValidator | None = None,
        supplier_directory: SupplierDirectory | None = None,
    ) -> None:
        """
        Initialize a ledger on a SQLite database

        Args:
            sqlite_path: Path to SQLite database (created if missing)
            policy: Ledger policy (defaults if None)
            time_provider: Time provider (real time if None)
            blob_store: Storage for attachments and invoice images
            invoice_validator: External invoice registry
            supplier_directory: Supplier lookup (empty directory if None)
        """
        self.sqlite_path = Path(sqlite_path)
        self.policy = policy or LedgerPolicy()
        self.time_provider = time_provider or RealTimeProvider()
        self.supplier_directory = supplier_directory or StaticSupplierDirectory()

        # Infrastructure
        self.event_store = SQLiteEventStore(self.sqlite_path)
        self.repository = StreamRepository(self.event_store, self.policy)

        # Handlers and engines
        self.budget_handlers = BudgetCommandHandlers(self.time_provider, self.policy)
        self.cost_handlers = CostCommandHandlers(self.time_provider, self.policy)
        self.invoice_handlers = InvoiceCommandHandlers(self.time_provider, self.policy)
        self.payment_handlers = PaymentCommandHandlers(self.time_provider, self.policy)
        self.balance_engine = BalanceEngine(
            self.repository, self.budget_handlers, self.cost_handlers, blob_store
        )
        self.invoice_service = InvoiceVerificationService(
            self.repository,
            self.invoice_handlers,
            self.supplier_directory,
            invoice_validator,
            blob_store,
        )
        self.settlement_engine = PaymentSettlementEngine(
            self.repository,
            self.payment_handlers,
            self.invoice_handlers,
            self.supplier_directory,
            blob_store,
        )

        # Read models
        self._lock = threading.Lock()
        self.budget_registry = BudgetRegistry()
        self.budget_charge_log = BudgetChargeLog()
        self.cost_registry = CostRegistry()
        self.invoice_registry = InvoiceRegistry()
        self.payment_registry = PaymentRegistry()
        self.rebuild_read_models()

    # ========== Read model maintenance ==========

    def _read_models(self) -> dict[str, tuple[Any, ...]]:
        return {
            "budget": (self.budget_registry, self.budget_charge_log),
            "cost": (self.cost_registry,),
            "invoice": (self.invoice_registry,),
            "payment": (self.payment_registry,),
        }

    @retry_read_model_rebuild()
    def rebuild_read_models(self) -> None:
        """Rebuild every read model from the full event log"""
        start = time.perf_counter()
        events = self.event_store.load_all_events()

        budget_registry = BudgetRegistry.from_events(events)
        budget_charge_log = BudgetChargeLog()
        for event in events:
            budget_charge_log.apply_event(event)
        cost_registry = CostRegistry.from_events(events)
        invoice_registry = InvoiceRegistry.from_events(events)
        payment_registry = PaymentRegistry.from_events(events)

        with self._lock:
            self.budget_registry = budget_registry
            self.budget_charge_log = budget_charge_log
            self.cost_registry = cost_registry
            self.invoice_registry = invoice_registry
            self.payment_registry = payment_registry

        duration = time.perf_counter() - start
        read_model_rebuild_duration_seconds.observe(duration)
        logger.info(
            "Read models rebuilt",
            event_count=len(events),
            duration_ms=round(duration * 1000, 2),
        )

    def _refresh(self, events: list[Event]) -> None:
        """Replay every stream touched by a commit into its read models"""
        touched = dict.fromkeys((event.stream_type, event.stream_id) for event in events)
        with self._lock:
            read_models = self._read_models()
            for stream_type, stream_id in touched:
                models = read_models.get(stream_type)
                if not models:
                    continue
                stream = self.event_store.load_stream(stream_id)
                for model in models:
                    model.replay(stream_id, stream)

    def _snapshot(
        self, registry: Any, not_found: Callable[[str], NotFoundError], entity_id: str
    ) -> dict[str, Any]:
        with self._lock:
            found = registry.get(entity_id)
            if found is None:
                raise not_found(entity_id)
            return copy.deepcopy(found)

    def _rows(self, rows: Callable[[], list[dict]]) -> list[dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(rows())

    # ========== Command plumbing ==========

    @staticmethod
    def _parse(command_cls: type[C], payload: Mapping[str, Any]) -> C:
        try:
            return command_cls.model_validate(dict(payload))
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid {command_cls.__name__} payload",
                errors=[
                    {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                    for err in e.errors()
                ],
            ) from e

    def _execute(
        self,
        operation: str,
        command_cls: type[C],
        payload: Mapping[str, Any],
        operator_id: str,
        run: Callable[[C, str], list[Event]],
        command_id: str | None = None,
    ) -> tuple[C, list[Event]]:
        """Parse, run and refresh read models, logged as one operation"""
        command_id = command_id or generate_id()
        with LogOperation(logger, operation, operator_id=operator_id, command_id=command_id):
            command = self._parse(command_cls, payload)
            events = run(command, command_id)
            self._refresh(events)
            return command, events

    @staticmethod
    def _created_id(events: list[Event], stream_type: str) -> str:
        return next(e.stream_id for e in events if e.stream_type == stream_type)

    # ========== Budgets ==========

    @track_command_duration("create_budget")
    def create_budget(
        self, payload: Mapping[str, Any], operator_id: str, command_id: str | None = None
    ) -> dict[str, Any]:
        """
        Create a draft budget

        Raises:
            ValidationError, DuplicateBudgetCode, BudgetItemsMismatch
        """

        def run(command: CreateBudget, cid: str) -> list[Event]:
            return self.repository.commit(
                lambda: self.budget_handlers.handle_create_budget(
                    command,
                    cid,
                    operator_id,
                    self.repository.version(budget_code_stream(command.code)),
                ),
                cid,
            )

        _, events = self._execute("create_budget", CreateBudget, payload, operator_id, run, command_id)
        return self.get_budget(self._created_id(events, "budget"))

    def _budget_transition(
        self,
        operation: str,
        command_cls: type[C],
        payload: Mapping[str, Any],
        operator_id: str,
        handle: Callable[..., list[Event]],
        command_id: str | None,
    ) -> dict[str, Any]:
        def run(command: C, cid: str) -> list[Event]:
            return self.repository.commit(
                lambda: handle(
                    command,
                    cid,
                    operator_id,
                    self.repository.load_many(BudgetRegistry, [command.budget_id]),
                ),
                cid,
            )

        command, _ = self._execute(operation, command_cls, payload, operator_id, run, command_id)
        return self.get_budget(command.budget_id)

    @track_command_duration("update_budget")
    def update_budget(
        self,
        budget_id: str,
        payload: Mapping[str, Any],
        operator_id: str,
        command_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Revise a draft budget

        Raises:
            BudgetNotFound, BudgetNotEditable, BudgetItemsMismatch
        """
        return self._budget_transition(
            "update_budget",
            UpdateBudget,
            {**payload, "budget_id": budget_id},
            operator_id,
            self.budget_handlers.handle_update_budget,
            command_id,
        )

    @track_command_duration("submit_budget")
    def submit_budget(
        self, budget_id: str, operator_id: str, command_id: str | None = None
    ) -> dict[str, Any]:
        """Send a draft budget for approval (NotDraft otherwise)"""
        return self._budget_transition(
            "submit_budget",
            SubmitBudget,
            {"budget_id": budget_id},
            operator_id,
            self.budget_handlers.handle_submit_budget,
            command_id,
        )

    @track_command_duration("decide_budget")
    def decide_budget(
        self,
        budget_id: str,
        decision: str,
        operator_id: str,
        comments: str = "",
        command_id: str | None = None,
    ) -> dict[str, Any]:
        """Approve or reject a pending budget (NotPending otherwise)"""
        return self._budget_transition(
            "decide_budget",
            DecideBudget,
            {"budget_id": budget_id, "decision": decision, "comments": comments},
            operator_id,
            self.budget_handlers.handle_decide_budget,
            command_id,
        )

    @track_command_duration("reopen_budget")
    def reopen_budget(
        self, budget_id: str, operator_id: str, command_id: str | None = None
    ) -> dict[str, Any]:
        """Bring a rejected budget back to draft (NotRejected otherwise)"""
        return self._budget_transition(
            "reopen_budget",
            ReopenBudget,
            {"budget_id": budget_id},
            operator_id,
            self.budget_handlers.handle_reopen_budget,
            command_id,
        )

    @track_command_duration("charge_budget")
    def charge_budget(
        self,
        budget_id: str,
        delta: Any,
        operator_id: str,
        reason: str = "adjustment",
        command_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Adjust a budget's consumption directly

        Raises:
            BudgetNotFound, BudgetNotApproved, BudgetExceeded,
            InvariantViolation, ConcurrencyConflictError
        """
        command, _ = self._execute(
            "charge_budget",
            ChargeBudget,
            {"budget_id": budget_id, "delta": delta, "reason": reason},
            operator_id,
            lambda c, cid: self.balance_engine.charge_budget(c, cid, operator_id),
            command_id,
        )
        return self.get_budget(command.budget_id)

    def get_budget(self, budget_id: str) -> dict[str, Any]:
        return self._snapshot(self.budget_registry, BudgetNotFound, budget_id)

    def list_budgets(
        self, project_id: str | None = None, status: str | None = None
    ) -> list[dict[str, Any]]:
        def rows() -> list[dict]:
            budgets = self.budget_registry.list_all()
            return [
                b
                for b in budgets
                if (project_id is None or b["project_id"] == project_id)
                and (status is None or b["status"] == status)
            ]

        return self._rows(rows)

    def get_budget_charges(self, budget_id: str) -> list[dict[str, Any]]:
        """Every movement of a budget's used_amount, oldest first"""
        return self._rows(lambda: self.budget_charge_log.get_by_budget(budget_id))

    # ========== Costs ==========

    @track_command_duration("record_cost")
    def record_cost(
        self,
        payload: Mapping[str, Any],
        operator_id: str,
        uploads: list[AttachmentUpload] | None = None,
        command_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Record a cost entry, charging its budget in the same write

        Raises:
            ValidationError, BudgetNotFound, BudgetNotApproved,
            BudgetExceeded, ConcurrencyConflictError
        """
        _, events = self._execute(
            "record_cost",
            RecordCost,
            payload,
            operator_id,
            lambda c, cid: self.balance_engine.record_cost(c, cid, operator_id, uploads),
            command_id,
        )
        return self.get_cost(self._created_id(events, "cost"))

    @track_command_duration("update_cost")
    def update_cost(
        self,
        cost_id: str,
        payload: Mapping[str, Any],
        operator_id: str,
        uploads: list[AttachmentUpload] | None = None,
        command_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Amend a cost entry and rebalance its budget(s)

        Raises:
            CostNotFound, BudgetNotFound, BudgetNotApproved, BudgetExceeded,
            InvariantViolation, ConcurrencyConflictError
        """
        command, _ = self._execute(
            "update_cost",
            UpdateCost,
            {**payload, "cost_id": cost_id},
            operator_id,
            lambda c, cid: self.balance_engine.update_cost(c, cid, operator_id, uploads),
            command_id,
        )
        return self.get_cost(command.cost_id)

    @track_command_duration("delete_cost")
    def delete_cost(
        self, cost_id: str, operator_id: str, command_id: str | None = None
    ) -> dict[str, Any]:
        """
        Remove a cost entry and reverse its charge

        Returns:
            {"cost_id", "deleted": True}
        """
        self._execute(
            "delete_cost",
            DeleteCost,
            {"cost_id": cost_id},
            operator_id,
            lambda c, cid: self.balance_engine.delete_cost(c, cid, operator_id),
            command_id,
        )
        return {"cost_id": cost_id, "deleted": True}

    def get_cost(self, cost_id: str) -> dict[str, Any]:
        return self._snapshot(self.cost_registry, CostNotFound, cost_id)

    def list_costs(
        self, project_id: str | None = None, budget_id: str | None = None
    ) -> list[dict[str, Any]]:
        def rows() -> list[dict]:
            return [
                c
                for c in self.cost_registry.list_all()
                if (project_id is None or c["project_id"] == project_id)
                and (budget_id is None or c["budget_id"] == budget_id)
            ]

        return self._rows(rows)

    # ========== Invoices ==========

    @track_command_duration("create_invoice")
    def create_invoice(
        self,
        payload: Mapping[str, Any],
        operator_id: str,
        uploads: list[AttachmentUpload] | None = None,
        command_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Register a supplier invoice (status pending)

        Raises:
            ValidationError, SupplierNotFound, SupplierBlacklisted,
            DuplicateInvoiceNumber
        """
        _, events = self._execute(
            "create_invoice",
            CreateInvoice,
            payload,
            operator_id,
            lambda c, cid: self.invoice_service.create_invoice(c, cid, operator_id, uploads),
            command_id,
        )
        return self.get_invoice(self._created_id(events, "invoice"))

    @track_command_duration("update_invoice")
    def update_invoice(
        self,
        invoice_id: str,
        payload: Mapping[str, Any],
        operator_id: str,
        uploads: list[AttachmentUpload] | None = None,
        command_id: str | None = None,
    ) -> dict[str, Any]:
        """Amend a pending invoice (AlreadyProcessed otherwise)"""
        command, _ = self._execute(
            "update_invoice",
            UpdateInvoice,
            {**payload, "invoice_id": invoice_id},
            operator_id,
            lambda c, cid: self.invoice_service.update_invoice(c, cid, operator_id, uploads),
            command_id,
        )
        return self.get_invoice(command.invoice_id)

    @track_command_duration("verify_invoice")
    def verify_invoice(
        self, invoice_id: str, operator_id: str, command_id: str | None = None
    ) -> dict[str, Any]:
        """
        Verify a pending invoice with the registry

        Raises:
            InvoiceNotFound, AlreadyProcessed, VerificationFailed
        """
        command, _ = self._execute(
            "verify_invoice",
            VerifyInvoice,
            {"invoice_id": invoice_id},
            operator_id,
            lambda c, cid: self.invoice_service.verify_invoice(c, cid, operator_id),
            command_id,
        )
        return self.get_invoice(command.invoice_id)

    @track_command_duration("cancel_invoice")
    def cancel_invoice(
        self,
        invoice_id: str,
        reason: str,
        operator_id: str,
        command_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Void an invoice

        Raises:
            InvoiceNotFound, AlreadyReimbursed, AlreadyCancelled, InvoiceInUse
        """
        command, _ = self._execute(
            "cancel_invoice",
            CancelInvoice,
            {"invoice_id": invoice_id, "reason": reason},
            operator_id,
            lambda c, cid: self.invoice_service.cancel_invoice(c, cid, operator_id),
            command_id,
        )
        return self.get_invoice(command.invoice_id)

    def get_invoice(self, invoice_id: str) -> dict[str, Any]:
        return self._snapshot(self.invoice_registry, InvoiceNotFound, invoice_id)

    def list_invoices(
        self,
        project_id: str | None = None,
        supplier_id: str | None = None,
        status: str | None = None,
    ) -> list[dict[str, Any]]:
        def rows() -> list[dict]:
            return [
                i
                for i in self.invoice_registry.list_all()
                if (project_id is None or i["project_id"] == project_id)
                and (supplier_id is None or i["supplier_id"] == supplier_id)
                and (status is None or i["status"] == status)
            ]

        return self._rows(rows)

    # ========== Payments ==========

    @track_command_duration("create_payment")
    def create_payment(
        self,
        payload: Mapping[str, Any],
        operator_id: str,
        uploads: list[AttachmentUpload] | None = None,
        command_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Request a payment backed by verified invoices

        Raises:
            ValidationError, SupplierNotFound, SupplierBlacklisted,
            InvoiceNotFound, InvoiceNotVerified, InvoiceInUse,
            AmountExceedsInvoices
        """
        _, events = self._execute(
            "create_payment",
            CreatePayment,
            payload,
            operator_id,
            lambda c, cid: self.settlement_engine.create_payment(c, cid, operator_id, uploads),
            command_id,
        )
        return self.get_payment(self._created_id(events, "payment"))

    @track_command_duration("update_payment")
    def update_payment(
        self,
        payment_id: str,
        payload: Mapping[str, Any],
        operator_id: str,
        uploads: list[AttachmentUpload] | None = None,
        command_id: str | None = None,
    ) -> dict[str, Any]:
        """Amend a pending payment (NotPending otherwise), relinking invoices"""
        command, _ = self._execute(
            "update_payment",
            UpdatePayment,
            {**payload, "payment_id": payment_id},
            operator_id,
            lambda c, cid: self.settlement_engine.update_payment(c, cid, operator_id, uploads),
            command_id,
        )
        return self.get_payment(command.payment_id)

    @track_command_duration("approve_payment")
    def approve_payment(
        self,
        payment_id: str,
        decision: str,
        operator_id: str,
        comments: str = "",
        command_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Record an approval decision on a pending payment

        A rejection releases the payment's invoices.

        Raises:
            PaymentNotFound, NotPending
        """
        command, _ = self._execute(
            "approve_payment",
            DecidePayment,
            {"payment_id": payment_id, "decision": decision, "comments": comments},
            operator_id,
            lambda c, cid: self.settlement_engine.decide_payment(c, cid, operator_id),
            command_id,
        )
        return self.get_payment(command.payment_id)

    @track_command_duration("resubmit_payment")
    def resubmit_payment(
        self,
        payment_id: str,
        payload: Mapping[str, Any],
        operator_id: str,
        uploads: list[AttachmentUpload] | None = None,
        command_id: str | None = None,
    ) -> dict[str, Any]:
        """Send a rejected payment back to review (NotRejected otherwise)"""
        command, _ = self._execute(
            "resubmit_payment",
            ResubmitPayment,
            {**payload, "payment_id": payment_id},
            operator_id,
            lambda c, cid: self.settlement_engine.resubmit_payment(c, cid, operator_id, uploads),
            command_id,
        )
        return self.get_payment(command.payment_id)

    @track_command_duration("confirm_payment")
    def confirm_payment(
        self,
        payment_id: str,
        operator_id: str,
        actual_date: DateLike = None,
        command_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Mark an approved payment as paid, reimbursing its invoices

        Raises:
            PaymentNotFound, NotApproved, ConcurrencyConflictError
        """
        command, _ = self._execute(
            "confirm_payment",
            ConfirmPayment,
            {"payment_id": payment_id, "actual_date": actual_date},
            operator_id,
            lambda c, cid: self.settlement_engine.confirm_payment(c, cid, operator_id),
            command_id,
        )
        return self.get_payment(command.payment_id)

    def get_payment(self, payment_id: str) -> dict[str, Any]:
        return self._snapshot(self.payment_registry, PaymentNotFound, payment_id)

    def list_payments(
        self,
        project_id: str | None = None,
        payee_id: str | None = None,
        status: str | None = None,
    ) -> list[dict[str, Any]]:
        def rows() -> list[dict]:
            return [
                p
                for p in self.payment_registry.list_all()
                if (project_id is None or p["project_id"] == project_id)
                and (payee_id is None or p["payee_id"] == payee_id)
                and (status is None or p["status"] == status)
            ]

        return self._rows(rows)

    # ========== Reporting ==========

    def cost_stats(self, project_id: str | None = None) -> list[dict[str, Any]]:
        with self._lock:
            return aggregations.cost_stats(self.cost_registry.list_all(), project_id)

    def cost_trend(
        self,
        period: str = "month",
        project_id: str | None = None,
        cost_type: str | None = None,
        start_date: DateLike = None,
        end_date: DateLike = None,
    ) -> list[dict[str, Any]]:
        bucket = _as_period(period)
        start, end = _as_date(start_date, "start_date"), _as_date(end_date, "end_date")
        with self._lock:
            return aggregations.cost_trend(
                self.cost_registry.list_all(),
                bucket,
                project_id=project_id,
                cost_type=cost_type,
                start_date=start,
                end_date=end,
            )

    def invoice_stats(
        self,
        project_id: str | None = None,
        supplier_id: str | None = None,
        start_date: DateLike = None,
        end_date: DateLike = None,
    ) -> list[dict[str, Any]]:
        start, end = _as_date(start_date, "start_date"), _as_date(end_date, "end_date")
        with self._lock:
            return aggregations.invoice_stats(
                self.invoice_registry.list_all(),
                project_id=project_id,
                supplier_id=supplier_id,
                start_date=start,
                end_date=end,
            )

    def invoice_summary(
        self,
        group_by: str = "month",
        start_date: DateLike = None,
        end_date: DateLike = None,
    ) -> list[dict[str, Any]]:
        bucket = _as_period(group_by)
        start, end = _as_date(start_date, "start_date"), _as_date(end_date, "end_date")
        with self._lock:
            return aggregations.invoice_summary(
                self.invoice_registry.list_all(), bucket, start_date=start, end_date=end
            )

    def pending_invoices(
        self, days: int | None = None, supplier_id: str | None = None
    ) -> list[dict[str, Any]]:
        """Pending invoices issued within the policy window (or ``days``)"""
        with self._lock:
            return copy.deepcopy(
                aggregations.pending_invoices(
                    self.invoice_registry.list_all(),
                    self.time_provider.now(),
                    days if days is not None else self.policy.pending_invoice_days,
                    supplier_id,
                )
            )

    def payment_stats(
        self,
        project_id: str | None = None,
        start_date: DateLike = None,
        end_date: DateLike = None,
    ) -> list[dict[str, Any]]:
        start, end = _as_date(start_date, "start_date"), _as_date(end_date, "end_date")
        with self._lock:
            return aggregations.payment_stats(
                self.payment_registry.list_all(),
                project_id=project_id,
                start_date=start,
                end_date=end,
            )

    def payment_plan(
        self,
        start_date: DateLike = None,
        end_date: DateLike = None,
        statuses: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        start, end = _as_date(start_date, "start_date"), _as_date(end_date, "end_date")
        try:
            wanted = [PaymentStatus(s) for s in statuses] if statuses else None
        except ValueError as e:
            raise ValidationError(f"Unknown payment status in {statuses!r}") from e
        with self._lock:
            rows = self.payment_registry.list_all()
            if wanted is None:
                return aggregations.payment_plan(rows, start_date=start, end_date=end)
            return aggregations.payment_plan(
                rows, start_date=start, end_date=end, statuses=wanted
            )

    def budget_stats(self, project_id: str) -> list[dict[str, Any]]:
        with self._lock:
            return aggregations.budget_stats(self.budget_registry.list_all(), project_id)

    def budget_report(
        self,
        project_id: str | None = None,
        fiscal_year: int | None = None,
        budget_type: str | None = None,
    ) -> dict[str, Any]:
        with self._lock:
            return copy.deepcopy(
                aggregations.budget_report(
                    self.budget_registry.list_all(),
                    project_id=project_id,
                    fiscal_year=fiscal_year,
                    budget_type=budget_type,
                )
            )

    # ========== Monitoring ==========

    def health(self) -> dict[str, Any]:
        """
        Ledger-level health summary

        Returns:
            Event/stream counts plus the number of budgets fully consumed,
            invoices awaiting verification and payments awaiting approval
        """
        with self._lock:
            approved = self.budget_registry.list_by_status(BudgetStatus.APPROVED)
            exhausted = [b for b in approved if b["remaining_amount"] == "0.00"]
            return {
                "event_count": self.event_store.count_events(),
                "stream_count": self.event_store.count_streams(),
                "budgets": len(self.budget_registry.budgets),
                "approved_budgets": len(approved),
                "exhausted_budgets": len(exhausted),
                "pending_invoices": len(
                    self.invoice_registry.list_by_status(InvoiceStatus.PENDING)
                ),
                "payments_awaiting_approval": len(
                    self.payment_registry.list_by_status(PaymentStatus.PENDING)
                ),
            }

    def get_policy(self) -> LedgerPolicy:
        return self.policy

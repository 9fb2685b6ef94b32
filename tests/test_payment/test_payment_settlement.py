"""
Tests for payment approval and settlement

A payment is backed by verified invoices of its payee, holds them while it
is pending or approved, and reimburses them when it is paid.
"""

import pytest

from site_ledger.invoice.models import Invoice
from site_ledger.invoice.projections import InvoiceRegistry
from site_ledger.kernel.errors import (
    AmountExceedsInvoices,
    ConcurrencyConflictError,
    InvoiceInUse,
    InvoiceNotFound,
    InvoiceNotVerified,
    InvariantViolation,
    NotApproved,
    NotPending,
    NotRejected,
    PaymentNotFound,
    SupplierBlacklisted,
    ValidationError,
)
from site_ledger.kernel.ids import generate_id
from site_ledger.kernel.policy import LedgerPolicy
from site_ledger.ledger import Ledger
from site_ledger.payment.projections import PaymentRegistry
from tests.helpers import (
    BLACKLISTED_SUPPLIER_ID,
    OTHER_SUPPLIER_ID,
    invoice_payload,
    payment_payload,
)


# =============================================================================
# Creation
# =============================================================================


def test_create_payment_links_invoices(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()

    payment = ledger.create_payment(payment_payload([invoice["invoice_id"]]), "bob")

    assert payment["status"] == "pending"
    assert payment["amount"] == "1130.00"
    assert payment["method"] == "bank_transfer"
    assert payment["code"].startswith("PAY-20250115-")
    assert payment["invoice_ids"] == [invoice["invoice_id"]]
    assert ledger.get_invoice(invoice["invoice_id"])["payment_id"] == payment["payment_id"]


def test_amount_may_not_exceed_invoice_totals(ledger: Ledger, verified_invoice) -> None:
    first = verified_invoice("INV-1")
    second = verified_invoice("INV-2", "500")

    ids = [first["invoice_id"], second["invoice_id"]]
    payment = ledger.create_payment(payment_payload(ids, "1695.00"), "bob")
    assert payment["amount"] == "1695.00"

    third = verified_invoice("INV-3")
    with pytest.raises(AmountExceedsInvoices) as exc_info:
        ledger.create_payment(payment_payload([third["invoice_id"]], "1130.01"), "bob")
    assert exc_info.value.invoice_total == "1130.00"
    assert ledger.get_invoice(third["invoice_id"])["payment_id"] is None


def test_pending_invoice_cannot_back_payment(ledger: Ledger) -> None:
    invoice = ledger.create_invoice(invoice_payload(), "bob")

    with pytest.raises(InvoiceNotVerified):
        ledger.create_payment(payment_payload([invoice["invoice_id"]]), "bob")


def test_invoice_backs_one_payment_at_a_time(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()
    first = ledger.create_payment(payment_payload([invoice["invoice_id"]]), "bob")

    with pytest.raises(InvoiceInUse) as exc_info:
        ledger.create_payment(payment_payload([invoice["invoice_id"]], "100"), "bob")

    assert exc_info.value.payment_id == first["payment_id"]
    assert len(ledger.list_payments()) == 1


def test_invoice_of_another_supplier_is_not_found(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()

    with pytest.raises(InvoiceNotFound):
        ledger.create_payment(
            payment_payload([invoice["invoice_id"]], payee_id=OTHER_SUPPLIER_ID), "bob"
        )


def test_unknown_invoice(ledger: Ledger) -> None:
    with pytest.raises(InvoiceNotFound):
        ledger.create_payment(payment_payload(["missing"]), "bob")


def test_blacklisted_payee(ledger: Ledger) -> None:
    with pytest.raises(SupplierBlacklisted):
        ledger.create_payment(payment_payload([], payee_id=BLACKLISTED_SUPPLIER_ID), "bob")


def test_payment_needs_invoices_by_default(ledger: Ledger) -> None:
    with pytest.raises(ValidationError) as exc_info:
        ledger.create_payment(payment_payload([]), "bob")
    assert exc_info.value.errors[0]["loc"] == ["invoice_ids"]


def test_unbacked_payment_when_policy_allows(ledger: Ledger) -> None:
    advances = Ledger(
        ledger.sqlite_path,
        policy=LedgerPolicy(allow_unbacked_payments=True),
        time_provider=ledger.time_provider,
        supplier_directory=ledger.supplier_directory,
    )

    payment = advances.create_payment(payment_payload([], "300", type="advance"), "bob")

    assert payment["invoice_ids"] == []
    assert payment["type"] == "advance"


def test_duplicate_invoice_ids_are_rejected(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()
    with pytest.raises(ValidationError):
        ledger.create_payment(
            payment_payload([invoice["invoice_id"], invoice["invoice_id"]]), "bob"
        )


# =============================================================================
# Amendment
# =============================================================================


def test_update_swaps_invoices(ledger: Ledger, verified_invoice) -> None:
    first = verified_invoice("INV-1")
    second = verified_invoice("INV-2")
    payment = ledger.create_payment(payment_payload([first["invoice_id"]]), "bob")

    updated = ledger.update_payment(
        payment["payment_id"], {"invoice_ids": [second["invoice_id"]]}, "bob"
    )

    assert updated["invoice_ids"] == [second["invoice_id"]]
    assert ledger.get_invoice(first["invoice_id"])["payment_id"] is None
    assert ledger.get_invoice(second["invoice_id"])["payment_id"] == payment["payment_id"]


def test_update_amount_checked_against_current_invoices(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()
    payment = ledger.create_payment(payment_payload([invoice["invoice_id"]], "1000"), "bob")

    assert ledger.update_payment(payment["payment_id"], {"amount": "1130"}, "bob")["amount"] == "1130.00"
    with pytest.raises(AmountExceedsInvoices):
        ledger.update_payment(payment["payment_id"], {"amount": "1200"}, "bob")


def test_update_after_approval_is_refused(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()
    payment = ledger.create_payment(payment_payload([invoice["invoice_id"]]), "bob")
    ledger.approve_payment(payment["payment_id"], "approved", "carol")

    with pytest.raises(NotPending):
        ledger.update_payment(payment["payment_id"], {"remarks": "late"}, "bob")


# =============================================================================
# Approval
# =============================================================================


def test_approve_payment(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()
    payment = ledger.create_payment(payment_payload([invoice["invoice_id"]]), "bob")

    approved = ledger.approve_payment(payment["payment_id"], "approved", "carol", "ok")

    assert approved["status"] == "approved"
    assert approved["approvals"][0]["approver"] == "carol"
    assert approved["approvals"][0]["comments"] == "ok"
    assert ledger.get_invoice(invoice["invoice_id"])["payment_id"] == payment["payment_id"]


def test_reject_releases_invoices(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()
    payment = ledger.create_payment(payment_payload([invoice["invoice_id"]]), "bob")

    rejected = ledger.approve_payment(payment["payment_id"], "rejected", "carol", "wrong amount")

    assert rejected["status"] == "rejected"
    released = ledger.get_invoice(invoice["invoice_id"])
    assert released["payment_id"] is None
    assert released["status"] == "verified"

    other = ledger.create_payment(payment_payload([invoice["invoice_id"]], "500"), "bob")
    assert ledger.get_invoice(invoice["invoice_id"])["payment_id"] == other["payment_id"]


def test_decide_twice_is_refused(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()
    payment = ledger.create_payment(payment_payload([invoice["invoice_id"]]), "bob")
    ledger.approve_payment(payment["payment_id"], "approved", "carol")

    with pytest.raises(NotPending):
        ledger.approve_payment(payment["payment_id"], "rejected", "dave")


def test_unknown_decision_is_invalid(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()
    payment = ledger.create_payment(payment_payload([invoice["invoice_id"]]), "bob")
    with pytest.raises(ValidationError):
        ledger.approve_payment(payment["payment_id"], "maybe", "carol")


def test_resubmit_relinks_invoices(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()
    payment = ledger.create_payment(payment_payload([invoice["invoice_id"]]), "bob")
    ledger.approve_payment(payment["payment_id"], "rejected", "carol")

    resubmitted = ledger.resubmit_payment(payment["payment_id"], {"amount": "1100"}, "bob")

    assert resubmitted["status"] == "pending"
    assert resubmitted["amount"] == "1100.00"
    assert len(resubmitted["approvals"]) == 1
    assert ledger.get_invoice(invoice["invoice_id"])["payment_id"] == payment["payment_id"]

    approved = ledger.approve_payment(payment["payment_id"], "approved", "carol")
    assert [a["decision"] for a in approved["approvals"]] == ["rejected", "approved"]


def test_resubmit_fails_if_invoice_was_taken(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()
    payment = ledger.create_payment(payment_payload([invoice["invoice_id"]]), "bob")
    ledger.approve_payment(payment["payment_id"], "rejected", "carol")
    ledger.create_payment(payment_payload([invoice["invoice_id"]]), "bob")

    with pytest.raises(InvoiceInUse):
        ledger.resubmit_payment(payment["payment_id"], {}, "bob")
    assert ledger.get_payment(payment["payment_id"])["status"] == "rejected"


def test_resubmit_requires_rejection(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()
    payment = ledger.create_payment(payment_payload([invoice["invoice_id"]]), "bob")
    with pytest.raises(NotRejected):
        ledger.resubmit_payment(payment["payment_id"], {}, "bob")


# =============================================================================
# Settlement
# =============================================================================


def test_confirm_pays_and_reimburses(ledger: Ledger, verified_invoice) -> None:
    first = verified_invoice("INV-1")
    second = verified_invoice("INV-2", "500")
    payment = ledger.create_payment(
        payment_payload([first["invoice_id"], second["invoice_id"]], "1695"), "bob"
    )
    ledger.approve_payment(payment["payment_id"], "approved", "carol")

    paid = ledger.confirm_payment(payment["payment_id"], "dave", actual_date="2025-01-18")

    assert paid["status"] == "paid"
    assert paid["actual_date"] == "2025-01-18"
    for invoice_id in (first["invoice_id"], second["invoice_id"]):
        invoice = ledger.get_invoice(invoice_id)
        assert invoice["status"] == "reimbursed"
        assert invoice["payment_id"] is None


def test_confirm_defaults_to_today(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()
    payment = ledger.create_payment(payment_payload([invoice["invoice_id"]]), "bob")
    ledger.approve_payment(payment["payment_id"], "approved", "carol")

    assert ledger.confirm_payment(payment["payment_id"], "dave")["actual_date"] == "2025-01-15"


def test_confirm_requires_approval(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()
    payment = ledger.create_payment(payment_payload([invoice["invoice_id"]]), "bob")

    with pytest.raises(NotApproved) as exc_info:
        ledger.confirm_payment(payment["payment_id"], "dave")

    assert exc_info.value.current_status == "pending"
    assert ledger.get_invoice(invoice["invoice_id"])["status"] == "verified"


def test_confirm_twice_is_refused(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()
    payment = ledger.create_payment(payment_payload([invoice["invoice_id"]]), "bob")
    ledger.approve_payment(payment["payment_id"], "approved", "carol")
    ledger.confirm_payment(payment["payment_id"], "dave")

    with pytest.raises(NotApproved) as exc_info:
        ledger.confirm_payment(payment["payment_id"], "dave")
    assert exc_info.value.current_status == "paid"


def test_confirm_replay_with_same_command_id(ledger: Ledger, verified_invoice) -> None:
    invoice = verified_invoice()
    payment = ledger.create_payment(payment_payload([invoice["invoice_id"]]), "bob")
    ledger.approve_payment(payment["payment_id"], "approved", "carol")
    ledger.confirm_payment(payment["payment_id"], "dave", command_id="confirm-1")
    events_before = ledger.event_store.count_events()

    again = ledger.confirm_payment(payment["payment_id"], "dave", command_id="confirm-1")

    assert again["status"] == "paid"
    assert ledger.event_store.count_events() == events_before


def test_confirm_unknown_payment(ledger: Ledger) -> None:
    with pytest.raises(PaymentNotFound):
        ledger.confirm_payment("missing", "dave")


def _approved_two_invoice_payment(ledger: Ledger, verified_invoice) -> tuple[dict, list[str]]:
    first = verified_invoice("INV-1")
    second = verified_invoice("INV-2", "500")
    invoice_ids = [first["invoice_id"], second["invoice_id"]]
    payment = ledger.create_payment(payment_payload(invoice_ids, "1695"), "bob")
    ledger.approve_payment(payment["payment_id"], "approved", "carol")
    return payment, invoice_ids


def _assert_nothing_settled(db_path, payment_id: str, invoice_ids: list[str]) -> None:
    reopened = Ledger(db_path)
    assert reopened.get_payment(payment_id)["status"] == "approved"
    for invoice_id in invoice_ids:
        assert reopened.get_invoice(invoice_id)["status"] == "verified"
    assert not reopened.event_store.query_events(event_type="PaymentPaid")
    assert not reopened.event_store.query_events(event_type="InvoiceReimbursed")


def test_settlement_aborts_on_stale_invoice(ledger: Ledger, verified_invoice, monkeypatch) -> None:
    """An invoice written between read and append sinks the whole batch"""
    payment, invoice_ids = _approved_two_invoice_payment(ledger, verified_invoice)
    settling = Ledger(
        ledger.sqlite_path,
        policy=LedgerPolicy(
            max_conflict_retries=1, conflict_backoff_min_ms=0, conflict_backoff_max_ms=0
        ),
        time_provider=ledger.time_provider,
        supplier_directory=ledger.supplier_directory,
    )
    handlers = settling.invoice_handlers
    reimburse = handlers.reimburse_invoice

    def reimburse_after_concurrent_write(invoice, payment_id, command_id, actor_id):
        if invoice.invoice_id == invoice_ids[1]:
            # Another writer touches the second invoice first
            settling.event_store.append_atomic(
                [handlers.link_invoice(invoice, payment_id, generate_id(), "ops")]
            )
        return reimburse(invoice, payment_id, command_id, actor_id)

    monkeypatch.setattr(handlers, "reimburse_invoice", reimburse_after_concurrent_write)

    with pytest.raises(ConcurrencyConflictError):
        settling.confirm_payment(payment["payment_id"], "dave")

    _assert_nothing_settled(ledger.sqlite_path, payment["payment_id"], invoice_ids)


def test_settlement_aborts_when_an_invoice_lost_its_link(ledger: Ledger, verified_invoice) -> None:
    payment, invoice_ids = _approved_two_invoice_payment(ledger, verified_invoice)
    detached = Invoice.model_validate(ledger.repository.load(InvoiceRegistry, invoice_ids[1]))
    ledger.repository.commit(
        lambda: [
            ledger.invoice_handlers.unlink_invoice(
                detached, payment["payment_id"], "manual fix", generate_id(), "ops"
            )
        ]
    )
    events_before = ledger.event_store.count_events()

    with pytest.raises(InvariantViolation):
        ledger.confirm_payment(payment["payment_id"], "dave")

    assert ledger.event_store.count_events() == events_before
    assert ledger.repository.load(PaymentRegistry, payment["payment_id"])["status"] == "approved"
    _assert_nothing_settled(ledger.sqlite_path, payment["payment_id"], invoice_ids)

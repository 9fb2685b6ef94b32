"""
Tests for budget projections - BudgetRegistry and BudgetChargeLog
"""

from decimal import Decimal

from site_ledger.budget.commands import ChargeBudget, CreateBudget, DecideBudget, SubmitBudget
from site_ledger.budget.handlers import BudgetCommandHandlers
from site_ledger.budget.models import BudgetStatus
from site_ledger.budget.projections import BudgetChargeLog, BudgetRegistry
from site_ledger.kernel.events import Event
from site_ledger.kernel.ids import generate_id
from tests.helpers import budget_payload


def approved_budget_events(
    handlers: BudgetCommandHandlers, code: str, project_id: str = "proj-tower-a"
) -> list[Event]:
    registry = BudgetRegistry()
    events = handlers.handle_create_budget(
        CreateBudget(**budget_payload(code, project_id=project_id)), generate_id(), "alice", 0
    )
    budget_id = events[1].stream_id
    for event in events:
        registry.apply_event(event)

    for step in (
        lambda: handlers.handle_submit_budget(
            SubmitBudget(budget_id=budget_id), generate_id(), "alice", registry.budgets
        ),
        lambda: handlers.handle_decide_budget(
            DecideBudget(budget_id=budget_id, decision="approved"),
            generate_id(),
            "carol",
            registry.budgets,
        ),
    ):
        new = step()
        for event in new:
            registry.apply_event(event)
        events.extend(new)
    return events


def charge(
    handlers: BudgetCommandHandlers, events: list[Event], delta: str, cost_id: str
) -> list[Event]:
    registry = BudgetRegistry.from_events(events)
    budget_id = events[-1].stream_id
    new = handlers.handle_charge_budget(
        ChargeBudget(budget_id=budget_id, delta=Decimal(delta), cost_id=cost_id, reason="cost_recorded"),
        generate_id(),
        "bob",
        registry.budgets,
    )
    return events + new


def test_registry_ignores_reservation_events(budget_handlers: BudgetCommandHandlers) -> None:
    events = approved_budget_events(budget_handlers, "B-1")

    registry = BudgetRegistry.from_events(events)

    assert len(registry.list_all()) == 1
    assert registry.list_all()[0]["code"] == "B-1"


def test_registry_tracks_status_and_version(budget_handlers: BudgetCommandHandlers) -> None:
    events = approved_budget_events(budget_handlers, "B-1")
    registry = BudgetRegistry.from_events(events)
    budget = registry.list_all()[0]

    assert budget["status"] == "approved"
    assert budget["version"] == 3
    assert budget["updated_by"] == "carol"
    assert registry.list_by_status(BudgetStatus.APPROVED) == [budget]
    assert registry.list_by_status(BudgetStatus.DRAFT) == []


def test_registry_lists_by_project(budget_handlers: BudgetCommandHandlers) -> None:
    events = approved_budget_events(budget_handlers, "B-1", "proj-a") + approved_budget_events(
        budget_handlers, "B-2", "proj-b"
    )
    registry = BudgetRegistry.from_events(events)

    assert [b["code"] for b in registry.list_by_project("proj-a")] == ["B-1"]
    assert registry.list_by_project("proj-z") == []


def test_charges_move_used_and_derived_fields(budget_handlers: BudgetCommandHandlers) -> None:
    events = approved_budget_events(budget_handlers, "B-1")
    events = charge(budget_handlers, events, "250", "cost-1")
    events = charge(budget_handlers, events, "-50", "cost-1")

    budget = BudgetRegistry.from_events(events).list_all()[0]

    assert budget["used_amount"] == "200.00"
    assert budget["remaining_amount"] == "800.00"
    assert budget["usage_rate"] == "20.00"


def test_replay_replaces_one_budget(budget_handlers: BudgetCommandHandlers) -> None:
    events = approved_budget_events(budget_handlers, "B-1")
    registry = BudgetRegistry.from_events(events)
    budget_id = events[-1].stream_id

    charged = charge(budget_handlers, events, "300", "cost-1")
    registry.replay(budget_id, [e for e in charged if e.stream_id == budget_id])

    assert registry.get(budget_id)["used_amount"] == "300.00"
    assert len(registry.list_all()) == 1


def test_charge_log_sums_to_used_amount(budget_handlers: BudgetCommandHandlers) -> None:
    events = approved_budget_events(budget_handlers, "B-1")
    events = charge(budget_handlers, events, "400", "cost-1")
    events = charge(budget_handlers, events, "150", "cost-2")
    events = charge(budget_handlers, events, "-400", "cost-1")
    budget_id = events[-1].stream_id

    log = BudgetChargeLog()
    for event in events:
        log.apply_event(event)

    entries = log.get_by_budget(budget_id)
    assert [e["delta"] for e in entries] == ["400.00", "150.00", "-400.00"]
    assert sum(Decimal(e["delta"]) for e in entries) == Decimal(entries[-1]["used_amount"])
    assert [e["version"] for e in entries] == [4, 5, 6]
    assert len(log.get_by_cost("cost-1")) == 2
    assert log.get_by_cost("unknown") == []
    assert log.get_by_budget("unknown") == []

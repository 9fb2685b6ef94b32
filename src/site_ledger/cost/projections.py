"""
Cost Module Projections - Read Models for Query Operations

CostRegistry: live cost entries. A CostDeleted event removes the entry, so
deleted costs never show up in lists or reports.
"""

from site_ledger.kernel.events import Event


class CostRegistry:
    """
    Built from events: CostRecorded, CostUpdated, CostDeleted

    Query methods: get, list_by_project, list_by_budget, list_all
    """

    def __init__(self) -> None:
        self.costs: dict[str, dict] = {}

    @classmethod
    def from_events(cls, events: list[Event]) -> "CostRegistry":
        registry = cls()
        for event in events:
            registry.apply_event(event)
        return registry

    def replay(self, cost_id: str, events: list[Event]) -> None:
        self.costs.pop(cost_id, None)
        for event in events:
            self.apply_event(event)

    def apply_event(self, event: Event) -> None:
        if event.stream_type != "cost":
            return

        payload = event.payload
        if event.event_type == "CostRecorded":
            self.costs[payload["cost_id"]] = {
                "cost_id": payload["cost_id"],
                "code": payload["code"],
                "project_id": payload["project_id"],
                "budget_id": payload["budget_id"],
                "type": payload["type"],
                "amount": payload["amount"],
                "date": payload["date"],
                "item": payload["item"],
                "description": payload["description"],
                "supplier_id": payload["supplier_id"],
                "remarks": payload["remarks"],
                "attachments": payload["attachments"],
                "created_by": payload["recorded_by"],
                "updated_by": payload["recorded_by"],
                "created_at": payload["recorded_at"],
                "updated_at": payload["recorded_at"],
                "version": event.version,
            }
        elif event.event_type == "CostUpdated":
            cost = self.costs.get(payload["cost_id"])
            if cost is not None:
                cost.update(payload["changes"])
                cost["updated_by"] = payload["updated_by"]
                cost["updated_at"] = payload["updated_at"]
                cost["version"] = event.version
        elif event.event_type == "CostDeleted":
            self.costs.pop(payload["cost_id"], None)

    # ========== Query Methods ==========

    def get(self, cost_id: str) -> dict | None:
        return self.costs.get(cost_id)

    def list_by_project(self, project_id: str) -> list[dict]:
        return [c for c in self.costs.values() if c["project_id"] == project_id]

    def list_by_budget(self, budget_id: str) -> list[dict]:
        return [c for c in self.costs.values() if c["budget_id"] == budget_id]

    def list_all(self) -> list[dict]:
        return list(self.costs.values())

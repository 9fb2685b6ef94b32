"""
Cost Module Invariants
"""

from site_ledger.cost.models import CostEntry
from site_ledger.kernel.errors import CostNotFound


def validate_cost_exists(cost_id: str, costs: dict[str, dict]) -> CostEntry:
    """
    Resolve a live cost entry

    Deleted entries are gone from every read model, so they resolve as
    missing too.

    Raises:
        CostNotFound: If cost_id is unknown or deleted
    """
    cost = costs.get(cost_id)
    if cost is None:
        raise CostNotFound(cost_id)
    return CostEntry.model_validate(cost)

"""
Cost Domain Models - expenditures recorded on a project

A cost entry optionally draws against one budget. While it exists, its
amount is part of that budget's used_amount; the balance engine keeps the
two in step.
"""

import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from site_ledger.integrations.blob_store import Attachment


class CostType(str, Enum):
    MATERIAL = "material"
    EQUIPMENT = "equipment"
    LABOR = "labor"
    OTHER = "other"


class CostEntry(BaseModel):
    """
    Single expenditure record

    Attributes:
        cost_id: Unique identifier
        code: Generated document code (CST-YYYYMMDD-XXXXXX)
        project_id: Owning project
        budget_id: Budget charged, if any
        type: Cost category
        amount: Positive amount
        date: When the cost was incurred
        item: Short label of what was bought
        description: Free text
        supplier_id: Supplier, if any
        attachments: Stored receipts and slips
    """

    cost_id: str
    code: str
    project_id: str
    budget_id: str | None = None
    type: CostType
    amount: Decimal = Field(gt=0)
    date: datetime.date
    item: str
    description: str = ""
    supplier_id: str | None = None
    remarks: str = ""
    attachments: list[Attachment] = Field(default_factory=list)
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime.datetime
    updated_at: datetime.datetime
    version: int = Field(ge=1)

    def is_charged(self) -> bool:
        """Whether this entry currently counts against a budget"""
        return self.budget_id is not None

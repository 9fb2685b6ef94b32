"""
Supplier directory - read-only supplier lookup

The ledger only needs to know whether a supplier exists and whether it is
blacklisted.
"""

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel


class SupplierInfo(BaseModel):
    supplier_id: str
    name: str = ""
    is_blacklisted: bool = False


class SupplierDirectory(Protocol):
    """Read-only supplier lookup"""

    def get(self, supplier_id: str) -> SupplierInfo | None:
        ...


class StaticSupplierDirectory:
    """
    In-memory supplier directory

    Example JSON file:
        [{"supplier_id": "sup-1", "name": "Acme Steel", "is_blacklisted": false}]
    """

    def __init__(self, suppliers: Iterable[SupplierInfo] = ()) -> None:
        self._suppliers = {s.supplier_id: s for s in suppliers}

    @classmethod
    def from_json_file(cls, path: str | Path) -> "StaticSupplierDirectory":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls(SupplierInfo.model_validate(entry) for entry in data)

    def get(self, supplier_id: str) -> SupplierInfo | None:
        return self._suppliers.get(supplier_id)

    def add(self, supplier: SupplierInfo) -> None:
        self._suppliers[supplier.supplier_id] = supplier

    def __len__(self) -> int:
        return len(self._suppliers)

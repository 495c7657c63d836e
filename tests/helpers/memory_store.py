# tests/helpers/memory_store.py
from __future__ import annotations

import copy
import threading
import time
from typing import Any, Dict, List, Mapping, Optional

from utils.record_store import RecordStoreError


class MemoryRecordStore:
    """
    Thread-safe record store kept in dicts.
    Same filter rules as the real stores: list → IN, None → IS NULL.
    ``read_delay`` widens the window between a read and the following write.
    """

    def __init__(self, read_delay: float = 0.0) -> None:
        self._lock = threading.Lock()
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.read_delay = read_delay
        self.update_calls = 0

    @staticmethod
    def _matches(row: Mapping[str, Any], filters: Optional[Mapping[str, Any]]) -> bool:
        for key, expected in (filters or {}).items():
            value = row.get(key)
            if expected is None:
                if value is not None:
                    return False
            elif isinstance(expected, (list, tuple, set, frozenset)):
                if value not in expected:
                    return False
            elif value != expected:
                return False
        return True

    def insert(self, table: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        with self._lock:
            rows = self.tables.setdefault(table, [])
            if "id" in record and any(row.get("id") == record["id"] for row in rows):
                raise RecordStoreError(f"Duplicate id in {table}")
            if table == "qr_codes" and any(
                row.get("qr_identifier") == record.get("qr_identifier") for row in rows
            ):
                raise RecordStoreError("Duplicate qr_identifier")
            rows.append(dict(record))
            return dict(record)

    def update(self, table: str, patch: Mapping[str, Any], filters: Mapping[str, Any]) -> List[Dict[str, Any]]:
        if not filters:
            raise RecordStoreError("Update requires at least one filter")
        with self._lock:
            self.update_calls += 1
            updated = []
            for row in self.tables.get(table, []):
                if self._matches(row, filters):
                    row.update(patch)
                    updated.append(dict(row))
            return updated

    def delete(self, table: str, filters: Mapping[str, Any]) -> None:
        if not filters:
            raise RecordStoreError("Delete requires at least one filter")
        with self._lock:
            self.tables[table] = [
                row for row in self.tables.get(table, []) if not self._matches(row, filters)
            ]

    def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [copy.deepcopy(row) for row in self.tables.get(table, []) if self._matches(row, filters)]
        if self.read_delay:
            time.sleep(self.read_delay)
        if order_by:
            def sort_key(row):
                value = row.get(order_by)
                return (value is None, value if value is not None else 0)

            rows.sort(key=sort_key, reverse=descending)
        if limit is not None:
            rows = rows[: int(limit)]
        return rows

    def count(self, table: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        with self._lock:
            return sum(1 for row in self.tables.get(table, []) if self._matches(row, filters))

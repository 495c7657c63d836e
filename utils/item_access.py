from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from utils.record_store import RecordStore, find_one

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemAccess:
    success: bool
    item: Optional[Dict[str, Any]] = None
    property: Optional[Dict[str, Any]] = None


DENIED = ItemAccess(success=False)


class ItemDirectory(Protocol):
    def get_item(self, item_id: str, requester_id: str) -> ItemAccess: ...

    def describe_item(self, item_id: str) -> ItemAccess: ...

    def list_items(self, requester_id: str) -> List[Dict[str, Any]]: ...


class RecordStoreItemDirectory:
    """
    Ownership checks over the items/properties tables.

    An item is accessible when its property belongs to the requester.
    "Missing" and "not yours" are the same answer.
    """

    def __init__(self, records: RecordStore, items_table: str = "items", properties_table: str = "properties") -> None:
        self.records = records
        self.items_table = items_table
        self.properties_table = properties_table

    def get_item(self, item_id: str, requester_id: str) -> ItemAccess:
        if not item_id or not requester_id:
            return DENIED
        item = find_one(self.records, self.items_table, {"id": item_id})
        if item is None:
            return DENIED
        prop = find_one(
            self.records,
            self.properties_table,
            {"id": item["property_id"], "user_id": requester_id},
        )
        if prop is None:
            logger.info(f"🔒 Item {item_id} not owned by {requester_id}")
            return DENIED
        return ItemAccess(success=True, item=item, property=prop)

    def describe_item(self, item_id: str) -> ItemAccess:
        """Item + property without an ownership check (public scan views)."""
        if not item_id:
            return DENIED
        item = find_one(self.records, self.items_table, {"id": item_id})
        if item is None:
            return DENIED
        prop = find_one(self.records, self.properties_table, {"id": item["property_id"]})
        if prop is None:
            return DENIED
        return ItemAccess(success=True, item=item, property=prop)

    def list_items(self, requester_id: str) -> List[Dict[str, Any]]:
        if not requester_id:
            return []
        properties = self.records.select(self.properties_table, filters={"user_id": requester_id})
        if not properties:
            return []
        return self.records.select(
            self.items_table,
            filters={"property_id": [prop["id"] for prop in properties]},
            order_by="created_at",
        )

"""
utils/record_store.py
────────────────────────────────────────────
Table-agnostic record store used by the QR core.

- insert / update / delete / select / count on plain dict records
- timestamps travel as ISO-8601 strings
- filter values: scalar → "=", list/tuple/set → "IN", None → "IS NULL"

Two backends:
- SQLAlchemyRecordStore – Core statements on the tables registered in Base.metadata
- SupabaseRecordStore   – hosted Postgres through the supabase client
────────────────────────────────────────────
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from sqlalchemy import DateTime, Table, and_, delete, func, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
Filters = Mapping[str, Any]


class RecordStoreError(Exception):
    """Raised when the backing database rejects or fails an operation."""


class RecordStore(Protocol):
    def insert(self, table: str, record: Mapping[str, Any]) -> Record: ...

    def update(self, table: str, patch: Mapping[str, Any], filters: Filters) -> List[Record]: ...

    def delete(self, table: str, filters: Filters) -> None: ...

    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Record]: ...

    def count(self, table: str, filters: Optional[Filters] = None) -> int: ...


def find_one(store: RecordStore, table: str, filters: Filters) -> Optional[Record]:
    rows = store.select(table, filters=filters, limit=1)
    return rows[0] if rows else None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO string / datetime → aware datetime (naive values are taken as UTC)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# 🗄️ SQLAlchemy backend
# =============================================================================
class SQLAlchemyRecordStore:
    """Record store over SQLAlchemy Core. Every call runs in its own transaction."""

    def __init__(self, engine: Engine, metadata=None) -> None:
        if metadata is None:
            from database import Base
            import models  # noqa: F401  registers tables

            metadata = Base.metadata
        self.engine = engine
        self.metadata = metadata

    # ---------------------------------------------------------------------
    # helpers
    # ---------------------------------------------------------------------
    def _table(self, name: str) -> Table:
        try:
            return self.metadata.tables[name]
        except KeyError:
            raise RecordStoreError(f"Unknown table: {name}")

    def _values(self, table: Table, values: Mapping[str, Any]) -> Dict[str, Any]:
        converted: Dict[str, Any] = {}
        for key, value in values.items():
            if key not in table.c:
                raise RecordStoreError(f"Unknown column '{key}' for table '{table.name}'")
            if isinstance(table.c[key].type, DateTime) and isinstance(value, str):
                value = parse_timestamp(value).astimezone(timezone.utc)
            converted[key] = value
        return converted

    def _where(self, table: Table, filters: Optional[Filters]):
        clauses = []
        for key, value in (filters or {}).items():
            if key not in table.c:
                raise RecordStoreError(f"Unknown column '{key}' for table '{table.name}'")
            column = table.c[key]
            if value is None:
                clauses.append(column.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(column.in_(list(value)))
            else:
                if isinstance(column.type, DateTime) and isinstance(value, str):
                    value = parse_timestamp(value).astimezone(timezone.utc)
                clauses.append(column == value)
        return and_(*clauses) if clauses else None

    @staticmethod
    def _serialize(row: Mapping[str, Any]) -> Record:
        record: Record = {}
        for key, value in row.items():
            if isinstance(value, datetime):
                if value.tzinfo is None:
                    value = value.replace(tzinfo=timezone.utc)
                value = value.isoformat()
            record[key] = value
        return record

    def _select_by_pk(self, conn, table: Table, pk_values: Iterable[Any]) -> Optional[Record]:
        pk_columns = list(table.primary_key.columns)
        where = and_(*[column == value for column, value in zip(pk_columns, pk_values)])
        row = conn.execute(select(table).where(where)).mappings().first()
        return self._serialize(row) if row else None

    # ---------------------------------------------------------------------
    # operations
    # ---------------------------------------------------------------------
    def insert(self, table: str, record: Mapping[str, Any]) -> Record:
        tbl = self._table(table)
        values = self._values(tbl, record)
        try:
            with self.engine.begin() as conn:
                result = conn.execute(insert(tbl).values(**values))
                created = self._select_by_pk(conn, tbl, result.inserted_primary_key)
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Insert into {table} failed: {exc}") from exc
        if created is None:
            raise RecordStoreError(f"Inserted row in {table} could not be read back")
        return created

    def update(self, table: str, patch: Mapping[str, Any], filters: Filters) -> List[Record]:
        if not filters:
            raise RecordStoreError("Update requires at least one filter")
        tbl = self._table(table)
        values = self._values(tbl, patch)
        where = self._where(tbl, filters)
        try:
            with self.engine.begin() as conn:
                if self.engine.dialect.update_returning:
                    rows = conn.execute(update(tbl).where(where).values(**values).returning(*tbl.c)).mappings().all()
                    return [self._serialize(row) for row in rows]

                # no RETURNING: remember the matching keys, then re-check the filter in the UPDATE
                pk_columns = list(tbl.primary_key.columns)
                keys = conn.execute(select(*pk_columns).where(where)).all()
                updated: List[Record] = []
                for key in keys:
                    pk_where = and_(*[column == value for column, value in zip(pk_columns, key)])
                    result = conn.execute(update(tbl).where(and_(where, pk_where)).values(**values))
                    if result.rowcount:
                        row = self._select_by_pk(conn, tbl, key)
                        if row:
                            updated.append(row)
                return updated
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Update of {table} failed: {exc}") from exc

    def delete(self, table: str, filters: Filters) -> None:
        if not filters:
            raise RecordStoreError("Delete requires at least one filter")
        tbl = self._table(table)
        where = self._where(tbl, filters)
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(tbl).where(where))
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Delete from {table} failed: {exc}") from exc

    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Record]:
        tbl = self._table(table)
        stmt = select(tbl)
        where = self._where(tbl, filters)
        if where is not None:
            stmt = stmt.where(where)
        if order_by:
            if order_by not in tbl.c:
                raise RecordStoreError(f"Unknown column '{order_by}' for table '{table}'")
            column = tbl.c[order_by]
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(int(limit))
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Select from {table} failed: {exc}") from exc
        return [self._serialize(row) for row in rows]

    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        tbl = self._table(table)
        stmt = select(func.count()).select_from(tbl)
        where = self._where(tbl, filters)
        if where is not None:
            stmt = stmt.where(where)
        try:
            with self.engine.connect() as conn:
                return int(conn.execute(stmt).scalar() or 0)
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Count on {table} failed: {exc}") from exc


# =============================================================================
# ☁️ Supabase backend
# =============================================================================
class SupabaseRecordStore:
    """Record store over a supabase ``Client`` (PostgREST)."""

    def __init__(self, client) -> None:
        self.client = client

    @staticmethod
    def _apply_filters(query, filters: Optional[Filters]):
        for key, value in (filters or {}).items():
            if value is None:
                query = query.is_(key, "null")
            elif isinstance(value, (list, tuple, set, frozenset)):
                query = query.in_(key, list(value))
            else:
                query = query.eq(key, value)
        return query

    def _execute(self, action: str, table: str, query):
        try:
            return query.execute()
        except Exception as exc:
            logger.error(f"❌ Supabase {action} on {table} failed: {exc}")
            raise RecordStoreError(f"Supabase {action} on {table} failed: {exc}") from exc

    def insert(self, table: str, record: Mapping[str, Any]) -> Record:
        response = self._execute("insert", table, self.client.table(table).insert(dict(record)))
        if not response.data:
            raise RecordStoreError(f"Supabase insert on {table} returned no rows")
        return response.data[0]

    def update(self, table: str, patch: Mapping[str, Any], filters: Filters) -> List[Record]:
        if not filters:
            raise RecordStoreError("Update requires at least one filter")
        query = self._apply_filters(self.client.table(table).update(dict(patch)), filters)
        response = self._execute("update", table, query)
        return list(response.data or [])

    def delete(self, table: str, filters: Filters) -> None:
        if not filters:
            raise RecordStoreError("Delete requires at least one filter")
        query = self._apply_filters(self.client.table(table).delete(), filters)
        self._execute("delete", table, query)

    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Record]:
        query = self._apply_filters(self.client.table(table).select("*"), filters)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit is not None:
            query = query.limit(int(limit))
        response = self._execute("select", table, query)
        return list(response.data or [])

    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        query = self._apply_filters(self.client.table(table).select("id", count="exact"), filters)
        response = self._execute("count", table, query)
        return int(response.count or 0)

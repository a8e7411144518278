"""
In-process record store.

Backs local development (RECORD_STORE=memory) and the engine tests. Each
call takes the store lock, so single-record atomicity matches the SQL
store; nothing spans calls.
"""
import operator
import threading
import uuid
from collections.abc import Sequence
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any

from playedit.store.base import (
    USER_GAMES_TABLE,
    USERS_TABLE,
    Condition,
    Order,
    RecordConflictError,
    UnknownTableError,
)

_OPS = {
    "eq": operator.eq,
    "neq": operator.ne,
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
}

# Mirrors the unique constraints in playedit.db.models
DEFAULT_UNIQUE_KEYS: dict[str, list[tuple[str, ...]]] = {
    USERS_TABLE: [("username",)],
    USER_GAMES_TABLE: [("user_id", "game_id")],
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRecordStore:
    def __init__(
        self,
        tables: Sequence[str] = (USERS_TABLE, USER_GAMES_TABLE),
        unique_keys: dict[str, list[tuple[str, ...]]] | None = None,
    ) -> None:
        self._tables: dict[str, dict[Any, dict[str, Any]]] = {t: {} for t in tables}
        self._unique_keys = DEFAULT_UNIQUE_KEYS if unique_keys is None else unique_keys
        self._lock = threading.Lock()

    def _table(self, table: str) -> dict[Any, dict[str, Any]]:
        try:
            return self._tables[table]
        except KeyError:
            raise UnknownTableError(f"Unknown table {table!r}") from None

    def _check_unique(
        self, table: str, candidate: dict[str, Any], skip_id: Any = None
    ) -> None:
        rows = self._tables[table]
        for key in self._unique_keys.get(table, []):
            if any(candidate.get(f) is None for f in key):
                continue
            wanted = tuple(candidate[f] for f in key)
            for row_id, row in rows.items():
                if row_id == skip_id:
                    continue
                if tuple(row.get(f) for f in key) == wanted:
                    raise RecordConflictError(
                        f"{table}: duplicate value for {', '.join(key)}"
                    )

    # ── Reads ────────────────────────────────────────────────────────────────

    def query(
        self,
        table: str,
        conditions: Sequence[Condition] = (),
        order: Sequence[Order] = (),
    ) -> list[dict[str, Any]]:
        with self._lock:
            rows = [
                deepcopy(row)
                for row in self._table(table).values()
                if all(_OPS[c.op](row.get(c.field), c.value) for c in conditions)
            ]
        # Stable sorts, least significant key first
        for o in reversed(order):
            rows.sort(key=lambda r: r.get(o.field), reverse=o.descending)
        return rows

    # ── Writes ───────────────────────────────────────────────────────────────

    def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            rows = self._table(table)
            row = dict(record)
            row.setdefault("id", uuid.uuid4())
            if row["id"] in rows:
                raise RecordConflictError(f"{table}: duplicate id {row['id']}")
            self._check_unique(table, row)
            rows[row["id"]] = row
            return deepcopy(row)

    def update(
        self, table: str, record_id: Any, fields: dict[str, Any]
    ) -> dict[str, Any] | None:
        with self._lock:
            rows = self._table(table)
            current = rows.get(record_id)
            if current is None:
                return None
            merged = {**current, **fields, "id": record_id}
            if "updated_at" in current:
                merged["updated_at"] = _utcnow()
            self._check_unique(table, merged, skip_id=record_id)
            rows[record_id] = merged
            return deepcopy(merged)

    def delete(self, table: str, record_id: Any) -> bool:
        with self._lock:
            return self._table(table).pop(record_id, None) is not None

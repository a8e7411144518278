"""
Record store contract.

The ranking engine persists through a generic table/record API: filtered
ordered queries plus single-record insert, update and delete. Every call
is atomic for one record; there are no multi-record transactions, which is
why the mutator orders its shift writes explicitly.
"""
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal, Protocol

Op = Literal["eq", "neq", "gt", "gte", "lt", "lte"]

USERS_TABLE = "users"
USER_GAMES_TABLE = "user_games"


@dataclass(frozen=True)
class Condition:
    """``field <op> value`` filter term. Terms in one query are AND-ed."""

    field: str
    op: Op
    value: Any


@dataclass(frozen=True)
class Order:
    field: str
    descending: bool = False


def eq(field: str, value: Any) -> Condition:
    return Condition(field, "eq", value)


def neq(field: str, value: Any) -> Condition:
    return Condition(field, "neq", value)


def gt(field: str, value: Any) -> Condition:
    return Condition(field, "gt", value)


def gte(field: str, value: Any) -> Condition:
    return Condition(field, "gte", value)


def asc(field: str) -> Order:
    return Order(field)


def desc(field: str) -> Order:
    return Order(field, descending=True)


# ── Store errors ──────────────────────────────────────────────────────────────


class RecordStoreError(Exception):
    """Base class for failures raised by a record store."""


class RecordStoreUnavailableError(RecordStoreError):
    """The backing store could not complete the call."""


class RecordConflictError(RecordStoreError):
    """An insert or update violated a uniqueness constraint."""


class UnknownTableError(RecordStoreError):
    pass


# ── Protocol ──────────────────────────────────────────────────────────────────


class RecordStore(Protocol):
    def query(
        self,
        table: str,
        conditions: Sequence[Condition] = (),
        order: Sequence[Order] = (),
    ) -> list[dict[str, Any]]: ...

    def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]: ...

    def update(
        self, table: str, record_id: Any, fields: dict[str, Any]
    ) -> dict[str, Any] | None: ...

    def delete(self, table: str, record_id: Any) -> bool: ...

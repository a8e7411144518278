"""
SQLAlchemy-backed record store.

Every call opens its own session and commits before returning, so each
call is one single-row transaction. Multi-row protocols (shifts) are the
caller's responsibility.
"""
import logging
from collections.abc import Callable, Sequence
from typing import Any

from sqlalchemy import MetaData, Table, delete, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from playedit.db.models import Base
from playedit.store.base import (
    Condition,
    Order,
    RecordConflictError,
    RecordStoreUnavailableError,
    UnknownTableError,
)

logger = logging.getLogger(__name__)


def _clause(table: Table, condition: Condition):
    column = table.c[condition.field]
    value = condition.value
    if condition.op == "eq":
        return column == value
    if condition.op == "neq":
        return column != value
    if condition.op == "gt":
        return column > value
    if condition.op == "gte":
        return column >= value
    if condition.op == "lt":
        return column < value
    if condition.op == "lte":
        return column <= value
    raise ValueError(f"Unsupported operator {condition.op!r}")


class SqlRecordStore:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        metadata: MetaData = Base.metadata,
    ) -> None:
        self._session_factory = session_factory
        self._metadata = metadata

    def _table(self, name: str) -> Table:
        try:
            return self._metadata.tables[name]
        except KeyError:
            raise UnknownTableError(f"Unknown table {name!r}") from None

    def _run(self, description: str, fn: Callable[[Session], Any]) -> Any:
        """Execute *fn* in a fresh session and commit, mapping driver errors."""
        try:
            with self._session_factory() as session:
                result = fn(session)
                session.commit()
                return result
        except IntegrityError as exc:
            raise RecordConflictError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            logger.warning("Record store call failed: %s (%s)", description, exc)
            raise RecordStoreUnavailableError(f"{description} failed") from exc

    # ── Reads ────────────────────────────────────────────────────────────────

    def query(
        self,
        table: str,
        conditions: Sequence[Condition] = (),
        order: Sequence[Order] = (),
    ) -> list[dict[str, Any]]:
        t = self._table(table)
        stmt = select(t).where(*[_clause(t, c) for c in conditions])
        for o in order:
            column = t.c[o.field]
            stmt = stmt.order_by(column.desc() if o.descending else column.asc())

        def _fetch(session: Session) -> list[dict[str, Any]]:
            return [dict(row._mapping) for row in session.execute(stmt)]

        return self._run(f"query {table}", _fetch)

    # ── Writes ───────────────────────────────────────────────────────────────

    def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        t = self._table(table)
        stmt = insert(t).values(**record).returning(*t.c)

        def _insert(session: Session) -> dict[str, Any]:
            return dict(session.execute(stmt).one()._mapping)

        return self._run(f"insert into {table}", _insert)

    def update(
        self, table: str, record_id: Any, fields: dict[str, Any]
    ) -> dict[str, Any] | None:
        t = self._table(table)
        stmt = (
            update(t)
            .where(t.c.id == record_id)
            .values(**fields)
            .returning(*t.c)
        )

        def _update(session: Session) -> dict[str, Any] | None:
            row = session.execute(stmt).first()
            return dict(row._mapping) if row is not None else None

        return self._run(f"update {table}", _update)

    def delete(self, table: str, record_id: Any) -> bool:
        t = self._table(table)
        stmt = delete(t).where(t.c.id == record_id)

        def _delete(session: Session) -> bool:
            return session.execute(stmt).rowcount > 0

        return self._run(f"delete from {table}", _delete)

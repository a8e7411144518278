"""
PositionStore — the (owner, item) -> position mapping over the record store.

Every method is exactly one record-store call, so each is atomic for a
single row and nothing more. Store failures surface as
UpstreamUnavailableError; uniqueness violations on create as
DuplicateEntryError.
"""
from datetime import datetime, timezone
from uuid import UUID

from playedit.services.entries import EntryPayload, RankedEntry, to_record
from playedit.services.errors import DuplicateEntryError, UpstreamUnavailableError
from playedit.store.base import (
    USER_GAMES_TABLE,
    USERS_TABLE,
    RecordConflictError,
    RecordStore,
    RecordStoreUnavailableError,
    asc,
    desc,
    eq,
    gt,
    gte,
)


class PositionStore:
    def __init__(self, records: RecordStore) -> None:
        self._records = records

    # ── Reads ────────────────────────────────────────────────────────────────

    def owner_exists(self, owner_id: UUID) -> bool:
        try:
            rows = self._records.query(USERS_TABLE, [eq("id", owner_id)])
        except RecordStoreUnavailableError as exc:
            raise UpstreamUnavailableError(str(exc)) from exc
        return bool(rows)

    def get(self, owner_id: UUID, item_id: str) -> RankedEntry | None:
        rows = self._query([eq("user_id", owner_id), eq("game_id", item_id)])
        return rows[0] if rows else None

    def get_by_position(self, owner_id: UUID, position: int) -> RankedEntry | None:
        rows = self._query(
            [eq("user_id", owner_id), eq("rank_position", position)],
            [asc("logged_at")],
        )
        return rows[0] if rows else None

    def list_by_owner(self, owner_id: UUID) -> list[RankedEntry]:
        """All of the owner's entries, ascending by position."""
        return self._query(
            [eq("user_id", owner_id)],
            [asc("rank_position"), asc("logged_at")],
        )

    def list_at_or_after(self, owner_id: UUID, position: int) -> list[RankedEntry]:
        """Entries with position >= *position*, highest first (shift-up order)."""
        return self._query(
            [eq("user_id", owner_id), gte("rank_position", position)],
            [desc("rank_position")],
        )

    def list_after(self, owner_id: UUID, position: int) -> list[RankedEntry]:
        """Entries with position > *position*, lowest first (shift-down order)."""
        return self._query(
            [eq("user_id", owner_id), gt("rank_position", position)],
            [asc("rank_position")],
        )

    def _query(self, conditions, order=()) -> list[RankedEntry]:
        try:
            rows = self._records.query(USER_GAMES_TABLE, conditions, order)
        except RecordStoreUnavailableError as exc:
            raise UpstreamUnavailableError(str(exc)) from exc
        return [RankedEntry.from_record(r) for r in rows]

    # ── Writes ───────────────────────────────────────────────────────────────

    def ensure_owner(self, owner_id: UUID) -> bool:
        """Add a users row for *owner_id* if missing. Returns True if added."""
        if self.owner_exists(owner_id):
            return False
        try:
            self._records.insert(
                USERS_TABLE,
                {"id": owner_id, "username": owner_id.hex, "is_active": True},
            )
        except RecordConflictError:
            # Registered by a concurrent request
            return False
        except RecordStoreUnavailableError as exc:
            raise UpstreamUnavailableError(str(exc)) from exc
        return True

    def create(
        self,
        owner_id: UUID,
        item_id: str,
        position: int,
        payload: EntryPayload,
    ) -> RankedEntry:
        record = to_record(owner_id, item_id, position, payload)
        record["logged_at"] = datetime.now(timezone.utc)
        try:
            row = self._records.insert(USER_GAMES_TABLE, record)
        except RecordConflictError as exc:
            raise DuplicateEntryError(
                f"Item {item_id} is already ranked for this user"
            ) from exc
        except RecordStoreUnavailableError as exc:
            raise UpstreamUnavailableError(str(exc)) from exc
        return RankedEntry.from_record(row)

    def update_position(self, entry_id: UUID, position: int) -> RankedEntry | None:
        try:
            row = self._records.update(
                USER_GAMES_TABLE, entry_id, {"rank_position": position}
            )
        except RecordStoreUnavailableError as exc:
            raise UpstreamUnavailableError(str(exc)) from exc
        return RankedEntry.from_record(row) if row is not None else None

    def delete(self, entry_id: UUID) -> bool:
        try:
            return self._records.delete(USER_GAMES_TABLE, entry_id)
        except RecordStoreUnavailableError as exc:
            raise UpstreamUnavailableError(str(exc)) from exc

"""
RankMutator: insert, move and remove with dense position maintenance.

Each operation runs inside the owner's exclusive section and issues a
sequence of single-row writes:

  INSERT at p   shift entries >= p up by one, highest first; create at p
  REMOVE        delete; shift entries > old position down by one, lowest first
  MOVE to p     REMOVE then INSERT at p, all under one section

Shifting up from the top and down from the bottom means no two entries
share a position at any point a reader could observe. If the store fails
part way, the error says so (partially_applied) and the next read runs
the repair pass. An interrupted move also hands back the entry it had
already deleted (pending_entry) so the caller can re-insert it.
"""
import logging
from collections.abc import Callable
from typing import TypeVar
from uuid import UUID

from playedit.services.entries import EntryPayload, RankedEntry
from playedit.services.errors import (
    DuplicateEntryError,
    EntryNotFoundError,
    InvalidPositionError,
    UpstreamUnavailableError,
)
from playedit.services.locks import OwnerLocks
from playedit.services.position_store import PositionStore
from playedit.services.ranking_math import FIRST_POSITION, RankingMath

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Progress:
    """Counts writes that have already landed for one operation."""

    def __init__(self) -> None:
        self.writes = 0
        # Deleted by a move and not re-created yet
        self.pending: RankedEntry | None = None

    def wrote(self) -> None:
        self.writes += 1


def _check_position(position: int) -> None:
    if position < FIRST_POSITION:
        raise InvalidPositionError(f"position must be >= 1, got {position}")


class RankMutator:
    def __init__(self, positions: PositionStore, locks: OwnerLocks | None = None) -> None:
        self._positions = positions
        self._locks = locks if locks is not None else OwnerLocks()

    # ── Public operations ────────────────────────────────────────────────────

    def insert(
        self,
        owner_id: UUID,
        item_id: str,
        position: int,
        payload: EntryPayload | None = None,
    ) -> RankedEntry:
        """
        Rank *item_id* for the first time at *position*.

        Raises:
            DuplicateEntryError: If the owner already ranked the item.
            InvalidPositionError: If position < 1.
            UpstreamUnavailableError: On store failure.
        """
        _check_position(position)

        def _run(progress: _Progress) -> RankedEntry:
            if self._positions.get(owner_id, item_id) is not None:
                raise DuplicateEntryError(
                    f"Item {item_id} is already ranked for this user"
                )
            return self._insert_at(
                owner_id, item_id, position, payload or EntryPayload(), progress
            )

        with self._locks.exclusive(owner_id):
            entry = self._guarded(f"insert {item_id}", _run)
        logger.info("Ranked %s at #%d for owner %s", item_id, entry.position, owner_id)
        return entry

    def move(
        self,
        owner_id: UUID,
        item_id: str,
        position: int,
        payload: EntryPayload | None = None,
    ) -> RankedEntry:
        """
        Re-rank an existing item: delete it, close the gap, re-insert at
        *position* counted against the list without it.

        The re-inserted entry gets a new id. *payload* replaces the old one
        when given. If the store fails after the delete but before the
        re-insert, the raised error carries the removed entry as
        pending_entry; finishing the move is an insert of that entry.

        Raises:
            EntryNotFoundError: If the owner has not ranked the item.
            InvalidPositionError: If position < 1.
            UpstreamUnavailableError: On store failure.
        """
        _check_position(position)

        def _run(progress: _Progress) -> RankedEntry:
            existing = self._positions.get(owner_id, item_id)
            if existing is None:
                raise EntryNotFoundError(f"Item {item_id} is not ranked for this user")
            progress.pending = existing
            self._remove_entry(existing, progress)
            logger.debug("Removed %s from #%d before re-rank", item_id, existing.position)
            created = self._insert_at(
                owner_id,
                item_id,
                position,
                payload if payload is not None else existing.payload,
                progress,
            )
            progress.pending = None
            return created

        with self._locks.exclusive(owner_id):
            entry = self._guarded(f"move {item_id}", _run)
        logger.info("Re-ranked %s to #%d for owner %s", item_id, entry.position, owner_id)
        return entry

    def remove(self, owner_id: UUID, item_id: str) -> RankedEntry:
        """
        Delete the owner's entry for *item_id* and close the gap.

        Returns the removed entry as it was before deletion.

        Raises:
            EntryNotFoundError: If the owner has not ranked the item.
            UpstreamUnavailableError: On store failure.
        """

        def _run(progress: _Progress) -> RankedEntry:
            existing = self._positions.get(owner_id, item_id)
            if existing is None:
                raise EntryNotFoundError(f"Item {item_id} is not ranked for this user")
            self._remove_entry(existing, progress)
            return existing

        with self._locks.exclusive(owner_id):
            removed = self._guarded(f"remove {item_id}", _run)
        logger.info("Removed %s (was #%d) for owner %s", item_id, removed.position, owner_id)
        return removed

    def repair(self, owner_id: UUID) -> int:
        """
        Renumber the owner's list to exactly 1..N, keeping relative order.

        Idempotent: returns the number of rows rewritten, 0 for a list that
        was already dense.
        """

        def _run(progress: _Progress) -> int:
            entries = self._positions.list_by_owner(owner_id)
            plan = RankingMath.repair_plan(entries)
            for entry, new_position in plan:
                self._positions.update_position(entry.id, new_position)
                progress.wrote()
            return len(plan)

        with self._locks.exclusive(owner_id):
            rewritten = self._guarded("repair", _run)
        if rewritten:
            logger.warning("Repair rewrote %d positions for owner %s", rewritten, owner_id)
        return rewritten

    def reset(self, owner_id: UUID) -> list[RankedEntry]:
        """
        Remove every entry for the owner, bottom of the list first, and
        return them in their former order.
        """

        def _run(progress: _Progress) -> list[RankedEntry]:
            entries = self._positions.list_by_owner(owner_id)
            for entry in reversed(entries):
                self._positions.delete(entry.id)
                progress.wrote()
            return entries

        with self._locks.exclusive(owner_id):
            removed = self._guarded("reset", _run)
        logger.info("Reset %d rankings for owner %s", len(removed), owner_id)
        return removed

    # ── Internals (section already held) ─────────────────────────────────────

    def _insert_at(
        self,
        owner_id: UUID,
        item_id: str,
        position: int,
        payload: EntryPayload,
        progress: _Progress,
    ) -> RankedEntry:
        size = len(self._positions.list_by_owner(owner_id))
        target = RankingMath.clamp_target(position, size)
        if target != position:
            # Resolved against a longer list than exists now; last writer wins
            logger.warning(
                "Target #%d is past the end of a %d-entry list; placing %s at #%d",
                position, size, item_id, target,
            )

        for entry in self._positions.list_at_or_after(owner_id, target):
            self._positions.update_position(entry.id, entry.position + 1)
            progress.wrote()

        created = self._positions.create(owner_id, item_id, target, payload)
        progress.wrote()
        return created

    def _remove_entry(self, entry: RankedEntry, progress: _Progress) -> None:
        if not self._positions.delete(entry.id):
            raise EntryNotFoundError(f"Item {entry.item_id} is not ranked for this user")
        progress.wrote()
        for below in self._positions.list_after(entry.owner_id, entry.position):
            self._positions.update_position(below.id, below.position - 1)
            progress.wrote()

    def _guarded(self, description: str, fn: Callable[[_Progress], T]) -> T:
        progress = _Progress()
        try:
            return fn(progress)
        except UpstreamUnavailableError as exc:
            if not progress.writes:
                raise
            pending = progress.pending
            logger.error(
                "%s interrupted after %d writes; list will be repaired on next read%s",
                description,
                progress.writes,
                f", {pending.item_id} must be re-inserted" if pending else "",
            )
            message = f"{description} was interrupted after {progress.writes} writes: {exc}"
            if pending is not None:
                message += f"; {pending.item_id} is no longer ranked until the placement is retried"
            raise UpstreamUnavailableError(
                message,
                partially_applied=True,
                pending_entry=pending,
            ) from exc

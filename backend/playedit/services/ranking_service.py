"""
Ranking business logic — the surface the API talks to.

  begin   snapshot the owner's list and open a comparison session
  compare advance the session one decision (undo / cancel as needed)
  commit  insert or move the item at the resolved index
  remove  delete an entry and close the gap

Comparison sessions never hold the owner's exclusive section; the write
happens only at commit, against whatever the list looks like then
(last writer wins).
"""
import logging
import threading
import time
from collections.abc import Callable
from uuid import UUID

from playedit.services.comparison import (
    ComparisonResolver,
    ComparisonSession,
    ComparisonStep,
    Oracle,
    Preference,
)
from playedit.services.entries import EntryPayload, RankedEntry
from playedit.services.errors import (
    DuplicateEntryError,
    EntryNotFoundError,
    OwnerNotFoundError,
    SessionNotFoundError,
    SessionStateError,
    UpstreamUnavailableError,
)
from playedit.services.locks import OwnerLocks
from playedit.services.mutator import RankMutator
from playedit.services.position_store import PositionStore
from playedit.services.snapshot import ListSnapshotProvider
from playedit.store.base import RecordStore

logger = logging.getLogger(__name__)


# ── Session registry ─────────────────────────────────────────────────────────


class SessionRegistry:
    """Open comparison sessions, scoped by owner and expired after a TTL."""

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._sessions: dict[UUID, tuple[ComparisonSession, float]] = {}
        self._lock = threading.Lock()

    def add(self, session: ComparisonSession) -> None:
        with self._lock:
            self._purge()
            self._sessions[session.id] = (session, self._clock() + self._ttl)

    def get(self, owner_id: UUID, session_id: UUID) -> ComparisonSession:
        with self._lock:
            self._purge()
            found = self._sessions.get(session_id)
            if found is None or found[0].owner_id != owner_id:
                raise SessionNotFoundError(f"Comparison session {session_id} not found")
            session = found[0]
            # Activity extends the deadline
            self._sessions[session_id] = (session, self._clock() + self._ttl)
            return session

    def discard(self, session_id: UUID) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            self._purge()
            return len(self._sessions)

    def _purge(self) -> None:
        now = self._clock()
        expired = [sid for sid, (_, deadline) in self._sessions.items() if deadline <= now]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.debug("Dropped %d expired comparison sessions", len(expired))


# ── Service ───────────────────────────────────────────────────────────────────


class RankingService:
    def __init__(
        self,
        records: RecordStore,
        *,
        locks: OwnerLocks | None = None,
        max_comparisons: int | None = None,
        session_ttl_seconds: float = 1800,
        repair_on_read: bool = True,
    ) -> None:
        self.positions = PositionStore(records)
        self.mutator = RankMutator(self.positions, locks)
        self.snapshots = ListSnapshotProvider(
            self.positions, self.mutator, repair_on_read=repair_on_read
        )
        self.resolver = ComparisonResolver(max_comparisons)
        self.sessions = SessionRegistry(session_ttl_seconds)

    # ── Reads ────────────────────────────────────────────────────────────────

    def list_rankings(self, owner_id: UUID) -> list[RankedEntry]:
        """The owner's full ranked list, #1 first."""
        return self.snapshots.snapshot(owner_id)

    def get_entry(self, owner_id: UUID, item_id: str) -> RankedEntry:
        """
        Return the owner's entry for *item_id* (the "already ranked at #N"
        check clients run before offering a re-rank).
        """
        for entry in self.snapshots.snapshot(owner_id):
            if entry.item_id == item_id:
                return entry
        raise EntryNotFoundError(f"Item {item_id} is not ranked for this user")

    # ── Comparison sessions ──────────────────────────────────────────────────

    def begin_ranking(
        self,
        owner_id: UUID,
        item_id: str,
        payload: EntryPayload | None = None,
        *,
        rerank: bool = False,
    ) -> ComparisonSession:
        """
        Open a comparison session placing *item_id* into the owner's list.

        With rerank=True the item must already be ranked; it is left out of
        the snapshot so it is never compared against itself, and its payload
        is kept unless a new one is given.

        Raises:
            OwnerNotFoundError, DuplicateEntryError, EntryNotFoundError
        """
        snapshot = self.snapshots.snapshot(
            owner_id, exclude_item_id=item_id if rerank else None
        )
        existing = self.positions.get(owner_id, item_id)
        if rerank and existing is None:
            raise EntryNotFoundError(f"Item {item_id} is not ranked for this user")
        if not rerank and existing is not None:
            raise DuplicateEntryError(
                f"Item {item_id} is already ranked at #{existing.position}"
            )
        if rerank and payload is None:
            payload = existing.payload

        session = self.resolver.start(
            item_id,
            snapshot,
            owner_id=owner_id,
            payload=payload,
            rerank=rerank,
        )
        self.sessions.add(session)
        logger.debug(
            "Opened session %s for %s against %d entries (rerank=%s)",
            session.id, item_id, session.list_size, rerank,
        )
        return session

    def get_session(self, owner_id: UUID, session_id: UUID) -> ComparisonSession:
        return self.sessions.get(owner_id, session_id)

    def compare(
        self,
        owner_id: UUID,
        session_id: UUID,
        probe_item_id: str,
        outcome: Preference | str,
    ) -> ComparisonStep:
        return self.sessions.get(owner_id, session_id).compare(probe_item_id, outcome)

    def undo(self, owner_id: UUID, session_id: UUID) -> ComparisonStep:
        return self.sessions.get(owner_id, session_id).undo()

    def cancel(self, owner_id: UUID, session_id: UUID) -> None:
        """Abandon a session. Nothing has been written, so nothing is undone."""
        session = self.sessions.get(owner_id, session_id)
        session.cancel()
        self.sessions.discard(session_id)

    def commit(self, owner_id: UUID, session_id: UUID) -> RankedEntry:
        """
        Write the session's item at its resolved index.

        Raises:
            SessionStateError: If the session is not resolved yet.
            DuplicateEntryError: If the item was ranked by another session
                in the meantime.
            EntryNotFoundError: If a re-ranked item was removed meanwhile.
            UpstreamUnavailableError: On store failure. The session stays
                open so the commit can be retried; a re-rank interrupted
                after its delete is finished by the retry as an insert.
        """
        session = self.sessions.get(owner_id, session_id)
        with session.lock:
            # A concurrent commit may have finished while this one waited
            self.sessions.get(owner_id, session_id)
            if not session.is_resolved:
                raise SessionStateError(
                    f"Session needs more comparisons "
                    f"(at most {session.remaining_upper_bound} left)"
                )
            try:
                if session.rerank and not session.resume_insert:
                    entry = self.mutator.move(
                        owner_id, session.item_id, session.final_index, session.payload
                    )
                else:
                    entry = self.mutator.insert(
                        owner_id, session.item_id, session.final_index, session.payload
                    )
            except UpstreamUnavailableError as exc:
                if exc.pending_entry is not None:
                    session.resume_insert = True
                    logger.warning(
                        "Re-rank of %s lost its row; session %s will re-insert on retry",
                        session.item_id, session.id,
                    )
                raise
            self.sessions.discard(session_id)
        return entry

    def place(
        self,
        owner_id: UUID,
        item_id: str,
        oracle: Oracle,
        payload: EntryPayload | None = None,
        *,
        rerank: bool = False,
    ) -> RankedEntry:
        """Begin, answer every probe with *oracle*, and commit."""
        session = self.begin_ranking(owner_id, item_id, payload, rerank=rerank)
        try:
            while not session.is_resolved:
                probe = session.current_probe
                session.compare(probe.item_id, oracle(item_id, probe))
            return self.commit(owner_id, session.id)
        finally:
            self.sessions.discard(session.id)

    # ── Writes ───────────────────────────────────────────────────────────────

    def remove_entry(self, owner_id: UUID, item_id: str) -> RankedEntry:
        self._require_owner(owner_id)
        return self.mutator.remove(owner_id, item_id)

    def reset_rankings(self, owner_id: UUID) -> list[RankedEntry]:
        """Clear the owner's list; returns the old order for re-ranking."""
        self._require_owner(owner_id)
        return self.mutator.reset(owner_id)

    def repair(self, owner_id: UUID) -> int:
        self._require_owner(owner_id)
        return self.mutator.repair(owner_id)

    def register_owner(self, owner_id: UUID) -> None:
        """Make *owner_id* a known list owner (stores without an account service)."""
        if self.positions.ensure_owner(owner_id):
            logger.info("Registered owner %s", owner_id)

    def _require_owner(self, owner_id: UUID) -> None:
        if not self.positions.owner_exists(owner_id):
            raise OwnerNotFoundError(f"User {owner_id} not found")

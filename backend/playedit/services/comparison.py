"""
ComparisonResolver — binary insertion driven by pairwise decisions.

A session brackets the insertion index in [lo, hi], starting at [1, N+1]
over an ordered snapshot of N entries. Each decision compares the
candidate against the snapshot entry at (lo + hi) // 2:

    better  ->  hi = mid        (candidate goes at or above the probe)
    worse   ->  lo = mid + 1    (candidate goes below the probe)

The session is resolved when lo == hi, after at most ceil(log2(N+1))
decisions. Sessions are plain in-memory state; they never read or write
the store, so abandoning one is always safe.
"""
import threading
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from playedit.services.entries import EntryPayload, RankedEntry
from playedit.services.errors import SessionStateError, StaleComparisonError
from playedit.services.ranking_math import FIRST_POSITION, RankingMath


class Preference(str, Enum):
    """How the candidate compares with the probe."""

    BETTER = "better"
    WORSE = "worse"
    # Caller could not pick a side; treated as WORSE
    UNDECIDED = "undecided"


Oracle = Callable[[str, RankedEntry], Preference]


@dataclass(frozen=True)
class ComparisonStep:
    """Either the next entry to compare against, or the resolved index."""

    next_probe: RankedEntry | None = None
    final_index: int | None = None

    @property
    def done(self) -> bool:
        return self.final_index is not None


class ComparisonSession:
    def __init__(
        self,
        item_id: str,
        snapshot: Sequence[RankedEntry],
        *,
        owner_id: UUID | None = None,
        payload: EntryPayload | None = None,
        rerank: bool = False,
        max_comparisons: int | None = None,
    ) -> None:
        self.id: UUID = uuid.uuid4()
        self.owner_id = owner_id
        self.item_id = item_id
        self.payload = payload or EntryPayload()
        self.rerank = rerank
        self.snapshot: tuple[RankedEntry, ...] = tuple(snapshot)
        self.max_comparisons = max_comparisons
        self.lo = FIRST_POSITION
        self.hi = len(self.snapshot) + 1
        self.cancelled = False
        # Set after a re-rank commit lost the old row; the retry inserts
        self.resume_insert = False
        # Requests for one session may arrive on different worker threads
        self.lock = threading.RLock()
        self._history: list[tuple[int, int]] = []

    # ── State ────────────────────────────────────────────────────────────────

    @property
    def list_size(self) -> int:
        return len(self.snapshot)

    @property
    def comparisons_made(self) -> int:
        return len(self._history)

    @property
    def estimated_total(self) -> int:
        """Worst-case number of decisions for this snapshot."""
        bound = RankingMath.max_comparisons(self.list_size)
        if self.max_comparisons is not None:
            return min(bound, self.max_comparisons)
        return bound

    @property
    def remaining_upper_bound(self) -> int:
        if self.is_resolved:
            return 0
        remaining = RankingMath.max_comparisons(self.hi - self.lo)
        if self.max_comparisons is not None:
            remaining = min(remaining, self.max_comparisons - self.comparisons_made)
        return remaining

    @property
    def is_resolved(self) -> bool:
        if self.lo == self.hi:
            return True
        return (
            self.max_comparisons is not None
            and self.comparisons_made >= self.max_comparisons
        )

    @property
    def final_index(self) -> int | None:
        """1-based insertion index in [1, N+1], once resolved."""
        return self.lo if self.is_resolved else None

    @property
    def current_probe(self) -> RankedEntry | None:
        if self.is_resolved:
            return None
        return self.snapshot[RankingMath.probe_index(self.lo, self.hi) - 1]

    def step(self) -> ComparisonStep:
        if self.is_resolved:
            return ComparisonStep(final_index=self.lo)
        return ComparisonStep(next_probe=self.current_probe)

    # ── Transitions ──────────────────────────────────────────────────────────

    def compare(self, probe_item_id: str, outcome: Preference | str) -> ComparisonStep:
        """
        Record the decision for the current probe and advance.

        Raises:
            SessionStateError: If the session is resolved or cancelled.
            StaleComparisonError: If probe_item_id is not the current probe.
        """
        with self.lock:
            self._ensure_open()
            if self.is_resolved:
                raise SessionStateError("Comparison session is already resolved")
            probe = self.current_probe
            if probe_item_id != probe.item_id:
                raise StaleComparisonError(
                    f"Expected a decision against {probe.item_id}, got {probe_item_id}"
                )

            mid = RankingMath.probe_index(self.lo, self.hi)
            self._history.append((self.lo, self.hi))
            if Preference(outcome) is Preference.BETTER:
                self.hi = mid
            else:
                self.lo = mid + 1
            return self.step()

    def undo(self) -> ComparisonStep:
        """Take back the last decision and re-ask that probe."""
        with self.lock:
            self._ensure_open()
            if not self._history:
                raise SessionStateError("No comparison to undo")
            self.lo, self.hi = self._history.pop()
            return self.step()

    def cancel(self) -> None:
        with self.lock:
            self.cancelled = True

    def _ensure_open(self) -> None:
        if self.cancelled:
            raise SessionStateError("Comparison session was cancelled")


class ComparisonResolver:
    """Creates sessions with a shared comparison cap."""

    def __init__(self, max_comparisons: int | None = None) -> None:
        self.max_comparisons = max_comparisons

    def start(
        self,
        item_id: str,
        snapshot: Sequence[RankedEntry],
        *,
        owner_id: UUID | None = None,
        payload: EntryPayload | None = None,
        rerank: bool = False,
    ) -> ComparisonSession:
        return ComparisonSession(
            item_id,
            snapshot,
            owner_id=owner_id,
            payload=payload,
            rerank=rerank,
            max_comparisons=self.max_comparisons,
        )

    def resolve(
        self,
        item_id: str,
        snapshot: Sequence[RankedEntry],
        oracle: Oracle,
    ) -> int:
        """Run a session to completion against *oracle* and return the index."""
        session = self.start(item_id, snapshot)
        while not session.is_resolved:
            probe = session.current_probe
            session.compare(probe.item_id, oracle(item_id, probe))
        return session.final_index

"""
Ranking Math
────────────
Pure helpers for the dense 1..N position scheme.

Nothing here touches the record store, so the bounds, shift ordering and
repair plan are unit-testable on plain lists.
"""
import math
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from playedit.services.entries import RankedEntry

FIRST_POSITION = 1

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _aware(ts: datetime | None) -> datetime:
    if ts is None:
        return _EPOCH
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


class RankingMath:
    """
    Stateless helper class for dense position calculations.
    All methods are @staticmethod — instantiation is optional.
    """

    @staticmethod
    def max_comparisons(list_size: int) -> int:
        """
        Worst-case decisions needed to place one item into a list of
        *list_size* entries: ceil(log2(N + 1)).

        0 for an empty list, 1 for a single entry.
        """
        if list_size < 0:
            raise ValueError(f"list_size must be >= 0, got {list_size}")
        return math.ceil(math.log2(list_size + 1)) if list_size else 0

    @staticmethod
    def probe_index(lo: int, hi: int) -> int:
        """
        1-based snapshot index to compare against while the insertion point
        is still somewhere in [lo, hi].
        """
        if lo >= hi:
            raise ValueError(f"interval [{lo}, {hi}] is already resolved")
        return (lo + hi) // 2

    @staticmethod
    def clamp_target(position: int, list_size: int) -> int:
        """
        Fit a resolved index onto the current list.

        Raises:
            ValueError: If position is below 1.
        Returns:
            position, or list_size + 1 when the list shrank since the
            index was resolved.
        """
        if position < FIRST_POSITION:
            raise ValueError(f"position must be >= 1, got {position}")
        return min(position, list_size + 1)

    @staticmethod
    def is_dense(positions: Iterable[int]) -> bool:
        """True when *positions* are exactly {1, ..., N} with no repeats."""
        ordered = sorted(positions)
        return ordered == list(range(FIRST_POSITION, len(ordered) + 1))

    @staticmethod
    def repair_plan(entries: Sequence["RankedEntry"]) -> list[tuple["RankedEntry", int]]:
        """
        Return (entry, new_position) for every entry whose position must
        change to make the list dense.

        Entries keep their relative order by last-known position; ties
        (duplicates) fall back to logged_at, then id. An already-dense list
        yields an empty plan.

        The plan is in application order: entries moving down first,
        lowest first, then entries moving up, highest first.
        """
        ordered = sorted(
            entries,
            key=lambda e: (e.position, _aware(e.logged_at), str(e.id)),
        )
        changes = [
            (entry, new_position)
            for new_position, entry in enumerate(ordered, start=FIRST_POSITION)
            if entry.position != new_position
        ]
        down = [c for c in changes if c[1] < c[0].position]
        up = [c for c in changes if c[1] > c[0].position]
        return down + up[::-1]

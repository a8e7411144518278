"""
Ranking engine error taxonomy.

The API layer maps these to HTTP responses; services never raise
HTTPException themselves.
"""
from typing import Any


class RankingError(Exception):
    """Base class for every error raised by the ranking engine."""


# ── Not found ─────────────────────────────────────────────────────────────────


class NotFoundError(RankingError):
    pass


class OwnerNotFoundError(NotFoundError):
    """Raised when the list owner does not exist."""


class EntryNotFoundError(NotFoundError):
    """Raised when the owner has not ranked the given item."""


class SessionNotFoundError(NotFoundError):
    """Raised for an unknown, expired, or foreign comparison session."""


# ── Conflict ──────────────────────────────────────────────────────────────────


class ConflictError(RankingError):
    pass


class DuplicateEntryError(ConflictError):
    """Raised when the owner has already ranked the item (use a move instead)."""


# ── Session protocol ──────────────────────────────────────────────────────────


class SessionStateError(RankingError):
    """Raised when a session operation does not fit its current state."""


class StaleComparisonError(SessionStateError):
    """Raised when a decision names an item that is not the current probe."""


class InvalidPositionError(RankingError, ValueError):
    pass


# ── Integrity / upstream ──────────────────────────────────────────────────────


class InvariantViolationError(RankingError):
    """
    An owner's positions are not exactly 1..N.

    Reads log this and run the repair pass instead of surfacing it.
    """

    def __init__(self, owner_id, positions: list[int]) -> None:
        self.owner_id = owner_id
        self.positions = positions
        super().__init__(
            f"positions for owner {owner_id} are not dense: {sorted(positions)}"
        )


class UpstreamUnavailableError(RankingError):
    """
    The record store failed.

    partially_applied is True when some writes of a multi-step operation
    had already landed; the list is repaired on the next read.

    pending_entry is set when an interrupted move had already deleted the
    entry and not yet re-created it. Repair cannot bring it back, so the
    caller must retry the placement with it.
    """

    def __init__(
        self,
        message: str,
        *,
        partially_applied: bool = False,
        pending_entry: Any = None,
    ) -> None:
        self.partially_applied = partially_applied
        self.pending_entry = pending_entry
        super().__init__(message)

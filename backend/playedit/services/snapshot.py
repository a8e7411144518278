"""
ListSnapshotProvider — the ordered list a comparison session runs against.
"""
import logging
from uuid import UUID

from playedit.services.entries import RankedEntry
from playedit.services.errors import InvariantViolationError, OwnerNotFoundError
from playedit.services.mutator import RankMutator
from playedit.services.position_store import PositionStore
from playedit.services.ranking_math import RankingMath

logger = logging.getLogger(__name__)


class ListSnapshotProvider:
    def __init__(
        self,
        positions: PositionStore,
        mutator: RankMutator,
        *,
        repair_on_read: bool = True,
    ) -> None:
        self._positions = positions
        self._mutator = mutator
        self._repair_on_read = repair_on_read

    def snapshot(
        self,
        owner_id: UUID,
        exclude_item_id: str | None = None,
    ) -> list[RankedEntry]:
        """
        Return the owner's entries ascending by position, without
        *exclude_item_id* (the item being re-ranked).

        A list that is not exactly 1..N is repaired and re-read first, so
        the count the resolver works from matches the stored list.

        Raises:
            OwnerNotFoundError: If owner_id is not a known user.
        """
        if not self._positions.owner_exists(owner_id):
            raise OwnerNotFoundError(f"User {owner_id} not found")

        entries = self._positions.list_by_owner(owner_id)
        if self._repair_on_read and not RankingMath.is_dense(e.position for e in entries):
            violation = InvariantViolationError(owner_id, [e.position for e in entries])
            logger.warning("Repairing on read: %s", violation)
            self._mutator.repair(owner_id)
            entries = self._positions.list_by_owner(owner_id)

        if exclude_item_id is None:
            return entries
        return [e for e in entries if e.item_id != exclude_item_id]

"""Shared fixtures for the ranking engine tests."""
import threading
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from playedit.services.comparison import Oracle, Preference
from playedit.services.entries import RankedEntry
from playedit.store.base import USER_GAMES_TABLE, USERS_TABLE, RecordStoreUnavailableError
from playedit.store.memory import InMemoryRecordStore


def make_owner(store, username: str | None = None) -> UUID:
    row = store.insert(
        USERS_TABLE,
        {"id": uuid4(), "username": username or f"player_{uuid4().hex[:8]}", "is_active": True},
    )
    return row["id"]


def seed_entries(store, owner_id: UUID, positions: dict[str, int]) -> None:
    """Write user_games rows directly, bypassing the mutator (any positions)."""
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    for i, (item_id, position) in enumerate(positions.items()):
        store.insert(
            USER_GAMES_TABLE,
            {
                "id": uuid4(),
                "user_id": owner_id,
                "game_id": item_id,
                "rank_position": position,
                "platform_played": [],
                "notes": None,
                "logged_at": base + timedelta(minutes=i),
            },
        )


def order_oracle(order: list[str]) -> Oracle:
    """Oracle for a fixed total order: earlier in *order* is better."""
    rank = {item_id: i for i, item_id in enumerate(order)}

    def _oracle(candidate: str, probe: RankedEntry) -> Preference:
        return Preference.BETTER if rank[candidate] < rank[probe.item_id] else Preference.WORSE

    return _oracle


def fake_snapshot(item_ids: list[str], owner_id: UUID | None = None) -> list[RankedEntry]:
    owner_id = owner_id or uuid4()
    return [
        RankedEntry(id=uuid4(), owner_id=owner_id, item_id=item_id, position=i)
        for i, item_id in enumerate(item_ids, start=1)
    ]


def positions_by_item(positions_store, owner_id: UUID) -> dict[str, int]:
    return {e.item_id: e.position for e in positions_store.list_by_owner(owner_id)}


def ordered_items(positions_store, owner_id: UUID) -> list[str]:
    return [e.item_id for e in positions_store.list_by_owner(owner_id)]


class FlakyRecordStore(InMemoryRecordStore):
    """
    Fails the update call number *fail_on_update* (1-based), once, and
    likewise the insert call number *fail_on_insert*.
    """

    def __init__(
        self,
        fail_on_update: int | None = None,
        fail_on_insert: int | None = None,
    ) -> None:
        super().__init__()
        self.fail_on_update = fail_on_update
        self.fail_on_insert = fail_on_insert
        self.updates = 0
        self.inserts = 0

    def insert(self, table, record):
        self.inserts += 1
        if self.fail_on_insert is not None and self.inserts == self.fail_on_insert:
            self.fail_on_insert = None
            raise RecordStoreUnavailableError("connection reset")
        return super().insert(table, record)

    def update(self, table, record_id, fields):
        self.updates += 1
        if self.fail_on_update is not None and self.updates == self.fail_on_update:
            self.fail_on_update = None
            raise RecordStoreUnavailableError("connection reset")
        return super().update(table, record_id, fields)


class PausingRecordStore(InMemoryRecordStore):
    """
    Blocks the first update issued from the thread named *pause_thread*
    until resume is set, signalling paused on the way in.
    """

    def __init__(self, pause_thread: str) -> None:
        super().__init__()
        self.pause_thread = pause_thread
        self.paused = threading.Event()
        self.resume = threading.Event()
        self._done = False

    def update(self, table, record_id, fields):
        if not self._done and threading.current_thread().name == self.pause_thread:
            self._done = True
            self.paused.set()
            self.resume.wait(timeout=5)
        return super().update(table, record_id, fields)

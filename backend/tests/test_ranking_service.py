import random
import unittest
from uuid import uuid4

from support import (
    FlakyRecordStore,
    make_owner,
    order_oracle,
    positions_by_item,
    seed_entries,
)

from playedit.services.comparison import ComparisonSession, Preference
from playedit.services.entries import EntryPayload
from playedit.services.errors import (
    DuplicateEntryError,
    EntryNotFoundError,
    OwnerNotFoundError,
    SessionNotFoundError,
    SessionStateError,
    UpstreamUnavailableError,
)
from playedit.services.ranking_math import RankingMath
from playedit.services.ranking_service import RankingService, SessionRegistry
from playedit.store.memory import InMemoryRecordStore


def _service(**kwargs):
    store = InMemoryRecordStore()
    service = RankingService(store, **kwargs)
    return store, service, make_owner(store)


class TestWalkthrough(unittest.TestCase):
    def test_insert_three_then_remove(self) -> None:
        _, service, owner = _service()

        # A into an empty list: no comparisons
        session = service.begin_ranking(owner, "A")
        self.assertEqual(session.final_index, 1)
        service.commit(owner, session.id)

        # B judged worse than A
        session = service.begin_ranking(owner, "B")
        self.assertEqual(session.current_probe.item_id, "A")
        step = service.compare(owner, session.id, "A", Preference.WORSE)
        self.assertEqual(step.final_index, 2)
        service.commit(owner, session.id)
        self.assertEqual([e.item_id for e in service.list_rankings(owner)], ["A", "B"])

        # C judged better: two comparisons, the second against A
        session = service.begin_ranking(owner, "C")
        probes = []
        while not session.is_resolved:
            probe = session.current_probe.item_id
            probes.append(probe)
            service.compare(owner, session.id, probe, Preference.BETTER)
        self.assertEqual(len(probes), 2)
        self.assertEqual(probes[-1], "A")
        service.commit(owner, session.id)
        self.assertEqual([e.item_id for e in service.list_rankings(owner)], ["C", "A", "B"])

        service.remove_entry(owner, "A")
        self.assertEqual(positions_by_item(service.positions, owner), {"C": 1, "B": 2})


class TestPlacementProperties(unittest.TestCase):
    def test_any_arrival_order_yields_oracle_order(self) -> None:
        rng = random.Random(42)
        for size in (0, 1, 2, 3, 8, 17):
            _, service, owner = _service()
            truth = [f"game-{i}" for i in range(size)]
            arrival = truth[:]
            rng.shuffle(arrival)
            oracle = order_oracle(truth)

            for item_id in arrival:
                service.place(owner, item_id, oracle)

            entries = service.list_rankings(owner)
            self.assertEqual([e.item_id for e in entries], truth)
            self.assertEqual([e.position for e in entries], list(range(1, size + 1)))

    def test_comparisons_per_placement_are_bounded(self) -> None:
        _, service, owner = _service()
        truth = [f"game-{i}" for i in range(20)]
        arrival = truth[::2] + truth[1::2]
        oracle = order_oracle(truth)
        for item_id in arrival:
            size = len(service.list_rankings(owner))
            session = service.begin_ranking(owner, item_id)
            while not session.is_resolved:
                probe = session.current_probe
                session.compare(probe.item_id, oracle(item_id, probe))
            self.assertLessEqual(session.comparisons_made, RankingMath.max_comparisons(size))
            service.commit(owner, session.id)

    def test_rerank_excludes_item_and_moves_it(self) -> None:
        _, service, owner = _service()
        for item_id in ["a", "b", "c", "d"]:
            service.place(owner, item_id, order_oracle(["a", "b", "c", "d"]))

        session = service.begin_ranking(owner, "d", rerank=True)
        self.assertEqual(session.list_size, 3)
        self.assertNotIn("d", [e.item_id for e in session.snapshot])

        entry = service.place(owner, "d", order_oracle(["d", "a", "b", "c"]), rerank=True)
        self.assertEqual(entry.position, 1)
        self.assertEqual([e.item_id for e in service.list_rankings(owner)], ["d", "a", "b", "c"])


class TestServiceErrors(unittest.TestCase):
    def test_unknown_owner(self) -> None:
        _, service, _ = _service()
        with self.assertRaises(OwnerNotFoundError):
            service.begin_ranking(uuid4(), "a")
        with self.assertRaises(OwnerNotFoundError):
            service.remove_entry(uuid4(), "a")

    def test_begin_on_already_ranked_item(self) -> None:
        _, service, owner = _service()
        service.place(owner, "a", order_oracle(["a"]))
        with self.assertRaises(DuplicateEntryError) as ctx:
            service.begin_ranking(owner, "a")
        self.assertIn("#1", str(ctx.exception))

    def test_rerank_of_unranked_item(self) -> None:
        _, service, owner = _service()
        with self.assertRaises(EntryNotFoundError):
            service.begin_ranking(owner, "a", rerank=True)

    def test_commit_before_resolution(self) -> None:
        _, service, owner = _service()
        service.place(owner, "a", order_oracle(["a", "b"]))
        session = service.begin_ranking(owner, "b")
        with self.assertRaises(SessionStateError):
            service.commit(owner, session.id)

    def test_sessions_are_owner_scoped(self) -> None:
        store, service, owner = _service()
        intruder = make_owner(store)
        session = service.begin_ranking(owner, "a")
        with self.assertRaises(SessionNotFoundError):
            service.commit(intruder, session.id)

    def test_cancel_leaves_store_untouched(self) -> None:
        _, service, owner = _service()
        service.place(owner, "a", order_oracle(["a", "b"]))
        session = service.begin_ranking(owner, "b")
        service.compare(owner, session.id, "a", Preference.WORSE)
        service.cancel(owner, session.id)

        self.assertEqual(positions_by_item(service.positions, owner), {"a": 1})
        with self.assertRaises(SessionNotFoundError):
            service.get_session(owner, session.id)

    def test_commit_race_is_last_writer_wins(self) -> None:
        _, service, owner = _service()
        oracle = order_oracle(["a", "b", "x", "y"])
        service.place(owner, "a", oracle)
        service.place(owner, "b", oracle)

        first = service.begin_ranking(owner, "x")
        second = service.begin_ranking(owner, "y")
        for session in (first, second):
            while not session.is_resolved:
                probe = session.current_probe
                session.compare(probe.item_id, oracle(session.item_id, probe))

        service.commit(owner, first.id)
        service.commit(owner, second.id)
        entries = service.list_rankings(owner)
        # Both resolved to #3 against [a, b]; the later commit lands there
        self.assertEqual([e.item_id for e in entries], ["a", "b", "y", "x"])

    def test_rerank_commit_interrupted_after_delete_is_finished_by_retry(self) -> None:
        store = FlakyRecordStore()
        service = RankingService(store)
        owner = make_owner(store)
        oracle = order_oracle(["a", "b", "c"])
        service.place(owner, "a", oracle)
        service.place(owner, "b", oracle)
        service.place(owner, "c", oracle, EntryPayload(platforms=("Switch",), notes="cozy"))

        session = service.begin_ranking(owner, "c", rerank=True)
        while not session.is_resolved:
            service.compare(owner, session.id, session.current_probe.item_id, Preference.BETTER)
        self.assertEqual(session.final_index, 1)

        store.inserts = 0
        store.fail_on_insert = 1
        with self.assertRaises(UpstreamUnavailableError) as ctx:
            service.commit(owner, session.id)
        self.assertTrue(ctx.exception.partially_applied)
        self.assertEqual([e.item_id for e in service.list_rankings(owner)], ["a", "b"])

        entry = service.commit(owner, session.id)
        self.assertEqual(entry.position, 1)
        self.assertEqual(entry.payload, EntryPayload(platforms=("Switch",), notes="cozy"))
        entries = service.list_rankings(owner)
        self.assertEqual([e.item_id for e in entries], ["c", "a", "b"])
        self.assertEqual([e.position for e in entries], [1, 2, 3])
        with self.assertRaises(SessionNotFoundError):
            service.get_session(owner, session.id)

    def test_rerank_commit_interrupted_while_closing_the_gap(self) -> None:
        store = FlakyRecordStore()
        service = RankingService(store)
        owner = make_owner(store)
        oracle = order_oracle(["a", "b", "c"])
        for item_id in ("a", "b", "c"):
            service.place(owner, item_id, oracle)

        session = service.begin_ranking(owner, "a", rerank=True)
        while not session.is_resolved:
            service.compare(owner, session.id, session.current_probe.item_id, Preference.WORSE)
        self.assertEqual(session.final_index, 3)

        # a is deleted and b moves up; moving c up fails
        store.updates = 0
        store.fail_on_update = 2
        with self.assertRaises(UpstreamUnavailableError) as ctx:
            service.commit(owner, session.id)
        self.assertEqual(ctx.exception.pending_entry.item_id, "a")

        service.commit(owner, session.id)
        self.assertEqual(positions_by_item(service.positions, owner), {"b": 1, "c": 2, "a": 3})

    def test_reset_then_rerank_from_scratch(self) -> None:
        _, service, owner = _service()
        truth = ["a", "b", "c"]
        for item_id in truth:
            service.place(owner, item_id, order_oracle(truth), EntryPayload(notes=item_id))

        removed = service.reset_rankings(owner)
        self.assertEqual(service.list_rankings(owner), [])

        new_truth = ["c", "a", "b"]
        for entry in removed:
            service.place(owner, entry.item_id, order_oracle(new_truth), entry.payload)
        entries = service.list_rankings(owner)
        self.assertEqual([e.item_id for e in entries], new_truth)
        self.assertEqual([e.payload.notes for e in entries], new_truth)

    def test_list_read_repairs_broken_positions(self) -> None:
        store, service, owner = _service()
        seed_entries(store, owner, {"a": 2, "b": 2, "c": 7})
        entries = service.list_rankings(owner)
        self.assertEqual([e.position for e in entries], [1, 2, 3])
        self.assertEqual(service.repair(owner), 0)


class TestSessionRegistry(unittest.TestCase):
    def test_expired_sessions_are_dropped(self) -> None:
        now = [0.0]
        registry = SessionRegistry(ttl_seconds=10, clock=lambda: now[0])
        owner = uuid4()
        session = ComparisonSession("a", [], owner_id=owner)
        registry.add(session)

        now[0] = 9.0
        self.assertIs(registry.get(owner, session.id), session)

        # The read above extended the deadline to 19
        now[0] = 18.0
        self.assertEqual(len(registry), 1)

        now[0] = 30.0
        with self.assertRaises(SessionNotFoundError):
            registry.get(owner, session.id)
        self.assertEqual(len(registry), 0)

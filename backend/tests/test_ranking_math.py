import unittest
from datetime import datetime, timezone
from uuid import uuid4

from playedit.services.entries import RankedEntry
from playedit.services.ranking_math import RankingMath


def _entry(item_id: str, position: int, minute: int = 0) -> RankedEntry:
    return RankedEntry(
        id=uuid4(),
        owner_id=uuid4(),
        item_id=item_id,
        position=position,
        logged_at=datetime(2026, 1, 1, 0, minute, tzinfo=timezone.utc),
    )


class TestMaxComparisons(unittest.TestCase):
    def test_small_lists(self) -> None:
        self.assertEqual(RankingMath.max_comparisons(0), 0)
        self.assertEqual(RankingMath.max_comparisons(1), 1)
        self.assertEqual(RankingMath.max_comparisons(2), 2)
        self.assertEqual(RankingMath.max_comparisons(3), 2)
        self.assertEqual(RankingMath.max_comparisons(4), 3)
        self.assertEqual(RankingMath.max_comparisons(7), 3)
        self.assertEqual(RankingMath.max_comparisons(8), 4)

    def test_negative_size_rejected(self) -> None:
        with self.assertRaises(ValueError):
            RankingMath.max_comparisons(-1)


class TestProbeAndClamp(unittest.TestCase):
    def test_probe_index_is_midpoint(self) -> None:
        self.assertEqual(RankingMath.probe_index(1, 2), 1)
        self.assertEqual(RankingMath.probe_index(1, 3), 2)
        self.assertEqual(RankingMath.probe_index(3, 6), 4)

    def test_probe_index_rejects_resolved_interval(self) -> None:
        with self.assertRaises(ValueError):
            RankingMath.probe_index(2, 2)

    def test_clamp_target(self) -> None:
        self.assertEqual(RankingMath.clamp_target(1, 0), 1)
        self.assertEqual(RankingMath.clamp_target(3, 5), 3)
        self.assertEqual(RankingMath.clamp_target(9, 5), 6)
        with self.assertRaises(ValueError):
            RankingMath.clamp_target(0, 5)


class TestDensity(unittest.TestCase):
    def test_is_dense(self) -> None:
        self.assertTrue(RankingMath.is_dense([]))
        self.assertTrue(RankingMath.is_dense([3, 1, 2]))
        self.assertFalse(RankingMath.is_dense([1, 1, 2]))
        self.assertFalse(RankingMath.is_dense([1, 3]))
        self.assertFalse(RankingMath.is_dense([2, 3]))

    def test_repair_plan_empty_for_dense_list(self) -> None:
        entries = [_entry("a", 1), _entry("b", 2), _entry("c", 3)]
        self.assertEqual(RankingMath.repair_plan(entries), [])

    def test_repair_plan_closes_gap_lowest_first(self) -> None:
        entries = [_entry("a", 1), _entry("b", 3), _entry("c", 5)]
        plan = RankingMath.repair_plan(entries)
        self.assertEqual([(e.item_id, p) for e, p in plan], [("b", 2), ("c", 3)])

    def test_repair_plan_splits_duplicates_highest_first(self) -> None:
        entries = [_entry("a", 1, minute=0), _entry("b", 1, minute=5), _entry("c", 2)]
        plan = RankingMath.repair_plan(entries)
        # Older entry keeps the contested slot; moves up are applied top-down
        self.assertEqual([(e.item_id, p) for e, p in plan], [("c", 3), ("b", 2)])

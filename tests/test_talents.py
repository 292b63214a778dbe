from __future__ import annotations

import json
import unittest
from datetime import datetime, timezone
from types import SimpleNamespace

from questchat.engine import QuestEngine
from questchat.store import MemoryStore, StoreError
from questchat.talents import DEFAULT_NODES, TalentTree


class FailingStore(MemoryStore):
    def set(self, key: str, value: bytes) -> None:
        raise StoreError("read-only")


class TalentTreeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = MemoryStore()

    def test_points_follow_level_and_cap(self) -> None:
        self.assertEqual(TalentTree(self.store).available_points, 0)
        self.assertEqual(TalentTree(self.store, level=4).available_points, 4)
        tree = TalentTree(self.store, level=99)
        self.assertEqual(tree.max_points, 23)
        self.assertEqual(tree.total_points, 23)

    def test_spend_until_max_rank_or_out_of_points(self) -> None:
        tree = TalentTree(self.store, level=4)
        for _ in range(3):
            self.assertTrue(tree.spend("HYDRATION_ADEPT"))
        self.assertFalse(tree.spend("HYDRATION_ADEPT"))
        self.assertTrue(tree.spend("FOCUS_FUNDAMENTALS"))
        self.assertFalse(tree.spend("SELF_CARE_BASICS"))
        self.assertFalse(tree.spend("NOT_A_TALENT"))
        self.assertEqual(tree.spent_points, 4)

    def test_tier_threshold_and_prerequisites(self) -> None:
        tree = TalentTree(self.store, level=10)
        for _ in range(3):
            tree.spend("HYDRATION_ADEPT")
        self.assertFalse(tree.can_spend("STEADY_SIPS"))

        tree.spend("FOCUS_FUNDAMENTALS")
        tree.spend("FOCUS_FUNDAMENTALS")
        self.assertEqual(tree.spent_points, 5)
        self.assertTrue(tree.can_spend("STEADY_SIPS"))
        self.assertFalse(tree.can_spend("DEEP_WORK"))
        self.assertFalse(tree.can_spend("CHORE_MOMENTUM"))

    def test_full_tree_reaches_final_stage(self) -> None:
        tree = TalentTree(self.store, level=23)
        for node in sorted(DEFAULT_NODES, key=lambda n: n.tier):
            for _ in range(node.max_ranks):
                self.assertTrue(tree.spend(node.id), node.id)
        self.assertEqual(tree.available_points, 0)
        self.assertEqual(tree.mastered_count, 9)
        self.assertEqual(tree.stage_index, 4)
        self.assertAlmostEqual(tree.growth_progress, 4 / 9)

    def test_ranks_survive_reload(self) -> None:
        tree = TalentTree(self.store, level=3)
        tree.spend("SELF_CARE_BASICS")
        tree.spend("SELF_CARE_BASICS")

        reopened = TalentTree(self.store, level=3)
        self.assertEqual(reopened.rank("SELF_CARE_BASICS"), 2)
        self.assertEqual(reopened.available_points, 1)

    def test_level_drop_clears_ranks(self) -> None:
        tree = TalentTree(self.store, level=3)
        for _ in range(3):
            tree.spend("HYDRATION_ADEPT")
        tree.apply_level(2)
        self.assertEqual(tree.spent_points, 0)
        self.assertEqual(json.loads(self.store.get("talent_tree")), {"ranks": {}})

    def test_reset_refunds_everything(self) -> None:
        tree = TalentTree(self.store, level=2)
        tree.spend("FOCUS_FUNDAMENTALS")
        tree.reset()
        self.assertEqual(tree.available_points, 2)

    def test_stored_ranks_are_sanitized(self) -> None:
        self.store.set("talent_tree", json.dumps({"ranks": {"HYDRATION_ADEPT": 9, "GONE": 2}}).encode("utf-8"))
        tree = TalentTree(self.store, level=23)
        self.assertEqual(tree.rank("HYDRATION_ADEPT"), 3)
        self.assertEqual(tree.rank("GONE"), 0)

    def test_unreadable_tree_resets(self) -> None:
        self.store.set("talent_tree", b"{broken")
        with self.assertLogs("questchat.talents", level="WARNING"):
            tree = TalentTree(self.store, level=1)
        self.assertEqual(tree.spent_points, 0)

    def test_write_failure_is_logged_not_raised(self) -> None:
        tree = TalentTree(FailingStore(), level=1)
        with self.assertLogs("questchat.talents", level="WARNING"):
            self.assertTrue(tree.spend("HYDRATION_ADEPT"))
        self.assertEqual(tree.rank("HYDRATION_ADEPT"), 1)


class TalentListenerTests(unittest.TestCase):
    def test_listener_tracks_level(self) -> None:
        tree = TalentTree(MemoryStore(), level=1)
        tree(SimpleNamespace(level=5))
        self.assertEqual(tree.total_points, 5)

    def test_level_up_through_engine_grants_point(self) -> None:
        store = MemoryStore()
        store.set("quest_engine_progress", b'{"total_xp": 990, "today_xp": 0}')
        now = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
        engine = QuestEngine(store, clock=lambda: now)
        tree = TalentTree(store, level=engine.progress.level)
        engine.subscribe(tree)
        self.assertEqual(tree.available_points, 0)

        engine.report("quests_tab_opened")

        self.assertEqual(engine.progress.level, 1)
        self.assertEqual(tree.available_points, 1)


if __name__ == "__main__":
    unittest.main()

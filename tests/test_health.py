from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from questchat.health import (
    Buff,
    DailyHealthRatings,
    DailyHealthInputs,
    GutStatus,
    HealthBar,
    MoodStatus,
    SleepQuality,
    active_buffs,
    activity_label,
    calculate_hp,
    gut_status_for_rating,
    mood_status_for_rating,
    rating_label,
    sleep_quality_for_rating,
    xp_multiplier,
)
from questchat.store import MemoryStore, StoreError


class HpMathTests(unittest.TestCase):
    def test_empty_day_is_base_hp(self) -> None:
        self.assertEqual(calculate_hp(DailyHealthInputs()), 40)

    def test_mixed_day(self) -> None:
        inputs = DailyHealthInputs(
            hydration_count=2,
            self_care_sessions=1,
            focus_sprints=1,
            gut_status=GutStatus.MEH,
            mood_status=MoodStatus.GOOD,
        )
        self.assertEqual(calculate_hp(inputs), 70)

    def test_caps_and_clamp(self) -> None:
        inputs = DailyHealthInputs(
            hydration_count=10,
            self_care_sessions=5,
            focus_sprints=5,
            gut_status=GutStatus.GREAT,
            mood_status=MoodStatus.GOOD,
        )
        self.assertEqual(calculate_hp(inputs), 100)
        self.assertEqual(calculate_hp(DailyHealthInputs(mood_status=MoodStatus.BAD)), 35)

    def test_buffs_only_add_xp(self) -> None:
        self.assertEqual(xp_multiplier(active_buffs(DailyHealthInputs())), 1.0)
        inputs = DailyHealthInputs(
            hydration_goal_met=True,
            sleep_quality=SleepQuality.OKAY,
            gut_status=GutStatus.GREAT,
            mood_status=MoodStatus.GOOD,
        )
        buffs = active_buffs(inputs)
        self.assertEqual(buffs, [Buff.HYDRATED, Buff.RESTED, Buff.GUT_HAPPY, Buff.RAY_OF_SUNSHINE])
        self.assertEqual(xp_multiplier(buffs), 1.8)

        rough = DailyHealthInputs(sleep_quality=SleepQuality.AWFUL, gut_status=GutStatus.ROUGH, mood_status=MoodStatus.BAD)
        self.assertEqual(active_buffs(rough), [])


class RatingTests(unittest.TestCase):
    def test_rating_mappings(self) -> None:
        self.assertEqual(mood_status_for_rating(1), MoodStatus.BAD)
        self.assertEqual(mood_status_for_rating(3), MoodStatus.NEUTRAL)
        self.assertEqual(mood_status_for_rating(5), MoodStatus.GOOD)
        self.assertEqual(mood_status_for_rating(None), MoodStatus.NONE)
        self.assertEqual(gut_status_for_rating(2), GutStatus.ROUGH)
        self.assertEqual(gut_status_for_rating(4), GutStatus.GREAT)
        self.assertEqual(sleep_quality_for_rating(3), SleepQuality.OKAY)
        self.assertIsNone(sleep_quality_for_rating(0))
        self.assertEqual(rating_label(4), "Good")
        self.assertEqual(rating_label(9), "Not set")
        self.assertEqual(activity_label(2), "Lightly active")
        self.assertEqual(activity_label(None), "Not set")


class FailingStore(MemoryStore):
    def set(self, key: str, value: bytes) -> None:
        raise StoreError("read-only")


class HealthBarTests(unittest.TestCase):
    def setUp(self) -> None:
        self.now = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
        self.store = MemoryStore()
        self.bar = HealthBar(self.store, lambda: self.now)

    def test_inputs_accumulate_within_a_day(self) -> None:
        self.bar.log_hydration()
        self.bar.log_hydration(goal_met=True)
        self.bar.log_hydration()
        self.bar.log_focus_sprint()
        self.bar.set_gut_status(GutStatus.GREAT)

        inputs = self.bar.inputs
        self.assertEqual(inputs.hydration_count, 3)
        self.assertTrue(inputs.hydration_goal_met)
        self.assertEqual(self.bar.hp, 40 + 12 + 3 + 15)
        self.assertIn(Buff.HYDRATED, self.bar.buffs)
        self.assertIn("health_inputs:2026-03-10", self.store.data)

    def test_new_day_starts_fresh(self) -> None:
        self.bar.log_self_care_session()
        self.bar.set_sleep_quality(SleepQuality.GREAT)
        self.now += timedelta(days=1)
        self.assertEqual(self.bar.inputs, DailyHealthInputs())

    def test_unreadable_inputs_reset(self) -> None:
        self.store.set("health_inputs:2026-03-10", b"{broken")
        with self.assertLogs("questchat.health", level="WARNING"):
            self.assertEqual(self.bar.inputs, DailyHealthInputs())

    def test_rate_keeps_raw_ratings_and_sets_statuses(self) -> None:
        self.bar.rate(mood=4, activity=5)
        self.bar.rate(gut=1, sleep=0, activity=9)

        ratings = self.bar.ratings
        self.assertEqual(ratings, DailyHealthRatings(mood=4, gut=1, sleep=None, activity=5))
        self.assertEqual(ratings.labels()["activity"], "Very active")
        self.assertEqual(self.bar.inputs.mood_status, MoodStatus.GOOD)
        self.assertEqual(self.bar.inputs.gut_status, GutStatus.ROUGH)
        self.assertIsNone(self.bar.inputs.sleep_quality)
        self.assertIn("health_ratings:2026-03-10", self.store.data)

        self.now += timedelta(days=1)
        self.assertEqual(self.bar.ratings, DailyHealthRatings())

    def test_stored_ratings_out_of_range_are_dropped(self) -> None:
        self.store.set("health_ratings:2026-03-10", b'{"mood": 7, "activity": 3}')
        self.assertEqual(self.bar.ratings, DailyHealthRatings(activity=3))

    def test_write_failure_is_logged_not_raised(self) -> None:
        bar = HealthBar(FailingStore(), lambda: self.now)
        with self.assertLogs("questchat.health", level="WARNING"):
            inputs = bar.set_mood_status(MoodStatus.GOOD)
        self.assertEqual(inputs.mood_status, MoodStatus.GOOD)


if __name__ == "__main__":
    unittest.main()

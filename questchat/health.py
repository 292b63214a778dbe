from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Callable

from questchat.periods import DEFAULT_TIMEZONE, day_key, resolve_timezone
from questchat.store import KeyValueStore, StoreError

logger = logging.getLogger(__name__)

HEALTH_INPUTS_PREFIX = "health_inputs"
HEALTH_RATINGS_PREFIX = "health_ratings"

BASE_HP = 40
MAX_HP = 100
HYDRATION_HP_PER_LOG, HYDRATION_HP_CAP = 4, 20
SELF_CARE_HP_PER_SESSION, SELF_CARE_HP_CAP = 6, 18
FOCUS_HP_PER_SPRINT, FOCUS_HP_CAP = 3, 6

BUFF_XP_BONUS = 0.2


class GutStatus(str, Enum):
    NONE = "none"
    GREAT = "great"
    MEH = "meh"
    ROUGH = "rough"


class MoodStatus(str, Enum):
    NONE = "none"
    GOOD = "good"
    NEUTRAL = "neutral"
    BAD = "bad"


class SleepQuality(str, Enum):
    AWFUL = "awful"
    OKAY = "okay"
    GREAT = "great"


class Buff(str, Enum):
    HYDRATED = "hydrated"
    RESTED = "rested"
    GUT_HAPPY = "gut_happy"
    RAY_OF_SUNSHINE = "ray_of_sunshine"


GUT_HP = {GutStatus.NONE: 0, GutStatus.GREAT: 15, GutStatus.MEH: 8, GutStatus.ROUGH: 2}
MOOD_HP = {MoodStatus.NONE: 0, MoodStatus.GOOD: 5, MoodStatus.NEUTRAL: 0, MoodStatus.BAD: -5}

RATING_LABELS = {1: "Terrible", 2: "Low", 3: "Okay", 4: "Good", 5: "Great"}
ACTIVITY_LABELS = {1: "Barely moved", 2: "Lightly active", 3: "Some movement", 4: "Active", 5: "Very active"}


def rating_label(rating: int | None) -> str:
    return RATING_LABELS.get(rating, "Not set")


def activity_label(rating: int | None) -> str:
    return ACTIVITY_LABELS.get(rating, "Not set")


def _valid_rating(rating: int | None) -> bool:
    return rating is not None and 1 <= rating <= 5


def mood_status_for_rating(rating: int | None) -> MoodStatus:
    if rating in (1, 2):
        return MoodStatus.BAD
    if rating == 3:
        return MoodStatus.NEUTRAL
    if rating in (4, 5):
        return MoodStatus.GOOD
    return MoodStatus.NONE


def gut_status_for_rating(rating: int | None) -> GutStatus:
    if rating in (1, 2):
        return GutStatus.ROUGH
    if rating == 3:
        return GutStatus.MEH
    if rating in (4, 5):
        return GutStatus.GREAT
    return GutStatus.NONE


def sleep_quality_for_rating(rating: int | None) -> SleepQuality | None:
    if rating in (1, 2):
        return SleepQuality.AWFUL
    if rating == 3:
        return SleepQuality.OKAY
    if rating in (4, 5):
        return SleepQuality.GREAT
    return None


@dataclass
class DailyHealthInputs:
    hydration_count: int = 0
    self_care_sessions: int = 0
    focus_sprints: int = 0
    gut_status: GutStatus = GutStatus.NONE
    mood_status: MoodStatus = MoodStatus.NONE
    sleep_quality: SleepQuality | None = None
    hydration_goal_met: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data["gut_status"] = self.gut_status.value
        data["mood_status"] = self.mood_status.value
        data["sleep_quality"] = self.sleep_quality.value if self.sleep_quality else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> DailyHealthInputs:
        sleep = data.get("sleep_quality")
        return cls(
            hydration_count=int(data.get("hydration_count", 0)),
            self_care_sessions=int(data.get("self_care_sessions", 0)),
            focus_sprints=int(data.get("focus_sprints", 0)),
            gut_status=GutStatus(data.get("gut_status", "none")),
            mood_status=MoodStatus(data.get("mood_status", "none")),
            sleep_quality=SleepQuality(sleep) if sleep else None,
            hydration_goal_met=bool(data.get("hydration_goal_met", False)),
        )


@dataclass
class DailyHealthRatings:
    """Raw 1-5 self-ratings for one day; ``None`` means not rated yet."""

    mood: int | None = None
    gut: int | None = None
    sleep: int | None = None
    activity: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> DailyHealthRatings:
        def pick(name: str) -> int | None:
            value = data.get(name)
            return int(value) if value is not None and _valid_rating(int(value)) else None

        return cls(mood=pick("mood"), gut=pick("gut"), sleep=pick("sleep"), activity=pick("activity"))

    def labels(self) -> dict:
        return {
            "mood": rating_label(self.mood),
            "gut": rating_label(self.gut),
            "sleep": rating_label(self.sleep),
            "activity": activity_label(self.activity),
        }


def calculate_hp(inputs: DailyHealthInputs) -> int:
    total = (
        BASE_HP
        + min(inputs.hydration_count * HYDRATION_HP_PER_LOG, HYDRATION_HP_CAP)
        + min(inputs.self_care_sessions * SELF_CARE_HP_PER_SESSION, SELF_CARE_HP_CAP)
        + min(inputs.focus_sprints * FOCUS_HP_PER_SPRINT, FOCUS_HP_CAP)
        + GUT_HP[inputs.gut_status]
        + MOOD_HP[inputs.mood_status]
    )
    return max(0, min(total, MAX_HP))


def active_buffs(inputs: DailyHealthInputs) -> list[Buff]:
    """Daily buffs only ever add XP; feeling rough never costs anything."""
    buffs = []
    if inputs.hydration_goal_met:
        buffs.append(Buff.HYDRATED)
    if inputs.sleep_quality in (SleepQuality.OKAY, SleepQuality.GREAT):
        buffs.append(Buff.RESTED)
    if inputs.gut_status in (GutStatus.MEH, GutStatus.GREAT):
        buffs.append(Buff.GUT_HAPPY)
    if inputs.mood_status == MoodStatus.GOOD:
        buffs.append(Buff.RAY_OF_SUNSHINE)
    return buffs


def xp_multiplier(buffs: list[Buff]) -> float:
    return round(1.0 + BUFF_XP_BONUS * len(buffs), 2)


class HealthBar:
    """Today's HP inputs, kept per local day in the key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], datetime],
        tz_name: str = DEFAULT_TIMEZONE,
    ) -> None:
        self._store = store
        self._clock = clock
        self._tz = resolve_timezone(tz_name)

    def _key(self, prefix: str = HEALTH_INPUTS_PREFIX) -> str:
        return f"{prefix}:{day_key(self._clock(), self._tz)}"

    @property
    def ratings(self) -> DailyHealthRatings:
        key = self._key(HEALTH_RATINGS_PREFIX)
        try:
            raw = self._store.get(key)
        except (StoreError, OSError) as exc:
            logger.warning("Could not read %s: %s", key, exc)
            return DailyHealthRatings()
        if not raw:
            return DailyHealthRatings()
        try:
            return DailyHealthRatings.from_dict(json.loads(raw))
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Discarding unreadable %s: %s", key, exc)
            return DailyHealthRatings()

    def rate(
        self,
        mood: int | None = None,
        gut: int | None = None,
        sleep: int | None = None,
        activity: int | None = None,
    ) -> DailyHealthRatings:
        """Record any of today's 1-5 ratings; values outside 1-5 are ignored.

        Mood, gut and sleep ratings also set the matching HP status.
        """
        ratings = self.ratings
        if _valid_rating(mood):
            ratings.mood = mood
            self.set_mood_status(mood_status_for_rating(mood))
        if _valid_rating(gut):
            ratings.gut = gut
            self.set_gut_status(gut_status_for_rating(gut))
        if _valid_rating(sleep):
            ratings.sleep = sleep
            self.set_sleep_quality(sleep_quality_for_rating(sleep))
        if _valid_rating(activity):
            ratings.activity = activity
        key = self._key(HEALTH_RATINGS_PREFIX)
        try:
            self._store.set(key, json.dumps(ratings.to_dict()).encode("utf-8"))
        except (StoreError, OSError) as exc:
            logger.warning("Could not persist %s: %s", key, exc)
        return ratings

    @property
    def inputs(self) -> DailyHealthInputs:
        key = self._key()
        try:
            raw = self._store.get(key)
        except (StoreError, OSError) as exc:
            logger.warning("Could not read %s: %s", key, exc)
            return DailyHealthInputs()
        if not raw:
            return DailyHealthInputs()
        try:
            return DailyHealthInputs.from_dict(json.loads(raw))
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Discarding unreadable %s: %s", key, exc)
            return DailyHealthInputs()

    @property
    def hp(self) -> int:
        return calculate_hp(self.inputs)

    @property
    def buffs(self) -> list[Buff]:
        return active_buffs(self.inputs)

    def _update(self, change: Callable[[DailyHealthInputs], None]) -> DailyHealthInputs:
        inputs = self.inputs
        change(inputs)
        key = self._key()
        try:
            self._store.set(key, json.dumps(inputs.to_dict()).encode("utf-8"))
        except (StoreError, OSError) as exc:
            logger.warning("Could not persist %s: %s", key, exc)
        return inputs

    def log_hydration(self, goal_met: bool = False) -> DailyHealthInputs:
        def change(inputs: DailyHealthInputs) -> None:
            inputs.hydration_count += 1
            inputs.hydration_goal_met = inputs.hydration_goal_met or goal_met

        return self._update(change)

    def log_self_care_session(self) -> DailyHealthInputs:
        def change(inputs: DailyHealthInputs) -> None:
            inputs.self_care_sessions += 1

        return self._update(change)

    def log_focus_sprint(self) -> DailyHealthInputs:
        def change(inputs: DailyHealthInputs) -> None:
            inputs.focus_sprints += 1

        return self._update(change)

    def set_gut_status(self, status: GutStatus) -> DailyHealthInputs:
        def change(inputs: DailyHealthInputs) -> None:
            inputs.gut_status = status

        return self._update(change)

    def set_mood_status(self, status: MoodStatus) -> DailyHealthInputs:
        def change(inputs: DailyHealthInputs) -> None:
            inputs.mood_status = status

        return self._update(change)

    def set_sleep_quality(self, quality: SleepQuality | None) -> DailyHealthInputs:
        def change(inputs: DailyHealthInputs) -> None:
            inputs.sleep_quality = quality

        return self._update(change)

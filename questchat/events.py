from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EventKind(str, Enum):
    FOCUS_SESSION_STARTED = "focus_session_started"
    FOCUS_SESSION_COMPLETED = "focus_session_completed"
    HYDRATION_LOGGED = "hydration_logged"
    HP_CHECKIN_COMPLETED = "hp_checkin_completed"
    QUESTS_TAB_OPENED = "quests_tab_opened"
    STATS_TAB_OPENED = "stats_tab_opened"
    DAILY_CORE_SET_COMPLETED = "daily_core_set_completed"


class TimerCategory(str, Enum):
    DEEP_FOCUS = "deep_focus"
    WORK_SPRINT = "work_sprint"
    CHORES_SPRINT = "chores_sprint"
    SELF_CARE = "self_care"
    GAMING_RESET = "gaming_reset"
    QUICK_BREAK = "quick_break"


@dataclass(frozen=True)
class ProgressRule:
    quest_ids: tuple[str, ...]
    weekly: bool = False
    increment: int = 1
    unique_per_day: bool = False


FOCUS_COMPLETE_MINUTES = 25
FOCUS_DEEP_MINUTES = 45

# (ounces reached today, daily quest id), checked in order.
HYDRATION_THRESHOLDS = (
    (8, "HYDRATE_NOW_GLASS"),
    (16, "HYDRATE_CHECKPOINT_16OZ"),
    (32, "HYDRATE_32OZ"),
    (48, "HYDRATE_CHECKPOINT_48OZ"),
    (64, "HYDRATE_64OZ"),
)
HYDRATION_GOAL_OZ = 64
HYDRATION_MULTI_LOGS = 3

TIMER_CATEGORY_RULES = {
    TimerCategory.DEEP_FOCUS: (
        ProgressRule(("FOCUS_DOUBLE_RUN",)),
    ),
    TimerCategory.WORK_SPRINT: (
        ProgressRule(("CHORE_BLITZ", "WORK_SPRINT_25")),
        ProgressRule(("WEEK_CHORE_5_TIMERS",), weekly=True),
    ),
    TimerCategory.CHORES_SPRINT: (
        ProgressRule(("CHORE_BLITZ", "CHORE_THREE_SMALL")),
        ProgressRule(("WEEK_CHORE_5_TIMERS",), weekly=True),
    ),
    TimerCategory.SELF_CARE: (
        ProgressRule(("SELFCARE_SHORT",)),
        ProgressRule(("WEEK_SELFCARE_3_DAYS",), weekly=True, unique_per_day=True),
    ),
    TimerCategory.GAMING_RESET: (),
    TimerCategory.QUICK_BREAK: (),
}


def parse_kind(raw: str | EventKind) -> EventKind | None:
    try:
        return EventKind(raw)
    except ValueError:
        return None


def _int(payload: dict, key: str) -> int:
    try:
        return int(payload.get(key) or 0)
    except (TypeError, ValueError):
        return 0


def _timer_category(payload: dict) -> TimerCategory | None:
    raw = payload.get("category")
    if raw is None:
        return None
    try:
        return TimerCategory(raw)
    except ValueError:
        return None


def _focus_completed(payload: dict) -> list[ProgressRule]:
    minutes = _int(payload, "minutes")
    if minutes <= 0:
        return []
    rules = []
    if minutes >= FOCUS_COMPLETE_MINUTES:
        rules.append(ProgressRule(("COMPLETE_FOCUS_SESSION",)))
    if minutes >= FOCUS_DEEP_MINUTES:
        rules.append(ProgressRule(("FOCUS_DEEP_SESSION", "BONUS_DEEP_FOCUS")))
        rules.append(ProgressRule(("WEEK_FOCUS_3_DEEP",), weekly=True))
    rules.append(ProgressRule(("WEEK_FOCUS_10_SESSIONS",), weekly=True))
    category = _timer_category(payload)
    if category is not None:
        rules.extend(TIMER_CATEGORY_RULES[category])
    return rules


def _hydration_logged(payload: dict) -> list[ProgressRule]:
    # A log without an amount still counts; an explicit zero or negative amount does not.
    if payload.get("ounces") is not None and _int(payload, "ounces") <= 0:
        return []
    total = _int(payload, "total_today")
    rules = [ProgressRule((quest_id,)) for threshold, quest_id in HYDRATION_THRESHOLDS if total >= threshold]
    if total >= HYDRATION_GOAL_OZ:
        rules.append(ProgressRule(("WEEK_HYDRATE_4_DAYS_64OZ",), weekly=True, unique_per_day=True))
    if _int(payload, "log_count") >= HYDRATION_MULTI_LOGS:
        rules.append(ProgressRule(("HYDRATE_MULTI_CHECKPOINT",)))
    return rules


def rules_for(kind: EventKind, payload: dict | None = None) -> list[ProgressRule]:
    """Translate a gameplay event into the quest progress it may advance.

    Payload keys by kind:

    * focus_session_started: ``minutes``
    * focus_session_completed: ``minutes``, optional ``category`` (a TimerCategory value)
    * hydration_logged: optional ``ounces``, ``total_today``, ``log_count``
    * stats_tab_opened: ``after_evening`` (bool)

    Missing or malformed values yield no rules.
    """
    payload = payload or {}
    if kind == EventKind.FOCUS_SESSION_STARTED:
        return [ProgressRule(("PLAN_FOCUS_SESSION",))] if _int(payload, "minutes") > 0 else []
    if kind == EventKind.FOCUS_SESSION_COMPLETED:
        return _focus_completed(payload)
    if kind == EventKind.HYDRATION_LOGGED:
        return _hydration_logged(payload)
    if kind == EventKind.HP_CHECKIN_COMPLETED:
        return [
            ProgressRule(("HEALTHBAR_CHECKIN", "HP_CHECKIN_COMBO")),
            ProgressRule(("WEEK_HP_5_CHECKINS",), weekly=True),
        ]
    if kind == EventKind.QUESTS_TAB_OPENED:
        return [ProgressRule(("LOAD_QUEST_LOG",))]
    if kind == EventKind.STATS_TAB_OPENED:
        return [ProgressRule(("STATS_REVIEW",))] if payload.get("after_evening") else []
    if kind == EventKind.DAILY_CORE_SET_COMPLETED:
        return [ProgressRule(("WEEK_DAILY_CORE_4_DAYS",), weekly=True, unique_per_day=True)]
    return []

from __future__ import annotations

import functools
import json
import logging
import threading
import warnings
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Callable

from questchat.catalog import CHEST_BONUS_XP, QuestDefinition, QuestStatus, get_definition
from questchat.events import EventKind, ProgressRule, parse_kind, rules_for
from questchat.models import EngineSnapshot, PlayerProgress, QuestInstance
from questchat.periods import (
    DEFAULT_TIMEZONE,
    day_key,
    local_date,
    resolve_timezone,
    start_of_day,
    start_of_week,
    week_key,
)
from questchat.rotation import generate_daily, generate_weekly, pick_replacement
from questchat.store import KeyValueStore, StoreError

logger = logging.getLogger(__name__)

DAILY_KEY = "quest_engine_daily"
WEEKLY_KEY = "quest_engine_weekly"
PROGRESS_KEY = "quest_engine_progress"
REROLL_PREFIX = "quest_engine_reroll"
CHEST_PREFIX = "quest_engine_chest"
CHEST_AWARDED_PREFIX = "quest_engine_chest_awarded"
UNIQUE_PREFIX = "quest_engine_unique"

Listener = Callable[[EngineSnapshot], None]


class PersistenceWarning(UserWarning):
    """The in-memory ledger changed but could not be written to the store."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _locked(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


class QuestEngine:
    """Daily/weekly quest ledger with exactly-once XP grants.

    Every public mutation first checks for a day or week rollover against the
    injected clock, applies its change in memory, asks the store to persist
    it, then notifies subscribers synchronously. Domain no-ops (closed gates,
    unknown ids, already completed quests) return False instead of raising.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], datetime] | None = None,
        tz_name: str = DEFAULT_TIMEZONE,
        hydration_enabled: bool = True,
    ) -> None:
        self._store = store
        self._clock = clock or utc_now
        self._tz = resolve_timezone(tz_name)
        self.hydration_enabled = hydration_enabled
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()
        # Unique-per-day markers used today; authoritative even when store writes fail.
        self._unique_marks: set[str] = set()

        now = self._clock()
        self._day_key = day_key(now, self._tz)
        self._week_key = week_key(now, self._tz)
        self._progress = self._load_progress() or PlayerProgress()
        self._daily = self._load_quests(DAILY_KEY, self._day_key)
        self._weekly = self._load_quests(WEEKLY_KEY, self._week_key)
        self._reroll_used = self._load_flag(self._reroll_key())
        self._chest_ready = self._load_flag(self._chest_key())
        self._chest_awarded = self._load_flag(self._chest_awarded_key())

        # True when construction itself prepared a new day or week.
        self.rolled_over_on_load = self.apply_rollover_if_needed(now)

    # Observation

    @property
    def day_key(self) -> str:
        return self._day_key

    @property
    def week_key(self) -> str:
        return self._week_key

    @property
    def daily_quests(self) -> tuple[QuestInstance, ...]:
        return tuple(replace(q) for q in self._daily)

    @property
    def weekly_quests(self) -> tuple[QuestInstance, ...]:
        return tuple(replace(q) for q in self._weekly)

    @property
    def progress(self) -> PlayerProgress:
        return replace(self._progress)

    @property
    def daily_chest_ready(self) -> bool:
        return self._chest_ready

    @property
    def reroll_used_today(self) -> bool:
        return self._reroll_used

    def definition(self, quest_id: str) -> QuestDefinition | None:
        return get_definition(quest_id)

    @_locked
    def snapshot(self) -> EngineSnapshot:
        return EngineSnapshot(
            day_key=self._day_key,
            week_key=self._week_key,
            daily_quests=self.daily_quests,
            weekly_quests=self.weekly_quests,
            progress=self.progress,
            daily_chest_ready=self._chest_ready,
            reroll_used_today=self._reroll_used,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("Quest engine listener %r failed", listener)

    # Rollover

    @_locked
    def apply_rollover_if_needed(self, now: datetime | None = None) -> bool:
        now = now or self._clock()
        today = local_date(now, self._tz)
        new_day = day_key(now, self._tz)
        new_week = week_key(now, self._tz)
        changed = False

        if new_day != self._day_key or self._progress.last_daily_reset != today:
            self._reset_day(now, new_day, today)
            changed = True
        elif not self._daily:
            self._daily = generate_daily(start_of_day(now, self._tz), new_day, self.hydration_enabled)
            self._persist_daily()
            changed = True

        if new_week != self._week_key or not self._weekly:
            logger.info("Weekly rollover %s -> %s", self._week_key, new_week)
            self._week_key = new_week
            self._weekly = generate_weekly(start_of_week(now, self._tz), new_week)
            self._persist_weekly()
            changed = True

        if changed:
            self._notify()
        return changed

    def _reset_day(self, now: datetime, new_day: str, today: date) -> None:
        logger.info("Daily rollover %s -> %s", self._day_key, new_day)
        self._day_key = new_day
        self._progress.last_daily_reset = today
        self._progress.today_xp = 0
        self._reroll_used = False
        self._chest_ready = False
        self._chest_awarded = False
        self._unique_marks.clear()
        self._daily = generate_daily(start_of_day(now, self._tz), new_day, self.hydration_enabled)
        self._persist_daily()
        self._persist_progress()
        self._persist_day_flags()

    # Actions

    @_locked
    def report(self, kind: EventKind | str, payload: dict | None = None) -> bool:
        self.apply_rollover_if_needed()
        event = parse_kind(kind)
        if event is None:
            logger.debug("Ignoring unknown event kind %r", kind)
            return False

        changed = False
        for rule in rules_for(event, payload):
            if self._apply_rule(rule):
                changed = True
        if changed:
            self._notify()
        return changed

    @_locked
    def reroll(self, instance_id: str) -> bool:
        self.apply_rollover_if_needed()
        if self._reroll_used:
            logger.debug("Reroll already used on %s", self._day_key)
            return False
        index = self._daily_index(instance_id)
        if index is None:
            return False
        current = self._daily[index]
        if current.is_complete:
            return False
        definition = get_definition(current.definition_id)
        if definition is None:
            return False
        in_use = {q.definition_id for q in self._daily}
        replacement = pick_replacement(definition, in_use, self._day_key)
        if replacement is None:
            logger.debug("No reroll candidate for %s", current.definition_id)
            return False

        self._daily[index] = QuestInstance(
            definition_id=replacement.id,
            created_at=current.created_at,
            target=replacement.target,
            counts_for_daily_chest=current.counts_for_daily_chest,
        )
        self._reroll_used = True
        logger.info("Rerolled %s -> %s", current.definition_id, replacement.id)
        self._persist_daily()
        self._persist_day_flags()
        self._notify()
        return True

    @_locked
    def mark_completed(self, instance_id: str) -> bool:
        self.apply_rollover_if_needed()
        is_daily = True
        index = self._daily_index(instance_id)
        quests = self._daily
        if index is None:
            is_daily = False
            quests = self._weekly
            index = next((i for i, q in enumerate(quests) if q.id == instance_id), None)
        if index is None or quests[index].is_complete:
            return False

        quest = quests[index]
        quest.progress = max(quest.progress, quest.target)
        self._complete(quest)
        if is_daily:
            self._persist_daily()
            self._evaluate_chest()
        else:
            self._persist_weekly()
        self._persist_progress()
        self._notify()
        return True

    @_locked
    def claim_chest(self) -> bool:
        self.apply_rollover_if_needed()
        if not self._chest_ready:
            return False
        self._chest_ready = False
        self._persist_day_flags()
        self._notify()
        return True

    # Progress

    def _daily_index(self, instance_id: str) -> int | None:
        return next((i for i, q in enumerate(self._daily) if q.id == instance_id), None)

    def _apply_rule(self, rule: ProgressRule) -> bool:
        if rule.increment <= 0:
            return False
        quests = self._weekly if rule.weekly else self._daily
        touched = False
        for quest in quests:
            if quest.definition_id not in rule.quest_ids or quest.is_complete:
                continue
            if rule.unique_per_day:
                marker = self._unique_key(quest.definition_id)
                if marker in self._unique_marks or self._load_flag(marker):
                    self._unique_marks.add(marker)
                    continue
                self._unique_marks.add(marker)
                self._write(marker, b"1")
            quest.progress += rule.increment
            if quest.progress >= quest.target:
                self._complete(quest)
            else:
                quest.status = QuestStatus.IN_PROGRESS
            touched = True

        if not touched:
            return False
        if rule.weekly:
            self._persist_weekly()
        else:
            self._persist_daily()
            self._evaluate_chest()
        self._persist_progress()
        return True

    def _complete(self, quest: QuestInstance) -> None:
        quest.status = QuestStatus.COMPLETED
        if quest.xp_granted:
            return
        definition = get_definition(quest.definition_id)
        reward = definition.xp_reward if definition else 0
        self._progress.grant(reward)
        quest.xp_granted = True
        logger.info("Quest %s completed (+%d XP, total %d)", quest.definition_id, reward, self._progress.total_xp)

    def _evaluate_chest(self) -> None:
        chest = [q for q in self._daily if q.counts_for_daily_chest]
        if not chest or self._chest_awarded:
            return
        if all(q.is_complete for q in chest):
            self._chest_ready = True
            self._chest_awarded = True
            self._progress.grant(CHEST_BONUS_XP)
            logger.info("Daily chest ready on %s (+%d XP)", self._day_key, CHEST_BONUS_XP)
            self._persist_day_flags()
            self._persist_progress()

    # Persistence

    def _reroll_key(self) -> str:
        return f"{REROLL_PREFIX}:{self._day_key}"

    def _chest_key(self) -> str:
        return f"{CHEST_PREFIX}:{self._day_key}"

    def _chest_awarded_key(self) -> str:
        return f"{CHEST_AWARDED_PREFIX}:{self._day_key}"

    def _unique_key(self, definition_id: str) -> str:
        return f"{UNIQUE_PREFIX}:{definition_id}:{self._day_key}"

    def _read(self, key: str) -> bytes | None:
        try:
            return self._store.get(key)
        except (StoreError, OSError) as exc:
            logger.warning("Could not read %s: %s", key, exc)
            return None

    def _write(self, key: str, value: bytes) -> None:
        try:
            self._store.set(key, value)
        except (StoreError, OSError) as exc:
            logger.warning("Could not persist %s: %s", key, exc)
            warnings.warn(f"Quest state {key!r} was not persisted: {exc}", PersistenceWarning, stacklevel=3)

    def _load_flag(self, key: str) -> bool:
        return self._read(key) == b"1"

    def _write_flag(self, key: str, value: bool) -> None:
        self._write(key, b"1" if value else b"0")

    def _load_quests(self, key: str, period: str) -> list[QuestInstance]:
        raw = self._read(key)
        if not raw:
            return []
        try:
            stored = json.loads(raw)
            return [QuestInstance.from_dict(item) for item in stored.get(period, [])]
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Discarding unreadable %s for %s: %s", key, period, exc)
            return []

    def _load_progress(self) -> PlayerProgress | None:
        raw = self._read(PROGRESS_KEY)
        if not raw:
            return None
        try:
            return PlayerProgress.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Discarding unreadable player progress: %s", exc)
            return None

    def _persist_daily(self) -> None:
        payload = {self._day_key: [q.to_dict() for q in self._daily]}
        self._write(DAILY_KEY, json.dumps(payload).encode("utf-8"))

    def _persist_weekly(self) -> None:
        payload = {self._week_key: [q.to_dict() for q in self._weekly]}
        self._write(WEEKLY_KEY, json.dumps(payload).encode("utf-8"))

    def _persist_progress(self) -> None:
        self._write(PROGRESS_KEY, json.dumps(self._progress.to_dict()).encode("utf-8"))

    def _persist_day_flags(self) -> None:
        self._write_flag(self._reroll_key(), self._reroll_used)
        self._write_flag(self._chest_key(), self._chest_ready)
        self._write_flag(self._chest_awarded_key(), self._chest_awarded)

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from questchat import db
from questchat.engine import QuestEngine
from questchat.health import HealthBar
from questchat.leveling import PendingLevelUp, classify_level_up
from questchat.models import EngineSnapshot
from questchat.notifier import Notifier, build_notifier
from questchat.store import KeyValueStore
from questchat.talents import TalentTree
from questchat.titles import PlayerTitles

logger = logging.getLogger(__name__)


class LevelUpAnnouncer:
    """Engine listener that sends a notification whenever the level goes up."""

    def __init__(self, notifier: Notifier, start_level: int, rng: random.Random | None = None) -> None:
        self.notifier = notifier
        self.last_level = start_level
        self.rng = rng
        self.history: list[PendingLevelUp] = []

    def __call__(self, snap: EngineSnapshot) -> None:
        if snap.level <= self.last_level:
            return
        pending = PendingLevelUp(level=snap.level, tier=classify_level_up(self.last_level, snap.level, self.rng))
        self.last_level = snap.level
        self.history.append(pending)
        logger.info("Level up to %d (%s)", pending.level, pending.tier.value)
        self.notifier.announce_level_up(pending)


@dataclass
class Services:
    store: KeyValueStore
    engine: QuestEngine
    health_bar: HealthBar
    notifier: Notifier
    level_ups: LevelUpAnnouncer
    talents: TalentTree
    titles: PlayerTitles
    settings: dict
    # Serializes every request that touches the store.
    lock: threading.RLock = field(default_factory=threading.RLock)


def build_services(
    store: KeyValueStore | None = None,
    clock: Callable[[], datetime] | None = None,
    notifier: Notifier | None = None,
) -> Services:
    settings = db.get_settings()
    store = store or db.SqliteStore()
    clock = clock or db.get_app_now
    notifier = notifier or build_notifier(settings)

    engine = QuestEngine(
        store,
        clock=clock,
        tz_name=settings["timezone"],
        hydration_enabled=bool(settings["hydration_quests_enabled"]),
    )
    level_ups = LevelUpAnnouncer(notifier, engine.progress.level)
    engine.subscribe(level_ups)
    talents = TalentTree(store, level=engine.progress.level)
    engine.subscribe(talents)
    titles = PlayerTitles(store, level=engine.progress.level)
    engine.subscribe(titles)

    return Services(
        store=store,
        engine=engine,
        health_bar=HealthBar(store, clock, settings["timezone"]),
        notifier=notifier,
        level_ups=level_ups,
        talents=talents,
        titles=titles,
        settings=settings,
    )

from __future__ import annotations

import json
import logging

from questchat.catalog import get_definition
from questchat.models import EngineSnapshot
from questchat.store import KeyValueStore, StoreError

logger = logging.getLogger(__name__)

PLAYER_TITLES_KEY = "player_titles"

# Ordered descending so the first match wins.
LEVEL_TITLES: list[tuple[int, str]] = [
    (50, "Mythic Main Character"),
    (30, "Legend of the Daily Grind"),
    (20, "Habit Hero"),
    (10, "Quest Veteran"),
    (5, "Side-Quest Specialist"),
    (1, "Apprentice Adventurer"),
]
STARTING_TITLE = "Fresh Spawn"


def title_for_level(level: int) -> str:
    for threshold, title in LEVEL_TITLES:
        if level >= threshold:
            return title
    return STARTING_TITLE


class PlayerTitles:
    """Level title plus achievement titles the player may equip instead."""

    def __init__(self, store: KeyValueStore, level: int = 0) -> None:
        self._store = store
        self.unlocked_titles: set[str] = set()
        self.equipped_override: str | None = None
        self.base_level_title: str | None = None
        self._load()
        self.update_base_level_title(title_for_level(level))

    @property
    def active_title(self) -> str | None:
        return self.equipped_override or self.base_level_title

    def unlock(self, title: str) -> bool:
        if title in self.unlocked_titles:
            return False
        self.unlocked_titles.add(title)
        logger.info("Title unlocked: %s", title)
        self._save()
        return True

    def equip_override(self, title: str) -> bool:
        if title not in self.unlocked_titles and title != self.base_level_title:
            return False
        self.equipped_override = title
        self._save()
        return True

    def clear_override(self) -> None:
        self.equipped_override = None
        self._save()

    def update_base_level_title(self, title: str) -> None:
        if title == self.base_level_title:
            return
        self.base_level_title = title
        self._save()

    def __call__(self, snap: EngineSnapshot) -> None:
        self.update_base_level_title(title_for_level(snap.level))
        # Finishing a weekly quest unlocks its title as an achievement title.
        for quest in snap.weekly_quests:
            definition = get_definition(quest.definition_id)
            if quest.is_complete and definition is not None:
                self.unlock(definition.title)

    def to_dict(self) -> dict:
        return {
            "active_title": self.active_title,
            "base_level_title": self.base_level_title,
            "equipped_override": self.equipped_override,
            "unlocked_titles": sorted(self.unlocked_titles),
        }

    def _load(self) -> None:
        try:
            raw = self._store.get(PLAYER_TITLES_KEY)
        except (StoreError, OSError) as exc:
            logger.warning("Could not read player titles: %s", exc)
            return
        if not raw:
            return
        try:
            stored = json.loads(raw)
            self.unlocked_titles = {str(t) for t in stored.get("unlocked", [])}
            self.equipped_override = stored.get("override")
            self.base_level_title = stored.get("base")
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Discarding unreadable player titles: %s", exc)

    def _save(self) -> None:
        payload = {
            "unlocked": sorted(self.unlocked_titles),
            "override": self.equipped_override,
            "base": self.base_level_title,
        }
        try:
            self._store.set(PLAYER_TITLES_KEY, json.dumps(payload).encode("utf-8"))
        except (StoreError, OSError) as exc:
            logger.warning("Could not persist player titles: %s", exc)

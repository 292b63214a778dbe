from __future__ import annotations

import hashlib
import logging
import random
from datetime import datetime

from questchat.catalog import (
    DEFINITIONS,
    QuestCategory,
    QuestDefinition,
    QuestType,
    definitions_of,
    get_definition,
)
from questchat.models import QuestInstance

logger = logging.getLogger(__name__)

DAILY_ANCHOR_IDS = ("LOAD_QUEST_LOG", "PLAN_FOCUS_SESSION", "HEALTHBAR_CHECKIN")
DAILY_CORE_PICKS = 2
HABIT_CATEGORIES = (
    QuestCategory.HYDRATION,
    QuestCategory.FOCUS,
    QuestCategory.HP_CORE,
    QuestCategory.CHORES_WORK,
)
CHEST_MINIMUM_INDEX = 3

REQUIRED_WEEKLY_IDS = (
    "WEEK_FOCUS_10_SESSIONS",
    "WEEK_HYDRATE_4_DAYS_64OZ",
    "WEEK_HP_5_CHECKINS",
    "WEEK_DAILY_CORE_4_DAYS",
)
WEEKLY_OPTIONAL_PICKS = 2


def stable_seed(*parts: str) -> int:
    raw = "::".join(parts).encode("utf-8")
    return int(hashlib.sha256(raw).hexdigest()[:16], 16)


def _instance(definition: QuestDefinition, anchor: datetime, counts_for_chest: bool = False) -> QuestInstance:
    return QuestInstance(
        definition_id=definition.id,
        created_at=anchor,
        target=definition.target,
        counts_for_daily_chest=counts_for_chest,
    )


def _shuffled(rng: random.Random, pool: list[QuestDefinition]) -> list[QuestDefinition]:
    picked = list(pool)
    rng.shuffle(picked)
    return picked


def _habit_for(category: QuestCategory) -> QuestDefinition | None:
    # First match in catalog order.
    for definition in definitions_of(QuestType.DAILY_HABIT):
        if definition.category == category:
            return definition
    return None


def generate_daily(anchor: datetime, for_day: str, hydration_enabled: bool = True) -> list[QuestInstance]:
    rng = random.Random(stable_seed("daily", for_day))

    anchors = []
    for quest_id in DAILY_ANCHOR_IDS:
        definition = get_definition(quest_id)
        if definition is None:
            logger.debug("Daily anchor %s missing from catalog, skipping", quest_id)
            continue
        anchors.append(definition)
    quests = [_instance(d, anchor, counts_for_chest=True) for d in anchors]

    core_pool = [d for d in definitions_of(QuestType.DAILY_CORE) if d.id not in DAILY_ANCHOR_IDS]
    if not hydration_enabled:
        core_pool = [d for d in core_pool if d.category != QuestCategory.HYDRATION]
    quests.extend(_instance(d, anchor) for d in _shuffled(rng, core_pool)[:DAILY_CORE_PICKS])

    for category in HABIT_CATEGORIES:
        habit = _habit_for(category)
        if habit is not None:
            quests.append(_instance(habit, anchor))

    # Guarantees at least four chest-contributing quests.
    if len(quests) > CHEST_MINIMUM_INDEX:
        quests[CHEST_MINIMUM_INDEX].counts_for_daily_chest = True

    return quests


def generate_weekly(anchor: datetime, for_week: str) -> list[QuestInstance]:
    rng = random.Random(stable_seed("weekly", for_week))

    quests = []
    for quest_id in REQUIRED_WEEKLY_IDS:
        definition = get_definition(quest_id)
        if definition is None:
            logger.debug("Required weekly quest %s missing from catalog, skipping", quest_id)
            continue
        quests.append(_instance(definition, anchor))

    optional = [d for d in definitions_of(QuestType.WEEKLY) if d.id not in REQUIRED_WEEKLY_IDS]
    quests.extend(_instance(d, anchor) for d in _shuffled(rng, optional)[:WEEKLY_OPTIONAL_PICKS])
    return quests


def reroll_candidates(current: QuestDefinition, exclude_ids: set[str]) -> list[QuestDefinition]:
    return [
        d
        for d in DEFINITIONS
        if d.type == current.type
        and d.difficulty == current.difficulty
        and d.category == current.category
        and d.id != current.id
        and d.id not in exclude_ids
    ]


def pick_replacement(current: QuestDefinition, exclude_ids: set[str], for_day: str) -> QuestDefinition | None:
    candidates = reroll_candidates(current, exclude_ids)
    if not candidates:
        return None
    rng = random.Random(stable_seed("reroll", for_day, current.id))
    return rng.choice(candidates)

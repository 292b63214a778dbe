from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class QuestType(str, Enum):
    DAILY_CORE = "daily_core"
    DAILY_HABIT = "daily_habit"
    BONUS = "bonus"
    WEEKLY = "weekly"


class QuestCategory(str, Enum):
    FOCUS = "focus"
    HYDRATION = "hydration"
    HP_CORE = "hp_core"
    CHORES_WORK = "chores_work"
    META = "meta"


class QuestDifficulty(str, Enum):
    TINY = "tiny"
    SMALL = "small"
    MEDIUM = "medium"
    BIG = "big"

    @property
    def xp_reward(self) -> int:
        return DIFFICULTY_XP[self]


class QuestStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


DIFFICULTY_XP = {
    QuestDifficulty.TINY: 10,
    QuestDifficulty.SMALL: 20,
    QuestDifficulty.MEDIUM: 35,
    QuestDifficulty.BIG: 60,
}

CHEST_BONUS_XP = 75


@dataclass(frozen=True)
class QuestDefinition:
    id: str
    type: QuestType
    category: QuestCategory
    difficulty: QuestDifficulty
    xp_reward: int
    title: str
    subtitle: str
    counts_for_daily_chest_default: bool = False
    target: int = 1


def _build_definitions() -> tuple[QuestDefinition, ...]:
    defs: list[QuestDefinition] = []

    def add(
        quest_id: str,
        quest_type: QuestType,
        category: QuestCategory,
        difficulty: QuestDifficulty,
        title: str,
        subtitle: str,
        counts_for_chest: bool = False,
        target: int = 1,
    ) -> None:
        defs.append(
            QuestDefinition(
                id=quest_id,
                type=quest_type,
                category=category,
                difficulty=difficulty,
                xp_reward=difficulty.xp_reward,
                title=title,
                subtitle=subtitle,
                counts_for_daily_chest_default=counts_for_chest,
                target=target,
            )
        )

    core, habit, bonus, weekly = QuestType.DAILY_CORE, QuestType.DAILY_HABIT, QuestType.BONUS, QuestType.WEEKLY
    focus, hydration, hp, chores, meta = (
        QuestCategory.FOCUS,
        QuestCategory.HYDRATION,
        QuestCategory.HP_CORE,
        QuestCategory.CHORES_WORK,
        QuestCategory.META,
    )
    tiny, small, medium, big = QuestDifficulty.TINY, QuestDifficulty.SMALL, QuestDifficulty.MEDIUM, QuestDifficulty.BIG

    # Core
    add("LOAD_QUEST_LOG", core, meta, tiny, "Load today's quest log", "Open the Quests tab", counts_for_chest=True)
    add("PLAN_FOCUS_SESSION", core, focus, medium, "Plan one focus session", "Start a 15+ minute timer", counts_for_chest=True)
    add("COMPLETE_FOCUS_SESSION", core, focus, big, "Finish a focus session", "Complete a 25+ minute timer")
    add("HEALTHBAR_CHECKIN", core, hp, medium, "HealthBar check-in", "Update mood, gut, and sleep", counts_for_chest=True)
    add("HYDRATE_CHECKPOINT_16OZ", core, hydration, small, "Hydrate checkpoint", "Reach 16 oz of water")
    add("HYDRATE_CHECKPOINT_48OZ", core, hydration, medium, "Hydrate halfway", "Reach 48 oz of water")
    add("IRL_PATCH_UPDATE", core, hp, small, "IRL patch update", "Stretch or move for 2 minutes")
    add("CHORE_BLITZ", core, chores, medium, "Chore blitz", "Complete a chores timer")
    add("STATS_REVIEW", core, meta, tiny, "Check your stats", "Open stats after 7pm")
    add("WINDDOWN_ROUTINE", core, hp, small, "Wind-down routine", "Evening check-in")

    # Habits: hydration
    add("HYDRATE_NOW_GLASS", habit, hydration, tiny, "Potion sip", "Drink a glass right now")
    add("HYDRATE_32OZ", habit, hydration, small, "Halfway to full flask", "Hit 32 oz today")
    add("HYDRATE_64OZ", habit, hydration, medium, "Full flask kind of day", "Hit 64 oz today")
    add("HYDRATE_MULTI_CHECKPOINT", habit, hydration, medium, "Split the potions", "Log water 3 times", target=3)

    # Habits: focus
    add("FOCUS_DOUBLE_RUN", habit, focus, small, "Two focus runs", "Finish two focus sessions", target=2)
    add("FOCUS_DEEP_SESSION", habit, focus, medium, "Deep focus", "Finish a 45+ minute session")

    # Habits: hp core
    add("HP_CHECKIN_COMBO", habit, hp, medium, "Triple check-in", "Mood, gut, sleep set")
    add("HP_STRETCH_TRIPLE", habit, hp, medium, "Stretch combo", "Stretch three times", target=3)
    add("SELFCARE_SHORT", habit, hp, small, "Quick self-care", "Finish a self-care timer")

    # Habits: chores/work
    add("CHORE_THREE_SMALL", habit, chores, medium, "Three tiny wins", "Three chores timers", target=3)
    add("WORK_SPRINT_25", habit, chores, big, "Work sprint", "25 minute work timer")
    add("WORK_EARLY_BLOCK", habit, chores, small, "Early shift", "Work before noon")

    # Bonus
    add("BONUS_DEEP_FOCUS", bonus, focus, medium, "Bonus: Deep focus", "Finish a long session")

    # Weekly
    add("WEEK_FOCUS_10_SESSIONS", weekly, focus, medium, "Weekly focus grind", "Complete 10 focus sessions", target=10)
    add("WEEK_FOCUS_3_DEEP", weekly, focus, big, "Deep work trilogy", "Finish 3 long sessions", target=3)
    add("WEEK_HYDRATE_4_DAYS_64OZ", weekly, hydration, medium, "Hydration hero", "Hit 64 oz on 4 days", target=4)
    add("WEEK_CHORE_5_TIMERS", weekly, chores, medium, "Dungeon janitor", "Run 5 chores timers", target=5)
    add("WEEK_HP_5_CHECKINS", weekly, hp, medium, "Keep an eye on the bar", "5 HP check-ins", target=5)
    add("WEEK_DAILY_CORE_4_DAYS", weekly, meta, big, "Four solid days", "Finish core dailies on 4 days", target=4)
    add("WEEK_SELFCARE_3_DAYS", weekly, hp, medium, "Pamper the protagonist", "Self-care on 3 days", target=3)
    add("WEEK_MOVEMENT_3_DAYS", weekly, hp, medium, "Keep moving", "Move on 3 days", target=3)

    seen: set[str] = set()
    for definition in defs:
        if definition.id in seen:
            raise RuntimeError(f"Duplicate quest definition id: {definition.id}")
        seen.add(definition.id)
    return tuple(defs)


DEFINITIONS = _build_definitions()
_BY_ID = {d.id: d for d in DEFINITIONS}


def get_definition(quest_id: str) -> QuestDefinition | None:
    return _BY_ID.get(quest_id)


def definitions_of(quest_type: QuestType) -> list[QuestDefinition]:
    return [d for d in DEFINITIONS if d.type == quest_type]

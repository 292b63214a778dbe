from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum

XP_PER_LEVEL = 1000
JACKPOT_EVERY = 10
MILESTONE_EVERY = 5
RANDOM_JACKPOT_CHANCE = 0.03


def level_for_xp(total_xp: int) -> int:
    # Uncapped; any display cap belongs to the presentation layer.
    return max(0, total_xp) // XP_PER_LEVEL


def xp_into_level(total_xp: int) -> int:
    return max(0, total_xp) % XP_PER_LEVEL


def xp_to_next_level(total_xp: int) -> int:
    return XP_PER_LEVEL - xp_into_level(total_xp)


class LevelUpTier(str, Enum):
    NORMAL = "normal"
    MILESTONE = "milestone"
    JACKPOT = "jackpot"


@dataclass(frozen=True)
class PendingLevelUp:
    level: int
    tier: LevelUpTier


def classify_level_up(old_level: int, new_level: int, rng: random.Random | None = None) -> LevelUpTier:
    """Pick the celebration tier for a level-up.

    Every 10th level is a jackpot and every 5th a milestone; other levels
    have a small random chance of a surprise jackpot. Not reproducible unless
    a seeded ``rng`` is passed.
    """
    if new_level % JACKPOT_EVERY == 0:
        return LevelUpTier.JACKPOT
    if new_level % MILESTONE_EVERY == 0:
        return LevelUpTier.MILESTONE
    if (rng or random).random() < RANDOM_JACKPOT_CHANCE:
        return LevelUpTier.JACKPOT
    return LevelUpTier.NORMAL

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from questchat.models import EngineSnapshot
from questchat.store import KeyValueStore, StoreError

logger = logging.getLogger(__name__)

TALENT_TREE_KEY = "talent_tree"
POINTS_PER_TIER = 5
STAGE_COUNT = 10
MASTERED_PER_STAGE = 2


@dataclass(frozen=True)
class TalentNode:
    id: str
    name: str
    tier: int
    max_ranks: int
    prerequisite_ids: tuple[str, ...] = ()


DEFAULT_NODES = (
    TalentNode("HYDRATION_ADEPT", "Hydration Adept", 1, 3),
    TalentNode("FOCUS_FUNDAMENTALS", "Focus Fundamentals", 1, 3),
    TalentNode("SELF_CARE_BASICS", "Self-care Basics", 1, 3),
    TalentNode("STEADY_SIPS", "Steady Sips", 2, 2, ("HYDRATION_ADEPT",)),
    TalentNode("DEEP_WORK", "Deep Work", 2, 3, ("FOCUS_FUNDAMENTALS",)),
    TalentNode("RESTFUL_NIGHTS", "Restful Nights", 2, 3, ("SELF_CARE_BASICS",)),
    TalentNode("CHORE_MOMENTUM", "Chore Momentum", 3, 3),
    TalentNode("IRON_ROUTINE", "Iron Routine", 3, 2, ("DEEP_WORK", "RESTFUL_NIGHTS")),
    TalentNode("QUESTMASTER", "Questmaster", 4, 1, ("IRON_ROUTINE",)),
)


class TalentTree:
    """Talent ranks bought with one point per player level.

    Points are capped at the sum of every node's max ranks. A node in tier N
    needs ``(N - 1) * 5`` points already spent, and each prerequisite must be
    at max rank. If the player's level drops below the points spent, every
    rank is cleared.
    """

    def __init__(self, store: KeyValueStore, nodes: tuple[TalentNode, ...] = DEFAULT_NODES, level: int = 0) -> None:
        self._store = store
        self.nodes = tuple(nodes)
        self._by_id = {n.id: n for n in self.nodes}
        self._ranks = self._load()
        self.total_points = 0
        self.level = level
        self.apply_level(level)

    @property
    def max_points(self) -> int:
        return sum(n.max_ranks for n in self.nodes)

    @property
    def spent_points(self) -> int:
        return sum(self._ranks.values())

    @property
    def available_points(self) -> int:
        return max(self.total_points - self.spent_points, 0)

    @property
    def mastered_count(self) -> int:
        return sum(1 for n in self.nodes if self.rank(n.id) >= n.max_ranks)

    @property
    def stage_index(self) -> int:
        return min(STAGE_COUNT - 1, self.mastered_count // MASTERED_PER_STAGE)

    @property
    def growth_progress(self) -> float:
        return self.stage_index / (STAGE_COUNT - 1)

    def rank(self, node_id: str) -> int:
        return self._ranks.get(node_id, 0)

    def can_spend(self, node_id: str) -> bool:
        node = self._by_id.get(node_id)
        if node is None or self.available_points <= 0:
            return False
        if self.rank(node_id) >= node.max_ranks:
            return False
        if self.spent_points < max((node.tier - 1) * POINTS_PER_TIER, 0):
            return False
        for prereq_id in node.prerequisite_ids:
            prereq = self._by_id.get(prereq_id)
            if prereq is None or self.rank(prereq_id) < prereq.max_ranks:
                return False
        return True

    def spend(self, node_id: str) -> bool:
        if not self.can_spend(node_id):
            return False
        self._ranks[node_id] = self.rank(node_id) + 1
        logger.info("Talent %s raised to rank %d", node_id, self._ranks[node_id])
        self._save()
        return True

    def apply_level(self, level: int) -> None:
        self.level = level
        self.total_points = min(max(level, 0), self.max_points)
        if self.spent_points > self.total_points:
            logger.info("Level %d cannot cover %d spent talent points, clearing ranks", level, self.spent_points)
            self._ranks = {}
            self._save()

    def reset(self) -> None:
        self._ranks = {}
        self._save()

    def __call__(self, snap: EngineSnapshot) -> None:
        if snap.level != self.level:
            self.apply_level(snap.level)

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "total_points": self.total_points,
            "spent_points": self.spent_points,
            "available_points": self.available_points,
            "stage_index": self.stage_index,
            "growth_progress": self.growth_progress,
            "nodes": [
                {
                    "id": n.id,
                    "name": n.name,
                    "tier": n.tier,
                    "max_ranks": n.max_ranks,
                    "prerequisite_ids": list(n.prerequisite_ids),
                    "rank": self.rank(n.id),
                    "can_spend": self.can_spend(n.id),
                }
                for n in self.nodes
            ],
        }

    def _load(self) -> dict[str, int]:
        try:
            raw = self._store.get(TALENT_TREE_KEY)
        except (StoreError, OSError) as exc:
            logger.warning("Could not read talent tree: %s", exc)
            return {}
        if not raw:
            return {}
        try:
            stored = json.loads(raw)["ranks"]
            return {
                node_id: min(int(rank), self._by_id[node_id].max_ranks)
                for node_id, rank in stored.items()
                if node_id in self._by_id and int(rank) > 0
            }
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Discarding unreadable talent tree: %s", exc)
            return {}

    def _save(self) -> None:
        try:
            self._store.set(TALENT_TREE_KEY, json.dumps({"ranks": self._ranks}).encode("utf-8"))
        except (StoreError, OSError) as exc:
            logger.warning("Could not persist talent tree: %s", exc)

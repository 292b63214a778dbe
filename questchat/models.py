from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime

from questchat.catalog import QuestStatus
from questchat.leveling import level_for_xp, xp_into_level, xp_to_next_level


def new_instance_id() -> str:
    return uuid.uuid4().hex


@dataclass
class QuestInstance:
    definition_id: str
    created_at: datetime
    target: int = 1
    status: QuestStatus = QuestStatus.PENDING
    progress: int = 0
    counts_for_daily_chest: bool = False
    xp_granted: bool = False
    id: str = field(default_factory=new_instance_id)

    @property
    def is_complete(self) -> bool:
        return self.status == QuestStatus.COMPLETED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "definition_id": self.definition_id,
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
            "progress": self.progress,
            "target": self.target,
            "counts_for_daily_chest": self.counts_for_daily_chest,
            "xp_granted": self.xp_granted,
        }

    @classmethod
    def from_dict(cls, data: dict) -> QuestInstance:
        return cls(
            id=str(data["id"]),
            definition_id=str(data["definition_id"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            status=QuestStatus(data["status"]),
            progress=int(data["progress"]),
            target=int(data["target"]),
            counts_for_daily_chest=bool(data["counts_for_daily_chest"]),
            xp_granted=bool(data["xp_granted"]),
        )


@dataclass
class PlayerProgress:
    total_xp: int = 0
    today_xp: int = 0
    last_daily_reset: date | None = None

    @property
    def level(self) -> int:
        return level_for_xp(self.total_xp)

    @property
    def xp_into_current_level(self) -> int:
        return xp_into_level(self.total_xp)

    @property
    def xp_to_next_level(self) -> int:
        return xp_to_next_level(self.total_xp)

    def grant(self, amount: int) -> None:
        self.total_xp += amount
        self.today_xp += amount

    def to_dict(self) -> dict:
        return {
            "total_xp": self.total_xp,
            "today_xp": self.today_xp,
            "last_daily_reset": self.last_daily_reset.isoformat() if self.last_daily_reset else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> PlayerProgress:
        raw_reset = data.get("last_daily_reset")
        return cls(
            total_xp=int(data["total_xp"]),
            today_xp=int(data["today_xp"]),
            last_daily_reset=date.fromisoformat(raw_reset) if raw_reset else None,
        )


@dataclass(frozen=True)
class EngineSnapshot:
    """Read-only view of the ledger handed to observers."""

    day_key: str
    week_key: str
    daily_quests: tuple[QuestInstance, ...]
    weekly_quests: tuple[QuestInstance, ...]
    progress: PlayerProgress
    daily_chest_ready: bool
    reroll_used_today: bool

    @property
    def level(self) -> int:
        return self.progress.level

    def to_dict(self) -> dict:
        return {
            "day_key": self.day_key,
            "week_key": self.week_key,
            "daily_quests": [q.to_dict() for q in self.daily_quests],
            "weekly_quests": [q.to_dict() for q in self.weekly_quests],
            "progress": {
                **self.progress.to_dict(),
                "level": self.progress.level,
                "xp_into_current_level": self.progress.xp_into_current_level,
                "xp_to_next_level": self.progress.xp_to_next_level,
            },
            "daily_chest_ready": self.daily_chest_ready,
            "reroll_used_today": self.reroll_used_today,
        }

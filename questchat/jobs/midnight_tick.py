from __future__ import annotations

from questchat.db import init_db
from questchat.services import build_services


def main() -> dict:
    init_db()
    services = build_services()
    engine = services.engine
    rolled = engine.apply_rollover_if_needed() or engine.rolled_over_on_load
    snap = engine.snapshot()
    chest_quests = sum(1 for q in snap.daily_quests if q.counts_for_daily_chest)
    summary = {
        "day": snap.day_key,
        "week": snap.week_key,
        "rolled_over": rolled,
        "daily_quests": len(snap.daily_quests),
        "chest_quests": chest_quests,
        "level": snap.level,
    }
    services.notifier.send(
        "QuestChat Daily Reset",
        f"{services.settings['name']}, {summary['daily_quests']} quests are ready for {summary['day']} "
        f"({chest_quests} open the chest). Level {summary['level']}.",
    )
    return summary


if __name__ == "__main__":
    main()

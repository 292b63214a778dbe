from __future__ import annotations

import json
import logging
import os
import threading
import warnings
from typing import Callable

from fastapi import Depends, FastAPI, Form, Request
from fastapi.responses import JSONResponse

from questchat.db import (
    export_save_data,
    get_settings,
    import_save_data,
    init_db,
    testing_advance_day,
    update_settings,
)
from questchat.engine import PersistenceWarning, QuestEngine
from questchat.events import parse_kind
from questchat.health import active_buffs, calculate_hp, xp_multiplier
from questchat.models import QuestInstance
from questchat.services import Services, build_services

logger = logging.getLogger(__name__)

app = FastAPI(title="QuestChat Engine")
_services_lock = threading.Lock()


@app.on_event("startup")
def startup() -> None:
    logging.basicConfig(
        level=os.environ.get("QUESTCHAT_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    init_db()
    with _services_lock:
        if getattr(app.state, "services", None) is None:
            app.state.services = build_services()


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        with _services_lock:
            services = getattr(request.app.state, "services", None)
            if services is None:
                init_db()
                services = build_services()
                request.app.state.services = services
    return services


def _rebuild_services(request: Request) -> Services:
    with _services_lock:
        request.app.state.services = build_services()
        return request.app.state.services


def _quest_view(engine: QuestEngine, quest: QuestInstance) -> dict:
    view = quest.to_dict()
    definition = engine.definition(quest.definition_id)
    if definition is not None:
        view.update(
            {
                "title": definition.title,
                "subtitle": definition.subtitle,
                "type": definition.type.value,
                "category": definition.category.value,
                "difficulty": definition.difficulty.value,
                "xp_reward": definition.xp_reward,
            }
        )
    return view


def state_context(engine: QuestEngine) -> dict:
    snap = engine.snapshot().to_dict()
    snap["daily_quests"] = [_quest_view(engine, q) for q in engine.daily_quests]
    snap["weekly_quests"] = [_quest_view(engine, q) for q in engine.weekly_quests]
    return snap


def _run(services: Services, action: Callable[[], bool]) -> JSONResponse:
    with services.lock, warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", PersistenceWarning)
        changed = action()
        context = state_context(services.engine)
    problems = [str(w.message) for w in caught if issubclass(w.category, PersistenceWarning)]
    return JSONResponse({"changed": changed, "warnings": problems, "state": context})


@app.get("/api/state", response_class=JSONResponse)
def state(services: Services = Depends(get_services)) -> JSONResponse:
    return _run(services, services.engine.apply_rollover_if_needed)


@app.post("/api/events/{kind}", response_class=JSONResponse)
def report_event(
    kind: str,
    minutes: int = Form(0),
    category: str = Form(""),
    ounces: int | None = Form(None),
    total_today: int = Form(0),
    log_count: int = Form(0),
    after_evening: bool = Form(False),
    services: Services = Depends(get_services),
) -> JSONResponse:
    event = parse_kind(kind)
    if event is None:
        return JSONResponse({"error": f"Unknown event kind: {kind}"}, status_code=400)
    payload = {
        "minutes": minutes,
        "category": category or None,
        "ounces": ounces,
        "total_today": total_today,
        "log_count": log_count,
        "after_evening": after_evening,
    }
    return _run(services, lambda: services.engine.report(event, payload))


@app.post("/api/quests/{instance_id}/reroll", response_class=JSONResponse)
def reroll_quest(instance_id: str, services: Services = Depends(get_services)) -> JSONResponse:
    return _run(services, lambda: services.engine.reroll(instance_id))


@app.post("/api/quests/{instance_id}/complete", response_class=JSONResponse)
def complete_quest(instance_id: str, services: Services = Depends(get_services)) -> JSONResponse:
    return _run(services, lambda: services.engine.mark_completed(instance_id))


@app.post("/api/chest/claim", response_class=JSONResponse)
def claim_chest(services: Services = Depends(get_services)) -> JSONResponse:
    return _run(services, services.engine.claim_chest)


def health_context(services: Services) -> dict:
    inputs = services.health_bar.inputs
    ratings = services.health_bar.ratings
    buffs = active_buffs(inputs)
    return {
        "hp": calculate_hp(inputs),
        "inputs": inputs.to_dict(),
        "ratings": ratings.to_dict(),
        "labels": ratings.labels(),
        "buffs": [b.value for b in buffs],
        "xp_multiplier": xp_multiplier(buffs),
    }


@app.get("/api/health", response_class=JSONResponse)
def health(services: Services = Depends(get_services)) -> JSONResponse:
    with services.lock:
        return JSONResponse(health_context(services))


@app.post("/api/health/hydration", response_class=JSONResponse)
def health_hydration(goal_met: bool = Form(False), services: Services = Depends(get_services)) -> JSONResponse:
    with services.lock:
        services.health_bar.log_hydration(goal_met=goal_met)
        return JSONResponse(health_context(services))


@app.post("/api/health/self-care", response_class=JSONResponse)
def health_self_care(services: Services = Depends(get_services)) -> JSONResponse:
    with services.lock:
        services.health_bar.log_self_care_session()
        return JSONResponse(health_context(services))


@app.post("/api/health/focus-sprint", response_class=JSONResponse)
def health_focus_sprint(services: Services = Depends(get_services)) -> JSONResponse:
    with services.lock:
        services.health_bar.log_focus_sprint()
        return JSONResponse(health_context(services))


@app.post("/api/health/ratings", response_class=JSONResponse)
def health_ratings(
    mood: int = Form(0),
    gut: int = Form(0),
    sleep: int = Form(0),
    activity: int = Form(0),
    services: Services = Depends(get_services),
) -> JSONResponse:
    with services.lock:
        services.health_bar.rate(mood=mood, gut=gut, sleep=sleep, activity=activity)
        return JSONResponse(health_context(services))


def profile_context(services: Services) -> dict:
    return {
        "level": services.engine.progress.level,
        "talents": services.talents.to_dict(),
        "titles": services.titles.to_dict(),
    }


@app.get("/api/profile", response_class=JSONResponse)
def profile(services: Services = Depends(get_services)) -> JSONResponse:
    with services.lock:
        return JSONResponse(profile_context(services))


@app.post("/api/talents/{node_id}/spend", response_class=JSONResponse)
def spend_talent(node_id: str, services: Services = Depends(get_services)) -> JSONResponse:
    with services.lock:
        changed = services.talents.spend(node_id)
        return JSONResponse({"changed": changed, "profile": profile_context(services)})


@app.post("/api/talents/reset", response_class=JSONResponse)
def reset_talents(services: Services = Depends(get_services)) -> JSONResponse:
    with services.lock:
        services.talents.reset()
        return JSONResponse({"changed": True, "profile": profile_context(services)})


@app.post("/api/titles/equip", response_class=JSONResponse)
def equip_title(title: str = Form(...), services: Services = Depends(get_services)) -> JSONResponse:
    with services.lock:
        changed = services.titles.equip_override(title)
        return JSONResponse({"changed": changed, "profile": profile_context(services)})


@app.post("/api/titles/clear", response_class=JSONResponse)
def clear_title(services: Services = Depends(get_services)) -> JSONResponse:
    with services.lock:
        services.titles.clear_override()
        return JSONResponse({"changed": True, "profile": profile_context(services)})


@app.get("/api/settings", response_class=JSONResponse)
def settings() -> JSONResponse:
    init_db()
    return JSONResponse(get_settings())


@app.post("/api/settings", response_class=JSONResponse)
def save_settings(
    request: Request,
    name: str = Form(...),
    timezone: str = Form("UTC"),
    hydration_quests_enabled: bool = Form(True),
    testing_mode: bool = Form(False),
    discord_webhook_url: str = Form(""),
    ntfy_topic_url: str = Form(""),
) -> JSONResponse:
    init_db()
    update_settings(
        name=name,
        tz_name=timezone,
        hydration_quests_enabled=hydration_quests_enabled,
        testing_mode=testing_mode,
        discord_webhook_url=discord_webhook_url,
        ntfy_topic_url=ntfy_topic_url,
    )
    _rebuild_services(request)
    return JSONResponse(get_settings())


@app.post("/testing/advance-day", response_class=JSONResponse)
def advance_day(services: Services = Depends(get_services)) -> JSONResponse:
    if not get_settings()["testing_mode"]:
        return JSONResponse({"error": "Testing mode is off"}, status_code=403)
    testing_advance_day(1)
    return _run(services, services.engine.apply_rollover_if_needed)


@app.get("/export")
def export_save() -> JSONResponse:
    init_db()
    return JSONResponse(export_save_data())


@app.post("/import")
def import_save(request: Request, payload: str = Form(...)) -> JSONResponse:
    try:
        data = json.loads(payload)
    except ValueError:
        return JSONResponse({"error": "Save data is not valid JSON"}, status_code=400)
    init_db()
    import_save_data(data)
    services = _rebuild_services(request)
    return JSONResponse(state_context(services.engine))

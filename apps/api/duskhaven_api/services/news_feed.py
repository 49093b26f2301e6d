"""Service for turning notable world events into durable news items."""

from __future__ import annotations

from typing import Any
import logging
import os

from packages.duskhaven_core.sim import EventSink, WorldEvent, WorldEventKind

from ..storage.worlds import append_news, list_news


logger = logging.getLogger("duskhaven_api.news")

NEWSWORTHY_KINDS = {
    WorldEventKind.DEATH,
    WorldEventKind.GANG_FORMED,
    WorldEventKind.GANG_DISSOLVED,
    WorldEventKind.GANG_BETRAYAL,
    WorldEventKind.TOWN_CONTROL_CHANGED,
    WorldEventKind.LEVEL_UP,
    WorldEventKind.RUMOR,
}


def _truthy_env(name: str, default: bool = False) -> bool:
    raw = str(os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def news_enabled() -> bool:
    return _truthy_env("DUSKHAVEN_NEWS_ENABLED", default=True)


def make_news_sink(world_id: str) -> EventSink:
    def _sink(event: WorldEvent) -> None:
        if event.kind not in NEWSWORTHY_KINDS or not news_enabled():
            return
        append_news(world_id=world_id, event=event.as_dict())
        logger.debug("[NEWS] Recorded: world_id='%s', seq=%d, kind=%s", world_id, event.seq, event.kind.value)

    return _sink


def world_news(world_id: str, *, limit: int = 50) -> list[dict[str, Any]]:
    return list_news(world_id=world_id, limit=limit)

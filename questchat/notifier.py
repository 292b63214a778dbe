from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.request

from questchat.leveling import LevelUpTier, PendingLevelUp

logger = logging.getLogger(__name__)

LEVEL_UP_TITLES = {
    LevelUpTier.NORMAL: "Level up!",
    LevelUpTier.MILESTONE: "Milestone level!",
    LevelUpTier.JACKPOT: "Jackpot level!",
}


class Notifier:
    def send(self, title: str, body: str, priority: str = "normal") -> None:
        raise NotImplementedError

    def announce_level_up(self, pending: PendingLevelUp) -> None:
        priority = "normal" if pending.tier == LevelUpTier.NORMAL else "high"
        self.send(LEVEL_UP_TITLES[pending.tier], f"You reached level {pending.level}.", priority=priority)


class NoopNotifier(Notifier):
    def send(self, title: str, body: str, priority: str = "normal") -> None:
        logger.debug("Notification dropped: %s", title)


class _HttpNotifier(Notifier):
    max_attempts = 3
    timeout_s = 5
    backoff_s = 0.25

    def _post(self, url: str, data: bytes, headers: dict[str, str]) -> bool:
        req = urllib.request.Request(url, data=data, headers=headers, method="POST")
        for attempt in range(1, self.max_attempts + 1):
            try:
                with urllib.request.urlopen(req, timeout=self.timeout_s) as resp:
                    resp.read()
                return True
            except (urllib.error.URLError, TimeoutError, OSError) as exc:
                if attempt == self.max_attempts:
                    logger.warning("Notification to %s failed after %d attempts: %s", url, attempt, exc)
                    return False
                time.sleep(self.backoff_s * attempt)
        return False


class DiscordNotifier(_HttpNotifier):
    def __init__(self, webhook_url: str) -> None:
        self.webhook_url = webhook_url

    def send(self, title: str, body: str, priority: str = "normal") -> None:
        content = json.dumps({"content": f"**{title}**\n{body}"}).encode("utf-8")
        self._post(self.webhook_url, content, {"Content-Type": "application/json"})


class NtfyNotifier(_HttpNotifier):
    def __init__(self, topic_url: str) -> None:
        self.topic_url = topic_url

    def send(self, title: str, body: str, priority: str = "normal") -> None:
        headers = {"Title": title, "Priority": "4" if priority == "high" else "3"}
        self._post(self.topic_url, body.encode("utf-8"), headers)


def build_notifier(settings: dict) -> Notifier:
    if settings.get("discord_webhook_url"):
        return DiscordNotifier(settings["discord_webhook_url"])
    if settings.get("ntfy_topic_url"):
        return NtfyNotifier(settings["ntfy_topic_url"])
    return NoopNotifier()

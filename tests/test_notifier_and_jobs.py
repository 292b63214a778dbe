from __future__ import annotations

import json
import tempfile
import unittest
import urllib.error
from pathlib import Path
from unittest.mock import MagicMock, patch

import questchat.db as db
import run
from questchat.jobs import midnight_tick
from questchat.notifier import DiscordNotifier, NoopNotifier, NtfyNotifier, build_notifier


class NotifierTests(unittest.TestCase):
    def test_build_notifier_prefers_discord(self) -> None:
        self.assertIsInstance(build_notifier({"discord_webhook_url": "https://d", "ntfy_topic_url": "https://n"}), DiscordNotifier)
        self.assertIsInstance(build_notifier({"discord_webhook_url": "", "ntfy_topic_url": "https://n"}), NtfyNotifier)
        self.assertIsInstance(build_notifier({}), NoopNotifier)

    @patch("questchat.notifier.urllib.request.urlopen")
    def test_discord_posts_json(self, urlopen) -> None:
        DiscordNotifier("https://discord.invalid/hook").send("Level up!", "You reached level 2.")
        request = urlopen.call_args[0][0]
        self.assertEqual(request.full_url, "https://discord.invalid/hook")
        self.assertEqual(json.loads(request.data), {"content": "**Level up!**\nYou reached level 2."})

    @patch("questchat.notifier.urllib.request.urlopen")
    def test_ntfy_high_priority_header(self, urlopen) -> None:
        NtfyNotifier("https://ntfy.invalid/quests").send("Jackpot level!", "You reached level 10.", priority="high")
        request = urlopen.call_args[0][0]
        self.assertEqual(request.get_header("Priority"), "4")
        self.assertEqual(request.data, b"You reached level 10.")

    @patch("questchat.notifier.time.sleep")
    @patch("questchat.notifier.urllib.request.urlopen", side_effect=urllib.error.URLError("offline"))
    def test_retries_then_logs_warning(self, urlopen, sleep) -> None:
        with self.assertLogs("questchat.notifier", level="WARNING"):
            NtfyNotifier("https://ntfy.invalid/quests").send("t", "b")
        self.assertEqual(urlopen.call_count, 3)
        self.assertEqual(sleep.call_count, 2)


class MidnightTickTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.old_db = db.DB_PATH
        db.DB_PATH = Path(self.tmp.name) / "test.sqlite3"

    def tearDown(self) -> None:
        db.DB_PATH = self.old_db
        self.tmp.cleanup()

    @patch("questchat.services.build_notifier")
    def test_tick_prepares_day_and_notifies(self, build_notifier) -> None:
        notifier = MagicMock()
        build_notifier.return_value = notifier

        summary = midnight_tick.main()

        self.assertEqual(summary["daily_quests"], 9)
        self.assertEqual(summary["chest_quests"], 4)
        self.assertEqual(summary["level"], 0)
        self.assertTrue(summary["rolled_over"])
        notifier.send.assert_called_once()
        self.assertEqual(notifier.send.call_args[0][0], "QuestChat Daily Reset")

        again = midnight_tick.main()
        self.assertEqual(again["day"], summary["day"])
        self.assertFalse(again["rolled_over"])
        self.assertIsNotNone(db.SqliteStore().get("quest_engine_daily"))

    @patch("questchat.services.build_notifier")
    def test_tick_after_simulated_day_rolls_over(self, build_notifier) -> None:
        build_notifier.return_value = MagicMock()
        db.init_db()
        db.update_settings("Ari", "UTC", True, True, "", "")

        first = midnight_tick.main()
        db.testing_advance_day(1)
        second = midnight_tick.main()

        self.assertNotEqual(second["day"], first["day"])
        self.assertTrue(second["rolled_over"])
        self.assertFalse(midnight_tick.main()["rolled_over"])


class LauncherTests(unittest.TestCase):
    @patch("run.uvicorn.run")
    def test_server_mode(self, uvicorn_run) -> None:
        self.assertEqual(run.main(["--port", "9000", "--no-reload"]), 0)
        uvicorn_run.assert_called_once_with("questchat.main:app", host="127.0.0.1", port=9000, reload=False)

    @patch("run.uvicorn.run")
    @patch("run.midnight_tick.main", return_value={"day": "2026-03-10"})
    def test_tick_mode_skips_server(self, tick, uvicorn_run) -> None:
        self.assertEqual(run.main(["--tick"]), 0)
        tick.assert_called_once()
        uvicorn_run.assert_not_called()


if __name__ == "__main__":
    unittest.main()

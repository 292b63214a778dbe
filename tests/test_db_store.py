from __future__ import annotations

import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

import questchat.db as db
from questchat.engine import QuestEngine
from questchat.store import StoreError


class DBIsolatedTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self._old_db = db.DB_PATH
        db.DB_PATH = Path(self._tmp.name) / "test.sqlite3"
        db.init_db()

    def tearDown(self) -> None:
        db.DB_PATH = self._old_db
        self._tmp.cleanup()


class SqliteStoreTests(DBIsolatedTestCase):
    def test_round_trip_and_overwrite(self) -> None:
        store = db.SqliteStore()
        self.assertIsNone(store.get("missing"))
        store.set("k", b"one")
        store.set("k", b"two")
        self.assertEqual(store.get("k"), b"two")

    def test_engine_state_survives_reopen(self) -> None:
        now = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
        engine = QuestEngine(db.SqliteStore(), clock=lambda: now)
        engine.report("quests_tab_opened")

        reopened = QuestEngine(db.SqliteStore(), clock=lambda: now)
        self.assertEqual(reopened.snapshot(), engine.snapshot())
        self.assertEqual(reopened.progress.total_xp, 10)

    def test_sqlite_errors_become_store_errors(self) -> None:
        conn = db.get_conn()
        conn.execute("DROP TABLE kv_store")
        conn.commit()
        conn.close()
        with self.assertRaises(StoreError):
            db.SqliteStore().get("k")

    def test_init_db_is_repeatable(self) -> None:
        db.SqliteStore().set("k", b"v")
        db.init_db()
        self.assertEqual(db.SqliteStore().get("k"), b"v")


class SettingsTests(DBIsolatedTestCase):
    def test_defaults(self) -> None:
        settings = db.get_settings()
        self.assertEqual(settings["name"], "Adventurer")
        self.assertEqual(settings["timezone"], "UTC")
        self.assertEqual(settings["hydration_quests_enabled"], 1)
        self.assertEqual(settings["testing_mode"], 0)

    def test_blank_values_fall_back(self) -> None:
        db.update_settings("  ", " ", False, False, " https://example.invalid/hook ", "")
        settings = db.get_settings()
        self.assertEqual(settings["name"], "Adventurer")
        self.assertEqual(settings["timezone"], "UTC")
        self.assertEqual(settings["hydration_quests_enabled"], 0)
        self.assertEqual(settings["discord_webhook_url"], "https://example.invalid/hook")


class TestingClockTests(DBIsolatedTestCase):
    def test_advance_only_applies_in_testing_mode(self) -> None:
        db.testing_advance_day(2)
        self.assertLess(abs(db.get_app_now() - datetime.now(timezone.utc)), timedelta(minutes=1))

        db.update_settings("Ari", "UTC", True, True, "", "")
        shifted = db.testing_advance_day(1)
        self.assertGreater(shifted - datetime.now(timezone.utc), timedelta(days=2, hours=23))

        db.update_settings("Ari", "UTC", True, False, "", "")
        self.assertLess(abs(db.get_app_now() - datetime.now(timezone.utc)), timedelta(minutes=1))


class SaveDataTests(DBIsolatedTestCase):
    def test_export_then_import_restores_state(self) -> None:
        db.update_settings("Ari", "Europe/Paris", True, False, "", "")
        db.SqliteStore().set("quest_engine_progress", b'{"total_xp": 40}')
        exported = db.export_save_data()
        self.assertEqual(
            [row["value"] for row in exported["kv_store"] if row["key"] == "quest_engine_progress"],
            ['{"total_xp": 40}'],
        )

        db.update_settings("Bea", "UTC", True, False, "", "")
        db.SqliteStore().set("quest_engine_progress", b'{"total_xp": 0}')
        db.import_save_data(exported)

        self.assertEqual(db.get_settings()["name"], "Ari")
        self.assertEqual(db.SqliteStore().get("quest_engine_progress"), b'{"total_xp": 40}')

    def test_import_ignores_unknown_columns(self) -> None:
        exported = db.export_save_data()
        exported["app_state"][0]["simulated_offset_days) VALUES (1, 1); DROP TABLE settings; --"] = 1
        exported["kv_store"] = [{"key": "k", "value": "v", "updated_at": db.utc_now_iso(), "extra": "x"}]

        db.import_save_data(exported)

        self.assertEqual(db.get_settings()["name"], "Adventurer")
        self.assertEqual(db.SqliteStore().get("k"), b"v")


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import os
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

from questchat.periods import DEFAULT_TIMEZONE
from questchat.store import KeyValueStore, StoreError

DB_PATH = Path(os.environ.get("QUESTCHAT_DB_PATH") or Path(__file__).resolve().parent.parent / "questchat.sqlite3")

DEFAULT_SETTINGS = {
    "id": 1,
    "name": "Adventurer",
    "timezone": DEFAULT_TIMEZONE,
    "hydration_quests_enabled": 1,
    "testing_mode": 0,
    "discord_webhook_url": "",
    "ntfy_topic_url": "",
}

SAVE_TABLES = ["settings", "app_state", "kv_store"]


def get_conn() -> sqlite3.Connection:
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _ensure_column(conn: sqlite3.Connection, table: str, column: str, definition: str) -> None:
    cols = conn.execute(f"PRAGMA table_info({table})").fetchall()
    if column not in {c[1] for c in cols}:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")


def init_db() -> None:
    conn = get_conn()
    try:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS settings (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                name TEXT NOT NULL,
                timezone TEXT NOT NULL,
                hydration_quests_enabled INTEGER NOT NULL DEFAULT 1,
                testing_mode INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS app_state (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                simulated_offset_days INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value BLOB NOT NULL,
                updated_at TEXT NOT NULL
            );
            """
        )

        _ensure_column(conn, "settings", "discord_webhook_url", "TEXT NOT NULL DEFAULT ''")
        _ensure_column(conn, "settings", "ntfy_topic_url", "TEXT NOT NULL DEFAULT ''")

        conn.execute(
            """
            INSERT INTO settings (
                id, name, timezone, hydration_quests_enabled, testing_mode, discord_webhook_url, ntfy_topic_url
            ) VALUES (
                :id, :name, :timezone, :hydration_quests_enabled, :testing_mode, :discord_webhook_url, :ntfy_topic_url
            ) ON CONFLICT(id) DO NOTHING
            """,
            DEFAULT_SETTINGS,
        )
        conn.execute("INSERT INTO app_state (id, simulated_offset_days) VALUES (1, 0) ON CONFLICT(id) DO NOTHING")
        conn.commit()
    finally:
        conn.close()


def kv_get(key: str) -> bytes | None:
    conn = get_conn()
    try:
        row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return bytes(row["value"]) if row else None
    finally:
        conn.close()


def kv_set(key: str, value: bytes) -> None:
    conn = get_conn()
    try:
        conn.execute(
            """
            INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
            """,
            (key, sqlite3.Binary(value), utc_now_iso()),
        )
        conn.commit()
    finally:
        conn.close()


class SqliteStore(KeyValueStore):
    def get(self, key: str) -> bytes | None:
        try:
            return kv_get(key)
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc

    def set(self, key: str, value: bytes) -> None:
        try:
            kv_set(key, value)
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc


def get_settings() -> dict:
    conn = get_conn()
    try:
        row = conn.execute("SELECT * FROM settings WHERE id = 1").fetchone()
        if not row:
            raise RuntimeError("Missing settings")
        return dict(row)
    finally:
        conn.close()


def update_settings(
    name: str,
    tz_name: str,
    hydration_quests_enabled: bool,
    testing_mode: bool,
    discord_webhook_url: str,
    ntfy_topic_url: str,
) -> None:
    conn = get_conn()
    try:
        conn.execute(
            """
            UPDATE settings
            SET name = ?, timezone = ?, hydration_quests_enabled = ?, testing_mode = ?,
                discord_webhook_url = ?, ntfy_topic_url = ?
            WHERE id = 1
            """,
            (
                name.strip() or DEFAULT_SETTINGS["name"],
                tz_name.strip() or DEFAULT_TIMEZONE,
                int(hydration_quests_enabled),
                int(testing_mode),
                discord_webhook_url.strip(),
                ntfy_topic_url.strip(),
            ),
        )
        if not testing_mode:
            conn.execute("UPDATE app_state SET simulated_offset_days = 0 WHERE id = 1")
        conn.commit()
    finally:
        conn.close()


def get_app_now() -> datetime:
    now = datetime.now(timezone.utc)
    conn = get_conn()
    try:
        settings = conn.execute("SELECT testing_mode FROM settings WHERE id = 1").fetchone()
        state = conn.execute("SELECT simulated_offset_days FROM app_state WHERE id = 1").fetchone()
        if settings and settings["testing_mode"] and state:
            return now + timedelta(days=state["simulated_offset_days"])
        return now
    finally:
        conn.close()


def testing_advance_day(days: int = 1) -> datetime:
    conn = get_conn()
    try:
        conn.execute("UPDATE app_state SET simulated_offset_days = simulated_offset_days + ? WHERE id = 1", (days,))
        conn.commit()
    finally:
        conn.close()
    return get_app_now()


def export_save_data() -> dict:
    conn = get_conn()
    try:
        out = {}
        for table in SAVE_TABLES:
            rows = [dict(r) for r in conn.execute(f"SELECT * FROM {table}").fetchall()]
            if table == "kv_store":
                for row in rows:
                    row["value"] = bytes(row["value"]).decode("utf-8")
            out[table] = rows
        return out
    finally:
        conn.close()


def import_save_data(payload: dict) -> None:
    conn = get_conn()
    try:
        for table in SAVE_TABLES:
            rows = payload.get(table)
            if rows is None:
                continue
            conn.execute(f"DELETE FROM {table}")
            if not rows:
                continue
            known = {c[1] for c in conn.execute(f"PRAGMA table_info({table})").fetchall()}
            cols = [c for c in rows[0].keys() if c in known]
            if not cols:
                continue
            placeholders = ",".join("?" for _ in cols)
            for row in rows:
                values = [row[c] for c in cols]
                if table == "kv_store":
                    values = [sqlite3.Binary(str(v).encode("utf-8")) if c == "value" else v for c, v in zip(cols, values)]
                conn.execute(f"INSERT INTO {table} ({','.join(cols)}) VALUES ({placeholders})", tuple(values))
        conn.commit()
    finally:
        conn.close()

"""SQLite-backed key/value persistence for the usage quota log."""

from __future__ import annotations

import json
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import List

from paperlens.services.quota import UsageLogEntry

DEFAULT_RECORD_KEY = "usage_logs"


class SQLiteUsageLogStore:
    """Stores the whole usage log as one JSON record under a fixed key."""

    def __init__(self, path: Path, *, key: str = DEFAULT_RECORD_KEY) -> None:
        self.path = Path(path)
        self.key = str(key or DEFAULT_RECORD_KEY)

    def _connect(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path))
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_records (
                record_key TEXT PRIMARY KEY,
                value_json TEXT NOT NULL DEFAULT '[]',
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        return conn

    def load(self) -> List[UsageLogEntry]:
        """Return stored entries; a missing or corrupt record reads as empty."""
        with closing(self._connect()) as conn:
            row = conn.execute("SELECT value_json FROM kv_records WHERE record_key = ?", (self.key,)).fetchone()
        if not row:
            return []
        try:
            rows = json.loads(row[0] or "[]")
            entries = [UsageLogEntry.from_dict(item) for item in rows]
        except (ValueError, KeyError, TypeError):
            return []
        return sorted(entries, key=lambda entry: entry.timestamp)

    def save(self, entries: List[UsageLogEntry]) -> None:
        payload = json.dumps([entry.to_dict() for entry in entries], separators=(",", ":"))
        with closing(self._connect()) as conn:
            conn.execute(
                """
                INSERT INTO kv_records (record_key, value_json, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT (record_key)
                DO UPDATE SET value_json = excluded.value_json, updated_at = CURRENT_TIMESTAMP
                """,
                (self.key, payload),
            )
            conn.commit()

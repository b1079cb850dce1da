"""Local persistence helpers."""

from paperlens.db.usage_log_store import DEFAULT_RECORD_KEY, SQLiteUsageLogStore

__all__ = ["DEFAULT_RECORD_KEY", "SQLiteUsageLogStore"]

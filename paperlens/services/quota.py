"""Sliding-window usage quota persisted in a local log.

The tracker is advisory only. It runs on the client, makes no network
calls, and anyone able to delete the local store can bypass it. It keeps
casual use from hammering the analysis API; it is not a security boundary.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol

COOLDOWN_SECONDS = 10
MAX_REQUESTS_PER_HOUR = 5
MAX_REQUESTS_PER_DAY = 20

HOUR_SECONDS = 60 * 60
DAY_SECONDS = 24 * HOUR_SECONDS


class UsageKind(str, Enum):
    """Kind of analysis that consumed quota."""

    TEXT = "text"
    PDF = "pdf"


@dataclass(frozen=True)
class UsageLogEntry:
    """One recorded invocation (epoch seconds)."""

    timestamp: float
    kind: UsageKind

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "kind": self.kind.value}

    @classmethod
    def from_dict(cls, row: dict) -> "UsageLogEntry":
        return cls(timestamp=float(row["timestamp"]), kind=UsageKind(str(row["kind"])))


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of a quota check."""

    allowed: bool
    reason: Optional[str] = None
    wait_seconds: Optional[int] = None


@dataclass(frozen=True)
class QuotaRemaining:
    """Requests left in the rolling hour and day."""

    hour: int
    day: int


class UsageLogStore(Protocol):
    """Persistence for the usage log (one named record)."""

    def load(self) -> List[UsageLogEntry]:
        """Return all stored entries in time order."""

    def save(self, entries: List[UsageLogEntry]) -> None:
        """Replace the stored entries."""


class InMemoryUsageLogStore:
    """Process-local store used by tests and one-off runs."""

    def __init__(self, entries: Optional[List[UsageLogEntry]] = None) -> None:
        self._entries: List[UsageLogEntry] = list(entries or [])

    def load(self) -> List[UsageLogEntry]:
        return list(self._entries)

    def save(self, entries: List[UsageLogEntry]) -> None:
        self._entries = list(entries)


def prune(entries: List[UsageLogEntry], now: float) -> List[UsageLogEntry]:
    """Drop entries at or older than 24 hours before ``now``."""
    day_ago = now - DAY_SECONDS
    return [entry for entry in entries if entry.timestamp > day_ago]


class QuotaTracker:
    """Cooldown plus hourly and daily ceilings over a self-pruning log."""

    def __init__(self, store: UsageLogStore, *, clock: Callable[[], float] = time.time) -> None:
        self._store = store
        self._clock = clock
        self._lock = threading.Lock()

    def _now(self, now: Optional[float]) -> float:
        return float(self._clock() if now is None else now)

    def _load_pruned(self, now: float) -> List[UsageLogEntry]:
        return prune(self._store.load(), now)

    def check_limit(self, now: Optional[float] = None) -> QuotaDecision:
        """Decide whether a new invocation may proceed.

        Cooldown is checked before the hourly ceiling, and the hourly ceiling
        before the daily one, so the most immediate limit is reported.
        """
        current = self._now(now)
        with self._lock:
            entries = self._load_pruned(current)

        if entries:
            elapsed = current - entries[-1].timestamp
            if elapsed < COOLDOWN_SECONDS:
                wait = math.ceil(COOLDOWN_SECONDS - elapsed)
                return QuotaDecision(
                    allowed=False,
                    reason=f"System cooling down. Please wait {wait} seconds.",
                    wait_seconds=wait,
                )

        hour_ago = current - HOUR_SECONDS
        last_hour = sum(1 for entry in entries if entry.timestamp > hour_ago)
        if last_hour >= MAX_REQUESTS_PER_HOUR:
            return QuotaDecision(
                allowed=False,
                reason=f"Hourly limit reached ({MAX_REQUESTS_PER_HOUR}/hr). Try again later.",
            )

        if len(entries) >= MAX_REQUESTS_PER_DAY:
            return QuotaDecision(
                allowed=False,
                reason=f"Daily limit reached ({MAX_REQUESTS_PER_DAY}/day).",
            )

        return QuotaDecision(allowed=True)

    def record_usage(self, kind: UsageKind, now: Optional[float] = None) -> None:
        """Append one entry stamped ``now`` and persist the pruned log."""
        current = self._now(now)
        with self._lock:
            entries = self._store.load()
            entries.append(UsageLogEntry(timestamp=current, kind=UsageKind(kind)))
            self._store.save(prune(entries, current))

    def remaining_quota(self, now: Optional[float] = None) -> QuotaRemaining:
        """Return how many requests remain in the rolling hour and day."""
        current = self._now(now)
        with self._lock:
            entries = self._load_pruned(current)
        hour_ago = current - HOUR_SECONDS
        used_hour = sum(1 for entry in entries if entry.timestamp > hour_ago)
        return QuotaRemaining(
            hour=max(0, MAX_REQUESTS_PER_HOUR - used_hour),
            day=max(0, MAX_REQUESTS_PER_DAY - len(entries)),
        )

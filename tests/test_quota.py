"""Tests for the sliding-window usage quota."""

from __future__ import annotations

from paperlens.services.quota import (
    DAY_SECONDS,
    HOUR_SECONDS,
    InMemoryUsageLogStore,
    QuotaTracker,
    UsageKind,
    UsageLogEntry,
    prune,
)

T0 = 1_700_000_000.0


def _tracker(entries=None) -> tuple[QuotaTracker, InMemoryUsageLogStore]:
    store = InMemoryUsageLogStore(entries)
    return QuotaTracker(store, clock=lambda: T0), store


def test_empty_log_allows_request() -> None:
    tracker, _ = _tracker()
    decision = tracker.check_limit(now=T0)
    assert decision.allowed is True
    assert decision.reason is None
    assert decision.wait_seconds is None


def test_sixth_request_within_hour_is_denied() -> None:
    tracker, _ = _tracker()
    for i in range(5):
        now = T0 + 11 * i
        assert tracker.check_limit(now=now).allowed is True
        tracker.record_usage(UsageKind.TEXT, now=now)

    decision = tracker.check_limit(now=T0 + 55)
    assert decision.allowed is False
    assert decision.reason == "Hourly limit reached (5/hr). Try again later."
    assert decision.wait_seconds is None


def test_cooldown_reports_rounded_up_wait() -> None:
    tracker, _ = _tracker()
    tracker.record_usage(UsageKind.PDF, now=T0)

    decision = tracker.check_limit(now=T0 + 2)
    assert decision.allowed is False
    assert decision.wait_seconds == 8
    assert decision.reason == "System cooling down. Please wait 8 seconds."

    assert tracker.check_limit(now=T0 + 0.5).wait_seconds == 10
    assert tracker.check_limit(now=T0 + 10).allowed is True


def test_cooldown_is_reported_before_hourly_limit() -> None:
    tracker, _ = _tracker()
    for i in range(5):
        tracker.record_usage(UsageKind.TEXT, now=T0 + 11 * i)

    decision = tracker.check_limit(now=T0 + 44 + 3)
    assert decision.allowed is False
    assert decision.wait_seconds == 7
    assert decision.reason.startswith("System cooling down")


def test_daily_limit_after_twenty_spaced_requests() -> None:
    entries = [UsageLogEntry(timestamp=T0 + i * HOUR_SECONDS, kind=UsageKind.TEXT) for i in range(20)]
    tracker, _ = _tracker(entries)

    decision = tracker.check_limit(now=T0 + 20 * HOUR_SECONDS)
    assert decision.allowed is False
    assert decision.reason == "Daily limit reached (20/day)."


def test_entries_older_than_a_day_are_pruned_on_write() -> None:
    stale = UsageLogEntry(timestamp=T0 - DAY_SECONDS, kind=UsageKind.TEXT)
    recent = UsageLogEntry(timestamp=T0 - 60, kind=UsageKind.PDF)
    tracker, store = _tracker([stale, recent])

    tracker.record_usage(UsageKind.TEXT, now=T0)

    assert [entry.timestamp for entry in store.load()] == [T0 - 60, T0]


def test_stale_entries_never_count_toward_limits() -> None:
    entries = [UsageLogEntry(timestamp=T0 - DAY_SECONDS - i, kind=UsageKind.PDF) for i in range(25)]
    tracker, store = _tracker(entries)

    decision = tracker.check_limit(now=T0)
    remaining = tracker.remaining_quota(now=T0)

    assert decision.allowed is True
    assert remaining.hour == 5
    assert remaining.day == 20
    assert len(store.load()) == 25


def test_prune_boundary_is_exclusive() -> None:
    entries = [
        UsageLogEntry(timestamp=T0 - DAY_SECONDS, kind=UsageKind.TEXT),
        UsageLogEntry(timestamp=T0 - DAY_SECONDS + 1, kind=UsageKind.TEXT),
    ]
    kept = prune(entries, T0)
    assert [entry.timestamp for entry in kept] == [T0 - DAY_SECONDS + 1]


def test_limits_recover_after_window_passes() -> None:
    entries = [UsageLogEntry(timestamp=T0 + i * 11, kind=UsageKind.TEXT) for i in range(5)]
    tracker, _ = _tracker(entries)
    assert tracker.check_limit(now=T0 + 60).allowed is False
    assert tracker.check_limit(now=T0 + HOUR_SECONDS + 1).allowed is True


def test_remaining_quota_counts_hour_and_day() -> None:
    entries = [
        UsageLogEntry(timestamp=T0 - 2 * HOUR_SECONDS, kind=UsageKind.PDF),
        UsageLogEntry(timestamp=T0 - 120, kind=UsageKind.TEXT),
        UsageLogEntry(timestamp=T0 - 60, kind=UsageKind.TEXT),
    ]
    tracker, _ = _tracker(entries)
    remaining = tracker.remaining_quota(now=T0)
    assert remaining.hour == 3
    assert remaining.day == 17


def test_tracker_uses_injected_clock() -> None:
    tracker, store = _tracker()
    tracker.record_usage(UsageKind.TEXT)
    assert store.load()[0].timestamp == T0
    assert tracker.check_limit().wait_seconds == 10

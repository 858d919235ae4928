"""
Test fetch window resolution.
"""
from datetime import datetime, timedelta, timezone

import pytest

from repodigest.ingest.window import resolve_date_input, resolve_time_window

# Wednesday
NOW = datetime(2026, 2, 18, 15, 30, tzinfo=timezone.utc)


def test_default_last_24_hours():
    """Without inputs the window is the 24 hours before now."""
    window = resolve_time_window(None, None, NOW)
    assert window.until == NOW
    assert window.since == NOW - timedelta(hours=24)


def test_today_boundaries_in_zone():
    """today resolves to the local day boundaries."""
    start = resolve_date_input("today", "start", NOW, "Asia/Taipei")
    end = resolve_date_input("today", "end", NOW, "Asia/Taipei")
    # 15:30 UTC is 23:30 on Feb 18 in Taipei
    assert start == datetime(2026, 2, 17, 16, 0, tzinfo=timezone.utc)
    assert end == datetime(2026, 2, 18, 15, 59, 59, 999999, tzinfo=timezone.utc)


def test_yesterday_and_monday():
    """Day words are case-insensitive and zone-aware."""
    assert resolve_date_input("Yesterday", "start", NOW) == datetime(2026, 2, 17, tzinfo=timezone.utc)
    assert resolve_date_input("monday", "start", NOW) == datetime(2026, 2, 16, tzinfo=timezone.utc)


def test_iso_values():
    """ISO dates and instants parse; naive values are UTC."""
    assert resolve_date_input("2026-02-10", "start", NOW) == datetime(2026, 2, 10, tzinfo=timezone.utc)
    assert resolve_date_input("2026-02-10T08:00:00+08:00", "start", NOW) == datetime(2026, 2, 10, tzinfo=timezone.utc)


def test_range_defaults():
    """Range defaults cover this Monday to now."""
    window = resolve_time_window(None, None, NOW, default_since="monday")
    assert window.since == datetime(2026, 2, 16, tzinfo=timezone.utc)
    assert window.until == NOW
    assert window.since_label == "2026-02-16"
    assert window.until_label == "2026-02-18"
    assert window.since_iso == "2026-02-16T00:00:00Z"


def test_since_after_until():
    """An inverted window is an error."""
    with pytest.raises(ValueError, match="earlier"):
        resolve_time_window("now", "yesterday", NOW)


def test_invalid_value():
    """Garbage input is rejected with the offending value."""
    with pytest.raises(ValueError, match="Invalid date value: soonish"):
        resolve_date_input("soonish", "start", NOW)


def test_contains():
    """contains() is inclusive at both ends."""
    window = resolve_time_window("2026-02-18", "now", NOW)
    assert window.contains(NOW)
    assert window.contains(datetime(2026, 2, 18, tzinfo=timezone.utc))
    assert not window.contains(NOW + timedelta(seconds=1))

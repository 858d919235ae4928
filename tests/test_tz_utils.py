"""
Test timezone utilities and rate-limited logging.
"""
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from repodigest.utils.tz import (
    InvalidTimezoneError,
    RateLimitedLogger,
    ensure_aware,
    format_date_in_zone,
    parse_timestamp,
    resolve_zone,
    to_utc,
    today_in_zone,
)


def test_ensure_aware_with_naive_datetime():
    """Naive datetimes are localized, not converted."""
    aware_dt = ensure_aware(datetime(2026, 1, 15, 10, 30), "Asia/Taipei")
    assert aware_dt.tzinfo is not None
    assert aware_dt.hour == 10
    assert to_utc(aware_dt).hour == 2


def test_ensure_aware_with_already_aware_datetime():
    utc_dt = datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc)
    assert ensure_aware(utc_dt, "America/Sao_Paulo") is utc_dt


def test_to_utc_rejects_naive():
    with pytest.raises(ValueError, match="naive"):
        to_utc(datetime(2026, 1, 15))


@pytest.mark.parametrize("name", ["", "Not/AZone", "../etc/passwd"])
def test_resolve_zone_invalid(name):
    """Unknown zones raise; there is no silent UTC fallback."""
    with pytest.raises(InvalidTimezoneError):
        resolve_zone(name)


@pytest.mark.parametrize("value,expected", [
    ("2026-02-14T08:00:00Z", datetime(2026, 2, 14, 8, tzinfo=timezone.utc)),
    ("2026-02-14T16:00:00+08:00", datetime(2026, 2, 14, 8, tzinfo=timezone.utc)),
    ("2026-02-14T08:00:00", datetime(2026, 2, 14, 8, tzinfo=timezone.utc)),
])
def test_parse_timestamp(value, expected):
    parsed = parse_timestamp(value)
    assert parsed == expected
    assert parsed.utcoffset().total_seconds() == 0


@pytest.mark.parametrize("value", ["", "yesterday-ish", "2026-13-40T00:00:00Z"])
def test_parse_timestamp_invalid(value):
    with pytest.raises(ValueError):
        parse_timestamp(value)


def test_format_date_in_zone(reference):
    """The calendar date depends on the zone, not the UTC date."""
    assert format_date_in_zone(reference, "UTC") == "2026-02-14"
    assert format_date_in_zone(reference, "Asia/Taipei") == "2026-02-15"
    assert format_date_in_zone(reference, "Pacific/Honolulu") == "2026-02-14"


def test_today_in_zone(reference):
    assert today_in_zone("Asia/Taipei", reference) == "2026-02-15"
    assert len(today_in_zone("UTC")) == 10


def test_rate_limited_logger():
    """Repeated messages within the cooldown are suppressed."""
    limited = RateLimitedLogger(cooldown_seconds=60)
    log_func = Mock()

    for _ in range(3):
        limited.log_if_allowed("key", log_func, "message")

    assert log_func.call_count == 1
    assert limited.suppressed_count["key"] == 2

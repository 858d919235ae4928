"""
Fetch window resolution from CLI-style inputs.
"""
from datetime import datetime, time, timedelta, timezone
from typing import NamedTuple, Optional

from repodigest.utils.tz import format_date_in_zone, parse_timestamp, resolve_zone

DAY_WORDS = ("now", "today", "yesterday", "monday")


class TimeWindow(NamedTuple):
    """Half-open fetch window in UTC. `until` is the digest's reference instant."""
    since: datetime
    until: datetime
    timezone: str = "UTC"

    @property
    def since_iso(self) -> str:
        return self.since.isoformat().replace("+00:00", "Z")

    @property
    def until_iso(self) -> str:
        return self.until.isoformat().replace("+00:00", "Z")

    @property
    def since_label(self) -> str:
        return format_date_in_zone(self.since, self.timezone)

    @property
    def until_label(self) -> str:
        return format_date_in_zone(self.until, self.timezone)

    def contains(self, instant: datetime) -> bool:
        return self.since <= instant <= self.until


def _day_boundary(day, boundary: str, tz_name: str) -> datetime:
    zone = resolve_zone(tz_name)
    if boundary == "start":
        local = datetime.combine(day, time.min, tzinfo=zone)
    else:
        local = datetime.combine(day, time.max, tzinfo=zone)
    return local.astimezone(timezone.utc)


def resolve_date_input(value: str, boundary: str, now: datetime, tz_name: str = "UTC") -> datetime:
    """
    Resolve `now`, `today`, `yesterday`, `monday` or an ISO-8601 value.

    Day words resolve to the start or end (per `boundary`) of that calendar
    day in tz_name.

    Raises:
        ValueError: If the value is not a day word nor ISO-8601
    """
    normalized = (value or "").strip().lower()
    local_now = now.astimezone(resolve_zone(tz_name))

    if normalized == "now":
        return now.astimezone(timezone.utc)
    if normalized == "today":
        return _day_boundary(local_now.date(), boundary, tz_name)
    if normalized == "yesterday":
        return _day_boundary(local_now.date() - timedelta(days=1), boundary, tz_name)
    if normalized == "monday":
        monday = local_now.date() - timedelta(days=local_now.weekday())
        return _day_boundary(monday, boundary, tz_name)

    try:
        return parse_timestamp(value)
    except ValueError as e:
        raise ValueError(f"Invalid date value: {value}") from e


def resolve_time_window(
    since: Optional[str],
    until: Optional[str],
    now: Optional[datetime] = None,
    tz_name: str = "UTC",
    default_since: Optional[str] = None,
    default_until: str = "now",
) -> TimeWindow:
    """
    Resolve a fetch window.

    Without `since` and `default_since` the window covers the 24 hours before `now`.

    Raises:
        ValueError: If an input cannot be parsed or since > until
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    until_instant = resolve_date_input(until or default_until, "end", now, tz_name)
    since_raw = since or default_since
    if since_raw:
        since_instant = resolve_date_input(since_raw, "start", now, tz_name)
    else:
        since_instant = now.astimezone(timezone.utc) - timedelta(hours=24)

    if since_instant > until_instant:
        raise ValueError("--since must be earlier than --until")

    return TimeWindow(since=since_instant, until=until_instant, timezone=tz_name)

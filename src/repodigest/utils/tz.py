"""
Timezone utilities with rate-limited logging.

All calendar-date decisions ("today", "due today") go through
`format_date_in_zone`, never through the UTC date of an instant.
"""
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from typing import Optional
from collections import defaultdict
import time
import structlog

logger = structlog.get_logger()


class InvalidTimezoneError(ValueError):
    """Raised when an IANA zone name cannot be resolved."""

    def __init__(self, tz_name: str):
        self.tz_name = tz_name
        super().__init__(f"Invalid timezone: {tz_name!r} is not a known IANA zone name")


class RateLimitedLogger:
    """Rate-limited logger to reduce log chatter for repeated warnings."""

    def __init__(self, cooldown_seconds: int = 60):
        self.cooldown_seconds = cooldown_seconds
        self.last_log_time = defaultdict(float)
        self.suppressed_count = defaultdict(int)

    def log_if_allowed(self, key: str, log_func, *args, **kwargs):
        """Log message only if cooldown period has passed."""
        now = time.time()
        last_time = self.last_log_time[key]

        if now - last_time >= self.cooldown_seconds:
            if self.suppressed_count[key] > 0:
                logger.info(
                    f"Suppressed {self.suppressed_count[key]} similar messages in last {self.cooldown_seconds}s",
                    message_key=key
                )
                self.suppressed_count[key] = 0

            log_func(*args, **kwargs)
            self.last_log_time[key] = now
        else:
            self.suppressed_count[key] += 1


_tz_logger = RateLimitedLogger(cooldown_seconds=60)


def resolve_zone(tz_name: str) -> ZoneInfo:
    """
    Resolve an IANA zone name.

    Raises:
        InvalidTimezoneError: If the name is empty or unknown. There is no UTC fallback.
    """
    if not tz_name or not isinstance(tz_name, str):
        raise InvalidTimezoneError(str(tz_name))
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezoneError(tz_name) from e


def ensure_aware(dt: datetime, tz_name: str = "UTC") -> datetime:
    """
    Ensure datetime is timezone-aware.

    Naive datetimes are localized to tz_name; aware ones are returned as-is.
    """
    if dt is None:
        raise ValueError("Cannot ensure timezone awareness for None datetime")

    if dt.tzinfo is not None:
        return dt

    _tz_logger.log_if_allowed(
        "naive_datetime",
        logger.warning,
        "Naive datetime auto-localized",
        dt=dt.isoformat(),
        tz=tz_name
    )
    return dt.replace(tzinfo=resolve_zone(tz_name))


def to_utc(dt: datetime) -> datetime:
    """Convert an aware datetime to UTC."""
    if dt is None:
        raise ValueError("Cannot convert None datetime to UTC")

    if dt.tzinfo is None:
        raise ValueError(
            f"Cannot convert naive datetime to UTC: {dt}. "
            "Use ensure_aware() first to localize to a timezone."
        )

    return dt.astimezone(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 instant into an aware UTC datetime.

    A trailing 'Z' is accepted. Naive values are treated as UTC.

    Raises:
        ValueError: If the value is empty or not ISO-8601.
    """
    if not value or not isinstance(value, str):
        raise ValueError(f"Empty or non-string timestamp: {value!r}")

    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"

    parsed = datetime.fromisoformat(raw)
    return to_utc(ensure_aware(parsed, "UTC"))


def format_date_in_zone(instant: datetime, tz_name: str) -> str:
    """Calendar date (YYYY-MM-DD) of an instant as observed in tz_name."""
    zone = resolve_zone(tz_name)
    return ensure_aware(instant, "UTC").astimezone(zone).strftime("%Y-%m-%d")


def today_in_zone(tz_name: str, reference: Optional[datetime] = None) -> str:
    """'Today' in tz_name for the reference instant (defaults to now)."""
    instant = reference if reference is not None else datetime.now(timezone.utc)
    return format_date_in_zone(instant, tz_name)

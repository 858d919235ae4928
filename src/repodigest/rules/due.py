"""
Due date resolution.

Priority chain, first match wins:
1. milestone   - milestone due date on any evidence record
2. label       - `due/today`, `due:YYYY-MM-DD`, `deadline:YYYY-MM-DD`
3. frontmatter - `due:` key in a leading `---` block of a body
4. none
"""
import re
from datetime import datetime
from typing import Callable, NamedTuple, Optional, Tuple

from repodigest.rules.frontmatter import parse_frontmatter
from repodigest.schemas import WorkUnit
from repodigest.utils.tz import today_in_zone

DATE_PATTERN = re.compile(r'(20\d{2}-\d{2}-\d{2})')
LABEL_DATE_PATTERN = re.compile(r'^(?:due|deadline):\s*(20\d{2}-\d{2}-\d{2})$')
DUE_TODAY_LABEL = "due/today"


class DueResolution(NamedTuple):
    due: Optional[str]
    source: str  # milestone | label | frontmatter | none


def _by_milestone(unit: WorkUnit, today: str) -> Optional[str]:
    for record in unit.evidence:
        raw = record.milestone_due_on
        if not raw:
            continue
        match = DATE_PATTERN.search(raw)
        if match:
            return match.group(1)
    return None


def _by_label(unit: WorkUnit, today: str) -> Optional[str]:
    for label in sorted(unit.labels):
        normalized = label.strip().lower()
        if normalized == DUE_TODAY_LABEL:
            return today
        match = LABEL_DATE_PATTERN.match(normalized)
        if match:
            return match.group(1)
    return None


def _by_frontmatter(unit: WorkUnit, today: str) -> Optional[str]:
    for record in unit.evidence:
        if not record.body:
            continue
        due = parse_frontmatter(record.body).get("due")
        if not due:
            continue
        match = DATE_PATTERN.search(due)
        if match:
            return match.group(1)
    return None


DUE_RULES: Tuple[Tuple[str, Callable[[WorkUnit, str], Optional[str]]], ...] = (
    ("milestone", _by_milestone),
    ("label", _by_label),
    ("frontmatter", _by_frontmatter),
)


def resolve_due(
    unit: WorkUnit,
    reference: Optional[datetime] = None,
    tz_name: str = "UTC",
) -> DueResolution:
    """
    Resolve a unit's due date.

    Args:
        unit: Work unit to inspect
        reference: Instant that defines "today" (defaults to now)
        tz_name: IANA zone in which "today" is evaluated

    Returns:
        DueResolution(due, source)

    Raises:
        InvalidTimezoneError: If tz_name is unknown
    """
    today = today_in_zone(tz_name, reference)

    for source, rule in DUE_RULES:
        due = rule(unit, today)
        if due:
            return DueResolution(due=due, source=source)

    return DueResolution(due=None, source="none")

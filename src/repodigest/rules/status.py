"""
Status classification.

Priority chain, first match wins: done > blocked > planned > in_progress > unknown.
The blocked keyword match is a plain case-insensitive substring test, so text
such as "not blocked" still counts as a blocking signal.
"""
from typing import Callable, FrozenSet, Iterable, Optional, Tuple

from repodigest.rules.frontmatter import parse_frontmatter
from repodigest.schemas import EventType, WorkStatus, WorkUnit

DEFAULT_BLOCKED_LABELS = frozenset({"blocked", "stuck"})
DEFAULT_NEXT_LABELS = frozenset({"next", "planned", "todo"})
BLOCKING_KEYWORDS = ("blocked", "stuck", "waiting on")

DONE_EVENTS = frozenset({EventType.ISSUE_CLOSED, EventType.PR_MERGED, EventType.RELEASE})
ACTIVE_EVENTS = frozenset({
    EventType.ISSUE_CREATED,
    EventType.ISSUE_COMMENTED,
    EventType.PR_OPENED,
    EventType.PR_REVIEWED,
    EventType.COMMIT,
})


def normalize_vocabulary(labels: Optional[Iterable[str]], default: FrozenSet[str]) -> FrozenSet[str]:
    """Lowercase a label vocabulary; missing or empty means the default."""
    cleaned = frozenset(label.strip().lower() for label in (labels or ()) if label and label.strip())
    return cleaned or default


def _lowered_labels(unit: WorkUnit) -> FrozenSet[str]:
    return frozenset(label.strip().lower() for label in unit.labels)


def _is_done(unit: WorkUnit, blocked: FrozenSet[str], planned: FrozenSet[str]) -> bool:
    return any(record.type in DONE_EVENTS for record in unit.evidence)


def _is_blocked(unit: WorkUnit, blocked: FrozenSet[str], planned: FrozenSet[str]) -> bool:
    if _lowered_labels(unit) & blocked:
        return True

    for record in unit.evidence:
        if record.body and parse_frontmatter(record.body).get("status", "").lower() == "blocked":
            return True

        text = f"{record.title or ''} {record.body or ''}".lower()
        if any(keyword in text for keyword in BLOCKING_KEYWORDS):
            return True

    return False


def _is_planned(unit: WorkUnit, blocked: FrozenSet[str], planned: FrozenSet[str]) -> bool:
    return bool(_lowered_labels(unit) & planned)


def _is_in_progress(unit: WorkUnit, blocked: FrozenSet[str], planned: FrozenSet[str]) -> bool:
    return any(record.type in ACTIVE_EVENTS for record in unit.evidence)


STATUS_RULES: Tuple[Tuple[WorkStatus, Callable[[WorkUnit, FrozenSet[str], FrozenSet[str]], bool]], ...] = (
    (WorkStatus.DONE, _is_done),
    (WorkStatus.BLOCKED, _is_blocked),
    (WorkStatus.PLANNED, _is_planned),
    (WorkStatus.IN_PROGRESS, _is_in_progress),
)


def classify_status(
    unit: WorkUnit,
    blocked_labels: Optional[Iterable[str]] = None,
    next_labels: Optional[Iterable[str]] = None,
) -> WorkStatus:
    """Classify a work unit's status."""
    blocked = normalize_vocabulary(blocked_labels, DEFAULT_BLOCKED_LABELS)
    planned = normalize_vocabulary(next_labels, DEFAULT_NEXT_LABELS)

    for status, rule in STATUS_RULES:
        if rule(unit, blocked, planned):
            return status

    return WorkStatus.UNKNOWN

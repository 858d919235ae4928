"""
Work unit building from activity records.

Records that describe the same issue, pull request or commit are folded into a
single WorkUnit:
- identity key from the issue/PR number in the URL, else source:id
- first non-empty title/url/repo wins, a real title replaces the placeholder
- labels accumulate as a set union
- evidence keeps every accepted record in chronological order
"""
import re
from datetime import datetime
from typing import Dict, List, NamedTuple, Optional, Tuple

import structlog

from repodigest.schemas import (
    ActivityRecord,
    EventType,
    PLACEHOLDER_TITLE,
    WorkKind,
    WorkUnit,
)
from repodigest.utils.tz import parse_timestamp

logger = structlog.get_logger()

ISSUE_URL_PATTERN = re.compile(r'/issues/(\d+)(?:$|[?#/])')
PULL_URL_PATTERN = re.compile(r'/pull/(\d+)(?:$|[?#/])')


class DroppedRecord(NamedTuple):
    """A record rejected during aggregation."""
    record_id: str
    source: str
    reason: str


class AggregationResult(NamedTuple):
    units: List[WorkUnit]
    dropped: List[DroppedRecord]


def derive_unit_key(record: ActivityRecord) -> str:
    """Stable identity key for the unit a record belongs to."""
    url = record.url or ""
    if record.repo:
        for pattern in (ISSUE_URL_PATTERN, PULL_URL_PATTERN):
            match = pattern.search(url)
            if match:
                return f"github:{record.repo}#{match.group(1)}"

    return f"{record.source}:{record.id}"


def work_kind_for(event_type: EventType) -> WorkKind:
    value = event_type.value
    if value.startswith("issue_"):
        return WorkKind.ISSUE
    if value.startswith("pr_"):
        return WorkKind.PR
    if event_type == EventType.COMMIT:
        return WorkKind.COMMIT
    if event_type == EventType.RELEASE:
        return WorkKind.RELEASE
    return WorkKind.NOTE


def _stack_hints(record: ActivityRecord) -> List[str]:
    raw = record.fields.get("stack_hints")
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        return []
    return [str(hint).strip() for hint in raw if str(hint).strip()]


class _UnitDraft:
    """Mutable accumulator used only while a batch is being folded."""

    def __init__(self, key: str, record: ActivityRecord):
        self.key = key
        self.kind = work_kind_for(record.type)
        self.repo = record.repo or None
        self.title = (record.title or "").strip() or PLACEHOLDER_TITLE
        self.url = record.url or None
        self.labels = set(record.labels)
        self.stack_hints: List[str] = []
        self.evidence: List[Tuple[datetime, ActivityRecord]] = []

    def absorb(self, record: ActivityRecord, instant: datetime) -> None:
        title = (record.title or "").strip()
        if title and self.title == PLACEHOLDER_TITLE:
            self.title = title
        if record.url and not self.url:
            self.url = record.url
        if record.repo and not self.repo:
            self.repo = record.repo
        self.labels.update(record.labels)
        for hint in _stack_hints(record):
            if hint not in self.stack_hints:
                self.stack_hints.append(hint)
        self.evidence.append((instant, record))

    def freeze(self) -> WorkUnit:
        # sorted() is stable: records with equal instants keep arrival order
        ordered = [record for _, record in sorted(self.evidence, key=lambda pair: pair[0])]
        return WorkUnit(
            key=self.key,
            kind=self.kind,
            repo=self.repo,
            title=self.title,
            url=self.url,
            labels=sorted(self.labels),
            evidence=ordered,
            stack_hints=self.stack_hints,
        )


class WorkUnitBuilder:
    """Build work units from one fetch window of activity records."""

    def __init__(self):
        self.stats = {
            'records_seen': 0,
            'records_dropped': 0,
            'units_created': 0,
            'records_merged': 0,
        }

    def build_units(self, records: List[ActivityRecord]) -> AggregationResult:
        """Fold records into work units, dropping only unparseable timestamps."""
        logger.info("Building work units", record_count=len(records))

        self.stats = {k: 0 for k in self.stats}
        drafts: Dict[str, _UnitDraft] = {}
        dropped: List[DroppedRecord] = []

        for record in records:
            self.stats['records_seen'] += 1

            instant = self._parse_instant(record)
            if instant is None:
                dropped.append(DroppedRecord(record.id, record.source, "unparseable_timestamp"))
                self.stats['records_dropped'] += 1
                continue

            key = derive_unit_key(record)
            draft = drafts.get(key)
            if draft is None:
                draft = _UnitDraft(key, record)
                drafts[key] = draft
                self.stats['units_created'] += 1
            else:
                self.stats['records_merged'] += 1
            draft.absorb(record, instant)

        units = [draft.freeze() for draft in drafts.values()]

        logger.info("Work unit building completed", units=len(units), **self.stats)

        return AggregationResult(units=units, dropped=dropped)

    def _parse_instant(self, record: ActivityRecord) -> Optional[datetime]:
        try:
            return parse_timestamp(record.timestamp)
        except ValueError as e:
            logger.warning("Dropping record with unparseable timestamp",
                           record_id=record.id,
                           source=record.source,
                           timestamp=record.timestamp,
                           error=str(e))
            return None


def build_work_units(records: List[ActivityRecord]) -> AggregationResult:
    """Convenience wrapper around WorkUnitBuilder."""
    return WorkUnitBuilder().build_units(records)

"""
Rule-based highlights for work units.
"""
import re
from typing import List, Optional

from repodigest.schemas import ActivityRecord, WorkUnit
from repodigest.utils.tz import parse_timestamp

FIRST_SENTENCE_PATTERN = re.compile(r'^(.+?[.!?])(?:\s|$)', re.DOTALL)


def first_sentence(text: Optional[str]) -> str:
    """Text up to and including the first sentence terminator, else the trimmed text."""
    trimmed = (text or "").strip()
    if not trimmed:
        return ""
    match = FIRST_SENTENCE_PATTERN.match(trimmed)
    return match.group(1).strip() if match else trimmed


def _latest_described_record(unit: WorkUnit) -> Optional[ActivityRecord]:
    candidates = [record for record in unit.evidence if record.body or record.title]
    if not candidates:
        return None
    # evidence timestamps were validated by the aggregator
    return max(candidates, key=lambda record: parse_timestamp(record.timestamp))


def summarize_work_unit(unit: WorkUnit, max_highlights: int = 3) -> List[str]:
    """
    Build up to `max_highlights` short highlights for a unit.

    The title's first sentence comes first, then the first sentence of the
    newest record that has a body (or, failing that, a title).
    """
    highlights = [first_sentence(unit.title)]

    latest = _latest_described_record(unit)
    if latest is not None:
        highlights.append(first_sentence(latest.body or latest.title))

    result: List[str] = []
    for highlight in highlights:
        if highlight and highlight not in result:
            result.append(highlight)
    return result[:max_highlights]

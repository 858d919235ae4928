"""
Digest assembly: bucket annotated work units into sections.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import structlog

from repodigest.schemas import Digest, DigestScope, DigestSections, WorkStatus, WorkUnit
from repodigest.utils.tz import resolve_zone, today_in_zone

logger = structlog.get_logger()

STATUS_SECTIONS: Dict[WorkStatus, str] = {
    WorkStatus.DONE: "done",
    WorkStatus.IN_PROGRESS: "in_progress",
    WorkStatus.BLOCKED: "blocked",
    WorkStatus.PLANNED: "next",
}


def unit_sort_key(unit: WorkUnit):
    return (unit.repo or "", unit.title, unit.key)


def sort_work_units(units: Iterable[WorkUnit]) -> List[WorkUnit]:
    """Order units by (repo, title, key) with plain code-point comparison."""
    return sorted(units, key=unit_sort_key)


def _collect_stack(units: List[WorkUnit]) -> Optional[List[str]]:
    stack: List[str] = []
    for unit in units:
        for hint in unit.stack_hints:
            if hint not in stack:
                stack.append(hint)
    return stack or None


def assemble_digest(
    units: Iterable[WorkUnit],
    reference: datetime,
    tz_name: str,
    scope: Optional[DigestScope] = None,
    notes: Optional[List[str]] = None,
) -> Digest:
    """
    Build a Digest from annotated units.

    A unit lands in `due_today` when its due date equals the digest date,
    independently of its status bucket. Unknown-status units only appear in
    `due_today` (if at all).

    Raises:
        InvalidTimezoneError: If tz_name is unknown
    """
    resolve_zone(tz_name)
    date = today_in_zone(tz_name, reference)
    ordered = sort_work_units(units)

    buckets: Dict[str, List[WorkUnit]] = {
        "due_today": [],
        "done": [],
        "in_progress": [],
        "blocked": [],
        "next": [],
    }
    for unit in ordered:
        if unit.due == date:
            buckets["due_today"].append(unit)
        section = STATUS_SECTIONS.get(unit.status)
        if section is not None:
            buckets[section].append(unit)

    digest = Digest(
        date=date,
        timezone=tz_name,
        scope=scope or DigestScope(),
        sections=DigestSections(notes=list(notes or []), **buckets),
        stack=_collect_stack(ordered),
    )

    logger.info("Digest assembled",
                date=date,
                timezone=tz_name,
                units=len(ordered),
                **digest.stats.model_dump())

    return digest

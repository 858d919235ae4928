"""
Digest pipeline: aggregate -> annotate (due, status, highlights) -> assemble.

Collectors and renderers are plain callables so the pipeline itself holds no
I/O. Every stage is synchronous and deterministic for a fixed reference
instant.
"""
from contextlib import nullcontext
from datetime import datetime
from typing import Any, Callable, List, NamedTuple, Optional, Tuple

import structlog

from repodigest.aggregate.build import DroppedRecord, WorkUnitBuilder
from repodigest.assemble.digest import assemble_digest
from repodigest.rules.due import resolve_due
from repodigest.rules.status import classify_status
from repodigest.schemas import ActivityRecord, Digest, DigestScope, WorkUnit
from repodigest.summarize.degrade import SummarizerHook, summarize_with_fallback
from repodigest.utils.tz import resolve_zone

logger = structlog.get_logger()


class PipelineContext(NamedTuple):
    reference: datetime
    timezone: str = "UTC"
    scope: Optional[DigestScope] = None
    blocked_labels: Optional[List[str]] = None
    next_labels: Optional[List[str]] = None


class PipelineResult(NamedTuple):
    digest: Digest
    output: Any
    dropped_records: List[DroppedRecord]
    summary_fallbacks: int


CollectFn = Callable[[PipelineContext], List[ActivityRecord]]
RenderFn = Callable[[Digest, PipelineContext], Any]


def _stage(metrics, name: str):
    return metrics.time_stage(name) if metrics is not None else nullcontext()


def _dropped_note(dropped: List[DroppedRecord]) -> Optional[str]:
    if not dropped:
        return None
    return f"Skipped {len(dropped)} activity record(s) with unparseable timestamps"


def _annotate(unit: WorkUnit, ctx: PipelineContext, hook: Optional[SummarizerHook],
              metrics) -> Tuple[WorkUnit, bool]:
    due = resolve_due(unit, ctx.reference, ctx.timezone)
    status = classify_status(unit, ctx.blocked_labels, ctx.next_labels)
    outcome = summarize_with_fallback(unit, hook, metrics)

    annotated = unit.model_copy(update={
        "due": due.due,
        "due_source": due.source,
        "status": status,
        "highlights": outcome.highlights,
    })
    if metrics is not None:
        metrics.record_work_unit(status.value)
    return annotated, outcome.reason is not None


def build_digest(
    records: List[ActivityRecord],
    ctx: PipelineContext,
    hook: Optional[SummarizerHook] = None,
    metrics=None,
) -> PipelineResult:
    """
    Build a Digest from already collected records.

    Returns:
        PipelineResult with output None

    Raises:
        InvalidTimezoneError: If ctx.timezone is unknown (before any work)
    """
    resolve_zone(ctx.timezone)

    builder = WorkUnitBuilder()
    with _stage(metrics, "aggregate"):
        aggregation = builder.build_units(records)
    if metrics is not None:
        metrics.record_records(accepted=len(records) - len(aggregation.dropped),
                               dropped=len(aggregation.dropped))

    annotated: List[WorkUnit] = []
    fallbacks = 0
    with _stage(metrics, "annotate"):
        for unit in aggregation.units:
            annotated_unit, fell_back = _annotate(unit, ctx, hook, metrics)
            annotated.append(annotated_unit)
            fallbacks += int(fell_back)

    notes = [note for note in [_dropped_note(aggregation.dropped)] if note]
    with _stage(metrics, "assemble"):
        digest = assemble_digest(annotated, ctx.reference, ctx.timezone, scope=ctx.scope, notes=notes)
    return PipelineResult(digest=digest, output=None,
                          dropped_records=aggregation.dropped, summary_fallbacks=fallbacks)


def run_pipeline(
    collect: CollectFn,
    render: RenderFn,
    ctx: PipelineContext,
    hook: Optional[SummarizerHook] = None,
    metrics=None,
) -> PipelineResult:
    """
    Collect records, build the digest and render it.

    Raises:
        InvalidTimezoneError: If ctx.timezone is unknown (before collecting)
    """
    resolve_zone(ctx.timezone)

    logger.info("Starting digest pipeline", timezone=ctx.timezone,
                reference=ctx.reference.isoformat())

    with _stage(metrics, "collect"):
        records = collect(ctx)
    logger.info("Records collected", record_count=len(records))

    result = build_digest(records, ctx, hook, metrics)

    with _stage(metrics, "render"):
        output = render(result.digest, ctx)

    logger.info("Digest pipeline completed",
                date=result.digest.date,
                dropped_records=len(result.dropped_records),
                summary_fallbacks=result.summary_fallbacks,
                **result.digest.stats.model_dump())

    return result._replace(output=output)

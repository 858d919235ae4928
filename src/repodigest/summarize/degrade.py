"""
Summarizer hook with rule-based degradation.

A custom summarizer (plugin, LLM, ...) may replace the rule-based highlights,
but whatever it does (raise, hang past its timeout, return garbage) the unit
still gets highlights from `summarize_work_unit`.
"""
import asyncio
import inspect
import threading
from concurrent.futures import Future, TimeoutError as FuturesTimeoutError
from typing import Any, Awaitable, Callable, List, NamedTuple, Optional, Union

import structlog

from repodigest.schemas import WorkUnit
from repodigest.summarize.highlights import summarize_work_unit

logger = structlog.get_logger()

MAX_HOOK_HIGHLIGHTS = 5

SummarizerHook = Callable[[WorkUnit], Union[Optional[List[str]], Awaitable[Optional[List[str]]]]]


class SummaryOutcome(NamedTuple):
    highlights: List[str]
    source: str  # hook | rules
    reason: Optional[str] = None  # error | invalid | empty when source == "rules" after a hook


class HookTimeoutError(RuntimeError):
    """Raised when a summarizer hook does not finish in time."""


async def _resolve(awaitable: Awaitable) -> Any:
    return await awaitable


def _drive(result: Any) -> Any:
    """Run an awaitable hook result to completion."""
    if not inspect.isawaitable(result):
        return result
    coroutine = _resolve(result)
    try:
        return asyncio.run(coroutine)
    except RuntimeError:
        # asyncio.run refuses to start inside a running loop
        coroutine.close()
        if inspect.iscoroutine(result):
            result.close()
        raise


def _validate(result: Any) -> Optional[List[str]]:
    """Cleaned highlights, or None when the hook result is unusable."""
    if not isinstance(result, list) or not result:
        return None
    if not all(isinstance(item, str) for item in result):
        return None
    cleaned = [item.strip() for item in result if item.strip()]
    if not cleaned:
        return None
    return cleaned[:MAX_HOOK_HIGHLIGHTS]


def summarize_with_fallback(
    unit: WorkUnit,
    hook: Optional[SummarizerHook] = None,
    metrics=None,
) -> SummaryOutcome:
    """
    Summarize a unit with an optional hook, falling back to rules.

    Args:
        unit: Work unit to summarize
        hook: Optional custom summarizer
        metrics: Optional MetricsCollector for fallback counting

    Returns:
        SummaryOutcome; never raises for hook failures
    """
    if hook is None:
        return SummaryOutcome(summarize_work_unit(unit), "rules")

    reason = None
    try:
        # hooks get a copy; their edits never reach the digest
        result = _drive(hook(unit.model_copy(deep=True)))
    except Exception as e:
        logger.warning("Summarizer hook failed, using rule-based highlights",
                       unit_key=unit.key,
                       error=str(e),
                       error_type=type(e).__name__)
        reason = "error"
    else:
        highlights = _validate(result)
        if highlights is not None:
            return SummaryOutcome(highlights, "hook")
        only_strings = isinstance(result, list) and all(isinstance(item, str) for item in result)
        reason = "empty" if result is None or only_strings else "invalid"
        logger.warning("Summarizer hook returned unusable result, using rule-based highlights",
                       unit_key=unit.key,
                       reason=reason,
                       result_type=type(result).__name__)

    if metrics is not None:
        metrics.record_summarizer_fallback(reason)

    return SummaryOutcome(summarize_work_unit(unit), "rules", reason)


def with_timeout(hook: SummarizerHook, seconds: float) -> SummarizerHook:
    """
    Bound a hook's wall-clock time.

    The hook (and any awaitable it returns) runs on a daemon thread; on
    timeout HookTimeoutError is raised and the thread is abandoned. A daemon
    thread never holds up interpreter exit.
    """
    def bounded(unit: WorkUnit) -> Optional[List[str]]:
        future: Future = Future()

        def target() -> None:
            try:
                future.set_result(_drive(hook(unit)))
            except BaseException as e:
                future.set_exception(e)

        worker = threading.Thread(target=target, name=f"summarizer-{unit.key}", daemon=True)
        worker.start()
        try:
            return future.result(timeout=seconds)
        except FuturesTimeoutError:
            raise HookTimeoutError(f"Summarizer hook exceeded {seconds}s for {unit.key}")

    return bounded

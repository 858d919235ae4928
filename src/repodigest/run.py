"""
Digest run orchestration: collectors, plugin, pipeline and renderer.
"""
import os
import uuid
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Union

import structlog

from repodigest.assemble.markdown import MarkdownAssembler
from repodigest.assemble.social import render_threads_digest, render_x_digest
from repodigest.config import Config, OutputConfig, get_github_token
from repodigest.ingest.errors import CollectorError
from repodigest.ingest.git import GitLogCollector
from repodigest.ingest.github import GitHubCollector
from repodigest.ingest.window import TimeWindow
from repodigest.observability.metrics import MetricsCollector
from repodigest.pipeline import PipelineContext, run_pipeline
from repodigest.schemas import ActivityRecord, Digest, DigestScope
from repodigest.summarize.degrade import SummarizerHook, with_timeout
from repodigest.summarize.plugin import PluginError, load_summarizer_plugin

logger = structlog.get_logger()

PLUGIN_ENV = "REPODIGEST_SUMMARIZER_PLUGIN"
SOURCES = ("github", "git")


class RenderedOutput(NamedTuple):
    target: str
    content: str
    blocks: Optional[List[str]] = None


class RunOutcome(NamedTuple):
    digest: Digest
    rendered: RenderedOutput
    trace_id: str
    dropped_records: int = 0
    summary_fallbacks: int = 0


def render_output(digest: Digest, output: OutputConfig) -> RenderedOutput:
    """Render a digest for the configured target."""
    target = output.target
    if target == "x":
        blocks = render_x_digest(
            digest,
            tone=output.tone,
            lang=output.lang,
            max_length=output.max_length,
            numbering=output.numbering,
            include_metrics=output.include.metrics,
        )
        return RenderedOutput(target, "\n\n".join(blocks), blocks)

    if target == "threads":
        blocks = render_threads_digest(
            digest,
            tone=output.tone,
            lang=output.lang,
            include_metrics=output.include.metrics,
        )
        return RenderedOutput(target, "\n\n".join(blocks), blocks)

    assembler = MarkdownAssembler(
        include_links=output.include.links,
        include_metrics=output.include.metrics,
        include_stack=output.include.stack,
    )
    return RenderedOutput(target, assembler.render(digest))


def default_sources(config: Config) -> List[str]:
    sources = []
    if config.providers.github.enabled:
        sources.append("github")
    if config.providers.git.enabled:
        sources.append("git")
    return sources


def build_collectors(config: Config, sources: List[str], cwd: Path) -> Dict[str, Any]:
    """
    Instantiate the selected collectors.

    Raises:
        CollectorError: For an unknown source or a missing GitHub token
    """
    collectors: Dict[str, Any] = {}
    for source in sources:
        if source == "github":
            github = config.providers.github
            token = get_github_token(config, cwd)
            if not token:
                raise CollectorError(
                    f"Missing GitHub token. Set {github.token_env} in environment or .env"
                )
            collectors["github"] = GitHubCollector(
                token=token,
                repos=config.scope.repos,
                api_url=github.api_url,
                assignee=github.assignee,
                labels_any=github.labels_any,
                timeout_s=github.timeout_s,
            )
        elif source == "git":
            git = config.providers.git
            repo_path = Path(git.repo_path)
            if not repo_path.is_absolute():
                repo_path = cwd / repo_path
            collectors["git"] = GitLogCollector(
                repo_path=str(repo_path),
                author=git.author,
                max_count=git.max_count,
            )
        else:
            raise CollectorError(f"Unknown source: {source!r}. Expected one of {', '.join(SOURCES)}")
    return collectors


def load_hook(config: Config, cwd: Path) -> Optional[SummarizerHook]:
    """Load the configured summarizer plugin; a broken plugin is disabled, not fatal."""
    specifier = config.output.summarizer_plugin or os.getenv(PLUGIN_ENV)
    if not specifier:
        return None
    try:
        return load_summarizer_plugin(specifier, cwd)
    except PluginError as e:
        logger.warning("Summarizer plugin disabled", plugin=specifier, error=str(e))
        return None


def run_digest(
    config: Config,
    window: TimeWindow,
    sources: Optional[List[str]] = None,
    cwd: Union[str, Path, None] = None,
    hook: Optional[SummarizerHook] = None,
    collectors: Optional[Dict[str, Any]] = None,
    metrics: Optional[MetricsCollector] = None,
) -> RunOutcome:
    """
    Run one digest: collect, build, render.

    Args:
        config: Loaded configuration
        window: Fetch window; its `until` is the digest reference instant
        sources: Collector names (defaults to those enabled in config)
        cwd: Repository root for `.env`, plugins and relative paths
        hook: Summarizer hook overriding the configured plugin
        collectors: Prebuilt collectors by name (objects with `collect(window)`)
        metrics: Metrics collector (one is created when omitted)

    Raises:
        CollectorError: If a collector cannot be built or fails
        InvalidTimezoneError: If the configured zone is unknown
    """
    trace_id = str(uuid.uuid4())
    cwd = Path(cwd) if cwd is not None else Path.cwd()
    sources = sources if sources is not None else default_sources(config)

    if metrics is None:
        metrics = MetricsCollector(config.observability.prometheus_port)
        metrics.start_server()

    logger.info("Starting digest run",
                trace_id=trace_id,
                sources=sources,
                since=window.since_iso,
                until=window.until_iso,
                timezone=config.timezone,
                target=config.output.target)

    if collectors is None:
        collectors = build_collectors(config, sources, cwd)

    if hook is None:
        hook = load_hook(config, cwd)
    if hook is not None:
        hook = with_timeout(hook, config.output.summarizer_timeout_s)

    def collect(ctx: PipelineContext) -> List[ActivityRecord]:
        records: List[ActivityRecord] = []
        for name, collector in collectors.items():
            batch = collector.collect(window)
            logger.info("Collector finished", trace_id=trace_id, source=name, records=len(batch))
            records.extend(batch)
        return records

    def render(digest: Digest, ctx: PipelineContext) -> RenderedOutput:
        return render_output(digest, config.output)

    ctx = PipelineContext(
        reference=window.until,
        timezone=config.timezone,
        scope=DigestScope(repos=config.scope.repos),
        blocked_labels=config.rules.blocked_labels,
        next_labels=config.rules.next_labels,
    )

    try:
        result = run_pipeline(collect, render, ctx, hook=hook, metrics=metrics)
    except Exception as e:
        metrics.record_run_total("failed")
        logger.error("Digest run failed", trace_id=trace_id, error=str(e), error_type=type(e).__name__)
        raise
    finally:
        for collector in collectors.values():
            close = getattr(collector, "close", None)
            if callable(close):
                close()

    metrics.record_run_total("ok")
    logger.info("Digest run completed",
                trace_id=trace_id,
                date=result.digest.date,
                dropped_records=len(result.dropped_records),
                summary_fallbacks=result.summary_fallbacks)

    return RunOutcome(
        digest=result.digest,
        rendered=result.output,
        trace_id=trace_id,
        dropped_records=len(result.dropped_records),
        summary_fallbacks=result.summary_fallbacks,
    )

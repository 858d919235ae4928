"""
Test digest run orchestration.
"""
import time
from datetime import datetime, timezone

import pytest

from repodigest.assemble.digest import assemble_digest
from repodigest.config import Config
from repodigest.ingest.errors import CollectorError
from repodigest.ingest.git import GitLogCollector
from repodigest.ingest.github import GitHubCollector
from repodigest.ingest.window import TimeWindow
from repodigest.observability.metrics import MetricsCollector
from repodigest.run import PLUGIN_ENV, build_collectors, default_sources, load_hook, render_output, run_digest
from repodigest.schemas import EventType

WINDOW = TimeWindow(
    since=datetime(2026, 2, 13, 20, 0, tzinfo=timezone.utc),
    until=datetime(2026, 2, 14, 20, 0, tzinfo=timezone.utc),
)


class StaticCollector:
    def __init__(self, records=None, error=None):
        self.records = records or []
        self.error = error
        self.closed = False

    def collect(self, window):
        if self.error:
            raise self.error
        return self.records

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv(PLUGIN_ENV, raising=False)


@pytest.fixture
def records(make_record):
    return [
        make_record(id="i1", type=EventType.ISSUE_CLOSED, title="Fix login bug",
                    url="https://github.com/acme/app/issues/1"),
        make_record(id="i2", title="Release checklist", labels=["due/today"],
                    url="https://github.com/acme/app/issues/2"),
    ]


def test_run_digest_internal(records, tmp_path):
    """A run collects, builds and renders internal Markdown."""
    collector = StaticCollector(records)
    metrics = MetricsCollector()

    outcome = run_digest(Config(scope={"repos": ["acme/app"]}), WINDOW, cwd=tmp_path,
                         collectors={"github": collector}, metrics=metrics)

    assert outcome.digest.date == "2026-02-14"
    assert outcome.digest.scope.repos == ["acme/app"]
    assert outcome.rendered.target == "internal"
    assert outcome.rendered.content.startswith("# RepoDigest 2026-02-14")
    assert outcome.rendered.blocks is None
    assert [u.title for u in outcome.digest.sections.due_today] == ["Release checklist"]
    assert outcome.trace_id
    assert collector.closed
    assert metrics.get_value("runs_total", {"status": "ok"}) == 1.0


def test_run_digest_x_target(records, tmp_path):
    """Social targets return their blocks."""
    config = Config(output={"target": "x", "tone": "hacker"})
    outcome = run_digest(config, WINDOW, cwd=tmp_path, collectors={"github": StaticCollector(records)},
                         metrics=MetricsCollector())
    assert outcome.rendered.blocks[0].startswith("Build log 2026-02-14")
    assert outcome.rendered.content == "\n\n".join(outcome.rendered.blocks)


def test_run_digest_failure_counted(tmp_path):
    """Collector failures propagate; the run is counted as failed and collectors closed."""
    collector = StaticCollector(error=CollectorError("GitHub rate limit reached for acme/app."))
    metrics = MetricsCollector()

    with pytest.raises(CollectorError):
        run_digest(Config(), WINDOW, cwd=tmp_path, collectors={"github": collector}, metrics=metrics)

    assert collector.closed
    assert metrics.get_value("runs_total", {"status": "failed"}) == 1.0


def test_run_digest_plugin_hook(records, tmp_path, monkeypatch):
    """The plugin named in the environment replaces highlights."""
    (tmp_path / "upper.py").write_text(
        "def summarize_work_unit(unit):\n    return [unit.title.upper()]\n",
        encoding="utf-8",
    )
    monkeypatch.setenv(PLUGIN_ENV, "./upper.py")

    outcome = run_digest(Config(), WINDOW, cwd=tmp_path, collectors={"github": StaticCollector(records)},
                         metrics=MetricsCollector())
    assert outcome.digest.sections.done[0].highlights == ["FIX LOGIN BUG"]
    assert outcome.summary_fallbacks == 0


def test_run_digest_slow_hook_falls_back(records, tmp_path):
    """A hook past its timeout degrades to rule-based highlights."""
    def slow(unit):
        time.sleep(0.5)
        return ["late"]

    config = Config(output={"summarizer_timeout_s": 0.05})
    metrics = MetricsCollector()
    outcome = run_digest(config, WINDOW, cwd=tmp_path, hook=slow,
                         collectors={"github": StaticCollector(records[:1])}, metrics=metrics)

    assert outcome.digest.sections.done[0].highlights == ["Fix login bug"]
    assert outcome.summary_fallbacks == 1
    assert metrics.get_value("summarizer_fallbacks_total", {"reason": "error"}) == 1.0


def test_broken_plugin_is_disabled(tmp_path):
    """A plugin that cannot load is skipped instead of failing the run."""
    config = Config(output={"summarizer_plugin": "./missing.py"})
    assert load_hook(config, tmp_path) is None


def test_build_collectors(tmp_path, monkeypatch):
    """Selected sources become collectors; GitHub needs a token."""
    config = Config(scope={"repos": ["acme/app"]}, providers={"git": {"enabled": True, "repo_path": "sub"}})
    assert default_sources(config) == ["github", "git"]

    with pytest.raises(CollectorError, match="Missing GitHub token. Set GITHUB_TOKEN"):
        build_collectors(config, ["github"], tmp_path)

    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")
    collectors = build_collectors(config, ["github", "git"], tmp_path)
    assert isinstance(collectors["github"], GitHubCollector)
    assert isinstance(collectors["git"], GitLogCollector)
    assert collectors["git"].repo_path == str(tmp_path / "sub")
    collectors["github"].close()

    with pytest.raises(CollectorError, match="Unknown source"):
        build_collectors(config, ["jira"], tmp_path)


def test_render_output_markdown_options(reference):
    """Include switches reach the Markdown renderer."""
    digest = assemble_digest([], reference, "UTC")
    config = Config(output={"target": "markdown", "include": {"metrics": False}})
    rendered = render_output(digest, config.output)
    assert rendered.target == "markdown"
    assert "Stats:" not in rendered.content

import shutil
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from pydantic import ValidationError

from repodigest.config import (
    CONFIG_FILENAME,
    REPO_PATTERN,
    ConfigError,
    format_config_error,
    get_github_token,
    load_config,
    read_config_file,
    save_config,
)
from repodigest.ingest.errors import CollectorError
from repodigest.ingest.window import resolve_time_window
from repodigest.observability.logs import setup_logging
from repodigest.run import RenderedOutput, default_sources, run_digest
from repodigest.assemble.writer import OUTPUT_DIR, DigestWriter

app = typer.Typer(add_completion=False, help="Classified daily digests from repository activity.")

TARGETS = ("internal", "x", "threads", "markdown")
TONES = ("calm", "playful", "hacker", "formal")
LANGS = ("en", "zh-TW", "both")


def _check_choice(name: str, value: Optional[str], choices) -> None:
    if value is not None and value not in choices:
        typer.echo(f"Invalid {name} value: {value}. Expected one of {'|'.join(choices)}", err=True)
        raise typer.Exit(code=1)


def _output_overrides(target: Optional[str], tone: Optional[str], lang: Optional[str]) -> Dict[str, Any]:
    _check_choice("--target", target, TARGETS)
    _check_choice("--tone", tone, TONES)
    _check_choice("--lang", lang, LANGS)
    output = {key: value for key, value in (("target", target), ("tone", tone), ("lang", lang)) if value}
    return {"output": output} if output else {}


def _print_preview(rendered: RenderedOutput) -> None:
    if rendered.blocks:
        typer.echo(f"Preview target: {rendered.target}")
        for index, block in enumerate(rendered.blocks, start=1):
            typer.echo(f"[Block {index}/{len(rendered.blocks)}]")
            typer.echo(block)
        return
    typer.echo(rendered.content)


def _stats_line(digest) -> str:
    stats = digest.stats
    return (f"Stats: done={stats.done}, in_progress={stats.in_progress}, "
            f"blocked={stats.blocked}, due_today={stats.due_today}")


def _run_window_command(
    mode: str,
    since: Optional[str],
    until: Optional[str],
    target: Optional[str],
    tone: Optional[str],
    lang: Optional[str],
    sources: Optional[str],
    preview: bool,
    out: str,
    log_level: Optional[str],
    log_file: Optional[str],
) -> None:
    cwd = Path(out).resolve()

    overrides = _output_overrides(target, tone, lang)
    try:
        config = load_config(cwd, **overrides)
    except (ConfigError, ValidationError) as e:
        typer.echo(f"Cannot load .repodigest.yml\n{format_config_error(e)}", err=True)
        raise typer.Exit(code=1)

    setup_logging(log_level=log_level or config.observability.log_level, log_file=log_file)

    source_list: Optional[List[str]] = None
    if sources:
        source_list = [s.strip() for s in sources.split(",") if s.strip()]

    if not config.scope.repos and "github" in (source_list or default_sources(config)):
        typer.echo("Configuration error: scope.repos must include at least one owner/repo.", err=True)
        raise typer.Exit(code=1)

    now = datetime.now(timezone.utc)
    try:
        if mode == "range":
            window = resolve_time_window(since, until, now, config.timezone,
                                         default_since="monday", default_until="now")
        else:
            window = resolve_time_window(since, until, now, config.timezone)
    except ValueError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)

    try:
        outcome = run_digest(config, window, sources=source_list, cwd=cwd)
    except (CollectorError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if preview:
        _print_preview(outcome.rendered)
        return

    writer = DigestWriter(cwd, write_json=config.output.write_json)
    if mode == "range":
        files = writer.write_range(outcome.rendered.content, window.since_label,
                                   window.until_label, outcome.digest)
    else:
        files = writer.write_daily(outcome.rendered.content, outcome.digest.date, outcome.digest)

    typer.echo(f"Created {files.primary}")
    typer.echo(f"Updated {files.latest}")
    typer.echo(_stats_line(outcome.digest))


@app.command()
def today(
    since: str = typer.Option(None, "--since", help="ISO date/time or shortcut (monday|today|yesterday|now); default: 24h ago"),
    until: str = typer.Option(None, "--until", help="ISO date/time or shortcut (today|yesterday|now); default: now"),
    target: str = typer.Option(None, "--target", help="internal|x|threads|markdown"),
    tone: str = typer.Option(None, "--tone", help="calm|playful|hacker|formal"),
    lang: str = typer.Option(None, "--lang", help="en|zh-TW|both"),
    sources: str = typer.Option(None, "--sources", help="Comma-separated sources (github,git)"),
    preview: bool = typer.Option(False, "--preview", "--dry-run", help="Print the rendered digest instead of writing files"),
    out: str = typer.Option(".", "--out", help="Repository root holding .repodigest.yml and repodigest/"),
    log_level: str = typer.Option(None, "--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR); default: observability.log_level"),
    log_file: str = typer.Option(None, "--log-file", help="Specify log file path"),
):
    """Build the digest for the last 24 hours."""
    _run_window_command("today", since, until, target, tone, lang, sources, preview, out, log_level, log_file)


@app.command(name="range")
def range_(
    since: str = typer.Option("monday", "--since", help="ISO date/time or shortcut (monday|today|yesterday|now)"),
    until: str = typer.Option(None, "--until", help="ISO date/time or shortcut (today|yesterday|now); default: now"),
    target: str = typer.Option(None, "--target", help="internal|x|threads|markdown"),
    tone: str = typer.Option(None, "--tone", help="calm|playful|hacker|formal"),
    lang: str = typer.Option(None, "--lang", help="en|zh-TW|both"),
    sources: str = typer.Option(None, "--sources", help="Comma-separated sources (github,git)"),
    preview: bool = typer.Option(False, "--preview", "--dry-run", help="Print the rendered digest instead of writing files"),
    out: str = typer.Option(".", "--out", help="Repository root holding .repodigest.yml and repodigest/"),
    log_level: str = typer.Option(None, "--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR); default: observability.log_level"),
    log_file: str = typer.Option(None, "--log-file", help="Specify log file path"),
):
    """Build the digest for a date range (default: this Monday to now)."""
    _run_window_command("range", since, until, target, tone, lang, sources, preview, out, log_level, log_file)


@app.command()
def validate(
    out: str = typer.Option(".", "--out", help="Repository root holding .repodigest.yml"),
):
    """Validate configuration and token availability."""
    cwd = Path(out).resolve()
    try:
        config = load_config(cwd)
    except (ConfigError, ValidationError) as e:
        typer.echo("Config validation failed.", err=True)
        typer.echo(format_config_error(e), err=True)
        raise typer.Exit(code=1)

    if not config.scope.repos:
        typer.echo("Config validation failed.", err=True)
        typer.echo("scope.repos must include at least one owner/repo.", err=True)
        raise typer.Exit(code=1)

    token_env = config.providers.github.token_env
    if config.providers.github.enabled and not get_github_token(config, cwd):
        typer.echo("Config validation failed.", err=True)
        typer.echo(f"Missing token value for {token_env} in environment or .env.", err=True)
        raise typer.Exit(code=1)

    typer.echo("Config is valid.")
    typer.echo(f"Timezone: {config.timezone}")
    typer.echo(f"Tracked repos: {len(config.scope.repos)}")

def _abort(heading: str, message: str) -> None:
    typer.echo(heading, err=True)
    typer.echo(message, err=True)
    raise typer.Exit(code=1)


def _unique(items) -> List[str]:
    return list(dict.fromkeys(items))


@app.command()
def init(
    repo: Optional[List[str]] = typer.Option(None, "--repo", help="Repository to track as owner/name (repeatable)"),
    tz: str = typer.Option("UTC", "--timezone", help="IANA zone for digest dates"),
    lang: str = typer.Option("en", "--lang", help="en|zh-TW|both"),
    target: str = typer.Option(None, "--target", help="internal|x|threads|markdown"),
    tone: str = typer.Option(None, "--tone", help="calm|playful|hacker|formal"),
    reinstall: bool = typer.Option(False, "--reinstall", help="Replace an existing install"),
    out: str = typer.Option(".", "--out", help="Repository root to install into"),
):
    """Create .repodigest.yml and the repodigest/ output directory."""
    _check_choice("--lang", lang, LANGS)
    _check_choice("--target", target, TARGETS)
    _check_choice("--tone", tone, TONES)

    cwd = Path(out).resolve()
    if (cwd / CONFIG_FILENAME).exists() and not reinstall:
        _abort("Initialization failed.",
               "RepoDigest is already installed. Re-run with --reinstall to replace the install.")

    repos = list(repo or [])
    if not repos:
        answer = typer.prompt("Repositories to track (owner/name, comma-separated)")
        repos = [item.strip() for item in answer.split(",") if item.strip()]
    if not repos:
        _abort("Initialization failed.", "At least one repo is required.")

    output: Dict[str, Any] = {"lang": lang}
    if target:
        output["target"] = target
    if tone:
        output["tone"] = tone
    data = {"timezone": tz, "scope": {"repos": _unique(repos)}, "output": output}

    try:
        config_path = save_config(data, cwd)
    except ValidationError as e:
        _abort("Initialization failed.", format_config_error(e))

    output_dir = cwd / OUTPUT_DIR
    if reinstall and output_dir.exists():
        shutil.rmtree(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    typer.echo(f"Created {config_path}")
    typer.echo(f"Created {output_dir}")


@app.command()
def update(
    add_repo: Optional[List[str]] = typer.Option(None, "--add-repo", help="Start tracking owner/name (repeatable)"),
    remove_repo: Optional[List[str]] = typer.Option(None, "--remove-repo", help="Stop tracking owner/name (repeatable)"),
    tz: str = typer.Option(None, "--timezone", help="IANA zone for digest dates"),
    lang: str = typer.Option(None, "--lang", help="en|zh-TW|both"),
    target: str = typer.Option(None, "--target", help="internal|x|threads|markdown"),
    tone: str = typer.Option(None, "--tone", help="calm|playful|hacker|formal"),
    out: str = typer.Option(".", "--out", help="Repository root holding .repodigest.yml"),
):
    """Change values in an existing .repodigest.yml."""
    add_repo = add_repo or []
    remove_repo = remove_repo or []
    if not (add_repo or remove_repo or tz or lang or target or tone):
        _abort("Update failed.", "No update options provided. Use at least one of "
               "--add-repo, --remove-repo, --lang, --timezone, --target, --tone.")
    output_overrides = _output_overrides(target, tone, lang)
    for value in add_repo + remove_repo:
        if not REPO_PATTERN.match(value):
            _abort("Update failed.", f"Invalid repo format: {value}. Expected owner/name.")

    cwd = Path(out).resolve()
    try:
        data = read_config_file(cwd)
    except ConfigError as e:
        _abort("Update failed.", str(e))

    scope = data.get("scope") if isinstance(data.get("scope"), dict) else {}
    repos = _unique(scope.get("repos") or [])
    repos.extend(value for value in _unique(add_repo) if value not in repos)
    repos = [value for value in repos if value not in set(remove_repo)]
    if not repos:
        _abort("Update failed.", "At least one repo must remain in scope.repos.")
    data["scope"] = {**scope, "repos": repos}

    if output_overrides:
        current = data.get("output") if isinstance(data.get("output"), dict) else {}
        data["output"] = {**current, **output_overrides["output"]}
    if tz:
        data["timezone"] = tz

    try:
        config_path = save_config(data, cwd)
    except ValidationError as e:
        _abort("Update failed.", format_config_error(e))

    typer.echo(f"Updated {config_path}")
    typer.echo(f"Tracked repos: {len(repos)}")


@app.command()
def remove(
    yes: bool = typer.Option(False, "--yes", help="Confirm deletion"),
    keep_output: bool = typer.Option(False, "--keep-output", help="Keep generated digests under repodigest/"),
    out: str = typer.Option(".", "--out", help="Repository root holding .repodigest.yml"),
):
    """Remove .repodigest.yml and generated digests."""
    if not yes:
        _abort("Remove failed.", "Refusing to remove files without --yes.")

    cwd = Path(out).resolve()
    removed: List[Path] = []

    config_path = cwd / CONFIG_FILENAME
    if config_path.is_file():
        config_path.unlink()
        removed.append(config_path)

    output_dir = cwd / OUTPUT_DIR
    if not keep_output and output_dir.exists():
        shutil.rmtree(output_dir)
        removed.append(output_dir)

    if not removed:
        typer.echo(f"No RepoDigest files found under {cwd}")
        return
    for path in removed:
        typer.echo(f"Removed {path}")



def main():
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("\nInterrupted by user", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()

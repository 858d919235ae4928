"""
Local git history collector.
"""
import re
import subprocess
from pathlib import Path
from typing import Callable, List, NamedTuple, Optional, Sequence

import structlog

from repodigest.ingest.errors import CollectorError
from repodigest.ingest.window import TimeWindow
from repodigest.schemas import ActivityRecord, EventType
from repodigest.utils.tz import parse_timestamp

logger = structlog.get_logger()

FIELD_SEPARATOR = "\x1f"
RECORD_SEPARATOR = "\x1e"
LOG_FORMAT = f"%H{FIELD_SEPARATOR}%an{FIELD_SEPARATOR}%aI{FIELD_SEPARATOR}%s{FIELD_SEPARATOR}%b{RECORD_SEPARATOR}"

REMOTE_PATTERNS = {
    "github": re.compile(r'github\.com[:/](?P<owner>[^/]+)/(?P<repo>[^/\s]+?)(?:\.git)?$'),
    "gitlab": re.compile(r'gitlab\.com[:/](?P<owner>[^/]+)/(?P<repo>[^/\s]+?)(?:\.git)?$'),
    "bitbucket": re.compile(r'bitbucket\.org[:/](?P<owner>[^/]+)/(?P<repo>[^/\s]+?)(?:\.git)?$'),
}


class GitCommandResult(NamedTuple):
    stdout: str
    stderr: str
    exit_code: int


GitRunner = Callable[[Sequence[str], str], GitCommandResult]


def subprocess_runner(args: Sequence[str], cwd: str) -> GitCommandResult:
    """Run git in a subprocess."""
    try:
        completed = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
    except OSError as e:
        return GitCommandResult("", str(e), 127)
    return GitCommandResult(completed.stdout, completed.stderr, completed.returncode)


def repo_from_remote(remote_url: str) -> Optional[str]:
    """`owner/name` from a GitHub, GitLab or Bitbucket remote URL."""
    remote_url = remote_url.strip()
    for pattern in REMOTE_PATTERNS.values():
        match = pattern.search(remote_url)
        if match:
            return f"{match.group('owner')}/{match.group('repo')}"
    return None


def build_commit_url(remote_url: Optional[str], sha: str) -> Optional[str]:
    if not remote_url:
        return None
    remote_url = remote_url.strip()

    match = REMOTE_PATTERNS["github"].search(remote_url)
    if match:
        return f"https://github.com/{match.group('owner')}/{match.group('repo')}/commit/{sha}"

    match = REMOTE_PATTERNS["gitlab"].search(remote_url)
    if match:
        return f"https://gitlab.com/{match.group('owner')}/{match.group('repo')}/-/commit/{sha}"

    return None


def parse_git_log_output(raw: str, repo: str, remote_url: Optional[str] = None) -> List[ActivityRecord]:
    """
    Parse `git log` output produced with LOG_FORMAT.

    Entries missing a sha, date or subject are skipped, as are dates that do
    not parse. Records are ordered by timestamp.
    """
    records = []
    for entry in raw.split(RECORD_SEPARATOR):
        entry = entry.strip()
        if not entry:
            continue

        parts = entry.split(FIELD_SEPARATOR)
        parts += [""] * (5 - len(parts))
        sha, author, authored_at, subject, body = (part.strip() for part in parts[:5])
        if not sha or not authored_at or not subject:
            continue

        try:
            instant = parse_timestamp(authored_at)
        except ValueError:
            logger.warning("Skipping commit with unparseable date", sha=sha, date=authored_at)
            continue

        records.append(ActivityRecord(
            id=f"git:{sha}",
            source="git",
            repo=repo,
            type=EventType.COMMIT,
            title=subject,
            body=body or None,
            url=build_commit_url(remote_url, sha),
            author=author or None,
            timestamp=instant.isoformat().replace("+00:00", "Z"),
            fields={"sha": sha},
        ))

    return sorted(records, key=lambda record: record.timestamp)


class GitLogCollector:
    """Collect commit records from a local working tree."""

    def __init__(self, repo_path: str = ".", author: Optional[str] = None,
                 max_count: int = 200, runner: GitRunner = subprocess_runner):
        self.repo_path = repo_path
        self.author = author
        self.max_count = max_count
        self.runner = runner

    def _git(self, args: List[str]) -> str:
        result = self.runner(args, self.repo_path)
        if result.exit_code != 0:
            raise CollectorError(
                f"git {' '.join(args)} failed: {result.stderr.strip() or 'unknown error'}",
                repo=self.repo_path,
            )
        return result.stdout

    def _remote_url(self) -> Optional[str]:
        try:
            remote = self._git(["config", "--get", "remote.origin.url"]).strip()
        except CollectorError:
            logger.debug("No origin remote", repo_path=self.repo_path)
            return None
        return remote or None

    def collect(self, window: Optional[TimeWindow] = None) -> List[ActivityRecord]:
        remote_url = self._remote_url()
        repo = (repo_from_remote(remote_url) if remote_url else None) or Path(self.repo_path).resolve().name

        args = ["log", "--date=iso-strict", f"--pretty=format:{LOG_FORMAT}"]
        if window is not None:
            args.append(f"--since={window.since_iso}")
            args.append(f"--until={window.until_iso}")
        if self.author:
            args.append(f"--author={self.author}")
        if self.max_count and self.max_count > 0:
            args.append(f"--max-count={self.max_count}")

        records = parse_git_log_output(self._git(args), repo, remote_url)
        logger.info("Git history collected", repo=repo, repo_path=self.repo_path, commits=len(records))
        return records

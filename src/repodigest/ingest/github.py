"""
GitHub REST API collector.

Lists issues, pull requests, milestones and commits for each configured
repository and normalizes them into ActivityRecords.
"""
from typing import Any, Dict, Iterable, List, Optional

import httpx
import structlog
import tenacity

from repodigest import __version__
from repodigest.ingest.errors import CollectorError
from repodigest.ingest.window import TimeWindow
from repodigest.schemas import ActivityRecord, EventType
from repodigest.utils.tz import parse_timestamp

logger = structlog.get_logger()

PER_PAGE = 100
MAX_PAGES = 50


class RetryableStatusError(Exception):
    """5xx response, retried by the collector."""

    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"GitHub returned {response.status_code} for {response.request.url}")


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, (httpx.TransportError, RetryableStatusError))


def _label_names(labels: Optional[Iterable[Any]]) -> List[str]:
    names = []
    for label in labels or []:
        name = label if isinstance(label, str) else (label or {}).get("name")
        if name:
            names.append(name)
    return names


def _login(user: Optional[Dict[str, Any]]) -> Optional[str]:
    return (user or {}).get("login") or None


def normalize_github_data(
    repo: str,
    issues: Optional[List[Dict[str, Any]]] = None,
    pull_requests: Optional[List[Dict[str, Any]]] = None,
    commits: Optional[List[Dict[str, Any]]] = None,
) -> List[ActivityRecord]:
    """
    Convert GitHub API payloads into activity records.

    Issues yield `issue_created` (plus `issue_closed` when closed), pull
    requests `pr_opened` (plus `pr_merged` when merged) and commits `commit`
    titled by the first line of the message. Records are ordered by timestamp.
    """
    records: List[ActivityRecord] = []

    for issue in issues or []:
        milestone = issue.get("milestone") or {}
        base = dict(
            source="github",
            repo=repo,
            title=issue.get("title"),
            body=issue.get("body") or None,
            url=issue.get("html_url"),
            author=_login(issue.get("user")),
            labels=_label_names(issue.get("labels")),
            milestone_title=milestone.get("title"),
            milestone_due_on=milestone.get("due_on"),
            fields={"number": issue.get("number")},
        )
        records.append(ActivityRecord(id=f"issue:{issue['id']}:created", type=EventType.ISSUE_CREATED,
                                      timestamp=issue.get("created_at") or "", **base))
        if issue.get("state") == "closed" and issue.get("closed_at"):
            records.append(ActivityRecord(id=f"issue:{issue['id']}:closed", type=EventType.ISSUE_CLOSED,
                                          timestamp=issue["closed_at"], **base))

    for pr in pull_requests or []:
        base = dict(
            source="github",
            repo=repo,
            title=pr.get("title"),
            body=pr.get("body") or None,
            url=pr.get("html_url"),
            author=_login(pr.get("user")),
            labels=_label_names(pr.get("labels")),
            fields={"number": pr.get("number")},
        )
        records.append(ActivityRecord(id=f"pr:{pr['id']}:opened", type=EventType.PR_OPENED,
                                      timestamp=pr.get("created_at") or "", **base))
        if pr.get("merged_at"):
            records.append(ActivityRecord(id=f"pr:{pr['id']}:merged", type=EventType.PR_MERGED,
                                          timestamp=pr["merged_at"], **base))

    for entry in commits or []:
        commit = entry.get("commit") or {}
        message = commit.get("message") or ""
        lines = message.splitlines()
        title = (lines[0].strip() if lines else "") or "(commit)"
        author_info = commit.get("author") or {}
        committer_info = commit.get("committer") or {}
        author = (
            _login(entry.get("author"))
            or _login(entry.get("committer"))
            or author_info.get("name")
            or committer_info.get("name")
        )
        records.append(ActivityRecord(
            id=f"commit:{entry['sha']}",
            source="github",
            repo=repo,
            type=EventType.COMMIT,
            title=title,
            body=message or None,
            url=entry.get("html_url"),
            author=author,
            timestamp=author_info.get("date") or committer_info.get("date") or "",
            fields={"sha": entry["sha"]},
        ))

    return sorted(records, key=lambda record: record.timestamp)


def with_milestone_due_fallback(issues: List[Dict[str, Any]],
                                milestones: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Fill a missing issue milestone due date from the milestone list, matched by title."""
    due_by_title = {m.get("title"): m.get("due_on") for m in milestones}
    patched = []
    for issue in issues:
        milestone = issue.get("milestone")
        if milestone and not milestone.get("due_on") and due_by_title.get(milestone.get("title")):
            issue = {**issue, "milestone": {**milestone, "due_on": due_by_title[milestone["title"]]}}
        patched.append(issue)
    return patched


def _in_window(value: Optional[str], window: TimeWindow) -> bool:
    if not value:
        return False
    try:
        return window.contains(parse_timestamp(value))
    except ValueError:
        return False


def _has_any_label(labels: List[str], wanted: List[str]) -> bool:
    if not wanted:
        return True
    present = {label.lower() for label in labels}
    return any(label.lower() in present for label in wanted)


def format_provider_error(error: httpx.HTTPStatusError, repo: str) -> CollectorError:
    """Rephrase an HTTP error for the user."""
    status = error.response.status_code
    try:
        payload = error.response.json()
    except ValueError:
        payload = None
    message = str(payload.get("message", "")) if isinstance(payload, dict) else error.response.text

    if status == 403 and "rate limit" in message.lower():
        text = f"GitHub rate limit reached for {repo}. Retry later or use a higher quota token."
    elif status == 401:
        text = f"GitHub authentication failed for {repo}. Check token permissions and value."
    else:
        text = f"GitHub provider error for {repo}: {status} {message}".rstrip()
    return CollectorError(text, repo=repo, status_code=status)


class GitHubCollector:
    """Collect activity records from the GitHub REST API."""

    def __init__(
        self,
        token: Optional[str],
        repos: List[str],
        api_url: str = "https://api.github.com",
        assignee: Optional[str] = None,
        labels_any: Optional[List[str]] = None,
        timeout_s: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        self.repos = list(repos)
        self.assignee = assignee
        self.labels_any = list(labels_any or [])

        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": f"repodigest/{__version__}",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.client = client or httpx.Client(
            base_url=api_url,
            headers=headers,
            timeout=httpx.Timeout(timeout_s),
        )
        self.stats = {'requests': 0, 'pages': 0, 'records': 0}

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    @tenacity.retry(
        stop=tenacity.stop_after_attempt(3),
        wait=tenacity.wait_exponential(multiplier=0.5, max=4),
        retry=tenacity.retry_if_exception(_is_transient),
        reraise=True,
    )
    def _get_page(self, url: str, params: Optional[Dict[str, Any]]) -> httpx.Response:
        self.stats['requests'] += 1
        response = self.client.get(url, params=params)
        if response.status_code >= 500:
            logger.warning("GitHub server error, retrying", url=url, status_code=response.status_code)
            raise RetryableStatusError(response)
        response.raise_for_status()
        return response

    def _paginate(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        url: Optional[str] = path
        query: Optional[Dict[str, Any]] = {**params, "per_page": PER_PAGE}

        for _ in range(MAX_PAGES):
            response = self._get_page(url, query)
            self.stats['pages'] += 1
            items.extend(response.json())

            url = response.links.get("next", {}).get("url")
            if not url:
                break
            # the next link already carries the query string
            query = None
        else:
            logger.warning("GitHub pagination limit reached", path=path, max_pages=MAX_PAGES)

        return items

    def fetch_repo(self, repo: str, window: TimeWindow) -> List[ActivityRecord]:
        """Fetch and normalize one `owner/name` repository."""
        owner, _, name = repo.strip().partition("/")
        if not owner or not name or "/" in name:
            raise CollectorError(f"Invalid repo reference: {repo}. Expected owner/repo.", repo=repo)

        base = f"/repos/{owner}/{name}"
        since, until = window.since_iso, window.until_iso

        try:
            issue_params = {"state": "all", "sort": "updated", "direction": "desc", "since": since}
            if self.assignee:
                issue_params["assignee"] = self.assignee
            issues = [item for item in self._paginate(f"{base}/issues", issue_params)
                      if "pull_request" not in item]
            pulls = self._paginate(f"{base}/pulls", {"state": "all", "sort": "updated", "direction": "desc"})
            milestones = self._paginate(f"{base}/milestones", {"state": "all"})
            commits = self._paginate(f"{base}/commits", {"since": since, "until": until})
        except httpx.HTTPStatusError as e:
            raise format_provider_error(e, repo) from e
        except (httpx.TransportError, RetryableStatusError) as e:
            raise CollectorError(f"GitHub provider error for {repo}: {e}", repo=repo) from e

        issues = [
            issue for issue in with_milestone_due_fallback(issues, milestones)
            if _in_window(issue.get("updated_at") or issue.get("created_at"), window)
            and _has_any_label(_label_names(issue.get("labels")), self.labels_any)
        ]
        pulls = [
            pr for pr in pulls
            if _in_window(pr.get("updated_at") or pr.get("created_at"), window)
            and _has_any_label(_label_names(pr.get("labels")), self.labels_any)
        ]
        commits = [
            entry for entry in commits
            if _in_window(((entry.get("commit") or {}).get("author") or {}).get("date")
                          or ((entry.get("commit") or {}).get("committer") or {}).get("date"), window)
        ]

        records = normalize_github_data(f"{owner}/{name}", issues, pulls, commits)
        logger.info("GitHub repository collected",
                    repo=repo,
                    issues=len(issues),
                    pull_requests=len(pulls),
                    commits=len(commits),
                    records=len(records))
        return records

    def collect(self, window: TimeWindow) -> List[ActivityRecord]:
        """Fetch every configured repository; records ordered by timestamp."""
        records: List[ActivityRecord] = []
        for repo in self.repos:
            records.extend(self.fetch_repo(repo, window))
        self.stats['records'] = len(records)
        return sorted(records, key=lambda record: record.timestamp)

"""
Test GitHub collection against a mocked REST API.
"""
from datetime import datetime, timezone

import httpx
import pytest
import tenacity

from repodigest.ingest.errors import CollectorError
from repodigest.ingest.github import GitHubCollector, normalize_github_data, with_milestone_due_fallback
from repodigest.ingest.window import TimeWindow
from repodigest.schemas import EventType

API = "https://api.github.com"
WINDOW = TimeWindow(
    since=datetime(2026, 2, 13, 20, 0, tzinfo=timezone.utc),
    until=datetime(2026, 2, 14, 20, 0, tzinfo=timezone.utc),
)

ISSUES = [
    {
        "id": 11, "number": 1, "title": "Fix login bug", "body": "Users cannot log in. Needs a patch.",
        "state": "closed", "created_at": "2026-02-14T08:00:00Z", "updated_at": "2026-02-14T12:00:00Z",
        "closed_at": "2026-02-14T12:00:00Z", "html_url": "https://github.com/acme/app/issues/1",
        "user": {"login": "alice"}, "labels": [{"name": "bug"}],
        "milestone": {"title": "v1.0", "due_on": None},
    },
    {
        # pull requests show up in the issues listing too
        "id": 12, "number": 2, "title": "PR as issue", "state": "open",
        "created_at": "2026-02-14T09:00:00Z", "updated_at": "2026-02-14T09:00:00Z",
        "pull_request": {"url": "..."}, "labels": [],
    },
    {
        "id": 13, "number": 3, "title": "Old issue", "state": "open",
        "created_at": "2026-01-01T00:00:00Z", "updated_at": "2026-01-02T00:00:00Z", "labels": [],
    },
]
PULLS = [
    {
        "id": 21, "number": 2, "title": "Add rate limiter", "body": None, "state": "closed",
        "created_at": "2026-02-14T09:00:00Z", "updated_at": "2026-02-14T10:00:00Z",
        "merged_at": "2026-02-14T10:00:00Z", "html_url": "https://github.com/acme/app/pull/2",
        "user": {"login": "bob"}, "labels": ["feature"],
    },
]
MILESTONES = [{"title": "v1.0", "due_on": "2026-02-20T08:00:00Z"}]
COMMITS = [
    {
        "sha": "abc123", "html_url": "https://github.com/acme/app/commit/abc123",
        "author": None, "committer": {"login": "carol"},
        "commit": {"message": "Bump deps\n\nRoutine update.",
                   "author": {"name": "Carol", "date": "2026-02-14T11:00:00Z"}},
    },
]


def _json(payload, status=200, headers=None):
    return httpx.Response(status, json=payload, headers=headers)


def _routes(overrides=None):
    routes = {
        "/repos/acme/app/issues": lambda request: _json(ISSUES),
        "/repos/acme/app/pulls": lambda request: _json(PULLS),
        "/repos/acme/app/milestones": lambda request: _json(MILESTONES),
        "/repos/acme/app/commits": lambda request: _json(COMMITS),
    }
    routes.update(overrides or {})
    return routes


def _collector(routes, calls=None, **kwargs):
    def handler(request):
        if calls is not None:
            calls.append(request)
        return routes[request.url.path](request)

    client = httpx.Client(transport=httpx.MockTransport(handler), base_url=API)
    return GitHubCollector(token="test-token", repos=["acme/app"], client=client, **kwargs)


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    """Retry immediately."""
    monkeypatch.setattr(GitHubCollector._get_page.retry, "wait", tenacity.wait_none())


def test_collect_normalizes_records():
    """Issues, pull requests and commits become ordered records."""
    records = _collector(_routes()).collect(WINDOW)

    assert [r.id for r in records] == [
        "issue:11:created",
        "pr:21:opened",
        "pr:21:merged",
        "commit:abc123",
        "issue:11:closed",
    ]
    issue = records[0]
    assert issue.type == EventType.ISSUE_CREATED
    assert issue.repo == "acme/app"
    assert issue.labels == ["bug"]
    assert issue.author == "alice"
    assert issue.fields["number"] == 1
    # milestone due date filled from the milestone listing
    assert issue.milestone_due_on == "2026-02-20T08:00:00Z"

    commit = records[3]
    assert commit.title == "Bump deps"
    assert commit.author == "carol"
    assert commit.fields["sha"] == "abc123"


def test_request_parameters():
    """Issue listing passes state, since and assignee."""
    calls = []
    _collector(_routes(), calls, assignee="alice").collect(WINDOW)

    issues_call = next(c for c in calls if c.url.path.endswith("/issues"))
    assert issues_call.url.params["state"] == "all"
    assert issues_call.url.params["since"] == "2026-02-13T20:00:00Z"
    assert issues_call.url.params["assignee"] == "alice"
    assert issues_call.url.params["per_page"] == "100"

    commits_call = next(c for c in calls if c.url.path.endswith("/commits"))
    assert commits_call.url.params["until"] == "2026-02-14T20:00:00Z"


def test_labels_any_filter():
    """Only items carrying a wanted label are kept; commits are unaffected."""
    records = _collector(_routes(), labels_any=["Feature"]).collect(WINDOW)
    assert {r.id for r in records} == {"pr:21:opened", "pr:21:merged", "commit:abc123"}


def test_pagination_follows_link_header():
    """The next link is followed until absent."""
    page_two = f"{API}/repos/acme/app/commits?page=2"

    def commits(request):
        if request.url.params.get("page") == "2":
            return _json([])
        return _json(COMMITS, headers={"Link": f'<{page_two}>; rel="next"'})

    calls = []
    collector = _collector(_routes({"/repos/acme/app/commits": commits}), calls)
    records = collector.collect(WINDOW)

    assert sum(1 for c in calls if c.url.path.endswith("/commits")) == 2
    assert collector.stats["pages"] == 5
    assert collector.stats["records"] == len(records)


def test_server_error_is_retried():
    """A transient 5xx is retried and then succeeds."""
    attempts = []

    def flaky(request):
        attempts.append(request)
        if len(attempts) == 1:
            return _json({"message": "bad gateway"}, status=502)
        return _json(PULLS)

    records = _collector(_routes({"/repos/acme/app/pulls": flaky})).collect(WINDOW)
    assert len(attempts) == 2
    assert any(r.id == "pr:21:merged" for r in records)


def test_server_error_gives_up():
    """Persistent 5xx ends in a CollectorError after three attempts."""
    attempts = []

    def broken(request):
        attempts.append(request)
        return _json({"message": "boom"}, status=500)

    with pytest.raises(CollectorError, match="GitHub provider error for acme/app"):
        _collector(_routes({"/repos/acme/app/issues": broken})).collect(WINDOW)
    assert len(attempts) == 3


@pytest.mark.parametrize("status,payload,expected", [
    (401, {"message": "Bad credentials"}, "GitHub authentication failed for acme/app"),
    (403, {"message": "API rate limit exceeded for user"}, "GitHub rate limit reached for acme/app"),
    (404, {"message": "Not Found"}, "GitHub provider error for acme/app: 404 Not Found"),
])
def test_client_errors(status, payload, expected):
    """Client errors are not retried and are rephrased."""
    attempts = []

    def failing(request):
        attempts.append(request)
        return _json(payload, status=status)

    with pytest.raises(CollectorError, match=expected) as excinfo:
        _collector(_routes({"/repos/acme/app/issues": failing})).collect(WINDOW)
    assert excinfo.value.status_code == status
    assert len(attempts) == 1


def test_invalid_repo_reference():
    """Repos must be owner/name."""
    collector = _collector(_routes())
    with pytest.raises(CollectorError, match="Invalid repo reference"):
        collector.fetch_repo("acme", WINDOW)


def test_default_client_headers():
    """The default client authenticates with the token."""
    with GitHubCollector(token="secret", repos=[]) as collector:
        assert collector.client.headers["Authorization"] == "Bearer secret"
        assert collector.client.headers["Accept"] == "application/vnd.github+json"


def test_normalize_without_optional_fields():
    """Missing bodies, users and commit subjects get sensible defaults."""
    records = normalize_github_data(
        "acme/app",
        issues=[{"id": 1, "title": "T", "created_at": "2026-02-14T08:00:00Z", "state": "open"}],
        commits=[{"sha": "f00", "commit": {"message": "", "committer": {"date": "2026-02-14T07:00:00Z"}}}],
    )
    assert [r.id for r in records] == ["commit:f00", "issue:1:created"]
    assert records[0].title == "(commit)"
    assert records[0].timestamp == "2026-02-14T07:00:00Z"
    assert records[1].author is None
    assert records[1].body is None


def test_milestone_fallback_keeps_existing_due():
    """An issue's own milestone due date is not overwritten."""
    issues = [{"milestone": {"title": "v1", "due_on": "2026-03-01T00:00:00Z"}}, {"milestone": None}]
    patched = with_milestone_due_fallback(issues, [{"title": "v1", "due_on": "2026-04-01T00:00:00Z"}])
    assert patched[0]["milestone"]["due_on"] == "2026-03-01T00:00:00Z"
    assert patched[1]["milestone"] is None

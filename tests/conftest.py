"""
Shared fixtures for RepoDigest tests.
"""
from datetime import datetime, timezone

import pytest

from repodigest.schemas import ActivityRecord, EventType


@pytest.fixture
def make_record():
    """Factory for ActivityRecords with sensible defaults."""
    counter = {"n": 0}

    def _make(type=EventType.ISSUE_CREATED, timestamp="2026-02-14T08:00:00Z", **kwargs):
        counter["n"] += 1
        kwargs.setdefault("id", f"rec-{counter['n']}")
        kwargs.setdefault("source", "github")
        kwargs.setdefault("repo", "acme/app")
        return ActivityRecord(type=type, timestamp=timestamp, **kwargs)

    return _make


@pytest.fixture
def reference():
    """Fixed reference instant: 2026-02-14 20:00 UTC (2026-02-15 04:00 in Taipei)."""
    return datetime(2026, 2, 14, 20, 0, tzinfo=timezone.utc)

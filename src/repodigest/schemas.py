"""
Data models shared by every pipeline stage.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field


class EventType(str, Enum):
    """Kind of a single activity record."""
    ISSUE_CREATED = "issue_created"
    ISSUE_CLOSED = "issue_closed"
    ISSUE_COMMENTED = "issue_commented"
    PR_OPENED = "pr_opened"
    PR_MERGED = "pr_merged"
    PR_REVIEWED = "pr_reviewed"
    COMMIT = "commit"
    RELEASE = "release"
    NOTE = "note"


class WorkKind(str, Enum):
    ISSUE = "issue"
    PR = "pr"
    COMMIT = "commit"
    RELEASE = "release"
    NOTE = "note"


class WorkStatus(str, Enum):
    DONE = "done"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    PLANNED = "planned"
    UNKNOWN = "unknown"


PLACEHOLDER_TITLE = "(untitled)"


class ActivityRecord(BaseModel):
    """One normalized event from a collector (GitHub API, git log, ...)."""
    id: str = Field(description="Source-scoped unique id")
    source: str = Field(description="Collector tag, e.g. 'github' or 'git'")
    type: EventType
    timestamp: str = Field(description="ISO-8601 instant; validated by the aggregator")
    repo: Optional[str] = Field(default=None, description="owner/name")
    title: Optional[str] = None
    body: Optional[str] = None
    url: Optional[str] = None
    author: Optional[str] = None
    labels: List[str] = Field(default_factory=list)
    milestone_title: Optional[str] = None
    milestone_due_on: Optional[str] = None
    fields: Dict[str, Any] = Field(default_factory=dict)


class WorkUnit(BaseModel):
    """Aggregated unit of work built from one or more records sharing a key."""
    key: str
    kind: WorkKind
    title: str = PLACEHOLDER_TITLE
    repo: Optional[str] = None
    url: Optional[str] = None
    labels: List[str] = Field(default_factory=list)
    due: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    due_source: str = "none"
    status: WorkStatus = WorkStatus.UNKNOWN
    highlights: List[str] = Field(default_factory=list)
    evidence: List[ActivityRecord] = Field(min_length=1, description="Chronological audit trail")
    stack_hints: List[str] = Field(default_factory=list)


class DigestScope(BaseModel):
    repos: List[str] = Field(default_factory=list)
    user: Optional[str] = None
    team: Optional[str] = None


class DigestStats(BaseModel):
    done: int = 0
    in_progress: int = 0
    blocked: int = 0
    due_today: int = 0


class DigestSections(BaseModel):
    due_today: List[WorkUnit] = Field(default_factory=list)
    done: List[WorkUnit] = Field(default_factory=list)
    in_progress: List[WorkUnit] = Field(default_factory=list)
    blocked: List[WorkUnit] = Field(default_factory=list)
    next: List[WorkUnit] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)


class Digest(BaseModel):
    """Classified, bucketed and sorted output of one pipeline run."""
    schema_version: str = "1.0"
    date: str = Field(description="Calendar date in `timezone`")
    timezone: str
    scope: DigestScope = Field(default_factory=DigestScope)
    sections: DigestSections = Field(default_factory=DigestSections)
    stack: Optional[List[str]] = None

    @computed_field
    @property
    def stats(self) -> DigestStats:
        return DigestStats(
            done=len(self.sections.done),
            in_progress=len(self.sections.in_progress),
            blocked=len(self.sections.blocked),
            due_today=len(self.sections.due_today),
        )

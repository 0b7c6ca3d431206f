"""
Data models for the monitor.

Typed representations of the incident post, the issue that tracks it,
the metadata linking the two, and the runtime configuration.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Issue:
    """An open incident issue as returned by the tracker."""

    number: int
    title: str
    body: str = ""


@dataclass(frozen=True)
class IssueMetadata:
    """Link from an issue back to its content file."""

    filename: str
    hash: str


@dataclass(frozen=True)
class ContentFile:
    """A file fetched from the content repository."""

    path: str
    text: str
    sha: str


@dataclass
class IncidentDocument:
    """
    An incident post: YAML front matter plus a Markdown narrative.

    Attributes:
        title: Post title, e.g. "API Outage".
        date: When the outage was first detected.
        affected: Names of the affected services.
        severity: Severity label shown on the status page.
        resolved: Whether the outage is over.
        resolved_when: When the outage was resolved, if it is.
        body: Narrative text following the front matter.
        extra: Front-matter keys this model does not know about.
    """

    title: str
    date: datetime
    affected: List[str] = field(default_factory=list)
    severity: str = "down"
    resolved: bool = False
    resolved_when: Optional[datetime] = None
    section: str = "issue"
    draft: bool = False
    informational: bool = False
    pin: bool = False
    body: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)


class Outcome(str, enum.Enum):
    """What a single reconciliation pass did."""

    OPENED = "opened"
    RESOLVED = "resolved"
    STILL_DOWN = "still_down"
    STILL_UP = "still_up"
    FAILED = "failed"


@dataclass(frozen=True)
class RunResult:
    """Outcome of one pass, with the error that stopped it if any."""

    outcome: Outcome
    online: Optional[bool] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.outcome is not Outcome.FAILED


@dataclass
class MonitorConfig:
    """Everything a pass needs to know about the monitored service."""

    check_url: str
    issue_label: str
    service_name: str
    repository: str
    app_id: int
    private_key: str
    installation_id: int
    discord_webhook_url: Optional[str] = None
    healthchecks_url: Optional[str] = None

    @property
    def owner(self) -> str:
        return self.repository.split("/", 1)[0]

    @property
    def repo(self) -> str:
        return self.repository.split("/", 1)[1]


@dataclass
class MonitorSettings:
    """Runtime settings."""

    log_level: str = "INFO"
    content_path: str = "content/issues"
    api_url: str = "https://api.github.com"
    request_timeout: float = 30.0
    interval: int = 300  # seconds between passes in loop mode

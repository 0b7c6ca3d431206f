"""
Exception hierarchy.

Each step of a reconciliation pass that writes to, or reads from, the
issue tracker has its own error type so a failed run can say exactly
where it stopped.
"""

from __future__ import annotations

from typing import Optional


class MonitorError(Exception):
    """Base class for every error raised by the monitor."""


class ConfigError(MonitorError):
    """Required configuration is missing or malformed."""


class GitHubError(MonitorError):
    """The GitHub API answered with an unexpected status code."""

    def __init__(self, status: int, message: str, url: Optional[str] = None) -> None:
        self.status = status
        self.url = url
        super().__init__(f"GitHub API returned HTTP {status}: {message}")


class ReconcileError(MonitorError):
    """A reconciliation step failed; the pass is aborted."""


class AuthenticationError(ReconcileError):
    pass


class TrackerQueryError(ReconcileError):
    pass


class FileCreateError(ReconcileError):
    pass


class IssueCreateError(ReconcileError):
    pass


class IssueMetadataError(ReconcileError):
    """The issue body does not carry a readable filename/hash payload."""


class FileUpdateError(ReconcileError):
    pass


class IssueCloseError(ReconcileError):
    pass

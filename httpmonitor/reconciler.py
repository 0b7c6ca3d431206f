"""
Reconciler — the core state machine.

A pass compares two facts, whether an incident issue is open and
whether the service answers, and acts on the combination:

  issue open | online | action
  -----------+--------+---------------------------------------------
  no         | no     | create incident post, open issue, notify
  yes        | yes    | resolve incident post, close issue, notify
  no         | yes    | nothing
  yes        | no     | nothing (already tracked)

External systems are reached only through the capabilities held by
ReconcileContext, so the whole pass can run against fakes. Any failed
step aborts the pass; the next scheduled pass starts over from the
stored issue and file.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Protocol, Tuple

import aiohttp
import jwt

from httpmonitor import console
from httpmonitor.documents import (
    incident_filename,
    new_incident,
    parse_document,
    parse_issue_body,
    render_document,
    render_issue_body,
    resolve_incident,
)
from httpmonitor.errors import (
    AuthenticationError,
    FileCreateError,
    FileUpdateError,
    GitHubError,
    IssueCloseError,
    IssueCreateError,
    ReconcileError,
    TrackerQueryError,
)
from httpmonitor.models import (
    ContentFile,
    Issue,
    IssueMetadata,
    MonitorConfig,
    MonitorSettings,
    Outcome,
    RunResult,
)

# What a tracker call may raise when GitHub or the network misbehaves
_CALL_ERRORS = (
    GitHubError,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    jwt.PyJWTError,
    KeyError,
    TypeError,
    ValueError,
)


class Tracker(Protocol):
    async def authenticate(self) -> str: ...

    async def list_open_issues(self, label: str) -> List[Issue]: ...

    async def create_issue(self, title: str, body: str, label: str) -> Issue: ...

    async def close_issue(self, number: int) -> None: ...

    async def create_file(self, path: str, text: str, message: str) -> str: ...

    async def get_file(self, path: str) -> ContentFile: ...

    async def update_file(self, path: str, text: str, message: str, sha: str) -> str: ...


class Prober(Protocol):
    async def is_online(self) -> bool: ...


class Notifier(Protocol):
    async def notify(self, online: bool) -> None: ...


class Heartbeat(Protocol):
    async def start(self) -> None: ...

    async def success(self) -> None: ...

    async def failure(self, message: str | None = None) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReconcileContext:
    """Configuration plus the capabilities a pass talks to."""

    config: MonitorConfig
    settings: MonitorSettings
    tracker: Tracker
    prober: Prober
    notifier: Notifier
    heartbeat: Heartbeat
    clock: Callable[[], datetime] = _utcnow


@dataclass
class _Background:
    """Fire-and-forget calls whose failures are logged, never raised."""

    _tasks: List[Tuple[str, asyncio.Task]] = field(default_factory=list)

    def spawn(self, label: str, call: Awaitable[None]) -> None:
        self._tasks.append((label, asyncio.ensure_future(call)))

    async def drain(self) -> None:
        if not self._tasks:
            return
        results = await asyncio.gather(*(task for _, task in self._tasks), return_exceptions=True)
        for (label, _), result in zip(self._tasks, results):
            if isinstance(result, BaseException):
                console.print_warning(f"{label} failed: {result!r}")
        self._tasks.clear()


async def reconcile(ctx: ReconcileContext) -> RunResult:
    """
    Run one reconciliation pass.

    Never raises for a failed step: the failure is logged, reported to
    the heartbeat and returned as an Outcome.FAILED result.
    """
    service = ctx.config.service_name
    console.print_run_start(service, ctx.config.check_url)

    try:
        await ctx.heartbeat.start()
    except Exception as exc:
        console.print_warning(f"heartbeat start failed: {exc!r}")

    background = _Background()
    try:
        result = await _run_pass(ctx, background)
    except ReconcileError as exc:
        console.print_error(service, str(exc))
        background.spawn("heartbeat failure", ctx.heartbeat.failure(str(exc)))
        result = RunResult(Outcome.FAILED, error=exc)
    except Exception as exc:
        console.print_error(service, f"Unexpected error: {exc!r}")
        background.spawn("heartbeat failure", ctx.heartbeat.failure(f"Unexpected error: {exc!r}"))
        result = RunResult(Outcome.FAILED, error=exc)
    else:
        background.spawn("heartbeat success", ctx.heartbeat.success())

    await background.drain()
    console.print_outcome(service, result.outcome.value)
    return result


async def _run_pass(ctx: ReconcileContext, background: _Background) -> RunResult:
    try:
        slug = await ctx.tracker.authenticate()
    except _CALL_ERRORS as exc:
        raise AuthenticationError(f"Could not authenticate GitHub App: {exc}") from exc
    console.print_authenticated(slug)

    try:
        issues = await ctx.tracker.list_open_issues(ctx.config.issue_label)
    except _CALL_ERRORS as exc:
        raise TrackerQueryError(f"Unable to retrieve issues: {exc}") from exc

    online = await ctx.prober.is_online()
    console.print_probe(ctx.config.service_name, online)

    if not issues:
        if online:
            return RunResult(Outcome.STILL_UP, online=True)
        await open_incident(ctx)
        background.spawn("discord notification", ctx.notifier.notify(False))
        return RunResult(Outcome.OPENED, online=False)

    if len(issues) > 1:
        console.print_warning(
            f"{len(issues)} open issues labelled {ctx.config.issue_label!r}; "
            f"reconciling #{issues[0].number} only"
        )
    if not online:
        return RunResult(Outcome.STILL_DOWN, online=False)

    await close_incident(ctx, issues[0])
    background.spawn("discord notification", ctx.notifier.notify(True))
    return RunResult(Outcome.RESOLVED, online=True)


async def open_incident(ctx: ReconcileContext) -> Issue:
    """
    Write the incident post, then open the issue pointing at it.

    A post whose issue could not be opened is left in place.
    """
    service = ctx.config.service_name
    now = ctx.clock()
    filename = incident_filename(service, now)
    path = _content_path(ctx.settings, filename)

    try:
        sha = await ctx.tracker.create_file(
            path,
            render_document(new_incident(service, now)),
            f"Report outage for {service}",
        )
    except _CALL_ERRORS as exc:
        raise FileCreateError(f"Could not create incident file {path}: {exc}") from exc
    console.print_step(f"Created {path}")

    metadata = IssueMetadata(filename=filename, hash=sha)
    try:
        issue = await ctx.tracker.create_issue(
            f"{service} Down",
            render_issue_body(metadata, now),
            ctx.config.issue_label,
        )
    except _CALL_ERRORS as exc:
        raise IssueCreateError(f"Could not open incident issue for {filename}: {exc}") from exc
    console.print_step(f"Opened issue #{issue.number}")
    return issue


async def close_incident(ctx: ReconcileContext, issue: Issue) -> None:
    """
    Mark the issue's incident post resolved, then close the issue.

    The issue is only closed once the post update has been accepted.
    A post that is already resolved is not written again.
    """
    service = ctx.config.service_name
    metadata = parse_issue_body(issue.body)
    path = _content_path(ctx.settings, metadata.filename)

    try:
        current = await ctx.tracker.get_file(path)
        document = parse_document(current.text)
    except _CALL_ERRORS as exc:
        raise FileUpdateError(f"Could not read incident file {path}: {exc}") from exc

    if document.resolved:
        console.print_warning(f"{path} is already resolved, closing #{issue.number}")
    else:
        resolved = resolve_incident(document, service, ctx.clock())
        try:
            await ctx.tracker.update_file(
                path,
                render_document(resolved),
                f"Report uptime for {service}",
                metadata.hash,
            )
        except _CALL_ERRORS as exc:
            raise FileUpdateError(f"Could not update incident file {path}: {exc}") from exc
        console.print_step(f"Resolved {path}")

    try:
        await ctx.tracker.close_issue(issue.number)
    except _CALL_ERRORS as exc:
        raise IssueCloseError(f"Could not close issue #{issue.number}: {exc}") from exc
    console.print_step(f"Closed issue #{issue.number}")


def _content_path(settings: MonitorSettings, filename: str) -> str:
    return f"{settings.content_path.strip('/')}/{filename}"

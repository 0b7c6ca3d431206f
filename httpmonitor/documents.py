"""
Incident document and issue body codecs.

Converts between the Markdown incident post stored in the content
repository and IncidentDocument objects, and between the issue body
and the IssueMetadata that links an issue back to its post:
  - Front matter is a YAML mapping, read and written as data
  - The narrative body is only ever appended to
  - The issue body carries a fenced JSON block with filename + hash
"""

from __future__ import annotations

import json
import re
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import yaml
from dateutil import parser as dateutil_parser

from httpmonitor.errors import IssueMetadataError
from httpmonitor.models import IncidentDocument, IssueMetadata

# Front-matter keys in the order the status page theme expects them
_FRONT_MATTER_KEYS = (
    "section",
    "title",
    "date",
    "resolved",
    "draft",
    "informational",
    "pin",
    "resolvedWhen",
    "affected",
    "severity",
)

_FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)(.*)\Z", re.DOTALL)
_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_DASH_RE = re.compile(r"[\s_-]+")

_JSON_FENCE = "```json"
_FENCE = "```"

INVESTIGATING_NOTE = (
    "*Investigating* - We are investigating an issue that has shut down {service}. "
    "We are sorry for any inconvenience this may cause you. This incident post will "
    'be updated once we have more information. {{{{< track "{stamp}" >}}}}'
)

RESOLVED_NOTE = (
    "*Resolved* - The issue has been resolved, and {service} is back online. "
    'A full postmortem will be posted soon. {{{{< track "{stamp}" >}}}}'
)


# ─── Formatting helpers ───────────────────────────────────────


def slugify(text: str) -> str:
    """Lowercase, drop punctuation and join words with single dashes."""
    text = _SLUG_STRIP_RE.sub("", text.lower())
    return _SLUG_DASH_RE.sub("-", text).strip("-")


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. 2026-10-18T09:30:00.000Z."""
    moment = _as_utc(moment)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def track_stamp(moment: datetime) -> str:
    """The 'YYYY-MM-DD HH:MM:SS' form used in track shortcodes."""
    return _as_utc(moment).strftime("%Y-%m-%d %H:%M:%S")


def incident_filename(service_name: str, moment: datetime) -> str:
    """
    File name for a new incident post.

    e.g. 2026-10-18-example-api-outage-09-30-00.md
    """
    moment = _as_utc(moment)
    date = moment.strftime("%Y-%m-%d")
    time = slugify(moment.strftime("%H:%M:%S").replace(":", "-"))
    return f"{date}-{slugify(service_name)}-outage-{time}.md"


# ─── Incident documents ───────────────────────────────────────


def new_incident(service_name: str, moment: datetime) -> IncidentDocument:
    """Build the post for an outage detected at `moment`."""
    return IncidentDocument(
        title=f"{service_name} Outage",
        date=_as_utc(moment),
        affected=[service_name],
        severity="down",
        body=INVESTIGATING_NOTE.format(service=service_name, stamp=track_stamp(moment)),
    )


def resolve_incident(
    document: IncidentDocument,
    service_name: str,
    moment: datetime,
) -> IncidentDocument:
    """
    Return a copy of `document` marked resolved at `moment`, with the
    resolution note appended to the narrative.
    """
    note = RESOLVED_NOTE.format(service=service_name, stamp=track_stamp(moment))
    existing = document.body.rstrip()
    body = f"{existing}\n\n{note}\n" if existing else f"{note}\n"
    return replace(
        document,
        resolved=True,
        resolved_when=_as_utc(moment),
        body=body,
    )


def parse_document(text: str) -> IncidentDocument:
    """
    Parse a Markdown incident post.

    Raises:
        ValueError: if the text has no front-matter block, or the block
            is not a YAML mapping with a title and date.
    """
    match = _FRONT_MATTER_RE.match(text)
    if not match:
        raise ValueError("Document does not start with a front-matter block")

    try:
        raw = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Front matter is not valid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ValueError("Front matter is not a mapping")

    date = _parse_datetime(raw.get("date"))
    if "title" not in raw or date is None:
        raise ValueError("Front matter is missing title or date")

    return IncidentDocument(
        title=str(raw["title"]),
        date=date,
        affected=_as_list(raw.get("affected")),
        severity=str(raw.get("severity", "down")),
        resolved=bool(raw.get("resolved", False)),
        resolved_when=_parse_datetime(raw.get("resolvedWhen")),
        section=str(raw.get("section", "issue")),
        draft=bool(raw.get("draft", False)),
        informational=bool(raw.get("informational", False)),
        pin=bool(raw.get("pin", False)),
        body=match.group(2),
        extra={k: v for k, v in raw.items() if k not in _FRONT_MATTER_KEYS},
    )


def render_document(document: IncidentDocument) -> str:
    """Serialize an IncidentDocument back to Markdown with front matter."""
    front_matter: Dict[str, Any] = {
        "section": document.section,
        "title": document.title,
        "date": format_timestamp(document.date),
        "resolved": document.resolved,
        "draft": document.draft,
        "informational": document.informational,
        "pin": document.pin,
        "resolvedWhen": format_timestamp(document.resolved_when) if document.resolved_when else "",
        "affected": list(document.affected),
        "severity": document.severity,
    }
    front_matter.update(document.extra)

    dumped = yaml.safe_dump(
        front_matter,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    )
    return f"---\n{dumped}---\n{document.body}"


# ─── Issue body ───────────────────────────────────────────────


def render_issue_body(metadata: IssueMetadata, moment: datetime) -> str:
    payload = json.dumps({"filename": metadata.filename, "hash": metadata.hash})
    return (
        f"Automatically created by HTTP Monitor Bot at {format_timestamp(moment)}\n"
        f"{_JSON_FENCE}\n{payload}\n{_FENCE}"
    )


def parse_issue_body(body: Optional[str]) -> IssueMetadata:
    """
    Extract the filename/hash payload from an issue body.

    Raises:
        IssueMetadataError: if the fence is missing or the payload is
            not a JSON object with non-empty filename and hash.
    """
    if not body:
        raise IssueMetadataError("Issue body is empty")

    start = body.find(_JSON_FENCE)
    if start == -1:
        raise IssueMetadataError("Issue body has no ```json block")
    payload = body[start + len(_JSON_FENCE):]
    end = payload.find(_FENCE)
    if end != -1:
        payload = payload[:end]

    try:
        data = json.loads(payload.strip())
    except json.JSONDecodeError as exc:
        raise IssueMetadataError(f"Issue metadata is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise IssueMetadataError("Issue metadata is not a JSON object")
    filename, file_hash = data.get("filename"), data.get("hash")
    if not isinstance(filename, str) or not filename:
        raise IssueMetadataError("Issue metadata has no filename")
    if not isinstance(file_hash, str) or not file_hash:
        raise IssueMetadataError("Issue metadata has no hash")

    return IssueMetadata(filename=filename, hash=file_hash)


# ─── Helpers ──────────────────────────────────────────────────


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    """YAML may hand back a datetime, a date string, or an empty value."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    try:
        return _as_utc(dateutil_parser.parse(str(value)))
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"Invalid timestamp {value!r}") from exc


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]

"""
GitHub REST client.

Authenticates as a GitHub App installation and exposes the handful of
issue and repository-contents calls the reconciler needs. Every call
either returns parsed data or raises GitHubError / aiohttp.ClientError;
status handling lives here so callers only deal with typed results.
"""

from __future__ import annotations

import base64
import json
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp
import jwt

from httpmonitor import console
from httpmonitor.errors import GitHubError
from httpmonitor.models import ContentFile, Issue, MonitorConfig

_API_VERSION = "2022-11-28"
_USER_AGENT = "http-monitor-bot"


def build_app_jwt(app_id: int, private_key: str, now: Optional[int] = None) -> str:
    """
    Sign the short-lived JWT that identifies the GitHub App itself.

    iat is backdated a minute to tolerate clock drift; GitHub rejects
    tokens valid for more than ten minutes.
    """
    issued = int(time.time()) if now is None else now
    payload = {
        "iat": issued - 60,
        "exp": issued + 540,
        "iss": str(app_id),
    }
    return jwt.encode(payload, private_key, algorithm="RS256")


class GitHubClient:
    """
    Issue and contents access for a single repository.

    Attributes:
        config: Monitor configuration (repository, app credentials).
        api_url: Base URL of the REST API.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        config: MonitorConfig,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
    ) -> None:
        self.config = config
        self.api_url = api_url.rstrip("/")
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._token: Optional[str] = None

    # ── Authentication ────────────────────────────────────

    async def authenticate(self) -> str:
        """
        Exchange the app JWT for an installation token.

        Returns:
            The app's slug, as reported by GET /app.
        """
        app_jwt = build_app_jwt(self.config.app_id, self.config.private_key)
        app = await self._request("GET", "/app", token=app_jwt)
        slug = str(app.get("slug", ""))

        grant = await self._request(
            "POST",
            f"/app/installations/{self.config.installation_id}/access_tokens",
            token=app_jwt,
            expected=(201,),
        )
        self._token = grant["token"]
        return slug

    # ── Issues ────────────────────────────────────────────

    async def list_open_issues(self, label: str) -> List[Issue]:
        """Open issues carrying `label`, pull requests excluded."""
        data = await self._request(
            "GET",
            f"{self._repo_path}/issues",
            params={"state": "open", "labels": label},
        )
        return [
            Issue(number=int(item["number"]), title=item.get("title", ""), body=item.get("body") or "")
            for item in data
            if "pull_request" not in item
        ]

    async def create_issue(self, title: str, body: str, label: str) -> Issue:
        data = await self._request(
            "POST",
            f"{self._repo_path}/issues",
            payload={"title": title, "body": body, "labels": [label]},
            expected=(201,),
        )
        return Issue(number=int(data["number"]), title=data.get("title", title), body=data.get("body") or body)

    async def close_issue(self, number: int) -> None:
        await self._request(
            "PATCH",
            f"{self._repo_path}/issues/{number}",
            payload={"state": "closed"},
        )

    # ── Contents ──────────────────────────────────────────

    async def create_file(self, path: str, text: str, message: str) -> str:
        """Create a file and return its blob sha."""
        data = await self._request(
            "PUT",
            self._contents_path(path),
            payload={"message": message, "content": _encode(text)},
            expected=(201,),
        )
        return data["content"]["sha"]

    async def get_file(self, path: str) -> ContentFile:
        data = await self._request("GET", self._contents_path(path))
        if isinstance(data, list) or "content" not in data:
            raise GitHubError(200, f"{path} is not a file")
        return ContentFile(path=path, text=_decode(data["content"]), sha=data["sha"])

    async def update_file(self, path: str, text: str, message: str, sha: str) -> str:
        """
        Replace a file's contents.

        `sha` is the revision being replaced; GitHub answers 409 if the
        file changed since.
        """
        data = await self._request(
            "PUT",
            self._contents_path(path),
            payload={"message": message, "content": _encode(text), "sha": sha},
            expected=(200,),
        )
        return data["content"]["sha"]

    # ── Plumbing ──────────────────────────────────────────

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.config.owner}/{self.config.repo}"

    def _contents_path(self, path: str) -> str:
        return f"{self._repo_path}/contents/{quote(path.strip('/'))}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str] = None,
        params: Optional[Dict[str, str]] = None,
        payload: Optional[Dict[str, Any]] = None,
        expected: tuple = (200,),
    ) -> Any:
        bearer = token or self._token
        if bearer is None:
            raise GitHubError(401, "client is not authenticated")

        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {bearer}",
            "User-Agent": _USER_AGENT,
            "X-GitHub-Api-Version": _API_VERSION,
        }
        url = f"{self.api_url}{path}"
        console.print_debug(f"GitHub {method} {path}")

        async with self._session.request(
            method,
            url,
            headers=headers,
            params=params,
            json=payload,
            timeout=self._timeout,
        ) as resp:
            if resp.status not in expected:
                text = await resp.text()
                raise GitHubError(resp.status, _error_message(text), url=url)
            return await resp.json(content_type=None)


def _encode(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _decode(content: str) -> str:
    # The contents API wraps base64 at 60 columns
    return base64.b64decode("".join(content.split())).decode("utf-8")


def _error_message(text: str) -> str:
    """Pull GitHub's 'message' field out of an error body if there is one."""
    try:
        data = json.loads(text)
    except ValueError:
        return text[:200]
    if isinstance(data, dict) and "message" in data:
        return str(data["message"])
    return text[:200]

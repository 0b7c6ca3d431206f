"""
Healthchecks heartbeat client.

Pings a dead-man's-switch check so a missed or failed run raises an
alert elsewhere:
  - start    GET  <base>/start
  - success  GET  <base>
  - failure  GET  <base>/fail
  - log      POST <base>/log  (text/plain body)
Without a base URL every call is a no-op.
"""

from __future__ import annotations

from typing import Optional

import aiohttp


class HealthchecksClient:
    """Heartbeat pings for one check."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: Optional[str],
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def enabled(self) -> bool:
        return self.base_url is not None

    async def start(self) -> None:
        await self._ping("/start")

    async def success(self) -> None:
        await self._ping("")

    async def failure(self, message: Optional[str] = None) -> None:
        """
        Attach `message` as a log entry, then signal failure.

        The failure ping is sent even if the log entry is rejected.
        """
        try:
            if message:
                await self.log(message)
        finally:
            await self._ping("/fail")

    async def log(self, message: str) -> None:
        if self.base_url is None:
            return
        async with self._session.post(
            f"{self.base_url}/log",
            data=message.encode("utf-8"),
            headers={"Content-Type": "text/plain"},
            timeout=self._timeout,
        ) as resp:
            resp.raise_for_status()

    async def _ping(self, suffix: str) -> None:
        if self.base_url is None:
            return
        async with self._session.get(f"{self.base_url}{suffix}", timeout=self._timeout) as resp:
            resp.raise_for_status()

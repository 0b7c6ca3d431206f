"""
Reachability probe.

One HEAD request per pass: any 2xx answer means the service is up;
a network error, timeout or any other status means it is down.
"""

from __future__ import annotations

import asyncio

import aiohttp

from httpmonitor import console


class HttpProbe:
    """Checks whether a URL answers with a 2xx status."""

    def __init__(self, session: aiohttp.ClientSession, url: str, timeout: float = 30.0) -> None:
        self.url = url
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def is_online(self) -> bool:
        try:
            async with self._session.request(
                "HEAD",
                self.url,
                headers={"Content-Type": "text/html;charset=UTF-8"},
                allow_redirects=True,
                timeout=self._timeout,
            ) as resp:
                console.print_debug(f"Probe {self.url} -> HTTP {resp.status}")
                return 200 <= resp.status < 300
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            console.print_debug(f"Probe {self.url} failed: {exc!r}")
            return False

"""
Discord notifier.

Posts a single embed announcing that the service went offline or came
back online. Without a webhook URL every call is a no-op.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import aiohttp

USERNAME = "HTTP Monitor Bot"
FOOTER = "HTTP Monitor Bot, created by H. Kamran"
ONLINE_COLOR = "#22c55e"
OFFLINE_COLOR = "#ef4444"


def hex_to_decimal(color: str) -> int:
    """'#22c55e' -> 2278750, the integer form Discord embeds expect."""
    return int(color.lstrip("#"), 16)


def build_payload(service_name: str, online: bool) -> Dict[str, Any]:
    return {
        "username": USERNAME,
        "embeds": [
            {
                "title": f"{service_name} is {'Online' if online else 'Offline'}",
                "color": hex_to_decimal(ONLINE_COLOR if online else OFFLINE_COLOR),
                "footer": {"text": FOOTER},
            }
        ],
    }


class DiscordNotifier:
    """Sends status changes to a Discord webhook."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        webhook_url: Optional[str],
        service_name: str,
        timeout: float = 30.0,
    ) -> None:
        self.webhook_url = webhook_url
        self.service_name = service_name
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def notify(self, online: bool) -> None:
        """
        Post the status embed.

        Raises aiohttp errors on failure; the caller decides whether
        that matters.
        """
        if not self.webhook_url:
            return
        async with self._session.post(
            self.webhook_url,
            json=build_payload(self.service_name, online),
            timeout=self._timeout,
        ) as resp:
            resp.raise_for_status()

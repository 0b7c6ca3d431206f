"""
Main entry point.

Builds the HTTP clients around one shared aiohttp session and runs a
reconciliation pass, either once (for cron and other external
schedulers) or repeatedly with --loop until Ctrl+C / SIGTERM.

Usage:
    python -m httpmonitor
    python -m httpmonitor --loop
    http-monitor --config /etc/http-monitor.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

import aiohttp

from httpmonitor import console
from httpmonitor.config import load_config
from httpmonitor.errors import ConfigError
from httpmonitor.github import GitHubClient
from httpmonitor.heartbeat import HealthchecksClient
from httpmonitor.models import MonitorConfig, MonitorSettings, RunResult
from httpmonitor.notifier import DiscordNotifier
from httpmonitor.probe import HttpProbe
from httpmonitor.reconciler import ReconcileContext, reconcile


def build_context(
    session: aiohttp.ClientSession,
    config: MonitorConfig,
    settings: MonitorSettings,
) -> ReconcileContext:
    """Wire the real HTTP-backed capabilities into a context."""
    timeout = settings.request_timeout
    return ReconcileContext(
        config=config,
        settings=settings,
        tracker=GitHubClient(session, config, api_url=settings.api_url, timeout=timeout),
        prober=HttpProbe(session, config.check_url, timeout=timeout),
        notifier=DiscordNotifier(session, config.discord_webhook_url, config.service_name, timeout=timeout),
        heartbeat=HealthchecksClient(session, config.healthchecks_url, timeout=timeout),
    )


class MonitorRunner:
    """
    Runs passes back to back, one at a time.

    Passes never overlap within one process; nothing guards against a
    second process running at the same time.
    """

    def __init__(self, config: MonitorConfig, settings: MonitorSettings) -> None:
        self.config = config
        self.settings = settings
        self._stopping = asyncio.Event()

    async def run_once(self) -> RunResult:
        async with aiohttp.ClientSession() as session:
            return await reconcile(build_context(session, self.config, self.settings))

    async def run_forever(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.run_once()
            except Exception as exc:
                console.print_error(self.config.service_name, f"Pass crashed: {exc!r}")
            console.print_next_run(self.settings.interval)
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.settings.interval)
            except asyncio.TimeoutError:
                pass

    def shutdown(self) -> None:
        """Stop after the pass in progress, if any."""
        self._stopping.set()


def _handle_signals(runner: MonitorRunner, loop: asyncio.AbstractEventLoop) -> None:
    """Register signal handlers for graceful shutdown."""
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, runner.shutdown)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="http-monitor",
        description="Track outages of an HTTP endpoint as GitHub issues.",
    )
    parser.add_argument("--config", default=None, help="Path to the YAML settings file")
    parser.add_argument(
        "--loop",
        action="store_true",
        help="Keep running passes every `interval` seconds instead of exiting",
    )
    return parser.parse_args(argv)


async def async_main(args: argparse.Namespace) -> int:
    """Async entry point. Returns the process exit code."""
    try:
        config, settings = load_config(args.config)
    except ConfigError as exc:
        console.print_error("config", str(exc))
        return 2
    console.configure(settings.log_level)

    runner = MonitorRunner(config, settings)
    if not args.loop:
        result = await runner.run_once()
        return 0 if result.ok else 1

    console.print_banner()
    _handle_signals(runner, asyncio.get_running_loop())
    await runner.run_forever()
    console.print_shutdown()
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Sync entry point."""
    args = parse_args(argv)
    try:
        code = asyncio.run(async_main(args))
    except KeyboardInterrupt:
        # 128 + SIGINT, as a shell reports an interrupted command
        code = 0 if args.loop else 130
    sys.exit(code)


if __name__ == "__main__":
    main()

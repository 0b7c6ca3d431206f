"""
Configuration loader.

Service identity and credentials come from the environment; runtime
settings come from an optional config.yaml and fall back to defaults
if the file is missing.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

import yaml

from httpmonitor import console
from httpmonitor.errors import ConfigError
from httpmonitor.models import MonitorConfig, MonitorSettings

# Default path: config.yaml next to the project root
_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"

_REQUIRED_ENV = (
    "CHECK_URL",
    "ISSUE_LABEL",
    "SERVICE_NAME",
    "GITHUB_REPOSITORY",
    "GITHUB_APP_ID",
    "GITHUB_APP_PRIVATE_KEY",
    "GITHUB_APP_INSTALLATION_ID",
)


def load_settings(path: str | Path | None = None) -> MonitorSettings:
    """
    Load runtime settings from YAML.

    The path defaults to $MONITOR_CONFIG, then config.yaml at the
    project root.
    """
    if path is None:
        path = os.environ.get("MONITOR_CONFIG") or _DEFAULT_CONFIG_PATH
    config_path = Path(path)

    if not config_path.exists():
        console.print_warning(f"Config file not found at {config_path}, using defaults.")
        return MonitorSettings()

    with open(config_path, "r") as fh:
        raw = yaml.safe_load(fh) or {}

    defaults = MonitorSettings()
    try:
        return MonitorSettings(
            log_level=str(raw.get("log_level", defaults.log_level)).upper(),
            content_path=str(raw.get("content_path", defaults.content_path)).strip("/"),
            api_url=str(raw.get("api_url", defaults.api_url)).rstrip("/"),
            request_timeout=float(raw.get("request_timeout", defaults.request_timeout)),
            interval=int(raw.get("interval", defaults.interval)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid setting in {config_path}: {exc}") from exc


def load_monitor_config(environ: Optional[Mapping[str, str]] = None) -> MonitorConfig:
    """
    Build the MonitorConfig from environment variables.

    Raises:
        ConfigError: if a required variable is missing or malformed.
    """
    env = os.environ if environ is None else environ

    missing: List[str] = [name for name in _REQUIRED_ENV if not env.get(name)]
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    repository = env["GITHUB_REPOSITORY"].strip()
    owner, _, repo = repository.partition("/")
    if not owner or not repo or "/" in repo:
        raise ConfigError(f"GITHUB_REPOSITORY must look like 'owner/repo', got {repository!r}")

    try:
        app_id = int(env["GITHUB_APP_ID"])
        installation_id = int(env["GITHUB_APP_INSTALLATION_ID"])
    except ValueError as exc:
        raise ConfigError(f"GitHub App ids must be integers: {exc}") from exc

    return MonitorConfig(
        check_url=env["CHECK_URL"],
        issue_label=env["ISSUE_LABEL"],
        service_name=env["SERVICE_NAME"],
        repository=repository,
        app_id=app_id,
        # Keys pasted into a single-line secret carry literal "\n"
        private_key=env["GITHUB_APP_PRIVATE_KEY"].replace("\\n", "\n"),
        installation_id=installation_id,
        discord_webhook_url=env.get("DISCORD_WEBHOOK_URL") or None,
        healthchecks_url=(env.get("HEALTHCHECKS_URL") or "").rstrip("/") or None,
    )


def load_config(
    path: str | Path | None = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Tuple[MonitorConfig, MonitorSettings]:
    """
    Load the full configuration.

    Returns:
        A tuple of (MonitorConfig, MonitorSettings).
    """
    return load_monitor_config(environ), load_settings(path)

"""
Console output — timestamped, colored run logs.

Every line the monitor writes goes through these helpers so a run reads
as one consistent log in cron mail, container logs or a terminal.
"""

from __future__ import annotations

from datetime import datetime, timezone

# ANSI color codes for terminal styling
_RESET = "\033[0m"
_BOLD = "\033[1m"
_DIM = "\033[2m"
_RED = "\033[91m"
_GREEN = "\033[92m"
_YELLOW = "\033[93m"
_BLUE = "\033[94m"
_CYAN = "\033[96m"
_WHITE = "\033[97m"
_GRAY = "\033[90m"

_debug_enabled = False


def configure(log_level: str) -> None:
    """Enable or disable debug lines for the rest of the process."""
    global _debug_enabled
    _debug_enabled = log_level.upper() == "DEBUG"


def _ts() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def print_banner() -> None:
    """Print the startup banner."""
    banner = f"""
{_BOLD}{_CYAN}+------------------------------------------------------------------+
|          HTTP Monitor Bot -- Outage Tracker                      |
|          Probe * Reconcile * Notify                              |
+------------------------------------------------------------------+{_RESET}
"""
    print(banner)


def print_authenticated(app_slug: str) -> None:
    print(f"  {_GRAY}[{_ts()}]{_RESET} {_BOLD}{_BLUE}Authenticated as:{_RESET} {_WHITE}{app_slug}{_RESET}")


def print_run_start(service_name: str, check_url: str) -> None:
    """Print a message when a reconciliation pass begins."""
    print(
        f"  {_GRAY}[{_ts()}]{_RESET} {_BOLD}{_BLUE}> Checking:{_RESET} {_WHITE}{service_name}{_RESET}"
        f"  {_DIM}({check_url}){_RESET}"
    )


def print_probe(service_name: str, online: bool) -> None:
    state = f"{_GREEN}online{_RESET}" if online else f"{_RED}offline{_RESET}"
    print(f"  {_GRAY}[{_ts()}]{_RESET} {_BOLD}{service_name}:{_RESET} {state}")


def print_step(message: str) -> None:
    """Print a completed write step, e.g. a created file."""
    print(f"  {_GRAY}[{_ts()}]{_RESET} {_GREEN}OK{_RESET} {message}")


def print_outcome(service_name: str, outcome: str) -> None:
    print(f"  {_GRAY}[{_ts()}]{_RESET} {_BOLD}{_CYAN}{service_name}: {outcome}{_RESET}")


def print_warning(message: str) -> None:
    print(f"  {_GRAY}[{_ts()}]{_RESET} {_YELLOW}WARN{_RESET} {message}")


def print_error(source: str, message: str) -> None:
    """Print an error message."""
    print(
        f"  {_GRAY}[{_ts()}]{_RESET} {_RED}ERROR{_RESET} "
        f"{_BOLD}{source}:{_RESET} {message}"
    )


def print_debug(message: str) -> None:
    """Print a dim diagnostic line (debug level only)."""
    if _debug_enabled:
        print(f"  {_DIM}[{_ts()}] {message}{_RESET}")


def print_next_run(seconds: int) -> None:
    print(f"  {_DIM}Next check in {seconds}s (Press Ctrl+C to stop){_RESET}")


def print_shutdown() -> None:
    """Print shutdown message."""
    print(f"\n{_BOLD}{_CYAN}Monitor stopped. Goodbye!{_RESET}\n")

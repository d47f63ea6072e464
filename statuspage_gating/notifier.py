"""
Console Notifier: clean, structured console output.

Formats updater progress, per-source failures and snapshot dumps into
timestamped console lines, with ANSI colors for readability.
"""

from __future__ import annotations

from datetime import datetime, timezone

from statuspage_gating.models import Category, ResourceStatus, Snapshot

# ANSI color codes for terminal styling
_RESET = "\033[0m"
_BOLD = "\033[1m"
_DIM = "\033[2m"
_RED = "\033[91m"
_GREEN = "\033[92m"
_YELLOW = "\033[93m"
_BLUE = "\033[94m"
_MAGENTA = "\033[95m"
_CYAN = "\033[96m"
_WHITE = "\033[97m"
_GRAY = "\033[90m"

_CATEGORY_COLORS = {
    Category.UP: _GREEN,
    Category.DEGRADED: _YELLOW,
    Category.DOWN: _RED,
    Category.UNKNOWN: _MAGENTA,
}


def _status_color(status: ResourceStatus) -> str:
    """Pick a color based on the status category."""
    category = status if isinstance(status, Category) else status.category
    return _CATEGORY_COLORS[category]


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def print_banner() -> None:
    """Print the startup banner."""
    banner = f"""
{_BOLD}{_CYAN}+------------------------------------------------------------------+
|          Statuspage Gating -- Resource Health Publisher          |
|          Periodic * Async * Fault-isolated                       |
+------------------------------------------------------------------+{_RESET}
"""
    print(banner)


def print_config_missing(path: str) -> None:
    print(f"⚠  Config file not found at {path}, no sources configured.")


def print_updater_start(source_count: int, interval: float) -> None:
    """Print a message when the updater loop begins."""
    print(
        f"  {_BOLD}{_BLUE}> Updating:{_RESET} {_WHITE}{source_count} source(s){_RESET}"
        f"  {_DIM}[every {interval:g}s]{_RESET}"
    )


def print_serving(port: int) -> None:
    print(f"  {_BOLD}{_BLUE}> Serving:{_RESET} {_DIM}http://0.0.0.0:{port}/{_RESET}")


def print_tick_summary(succeeded: int, failed: int) -> None:
    """Print one line per tick."""
    color = _RED if failed else _GREEN
    print(
        f"  {_GRAY}[{_now()}]{_RESET} {color}tick{_RESET}"
        f"  {succeeded} updated, {failed} failed"
    )


def print_snapshot(snapshot: Snapshot) -> None:
    """Dump every resource of a snapshot (debug level)."""
    print(f"  {_BOLD}Source {snapshot.source_label}:{_RESET}")
    for rid, resource in snapshot.resources.items():
        color = _status_color(resource.status)
        print(f"    {rid}: {color}{resource.status.value}{_RESET}")


def print_error(source_label: str, message: str) -> None:
    """Print an error message."""
    print(
        f"  {_GRAY}[{_now()}]{_RESET} {_RED}ERROR{_RESET} "
        f"{_BOLD}{source_label}:{_RESET} {message}"
    )


def print_shutdown() -> None:
    """Print shutdown message."""
    print(f"\n{_BOLD}{_CYAN}Updater stopped. Goodbye!{_RESET}\n")

"""Startup banner: mode-aware status output.

Prints a short banner with timing and the program location.  Detects
``NO_COLOR`` / ``TERM`` for safe fallback.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from reflow.config import ReflowConfig


# ---------------------------------------------------------------------------
# ANSI helpers, respecting NO_COLOR (https://no-color.org)
# ---------------------------------------------------------------------------

def _supports_color() -> bool:
    """Return True if the terminal supports ANSI colors."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


_COLOR = _supports_color()

_RESET = "\033[0m" if _COLOR else ""
_BOLD = "\033[1m" if _COLOR else ""
_DIM = "\033[2m" if _COLOR else ""
_CYAN = "\033[36m" if _COLOR else ""
_GREEN = "\033[32m" if _COLOR else ""
_YELLOW = "\033[33m" if _COLOR else ""


# ---------------------------------------------------------------------------
# Mode badges
# ---------------------------------------------------------------------------

_MODE_STYLES: dict[str, tuple[str, str]] = {
    "dev": (_GREEN, "dev"),
    "run": (_CYAN, "run"),
}


def _mode_badge(mode: str) -> str:
    """Return a styled [mode] badge."""
    color, label = _MODE_STYLES.get(mode, (_DIM, mode))
    return f"{color}[{label}]{_RESET}"


def _pacing(config: ReflowConfig) -> str:
    if config.tick_ms is None:
        return "on demand"
    return f"every {config.tick_ms:g}ms"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def format_banner(
    config: ReflowConfig,
    cell_count: int,
    mode: str,
    *,
    load_ms: float = 0.0,
    warnings: list[str] | None = None,
) -> str:
    """Build the banner text (see ``print_banner``)."""
    from reflow import __version__

    badge = _mode_badge(mode)
    lines: list[str] = [
        "",
        f"  {_BOLD}reflow{_RESET} {_DIM}v{__version__}{_RESET}  {badge}",
        f"  {_DIM}{'─' * 43}{_RESET}",
    ]

    cells_label = "cell" if cell_count == 1 else "cells"
    timing = f" {_DIM}in {load_ms:.0f}ms{_RESET}" if load_ms > 0 else ""
    lines.append(f"  {_DIM}├─{_RESET} {cell_count} {cells_label} loaded{timing}")
    lines.append(f"  {_DIM}├─{_RESET} program: {_DIM}{config.program_path}{_RESET}")
    lines.append(f"  {_DIM}├─{_RESET} ticks: {_pacing(config)}")
    if config.max_ticks is not None:
        lines.append(f"  {_DIM}└─{_RESET} stops after {config.max_ticks} ticks")

    if mode == "dev":
        lines.append("")
        lines.append(f"  {_DIM}Watching for changes...{_RESET}")

    if warnings:
        lines.append("")
        lines.extend(f"  {_YELLOW}!{_RESET} {w}" for w in warnings)

    lines.append("")
    return "\n".join(lines)


def print_banner(
    config: ReflowConfig,
    cell_count: int,
    mode: str,
    *,
    load_ms: float = 0.0,
    warnings: list[str] | None = None,
) -> None:
    """Print the reflow startup banner to stderr.

    Args:
        config: Resolved ReflowConfig.
        cell_count: Number of cells in the loaded program.
        mode: One of ``"run"``, ``"dev"``.
        load_ms: Time spent loading the program in milliseconds.
        warnings: Optional list of warning messages to display.

    """
    print(format_banner(config, cell_count, mode, load_ms=load_ms, warnings=warnings), file=sys.stderr)

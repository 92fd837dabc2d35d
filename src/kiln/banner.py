"""Startup banner — mode-aware status output.

Prints a short startup banner with timing and status indicators.
Detects ``NO_COLOR`` / ``TERM`` for safe fallback.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from kiln.assets import CopyPair
    from kiln.config import KilnConfig


# ---------------------------------------------------------------------------
# ANSI helpers — respect NO_COLOR (https://no-color.org)
# ---------------------------------------------------------------------------

def _supports_color() -> bool:
    """Return True if the terminal supports ANSI colors."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


_COLOR = _supports_color()

RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
CYAN = "\033[36m"


def style(text: str, *codes: str) -> str:
    """Wrap *text* in ANSI *codes* when the terminal supports color."""
    if not _COLOR or not codes:
        return text
    return f"{''.join(codes)}{text}{RESET}"


_MODE_COLORS: dict[str, str] = {
    "build": YELLOW,
    "serve": CYAN,
}


def _clickable_url(url: str) -> str:
    """Wrap *url* in an OSC 8 hyperlink escape if the terminal supports it."""
    if not _COLOR:
        return url
    return f"\033]8;;{url}\033\\{style(url, BOLD, CYAN)}\033]8;;\033\\"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def print_banner(
    config: KilnConfig,
    mode: str,
    *,
    pairs: Sequence[CopyPair] = (),
    load_ms: float = 0.0,
) -> None:
    """Print the kiln startup banner to stderr.

    Args:
        config: Resolved KilnConfig.
        mode: ``"build"`` or ``"serve"``.
        pairs: Resolved asset copy pairs.
        load_ms: Time spent on the initial copy and build in milliseconds.

    """
    from kiln import __version__

    badge = style(f"[{mode}]", _MODE_COLORS.get(mode, DIM))
    lines: list[str] = [
        "",
        f"  {style('kiln', BOLD)} {style(f'v{__version__}', DIM)}  {badge}",
        f"  {style('─' * 43, DIM)}",
    ]

    branch = style("├─", DIM)
    timing = f" {style(f'in {load_ms:.0f}ms', DIM)}" if load_ms > 0 else ""
    lines.append(f"  {branch} bundle: {style(str(config.outfile_path), DIM)}{timing}")
    for pair in pairs:
        lines.append(f"  {branch} copy: {style(f'{pair.source} → {pair.destination}', DIM)}")

    if mode == "serve":
        if config.watch:
            lines.append(f"  {branch} {style('live', GREEN)} SSE on {style('/__reload', DIM)}")
        url = f"http://{config.host}:{config.port}"
        lines.append("")
        serving = "Serving (and watching) at" if config.watch else "Serving at"
        lines.append(f"  {serving} {_clickable_url(url)}")
    else:
        lines.append(f"  {style('└─', DIM)} output: {style(str(config.dist_path), DIM)}")

    lines.append("")
    print("\n".join(lines), file=sys.stderr)

"""Static assets — copy pairs and the asset copier.

A copy pair maps a source file or directory onto a destination inside the
output directory.  Pairs are written on the command line as ``from:to``,
where ``from`` is relative to the project root and ``to`` is relative to the
output directory.  Every copy re-copies all pairs in full.
"""

from __future__ import annotations

import asyncio
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from kiln._errors import ConfigError, CopyError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

# "from:to" with a non-empty source and an optional destination
_PAIR_PATTERN = re.compile(r"^[^:]+:[^:]*$")


@dataclass(frozen=True, slots=True)
class CopyPair:
    """A (source, destination) mapping for static assets.

    Attributes:
        source: File or directory to copy from.
        destination: Path the source is copied to.

    """

    source: Path
    destination: Path


def parse_copy_pair(value: str) -> CopyPair:
    """Parse a ``from:to`` string into an unresolved CopyPair.

    Raises:
        ConfigError: If the value is not of the form ``from:to``.

    """
    if not _PAIR_PATTERN.match(value):
        msg = f'Invalid copy pair format: "{value}". Expected format is "from:to".'
        raise ConfigError(msg)
    source, _, destination = value.partition(":")
    return CopyPair(source=Path(source), destination=Path(destination))


def resolve_pairs(
    pairs: Iterable[CopyPair],
    root: Path,
    dist: Path,
) -> tuple[CopyPair, ...]:
    """Resolve sources against *root* and destinations against *dist*.

    Raises:
        ConfigError: If a pair has an empty source.

    """
    resolved: list[CopyPair] = []
    for pair in pairs:
        if str(pair.source) in ("", "."):
            msg = 'Each copy entry must have a "from" property.'
            raise ConfigError(msg)
        resolved.append(CopyPair(
            source=(root / pair.source).resolve(),
            destination=(dist / pair.destination).resolve(),
        ))
    return tuple(resolved)


def copy_pair(pair: CopyPair) -> int:
    """Copy one pair, overwriting existing files.  Returns files written."""
    if pair.source.is_dir():
        count = sum(1 for p in pair.source.rglob("*") if p.is_file())
        shutil.copytree(pair.source, pair.destination, dirs_exist_ok=True)
        return count

    pair.destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(pair.source, pair.destination)
    return 1


async def copy_all_assets(pairs: Sequence[CopyPair]) -> int:
    """Copy every pair in order.

    The filesystem work runs in a worker thread so the event loop keeps
    serving requests during large copies.

    Raises:
        CopyError: If any pair fails to copy.  Pairs after the failing one
            are not attempted.

    """
    total = 0
    for pair in pairs:
        try:
            total += await asyncio.to_thread(copy_pair, pair)
        except OSError as exc:
            msg = f"Failed to copy {pair.source} -> {pair.destination}: {exc}"
            raise CopyError(msg) from exc
    return total

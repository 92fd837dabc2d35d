"""Environment files — ``.env`` loading for bundle defines.

Values from ``.env`` provide defaults that never replace variables already
set in the process environment.  An override file is then applied on top:
``.env.testing`` when running in test mode, ``.env.local`` otherwise.

Every environment variable is handed to the bundler as a
``process.env.NAME`` define so application code can read it at build time.
"""

from __future__ import annotations

import json
import os
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping, MutableMapping
    from pathlib import Path

DEFAULT_ENV_FILE = ".env"
LOCAL_ENV_FILE = ".env.local"
TESTING_ENV_FILE = ".env.testing"

# esbuild only accepts identifier-shaped define keys
_DEFINE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def parse_env_string(text: str) -> dict[str, str]:
    """Parse the contents of a ``.env`` file.

    Blank lines, ``#`` comments and lines without ``=`` are skipped.  A
    leading ``export`` is ignored.  Single-quoted values are taken
    literally; double-quoted values have JSON escapes decoded, falling back
    to the raw text between the quotes when decoding fails.

    """
    env: dict[str, str] = {}
    for line in re.split(r"\r?\n", text):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith("export "):
            stripped = stripped[len("export "):].lstrip()

        key, sep, value = stripped.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        env[key] = _unquote(value.strip())
    return env


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] == "'":
        return value[1:-1]
    if len(value) >= 2 and value[0] == value[-1] == '"' and not _escaped_end(value):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value[1:-1]
    return value


def _escaped_end(value: str) -> bool:
    """True when the closing double quote is itself backslash-escaped."""
    backslashes = len(value[1:-1]) - len(value[1:-1].rstrip("\\"))
    return backslashes % 2 == 1


def read_env_file(path: Path) -> dict[str, str]:
    """Parse *path* if it exists; a missing file yields an empty dict."""
    if not path.is_file():
        return {}
    return parse_env_string(path.read_text(encoding="utf-8"))


def load_env(
    root: Path,
    *,
    testing: bool = False,
    environ: MutableMapping[str, str] | None = None,
) -> dict[str, str]:
    """Apply ``.env`` and its override file from *root* to *environ*.

    Args:
        root: Directory containing the env files.
        testing: Use ``.env.testing`` as the override instead of ``.env.local``.
        environ: Mapping to update (defaults to ``os.environ``).

    Returns:
        The variables that were read from the files, overrides applied.

    """
    target = os.environ if environ is None else environ

    defaults = read_env_file(root / DEFAULT_ENV_FILE)
    for key, value in defaults.items():
        target.setdefault(key, value)

    overrides = read_env_file(root / (TESTING_ENV_FILE if testing else LOCAL_ENV_FILE))
    target.update(overrides)

    return {**defaults, **overrides}


def env_defines(environ: Mapping[str, str]) -> dict[str, str]:
    """Map each variable to a ``process.env.NAME`` define with a JSON string value."""
    return {
        f"process.env.{key}": json.dumps(value)
        for key, value in sorted(environ.items())
        if _DEFINE_NAME.match(key)
    }

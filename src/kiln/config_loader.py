"""Load KilnConfig from kiln.toml / kiln.yaml if present.

Merges file config with CLI kwargs. CLI overrides file.
"""

from __future__ import annotations

from pathlib import Path

from kiln._errors import ConfigError
from kiln.assets import CopyPair, parse_copy_pair
from kiln.config import KilnConfig

_CONFIG_KEYS = frozenset({
    "host", "port", "dist", "entry", "output", "source_dir",
    "testing", "watch", "copy", "esbuild",
})


def load_config(root: Path, **overrides: object) -> KilnConfig:
    """Load KilnConfig from root, optionally merging a config file.

    Looks for kiln.toml, kiln.yaml, or kiln.yml in root. If found, loads
    and merges with overrides. Overrides take precedence.

    Raises:
        ConfigError: If the config file is malformed or names unknown keys.

    """
    file_config = _read_kiln_config(root)
    merged = {**file_config, **overrides}
    if "dist" in merged and not isinstance(merged["dist"], Path):
        merged["dist"] = Path(str(merged["dist"]))
    if "copy" in merged:
        merged["copy"] = _normalize_pairs(merged["copy"])
    return KilnConfig(root=root, **merged)


def _read_kiln_config(root: Path) -> dict[str, object]:
    """Read kiln config from toml/yaml if present. Returns empty dict otherwise."""
    toml_path = root / "kiln.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    for name in ("kiln.yaml", "kiln.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    import yaml

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:
        msg = f"Failed to parse {path}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_kiln_section(data, path)


def _parse_toml(path: Path) -> dict[str, object]:
    import tomllib

    try:
        data = tomllib.loads(path.read_text())
    except tomllib.TOMLDecodeError as exc:
        msg = f"Failed to parse {path}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_kiln_section(data, path)


def _flatten_kiln_section(data: object, path: Path) -> dict[str, object]:
    """Extract kiln.* keys (or top-level keys) into a flat config dict."""
    if not isinstance(data, dict):
        msg = f"{path}: expected a mapping at the top level"
        raise ConfigError(msg)

    section = data.get("kiln", data)
    if not isinstance(section, dict):
        msg = f"{path}: [kiln] must be a table"
        raise ConfigError(msg)

    unknown = sorted(k for k in section if k != "kiln" and k not in _CONFIG_KEYS)
    if unknown:
        msg = f"{path}: unknown config keys: {', '.join(unknown)}"
        raise ConfigError(msg)
    return {k: v for k, v in section.items() if k in _CONFIG_KEYS}


def _normalize_pairs(value: object) -> tuple[CopyPair, ...]:
    """Accept CopyPair objects or ``from:to`` strings."""
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        msg = f"copy must be a list of 'from:to' entries, got {value!r}"
        raise ConfigError(msg)
    return tuple(
        item if isinstance(item, CopyPair) else parse_copy_pair(str(item))
        for item in value
    )

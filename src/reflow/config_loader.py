"""Load ReflowConfig from reflow.yaml if present.

Merges file config with CLI kwargs. CLI overrides file.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

import yaml

from reflow._errors import ConfigError
from reflow.config import ReflowConfig

_KNOWN_KEYS = (
    "program", "start_time", "tick_ms", "max_ticks", "show",
    "max_events", "profile", "watch_debounce_ms",
)

CONFIG_FILENAMES = ("reflow.yaml", "reflow.yml", "reflow.toml")


def load_config(root: Path, **overrides: object) -> ReflowConfig:
    """Load ReflowConfig from root, optionally merging reflow.yaml.

    Looks for reflow.yaml, reflow.yml, or reflow.toml in root. If found,
    loads and merges with overrides. Overrides that are None are ignored
    so unset CLI flags never mask file values.

    Raises:
        ConfigError: If the config file cannot be parsed or names unknown keys.

    """
    file_config = _read_reflow_config(root)
    merged = {**file_config, **{k: v for k, v in overrides.items() if v is not None}}
    unknown = sorted(set(merged) - set(_KNOWN_KEYS))
    if unknown:
        msg = f"Unknown config keys: {', '.join(unknown)}"
        raise ConfigError(msg)
    if "program" in merged and not isinstance(merged["program"], Path):
        merged["program"] = Path(str(merged["program"]))
    if isinstance(merged.get("show"), str):
        merged["show"] = tuple(name.strip() for name in str(merged["show"]).split(",") if name.strip())
    return ReflowConfig(root=root, **merged)  # type: ignore[arg-type]


def _read_reflow_config(root: Path) -> dict[str, object]:
    """Read reflow config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("reflow.yaml", "reflow.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = root / "reflow.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML in {path.name}: {exc}"
        raise ConfigError(msg) from exc
    if not isinstance(data, dict):
        msg = f"{path.name} must contain a mapping, got {type(data).__name__}"
        raise ConfigError(msg)
    return _flatten_reflow_section(data)


def _parse_toml(path: Path) -> dict[str, object]:
    try:
        data = tomllib.loads(path.read_text())
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {path.name}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_reflow_section(data)


def _flatten_reflow_section(data: dict[str, object]) -> dict[str, object]:
    """Extract reflow.* keys into top-level config."""
    result: dict[str, object] = {}
    section = data.get("reflow")
    if isinstance(section, dict):
        for k, v in section.items():
            result[k] = v
    for k, v in data.items():
        if k != "reflow" and k in _KNOWN_KEYS:
            result[k] = v
    return result

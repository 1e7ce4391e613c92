"""Config loading and initialization."""

from __future__ import annotations

import os
import re
import shutil
from pathlib import Path
from typing import Any, Mapping

import yaml

from quarry.config.schema import AppConfig, parse_config


DEFAULT_CONFIG_PATH = Path(__file__).with_name("defaults.yml")
CONFIG_ENV_VAR = "QUARRY_CONFIG"
_ENV_TOKEN_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-(.*?))?\}")


def resolve_config_path(path: Path | str | None = None) -> Path:
    """Explicit path, then ``$QUARRY_CONFIG``, then the packaged defaults."""
    if path:
        return Path(path)
    from_env = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if from_env:
        return Path(from_env).expanduser()
    return DEFAULT_CONFIG_PATH


def read_raw_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"config file does not exist: {path}")
    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"config root must be a mapping: {path}")
    return _interpolate_env(raw)


def apply_overrides(raw: dict[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Set dotted keys such as ``store.seed_fixtures`` on a raw config mapping."""
    for dotted_key, value in overrides.items():
        segments = [segment for segment in str(dotted_key).split(".") if segment]
        if not segments:
            raise ValueError("config override keys must not be empty")
        node = raw
        for segment in segments[:-1]:
            child = node.get(segment)
            if child is None:
                child = {}
                node[segment] = child
            if not isinstance(child, dict):
                raise ValueError(f"config override '{dotted_key}' crosses non-mapping key '{segment}'")
            node = child
        node[segments[-1]] = value
    return raw


def load_config(path: Path | str | None = None, *, overrides: Mapping[str, Any] | None = None) -> AppConfig:
    raw = read_raw_config(resolve_config_path(path))
    if overrides:
        raw = apply_overrides(raw, overrides)
    return parse_config(raw)


def initialize_config(path: Path, force: bool = False) -> Path:
    if path.exists() and not force:
        raise FileExistsError(f"config already exists: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(DEFAULT_CONFIG_PATH, path)
    return path


def _interpolate_env(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _interpolate_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    if isinstance(value, str) and "${" in value:
        return _ENV_TOKEN_RE.sub(_resolve_token, value)
    return value


def _resolve_token(match: re.Match[str]) -> str:
    name, default = match.group(1), match.group(2)
    resolved = os.environ.get(name)
    if resolved is not None:
        return resolved
    if default is not None:
        return default
    raise ValueError(f"missing required environment variable '{name}' referenced by '{match.group(0)}'")

from __future__ import annotations

from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

import yaml

from rrm_monitoring.errors import InvalidConfiguration

# Project root (the folder holding config/ and data/)
PROJECT_ROOT = Path(__file__).resolve().parents[3]

T = TypeVar("T")


def load_config(path: str = "config/settings.yaml") -> dict:
    """
    Load the YAML settings file and return it as a dict.

    Relative paths are resolved against the project root.
    """
    config_path = Path(path)
    if not config_path.is_absolute():
        config_path = PROJECT_ROOT / config_path
    if not config_path.exists():
        raise InvalidConfiguration(f"Settings file not found: {config_path}")
    with config_path.open("r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise InvalidConfiguration(f"Expected a mapping at the top of {config_path}, got {type(cfg).__name__}")
    return cfg


def build_columns(cls: Type[T], block: Optional[Dict[str, Any]]) -> T:
    """
    Build a column-role dataclass from a settings block.

    Unknown keys and missing required roles are configuration errors.
    """
    block = dict(block or {})
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(block) - known)
    if unknown:
        raise InvalidConfiguration(f"Unknown column role(s) for {cls.__name__}: {', '.join(unknown)}")
    for key, value in block.items():
        if isinstance(value, list):
            block[key] = tuple(value)
    try:
        return cls(**block)
    except TypeError as e:
        raise InvalidConfiguration(f"Incomplete column roles for {cls.__name__}: {e}") from e


def section(cfg: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    """Return a nested settings block, raising if any level is absent."""
    cur: Any = cfg
    for k in keys:
        if not isinstance(cur, dict) or k not in cur:
            raise InvalidConfiguration(f"Missing settings block: {'.'.join(keys)}")
        cur = cur[k]
    return cur

"""
STARS/core/config.py

Runtime configuration for the STARS service.

Resolution order (highest first):
1. Explicit keyword overrides passed to load_config()
2. Environment variables: STARS_BACKEND, STARS_DB_PATH, STARS_LOG_LEVEL,
   STARS_AGREEMENT_TOLERANCE
3. Config file: explicit path, else ~/.config/stars/config.json, else ~/.stars.json
4. Built-in defaults (in-memory backend, raters "primary" and "secondary")

Config file format (JSON):
{
    "backend": "sqlite",
    "db_path": "/var/lib/stars/stars.db",
    "raters": [{"id": "primary", "label": "You"}, {"id": "secondary", "label": "Partner"}],
    "agreement_tolerance": 2
}

License: MIT

Examples
--------
>>> cfg = load_config(backend="sqlite", db_path="/tmp/stars.db")
>>> cfg.backend
'sqlite'
"""
from __future__ import annotations
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, fields
from numbers import Integral
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json
import logging
import os

from .errors import ValidationError
from .models import Rater

logger = logging.getLogger(__name__)

# Config file locations (in priority order)
CONFIG_PATHS = [
    Path.home() / ".config" / "stars" / "config.json",
    Path.home() / ".stars.json",
]

ENV_VARS = {
    "backend": "STARS_BACKEND",
    "db_path": "STARS_DB_PATH",
    "log_level": "STARS_LOG_LEVEL",
    "agreement_tolerance": "STARS_AGREEMENT_TOLERANCE",
}

BACKENDS = ("memory", "sqlite")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _default_raters() -> List[Dict[str, str]]:
    return [{"id": "primary", "label": "Primary"}, {"id": "secondary", "label": "Secondary"}]


def _as_tolerance(value: Any) -> int:
    """Integer >= 0; env strings are parsed, 2.0 is accepted, 2.7 is not."""
    raw = value
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise ValidationError(f"agreement_tolerance must be an integer, got {raw!r}") from None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise ValidationError(f"agreement_tolerance must be an integer, got {raw!r}")
    if value < 0:
        raise ValidationError("agreement_tolerance must be >= 0")
    return int(value)


def _check_raters(raters: Any) -> None:
    """A non-empty list of Rater objects or {"id": ..., "label": ...} mappings."""
    if isinstance(raters, (str, bytes, Mapping)) or not isinstance(raters, Sequence):
        raise ValidationError(f"raters must be a list of {{id, label}} objects, got {raters!r}")
    if not raters:
        raise ValidationError("at least one rater is required")
    for entry in raters:
        if isinstance(entry, Rater):
            rid = entry.id
        elif isinstance(entry, Mapping):
            rid = entry.get("id")
        else:
            raise ValidationError(f"rater entry must be an object with an 'id', got {entry!r}")
        if not isinstance(rid, str) or not rid.strip():
            raise ValidationError(f"rater entry needs a non-empty string 'id', got {entry!r}")


@dataclass
class StarsConfig:
    backend: str = "memory"
    db_path: Optional[str] = None
    raters: List[Dict[str, str]] = field(default_factory=_default_raters)
    agreement_tolerance: int = 2
    seed_criteria: bool = True
    log_level: str = "INFO"

    def validate(self) -> "StarsConfig":
        self.backend = str(self.backend).strip().lower()
        if self.backend not in BACKENDS:
            raise ValidationError(f"backend must be one of {BACKENDS}, got {self.backend!r}")
        self.agreement_tolerance = _as_tolerance(self.agreement_tolerance)
        self.log_level = str(self.log_level).strip().upper()
        if self.log_level not in LOG_LEVELS:
            raise ValidationError(f"log_level must be one of {LOG_LEVELS}, got {self.log_level!r}")
        _check_raters(self.raters)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _read_config_file(path: Path) -> Optional[Dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return None
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {path}: top level is not an object")
        return None
    return data


def find_config_file(path: Optional[Union[str, Path]] = None) -> Optional[Dict[str, Any]]:
    """Return the first readable config mapping (explicit path first)."""
    candidates = [Path(path)] if path else list(CONFIG_PATHS)
    for candidate in candidates:
        if candidate.exists():
            data = _read_config_file(candidate)
            if data is not None:
                return data
    return None


def load_config(path: Optional[Union[str, Path]] = None, **overrides: Any) -> StarsConfig:
    """
    Build a validated StarsConfig.

    Parameters
    ----------
    path : str or Path, optional
        Config file to read instead of the default locations.
    **overrides
        Explicit values (highest priority); ``None`` values are ignored.

    Raises
    ------
    ValidationError
        Unknown keys or invalid values.
    """
    known = {f.name for f in fields(StarsConfig)}
    values: Dict[str, Any] = {}

    file_values = find_config_file(path) or {}
    for key, val in file_values.items():
        if key in known:
            values[key] = val
        else:
            logger.warning(f"Ignoring unknown config key {key!r}")

    for key, env_name in ENV_VARS.items():
        env_val = os.environ.get(env_name)
        if env_val:
            values[key] = env_val

    unknown = set(overrides) - known
    if unknown:
        raise ValidationError(f"unknown config option(s): {', '.join(sorted(unknown))}")
    values.update({k: v for k, v in overrides.items() if v is not None})

    return StarsConfig(**values).validate()

"""Estimator settings: YAML config + env var overrides.

Priority: env var > YAML file > default.
Env vars use PAGKIT_{FIELD_NAME} convention (e.g. PAGKIT_MAX_SIBLINGS=16).
YAML file default: ~/.pagkit/settings.yaml
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

_NONE = {"", "none", "null", "off"}
_DEFAULT_PATH = Path("~/.pagkit/settings.yaml").expanduser()


@dataclass
class Settings:
    # Effect estimation walks 2**siblings candidate parent sets; refuse
    # beyond this many siblings rather than run for hours.
    max_siblings: int = 12
    # None walks the full power set. An int only tries sibling subsets up
    # to that size, which may miss the true parent set.
    max_subset_size: int | None = None
    # Threads used per effect computation; 1 runs inline.
    workers: int = 1

    def __post_init__(self) -> None:
        if self.max_siblings < 0:
            raise ValueError(f"max_siblings must be >= 0, got {self.max_siblings}")
        if self.max_subset_size is not None and self.max_subset_size < 0:
            raise ValueError(f"max_subset_size must be >= 0, got {self.max_subset_size}")
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")

    @classmethod
    def load(cls, path: Path | None = None) -> Settings:
        """Load settings from YAML file, then override with env vars."""
        file_path = path or _DEFAULT_PATH
        file_values: dict[str, Any] = {}

        if file_path.exists():
            raw = yaml.safe_load(file_path.read_text()) or {}
            if isinstance(raw, dict):
                file_values = raw
            else:
                logger.warning("Ignoring %s: expected a mapping, got %s", file_path, type(raw).__name__)

        kwargs: dict[str, int | None] = {}
        for f in fields(cls):
            name = f.name
            env_key = f"PAGKIT_{name.upper()}"

            if env_key in os.environ:
                kwargs[name] = _coerce(name, os.environ[env_key])
            elif name in file_values:
                kwargs[name] = _coerce(name, file_values[name])

        return cls(**kwargs)

    def to_dict(self) -> dict[str, int | None]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _coerce(name: str, value: Any) -> int | None:
    if value is None or (isinstance(value, str) and value.strip().lower() in _NONE):
        if name == "max_subset_size":
            return None
        raise ValueError(f"{name} needs an integer, got {value!r}")
    if isinstance(value, bool):
        raise ValueError(f"{name} needs an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} needs an integer, got {value!r}") from None


# Singleton
_settings: Settings | None = None


def get_settings(path: Path | None = None) -> Settings:
    """Get the singleton Settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load(path)
    return _settings


def reset_settings() -> None:
    """Reset for testing."""
    global _settings
    _settings = None

"""Logging configuration, env-var driven.

Defaults give JSON logs on stderr at INFO with no setup at all.

    Formatter:   PAGKIT_LOG_FORMATTER=structlog (default) | stdlib
    Destination: PAGKIT_LOG_DESTINATION=stderr (default) | jsonl
    Renderer:    PAGKIT_LOG_FORMAT=json (default) | console
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class ObservabilityConfig:
    """Where pagkit logs go and how they look."""

    log_formatter: str = field(
        default_factory=lambda: os.environ.get("PAGKIT_LOG_FORMATTER", "structlog")
    )  # "structlog" | "stdlib"

    log_destination: str = field(
        default_factory=lambda: os.environ.get("PAGKIT_LOG_DESTINATION", "stderr")
    )  # "stderr" | "jsonl"

    log_level: str = field(default_factory=lambda: os.environ.get("PAGKIT_LOG_LEVEL", "INFO"))

    log_format: str = field(
        default_factory=lambda: os.environ.get("PAGKIT_LOG_FORMAT", "json")
    )  # "json" | "console"

    # Only read by the jsonl destination.
    jsonl_path: str | None = field(default_factory=lambda: os.environ.get("PAGKIT_LOG_PATH"))

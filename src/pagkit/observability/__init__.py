"""pagkit observability: structured logging.

    setup_logging(cfg)             Wire formatter x destination to the root logger
    get_logger(name)               Structured (kwargs-style) logger
    register_formatter(n, cls)     Add a LogFormatter
    register_destination(n, cls)   Add a LogDestination
"""

from pagkit.observability.config import ObservabilityConfig
from pagkit.observability.logging import (
    LogDestination,
    LogFormatter,
    get_logger,
    register_destination,
    register_formatter,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "ObservabilityConfig",
    "LogDestination",
    "LogFormatter",
    "get_logger",
    "register_destination",
    "register_formatter",
    "setup_logging",
    "shutdown_logging",
]

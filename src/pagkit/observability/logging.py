"""Structured logging: a formatter paired with a destination.

    LogFormatter   decides what a record looks like (structlog or stdlib JSON)
    LogDestination decides where it is written (stderr or a JSONL file)

setup_logging(config) builds one of each, hands the formatter to the
destination's handler and installs that handler on the root logger. Library
modules keep using ``logging.getLogger(__name__)``; both formatters sit on
the stdlib bridge, so those records come out structured as well.

Graph objects passed as structured values (nodes, edges, sets of nodes,
numpy scalars) are rendered to plain JSON values by ``render_graph_values``,
whichever formatter is active:

    get_logger(__name__).info("separation", x=node, z=frozenset(z_nodes))
    -> {"event": "separation", "x": "A", "z": ["B", "C"], ...}

Extra formatters or destinations can be plugged in before setup:

    from pagkit.observability.logging import register_destination
    register_destination("syslog", MySyslogDestination)
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import numpy as np
import structlog

from pagkit.graph.types import Edge, Node, Triple

if TYPE_CHECKING:
    from pagkit.observability.config import ObservabilityConfig

_DEFAULT_JSONL_PATH = "pagkit.jsonl"
_MANAGED = "_pagkit_managed"


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class LogFormatter(Protocol):
    """How records are structured.

    ``setup()`` configures the pipeline and returns the logging.Formatter
    the handler will use; ``get_logger()`` returns a logger that accepts
    ``logger.info("event", key=value)``.
    """

    def setup(self, config: ObservabilityConfig) -> logging.Formatter: ...

    def get_logger(self, name: str, **kwargs: Any) -> Any: ...


@runtime_checkable
class LogDestination(Protocol):
    """Where formatted records are written."""

    def create_handler(self, formatter: logging.Formatter) -> logging.Handler: ...

    def shutdown(self) -> None: ...


# ---------------------------------------------------------------------------
# Value rendering
# ---------------------------------------------------------------------------


def to_log_value(value: Any) -> Any:
    """Plain JSON value for a structured log field."""
    if isinstance(value, Node):
        return value.name
    if isinstance(value, (Edge, Triple)):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(str(to_log_value(v)) for v in value)
    if isinstance(value, (list, tuple)):
        return [to_log_value(v) for v in value]
    if isinstance(value, np.generic):
        return value.item()
    return value


def render_graph_values(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor applying ``to_log_value`` to every field but the event."""
    for key, value in event_dict.items():
        if key != "event":
            event_dict[key] = to_log_value(value)
    return event_dict


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructlogFormatter:
    """structlog processors, bridged so stdlib loggers render the same way."""

    def setup(self, config: ObservabilityConfig) -> logging.Formatter:
        shared: list[structlog.types.Processor] = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            render_graph_values,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
        ]
        renderer: structlog.types.Processor
        if config.log_format == "console":
            renderer = structlog.dev.ConsoleRenderer()
        else:
            renderer = structlog.processors.JSONRenderer(default=str)

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                *shared,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        return structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )

    def get_logger(self, name: str, **kwargs: Any) -> Any:
        return structlog.get_logger(name, **kwargs)


class StdlibFormatter:
    """Plain stdlib logging; JSON lines unless the console format is asked for."""

    def setup(self, config: ObservabilityConfig) -> logging.Formatter:
        if config.log_format == "console":
            return _StdlibConsoleFormatter(
                "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S",
            )
        return _StdlibJsonFormatter()

    def get_logger(self, name: str, **kwargs: Any) -> Any:
        return _StructuredStdlibLogger(logging.getLogger(name), kwargs)


def _fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: to_log_value(v) for k, v in getattr(record, "_structured", {}).items()}


class _StdlibJsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
            **_fields(record),
        }
        if record.exc_info and record.exc_info[1]:
            line["exception"] = self.formatException(record.exc_info)
        return json.dumps(line, default=str)


class _StdlibConsoleFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        extra = _fields(record)
        if extra:
            text += " " + " ".join(f"{k}={v}" for k, v in extra.items())
        return text


class _StructuredStdlibLogger:
    """Gives a stdlib logger the ``info("event", key=value)`` call style.

    Bound context and per-call keywords ride on the LogRecord; the stdlib
    formatters above merge them into the output.
    """

    def __init__(self, logger: logging.Logger, context: Mapping[str, Any] | None = None) -> None:
        self._logger = logger
        self._context = dict(context or {})

    def bind(self, **kw: Any) -> _StructuredStdlibLogger:
        return _StructuredStdlibLogger(self._logger, {**self._context, **kw})

    def log(self, level: int, event: str, **kw: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        record = self._logger.makeRecord(self._logger.name, level, "(unknown)", 0, event, (), None)
        record._structured = {**self._context, **kw}  # type: ignore[attr-defined]
        self._logger.handle(record)

    def debug(self, event: str, **kw: Any) -> None:
        self.log(logging.DEBUG, event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self.log(logging.INFO, event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self.log(logging.WARNING, event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self.log(logging.ERROR, event, **kw)


# ---------------------------------------------------------------------------
# Destinations
# ---------------------------------------------------------------------------


class StderrDestination:
    def __init__(self, config: ObservabilityConfig) -> None:
        self._handler: logging.Handler | None = None

    def create_handler(self, formatter: logging.Formatter) -> logging.Handler:
        self._handler = logging.StreamHandler(sys.stderr)
        self._handler.setFormatter(formatter)
        return self._handler

    def shutdown(self) -> None:
        if self._handler is not None:
            self._handler.flush()


class JsonlFileDestination:
    """Append one JSON object per line to ``config.jsonl_path``."""

    def __init__(self, config: ObservabilityConfig) -> None:
        self._path = Path(config.jsonl_path or _DEFAULT_JSONL_PATH)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._handler: logging.Handler | None = None

    def create_handler(self, formatter: logging.Formatter) -> logging.Handler:
        self._handler = logging.FileHandler(str(self._path), mode="a", encoding="utf-8")
        self._handler.setFormatter(formatter)
        return self._handler

    def shutdown(self) -> None:
        if self._handler is not None:
            self._handler.close()


# ---------------------------------------------------------------------------
# Registries
# ---------------------------------------------------------------------------

_FORMATTERS: dict[str, type] = {
    "structlog": StructlogFormatter,
    "stdlib": StdlibFormatter,
}

# Destination classes take the ObservabilityConfig as their only argument.
_DESTINATIONS: dict[str, type] = {
    "stderr": StderrDestination,
    "jsonl": JsonlFileDestination,
}


def register_formatter(name: str, cls: type) -> None:
    """Register a custom log formatter. Call before setup_logging()."""
    _FORMATTERS[name] = cls


def register_destination(name: str, cls: type) -> None:
    """Register a custom log destination. Call before setup_logging()."""
    _DESTINATIONS[name] = cls


def _lookup(registry: dict[str, type], kind: str, name: str) -> type:
    try:
        return registry[name]
    except KeyError:
        raise ValueError(
            f"Unknown log {kind}: {name!r}. Available: {sorted(registry)}."
        ) from None


# ---------------------------------------------------------------------------
# Module state
# ---------------------------------------------------------------------------

_active_formatter: LogFormatter | None = None
_active_destination: LogDestination | None = None


def setup_logging(config: ObservabilityConfig) -> None:
    """Build the configured formatter and destination and wire them to the root logger.

    Calling it again replaces the handler installed by the previous call;
    handlers installed by anyone else (pytest's caplog, for one) stay.

    Raises:
        ValueError: If the formatter or destination name is not registered.
    """
    global _active_formatter, _active_destination

    formatter_cls = _lookup(_FORMATTERS, "formatter", config.log_formatter)
    destination_cls = _lookup(_DESTINATIONS, "destination", config.log_destination)

    shutdown_logging()

    formatter = formatter_cls()
    destination = destination_cls(config)
    handler = destination.create_handler(formatter.setup(config))
    setattr(handler, _MANAGED, True)

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))

    _active_formatter = formatter
    _active_destination = destination


def get_logger(name: str = "", **kwargs: Any) -> Any:
    """A kwargs-style logger from the active formatter.

    Before setup_logging() has run this is a stdlib wrapper, so
    ``logger.info("event", key=value)`` never fails.
    """
    if _active_formatter is not None:
        return _active_formatter.get_logger(name, **kwargs)
    return _StructuredStdlibLogger(logging.getLogger(name), kwargs)


def shutdown_logging() -> None:
    """Detach the handler installed by setup_logging() and close its destination."""
    global _active_formatter, _active_destination
    root = logging.getLogger()
    root.handlers = [h for h in root.handlers if not getattr(h, _MANAGED, False)]
    if _active_destination is not None:
        _active_destination.shutdown()
    _active_formatter = None
    _active_destination = None

"""Logging for the insight pipeline: stdlib loggers rendered through structlog.

Modules log with ``logging.getLogger(__name__)`` and %-style messages; every
record passes the same processor chain, so job/cycle context bound by
``bind_cycle`` appears in both the console and the JSON file output.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

import structlog

from power_insight.config.schema import LoggingConfig

# Chatty third-party loggers, unless the config names them explicitly
DEFAULT_LOGGER_LEVELS: dict[str, str] = {
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "aiosqlite": "WARNING",
}


def _pipeline_processors(service: str) -> list[structlog.types.Processor]:
    def add_service(_logger: object, _method: str, event_dict: dict) -> dict:
        event_dict.setdefault("service", service)
        return event_dict

    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_service,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _file_handler(config: LoggingConfig) -> logging.Handler:
    path = Path(config.file)
    path.parent.mkdir(parents=True, exist_ok=True)
    if config.max_bytes > 0:
        return logging.handlers.RotatingFileHandler(
            path, maxBytes=config.max_bytes, backupCount=config.backup_count, encoding="utf-8",
        )
    return logging.FileHandler(path, encoding="utf-8")


def setup_logging(config: LoggingConfig | None = None, service: str = "power-insight") -> list[logging.Handler]:
    """Install the root handlers for the pipeline and return them.

    Console output follows ``config.format`` ("json" or "console"); the
    optional log file is always JSON so it stays machine-readable.
    Calling this again replaces the previously installed handlers.
    """
    config = config or LoggingConfig()
    shared = _pipeline_processors(service)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    def formatter(renderer: structlog.types.Processor) -> logging.Formatter:
        return structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )

    json_renderer = structlog.processors.JSONRenderer()
    if config.format == "console":
        console_renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
        )
    else:
        console_renderer = json_renderer

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter(console_renderer))
    handlers: list[logging.Handler] = [stream_handler]

    if config.file:
        file_handler = _file_handler(config)
        file_handler.setFormatter(formatter(json_renderer))
        handlers.append(file_handler)

    root = logging.getLogger()
    root.handlers.clear()
    root.handlers.extend(handlers)
    root.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for name, level in {**DEFAULT_LOGGER_LEVELS, **config.levels}.items():
        logging.getLogger(name).setLevel(getattr(logging, level.upper(), logging.WARNING))

    return handlers

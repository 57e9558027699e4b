"""Structured logging setup using structlog."""

from __future__ import annotations

import logging
import sys

import structlog

from src.core.config import LoggingConfig, get_settings

# handlers added by the last call, closed when it is repeated
_installed: list[logging.Handler] = []


def setup_logging(
    level: str | None = None,
    fmt: str | None = None,
    config: LoggingConfig | None = None,
) -> None:
    """Route structlog and stdlib logging through one set of handlers.

    Records always go to stderr (stdout may be piped into the alerter) and
    additionally to ``config.file`` when set.  ``config.loggers`` pins the
    level of individual loggers, e.g. ``{"aiohttp": "WARNING"}``.

    Args:
        level: Root level override (e.g. "DEBUG"). Uses config if None.
        fmt: Renderer override ("json" or "console"). Uses config if None.
        config: Logging section to read. Uses the cached settings if None.
    """
    cfg = config or get_settings().logging
    root_level = _level(level or cfg.level)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if cfg.file is not None:
        cfg.file.parent.mkdir(parents=True, exist_ok=True)
        # files always get JSON so they stay machine-readable
        file_handler = logging.FileHandler(cfg.file, encoding="utf-8")
        file_handler.setFormatter(_formatter("json", shared_processors))
        handlers.append(file_handler)
    handlers[0].setFormatter(_formatter(fmt or cfg.format, shared_processors))

    for old in _installed:
        old.close()
    _installed[:] = handlers

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(root_level)

    for name, name_level in cfg.loggers.items():
        logging.getLogger(name).setLevel(_level(name_level))


def _formatter(
    fmt: str, shared_processors: list[structlog.types.Processor]
) -> structlog.stdlib.ProcessorFormatter:
    if fmt == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)

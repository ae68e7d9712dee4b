"""Structured logging for groundwork, built on structlog.

A single shared processor chain feeds one of two renderers:

* ``ConsoleRenderer`` for local development (coloured, human-readable), and
* ``JSONRenderer`` when ``APP_ENV=production`` or ``json_output=True``.

The stdlib root logger is rewired through the same chain so that records
emitted by httpx, uvicorn, chromadb and sentence-transformers look the same
as our own events.  Those libraries are chatty at INFO, so they are pinned
to WARNING unless the application itself runs at DEBUG.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

_NOISY_LIBRARIES = (
    "httpx",
    "httpcore",
    "chromadb",
    "sentence_transformers",
    "urllib3",
)


def _shared_processors() -> list[structlog.types.Processor]:
    # contextvars first so request-scoped bindings land before the level
    # and timestamp keys.
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog and the stdlib bridge.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON rendering regardless of ``APP_ENV``.

    Returns:
        The root structlog logger.
    """
    level_name = log_level.upper()
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"

    renderer: structlog.types.Processor
    if use_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level_name)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *shared,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level_name)

    library_level = logging.DEBUG if level_name == "DEBUG" else logging.WARNING
    for name in _NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structlog logger bound with ``logger_name=name``.

    Configures logging with defaults on first use so that library callers
    (the CLI, tests) never see unconfigured output.
    """
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)

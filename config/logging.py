"""structlog configuration for the link header service.

Console output by default, JSON lines to stderr with ``LOG_JSON=true``.
Every event carries the service name and environment; events logged while
an entity route handles a request also carry the route name, the requested
``_format`` and the acting account id (see ``utils/routing.py`` and
``utils/auth.py``).
"""

from __future__ import annotations

import logging
import sys

import structlog

SERVICE_NAME = "entity-link-headers"

# Chatty at DEBUG; kept at WARNING whatever LOG_LEVEL says
QUIET_LOGGERS = ("aiosqlite", "asyncio", "httpcore", "httpx")


def _service_context(environment: str) -> structlog.types.Processor:
    def add_service_context(logger, method_name, event_dict):
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("environment", environment)
        return event_dict
    return add_service_context


def configure_logging(
    *,
    level: str = "INFO",
    log_json: bool = False,
    environment: str = "production",
) -> None:
    """Route structlog and stdlib logging through one stderr handler.

    Args:
        level: Level name for the root logger.
        log_json: JSON lines instead of console output; exceptions are
            rendered as structured tracebacks.
        environment: Added to every event.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _service_context(environment),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if log_json:
        final_processors: list[structlog.types.Processor] = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final_processors = [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *final_processors,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

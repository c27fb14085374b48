"""
structlog setup for the GamePulse API.

Every entry carries the service name, instance id and deployment
environment. Development gets coloured console lines; every other
environment writes one JSON object per line with tracebacks rendered
into the `exception` field. Stdlib loggers (uvicorn, httpx, redis) go
through the same renderer.
"""
from __future__ import annotations

import logging
import sys
from typing import Any, Optional

import structlog

from shared.config import Environment, Settings, get_settings

# Per-request and per-connection chatter from these stays at WARNING
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "redis", "asyncio")


def _renderer(environment: Environment) -> structlog.types.Processor:
    if environment == Environment.DEV:
        return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    return structlog.processors.JSONRenderer(ensure_ascii=False)


def setup_logging(
    service_name: str,
    extra_context: Optional[dict[str, Any]] = None,
    settings: Optional[Settings] = None,
) -> None:
    """
    Route structlog and stdlib logging to stdout for one GamePulse process.

    Args:
        service_name: Bound as `service` on every entry (e.g. "gamepulse-api").
        extra_context: Further static fields bound to every entry.
        settings: Defaults to the process settings.
    """
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if settings.environment != Environment.DEV:
        pre_chain.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(settings.environment),
            ],
            foreign_pre_chain=pre_chain,
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        service=service_name,
        instance_id=settings.instance_id,
        environment=settings.environment.value,
        **(extra_context or {}),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

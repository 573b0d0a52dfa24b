"""structlog setup for ProjectFlow.

One processor chain renders both structlog events and records from stdlib
loggers (uvicorn, httpx, anthropic, redis). Every entry carries the
request id of the HTTP request it was logged under, when there is one.
"""

import logging
import sys

import structlog
from asgi_correlation_id.context import correlation_id

from projectflow.core.config import Settings, get_settings

REQUEST_ID_HEADER = "X-Request-ID"

# Third-party loggers that only matter when something goes wrong
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "anthropic", "redis")


def current_request_id() -> str | None:
    """Request id of the HTTP request being served, None outside a request."""
    return correlation_id.get(None)


def _add_request_id(logger, method, event_dict):
    request_id = current_request_id()
    if request_id:
        event_dict.setdefault("correlation_id", request_id)
    return event_dict


def configure_structlog(settings: Settings | None = None) -> None:
    """Route structlog and stdlib logging through one renderer.

    JSON lines unless ``settings.debug`` is on, in which case the console
    renderer is used. Must run before any module calls structlog.get_logger,
    since loggers are cached on first use.
    """
    settings = settings or get_settings()
    level = "DEBUG" if settings.debug else "INFO"

    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_request_id,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    renderer = structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

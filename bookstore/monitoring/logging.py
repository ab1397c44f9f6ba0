"""
Structured Logging Configuration

Configures structured logging with JSON output for production.
"""

import logging
import sys
import time

import structlog

from bookstore.config import settings
from bookstore.monitoring.metrics import api_request_duration, api_requests_total


def setup_logging() -> None:
    """Configure structured logging for the application."""

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    # Shared processors for all environments
    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Set log levels for noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.INFO)
    logging.getLogger("celery").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class RequestLoggingMiddleware:
    """Middleware for logging HTTP requests."""

    def __init__(self, app):
        self.app = app
        self.logger = get_logger("api.requests")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.monotonic()
        status_code = 500  # Default in case of error
        replayed = False

        async def send_wrapper(message):
            nonlocal status_code, replayed
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = dict(message.get("headers") or [])
                replayed = headers.get(b"idempotent-replayed") == b"true"
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration = time.monotonic() - start_time
            client = scope.get("client") or ("unknown",)

            # Route template keeps label cardinality bounded
            route = scope.get("route")
            endpoint = getattr(route, "path", scope["path"])
            api_requests_total.labels(
                method=scope["method"],
                endpoint=endpoint,
                status_code=status_code,
            ).inc()
            api_request_duration.labels(
                method=scope["method"],
                endpoint=endpoint,
            ).observe(duration)

            self.logger.info(
                "request_completed",
                method=scope["method"],
                path=scope["path"],
                status_code=status_code,
                replayed=replayed,
                duration_ms=round(duration * 1000, 2),
                client=client[0],
            )

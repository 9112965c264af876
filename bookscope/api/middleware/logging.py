"""
Request/Response logging middleware.

Provides logging for all API requests with:
- Request timing
- Correlation IDs for tracing
- Optional JSON output for log aggregators
"""

import time
import uuid
import json
import logging
from typing import Optional, Callable, Set
from dataclasses import dataclass, field
from contextvars import ContextVar

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Context variable for request ID (accessible throughout request lifecycle)
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

logger = logging.getLogger("bookscope.api")


@dataclass
class LoggingConfig:
    """Configuration for request logging."""

    enabled: bool = True

    # Paths to exclude from logging
    excluded_paths: Set[str] = field(default_factory=lambda: {
        "/health",
        "/favicon.ico",
    })

    # Slow request threshold (seconds); detection makes two LLM calls
    slow_request_threshold: float = 30.0

    # Header name for request ID
    request_id_header: str = "X-Request-ID"


class StructuredLogFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id
        if hasattr(record, "duration_ms"):
            log_data["duration_ms"] = record.duration_ms
        if hasattr(record, "status_code"):
            log_data["status_code"] = record.status_code

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def get_request_id() -> str:
    """Get current request ID from context."""
    return request_id_var.get()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """FastAPI middleware for request/response logging."""

    def __init__(self, app: FastAPI, config: Optional[LoggingConfig] = None):
        super().__init__(app)
        self.config = config or LoggingConfig()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with logging."""
        request_id = request.headers.get(
            self.config.request_id_header,
            str(uuid.uuid4())[:8]
        )
        request_id_var.set(request_id)

        if not self.config.enabled or request.url.path in self.config.excluded_paths:
            response = await call_next(request)
            response.headers[self.config.request_id_header] = request_id
            return response

        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time
        duration_ms = round(duration * 1000, 2)

        response.headers[self.config.request_id_header] = request_id

        if response.status_code >= 500:
            log_level = logging.ERROR
        elif response.status_code >= 400 or duration > self.config.slow_request_threshold:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        message = f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms}ms)"
        if duration > self.config.slow_request_threshold:
            message = f"[SLOW] {message}"

        logger.log(
            log_level,
            message,
            extra={"duration_ms": duration_ms, "status_code": response.status_code},
        )
        return response


def setup_logging(
    app: FastAPI,
    config: Optional[LoggingConfig] = None,
    structured: bool = True,
) -> None:
    """
    Configure logging middleware and formatters.

    Args:
        app: FastAPI application instance.
        config: Logging configuration.
        structured: Use JSON structured logging format.
    """
    if config is None:
        config = LoggingConfig()

    if structured:
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredLogFormatter())

        api_logger = logging.getLogger("bookscope")
        api_logger.addHandler(handler)
        api_logger.setLevel(logging.INFO)

    app.add_middleware(RequestLoggingMiddleware, config=config)

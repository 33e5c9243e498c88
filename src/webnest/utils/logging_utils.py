"""
Logging helpers shared by the application entry point and HTTP layer.

- `RequestLoggingMiddleware`: logs method, path, status and duration of every request.
- `log_application_lifecycle`: structured startup/shutdown phase events.
- `log_error_with_context`: error logging with an operation context and traceback.
"""

import time
from typing import Any, Callable, Dict, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from webnest.managers.logging_manager import get_logger

logger = get_logger(prefix="[HTTP]")
lifecycle_logger = get_logger(prefix="[LIFECYCLE]")
error_logger = get_logger(prefix="[ERROR]")

QUIET_PATHS = {"/health", "/metrics"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that logs one line per HTTP request.

    Health and metrics probes are logged at DEBUG level to keep the log readable.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        client_ip = request.client.host if request.client else "unknown"
        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                "%s %s failed after %.3fs from %s: %s",
                request.method,
                request.url.path,
                duration,
                client_ip,
                e,
                exc_info=True,
            )
            raise

        duration = time.time() - start_time
        log = logger.debug if request.url.path in QUIET_PATHS else logger.info
        log(
            "%s %s -> %d in %.3fs from %s",
            request.method,
            request.url.path,
            response.status_code,
            duration,
            client_ip,
        )
        response.headers["X-Process-Time"] = f"{duration:.3f}"
        return response


def log_application_lifecycle(event: str, details: Optional[Dict[str, Any]] = None) -> None:
    """
    Log an application lifecycle event such as `startup_initiated` or `database_connected`.

    Args:
        event (str): Short event name.
        details (Optional[Dict[str, Any]]): Extra key/value context.
    """
    if details:
        formatted = ", ".join(f"{key}={value}" for key, value in details.items())
        lifecycle_logger.info("%s | %s", event, formatted)
    else:
        lifecycle_logger.info("%s", event)


def log_error_with_context(error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
    """
    Log an exception together with the operation context it happened in.

    Args:
        error (Exception): The exception being reported.
        context (Optional[Dict[str, Any]]): Operation name and related identifiers.
    """
    error_logger.error(
        "%s: %s | context=%s",
        type(error).__name__,
        error,
        context or {},
        exc_info=(type(error), error, error.__traceback__),
    )

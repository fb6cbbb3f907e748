"""
Request logging middleware with correlation IDs for request tracing.

History routes carry the session in their path, so their log lines are
tagged with it as well as with the per-request id.
"""
import logging
import time
import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
session_id_var: ContextVar[str] = ContextVar("session_id", default="")

logger = logging.getLogger(__name__)


def _session_from_path(path: str) -> str:
    if "/history/" not in path:
        return ""
    return path.split("/history/", 1)[1].split("/")[0]


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each request with a short id, logs it with timing and returns the id as X-Request-ID"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = uuid.uuid4().hex[:8]
        request_id_var.set(request_id)
        session_id_var.set(_session_from_path(request.url.path))

        start_time = time.time()
        logger.info(f"[{request_id}] -> {request.method} {request.url.path}")

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.time() - start_time) * 1000
            logger.exception(f"[{request_id}] Unhandled error ({duration_ms:.0f}ms)")
            raise

        duration_ms = (time.time() - start_time) * 1000
        log_level = logging.INFO if response.status_code < 400 else logging.WARNING
        logger.log(
            log_level,
            f"[{request_id}] <- {response.status_code} ({duration_ms:.0f}ms)",
            extra={"request_id": request_id, "status_code": response.status_code, "duration_ms": duration_ms},
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{duration_ms / 1000:.3f}"
        return response


class ContextualLogger:
    """Logger wrapper that prefixes messages with the current request id and history session"""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _format_msg(self, msg: str) -> str:
        prefix = ""
        if request_id_var.get():
            prefix = f"[{request_id_var.get()}]"
        if session_id_var.get():
            prefix += f"[sess:{session_id_var.get()[:8]}]"
        return f"{prefix} {msg}" if prefix else msg

    def info(self, msg: str, *args, **kwargs):
        self.logger.info(self._format_msg(msg), *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self.logger.error(self._format_msg(msg), *args, **kwargs)


def get_logger(name: str) -> ContextualLogger:
    """Get a contextual logger that includes request/session IDs."""
    return ContextualLogger(name)

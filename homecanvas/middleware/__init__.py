"""
Middleware package for the API.
"""
from homecanvas.middleware.logging_middleware import RequestLoggingMiddleware, get_logger

__all__ = ["RequestLoggingMiddleware", "get_logger"]

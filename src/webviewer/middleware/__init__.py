"""
=============================================================================
MIDDLEWARE
=============================================================================

Cross-cutting request processing, wrapped around the asset router.

LoggingMiddleware:
    One access-log line per request (text or JSON), with timing and the
    Range header when present.

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
]

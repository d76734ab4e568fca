"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

One log line per request on the "webviewer.access" logger:

    text:  127.0.0.1 - - [16/Oct/2026:10:00:00 +0000] "GET /re_viewer_bg.wasm" 206 1048576 0.41ms "bytes=0-1048575"
    json:  {"method": "GET", "path": "/re_viewer_bg.wasm", "status_code": 206, ...}

The logged size is the number of body bytes actually sent, so HEAD
requests log 0 and range requests log the slice length.

Route the access log separately from the rest with e.g.:

    logging.getLogger("webviewer.access").addHandler(file_handler)

=============================================================================
"""

import json
import logging
import time
from dataclasses import dataclass, asdict
from typing import Optional

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("webviewer.access")


@dataclass
class RequestLog:
    """Structured access-log entry."""

    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str
    range: Optional[str] = None

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        line = (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )
        if self.range:
            line += f' "{self.range}"'
        return line


class LoggingMiddleware(Middleware):
    """
    Request logging middleware.

    Should be added first so it sees every request, including ones answered
    by other middleware.

    Args:
        log_format: "text" (Apache-like) or "json".
        log_level: Level for successful requests. 4xx/5xx responses are
                   logged at WARNING so 404s from a broken build stand out.
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        if log_format not in ("text", "json"):
            raise ValueError(f"Unknown log format: {log_format!r}")
        self.log_format = log_format
        self.log_level = log_level

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        entry = RequestLog(
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0] or "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
            range=request.range,
        )

        level = logging.WARNING if response.status.is_error else self.log_level
        if self.log_format == "json":
            logger.log(level, json.dumps(entry.to_dict()))
        else:
            logger.log(level, entry.to_text())

        return response

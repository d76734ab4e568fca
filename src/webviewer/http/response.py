"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses per RFC 7230.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  HTTP/1.1 206 Partial Content\r\n          ← Status line             │
    │  Content-Type: application/wasm\r\n        ← Headers                 │
    │  Content-Length: 100\r\n                                             │
    │  Content-Range: bytes 0-99/4194304\r\n                               │
    │  Accept-Ranges: bytes\r\n                                            │
    │  \r\n                                      ← End of head             │
    │  <100 bytes of the module>                 ← Body                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The head and the body are serialized separately. The head is small and is
always written first; the body of a large asset is sent straight from the
shared asset buffer (a memoryview slice), so serving a multi-megabyte
WebAssembly module never copies it.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Union

from .status_codes import HTTPStatus


DEFAULT_SERVER_NAME = "WebViewerServer/1.0"

Body = Union[bytes, memoryview]


@dataclass
class HTTPResponse:
    """
    An HTTP response to be sent to the client.

    Content-Length is computed from the body unless set explicitly. HEAD
    responses set it explicitly to the length the GET body would have had.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: Body = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def head_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize the status line and headers, including the blank line.

        Content-Length, Date and Server are added if missing.
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))
        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))
        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        return "\r\n".join(lines).encode("latin-1") + b"\r\n"

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """Head and body in one buffer. Handy for tests and tiny responses."""
        return self.head_bytes(server_name) + bytes(self.body)


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.PARTIAL_CONTENT)
            .content_type("application/wasm")
            .header("Content-Range", "bytes 0-99/4194304")
            .body(view[0:100])
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: Body = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, Body]) -> "ResponseBuilder":
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._body = body
        return self

    def text(self, text: str) -> "ResponseBuilder":
        """Plain-text body with a UTF-8 Content-Type."""
        self._headers["Content-Type"] = "text/plain; charset=utf-8"
        return self.body(text)

    def cache(self, max_age: int = 3600) -> "ResponseBuilder":
        self._headers["Cache-Control"] = f"public, max-age={max_age}"
        return self

    def no_cache(self) -> "ResponseBuilder":
        """Browsers may store the response but must revalidate before reuse."""
        self._headers["Cache-Control"] = "no-cache"
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231), always in GMT.

    Example: Wed, 01 Jan 2026 12:00:00 GMT

    Day and month names are English regardless of the process locale.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# Error bodies are short plain text. A 404 only ever says "404 Not Found",
# so it reveals nothing about which assets exist.
#
# =============================================================================

def error_response(status: HTTPStatus, message: str = "") -> HTTPResponse:
    """Plain-text error response, e.g. "400 Bad Request: Invalid request line"."""
    text = f"{int(status)} {status.phrase}"
    if message:
        text += f": {message}"
    return ResponseBuilder().status(status).text(text).build()


def not_found() -> HTTPResponse:
    return error_response(HTTPStatus.NOT_FOUND)


def method_not_allowed(allowed_methods: list[str]) -> HTTPResponse:
    """405 with the Allow header listing the valid methods (RFC 7231 §6.5.5)."""
    response = error_response(HTTPStatus.METHOD_NOT_ALLOWED)
    response.set_header("Allow", ", ".join(allowed_methods))
    return response

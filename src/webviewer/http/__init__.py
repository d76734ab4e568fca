"""
=============================================================================
HTTP PROTOCOL COMPONENTS
=============================================================================

    request.py       Raw bytes → HTTPRequest
    response.py      HTTPResponse / ResponseBuilder → raw bytes
    ranges.py        Range header → FULL / PARTIAL / UNSATISFIABLE
    router.py        (method, path, Range) → HTTPResponse for an asset
    status_codes.py  HTTPStatus enum

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    error_response,
    not_found,
    method_not_allowed,
)
from .ranges import RangeKind, RangeOutcome, resolve_range
from .router import AssetRouter, normalize_path, ALLOWED_METHODS
from .status_codes import HTTPStatus

__all__ = [
    # Requests
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Responses
    "HTTPResponse",
    "ResponseBuilder",
    "error_response",
    "not_found",
    "method_not_allowed",

    # Byte ranges
    "RangeKind",
    "RangeOutcome",
    "resolve_range",

    # Routing
    "AssetRouter",
    "normalize_path",
    "ALLOWED_METHODS",

    # Status codes
    "HTTPStatus",
]

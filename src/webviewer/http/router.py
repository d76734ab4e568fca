"""
=============================================================================
ASSET ROUTER
=============================================================================

Maps a request to an entry of the asset table and builds the response.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       ROUTING DECISIONS                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   target ──► normalize_path() ──► AssetTable.lookup()                │
    │                                        │                             │
    │                        miss ◄──────────┴──────────► hit              │
    │                          │                           │               │
    │                     404 Not Found          method GET / HEAD?        │
    │                                              │            │          │
    │                                             no           yes         │
    │                                              │            │          │
    │                                  405 + Allow: GET, HEAD   │          │
    │                                                           ▼          │
    │                                              resolve_range(Range)    │
    │                                         ┌─────────┼──────────┐       │
    │                                       FULL     PARTIAL   UNSATISFIABLE│
    │                                        200       206        416      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The router is the only place that knows about HTTP semantics of assets.
It is a pure function of (method, path, Range header, asset table): no
I/O, no locking, no state.

=============================================================================
"""

import logging
from typing import Callable, Optional
from urllib.parse import urlsplit, unquote

from ..assets import Asset, AssetTable, ROOT_PATH
from .ranges import RangeKind, resolve_range
from .request import HTTPRequest
from .response import (
    HTTPResponse, ResponseBuilder,
    not_found, method_not_allowed,
)
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


ALLOWED_METHODS = ["GET", "HEAD"]


def normalize_path(target: str) -> str:
    """
    Turn a request target into an asset-table path.

    - query string and fragment are dropped
    - absolute-form targets ("http://host/x") keep only the path
    - percent-escapes are decoded
    - "", "//", "///" all collapse to the root "/"

        >>> normalize_path("/re_viewer.js?v=2")
        '/re_viewer.js'
        >>> normalize_path("/favicon%2Esvg")
        '/favicon.svg'
    """
    path = unquote(urlsplit(target).path)
    if not path.strip("/"):
        return ROOT_PATH
    return path


class AssetRouter:
    """
    Serves the assets of an AssetTable.

    Usage:
        router = AssetRouter(load_assets())
        response = router.handle("GET", "/re_viewer_bg.wasm", "bytes=0-99")

    Args:
        assets: The immutable asset table.
        cache_max_age: max-age (seconds) for cacheable assets.
        on_wasm_served: Optional hook called whenever a WebAssembly module
                        is served with GET. Must not raise.
    """

    def __init__(
        self,
        assets: AssetTable,
        cache_max_age: int = 3600,
        on_wasm_served: Optional[Callable[[], None]] = None,
    ):
        self.assets = assets
        self.cache_max_age = cache_max_age
        self.on_wasm_served = on_wasm_served

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        """Request-handler form, for use behind the middleware pipeline."""
        return self.handle(request.method, request.target, request.range)

    def handle(
        self,
        method: str,
        path: str,
        range_header: Optional[str] = None,
    ) -> HTTPResponse:
        """
        Build the response for one request.

        Args:
            method: HTTP method, e.g. "GET".
            path: Request target as received (may include a query string
                  and percent-escapes).
            range_header: Value of the Range header, or None.

        Returns:
            The HTTPResponse. HEAD responses carry the GET headers and an
            empty body.
        """
        asset = self.assets.lookup(normalize_path(path))
        if asset is None:
            logger.debug(f"404 path: {path}")
            response = not_found()
            if method == "HEAD":
                response.set_header("Content-Length", str(len(response.body)))
                response.body = b""
            return response

        if method not in ALLOWED_METHODS:
            return method_not_allowed(ALLOWED_METHODS)

        response = self._serve(asset, range_header)

        if method == "HEAD":
            # Content-Length is already set from the GET body size
            response.body = b""
        elif asset.is_wasm and response.status.is_success:
            self._notify_wasm_served()

        return response

    def _serve(self, asset: Asset, range_header: Optional[str]) -> HTTPResponse:
        outcome = resolve_range(range_header, asset.size)

        builder = (ResponseBuilder()
            .content_type(asset.content_type)
            .header("Accept-Ranges", "bytes"))

        if asset.cacheable:
            builder.cache(self.cache_max_age)
        else:
            builder.no_cache()

        if outcome.kind is RangeKind.UNSATISFIABLE:
            logger.debug(f"Unsatisfiable range {range_header!r} for {asset.path} ({asset.size} bytes)")
            return (builder
                .status(HTTPStatus.RANGE_NOT_SATISFIABLE)
                .header("Content-Range", outcome.content_range)
                .header("Content-Length", "0")
                .build())

        if outcome.kind is RangeKind.PARTIAL:
            # Zero-copy slice of the shared, immutable asset buffer
            body = memoryview(asset.content)[outcome.start:outcome.end + 1]
            return (builder
                .status(HTTPStatus.PARTIAL_CONTENT)
                .header("Content-Range", outcome.content_range)
                .header("Content-Length", str(outcome.length))
                .body(body)
                .build())

        return (builder
            .status(HTTPStatus.OK)
            .header("Content-Length", str(asset.size))
            .body(asset.content)
            .build())

    def _notify_wasm_served(self):
        if self.on_wasm_served is None:
            return
        try:
            self.on_wasm_served()
        except Exception as e:
            logger.debug(f"on_wasm_served hook failed: {e}")

"""
=============================================================================
WEBVIEWER - HTTP Server for the Web Viewer Bundle
=============================================================================

Serves the compiled web viewer (HTML shell, JavaScript glue, WebAssembly
modules, service worker, icon) to browsers over plain HTTP/1.1.

    browser ──GET /re_viewer_bg.wasm──► WebViewerServer ──► in-memory asset

- Every asset is read from disk once at startup and served from memory.
- Byte ranges (RFC 7233) are honored, so large modules can be fetched in
  pieces.
- Port 0 binds any free port; the bound port is reported back.
- stop() drains in-flight downloads for a bounded grace period.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    webviewer/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m webviewer)
    ├── server.py            # WebViewerServer lifecycle
    ├── assets.py            # Asset manifest and in-memory table
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # Exception hierarchy
    ├── telemetry.py         # Fire-and-forget usage events
    ├── core/                # Sockets, connections, worker threads
    ├── http/                # Parsing, responses, ranges, routing
    ├── middleware/          # Access logging
    └── web_viewer/          # Build output: the viewer bundle

=============================================================================
QUICK START
=============================================================================

    from webviewer import WebViewerServer, ServerConfig

    server = WebViewerServer(ServerConfig(port=0))
    server.start()
    print(f"Hosting web viewer on {server.url}")
    ...
    server.stop()
    server.wait()

=============================================================================
"""

__version__ = "1.0.0"

from .assets import Asset, AssetTable, load_assets
from .config import ServerConfig
from .errors import WebViewerError, AssetError, ServerBindError, ServerStateError
from .server import WebViewerServer, ServerState
from .telemetry import Telemetry, NullTelemetry, LoggingTelemetry

__all__ = [
    "WebViewerServer",
    "ServerState",
    "ServerConfig",
    "Asset",
    "AssetTable",
    "load_assets",
    "WebViewerError",
    "AssetError",
    "ServerBindError",
    "ServerStateError",
    "Telemetry",
    "NullTelemetry",
    "LoggingTelemetry",
    "__version__",
]

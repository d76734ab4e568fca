"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables of the web viewer server in one dataclass.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m webviewer --port 0                               │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── WEB_VIEWER_PORT=9191 python -m webviewer                   │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The config is validated when the server is constructed (fail fast) and is
not modified once the server is listening.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_PORT = 9090


@dataclass
class ServerConfig:
    """
    Configuration for the web viewer server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK
    - host, port, backlog, buffer_size, timeout

    HTTP
    - keep_alive, keep_alive_timeout, max_request_size, cache_max_age

    CONCURRENCY
    - min_workers, max_workers

    LIFECYCLE
    - shutdown_grace_period, accept_poll_interval

    ASSETS / LOGGING / IDENTITY
    - asset_dir, log_level, log_format, server_name

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Interface to bind. "0.0.0.0" to expose the viewer on the network."""

    port: int = DEFAULT_PORT
    """TCP port. 0 lets the OS pick a free port; the server reports the real one."""

    backlog: int = 128
    """Maximum number of connections queued by the kernel before accept()."""

    buffer_size: int = 8192
    """recv() chunk size in bytes."""

    timeout: Optional[float] = 30.0
    """Per-socket timeout in seconds for reading the first request and for sends."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    """Idle time after which a keep-alive connection is closed."""

    max_request_size: int = 64 * 1024
    """Upper bound on request head + body. Viewer requests are tiny GETs."""

    cache_max_age: int = 3600
    """Cache-Control max-age for cacheable assets."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    shutdown_grace_period: float = 5.0
    """
    Seconds in-flight connections get to finish after a stop request.
    Connections still open afterwards are closed forcibly.
    """

    accept_poll_interval: float = 0.2
    """
    accept() timeout. Bounds how long a stop request takes to close the
    listening socket.
    """

    # ─────────────────────────────────────────────────────────────────────
    # ASSETS
    # ─────────────────────────────────────────────────────────────────────

    asset_dir: Optional[str] = None
    """Directory holding the viewer files. None = WEB_VIEWER_ASSET_DIR or the packaged copy."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """Access log format: "text" or "json"."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "WebViewerServer/1.0"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        WEB_VIEWER_HOST          Bind address (default: 127.0.0.1)
        WEB_VIEWER_PORT          Port, 0 = any free port (default: 9090)
        WEB_VIEWER_ASSET_DIR     Asset directory (default: packaged copy)
        WEB_VIEWER_WORKERS       Max worker threads (default: 16)
        WEB_VIEWER_TIMEOUT       Socket timeout in seconds (default: 30)
        WEB_VIEWER_GRACE_PERIOD  Shutdown grace period in seconds (default: 5)
        WEB_VIEWER_LOG_LEVEL     Logging level (default: INFO)
        """
        workers = int(os.getenv("WEB_VIEWER_WORKERS", "16"))
        return cls(
            host=os.getenv("WEB_VIEWER_HOST", "127.0.0.1"),
            port=int(os.getenv("WEB_VIEWER_PORT", str(DEFAULT_PORT))),
            asset_dir=os.getenv("WEB_VIEWER_ASSET_DIR"),
            min_workers=min(4, workers),
            max_workers=workers,
            timeout=float(os.getenv("WEB_VIEWER_TIMEOUT", "30")),
            shutdown_grace_period=float(os.getenv("WEB_VIEWER_GRACE_PERIOD", "5")),
            log_level=os.getenv("WEB_VIEWER_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """Raise ValueError on the first invalid setting."""
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535 (0 = any free port).")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.shutdown_grace_period < 0:
            raise ValueError("shutdown_grace_period must be >= 0")

        if self.accept_poll_interval <= 0:
            raise ValueError("accept_poll_interval must be > 0")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {self.log_format!r}")

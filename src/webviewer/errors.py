"""
=============================================================================
ERRORS
=============================================================================

Exceptions raised by the web viewer server outside of request handling.

    WebViewerError
    ├── AssetError          A viewer file is missing or unreadable
    ├── ServerBindError     The listening socket could not be bound
    └── ServerStateError    Illegal lifecycle transition (e.g. restart)

Request-level problems never raise these. They are turned into HTTP
responses (404, 405, 416, ...) by the router, or into HTTPParseError by the
request parser.

=============================================================================
"""


class WebViewerError(Exception):
    """Base class for all web viewer server errors."""


class AssetError(WebViewerError):
    """
    A viewer asset could not be loaded at startup.

    Attributes:
        path: Filesystem path of the offending file.
    """

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class ServerBindError(WebViewerError):
    """
    The listening socket could not be bound.

    Usually means the port is already in use, or that it is a privileged
    port (< 1024) and we are not root.
    """

    def __init__(self, host: str, port: int, cause: OSError):
        super().__init__(f"Failed to bind to {host}:{port}: {cause}")
        self.host = host
        self.port = port
        self.cause = cause


class ServerStateError(WebViewerError):
    """Raised when a lifecycle method is called in the wrong state."""

"""
pytest configuration and fixtures.
"""

import socket
from pathlib import Path
from typing import Dict, Generator, Optional, Tuple
import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from webviewer import WebViewerServer, ServerConfig, AssetTable


# Big enough that a full GET needs many send() calls
WASM_SIZE = 3 * 1024 * 1024


def _patterned(size: int, seed: int = 0) -> bytes:
    """Deterministic non-repeating-looking bytes, so slicing bugs show up."""
    block = bytes((i * 31 + seed) % 251 for i in range(251))
    return (block * (size // len(block) + 1))[:size]


@pytest.fixture
def asset_files() -> Dict[str, bytes]:
    """Contents of a fake web viewer build, keyed by filename."""
    return {
        "index_bundled.html": b"<!DOCTYPE html><html><body>viewer</body></html>",
        "favicon.svg": b'<svg xmlns="http://www.w3.org/2000/svg"></svg>',
        "sw.js": b"self.addEventListener('fetch', () => {});",
        "re_viewer.js": b"export default function init() {}",
        "re_viewer_bg.wasm": b"\x00asm\x01\x00\x00\x00" + _patterned(WASM_SIZE - 8),
        "re_viewer_debug.js": b"export default function init_debug() {}",
        "re_viewer_debug_bg.wasm": b"\x00asm\x01\x00\x00\x00" + _patterned(256 * 1024, seed=7),
    }


@pytest.fixture
def asset_dir(tmp_path: Path, asset_files: Dict[str, bytes]) -> Path:
    """Temporary directory holding the fake build."""
    root = tmp_path / "web_viewer"
    root.mkdir()
    for name, content in asset_files.items():
        (root / name).write_bytes(content)
    return root


@pytest.fixture
def assets(asset_files: Dict[str, bytes]) -> AssetTable:
    return AssetTable.from_files(asset_files)


@pytest.fixture
def config(asset_dir: Path) -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        shutdown_grace_period=2.0,
        accept_poll_interval=0.05,
        asset_dir=str(asset_dir),
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def server(config: ServerConfig) -> Generator[WebViewerServer, None, None]:
    """A server listening on a free port, stopped after the test."""
    srv = WebViewerServer(config)
    srv.start()

    yield srv

    srv.stop()
    srv.wait(timeout=10.0)


# =============================================================================
# RAW HTTP CLIENT
# =============================================================================


class RawResponse:
    """A response read off the wire, headers lowercased."""

    def __init__(self, status: int, reason: str, headers: Dict[str, str], body: bytes):
        self.status = status
        self.reason = reason
        self.headers = headers
        self.body = body

    def __repr__(self):
        return f"RawResponse({self.status} {self.reason}, {len(self.body)} bytes)"


def _parse_head(head: bytes) -> Tuple[int, str, Dict[str, str]]:
    lines = head.decode("latin-1").split("\r\n")
    _, status, reason = lines[0].split(" ", 2)
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()
    return int(status), reason, headers


def read_response(sock: socket.socket, head_only: bool = False) -> RawResponse:
    """
    Read exactly one response from a socket.

    Uses Content-Length to find the end of the body, so the connection
    can be reused afterwards.
    """
    buffer = b""
    while b"\r\n\r\n" not in buffer:
        chunk = sock.recv(65536)
        if not chunk:
            raise ConnectionError(f"Connection closed mid-head: {buffer!r}")
        buffer += chunk

    head, _, rest = buffer.partition(b"\r\n\r\n")
    status, reason, headers = _parse_head(head)

    length = 0 if head_only else int(headers.get("content-length", 0))
    body = rest
    while len(body) < length:
        chunk = sock.recv(min(length - len(body), 1024 * 1024))
        if not chunk:
            raise ConnectionError(f"Connection closed after {len(body)}/{length} body bytes")
        body += chunk

    return RawResponse(status, reason, headers, body[:length])


def build_request(
    method: str,
    target: str,
    headers: Optional[Dict[str, str]] = None,
    keep_alive: bool = False,
) -> bytes:
    lines = [f"{method} {target} HTTP/1.1", "Host: localhost"]
    for name, value in (headers or {}).items():
        lines.append(f"{name}: {value}")
    if not keep_alive:
        lines.append("Connection: close")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")


class RawHTTPClient:
    """Speaks HTTP/1.1 over a plain socket, one connection per request."""

    def __init__(self, port: int, timeout: float = 10.0):
        self.port = port
        self.timeout = timeout

    def connect(self) -> socket.socket:
        return socket.create_connection(("127.0.0.1", self.port), timeout=self.timeout)

    def request(
        self,
        method: str,
        target: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> RawResponse:
        with self.connect() as sock:
            sock.sendall(build_request(method, target, headers))
            return read_response(sock, head_only=(method == "HEAD"))

    def send_raw(self, data: bytes) -> bytes:
        """Send arbitrary bytes, return everything until the server closes."""
        with self.connect() as sock:
            sock.sendall(data)
            received = b""
            while True:
                chunk = sock.recv(65536)
                if not chunk:
                    return received
                received += chunk


@pytest.fixture
def client(server: WebViewerServer) -> RawHTTPClient:
    return RawHTTPClient(server.port)

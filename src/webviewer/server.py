"""
=============================================================================
WEB VIEWER SERVER
=============================================================================

Ties the components together into a server for the web viewer bundle.

    ┌──────────────────┐
    │ WebViewerServer  │  lifecycle, connection tracking, drain
    └────────┬─────────┘
             │
    ┌────────┼───────────────────┬─────────────────────┐
    ▼        ▼                   ▼                     ▼
 SocketServer  ThreadPool   RequestParser   MiddlewarePipeline ─► AssetRouter
 (accept)      (workers)    (bytes → req)   (access log)          (asset table)

=============================================================================
LIFECYCLE
=============================================================================

    CREATED ──bind()──► LISTENING ──stop()──► DRAINING ──► STOPPED
       │                                                      ▲
       └──────────────────────stop()──────────────────────────┘

- bind() opens the listening socket. The bound port is known from then
  on, also when the configured port was 0.
- stop() closes the listening socket at once, so new clients are refused
  from then on. The accept loop returns and the server enters DRAINING.
- While draining, idle keep-alive connections are closed at once and
  requests already being answered get up to shutdown_grace_period to
  finish. Whatever is still open after that is cut off.
- STOPPED is final. A stopped server cannot be started again.

=============================================================================
"""

import logging
import threading
import time
from enum import Enum
from typing import Optional, Callable

from .assets import AssetTable, load_assets
from .config import ServerConfig
from .core import SocketServer, Connection, ThreadPool
from .errors import ServerStateError
from .http import (
    HTTPRequest, HTTPResponse, RequestParser, HTTPParseError,
    HTTPStatus, AssetRouter, error_response,
)
from .middleware import MiddlewarePipeline, LoggingMiddleware
from .telemetry import Telemetry, NullTelemetry, dispatch


logger = logging.getLogger(__name__)


class ServerState(Enum):
    CREATED = "created"
    LISTENING = "listening"
    DRAINING = "draining"
    STOPPED = "stopped"


_STATE_ORDER = [
    ServerState.CREATED,
    ServerState.LISTENING,
    ServerState.DRAINING,
    ServerState.STOPPED,
]


def setup_logging(log_level: str = "INFO"):
    """Configure root logging for a foreground server process."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("webviewer").setLevel(level)


class WebViewerServer:
    """
    HTTP/1.1 server for the web viewer's static assets.

        server = WebViewerServer(ServerConfig(port=0))
        server.start()                 # returns once listening
        print(server.url)              # http://localhost:54321
        ...
        server.stop()                  # non-blocking
        server.wait()                  # until STOPPED

    run() is the blocking variant used by the command line: it installs
    SIGINT/SIGTERM handlers and returns after the drain.

    Args:
        config: Server configuration. Defaults to ServerConfig().
        assets: Preloaded asset table. Loaded from config.asset_dir if omitted.
        telemetry: Sink for usage events. Defaults to NullTelemetry().

    Raises:
        ValueError: If the configuration is invalid.
        AssetError: If an asset file is missing or unreadable.
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        assets: Optional[AssetTable] = None,
        telemetry: Optional[Telemetry] = None,
    ):
        self.config = config or ServerConfig()
        self.config.validate()

        self.assets = assets if assets is not None else load_assets(self.config.asset_dir)
        self.telemetry = telemetry or NullTelemetry()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self._router = AssetRouter(
            self.assets,
            cache_max_age=self.config.cache_max_age,
            on_wasm_served=self._on_wasm_served,
        )
        self._middleware = MiddlewarePipeline()
        self._middleware.add(LoggingMiddleware(log_format=self.config.log_format))
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None

        # RLock: stop() may run inside a signal handler on a thread that
        # already holds it
        self._state_changed = threading.Condition(threading.RLock())
        self._state = ServerState.CREATED
        self._serving = False

        self._connections: set[Connection] = set()
        self._connections_changed = threading.Condition()

        self._serve_thread: Optional[threading.Thread] = None

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def port(self) -> int:
        """The bound port, or the configured one before bind()."""
        return self._socket_server.port

    @property
    def url(self) -> str:
        host = self.config.host
        if host in ("0.0.0.0", "127.0.0.1", ""):
            host = "localhost"
        return f"http://{host}:{self.port}"

    @property
    def active_connections(self) -> int:
        with self._connections_changed:
            return len(self._connections)

    def _set_state(self, state: ServerState):
        with self._state_changed:
            logger.debug(f"Server state {self._state.value} -> {state.value}")
            self._state = state
            self._state_changed.notify_all()

    def wait_for_state(self, state: ServerState, timeout: Optional[float] = None) -> bool:
        """
        Block until the server has reached `state` or a later one.

        Returns:
            False if the timeout expired first.
        """
        target = _STATE_ORDER.index(state)
        with self._state_changed:
            return self._state_changed.wait_for(
                lambda: _STATE_ORDER.index(self._state) >= target,
                timeout=timeout,
            )

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is STOPPED."""
        return self.wait_for_state(ServerState.STOPPED, timeout)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def bind(self) -> int:
        """
        Open the listening socket.

        Returns:
            The bound port.

        Raises:
            ServerBindError: If the address is unavailable. The server stays
                             CREATED and bind() may be retried.
            ServerStateError: If the server was already stopped.
        """
        with self._state_changed:
            if self._state is ServerState.LISTENING:
                return self.port
            if self._state is not ServerState.CREATED:
                raise ServerStateError(f"Cannot bind a server that is {self._state.value}")

            self._socket_server.bind()
            self._set_state(ServerState.LISTENING)

        port = self.port
        logger.info(f"Serving {len(self.assets)} assets on {self.url}")
        dispatch(lambda: self.telemetry.notify_started(port), "server_started")
        return port

    def serve_forever(self, handle_signals: bool = False):
        """
        Bind if needed and serve until stopped (blocking).

        Returns once the drain has finished and the state is STOPPED.
        """
        self._claim_serving()
        self._serve(handle_signals)

    def start(self) -> int:
        """
        Bind and serve on a background thread.

        Bind errors are raised here, in the caller's thread.

        Returns:
            The bound port.
        """
        self._claim_serving()
        self._serve_thread = threading.Thread(
            target=self._serve,
            name="webviewer-accept",
            daemon=True,
        )
        self._serve_thread.start()
        return self.port

    def run(self):
        """Serve in the foreground until SIGINT/SIGTERM (main thread only)."""
        setup_logging(self.config.log_level)
        self.serve_forever(handle_signals=True)

    def stop(self):
        """
        Begin shutdown.

        Idempotent and non-blocking: use wait() to block until STOPPED.
        """
        with self._state_changed:
            if self._state is ServerState.STOPPED:
                return
            if self._serving:
                self._socket_server.shutdown()
                return

            # Never served: nothing to drain
            logger.info("Stopping server that never served")
            self._socket_server.close()
            self._set_state(ServerState.STOPPED)

    def _claim_serving(self):
        with self._state_changed:
            if self._state in (ServerState.DRAINING, ServerState.STOPPED):
                raise ServerStateError(f"Cannot serve a server that is {self._state.value}")
            if self._serving:
                raise ServerStateError("Server is already serving")
            self.bind()
            self._serving = True

    def _serve(self, handle_signals: bool = False):
        self._handler = self._middleware.wrap(self._router)
        self._thread_pool.start()

        try:
            self._socket_server.serve(self._handle_connection, handle_signals=handle_signals)
        finally:
            self._drain()

    def _drain(self):
        """
        Finish in-flight connections after the listening socket is closed.

        =====================================================================
        DRAIN
        =====================================================================

        1. DRAINING: no new clients (the listener is already closed)
        2. Close idle keep-alive connections right away
        3. Wait up to shutdown_grace_period for the others
        4. Cut off the rest and log a warning
        5. Stop the worker threads, then STOPPED

        =====================================================================
        """
        self._set_state(ServerState.DRAINING)
        grace = self.config.shutdown_grace_period
        logger.info(f"Draining {self.active_connections} connection(s), grace period {grace}s")

        deadline = time.monotonic() + grace
        with self._connections_changed:
            while self._connections:
                self._abort_idle_connections()
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._connections_changed.wait(timeout=min(remaining, 0.1))
            leftover = list(self._connections)

        if leftover:
            logger.warning(
                f"Grace period of {grace}s exceeded, "
                f"force-closing {len(leftover)} connection(s)"
            )
            for conn in leftover:
                conn.abort()

        self._thread_pool.shutdown(timeout=max(grace, 1.0))
        self._set_state(ServerState.STOPPED)
        logger.info("Server stopped")

    def _abort_idle_connections(self):
        """Caller holds self._connections_changed."""
        for conn in self._connections:
            if conn.is_idle:
                logger.debug(f"[{conn.id}] Closing idle keep-alive connection")
                conn.abort()

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _track(self, conn: Connection):
        with self._connections_changed:
            self._connections.add(conn)

    def _forget(self, conn: Connection):
        with self._connections_changed:
            self._connections.discard(conn)
            self._connections_changed.notify_all()

    def _handle_connection(self, conn: Connection):
        """Hand a new connection to the thread pool (accept thread)."""
        self._track(conn)

        try:
            submitted = self._thread_pool.submit(self._process_connection, args=(conn,))
        except RuntimeError as e:
            logger.warning(f"[{conn.id}] Cannot schedule connection: {e}")
            submitted = False

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            # close() lingers on the socket; keep that off the accept thread
            threading.Thread(
                target=self._reject_connection,
                args=(conn,),
                name=f"webviewer-reject-{conn.id}",
                daemon=True,
            ).start()

    def _reject_connection(self, conn: Connection):
        try:
            with conn:
                self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
        finally:
            self._forget(conn)

    def _process_connection(self, conn: Connection):
        """
        Serve requests on one connection until it closes (worker thread).

            read → parse → middleware + router → send → keep-alive? → read ...
        """
        try:
            with conn:
                self._serve_requests(conn)
        finally:
            self._forget(conn)

    def _serve_requests(self, conn: Connection):
        while True:
            try:
                raw_request = conn.read_request()
            except TimeoutError:
                self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                return
            except ValueError as e:
                logger.warning(f"[{conn.id}] {e}")
                self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
                return
            except ConnectionError as e:
                logger.warning(f"[{conn.id}] Read failed: {e}")
                return

            if raw_request is None:
                return

            try:
                request = self._parser.parse(raw_request, conn.address)
            except HTTPParseError as e:
                logger.warning(f"[{conn.id}] Malformed request: {e}")
                self._send_error(conn, HTTPStatus(e.status_code), str(e))
                return

            try:
                response = self._handler(request)
            except Exception as e:
                logger.exception(f"[{conn.id}] Handler error: {e}")
                response = error_response(HTTPStatus.INTERNAL_SERVER_ERROR)

            keep_alive = (
                request.is_keep_alive
                and self.config.keep_alive
                and not self._socket_server.is_shutting_down
            )
            if keep_alive:
                response.headers.setdefault("Connection", "keep-alive")
                response.headers.setdefault("Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}")
            else:
                response.headers["Connection"] = "close"

            head = response.head_bytes(self.config.server_name)
            if not conn.send_response(head, response.body):
                return

            if not keep_alive:
                return

            conn.set_keep_alive()

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str):
        """Answer a request that never reached the handler, then close."""
        response = error_response(status, message)
        response.headers["Connection"] = "close"
        conn.send_response(response.to_bytes(self.config.server_name))

    # =========================================================================
    # TELEMETRY
    # =========================================================================

    def _on_wasm_served(self):
        dispatch(self.telemetry.notify_wasm_served, "serve_wasm")

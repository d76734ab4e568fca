"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

Owns the listening socket: bind, listen, accept, close.

SOCKET LIFECYCLE (Server Side):
────────────────────────────────

    1. socket()    Create the socket
    2. bind()      Reserve IP:PORT          ← port 0 = kernel picks one
    3. listen()    Start queueing clients
    4. accept()    Hand out one socket per client (loop)
    5. close()     Release the port         ← new clients now get "refused"

bind() and the accept loop are separate steps so the caller learns the
real port (and any bind error) before it starts serving.

=============================================================================
SIGNAL HANDLING FOR GRACEFUL SHUTDOWN
=============================================================================

SIGINT (2):   Ctrl+C
SIGTERM (15): kill, docker stop, systemd stop

Both are turned into shutdown(), which closes the listening socket on the
spot. The caller then drains the connections that are still in flight.

Python only lets the main thread install signal handlers, so this is
opt-in (serve(..., handle_signals=True)).

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from ..errors import ServerBindError
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

        server = SocketServer(config)
        server.bind()                 # raises ServerBindError
        print(server.port)            # the real port, even if config.port == 0
        server.serve(handle)          # blocks until shutdown()

    Each accepted client is wrapped in a Connection and passed to the
    handler. The handler must not block: the HTTP server hands the
    connection to its thread pool.
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._bound_address: Optional[Tuple[str, int]] = None
        self._running = False
        self._shutdown_event = threading.Event()
        self._original_handlers: dict = {}

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port), or the configured one before bind()."""
        return self._bound_address or (self.config.host, self.config.port)

    @property
    def port(self) -> int:
        return self.address[1]

    @property
    def is_shutting_down(self) -> bool:
        return self._shutdown_event.is_set()

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Rebind right after a restart even while old sockets sit in TIME_WAIT.
        # No SO_REUSEPORT: a second server on a busy port must fail to bind.
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes up periodically to check for shutdown
        sock.settimeout(self.config.accept_poll_interval)

        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Create, bind and start listening.

        Returns:
            The bound (host, port).

        Raises:
            ServerBindError: If the address is unavailable.
        """
        if self._socket is not None:
            return self.address

        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise ServerBindError(self.config.host, self.config.port, e) from e

        self._socket = sock
        self._bound_address = sock.getsockname()[:2]
        logger.info(f"Server listening on {self._bound_address[0]}:{self._bound_address[1]}")
        return self._bound_address

    def _setup_signals(self):
        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def serve(
        self,
        connection_handler: Callable[[Connection], None],
        handle_signals: bool = False,
    ):
        """
        Accept connections until shutdown() is called.

        Binds first if bind() wasn't called. The listening socket is
        closed before this method returns.

        Args:
            connection_handler: Called with each new Connection.
            handle_signals: Install SIGINT/SIGTERM handlers (main thread only).
        """
        self.bind()

        if self._shutdown_event.is_set():
            # Stopped before the loop even started
            self._cleanup()
            return

        self._running = True
        if handle_signals:
            self._setup_signals()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            if not self._running:
                # Stop arrived while this client was being accepted
                client_socket.close()
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )

            connection_handler(conn)

    def shutdown(self):
        """
        Stop accepting connections.

        Idempotent, non-blocking and safe to call from a signal handler
        or any thread. The listening socket stops taking clients before
        this returns; a blocked accept() wakes up with an OSError that
        the accept loop treats as a normal exit.
        """
        if self._shutdown_event.is_set():
            return
        logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

        sock = self._socket
        if sock is not None:
            try:
                # Takes the socket out of LISTEN even while accept() holds it
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass  # Not supported for listening sockets on every platform
            sock.close()

    def _cleanup(self):
        self._running = False
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        logger.info("Listening socket closed")

    def close(self):
        """Shut down and release the listening socket without serving."""
        self.shutdown()
        self._cleanup()


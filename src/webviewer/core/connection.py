"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket with the operations the server needs:
buffered request reading, ordered response writing, and closing.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

A request may arrive split over several recv() calls, and two pipelined
requests may arrive in one. We buffer until the "\r\n\r\n" that ends the
head, read Content-Length more bytes of body, and keep anything beyond
that for the next request on the same connection.

=============================================================================
CONNECTION STATES
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
               ▲                                                │
               └────────────────────────────────────────────────┘
                                   │ (close / error / abort)
                                   ▼
                        CLOSING ──► CLOSED

A connection sitting in READING with an empty buffer after at least one
request is idle: nothing is lost if the server closes it while draining.
read_request() switches to PROCESSING as soon as a whole request is in
hand, so a request that has arrived is always answered.

=============================================================================
"""

import socket
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Union


logger = logging.getLogger(__name__)


# Bodies are written in slices so the socket timeout bounds each slice,
# not the transfer of a whole multi-megabyte module.
SEND_CHUNK_SIZE = 256 * 1024


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(eq=False)
class Connection:
    """
    A client connection.

    Owned by exactly one worker thread. The only call another thread may
    make is abort(), used by the server to cut connections that outlive
    the shutdown grace period.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port).
        id: Short random id used to prefix log messages.
        state: Current ConnectionState.
        requests_handled: Number of requests read so far.
    """

    socket: socket.socket
    address: tuple[str, int]
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 64 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def is_idle(self) -> bool:
        """True while waiting for a follow-up request on a keep-alive connection."""
        return (
            self.requests_handled > 0
            and self.state in (ConnectionState.KEEP_ALIVE, ConnectionState.READING)
            and not self._buffer
        )

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        Uses keep_alive_timeout instead of timeout once a request has
        already been served on this connection.

        Returns:
            The request bytes (head + body), or None if the client closed
            the connection or went idle past the keep-alive timeout. On
            success the state is PROCESSING.

        Raises:
            TimeoutError: If the first request doesn't arrive in time.
            ValueError: If the request exceeds max_request_size.
        """
        self.state = ConnectionState.READING

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise ValueError(f"Request too large: {len(self._buffer)} bytes")

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            if body_start + content_length > self.max_request_size:
                raise ValueError(f"Request too large: {body_start + content_length} bytes")

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # Parser reports the short body
                self._buffer += chunk

            # PROCESSING before the buffer empties: a received request is
            # never idle, not even before the caller has parsed it
            if self.state == ConnectionState.READING:
                self.state = ConnectionState.PROCESSING

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            if self.state != ConnectionState.CLOSED:
                try:
                    self.socket.settimeout(self.timeout)
                except OSError:
                    pass  # Aborted while reading

    def _recv(self) -> bytes:
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""
        except OSError as e:
            if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                return b""
            raise ConnectionError(f"recv failed: {e}") from e

    @staticmethod
    def _parse_content_length(headers: bytes) -> int:
        """
        Find Content-Length in raw header bytes.

        Needed before the request is parsed, to know how much body to
        read. Malformed values count as 0 and are rejected by the parser.
        """
        for line in headers.split(b"\r\n")[1:]:
            name, sep, value = line.partition(b":")
            if sep and name.strip().lower() == b"content-length":
                try:
                    return max(int(value.strip()), 0)
                except ValueError:
                    return 0
        return 0

    def send_response(self, head: bytes, body: Union[bytes, memoryview] = b"") -> bool:
        """
        Write a response: the complete head first, then the body.

        Args:
            head: Serialized status line and headers.
            body: Body bytes; may be a memoryview into a shared buffer.

        Returns:
            True if everything was sent, False if the connection was lost.
        """
        self.state = ConnectionState.WRITING

        try:
            self.socket.sendall(head)

            view = memoryview(body)
            for offset in range(0, len(view), SEND_CHUNK_SIZE):
                self.socket.sendall(view[offset:offset + SEND_CHUNK_SIZE])

            return True

        except (ConnectionResetError, BrokenPipeError, socket.timeout, OSError) as e:
            if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                logger.debug(f"[{self.id}] Send interrupted by abort")
            else:
                logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def abort(self):
        """
        Cut the connection from another thread.

        shutdown() wakes up a worker blocked in recv() or sendall(); the
        worker then runs close() itself.
        """
        if self.state == ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSING
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Already disconnected

    def close(self):
        """
        Close the connection.

        Sends FIN (shutdown SHUT_WR), drains whatever the client still
        sends for a moment, then releases the socket.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except (socket.timeout, OSError):
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

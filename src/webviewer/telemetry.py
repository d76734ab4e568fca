"""
=============================================================================
TELEMETRY SIDE CHANNEL
=============================================================================

The server reports a couple of events to an optional analytics sink:

    notify_started(port)     The server is listening on `port`
    notify_wasm_served()     A WebAssembly module was sent to a browser

Delivery is fire-and-forget. Events are dispatched on a short-lived
daemon thread, and any exception the sink raises is logged at DEBUG and
dropped. A slow or broken sink can never delay or fail a request.

=============================================================================
"""

import logging
import threading
from typing import Callable


logger = logging.getLogger(__name__)


class Telemetry:
    """Interface for telemetry sinks. The default methods do nothing."""

    def notify_started(self, port: int) -> None:
        pass

    def notify_wasm_served(self) -> None:
        pass


class NullTelemetry(Telemetry):
    """Sink used when no telemetry is configured."""


class LoggingTelemetry(Telemetry):
    """Records events on the "webviewer.telemetry" logger."""

    def __init__(self, level: int = logging.DEBUG):
        self.level = level
        self._logger = logging.getLogger("webviewer.telemetry")

    def notify_started(self, port: int) -> None:
        self._logger.log(self.level, f"event=server_started port={port}")

    def notify_wasm_served(self) -> None:
        self._logger.log(self.level, "event=serve_wasm")


def dispatch(event: Callable[[], None], name: str) -> None:
    """
    Run one telemetry call in the background, swallowing its errors.

    Args:
        event: Zero-argument callable, e.g. lambda: sink.notify_started(9090).
        name: Event name for log messages.
    """
    def run():
        try:
            event()
        except Exception as e:
            logger.debug(f"Telemetry event {name} failed: {e}")

    try:
        threading.Thread(target=run, name=f"telemetry-{name}", daemon=True).start()
    except RuntimeError as e:
        # Thread creation can fail at interpreter shutdown
        logger.debug(f"Telemetry event {name} not dispatched: {e}")

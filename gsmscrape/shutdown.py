"""Cancellation for long-running harvest runs.

A ShutdownHandler is the cancellation signal threaded through the
pipeline: fetches and politeness delays check it, so Ctrl+C stops the
run at the next boundary with statistics intact.
"""

import signal
import sys
import threading
import time
from typing import Any, Callable, Dict, Optional

from gsmscrape.logging_config import get_logger

__all__ = [
    "ShutdownHandler",
    "pause",
]

logger = get_logger("shutdown")

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownHandler:
    """Cancellation flag, optionally wired to SIGINT/SIGTERM.

    Usage:
        with ShutdownHandler() as shutdown:
            stats = IngestionOrchestrator(channel, store, shutdown=shutdown).run()

    The first signal sets the flag and workers stop at their next fetch
    or delay. A second signal exits immediately.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._previous_handlers: Dict[int, Any] = {}
        self.reason: Optional[str] = None

    def __enter__(self) -> "ShutdownHandler":
        return self.install()

    def __exit__(self, *exc_info) -> None:
        self.uninstall()

    @property
    def installed(self) -> bool:
        return bool(self._previous_handlers)

    def install(self) -> "ShutdownHandler":
        """Route SIGINT/SIGTERM to this handler (main thread only).

        Returns:
            Self for chaining
        """
        if not self.installed:
            for signum in HANDLED_SIGNALS:
                self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)
        return self

    def uninstall(self) -> None:
        """Put back whatever handlers were active before install()."""
        for signum, previous in self._previous_handlers.items():
            if previous is not None:
                signal.signal(signum, previous)
        self._previous_handlers.clear()

    def _handle_signal(self, signum: int, frame) -> None:
        name = signal.Signals(signum).name
        if self._event.is_set():
            logger.error(f"Received {name} again, exiting without waiting for workers")
            sys.exit(1)

        print(f"\n\n⚠️  Received {name} - finishing in-flight items and stopping...")
        print("    (Press Ctrl+C again to force quit)\n")
        self.request(name)

    def request(self, reason: str = "requested") -> None:
        """Ask running work to stop. The first reason given is kept."""
        if self.reason is None:
            self.reason = reason
        self._event.set()

    @property
    def shutdown_requested(self) -> bool:
        return self._event.is_set()

    def check_shutdown(self) -> None:
        """Raise if shutdown was requested.

        Raises:
            KeyboardInterrupt: If shutdown was requested
        """
        if self._event.is_set():
            raise KeyboardInterrupt("Graceful shutdown requested")

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`, waking early on shutdown.

        Returns:
            True if shutdown was requested before or during the wait
        """
        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)


def pause(
    seconds: float,
    shutdown: Optional[ShutdownHandler] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> None:
    """Politeness delay that ends early on shutdown.

    With a handler and no `sleep`, the wait wakes as soon as shutdown is
    requested. An injected `sleep` always does the waiting; the handler
    is then checked after it returns.

    Raises:
        KeyboardInterrupt: If shutdown is requested before or during the wait
    """
    if shutdown is not None and sleep is None:
        if shutdown.wait(seconds):
            shutdown.check_shutdown()
        return

    if seconds > 0:
        (sleep or time.sleep)(seconds)
    if shutdown is not None:
        shutdown.check_shutdown()

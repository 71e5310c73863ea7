# src/s3_publish/signals.py
"""
Graceful shutdown for a publish run.

SIGINT and SIGTERM are translated into an `asyncio.Event` that the
publisher checks between files. An interrupted run stops after the current
upload, saves its manifest and skips remote cleanup, since files it did not
reach would otherwise look deleted.
"""

import asyncio
import logging
import os
import signal
from typing import Any, Collection, List, Optional

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class GracefulShutdown:
    """
    An async context manager that turns POSIX signals into a shutdown event.

    Handlers are installed on the running event loop. The first signal sets
    the event and is remembered as `received`. A second one exits at once,
    leaving the manifest as of the last checkpoint.
    """

    def __init__(self, signals: Collection[signal.Signals] = DEFAULT_SIGNALS) -> None:
        """
        Initialize the shutdown manager.

        Args:
            signals (Collection[signal.Signals]): The signals to handle.
        """
        self._signals: Collection[signal.Signals] = signals
        self._event: asyncio.Event = asyncio.Event()
        self._installed: List[signal.Signals] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._received: Optional[signal.Signals] = None

    @property
    def received(self) -> Optional[signal.Signals]:
        """The first signal received, if any."""
        return self._received

    def _on_signal(self, sig: signal.Signals) -> None:
        if self._event.is_set():
            logger.critical(
                f"Received {sig.name} during shutdown. Exiting without "
                "saving the manifest."
            )
            os._exit(1)
        self._received = sig
        logger.warning(
            f"Received {sig.name}. Finishing the current file, then saving the "
            f"manifest without cleanup. Send {sig.name} again to abort."
        )
        self._event.set()

    async def __aenter__(self) -> asyncio.Event:
        """
        Registers signal handlers and returns the shutdown event.

        Returns:
            asyncio.Event: Set once a handled signal is received.
        """
        self._loop = asyncio.get_running_loop()
        for sig in self._signals:
            try:
                self._loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                # Windows loops and non-main threads cannot take handlers
                logger.warning(f"Could not set handler for {sig.name}: {e}")
            else:
                self._installed.append(sig)
        return self._event

    async def __aexit__(self, *args: Any) -> None:
        """Removes the handlers installed on entry."""
        if self._loop is not None:
            for sig in self._installed:
                self._loop.remove_signal_handler(sig)
        self._installed.clear()
        self._loop = None

"""
Interrupt handling for batch runs.

Ctrl+C (SIGINT) or SIGTERM during a run only flips a CancellationToken. The
executor watches the token, saves the last committed checkpoint itself and
raises SyncInterrupted; the CLI turns that into a notice and an exit code.
Handlers are installed for the duration of one run and removed afterwards.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

logger = logging.getLogger(__name__)

DEFAULT_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class CancellationToken:
    """
    One-shot cancellation flag that can also be awaited.

    Usage:
        token = CancellationToken()
        with arm_interrupts(token):
            await executor.run(..., token=token)
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.signal_name: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, signum: int | None = None) -> None:
        """Request cancellation; safe to call repeatedly."""
        if self._event.is_set():
            return
        if signum is not None:
            self.signal_name = signal.Signals(signum).name
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


@contextmanager
def arm_interrupts(
    token: CancellationToken,
    signals: Sequence[signal.Signals] = DEFAULT_SIGNALS,
) -> Iterator[bool]:
    """
    Route ``signals`` to ``token`` while the block runs.

    Must be entered from inside a running event loop. Yields True when the
    handlers were installed; False when the platform or thread does not
    allow it, in which case interrupts keep their default behaviour.
    """
    loop = asyncio.get_running_loop()
    installed: dict[signal.Signals, Any] = {}
    previous: dict[signal.Signals, Any] = {}

    def _on_signal(signum: int) -> None:
        logger.info(
            "Received %s, stopping after saving progress...",
            signal.Signals(signum).name,
        )
        token.cancel(signum)

    for sig in signals:
        original = signal.getsignal(sig)
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
            installed[sig] = original
        except NotImplementedError:
            # Event loops without add_signal_handler (Windows)
            try:
                signal.signal(
                    sig,
                    lambda signum, frame: loop.call_soon_threadsafe(_on_signal, signum),
                )
                previous[sig] = original
            except (OSError, ValueError):
                logger.debug("Could not set handler for %s", sig.name)
        except (RuntimeError, ValueError):
            # signal handlers can only be set in main thread
            logger.debug("Could not set handler for %s (not main thread)", sig.name)

    armed = bool(installed or previous)
    try:
        yield armed
    finally:
        for sig, original in installed.items():
            loop.remove_signal_handler(sig)
            # Hand the signal back to whoever owned it before the run
            if original is not None:
                signal.signal(sig, original)
        for sig, handler in previous.items():
            signal.signal(sig, handler)

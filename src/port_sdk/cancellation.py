"""Per-call cancellation handle.

A :class:`CancellationSignal` is created by the caller, passed with a request
and fired with :meth:`~CancellationSignal.cancel`. The executors watch it at
every suspension point (token acquisition, HTTP dispatch, retry wait) and
turn a fired signal into :class:`~port_sdk.exceptions.RequestCancelledError`.

The signal is thread-safe: it may be fired from another thread or from a
different event loop than the one awaiting it.

Example::

    signal = CancellationSignal()
    task = asyncio.create_task(client.blueprints.get("service", signal=signal))
    ...
    signal.cancel("user navigated away")
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, Optional


class CancellationSignal:
    """One-shot, thread-safe cancellation flag with async and sync waiting."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: Any = None
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Any:
        return self._reason

    def cancel(self, reason: Any = None) -> None:
        """Fire the signal. Calls after the first are ignored."""
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run *callback* when the signal fires (immediately if it already has).

        Returns:
            A function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._remove_callback(callback)
        callback()
        return lambda: None

    def _remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

    async def wait(self) -> Any:
        """Suspend until the signal fires; return the cancellation reason."""
        if self._event.is_set():
            return self._reason

        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()

        def _wake() -> None:
            loop.call_soon_threadsafe(_resolve)

        def _resolve() -> None:
            if not future.done():
                future.set_result(None)

        remove = self.add_callback(_wake)
        try:
            await future
        finally:
            remove()
        return self._reason

    def wait_sync(self, timeout: Optional[float] = None) -> bool:
        """Block up to *timeout* seconds; True if the signal fired."""
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        state = f"cancelled, reason={self._reason!r}" if self.cancelled else "pending"
        return f"CancellationSignal({state})"

"""Signal bus carrying engine output to its consumers.

The engine publishes a fixed set of signals:
  tick:emitted        tick=RenderTick
  selection:changed   zone_id, previous
  selection:rejected  zone_id, error, active
  favorites:changed   zone_id, is_favorite
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

TICK_EMITTED = "tick:emitted"
SELECTION_CHANGED = "selection:changed"
SELECTION_REJECTED = "selection:rejected"
FAVORITES_CHANGED = "favorites:changed"

SIGNALS = frozenset({TICK_EMITTED, SELECTION_CHANGED, SELECTION_REJECTED, FAVORITES_CHANGED})

Listener = Callable[..., Any]


class SignalBus:
    """Publishes engine signals to listeners called as ``listener(signal, **data)``.

    Listener lists are replaced, never mutated, so ``emit`` reads them
    without locking. With a loop, emits from other threads are handed to
    the loop thread; otherwise listeners run inline.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._listeners: dict[str, tuple[Listener, ...]] = {name: () for name in SIGNALS}
        self._lock = threading.Lock()

    def on(self, signal: str, listener: Listener) -> Callable[[], None]:
        """Subscribe *listener*; returns a callable that unsubscribes it."""
        if signal not in SIGNALS:
            raise ValueError(f"Unknown signal {signal!r}")
        with self._lock:
            self._listeners[signal] += (listener,)

        def unsubscribe() -> None:
            with self._lock:
                remaining = list(self._listeners[signal])
                if listener in remaining:
                    remaining.remove(listener)
                    self._listeners[signal] = tuple(remaining)

        return unsubscribe

    def listeners(self, signal: str) -> tuple[Listener, ...]:
        return self._listeners.get(signal, ())

    def emit(self, signal: str, **data) -> None:
        listeners = self._listeners[signal]
        if not listeners:
            return
        if self._loop is not None and not self._on_loop():
            self._loop.call_soon_threadsafe(self._deliver, signal, listeners, data)
        else:
            self._deliver(signal, listeners, data)

    def _on_loop(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    @staticmethod
    def _deliver(signal: str, listeners: tuple[Listener, ...], data: dict) -> None:
        for listener in listeners:
            try:
                listener(signal, **data)
            except Exception:
                logger.exception("Listener failed on %s", signal)

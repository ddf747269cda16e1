"""Tick scheduler running on the asyncio event loop.

Drives the tick pipeline at a foreground cadence (at least ten times a
second) and a coarser, possibly paused, background cadence.  Every tick
reads the clock fresh, so the displayed second is always derived from real
time and never from a counter; missed ticks are never replayed.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from .types import utc_now

logger = logging.getLogger(__name__)

Mode = str  # "foreground" | "background"

FOREGROUND: Mode = "foreground"
BACKGROUND: Mode = "background"
MODES = (FOREGROUND, BACKGROUND)

MAX_FOREGROUND_INTERVAL = 0.1
DEFAULT_BACKGROUND_INTERVAL = 1.0


class TickScheduler:
    """Periodic tick source with foreground/background modes.

    Usage::

        scheduler = TickScheduler(loop, engine.tick)
        scheduler.start()
        ...
        scheduler.set_mode("background")   # window hidden: coarse cadence
        scheduler.set_mode("foreground")   # focus restored: ticks immediately
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        callback: Callable[[datetime], object],
        clock: Callable[[], datetime] = utc_now,
        foreground_interval: float = MAX_FOREGROUND_INTERVAL,
        background_interval: Optional[float] = DEFAULT_BACKGROUND_INTERVAL,
    ):
        if not 0 < foreground_interval <= MAX_FOREGROUND_INTERVAL:
            raise ValueError(f"foreground_interval must be in (0, {MAX_FOREGROUND_INTERVAL}]")
        if background_interval is not None and background_interval <= 0:
            raise ValueError("background_interval must be positive or None to pause")
        self._loop = loop
        self._callback = callback
        self._clock = clock
        self.foreground_interval = foreground_interval
        self.background_interval = background_interval
        self._mode: Mode = FOREGROUND
        self._requested_mode: Mode = FOREGROUND
        self._running = False
        self._handle: Optional[asyncio.TimerHandle] = None
        self._deadline: Optional[float] = None
        self._mode_callbacks: list[Callable[[Mode], None]] = []
        self.tick_count = 0

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def running(self) -> bool:
        return self._running

    def interval_for(self, mode: Mode) -> Optional[float]:
        return self.foreground_interval if mode == FOREGROUND else self.background_interval

    def on_mode_change(self, callback: Callable[[Mode], None]) -> None:
        """Register a listener notified on mode transitions."""
        self._mode_callbacks.append(callback)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start ticking at the current mode's cadence. Thread-safe."""
        if self._running:
            return
        self._running = True
        self._loop.call_soon_threadsafe(self._begin)

    def _begin(self) -> None:
        logger.info("Tick scheduler started in %s mode", self._mode)
        self._deadline = None
        self._fire()

    def stop(self) -> None:
        """Cancel the pending tick."""
        self._running = False
        self._cancel()
        logger.info("Tick scheduler stopped after %d ticks", self.tick_count)

    # ------------------------------------------------------------------
    # Mode transitions
    # ------------------------------------------------------------------

    def set_mode(self, mode: Mode) -> None:
        """Switch mode. Thread-safe; re-entering the current mode is a no-op.

        Requests are compared with the last requested mode, since changes
        apply later on the loop thread.
        """
        if mode not in MODES:
            raise ValueError(f"Unknown mode {mode!r}")
        if mode == self._requested_mode:
            return
        self._requested_mode = mode
        self._loop.call_soon_threadsafe(self._apply_mode, mode)

    def _apply_mode(self, mode: Mode) -> None:
        """Apply mode change on the event loop thread."""
        if mode == self._mode:
            return
        old = self._mode
        self._mode = mode
        logger.info("Tick scheduler mode: %s -> %s", old, mode)

        if self._running:
            self._cancel()
            self._deadline = None
            if mode == FOREGROUND:
                # Resync from the current instant, no catch-up
                self._fire()
            else:
                self._schedule()

        for cb in self._mode_callbacks:
            try:
                cb(mode)
            except Exception:
                logger.exception("Mode change callback failed")

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def tick_once(self) -> datetime:
        """Read the clock and run the callback once. Returns the instant used."""
        now = self._clock()
        self.tick_count += 1
        try:
            self._callback(now)
        except Exception:
            logger.exception("Tick callback failed")
        return now

    def _fire(self) -> None:
        """Timer callback: tick and reschedule."""
        self._handle = None
        if not self._running:
            return
        self.tick_once()
        self._schedule()

    def _schedule(self) -> None:
        interval = self.interval_for(self._mode)
        if interval is None or not self._running:
            self._deadline = None
            return
        now = self._loop.time()
        deadline = (now if self._deadline is None else self._deadline) + interval
        if deadline < now:
            # Fell behind; skip forward rather than replaying
            deadline = now + interval
        self._deadline = deadline
        self._handle = self._loop.call_at(deadline, self._fire)

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

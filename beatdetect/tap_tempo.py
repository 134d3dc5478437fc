"""Manual tap-tempo estimation.

A session starts on the first tap and ends after ``idle_timeout`` seconds
without one. While it lasts, every tap reports the average rate since the
first tap::

    bpm = 60000 * taps_so_far / (now_ms - first_tap_ms)

There is no outlier rejection: a late tap drags the whole estimate.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable

from beatdetect.analysis.tempo import float_round

logger = logging.getLogger(__name__)

NO_DATA = "--"
DEFAULT_IDLE_TIMEOUT = 5.0

TapCallback = Callable[[float | str], None]


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class TapTempoTracker:
    """Turns a stream of tap timestamps (milliseconds) into a running BPM.

    The callback receives a float for each tap after the first, and
    ``NO_DATA`` when an idle session is reset. It runs on the timer thread
    for resets, so it must be thread-safe.
    """

    def __init__(
        self,
        callback: TapCallback,
        precision: int | None = None,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
        clock: Callable[[], float] | None = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        self._callback = callback
        self._precision = precision
        self._idle_timeout = idle_timeout
        self._clock = clock or _monotonic_ms
        self._timer_factory = timer_factory

        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._generation = 0

        self.tap_count = 0
        self.first_tap = 0.0
        self.previous_tap = 0.0
        self.current_tap = 0.0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def tap(self, timestamp: float | None = None) -> float | str | None:
        """Register a tap at *timestamp* ms (defaults to the clock).

        Returns the value delivered to the callback, or None for the first
        tap of a session.
        """
        if timestamp is None:
            timestamp = self._clock()

        with self._lock:
            self._cancel_timer()

            self.current_tap = timestamp
            result: float | str | None = None
            if self.tap_count == 0:
                self.first_tap = timestamp
            else:
                elapsed = self.current_tap - self.first_tap
                if elapsed == 0:
                    result = NO_DATA
                else:
                    bpm = 60000.0 * self.tap_count / elapsed
                    if self._precision is not None:
                        bpm = float_round(bpm, self._precision)
                    result = bpm

            self.previous_tap = self.current_tap
            self.tap_count += 1
            self._arm_timer()

        if result is not None:
            self._callback(result)
        return result

    # event-handler name for input sources
    on_tap = tap

    def reset(self) -> None:
        """End the session now and report ``NO_DATA``."""
        with self._lock:
            self._cancel_timer()
            self._clear()
        self._callback(NO_DATA)

    def close(self) -> None:
        """Cancel any pending idle reset without notifying."""
        with self._lock:
            self._cancel_timer()
            self._generation += 1

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _clear(self) -> None:
        self.tap_count = 0
        self.first_tap = 0.0
        self.previous_tap = 0.0
        self.current_tap = 0.0

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _arm_timer(self) -> None:
        self._generation += 1
        timer = self._timer_factory(self._idle_timeout, self._on_idle, args=(self._generation,))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _on_idle(self, generation: int) -> None:
        with self._lock:
            # a tap re-armed the timer after this one fired
            if generation != self._generation:
                return
            self._timer = None
            self._clear()
        logger.debug("Tap session idle; reset")
        self._callback(NO_DATA)


def tap_bpm(
    source: Iterable[float | None],
    callback: TapCallback,
    precision: int | None = None,
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
    **kwargs,
) -> TapTempoTracker:
    """Feed every event from *source* to a new tracker.

    Each event is a tap timestamp in ms, or None to use the clock. The
    tracker is returned with its idle timer still armed.
    """
    tracker = TapTempoTracker(callback, precision=precision, idle_timeout=idle_timeout, **kwargs)
    for event in source:
        tracker.tap(event)
    return tracker

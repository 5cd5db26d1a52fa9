"""Periodic capture scheduler with a non-reentrant cycle guard.

A timer thread fires ticks at a fixed rate. Each tick runs one capture
cycle synchronously. While a cycle is running, further ticks are dropped,
never queued, so slow OCR or a slow translation backend cannot make cycles
pile up.

The Idle/Running flag is owned by the scheduler, not by the timer: a
restarted scheduler may briefly have the old timer thread finishing its
cycle while the new timer already ticks, and the flag keeps those two from
overlapping.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from subtitle_overlay.errors import STAGE_CYCLE

logger = logging.getLogger(__name__)

DEFAULT_STOP_TIMEOUT_S = 3.0

Region = tuple[int, int, int, int]  # (left, top, width, height)


class CycleState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass
class _Timer:
    thread: threading.Thread
    stop_event: threading.Event
    interval_s: float


class CaptureScheduler:
    """Drives ``cycle(region, profile_id)`` on a fixed period.

    ``on_error(stage, error)`` receives any exception a cycle raises; the
    scheduler keeps ticking afterwards.
    """

    def __init__(
        self,
        cycle: Callable[[Region, str], Any],
        on_error: Callable[[str, Exception], None] | None = None,
        stop_timeout_s: float = DEFAULT_STOP_TIMEOUT_S,
    ) -> None:
        self._cycle = cycle
        self._on_error = on_error
        self._stop_timeout_s = stop_timeout_s

        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._state = CycleState.IDLE
        self._cycle_thread: threading.Thread | None = None

        self._timer: _Timer | None = None
        self._region: Region | None = None
        self._profile_id: str = ""

        self._cycles = 0
        self._dropped_ticks = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._timer is not None

    @property
    def state(self) -> CycleState:
        with self._lock:
            return self._state

    @property
    def region(self) -> Region | None:
        with self._lock:
            return self._region

    @property
    def profile_id(self) -> str:
        with self._lock:
            return self._profile_id

    @property
    def interval_ms(self) -> int | None:
        with self._lock:
            return None if self._timer is None else int(self._timer.interval_s * 1000)

    @property
    def cycles_completed(self) -> int:
        with self._lock:
            return self._cycles

    @property
    def dropped_ticks(self) -> int:
        with self._lock:
            return self._dropped_ticks

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def start(self, interval_ms: int, region: Region, profile_id: str) -> None:
        """Begin (or replace) periodic capture. The first tick is immediate."""
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")

        stop_event = threading.Event()
        interval_s = interval_ms / 1000.0
        thread = threading.Thread(
            target=self._run,
            args=(stop_event, interval_s),
            name="capture-scheduler",
            daemon=True,
        )

        with self._lock:
            previous = self._timer
            self._timer = _Timer(thread, stop_event, interval_s)
            self._region = region
            self._profile_id = profile_id

        if previous is not None:
            # The old timer may still be inside a cycle; the state flag keeps
            # the new timer's ticks from overlapping it.
            previous.stop_event.set()
            logger.info(
                "Capture restarted: region=(%d,%d,%d,%d), profile=%s, interval=%dms",
                *region, profile_id, interval_ms,
            )
        else:
            logger.info(
                "Capture started: region=(%d,%d,%d,%d), profile=%s, interval=%dms",
                *region, profile_id, interval_ms,
            )
        thread.start()

    def stop(self) -> bool:
        """Stop ticking and wait (bounded) for an in-flight cycle.

        Returns False when the cycle did not finish within the stop timeout;
        the cycle is abandoned, not killed.
        """
        with self._lock:
            timer = self._timer
            self._timer = None
            cycle_thread = self._cycle_thread

        if timer is not None:
            timer.stop_event.set()
        elif cycle_thread is None:
            return True

        current = threading.current_thread()
        if cycle_thread is current:
            # Called from inside a cycle: it finishes when we return.
            logger.info("Capture stopped from within a cycle")
            return True

        deadline = time.monotonic() + self._stop_timeout_s
        if not self._idle.wait(self._stop_timeout_s):
            logger.warning(
                "Capture stop timed out after %.1fs, abandoning in-flight cycle",
                self._stop_timeout_s,
            )
            return False

        if timer is None:
            # Only a manual tick was in flight.
            return True
        if timer.thread is not current and timer.thread.is_alive():
            timer.thread.join(max(0.0, deadline - time.monotonic()))
        logger.info("Capture stopped")
        return True

    def tick(self) -> bool:
        """Run one cycle now for the configured region.

        Returns False if the tick was dropped (cycle already running or no
        region configured).
        """
        return self._tick(None)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _run(self, stop_event: threading.Event, interval_s: float) -> None:
        next_tick = time.monotonic()
        while not stop_event.is_set():
            self._tick(stop_event)

            next_tick += interval_s
            now = time.monotonic()
            if now > next_tick:
                # Ticks that came due during a long cycle are dropped.
                missed = int((now - next_tick) // interval_s) + 1
                next_tick += missed * interval_s
                with self._lock:
                    self._dropped_ticks += missed
                logger.debug("Cycle overran the interval, dropped %d tick(s)", missed)

            if stop_event.wait(next_tick - now):
                break

    def _tick(self, stop_event: threading.Event | None) -> bool:
        with self._lock:
            if stop_event is not None and stop_event.is_set():
                return False
            if self._region is None:
                return False
            if self._state is CycleState.RUNNING:
                self._dropped_ticks += 1
                logger.debug("Tick dropped, previous cycle still running")
                return False
            self._state = CycleState.RUNNING
            self._cycle_thread = threading.current_thread()
            self._idle.clear()
            region = self._region
            profile_id = self._profile_id

        try:
            self._cycle(region, profile_id)
        except Exception as e:
            logger.error("Capture cycle error: %s", e, exc_info=True)
            self._report(e)
        finally:
            with self._lock:
                self._state = CycleState.IDLE
                self._cycle_thread = None
                self._cycles += 1
                self._idle.set()
        return True

    def _report(self, error: Exception) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(STAGE_CYCLE, error)
        except Exception as e:
            logger.error("Error callback failed: %s", e)

"""
Fixed-interval scheduler for emitter cycles.

Ticks fall on start + k * interval (k >= 1), so the first cycle runs one
interval after start. Cycles never overlap: when a cycle overruns one or more
tick boundaries those ticks are dropped rather than queued, and the next cycle
runs on the next future boundary. The stop event is checked before every
cycle; an in-flight cycle is allowed to finish.
"""

import logging
import math
import threading
import time
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class PeriodicRunner:
    """Call ``cycle`` once per interval until stopped."""

    def __init__(
        self,
        cycle: Callable[[], Any],
        interval: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not math.isfinite(interval) or interval <= 0:
            raise ValueError("interval must be a finite number greater than zero")
        self.cycle = cycle
        self.interval = interval
        self._clock = clock
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.cycles_run = 0
        self.ticks_dropped = 0
        self.error: Exception | None = None

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Request the loop to exit before its next cycle."""
        self._stop.set()

    def _wait_until(self, deadline: float) -> bool:
        """Sleep until deadline; True if stop was requested meanwhile."""
        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                return self._stop.is_set()
            if self._stop.wait(remaining):
                return True

    def run(self) -> None:
        """Run cycles in the calling thread until stop() is called."""
        next_tick = self._clock() + self.interval
        while not self._wait_until(next_tick):
            self.cycle()
            self.cycles_run += 1

            next_tick += self.interval
            now = self._clock()
            if now >= next_tick:
                missed = int((now - next_tick) // self.interval) + 1
                self.ticks_dropped += missed
                next_tick += missed * self.interval
                logger.debug("Cycle overran its interval; dropped %d tick(s)", missed)

    def _run_in_thread(self) -> None:
        try:
            self.run()
        except Exception as e:
            self.error = e
            logger.exception("Periodic runner crashed")
            self._stop.set()

    def start(self) -> threading.Thread:
        """Run the loop in a daemon thread; a crash is kept in ``error``."""
        if self._thread is not None:
            raise RuntimeError("runner already started")
        self._thread = threading.Thread(
            target=self._run_in_thread, name="sessiongen-runner", daemon=True
        )
        self._thread.start()
        return self._thread

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the background loop; True if it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

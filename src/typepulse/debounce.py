"""
Debounced scheduling for metrics recomputation

Every ``schedule()`` cancels the pending timer and arms a new one, so a burst
of keystrokes collapses into a single recompute once input settles.
"""

import logging
import threading
import time
from typing import Callable, Optional


def current_time_ms() -> float:
    """Wall-clock time in milliseconds"""
    return time.time() * 1000.0


class Debouncer:
    """Cancel-and-reschedule single-shot timer"""

    def __init__(self, interval_ms: float, action: Callable[[], None],
                 timer_factory: Callable = threading.Timer):
        self.interval_ms = interval_ms
        self.action = action
        self._timer_factory = timer_factory
        self._timer = None
        # Bumped on every schedule/cancel; a timer that lost the race to
        # cancel() sees a stale generation and does nothing.
        self._generation = 0
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def schedule(self) -> None:
        """Arm the timer, replacing any pending one"""
        with self._lock:
            self._cancel_locked()
            generation = self._generation
            timer = self._timer_factory(self.interval_ms / 1000.0, self._fire, args=(generation,))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        """Drop the pending action, if any"""
        with self._lock:
            self._cancel_locked()

    def flush(self) -> bool:
        """Run the pending action now; returns False if nothing was pending"""
        with self._lock:
            if self._timer is None:
                return False
            self._cancel_locked()
        self.action()
        return True

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._generation += 1

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._timer is None:
                return
            self._timer = None
        try:
            self.action()
        except Exception as e:
            self.logger.error(f"Error in debounced action: {e}")

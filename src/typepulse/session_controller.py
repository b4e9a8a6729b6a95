"""
Practice Session Controller

Owns one practice session at a time and the keystroke buffer behind it.
Keystrokes are recorded synchronously; metrics are recomputed on a debounced
timer and published as an immutable snapshot that UI code can poll or
subscribe to. Ending a session hands back a completed PerformanceSession for
the caller to persist.
"""

import logging
import threading
import uuid
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from .config import merge_config
from .debounce import Debouncer, current_time_ms
from .event_buffer import CircularEventBuffer
from .metrics_calculator import MetricsCalculator, round_half_up
from .models import (KeystrokeEvent, MetricsSnapshot, PerformanceSession,
                     Position, SessionState)

MetricsListener = Callable[[MetricsSnapshot], None]


class SessionController:
    """State machine: idle -> active <-> paused -> ended"""

    def __init__(self, config: Optional[Dict] = None,
                 clock: Optional[Callable[[], float]] = None,
                 timer_factory: Callable = threading.Timer):
        self.config = merge_config(config)
        self.clock = clock or current_time_ms

        self.buffer = CircularEventBuffer(self.config['buffer']['capacity'])
        self.calculator = MetricsCalculator(self.buffer, config=self.config, clock=self.clock)
        self._debouncer = Debouncer(self.config['metrics']['debounce_ms'],
                                    self._on_debounce, timer_factory=timer_factory)

        # Serializes keystroke ingestion against the timer thread
        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._session: Optional[PerformanceSession] = None
        self._keystrokes: List[KeystrokeEvent] = []
        self._last_keystroke_time = 0.0
        self._metrics = MetricsSnapshot()
        self._listeners: List[MetricsListener] = []

        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_session(self, drill_type: str, target_wpm: Optional[float] = None) -> PerformanceSession:
        """Begin a new session, discarding any session still in progress"""
        if target_wpm is None:
            target_wpm = self.config['session']['default_target_wpm']

        with self._lock:
            if self._session is not None:
                self.logger.warning(f"Discarding unfinished session {self._session.id}")
            self._debouncer.cancel()

            now = self.clock()
            self._session = PerformanceSession(
                id=self._new_session_id(now),
                start_time=now,
                drill_type=drill_type,
                target_wpm=target_wpm,
            )
            self._keystrokes = []
            self._last_keystroke_time = now
            self._metrics = MetricsSnapshot()
            self.buffer.clear()
            self._state = SessionState.ACTIVE
            session = self._session

        self.logger.info(f"Session {session.id} started ({drill_type}, target {target_wpm} WPM)")
        return session

    def pause_session(self) -> None:
        """Stop accepting keystrokes"""
        with self._lock:
            if self._state is not SessionState.ACTIVE:
                self.logger.debug(f"pause_session ignored in state {self._state.value}")
                return
            self._state = SessionState.PAUSED

    def resume_session(self) -> None:
        """Accept keystrokes again; the pause does not count as a keystroke delay"""
        with self._lock:
            if self._state is not SessionState.PAUSED or self._session is None:
                self.logger.debug(f"resume_session ignored in state {self._state.value}")
                return
            self._last_keystroke_time = self.clock()
            self._state = SessionState.ACTIVE

    def end_session(self) -> Optional[PerformanceSession]:
        """Finish the current session and hand it to the caller"""
        with self._lock:
            if self._session is None:
                return None
            self._debouncer.cancel()

            completed = replace(
                self._session,
                end_time=self.clock(),
                final_wpm=self._metrics.wpm,
                accuracy=self.calculator.calculate_accuracy(),
                keystrokes=tuple(self._keystrokes),
            )
            self._session = None
            self._keystrokes = []
            self._state = SessionState.ENDED

        self.logger.info(
            f"Session {completed.id} ended: {completed.final_wpm} WPM, "
            f"{completed.accuracy.raw:.1f}% accuracy, {len(completed.keystrokes)} keystrokes"
        )
        return completed

    def reset_session(self) -> None:
        """Return to idle, dropping the session and all buffered keystrokes"""
        with self._lock:
            self._debouncer.cancel()
            if self._session is not None:
                self.logger.info(f"Session {self._session.id} reset")
            self.buffer.clear()
            self._session = None
            self._keystrokes = []
            self._metrics = MetricsSnapshot()
            self._state = SessionState.IDLE
        self._notify(self._metrics)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def record_keystroke(self, key: str, expected: str,
                         position: Optional[Position] = None) -> Optional[KeystrokeEvent]:
        """Record one keystroke; ignored unless the session is active"""
        with self._lock:
            if self._state is not SessionState.ACTIVE or self._session is None:
                return None

            now = self.clock()
            event = KeystrokeEvent(
                timestamp=now,
                key=key,
                expected=expected,
                is_correct=key == expected,
                time_delta=now - self._last_keystroke_time,
                position=position or Position(),
            )
            self.buffer.push(event)
            self._keystrokes.append(event)
            self._last_keystroke_time = now
            self._debouncer.schedule()
        return event

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def refresh_metrics(self) -> MetricsSnapshot:
        """Recompute metrics immediately and publish them"""
        with self._lock:
            self._debouncer.cancel()
            snapshot = self.calculator.calculate_snapshot()
            self._metrics = snapshot
        self._notify(snapshot)
        return snapshot

    def flush(self) -> bool:
        """Run a pending debounced recompute now"""
        return self._debouncer.flush()

    def subscribe(self, listener: MetricsListener) -> Callable[[], None]:
        """Register for metrics updates; returns a function that unsubscribes"""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    @property
    def metrics(self) -> MetricsSnapshot:
        """Latest published snapshot"""
        return self._metrics

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.ACTIVE

    @property
    def current_session(self) -> Optional[PerformanceSession]:
        """Read-only view of the session in progress"""
        with self._lock:
            if self._session is None:
                return None
            return replace(self._session, keystrokes=tuple(self._keystrokes))

    @property
    def progress_score(self) -> int:
        """0-100 blend of WPM against target and accuracy, 50 points each"""
        session = self._session
        if session is None:
            return 0
        metrics = self._metrics
        wpm_score = 0.0
        if session.target_wpm > 0:
            wpm_score = min(metrics.wpm / session.target_wpm, 1.0) * 50
        accuracy_score = metrics.accuracy * 50 / 100
        return round_half_up(wpm_score + accuracy_score)

    @property
    def session_duration_ms(self) -> float:
        session = self._session
        if session is None or self._state is not SessionState.ACTIVE:
            return 0.0
        return self.clock() - session.start_time

    def _on_debounce(self) -> None:
        with self._lock:
            # end/reset may have won the race against the timer thread
            if self._session is None:
                return
            snapshot = self.calculator.calculate_snapshot()
            self._metrics = snapshot
        self._notify(snapshot)

    def _notify(self, snapshot: MetricsSnapshot) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception as e:
                self.logger.error(f"Error in metrics listener: {e}")

    @staticmethod
    def _new_session_id(now: float) -> str:
        return f"session_{int(now)}_{uuid.uuid4().hex[:9]}"

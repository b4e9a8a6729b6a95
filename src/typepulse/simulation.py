"""
Synthetic practice sessions

A simulated clock and a randomized typist for driving the engine without a
keyboard: used by the command-line demo and handy for exercising the
difficulty ladder over many sessions in a few milliseconds.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .difficulty_controller import DifficultyController
from .models import PerformanceSession, Position
from .session_controller import SessionController

SAMPLE_TEXT = (
    "const filtered = items.filter(item => item.status === 'open')\n"
    "const sorted = sortBy('createdAt', 'desc')(filtered)\n"
    "return paginate(sorted, { page: 1, limit: 20 })\n"
)

KEYBOARD_NEIGHBOURS = {
    'a': 'sq', 'b': 'vn', 'c': 'xv', 'd': 'sf', 'e': 'wr', 'f': 'dg', 'g': 'fh',
    'h': 'gj', 'i': 'uo', 'j': 'hk', 'k': 'jl', 'l': 'k;', 'm': 'n,', 'n': 'bm',
    'o': 'ip', 'p': 'o[', 'q': 'wa', 'r': 'et', 's': 'ad', 't': 'ry', 'u': 'yi',
    'v': 'cb', 'w': 'qe', 'x': 'zc', 'y': 'tu', 'z': 'xa',
}


class ManualTimer:
    """Stand-in for threading.Timer that fires only when told to"""

    def __init__(self, interval: float, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = tuple(args or ())
        self.kwargs = dict(kwargs or {})
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if self.started and not self.cancelled:
            self.function(*self.args, **self.kwargs)


class ManualTimerFactory:
    """Creates ManualTimers and remembers them"""

    def __init__(self):
        self.timers: List[ManualTimer] = []

    def __call__(self, interval: float, function, args=None, kwargs=None) -> ManualTimer:
        timer = ManualTimer(interval, function, args=args, kwargs=kwargs)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> Optional[ManualTimer]:
        return self.timers[-1] if self.timers else None

    def pending(self) -> List[ManualTimer]:
        return [t for t in self.timers if t.started and not t.cancelled]


class SimulatedClock:
    """Manually advanced millisecond clock"""

    def __init__(self, start_ms: float = 0.0):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, delta_ms: float) -> float:
        self.now_ms += delta_ms
        return self.now_ms


@dataclass
class TypistProfile:
    wpm: float = 40.0
    error_rate: float = 0.03  # chance of a wrong key per character
    correction_rate: float = 0.8  # chance a wrong key is backspaced and retyped
    rhythm_jitter: float = 0.15  # std dev of delays relative to the mean
    learning_rate: float = 1.5  # WPM gained per session


class SyntheticTypist:
    """Generate realistic keystroke streams for a practice text"""

    def __init__(self, profile: Optional[TypistProfile] = None, seed: Optional[int] = None):
        self.profile = profile or TypistProfile()
        self.rng = np.random.default_rng(seed)
        self.logger = logging.getLogger(__name__)

    def _delay(self) -> float:
        mean = 60000.0 / (self.profile.wpm * 5)
        return float(max(20.0, self.rng.normal(mean, mean * self.profile.rhythm_jitter)))

    def _wrong_key(self, expected: str) -> str:
        neighbours = KEYBOARD_NEIGHBOURS.get(expected.lower())
        if not neighbours:
            return 'x' if expected != 'x' else 'z'
        return str(self.rng.choice(list(neighbours)))

    def type_text(self, controller: SessionController, clock: SimulatedClock, text: str) -> int:
        """Feed the whole text through the controller; returns keystrokes sent"""
        sent = 0
        line, column = 0, 0
        for expected in text:
            position = Position(line=line, column=column)
            if self.rng.random() < self.profile.error_rate:
                clock.advance(self._delay())
                controller.record_keystroke(self._wrong_key(expected), expected, position)
                sent += 1
                if self.rng.random() < self.profile.correction_rate:
                    clock.advance(self._delay())
                    controller.record_keystroke('Backspace', expected, position)
                    sent += 1
                else:
                    column += 1
                    continue

            clock.advance(self._delay())
            controller.record_keystroke(expected, expected, position)
            sent += 1
            if expected == '\n':
                line, column = line + 1, 0
            else:
                column += 1

            # Let the debounced recompute land every so often, as a pause would
            if sent % 20 == 0:
                controller.flush()
        return sent

    def finish_session(self) -> None:
        """Practice pays off a little each session"""
        self.profile.wpm += self.profile.learning_rate


def run_practice(sessions: int, seed: Optional[int] = None,
                 config: Optional[dict] = None,
                 profile: Optional[TypistProfile] = None,
                 difficulty: Optional[DifficultyController] = None,
                 text: str = SAMPLE_TEXT) -> List[PerformanceSession]:
    """Run simulated sessions, adapting the difficulty after each one"""
    logger = logging.getLogger(__name__)
    clock = SimulatedClock()
    # Simulated time runs far ahead of wall time, so recomputes are flushed by hand
    controller = SessionController(config=config, clock=clock, timer_factory=ManualTimerFactory())
    if difficulty is None:
        difficulty = DifficultyController(config=config)
    typist = SyntheticTypist(profile, seed=seed)

    completed = []
    for index in range(sessions):
        level = difficulty.get_current_level()
        controller.start_session(level.id, level.target_wpm)
        typist.type_text(controller, clock, text)
        controller.refresh_metrics()
        session = controller.end_session()
        if session is None:
            continue

        difficulty.add_session(session)
        difficulty.update_current_level()
        typist.finish_session()
        completed.append(session)
        logger.debug(f"Simulated session {index + 1}/{sessions} at {level.id}")

        # Rest between sessions
        clock.advance(60000)

    return completed

import pytest

from typepulse.models import AccuracyMetrics, KeystrokeEvent, PerformanceSession
from typepulse.simulation import ManualTimerFactory, SimulatedClock


def make_event(timestamp, key='a', expected=None, time_delta=100.0):
    """Keystroke that is correct unless ``expected`` says otherwise"""
    if expected is None:
        expected = key
    return KeystrokeEvent(
        timestamp=timestamp,
        key=key,
        expected=expected,
        is_correct=key == expected,
        time_delta=time_delta,
    )


def make_session(drill_type, wpm, accuracy=97.0, errors=(), index=0):
    keystrokes = tuple(
        KeystrokeEvent(timestamp=float(i), key=actual, expected=expected,
                       is_correct=False, time_delta=100.0)
        for i, (expected, actual) in enumerate(errors)
    )
    return PerformanceSession(
        id=f"session_{index}",
        start_time=index * 1000.0,
        end_time=index * 1000.0 + 500.0,
        drill_type=drill_type,
        target_wpm=60,
        final_wpm=wpm,
        accuracy=AccuracyMetrics(raw=accuracy, adjusted=accuracy, error_rate=100 - accuracy),
        keystrokes=keystrokes,
    )


@pytest.fixture
def clock():
    return SimulatedClock()


@pytest.fixture
def timers():
    return ManualTimerFactory()

import logging
import threading

from typepulse.debounce import Debouncer


class Recorder:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


def test_schedule_arms_one_daemon_timer(timers):
    action = Recorder()
    debouncer = Debouncer(100, action, timer_factory=timers)

    debouncer.schedule()

    assert debouncer.pending
    assert len(timers.pending()) == 1
    assert timers.last.interval == 0.1
    assert timers.last.daemon is True
    assert action.calls == 0

    timers.last.fire()
    assert action.calls == 1
    assert not debouncer.pending


def test_reschedule_cancels_previous_timer(timers):
    action = Recorder()
    debouncer = Debouncer(100, action, timer_factory=timers)

    for _ in range(5):
        debouncer.schedule()

    assert len(timers.timers) == 5
    assert timers.pending() == [timers.last]
    assert all(t.cancelled for t in timers.timers[:-1])

    timers.last.fire()
    assert action.calls == 1


def test_cancel_drops_pending_action(timers):
    action = Recorder()
    debouncer = Debouncer(100, action, timer_factory=timers)

    debouncer.schedule()
    debouncer.cancel()

    assert not debouncer.pending
    assert timers.pending() == []


def test_timer_that_lost_race_to_cancel_does_nothing(timers):
    action = Recorder()
    debouncer = Debouncer(100, action, timer_factory=timers)

    debouncer.schedule()
    stale = timers.last
    debouncer.schedule()

    # the superseded timer thread wakes up anyway
    stale.function(*stale.args)
    assert action.calls == 0

    timers.last.fire()
    assert action.calls == 1


def test_flush_runs_pending_action_immediately(timers):
    action = Recorder()
    debouncer = Debouncer(100, action, timer_factory=timers)

    assert debouncer.flush() is False
    debouncer.schedule()
    assert debouncer.flush() is True
    assert action.calls == 1

    # the flushed timer must not fire a second time
    timers.last.function(*timers.last.args)
    assert action.calls == 1


def test_errors_in_action_are_logged(timers, caplog):
    def explode():
        raise RuntimeError("boom")

    debouncer = Debouncer(100, explode, timer_factory=timers)
    debouncer.schedule()

    with caplog.at_level(logging.ERROR):
        timers.last.fire()

    assert "boom" in caplog.text


def test_real_timer_fires_after_interval():
    fired = threading.Event()
    debouncer = Debouncer(10, fired.set)

    debouncer.schedule()

    assert fired.wait(timeout=2.0)
    assert not debouncer.pending

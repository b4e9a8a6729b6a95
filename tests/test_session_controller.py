import logging
from dataclasses import FrozenInstanceError

import pytest

from typepulse.models import MetricsSnapshot, Position, SessionState
from typepulse.session_controller import SessionController


@pytest.fixture
def controller(clock, timers):
    return SessionController(clock=clock, timer_factory=timers)


def type_keys(controller, clock, text, delay=500.0):
    for char in text:
        clock.advance(delay)
        controller.record_keystroke(char, char)


class TestLifecycle:

    def test_starts_idle(self, controller):
        assert controller.state is SessionState.IDLE
        assert controller.current_session is None
        assert controller.metrics == MetricsSnapshot()

    def test_start_session_becomes_active(self, controller, clock):
        clock.now_ms = 1234.0
        session = controller.start_session('beginner-1', 35)

        assert controller.state is SessionState.ACTIVE
        assert controller.is_active
        assert session.drill_type == 'beginner-1'
        assert session.target_wpm == 35
        assert session.start_time == 1234.0
        assert session.id.startswith('session_1234_')
        assert not session.is_complete

    def test_default_target_comes_from_config(self, clock, timers):
        controller = SessionController(config={'session': {'default_target_wpm': 42}},
                                       clock=clock, timer_factory=timers)
        assert controller.start_session('drill').target_wpm == 42

    def test_session_ids_are_unique(self, controller):
        first = controller.start_session('drill')
        second = controller.start_session('drill')
        assert first.id != second.id

    def test_starting_over_unfinished_session_is_logged(self, controller, caplog):
        first = controller.start_session('drill')
        with caplog.at_level(logging.WARNING):
            controller.start_session('drill')
        assert first.id in caplog.text

    def test_pause_and_resume(self, controller):
        controller.start_session('drill')
        controller.pause_session()
        assert controller.state is SessionState.PAUSED
        controller.resume_session()
        assert controller.state is SessionState.ACTIVE

    def test_pause_and_resume_are_noops_in_wrong_state(self, controller):
        controller.pause_session()
        assert controller.state is SessionState.IDLE
        controller.resume_session()
        assert controller.state is SessionState.IDLE

        controller.start_session('drill')
        controller.resume_session()
        assert controller.state is SessionState.ACTIVE

    def test_end_without_session_returns_none(self, controller):
        assert controller.end_session() is None

    def test_reset_returns_to_idle(self, controller, clock):
        controller.start_session('drill')
        type_keys(controller, clock, 'abc')
        controller.reset_session()

        assert controller.state is SessionState.IDLE
        assert controller.current_session is None
        assert len(controller.buffer) == 0
        assert controller.metrics == MetricsSnapshot()

    def test_reset_cancels_pending_recompute(self, controller, clock, timers):
        controller.start_session('drill')
        type_keys(controller, clock, 'abc')
        timer = timers.last
        controller.reset_session()

        assert timer.cancelled
        assert timers.pending() == []
        timer.function(*timer.args)
        assert controller.metrics == MetricsSnapshot()

    def test_new_session_starts_with_empty_buffer(self, controller, clock):
        controller.start_session('drill')
        type_keys(controller, clock, 'abcdef')
        controller.refresh_metrics()
        controller.end_session()

        controller.start_session('drill')
        assert len(controller.buffer) == 0
        assert controller.metrics == MetricsSnapshot()


class TestKeystrokes:

    def test_record_keystroke_builds_event(self, controller, clock):
        clock.now_ms = 1000.0
        controller.start_session('drill')
        clock.advance(150)
        event = controller.record_keystroke('x', 'a', Position(line=2, column=4))

        assert event.timestamp == 1150.0
        assert event.time_delta == 150.0
        assert event.is_correct is False
        assert event.position == Position(line=2, column=4)
        assert len(controller.buffer) == 1

    def test_time_delta_measured_from_previous_keystroke(self, controller, clock):
        controller.start_session('drill')
        clock.advance(100)
        controller.record_keystroke('a', 'a')
        clock.advance(250)
        event = controller.record_keystroke('b', 'b')
        assert event.time_delta == 250.0

    def test_keystrokes_ignored_unless_active(self, controller, clock):
        assert controller.record_keystroke('a', 'a') is None

        controller.start_session('drill')
        controller.pause_session()
        assert controller.record_keystroke('a', 'a') is None

        controller.resume_session()
        controller.end_session()
        assert controller.record_keystroke('a', 'a') is None
        assert len(controller.buffer) == 0

    def test_pause_does_not_count_as_keystroke_delay(self, controller, clock):
        controller.start_session('drill')
        clock.advance(100)
        controller.record_keystroke('a', 'a')
        controller.pause_session()
        clock.advance(30000)
        controller.resume_session()
        clock.advance(120)
        event = controller.record_keystroke('b', 'b')
        assert event.time_delta == 120.0

    def test_burst_leaves_only_latest_recompute_pending(self, controller, clock, timers):
        controller.start_session('drill')
        type_keys(controller, clock, 'hello', delay=20)

        assert len(timers.pending()) == 1
        assert controller.metrics == MetricsSnapshot()

        timers.last.fire()
        assert controller.metrics.accuracy == 100.0

    def test_flush_runs_pending_recompute(self, controller, clock, timers):
        controller.start_session('drill')
        type_keys(controller, clock, 'hello world')
        assert controller.flush() is True
        assert controller.metrics.wpm > 0
        assert timers.pending() == []
        assert controller.flush() is False


class TestEndSession:

    def test_final_wpm_is_last_computed_value(self, controller, clock):
        controller.start_session('drill', 60)
        type_keys(controller, clock, 'abcdefghijk')
        snapshot = controller.refresh_metrics()

        # more typing after the last recompute is not reflected in final_wpm
        type_keys(controller, clock, 'lmnop', delay=100)
        session = controller.end_session()

        assert session.final_wpm == snapshot.wpm == 26
        assert len(session.keystrokes) == 16
        assert session.end_time == clock.now_ms
        assert session.is_complete
        assert controller.state is SessionState.ENDED

    def test_final_wpm_zero_without_recompute(self, controller, clock):
        controller.start_session('drill')
        type_keys(controller, clock, 'abcdefghijk')
        assert controller.end_session().final_wpm == 0

    def test_accuracy_computed_fresh_at_end(self, controller, clock):
        controller.start_session('drill')
        clock.advance(100)
        controller.record_keystroke('a', 'a')
        clock.advance(100)
        controller.record_keystroke('x', 'b')

        session = controller.end_session()
        assert session.accuracy.raw == pytest.approx(50.0)
        assert session.accuracy.error_rate == pytest.approx(50.0)

    def test_end_cancels_pending_recompute(self, controller, clock, timers):
        controller.start_session('drill')
        type_keys(controller, clock, 'abc')
        timer = timers.last
        controller.end_session()

        assert timer.cancelled
        timer.function(*timer.args)
        assert controller.metrics == MetricsSnapshot()

    def test_completed_session_is_immutable(self, controller, clock):
        controller.start_session('drill')
        type_keys(controller, clock, 'abc')
        session = controller.end_session()

        assert isinstance(session.keystrokes, tuple)
        with pytest.raises(FrozenInstanceError):
            session.final_wpm = 999

    def test_duration(self, controller, clock):
        clock.now_ms = 1000.0
        controller.start_session('drill')
        clock.advance(2500)
        assert controller.session_duration_ms == 2500.0

        session = controller.end_session()
        assert session.duration_ms == 2500.0
        assert controller.session_duration_ms == 0.0


class TestProgress:

    def test_progress_zero_without_session(self, controller):
        assert controller.progress_score == 0

    def test_progress_at_start_reflects_full_accuracy(self, controller):
        controller.start_session('drill', 60)
        assert controller.progress_score == 50

    def test_progress_blends_speed_and_accuracy(self, controller, clock):
        controller.start_session('drill', 60)
        type_keys(controller, clock, 'abcdefghijk')
        controller.refresh_metrics()
        # 26 of 60 WPM plus full accuracy
        assert controller.progress_score == 72

    def test_progress_exact_half_from_speed_rounds_up(self, controller, clock):
        controller.start_session('drill', 52)
        type_keys(controller, clock, 'abcde', delay=1200)
        snapshot = controller.refresh_metrics()
        # 13 of 52 WPM is 12.5 points, plus 50 for accuracy
        assert snapshot.wpm == 13
        assert controller.progress_score == 63

    def test_progress_exact_half_from_accuracy_rounds_up(self, controller, clock):
        controller.start_session('drill', 60)
        for i in range(100):
            clock.advance(5)
            if i < 7:
                controller.record_keystroke('x', 'a')
            else:
                controller.record_keystroke('a', 'a')
        snapshot = controller.refresh_metrics()
        # too short a span to measure speed; 93% accuracy is 46.5 points
        assert snapshot.wpm == 0
        assert snapshot.accuracy == pytest.approx(93.0)
        assert controller.progress_score == 47

    def test_progress_speed_component_capped(self, controller, clock):
        controller.start_session('drill', 10)
        type_keys(controller, clock, 'abcdefghijk')
        controller.refresh_metrics()
        assert controller.progress_score == 100

    def test_zero_target_contributes_no_speed_points(self, controller, clock):
        controller.start_session('drill', 0)
        type_keys(controller, clock, 'abcdefghijk')
        controller.refresh_metrics()
        assert controller.progress_score == 50

    def test_current_session_includes_keystrokes_so_far(self, controller, clock):
        controller.start_session('drill')
        type_keys(controller, clock, 'ab')
        current = controller.current_session
        assert len(current.keystrokes) == 2
        assert current.end_time is None


class TestSubscribers:

    def test_listener_receives_snapshots(self, controller, clock):
        received = []
        controller.subscribe(received.append)
        controller.start_session('drill')
        type_keys(controller, clock, 'abc')

        snapshot = controller.refresh_metrics()
        assert received == [snapshot]
        assert controller.metrics is snapshot

    def test_metrics_accessor_is_read_only(self, controller):
        with pytest.raises(AttributeError):
            controller.metrics = MetricsSnapshot(wpm=99)

    def test_unsubscribe_stops_updates(self, controller, clock):
        received = []
        unsubscribe = controller.subscribe(received.append)
        unsubscribe()
        unsubscribe()

        controller.start_session('drill')
        controller.refresh_metrics()
        assert received == []

    def test_reset_notifies_listeners(self, controller):
        received = []
        controller.subscribe(received.append)
        controller.start_session('drill')
        controller.reset_session()
        assert received == [MetricsSnapshot()]

    def test_failing_listener_does_not_break_others(self, controller, caplog):
        received = []

        def broken(snapshot):
            raise ValueError("listener exploded")

        controller.subscribe(broken)
        controller.subscribe(received.append)
        controller.start_session('drill')

        with caplog.at_level(logging.ERROR):
            controller.refresh_metrics()

        assert len(received) == 1
        assert "listener exploded" in caplog.text

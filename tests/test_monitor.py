"""
Tests for the client-side sensor loop
"""

import pytest

from conftest import ScriptedProvider, StaticCamera, make_face
from proctoring_service.proctor.monitor import ProctoringMonitor
from proctoring_service.proctor.sinks import LocalProctoringSink


@pytest.fixture
def monitor(provider, camera, sink, scheduler, clock):
    return ProctoringMonitor(provider, camera, sink, scheduler=scheduler, clock=clock)


class TestMonitorLifecycle:
    """Tests for start/stop"""

    def test_start_schedules_detection(self, monitor, provider, camera, scheduler):
        assert monitor.start("session-1") is True

        assert provider.loaded is True
        assert camera.opened is True
        assert monitor.is_running is True
        # detection interval + snapshot sampler
        assert scheduler.pending == 2

    def test_camera_failure_returns_false(self, provider, sink, scheduler, clock):
        camera = StaticCamera(available=False)
        monitor = ProctoringMonitor(provider, camera, sink, scheduler=scheduler, clock=clock)

        assert monitor.start("session-1") is False
        assert monitor.is_running is False
        assert scheduler.pending == 0

    def test_model_failure_returns_false(self, camera, sink, scheduler, clock):
        provider = ScriptedProvider(load_error=FileNotFoundError("face_landmarker.task"))
        monitor = ProctoringMonitor(provider, camera, sink, scheduler=scheduler, clock=clock)

        assert monitor.start("session-1") is False
        assert camera.opened is False

    def test_stop_flushes_and_releases(self, monitor, camera, sink, scheduler):
        monitor.start("session-1")
        monitor.stop()

        assert sink.flushes == ["session-1"]
        assert camera.released == 1
        assert scheduler.pending == 0
        assert monitor.is_running is False

    def test_stop_is_idempotent(self, monitor, camera, sink):
        monitor.start("session-1")
        monitor.stop()
        monitor.stop()

        assert sink.flushes == ["session-1"]
        assert camera.released == 1

    def test_no_ticks_after_stop(self, monitor, provider, scheduler):
        monitor.start("session-1")
        scheduler.advance(1)
        calls = provider.calls

        monitor.stop()
        scheduler.advance(5)

        assert provider.calls == calls


class TestDetectionLoop:
    """Tests for tick()"""

    def test_three_empty_ticks_give_one_no_face_event(self, monitor, sink, scheduler):
        """Ticks at 2.2, 2.4 and 2.6 s all exceed the 2 s threshold; only one event is emitted"""
        monitor.start("session-1")

        scheduler.advance(2.0)
        assert sink.events == []

        scheduler.advance(0.6)

        assert len(sink.events) == 1
        session_id, event, _ = sink.events[0]
        assert session_id == "session-1"
        assert event.type == "no_face"
        assert event.severity == "HIGH"
        assert monitor.stats.total_violations == 1

    def test_looking_away_with_blink_is_not_reported(self, monitor, provider, sink, scheduler):
        provider.faces = [make_face(offset_x=0.25, blink=0.9)]
        monitor.start("session-1")

        scheduler.advance(1.0)

        assert sink.events == []
        assert monitor.metrics.attention_score == 100.0

    def test_looking_away_is_reported_and_tagged(self, monitor, provider, sink, scheduler):
        provider.faces = [make_face(offset_x=0.25)]
        monitor.start("session-1")
        monitor.set_question_index(2)

        scheduler.advance(0.2)

        _, event, question_index = sink.events[0]
        assert event.type == "looking_away"
        assert event.confidence == 0.75
        assert question_index == 2
        assert monitor.stats.looking_away_count == 1

    def test_sustained_violation_is_debounced(self, monitor, provider, sink, scheduler):
        provider.faces = [make_face(), make_face()]
        monitor.start("session-1")

        scheduler.advance(9.0)

        # emitted at 0.2, 3.2, 6.2
        assert [e.type for _, e, _ in sink.events] == ["multiple_faces"] * 3
        assert monitor.stats.multiple_faces_count == 3

    def test_tick_errors_do_not_stop_the_loop(self, monitor, provider, scheduler):
        provider.faces = [make_face()]
        provider.detect_error = RuntimeError("inference failed")
        monitor.start("session-1")

        scheduler.advance(1.0)
        assert monitor.error_count == 5
        assert monitor.metrics.face_count == 0

        provider.detect_error = None
        scheduler.advance(0.2)
        assert monitor.metrics.face_count == 1

    def test_sink_failures_are_swallowed(self, monitor, provider, sink, scheduler):
        sink.fail_events = True
        provider.faces = [make_face(), make_face()]
        monitor.start("session-1")

        scheduler.advance(0.4)

        assert monitor.jobs.failed_count == 1
        assert monitor.stats.total_violations == 1
        assert monitor.is_running is True

    def test_callbacks(self, provider, camera, sink, scheduler, clock):
        seen_events, seen_metrics = [], []
        provider.faces = [make_face(yaw=40)]
        monitor = ProctoringMonitor(
            provider, camera, sink, scheduler=scheduler, clock=clock,
            on_event=seen_events.append, on_metrics=seen_metrics.append
        )
        monitor.start("session-1")

        scheduler.advance(0.4)

        assert len(seen_metrics) == 2
        assert [e.type for e in seen_events] == ["looking_away"]

    def test_tab_switch(self, monitor, sink):
        assert monitor.report_tab_switch() is None

        monitor.start("session-1")
        first = monitor.report_tab_switch()
        second = monitor.report_tab_switch()

        assert first.type == "tab_switch"
        assert second is None
        assert monitor.stats.tab_switch_count == 1
        assert [e.type for _, e, _ in sink.events] == ["tab_switch"]


class TestStats:
    """Tests for running statistics"""

    def test_no_face_duration_is_time_based(self, monitor, scheduler):
        monitor.start("session-1")
        scheduler.advance(5.0)

        assert monitor.stats.no_face_detected_duration == pytest.approx(5.0)
        # no_face at 2.2 s; the cool-down ends at 5.2 s
        assert monitor.stats.total_violations == 1

    def test_average_attention_over_recent_ticks(self, monitor, provider, scheduler):
        provider.faces = [make_face()]
        monitor.start("session-1")
        scheduler.advance(1.0)

        provider.faces = [make_face(offset_x=0.3)]
        scheduler.advance(1.0)

        assert monitor.stats.average_attention_score == pytest.approx(85.0)


class TestSnapshots:
    """Tests for the attention snapshot sampler"""

    def test_snapshots_every_ten_seconds(self, monitor, provider, sink, scheduler):
        provider.faces = [make_face()]
        monitor.start("session-1")

        scheduler.advance(30)

        assert [seconds for _, seconds, _ in sink.snapshots] == [10, 20, 30]
        assert all(m.face_detected for _, _, m in sink.snapshots)

    def test_sampler_stops_with_monitor(self, monitor, sink, scheduler):
        monitor.start("session-1")
        scheduler.advance(10)
        monitor.stop()
        scheduler.advance(30)

        assert len(sink.snapshots) == 1


class TestLocalSink:
    """End to end: monitor -> LocalProctoringSink -> ProctoringService"""

    def test_monitor_session_persists(self, service, repository, interview, provider, camera, scheduler, clock):
        sink = LocalProctoringSink(service)
        session = sink.initialize(interview.id)
        monitor = ProctoringMonitor(provider, camera, sink, scheduler=scheduler, clock=clock)

        provider.faces = [make_face(), make_face()]
        monitor.start(session["id"])
        scheduler.advance(10)
        monitor.stop()

        final = sink.finalize(session["id"])

        assert final["totalViolations"] == monitor.stats.total_violations == 4
        assert final["multipleFacesCount"] == 4
        assert repository.count_events(session["id"]) == 4
        assert len(repository.list_snapshots(session["id"])) == 1
        assert final["averageAttentionScore"] == 100.0

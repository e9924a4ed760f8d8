from __future__ import annotations

import json

from drone_tracking.common import BoundingBox, SafetyVerdict, SessionState, SteeringCommand
from drone_tracking.config import LinkConfig
from drone_tracking.live_tuning import RuntimeParamWatcher
from drone_tracking.selection import SelectionInput
from drone_tracking.session import SessionController

import cv2

from tests.fakes import ListCamera, RecordingLink, ScriptedTracker, blank_frame, centered_box


def _session(tracker=None, link=None, **kwargs) -> SessionController:
    return SessionController(
        tracker or ScriptedTracker(),
        link or RecordingLink(),
        frame_size=(960, 720),
        **kwargs,
    )


def test_starts_awaiting_selection() -> None:
    session = _session()
    assert session.state is SessionState.AWAITING_SELECTION
    result = session.process_frame(blank_frame())
    assert result.state is SessionState.AWAITING_SELECTION
    assert result.command is None


def test_rejected_region_returns_to_awaiting_selection() -> None:
    session = _session()
    assert not session.propose_region(BoundingBox(0, 0, 10, 10))
    assert session.state is SessionState.AWAITING_SELECTION
    assert session.region is None


def test_accepted_region_arms_then_tracks_on_next_frame() -> None:
    tracker = ScriptedTracker()
    session = _session(tracker)
    box = centered_box(100, 100)

    assert session.propose_region(box)
    assert session.state is SessionState.ARMED
    assert session.original_size == (100, 100)

    result = session.process_frame(blank_frame())
    assert tracker.init_calls == [box]
    assert result.state is SessionState.TRACKING
    assert result.region == box
    assert result.command is None


def test_tracker_init_failure_returns_to_awaiting_selection() -> None:
    session = _session(ScriptedTracker(init_ok=False))
    session.propose_region(centered_box(100, 100))
    result = session.process_frame(blank_frame())
    assert result.state is SessionState.AWAITING_SELECTION
    assert session.region is None


def test_offset_target_dispatches_planar_command() -> None:
    link = RecordingLink()
    moved = BoundingBox(650, 310, 100, 100)  # centre (700, 360)
    session = _session(ScriptedTracker([moved]), link)
    session.propose_region(centered_box(100, 100))

    result = session.process_frame(blank_frame())
    assert result.command == SteeringCommand("right", 60)
    assert result.dispatched
    assert link.sent == ["right 60"]
    assert session.commands_sent == 1


def test_commands_wait_for_acknowledgment_between_frames() -> None:
    link = RecordingLink()
    moved = BoundingBox(650, 310, 100, 100)
    session = _session(ScriptedTracker([moved, moved, moved]), link)
    session.propose_region(centered_box(100, 100))

    assert session.process_frame(blank_frame()).dispatched
    second = session.process_frame(blank_frame())
    assert second.command is not None
    assert not second.dispatched
    assert link.sent == ["right 60"]

    link.ack()
    assert session.process_frame(blank_frame()).dispatched
    assert link.sent == ["right 60", "right 60"]


def test_longitudinal_fallback_when_centred() -> None:
    link = RecordingLink()
    session = _session(ScriptedTracker([centered_box(150, 110)]), link)
    session.propose_region(centered_box(100, 100))

    result = session.process_frame(blank_frame())
    assert result.command == SteeringCommand("back", 20)
    assert link.sent == ["back 20"]


def test_planar_has_priority_over_longitudinal() -> None:
    big_and_left = BoundingBox(80, 285, 150, 150)  # centre (155, 360), 1.5x size
    session = _session(ScriptedTracker([big_and_left]))
    session.propose_region(centered_box(100, 100))
    result = session.process_frame(blank_frame())
    assert result.command == SteeringCommand("left", 60)


def test_tracker_failure_is_transient(caplog) -> None:
    link = RecordingLink()
    moved = BoundingBox(650, 310, 100, 100)
    session = _session(ScriptedTracker([None, moved]), link)
    session.propose_region(centered_box(100, 100))

    with caplog.at_level("WARNING"):
        failed = session.process_frame(blank_frame())
    assert "Tracker update failed" in caplog.text
    assert failed.state is SessionState.TRACKING
    assert not failed.tracker_ok
    assert failed.command is None
    assert session.tracker_failures == 1

    recovered = session.process_frame(blank_frame())
    assert recovered.tracker_ok
    assert recovered.dispatched


def test_erratic_region_size_ends_session_without_commands() -> None:
    link = RecordingLink()
    steady = [centered_box(100, 100)] * 15
    jumps = [centered_box(int(100 * 1.5 ** k), 100) for k in range(1, 6)]
    session = _session(ScriptedTracker(steady + jumps), link)
    session.propose_region(centered_box(100, 100))

    results = []
    for _ in range(20):
        link.ack()
        results.append(session.process_frame(blank_frame()))

    assert results[-1].state is SessionState.UNSAFE
    assert results[-1].verdict is SafetyVerdict.UNSAFE
    assert not results[-1].dispatched
    assert all(r.state is SessionState.TRACKING for r in results[:-1])

    sent_before = list(link.sent)
    link.ack()
    after = session.process_frame(blank_frame())
    assert after.state is SessionState.UNSAFE
    assert link.sent == sent_before


def test_new_selection_rearms_and_clears_history() -> None:
    tracker = ScriptedTracker()
    session = _session(tracker)
    session.propose_region(centered_box(100, 100))
    for _ in range(5):
        session.process_frame(blank_frame())
    assert len(session.safety.history) == 5

    second = centered_box(200, 120)
    assert session.propose_region(second)
    assert session.state is SessionState.ARMED
    assert len(session.safety.history) == 0
    session.process_frame(blank_frame())
    assert tracker.init_calls[-1] == second
    assert session.original_size == (200, 120)


def test_rejected_selection_while_tracking_drops_target() -> None:
    session = _session()
    session.propose_region(centered_box(100, 100))
    session.process_frame(blank_frame())
    assert not session.propose_region(BoundingBox(0, 0, 900, 700))
    assert session.state is SessionState.AWAITING_SELECTION
    assert session.region is None


def test_abort_stops_commands_and_close_releases_everything() -> None:
    link = RecordingLink()
    tracker = ScriptedTracker([BoundingBox(650, 310, 100, 100)])
    session = _session(tracker, link, stop_command="land", stop_timeout_s=0.0)
    session.propose_region(centered_box(100, 100))

    session.abort("user exit")
    assert session.state is SessionState.ABORTED
    assert not session.process_frame(blank_frame()).dispatched
    assert not session.propose_region(centered_box(100, 100))

    session.close()
    assert session.state is SessionState.CLOSED
    assert link.sent == ["land"]
    assert link.closed
    assert tracker.released >= 1
    assert not session.pacer.outstanding

    session.close()
    assert link.sent == ["land"]


def test_close_without_stop_command_sends_nothing() -> None:
    link = RecordingLink()
    session = _session(link=link)
    session.close()
    assert session.state is SessionState.CLOSED
    assert session.abort_reason == "session closed"
    assert link.sent == []
    assert link.closed


def test_link_poll_errors_do_not_stop_the_loop(caplog) -> None:
    link = RecordingLink()
    link.fail_receive = True
    session = _session(ScriptedTracker([BoundingBox(650, 310, 100, 100)]), link)
    session.propose_region(centered_box(100, 100))
    with caplog.at_level("ERROR"):
        result = session.process_frame(blank_frame())
    assert "Link poll error" in caplog.text
    assert result.dispatched


def test_run_ends_when_source_is_exhausted() -> None:
    link = RecordingLink()
    camera = ListCamera(3)
    selection = SelectionInput(960, 720)
    selection.on_mouse(cv2.EVENT_LBUTTONDOWN, 430, 310)
    selection.on_mouse(cv2.EVENT_MOUSEMOVE, 530, 410)
    selection.on_mouse(cv2.EVENT_LBUTTONUP, 530, 410)

    tracker = ScriptedTracker()
    session = _session(tracker, link)
    final_state = session.run(camera, selection=selection, show=False)

    assert final_state is SessionState.ABORTED
    assert session.abort_reason == "frame source exhausted"
    assert session.state is SessionState.CLOSED
    assert tracker.init_calls == [BoundingBox(430, 310, 100, 100)]
    assert session.frames_processed == 3
    assert camera.released
    assert link.closed


def test_run_stops_on_unsafe_verdict() -> None:
    steady = [centered_box(100, 100)] * 19
    session = _session(ScriptedTracker(steady + [centered_box(400, 100)]))
    session.propose_region(centered_box(100, 100))
    camera = ListCamera(50)

    final_state = session.run(camera, show=False)
    assert final_state is SessionState.UNSAFE
    assert session.frames_processed == 20
    assert camera.remaining == 30


def test_unsafe_verdict_stops_a_serial_vehicle() -> None:
    link = RecordingLink()
    link_cfg = LinkConfig(kind="serial", serial_port="/dev/ttyUSB0")
    steady = [centered_box(100, 100)] * 19
    session = _session(
        ScriptedTracker(steady + [centered_box(400, 100)]),
        link,
        stop_command=link_cfg.stop_command,
        stop_timeout_s=0.0,
    )
    session.propose_region(centered_box(100, 100))

    final_state = session.run(ListCamera(50), show=False)
    assert final_state is SessionState.UNSAFE
    assert link.sent[-1] == "stop"
    assert link.closed


def test_params_file_present_at_start_is_applied(tmp_path) -> None:
    path = tmp_path / "runtime_params.json"
    path.write_text(json.dumps({"cm_per_pixel": 0.1}), encoding="utf-8")
    watcher = RuntimeParamWatcher(path)
    session = _session()

    session.run(ListCamera(3), watcher=watcher, show=False)
    assert session.steering_cfg.cm_per_pixel == 0.1

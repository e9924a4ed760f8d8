# session.py
"""Glue logic that wires frames → tracker → safety → steering → link."""
from __future__ import annotations

import logging
import time
from typing import Optional, Protocol, Tuple

import cv2
import numpy as np

from drone_tracking.common import (
    BoundingBox,
    FrameResult,
    SafetyVerdict,
    SessionState,
)
from drone_tracking.config import RegionConfig, SafetyConfig, SteeringConfig
from drone_tracking.link import CommandLink, LinkError
from drone_tracking.overlay import draw_frame_result
from drone_tracking.pacer import CommandPacer
from drone_tracking.region_gate import RegionAcceptanceGate
from drone_tracking.safety import SafetyMonitor
from drone_tracking.steering import LongitudinalSteeringEngine, PlanarSteeringEngine

logger = logging.getLogger(__name__)

ESC_KEY = 27


class Tracker(Protocol):
    def init(self, frame: np.ndarray, region: BoundingBox) -> bool: ...

    def update(self, frame: np.ndarray) -> Tuple[bool, Optional[BoundingBox]]: ...

    def release(self) -> None: ...


class SessionController:
    """
    Owns the tracking lifecycle and runs one synchronous cycle per frame.

    All session state (region, size history, pacer flag) is mutated only
    from :meth:`process_frame`, :meth:`propose_region`, :meth:`abort` and
    :meth:`close`, which the frame loop calls from a single thread.
    """

    def __init__(
        self,
        tracker: Tracker,
        link: CommandLink,
        *,
        frame_size: Tuple[int, int] = (960, 720),
        steering_cfg: Optional[SteeringConfig] = None,
        region_cfg: Optional[RegionConfig] = None,
        safety_cfg: Optional[SafetyConfig] = None,
        stop_command: Optional[str] = None,
        stop_timeout_s: float = 5.0,
    ):
        self.tracker = tracker
        self.link = link
        self.frame_size = frame_size
        self.steering_cfg = steering_cfg or SteeringConfig()
        self.region_cfg = region_cfg or RegionConfig()
        self.stop_command = stop_command
        self.stop_timeout_s = stop_timeout_s

        # Sub-systems
        self.gate = RegionAcceptanceGate(self.region_cfg, *frame_size)
        self.safety = SafetyMonitor(safety_cfg)
        self.pacer = CommandPacer(link)
        self.planar = PlanarSteeringEngine()
        self.longitudinal = LongitudinalSteeringEngine()

        # Session
        self.state = SessionState.AWAITING_SELECTION
        self.region: Optional[BoundingBox] = None
        self.original_size: Optional[Tuple[int, int]] = None
        self.abort_reason: Optional[str] = None

        # Runtime metrics
        self.frames_processed = 0
        self.tracker_failures = 0
        self.commands_sent = 0

    # ---------------------------------------------------------------------
    #                          State transitions
    # ---------------------------------------------------------------------
    def _transition(self, new_state: SessionState) -> None:
        if new_state is not self.state:
            logger.info("[Session] %s -> %s", self.state.value, new_state.value)
            self.state = new_state

    def propose_region(self, candidate: BoundingBox) -> bool:
        """Arm the session on ``candidate`` if the gate accepts it."""
        if self.state.is_terminal:
            logger.debug("[Session] Ignoring selection in state %s", self.state.value)
            return False

        if not self.gate.accept(candidate):
            self.region = None
            self.original_size = None
            self.tracker.release()
            self._transition(SessionState.AWAITING_SELECTION)
            return False

        self.region = candidate
        self.original_size = candidate.size
        self.safety.reset()
        self._transition(SessionState.ARMED)
        return True

    def abort(self, reason: str = "user exit") -> None:
        if self.state.is_terminal:
            return
        logger.info("[Session] Aborting: %s", reason)
        self.abort_reason = reason
        self._transition(SessionState.ABORTED)

    # ---------------------------------------------------------------------
    #                          Per-frame cycle
    # ---------------------------------------------------------------------
    def _poll_link(self) -> None:
        try:
            response = self.link.try_receive()
        except LinkError as exc:
            logger.error("[Session] Link poll error: %s", exc)
            return
        if response is not None:
            logger.info("[Session] Vehicle: %s", response)
            self.pacer.on_acknowledgment(response)

    def _start_tracking(self, frame: np.ndarray) -> None:
        if self.tracker.init(frame, self.region):
            self._transition(SessionState.TRACKING)
        else:
            logger.warning("[Session] Tracker init failed on %s, select again", self.region)
            self.region = None
            self.original_size = None
            self._transition(SessionState.AWAITING_SELECTION)

    def process_frame(self, frame: np.ndarray) -> FrameResult:
        self._poll_link()

        if self.state is SessionState.ARMED:
            self._start_tracking(frame)
        if self.state is not SessionState.TRACKING:
            return FrameResult(self.state, region=self.region)

        self.frames_processed += 1
        ok, region = self.tracker.update(frame)
        if not ok or region is None or region.is_empty:
            # Transient; the tracker may recover on the next frame
            self.tracker_failures += 1
            logger.warning("[Session] Tracker update failed (frame %d)", self.frames_processed)
            return FrameResult(self.state, region=self.region, tracker_ok=False)
        self.region = region

        verdict = self.safety.observe(region.area)
        if verdict is SafetyVerdict.UNSAFE:
            self._transition(SessionState.UNSAFE)
            return FrameResult(self.state, region=region, verdict=verdict)

        cfg = self.steering_cfg
        command, velocity = self.planar.steer(
            cfg.reference_point, region.center, cfg.cm_per_pixel, cfg.min_step, cfg.max_step
        )
        if command is None:
            command = self.longitudinal.steer(
                self.original_size, region.size, cfg.min_step, cfg.roi_scale
            )

        dispatched = False
        if command is not None:
            dispatched = self.pacer.try_dispatch(command)
            if dispatched:
                self.commands_sent += 1

        return FrameResult(
            self.state,
            region=region,
            velocity=velocity,
            command=command,
            dispatched=dispatched,
            verdict=verdict,
        )

    # ---------------------------------------------------------------------
    #                          Setup / teardown
    # ---------------------------------------------------------------------
    def _safe_stop(self) -> None:
        """Send the stop command and wait for its reply (shutdown only)."""
        try:
            self.link.send(self.stop_command)
        except LinkError as exc:
            logger.error("[Session] Could not send %r: %s", self.stop_command, exc)
            return
        logger.info("[Session] Sent %r", self.stop_command)

        # A reply for a command still in flight may come first
        replies_needed = 2 if self.pacer.outstanding else 1
        deadline = time.monotonic() + self.stop_timeout_s
        while replies_needed and time.monotonic() < deadline:
            try:
                reply = self.link.try_receive()
            except LinkError as exc:
                logger.error("[Session] Link error waiting for stop: %s", exc)
                return
            if reply is None:
                time.sleep(0.01)
                continue
            logger.info("[Session] Vehicle: %s", reply)
            replies_needed -= 1
        if replies_needed:
            logger.warning("[Session] No reply to %r", self.stop_command)

    def close(self) -> None:
        """Stop the vehicle and release the tracker and link. Idempotent."""
        if self.state is SessionState.CLOSED:
            return
        if not self.state.is_terminal:
            self.abort("session closed")

        if self.stop_command:
            self._safe_stop()
        self.pacer.reset()
        self.tracker.release()
        try:
            self.link.close()
        except LinkError as exc:
            logger.error("[Session] Error closing link: %s", exc)
        self._transition(SessionState.CLOSED)

    def summary(self) -> str:
        reason = self.abort_reason or self.state.value
        return (
            f"frames={self.frames_processed}, commands={self.commands_sent}, "
            f"tracker_failures={self.tracker_failures}, ended={reason}"
        )

    # ---------------------------------------------------------------------
    #                             Public run()
    # ---------------------------------------------------------------------
    def run(
        self,
        camera,
        *,
        selection=None,
        archive=None,
        watcher=None,
        window: str = "Drone Tracking",
        show: bool = True,
        output_name: Optional[str] = None,
    ) -> SessionState:
        """
        Interactive loop until the source runs out, the user quits or the
        safety check trips. Always leaves the session CLOSED.
        """
        if show:
            cv2.namedWindow(window, cv2.WINDOW_AUTOSIZE)
            if selection is not None:
                selection.attach(window)
            logger.info("[Session] Draw a box around the target to start, ESC or 'q' to quit.")

        # The watcher loads the file on construction; later reloads only see changes
        if watcher is not None:
            watcher.apply_to(self.steering_cfg)

        terminal_state = self.state
        try:
            while not self.state.is_terminal:
                if watcher is not None and watcher.maybe_reload():
                    watcher.apply_to(self.steering_cfg)

                _, frame = camera.read()
                if frame is None:
                    self.abort("frame source exhausted")
                    break

                if selection is not None:
                    candidate = selection.poll()
                    if candidate is not None:
                        self.propose_region(candidate)

                result = self.process_frame(frame)

                out = frame.copy()
                draw_frame_result(
                    out, result, self.steering_cfg.reference_point,
                    self.pacer.last_command, self.pacer.outstanding,
                )
                if selection is not None:
                    selection.highlight(out)
                if archive is not None:
                    archive.write(frame, out)

                if show:
                    cv2.imshow(window, out)
                    key = cv2.waitKey(1) & 0xFF
                    if key in (ESC_KEY, ord("q")):
                        self.abort("user exit")

        except KeyboardInterrupt:
            self.abort("keyboard interrupt")
        finally:
            terminal_state = self.state
            self.close()
            if show:
                cv2.destroyAllWindows()
            camera.release()
            if archive is not None:
                archive.finalize(output_name)
            logger.info("[Session] Exited. %s", self.summary())
        return terminal_state

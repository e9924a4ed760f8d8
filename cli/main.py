# main.py
"""
Entry-point for the drone target-following system.

Draw a box around the object in the video window to start tracking. The
vehicle is steered one discrete command at a time; the session ends on ESC,
when the stream ends, or when the tracked region changes size too abruptly
to be trusted.

Live-tuning
-----------
Pass ``--params runtime_params.json`` and edit that file while the program
runs; ``cm_per_pixel``, ``min_step``, ``max_step`` and ``roi_scale`` take
effect on the next frame.
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from drone_tracking.archive import ArchiveWriter
from drone_tracking.camera import Camera
from drone_tracking.config import (
    TELLO_STREAM_URL,
    ArchiveConfig,
    CameraConfig,
    LinkConfig,
    RegionConfig,
    SafetyConfig,
    SteeringConfig,
    TrackerConfig,
)
from drone_tracking.link import LinkError, build_link
from drone_tracking.live_tuning import RuntimeParamWatcher
from drone_tracking.selection import SelectionInput
from drone_tracking.session import SessionController
from drone_tracking.tracker import OpenCVTracker


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Follow a selected object with a camera drone.")
    p.add_argument("--source", default=None,
                   help=f"camera index or stream URL (default: {TELLO_STREAM_URL} for tello, 0 otherwise)")
    p.add_argument("--link", choices=("tello", "serial", "dry-run"), default="dry-run")
    p.add_argument("--serial-port", default=None)
    p.add_argument("--baudrate", type=int, default=115_200)
    p.add_argument("--fly", action="store_true",
                   help="take off after the handshake")
    p.add_argument("--tracker", choices=("csrt", "kcf", "mil"), default="csrt")
    p.add_argument("--no-archive", action="store_true")
    p.add_argument("--output-name", default=None,
                   help="rename the recordings to <name>.avi / <name>_dirty.avi on exit")
    p.add_argument("--params", default=None, help="live-tuning JSON file")
    p.add_argument("--log-level", default="INFO")
    return p.parse_args(argv)


def _handshake(link, link_label: str) -> None:
    """Enter SDK mode and start the stream. Blocking is fine before the loop."""
    if link_label == "tello":
        link.request("command")
        battery = link.request("battery?")
        print(f"Battery Level: {battery}")
        link.request("streamon")


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)-7s %(message)s",
    )

    # -------------------- Config blobs --------------------
    source = args.source if args.source is not None else (
        TELLO_STREAM_URL if args.link == "tello" else "0"
    )
    try:
        cam_cfg = CameraConfig(source=source)
        link_cfg = LinkConfig(
            kind=args.link,
            serial_port=args.serial_port,
            baudrate=args.baudrate,
            fly=args.fly,
        )
    except ValueError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    steer_cfg = SteeringConfig()
    region_cfg = RegionConfig()
    safety_cfg = SafetyConfig()
    trk_cfg = TrackerConfig(kind=args.tracker)
    arch_cfg = ArchiveConfig(enabled=not args.no_archive)

    # ------------------------ Banner ----------------------
    print("Initializing Drone Tracking System…")
    print(f"Camera: source={cam_cfg.source}, frame={cam_cfg.width}x{cam_cfg.height}")
    print(
        f"Steering: ref={steer_cfg.reference_point}, cm/px={steer_cfg.cm_per_pixel}, "
        f"step=[{steer_cfg.min_step},{steer_cfg.max_step}] cm, roi_scale={steer_cfg.roi_scale}"
    )
    print(
        f"Region: [{region_cfg.min_fraction}, {region_cfg.max_fraction}] of frame, "
        f"Safety: window={safety_cfg.history_capacity}, band={safety_cfg.band}"
    )
    print(f"Tracker: {trk_cfg.kind}, Link: {link_cfg.kind}{' (FLIGHT)' if link_cfg.fly else ''}")

    # ------------------------ Link ------------------------
    link_label, link = build_link(link_cfg)
    try:
        link.open()
        _handshake(link, link_label)
    except LinkError as exc:
        print(f"Link error: {exc}", file=sys.stderr)
        link.close()
        return 1

    # ------------------------ Camera ----------------------
    camera = Camera(cam_cfg)
    if not camera.open():
        print("cannot open camera", file=sys.stderr)
        link.close()
        return 1

    if link_cfg.fly:
        try:
            link.request("takeoff")
        except LinkError as exc:
            print(f"Takeoff failed: {exc}", file=sys.stderr)
            camera.release()
            link.close()
            return 1

    archive = None
    if arch_cfg.enabled:
        archive = ArchiveWriter(arch_cfg, camera.frame_size, camera.fps)
        archive.open()

    watcher = RuntimeParamWatcher(args.params) if args.params else None

    # ------------------------ Run -------------------------
    session = SessionController(
        OpenCVTracker(trk_cfg.kind),
        link,
        frame_size=camera.frame_size,
        steering_cfg=steer_cfg,
        region_cfg=region_cfg,
        safety_cfg=safety_cfg,
        stop_command=link_cfg.stop_command,
        stop_timeout_s=link_cfg.timeout_s,
    )
    final_state = session.run(
        camera,
        selection=SelectionInput(*camera.frame_size),
        archive=archive,
        watcher=watcher,
        output_name=args.output_name,
    )
    print(f"Session ended in state {final_state.value}: {session.summary()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

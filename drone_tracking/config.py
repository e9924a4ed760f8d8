# config.py
"""Typed configuration blobs for the whole system."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

TELLO_STREAM_URL = "udp://0.0.0.0:11111"

# Sent on close so the vehicle halts whatever ended the session
STOP_COMMANDS = {
    "tello": "land",
    "serial": "stop",
    "dry-run": "stop",
}


# ---------------------- Steering ---------------------
@dataclass
class SteeringConfig:
    # Frame is 960x720, assume the vehicle sits at the centre
    reference_point: Tuple[int, int] = (480, 360)
    cm_per_pixel: float = 0.3
    min_step: int = 20        # cm, smallest move the Tello SDK accepts
    max_step: int = 60        # cm
    roi_scale: float = 0.2    # acceptable size band is 1 +/- roi_scale

    def __post_init__(self) -> None:
        if self.cm_per_pixel <= 0:
            raise ValueError(f"cm_per_pixel must be positive, got {self.cm_per_pixel}")
        if not 0 < self.min_step < self.max_step:
            raise ValueError(
                f"need 0 < min_step < max_step, got {self.min_step}/{self.max_step}"
            )
        if not 0 < self.roi_scale < 1:
            raise ValueError(f"roi_scale must be in (0, 1), got {self.roi_scale}")


# ---------------------- Region -----------------------
@dataclass
class RegionConfig:
    min_fraction: float = 0.05
    max_fraction: float = 0.7

    def __post_init__(self) -> None:
        if not 0 < self.min_fraction < self.max_fraction <= 1:
            raise ValueError(
                "need 0 < min_fraction < max_fraction <= 1, "
                f"got {self.min_fraction}/{self.max_fraction}"
            )


# ---------------------- Safety -----------------------
@dataclass
class SafetyConfig:
    history_capacity: int = 20
    band: Tuple[float, float] = (0.9, 1.1)

    def __post_init__(self) -> None:
        if self.history_capacity < 2:
            raise ValueError(f"history_capacity must be >= 2, got {self.history_capacity}")
        low, high = self.band
        if not 0 < low < high:
            raise ValueError(f"safety band must satisfy 0 < low < high, got {self.band}")


# ---------------------- Camera -----------------------
@dataclass
class CameraConfig:
    source: Union[int, str] = TELLO_STREAM_URL
    width: int = 960
    height: int = 720
    use_ffmpeg: bool = True   # needed for the Tello UDP stream

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"frame size must be positive, got {self.width}x{self.height}")


# ---------------------- Tracker ----------------------
@dataclass
class TrackerConfig:
    kind: str = "csrt"        # csrt | kcf | mil


# ----------------------- Link ------------------------
@dataclass
class LinkConfig:
    kind: str = "dry-run"     # tello | serial | dry-run
    tello_host: str = "192.168.10.1"
    tello_port: int = 8889
    local_port: int = 8889
    serial_port: Optional[str] = None
    baudrate: int = 115_200
    timeout_s: float = 5.0
    fly: bool = False         # take off at start-up
    stop_command: Optional[str] = None   # None picks the per-kind default

    def __post_init__(self) -> None:
        if self.kind not in ("tello", "serial", "dry-run"):
            raise ValueError(f"unknown link kind {self.kind!r}")
        if self.kind == "serial" and not self.serial_port:
            raise ValueError("serial link needs a serial_port")
        if self.stop_command is None:
            self.stop_command = STOP_COMMANDS[self.kind]


# ---------------------- Archive ----------------------
@dataclass
class ArchiveConfig:
    enabled: bool = True
    output_dir: str = "video-output"
    clean_name: str = "out.avi"
    dirty_name: str = "out_dirty.avi"
    fourcc: str = "MJPG"
    fps_fallback: float = 30.0

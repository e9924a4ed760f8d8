# common.py
"""Objects that are shared across multiple modules."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned region in frame pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_xywh(cls, rect: Sequence[float]) -> "BoundingBox":
        """Build from an OpenCV ``(x, y, w, h)`` tuple, truncating floats."""
        x, y, w, h = rect
        return cls(int(x), int(y), int(w), int(h))

    @classmethod
    def from_corners(cls, p1: Tuple[int, int], p2: Tuple[int, int]) -> "BoundingBox":
        x0, x1 = sorted((p1[0], p2[0]))
        y0, y1 = sorted((p1[1], p2[1]))
        return cls(x0, y0, x1 - x0, y1 - y0)

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def center(self) -> Tuple[int, int]:
        # Midpoint of top-left and bottom-right, integer pixels
        return (2 * self.x + self.width) // 2, (2 * self.y + self.height) // 2

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def clip(self, frame_width: int, frame_height: int) -> "BoundingBox":
        """Intersection with the frame rectangle (empty if disjoint)."""
        x0 = max(self.x, 0)
        y0 = max(self.y, 0)
        x1 = min(self.x + self.width, frame_width)
        y1 = min(self.y + self.height, frame_height)
        if x1 <= x0 or y1 <= y0:
            return BoundingBox(0, 0, 0, 0)
        return BoundingBox(x0, y0, x1 - x0, y1 - y0)

    def as_xywh(self) -> Tuple[int, int, int, int]:
        return self.x, self.y, self.width, self.height


@dataclass(frozen=True)
class VelocityVector:
    """Signed pixel offset of the target from the reference point."""
    x: int
    y: int


@dataclass(frozen=True)
class SteeringCommand:
    axis: str
    magnitude_cm: int

    @property
    def text(self) -> str:
        return f"{self.axis} {self.magnitude_cm}"

    def __str__(self) -> str:
        return self.text


class SafetyVerdict(str, Enum):
    SAFE = "safe"
    UNSAFE = "unsafe"


class SessionState(str, Enum):
    AWAITING_SELECTION = "awaiting_selection"
    ARMED = "armed"
    TRACKING = "tracking"
    UNSAFE = "unsafe"
    ABORTED = "aborted"
    CLOSED = "closed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.UNSAFE, SessionState.ABORTED, SessionState.CLOSED)


@dataclass(frozen=True)
class FrameResult:
    """
    Outcome of one controller cycle.
    Consumed by the overlay and by tests; never retained across frames.
    """
    state: SessionState
    region: Optional[BoundingBox] = None
    velocity: Optional[VelocityVector] = None
    command: Optional[SteeringCommand] = None
    dispatched: bool = False
    verdict: SafetyVerdict = SafetyVerdict.SAFE
    tracker_ok: bool = True

# drone_tracking/__init__.py
"""Drone target-following package – re-export high-level API."""
from .session import SessionController                      # noqa: F401
from .common import (                                       # noqa: F401
    BoundingBox, FrameResult, SafetyVerdict, SessionState,
    SteeringCommand, VelocityVector,
)
from .config import (                                       # noqa: F401
    ArchiveConfig, CameraConfig, LinkConfig, RegionConfig,
    SafetyConfig, SteeringConfig, TrackerConfig,
)

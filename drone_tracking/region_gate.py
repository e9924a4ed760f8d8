# region_gate.py
"""Size check applied to a freshly selected region before tracking starts."""
from __future__ import annotations

import logging

from drone_tracking.common import BoundingBox
from drone_tracking.config import RegionConfig

logger = logging.getLogger(__name__)


def accept(
    candidate: BoundingBox,
    frame_width: int,
    frame_height: int,
    min_fraction: float = 0.05,
    max_fraction: float = 0.7,
) -> bool:
    """
    True when ``candidate`` is neither too large nor too small to track.

    Both sides are compared against the matching frame dimension.
    """
    if (
        candidate.width > max_fraction * frame_width
        or candidate.height > max_fraction * frame_height
    ):
        logger.warning(
            "[Region] %dx%d too large for %dx%d frame, define area again",
            candidate.width, candidate.height, frame_width, frame_height,
        )
        return False
    if (
        candidate.width < min_fraction * frame_width
        or candidate.height < min_fraction * frame_height
    ):
        logger.warning(
            "[Region] %dx%d too small for %dx%d frame, define area again",
            candidate.width, candidate.height, frame_width, frame_height,
        )
        return False
    return True


class RegionAcceptanceGate:
    def __init__(self, cfg: RegionConfig, frame_width: int, frame_height: int):
        self.cfg = cfg
        self.frame_width = frame_width
        self.frame_height = frame_height

    def accept(self, candidate: BoundingBox) -> bool:
        return accept(
            candidate,
            self.frame_width,
            self.frame_height,
            self.cfg.min_fraction,
            self.cfg.max_fraction,
        )

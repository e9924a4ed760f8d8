# steering.py
"""Turn a tracked region into a single discrete movement command."""
from __future__ import annotations

import math
from typing import Optional, Tuple

from drone_tracking.common import SteeringCommand, VelocityVector


class PlanarSteeringEngine:
    """
    Left/right/up/down from the offset of the region centre to the
    reference point.

    Only the dominant axis moves; the other is left for a later frame.
    Offsets whose physical size does not exceed ``min_step`` produce no
    command so the vehicle does not jitter around the target.
    """

    @staticmethod
    def steer(
        reference: Tuple[int, int],
        target_center: Tuple[int, int],
        cm_per_pixel: float,
        min_step: int,
        max_step: int,
    ) -> Tuple[Optional[SteeringCommand], VelocityVector]:
        velocity = VelocityVector(
            target_center[0] - reference[0], target_center[1] - reference[1]
        )

        # Ties go to the vertical axis
        if abs(velocity.x) > abs(velocity.y):
            component = velocity.x
            axis = "right" if component > 0 else "left"
        else:
            component = velocity.y
            axis = "up" if component < 0 else "down"

        # Half-up on the magnitude: 22.5 cm -> 23 in either direction
        step = math.floor(abs(component * cm_per_pixel) + 0.5)
        if step <= min_step:
            return None, velocity
        return SteeringCommand(axis, min(step, max_step)), velocity


class LongitudinalSteeringEngine:
    """Forward/back to keep the region near the size it had at acquisition."""

    @staticmethod
    def steer(
        original_size: Tuple[int, int],
        current_size: Tuple[int, int],
        min_step: int,
        roi_scale: float,
    ) -> Optional[SteeringCommand]:
        ratio = (
            current_size[0] / original_size[0] + current_size[1] / original_size[1]
        ) / 2.0
        if ratio > 1 + roi_scale:
            return SteeringCommand("back", min_step)
        if ratio < 1 - roi_scale:
            return SteeringCommand("forward", min_step)
        return None

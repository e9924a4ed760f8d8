# overlay.py
"""Drawing helpers for the annotated stream."""
from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np

from drone_tracking.common import BoundingBox, FrameResult, SteeringCommand, VelocityVector

BLUE = (255, 0, 0)
GREEN = (0, 255, 0)
RED = (0, 0, 255)
YELLOW = (0, 255, 255)


def draw_region(img: np.ndarray, region: BoundingBox) -> None:
    x, y, w, h = region.as_xywh()
    cv2.rectangle(img, (x, y), (x + w, y + h), BLUE, 2, 1)
    cv2.circle(img, region.center, 3, BLUE)


def draw_movement(img: np.ndarray, reference: Tuple[int, int], velocity: VelocityVector) -> None:
    """Green arrow for the axis the vehicle moves along, red for the other."""
    x_pos = (reference[0] + velocity.x, reference[1])
    y_pos = (reference[0], reference[1] + velocity.y)
    if abs(velocity.x) > abs(velocity.y):
        x_colour, y_colour = GREEN, RED
    else:
        x_colour, y_colour = RED, GREEN
    cv2.arrowedLine(img, reference, x_pos, x_colour)
    cv2.arrowedLine(img, reference, y_pos, y_colour)


def draw_status(
    img: np.ndarray,
    result: FrameResult,
    last_command: Optional[SteeringCommand],
    outstanding: bool,
) -> None:
    cv2.putText(img, result.state.value.upper(), (10, 30),
                cv2.FONT_HERSHEY_SIMPLEX, 0.7, GREEN, 2)
    cmd = last_command.text if last_command else "-"
    busy = " (busy)" if outstanding else ""
    cv2.putText(img, f"Cmd:{cmd}{busy}", (10, 60),
                cv2.FONT_HERSHEY_SIMPLEX, 0.6, YELLOW, 1)
    if not result.tracker_ok:
        cv2.putText(img, "Track lost", (img.shape[1] - 160, 30),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.7, RED, 2)


def draw_frame_result(
    img: np.ndarray,
    result: FrameResult,
    reference: Tuple[int, int],
    last_command: Optional[SteeringCommand] = None,
    outstanding: bool = False,
) -> None:
    if result.region is not None and not result.region.is_empty:
        draw_region(img, result.region)
    if result.velocity is not None and result.command is not None:
        draw_movement(img, reference, result.velocity)
    draw_status(img, result, last_command, outstanding)

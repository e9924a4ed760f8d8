# selection.py
"""Mouse drag selection delivered to the frame loop through a queue."""
from __future__ import annotations

import logging
import queue
from typing import Optional, Tuple

import cv2
import numpy as np

from drone_tracking.common import BoundingBox

logger = logging.getLogger(__name__)


class SelectionInput:
    """
    The OpenCV mouse callback runs inside ``cv2.waitKey``; it only records
    the drag and posts the finished rectangle. The session reads it back
    with :meth:`poll` on the loop thread.
    """

    def __init__(self, frame_width: int, frame_height: int):
        self.frame_width = frame_width
        self.frame_height = frame_height
        self.selecting = False
        self.origin: Tuple[int, int] = (0, 0)
        self.current = BoundingBox(0, 0, 0, 0)
        self._pending: "queue.Queue[BoundingBox]" = queue.Queue()

    def attach(self, window: str) -> None:
        cv2.setMouseCallback(window, self.on_mouse)

    def on_mouse(self, event: int, x: int, y: int, flags: int = 0, param=None) -> None:
        if self.selecting:
            self.current = BoundingBox.from_corners(self.origin, (x, y)).clip(
                self.frame_width, self.frame_height
            )

        if event == cv2.EVENT_LBUTTONDOWN:
            self.origin = (x, y)
            self.current = BoundingBox(x, y, 0, 0)
            self.selecting = True
        elif event == cv2.EVENT_LBUTTONUP:
            self.selecting = False
            if not self.current.is_empty:
                logger.debug("[Selection] Finalised %s", self.current)
                self._pending.put(self.current)

    def poll(self) -> Optional[BoundingBox]:
        """Latest finished selection, or None. Older pending ones are dropped."""
        latest = None
        while True:
            try:
                latest = self._pending.get_nowait()
            except queue.Empty:
                return latest

    def highlight(self, image: np.ndarray) -> None:
        """Invert the pixels under the rectangle being dragged."""
        if not self.selecting or self.current.is_empty:
            return
        x, y, w, h = self.current.as_xywh()
        image[y:y + h, x:x + w] = cv2.bitwise_not(image[y:y + h, x:x + w])

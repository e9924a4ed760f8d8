# camera.py
"""A thin wrapper around cv2.VideoCapture that yields fixed-size frames."""
from __future__ import annotations

import logging
import time
from typing import Optional, Tuple

import cv2
import numpy as np

from drone_tracking.config import CameraConfig

logger = logging.getLogger(__name__)


class Camera:
    def __init__(self, config: CameraConfig):
        self.config = config
        self.cap: Optional[cv2.VideoCapture] = None

        # Exposed runtime values
        self.native_width = 0
        self.native_height = 0
        self.fps = 0.0

    # --------------- Internal helpers ---------------
    @staticmethod
    def _parse_source(source):
        if isinstance(source, str) and source.isdigit():
            return int(source)
        return source

    # --------------- Public API ---------------------
    def open(self) -> bool:
        source = self._parse_source(self.config.source)
        if isinstance(source, str) and self.config.use_ffmpeg:
            self.cap = cv2.VideoCapture(source, cv2.CAP_FFMPEG)
        else:
            self.cap = cv2.VideoCapture(source)

        if not self.cap or not self.cap.isOpened():
            logger.error("[Camera] Could not open %r", self.config.source)
            self.cap = None
            return False

        self.native_width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.native_height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.fps = self.cap.get(cv2.CAP_PROP_FPS)
        logger.info(
            "[Camera] %dx%d@%.1f FPS, resized to %dx%d",
            self.native_width, self.native_height, self.fps,
            self.config.width, self.config.height,
        )
        return True

    def read(self) -> Tuple[float, Optional[np.ndarray]]:
        """``(timestamp, frame)``; frame is None once the source is exhausted."""
        if not self.is_opened():
            return time.time(), None
        ts = time.time()
        ret, frame = self.cap.read()
        if not ret or frame is None or frame.size == 0:
            return ts, None
        if frame.shape[1] != self.config.width or frame.shape[0] != self.config.height:
            frame = cv2.resize(frame, (self.config.width, self.config.height))
        return ts, frame

    def is_opened(self) -> bool:
        return bool(self.cap and self.cap.isOpened())

    def release(self) -> None:
        if self.cap:
            logger.info("[Camera] Releasing capture device")
            self.cap.release()
            self.cap = None

    @property
    def frame_size(self) -> Tuple[int, int]:
        return self.config.width, self.config.height

# tracker.py
"""OpenCV single-object tracker adapter (CSRT / KCF / MIL)."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Tuple

import cv2
import numpy as np

from drone_tracking.common import BoundingBox

logger = logging.getLogger(__name__)

_FACTORY_NAMES: Dict[str, str] = {
    "csrt": "TrackerCSRT_create",
    "kcf": "TrackerKCF_create",
    "mil": "TrackerMIL_create",
}


def _resolve_factory(kind: str) -> Callable[[], Any]:
    try:
        name = _FACTORY_NAMES[kind.lower()]
    except KeyError:
        raise ValueError(
            f"unknown tracker kind {kind!r}, expected one of {sorted(_FACTORY_NAMES)}"
        ) from None
    # Newer opencv-contrib builds keep some trackers only under cv2.legacy
    for ns in (cv2, getattr(cv2, "legacy", None)):
        if ns is not None and hasattr(ns, name):
            return getattr(ns, name)
    raise RuntimeError(f"OpenCV build has no {name}; install opencv-contrib-python")


class OpenCVTracker:
    """
    Wraps an OpenCV tracker behind ``init(frame, box)`` / ``update(frame)``.

    A fresh OpenCV object is created on every ``init`` so a new selection
    never inherits the model learned on the previous target.
    """

    def __init__(self, kind: str = "csrt"):
        self.kind = kind.lower()
        self._factory = _resolve_factory(self.kind)
        self._impl: Optional[Any] = None

    def init(self, frame: np.ndarray, region: BoundingBox) -> bool:
        self._impl = self._factory()
        ok = self._impl.init(frame, region.as_xywh())
        # OpenCV >= 4.5.1 returns None from init
        ok = True if ok is None else bool(ok)
        if not ok:
            self._impl = None
        logger.debug("[Tracker] %s init on %s: %s", self.kind, region, ok)
        return ok

    def update(self, frame: np.ndarray) -> Tuple[bool, Optional[BoundingBox]]:
        if self._impl is None:
            return False, None
        ok, rect = self._impl.update(frame)
        if not ok:
            return False, None
        return True, BoundingBox.from_xywh(rect)

    def release(self) -> None:
        self._impl = None

    def __repr__(self) -> str:
        state = "initialised" if self._impl is not None else "idle"
        return f"<OpenCVTracker {self.kind} ({state})>"

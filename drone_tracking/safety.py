# safety.py
"""Rate-of-change guard on the tracked region size."""
from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Iterator, List, Optional, Tuple

from drone_tracking.common import SafetyVerdict
from drone_tracking.config import SafetyConfig

logger = logging.getLogger(__name__)


class BoundingBoxHistory:
    """Recent region areas, most recent first, bounded FIFO."""

    def __init__(self, capacity: int = 20):
        self.capacity = capacity
        self._areas: Deque[int] = deque(maxlen=capacity)

    def push(self, area: int) -> None:
        # appendleft on a full deque drops the oldest entry from the right
        self._areas.appendleft(area)

    def clear(self) -> None:
        self._areas.clear()

    @property
    def is_full(self) -> bool:
        return len(self._areas) == self.capacity

    def ratios(self) -> List[float]:
        """``history[i] / history[i + 1]`` for every consecutive pair."""
        areas = list(self._areas)
        return [areas[i] / areas[i + 1] for i in range(len(areas) - 1)]

    def __len__(self) -> int:
        return len(self._areas)

    def __iter__(self) -> Iterator[int]:
        return iter(self._areas)

    def __getitem__(self, idx: int) -> int:
        return self._areas[idx]


class SafetyMonitor:
    """
    Flags tracker divergence: a region whose area swings erratically
    from frame to frame is more likely locked onto background than a
    target that is genuinely approaching or receding.
    """

    def __init__(self, cfg: Optional[SafetyConfig] = None):
        self.cfg = cfg or SafetyConfig()
        self.history = BoundingBoxHistory(self.cfg.history_capacity)
        self.last_ratio: Optional[float] = None

    @property
    def band(self) -> Tuple[float, float]:
        return self.cfg.band

    def reset(self) -> None:
        self.history.clear()
        self.last_ratio = None

    def observe(self, area: int) -> SafetyVerdict:
        self.history.push(area)
        if not self.history.is_full:
            return SafetyVerdict.SAFE

        if any(a <= 0 for a in self.history):
            logger.warning("[Safety] Degenerate region in history, rate of change is UNSAFE")
            self.last_ratio = None
            return SafetyVerdict.UNSAFE

        ratios = self.history.ratios()
        self.last_ratio = sum(ratios) / len(ratios)
        low, high = self.cfg.band
        if not low <= self.last_ratio <= high:
            logger.warning(
                "[Safety] Rate of change is UNSAFE (avg ratio %.3f outside [%.2f, %.2f])",
                self.last_ratio, low, high,
            )
            return SafetyVerdict.UNSAFE
        return SafetyVerdict.SAFE

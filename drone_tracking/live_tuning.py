# live_tuning.py
"""Hot-reload of steering parameters from a JSON file between frames."""
from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Tuple

from drone_tracking.config import SteeringConfig

logger = logging.getLogger(__name__)

TUNABLE_KEYS = {
    "cm_per_pixel": float,
    "min_step": int,
    "max_step": int,
    "roi_scale": float,
}


class RuntimeParamWatcher:
    """Watch a JSON file and hot-reload its contents when it changes."""

    def __init__(self, path: str | Path = "runtime_params.json") -> None:
        self.path = Path(path).expanduser().resolve()
        self._stamp: Tuple[float, int] = (0.0, -1)  # (mtime, size)
        self.params: Dict[str, Any] = {}

        logger.info("[Runtime] Watching: %s", self.path)
        self._load(initial=True)

    # ------------------------------------------------------------------
    #   Internal helpers
    # ------------------------------------------------------------------
    def _load(self, *, initial: bool = False) -> None:
        try:
            with self.path.open("r", encoding="utf-8") as fp:
                params = json.load(fp)
            stat = self.path.stat()
            self._stamp = (stat.st_mtime, stat.st_size)
        except FileNotFoundError:
            if initial:
                logger.info(
                    "[Runtime] %s not found, live-tuning disabled (create the file to enable).",
                    self.path,
                )
            else:
                logger.warning("[Runtime] %s was deleted, keeping old params.", self.path)
            return
        except json.JSONDecodeError as exc:
            logger.error("[Runtime] JSON error in %s: %s", self.path, exc)
            return

        if not isinstance(params, dict):
            logger.error("[Runtime] %s must hold a JSON object", self.path)
            return
        self.params = params
        if not initial:
            logger.info("[Runtime] Reloaded parameters from %s", self.path)

    # ------------------------------------------------------------------
    #   Public API
    # ------------------------------------------------------------------
    def maybe_reload(self) -> bool:
        """
        If the watched file changed since the last call reload it and
        return **True**, else return **False**.
        """
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return False

        mtime, fsize = self._stamp
        # Some filesystems only update timestamps in 1- or 2-second ticks,
        # so any change >=1 s *or* a size change counts as modified.
        if stat.st_size != fsize or stat.st_mtime - mtime >= 1.0:
            self._load()
            return True
        return False

    def get(self, key: str, default: Any | None = None) -> Any:
        return self.params.get(key, default)

    def apply_to(self, cfg: SteeringConfig) -> bool:
        """
        Copy the tunable keys onto ``cfg`` in place. The whole update is
        rejected if any value is malformed or breaks a config invariant.
        """
        changes: Dict[str, Any] = {}
        try:
            for key, cast in TUNABLE_KEYS.items():
                if key in self.params:
                    changes[key] = cast(self.params[key])
            if not changes:
                return False
            candidate = replace(cfg, **changes)
        except (TypeError, ValueError) as exc:
            logger.error("[Runtime] Ignoring parameters from %s: %s", self.path, exc)
            return False

        for key in changes:
            setattr(cfg, key, getattr(candidate, key))
        logger.info("[Runtime] Parameters updated: %s", changes)
        return True

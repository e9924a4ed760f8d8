# archive.py
"""Clean and annotated video recording of a session."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple

import cv2
import numpy as np

from drone_tracking.config import ArchiveConfig

logger = logging.getLogger(__name__)


class ArchiveWriter:
    def __init__(self, cfg: ArchiveConfig, frame_size: Tuple[int, int], fps: float = 0.0):
        self.cfg = cfg
        self.frame_size = frame_size
        self.fps = fps if fps > 0 else cfg.fps_fallback
        self.out_dir = Path(cfg.output_dir)
        self.clean_path = self.out_dir / cfg.clean_name
        self.dirty_path = self.out_dir / cfg.dirty_name
        self._clean: Optional[cv2.VideoWriter] = None
        self._dirty: Optional[cv2.VideoWriter] = None

    def open(self) -> None:
        self.out_dir.mkdir(parents=True, exist_ok=True)
        fourcc = cv2.VideoWriter_fourcc(*self.cfg.fourcc)
        self._clean = cv2.VideoWriter(str(self.clean_path), fourcc, self.fps, self.frame_size)
        self._dirty = cv2.VideoWriter(str(self.dirty_path), fourcc, self.fps, self.frame_size)
        logger.info("[Archive] Recording to %s and %s", self.clean_path, self.dirty_path)

    def write(self, clean: np.ndarray, annotated: np.ndarray) -> None:
        if self._clean is not None:
            self._clean.write(clean)
        if self._dirty is not None:
            self._dirty.write(annotated)

    def release(self) -> None:
        for writer in (self._clean, self._dirty):
            if writer is not None:
                writer.release()
        self._clean = self._dirty = None

    def finalize(self, output_name: Optional[str] = None) -> List[Path]:
        """
        Release the writers and rename the files to ``<name>.avi`` and
        ``<name>_dirty.avi``. An empty name keeps the defaults. Existing
        files of the same name are overwritten.
        """
        self.release()
        if not output_name:
            return [self.clean_path, self.dirty_path]

        saved: List[Path] = []
        targets = (
            (self.clean_path, self.out_dir / f"{output_name}.avi"),
            (self.dirty_path, self.out_dir / f"{output_name}_dirty.avi"),
        )
        for src, dst in targets:
            try:
                os.replace(src, dst)
            except OSError as exc:
                logger.error("[Archive] Error moving %s -> %s: %s", src, dst, exc)
                saved.append(src)
            else:
                logger.info("[Archive] Saved %s", dst)
                saved.append(dst)
        return saved

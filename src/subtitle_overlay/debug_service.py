"""Debug service: per-subtitle artifact saving and pipeline logging.

When ``SUBTITLE_OVERLAY_DEBUG=1`` is set, DebugService creates a session
directory under ``.tests/debug/`` and records every stage of the
capture -> OCR -> repair -> translate pipeline.

Each emitted subtitle gets its own numbered folder::

    .tests/debug/session_YYYYMMDD_HHMMSS/
        pipeline.log
        001/
            original.txt      # repaired OCR text
            translated.txt    # text shown to the user
            raw.png           # captured region
        002/ ...
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime

from PIL import Image

logger = logging.getLogger(__name__)

DEBUG_ENV = "SUBTITLE_OVERLAY_DEBUG"

_DEBUG_ROOT = os.path.join(os.path.dirname(__file__), "..", "..", ".tests", "debug")


def is_debug_enabled() -> bool:
    return os.environ.get(DEBUG_ENV, "0") == "1"


class DebugService:
    def __init__(self, root: str | os.PathLike | None = None) -> None:
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        base = os.fspath(root) if root is not None else _DEBUG_ROOT
        self._session_dir = os.path.join(base, f"session_{ts}")
        os.makedirs(self._session_dir, exist_ok=True)

        log_path = os.path.join(self._session_dir, "pipeline.log")
        self._log_file = open(log_path, "w", encoding="utf-8")  # noqa: SIM115
        self._lock = threading.Lock()
        self._subtitle_count = 0
        self._cached_frame: Image.Image | None = None

        self.log("SESSION", f"started at {ts}")
        logger.info("Debug session dir: %s", self._session_dir)

    @property
    def session_dir(self) -> str:
        return self._session_dir

    @property
    def subtitle_count(self) -> int:
        return self._subtitle_count

    # ------------------------------------------------------------------
    # Pipeline logging
    # ------------------------------------------------------------------

    def log(self, tag: str, text: str) -> None:
        ts = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        with self._lock:
            if self._log_file.closed:
                return
            self._log_file.write(f"{ts}  [{tag}]  {text}\n")
            self._log_file.flush()

    def cache_frame(self, image: Image.Image) -> None:
        self._cached_frame = image

    def drop_frame(self) -> None:
        """Forget the cached frame of a cycle that produced no subtitle."""
        self._cached_frame = None

    # ------------------------------------------------------------------
    # Subtitle artifact saving
    # ------------------------------------------------------------------

    def save_subtitle(self, original: str, translated: str) -> str:
        """Write the artifacts for one subtitle event; returns its folder."""
        with self._lock:
            self._subtitle_count += 1
            number = self._subtitle_count
            frame = self._cached_frame
            self._cached_frame = None

        folder = os.path.join(self._session_dir, f"{number:03d}")
        os.makedirs(folder, exist_ok=True)

        with open(os.path.join(folder, "original.txt"), "w", encoding="utf-8") as f:
            f.write(original)
        with open(os.path.join(folder, "translated.txt"), "w", encoding="utf-8") as f:
            f.write(translated)

        if frame is not None:
            frame.save(os.path.join(folder, "raw.png"))

        self.log("SAVED", f"subtitle {number:03d}")
        return folder

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def shutdown(self) -> None:
        self.log("SESSION", "ended")
        with self._lock:
            self._log_file.close()

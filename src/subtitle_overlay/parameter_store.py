"""Per-region recognition profiles, persisted as one JSON file.

Each capture region gets a deterministic identity derived from its geometry
(``area_{x}_{y}_{w}_{h}``) so the same screen rectangle picks up its tuned
profile across sessions. Regions that were never tuned get a size-based
preset instead.

Profiles are copied on the way in and on the way out: callers can mutate
what they receive without touching the store.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Protocol

from PyQt6.QtCore import QStandardPaths

from subtitle_overlay.errors import PersistenceError
from subtitle_overlay.recognition_profile import RecognitionProfile

logger = logging.getLogger(__name__)

# width * height below this -> small-text preset
DEFAULT_SMALL_AREA_THRESHOLD = 10_000
# width * height above this -> large-text preset
DEFAULT_LARGE_AREA_THRESHOLD = 100_000

_APP_DIR_NAME = "SubtitleOverlay"
_PROFILES_FILE_NAME = "ocr_parameters.json"

_RE_AREA_ID = re.compile(r"^area_(-?\d+)_(-?\d+)_(\d+)_(\d+)$")


def default_profiles_path() -> Path:
    """Per-user application-data path of the profiles file."""
    base = QStandardPaths.writableLocation(
        QStandardPaths.StandardLocation.GenericDataLocation
    )
    if not base:
        base = str(Path.home() / ".local" / "share")
    return Path(base) / _APP_DIR_NAME / _PROFILES_FILE_NAME


class ProfileStorage(Protocol):
    """Whole-collection storage for profiles."""

    def load(self) -> dict[str, RecognitionProfile]:
        ...

    def save(self, profiles: dict[str, RecognitionProfile]) -> None:
        ...


class JsonProfileStorage:
    """Stores the profile collection as a JSON list of profile dicts."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else default_profiles_path()

    def load(self) -> dict[str, RecognitionProfile]:
        if not self.path.exists():
            logger.info("No profiles file at %s, starting with an empty set", self.path)
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e

        if not isinstance(raw, list):
            raise PersistenceError(f"{self.path}: expected a JSON list of profiles")

        profiles: dict[str, RecognitionProfile] = {}
        for item in raw:
            if not isinstance(item, dict):
                continue
            try:
                profile = RecognitionProfile.from_dict(item)
            except (TypeError, ValueError) as e:
                logger.warning("Skipping malformed profile entry: %s", e)
                continue
            if profile.area_id:
                profiles[profile.area_id] = profile
        return profiles

    def save(self, profiles: dict[str, RecognitionProfile]) -> None:
        """Write the whole collection atomically (temp file + rename)."""
        payload = [p.to_dict() for p in profiles.values()]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=".ocr_parameters.", suffix=".tmp", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e


class ParameterStore:
    """Serves and persists RecognitionProfile per screen region."""

    def __init__(
        self,
        storage: ProfileStorage | None = None,
        small_area_threshold: int = DEFAULT_SMALL_AREA_THRESHOLD,
        large_area_threshold: int = DEFAULT_LARGE_AREA_THRESHOLD,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._storage = storage if storage is not None else JsonProfileStorage()
        self._small_area_threshold = small_area_threshold
        self._large_area_threshold = large_area_threshold
        self._clock = clock
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()
        self._profiles: dict[str, RecognitionProfile] = {}
        self._load()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @staticmethod
    def derive_area_id(x: int, y: int, width: int, height: int) -> str:
        return f"area_{x}_{y}_{width}_{height}"

    @staticmethod
    def parse_area_id(area_id: str) -> tuple[int, int, int, int] | None:
        m = _RE_AREA_ID.match(area_id)
        if not m:
            return None
        x, y, w, h = (int(g) for g in m.groups())
        return x, y, w, h

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def get_profile(
        self,
        area_id: str,
        width: int | None = None,
        height: int | None = None,
    ) -> RecognitionProfile:
        """Return a copy of the stored profile, or a size-based default.

        When width/height are not given they are taken from the area id.
        """
        with self._lock:
            stored = self._profiles.get(area_id)
            if stored is not None:
                logger.debug("Profile for %s: %s", area_id, stored.description)
                return stored.clone()

        if width is None or height is None:
            geometry = self.parse_area_id(area_id)
            if geometry is None:
                logger.debug("No profile for %s and no geometry, using defaults", area_id)
                return RecognitionProfile.default()
            width, height = geometry[2], geometry[3]

        logger.debug("No profile for %s, selecting by size", area_id)
        return self.optimized_profile(width, height)

    def optimized_profile(self, width: int, height: int) -> RecognitionProfile:
        area = width * height
        if area < self._small_area_threshold:
            logger.debug("Small-text profile for %dx%d", width, height)
            return RecognitionProfile.small_text()
        if area > self._large_area_threshold:
            logger.debug("Large-text profile for %dx%d", width, height)
            return RecognitionProfile.large_text()
        return RecognitionProfile.default()

    def save_profile(self, area_id: str, profile: RecognitionProfile) -> RecognitionProfile:
        """Store a copy of ``profile`` under ``area_id`` and persist everything.

        Returns the stored copy. The caller's object is left untouched.
        """
        stored = profile.clone()
        stored.area_id = area_id
        stored.last_modified = self._clock()

        with self._lock:
            self._profiles[area_id] = stored

        logger.info("Saved profile for %s: %s", area_id, stored.description)
        self._persist()
        return stored.clone()

    def delete_profile(self, area_id: str) -> bool:
        with self._lock:
            removed = self._profiles.pop(area_id, None)

        if removed is None:
            return False
        logger.info("Deleted profile for %s", area_id)
        self._persist()
        return True

    def all_profiles(self) -> list[RecognitionProfile]:
        with self._lock:
            return [p.clone() for p in self._profiles.values()]

    def __contains__(self, area_id: str) -> bool:
        with self._lock:
            return area_id in self._profiles

    def __len__(self) -> int:
        with self._lock:
            return len(self._profiles)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        try:
            loaded = self._storage.load()
        except Exception as e:
            logger.error("Failed to load OCR profiles, starting empty: %s", e)
            return
        with self._lock:
            self._profiles = dict(loaded)
        logger.info("Loaded %d OCR profile(s)", len(loaded))

    def _persist(self) -> None:
        # In-memory state is already updated; a failed write is retried by
        # the next save. Writers are serialized so an older snapshot never
        # lands after a newer one.
        with self._save_lock:
            with self._lock:
                snapshot = dict(self._profiles)
            try:
                self._storage.save(snapshot)
            except Exception as e:
                logger.error("Failed to save OCR profiles: %s", e)

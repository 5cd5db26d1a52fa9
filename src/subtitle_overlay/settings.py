from __future__ import annotations

import os
from dataclasses import dataclass

from PyQt6.QtCore import QSettings

from subtitle_overlay.translator import DEFAULT_ENDPOINT

ORGANIZATION = "SubtitleOverlay"
APPLICATION = "SubtitleOverlay"

API_KEY_ENV = "GOOGLE_TRANSLATE_API_KEY"


def _as_bool(value) -> bool:
    # QSettings returns "true"/"false" strings from INI and registry backends.
    return str(value).lower() in ("true", "1", "yes")


@dataclass
class AppSettings:
    region: tuple[int, int, int, int] | None = None  # (left, top, width, height)
    source_language: str = "en"
    target_language: str = "es"
    capture_interval_ms: int = 1000
    cache_enabled: bool = True
    cache_ttl_minutes: int = 60
    cache_sweep_minutes: int = 5
    small_area_threshold: int = 10_000
    large_area_threshold: int = 100_000
    stop_timeout_ms: int = 3000
    api_endpoint: str = DEFAULT_ENDPOINT
    api_key: str = ""

    @property
    def effective_api_key(self) -> str:
        """The env var wins over the stored key."""
        return os.environ.get(API_KEY_ENV) or self.api_key

    def save(self, settings: QSettings | None = None) -> None:
        s = settings if settings is not None else QSettings(ORGANIZATION, APPLICATION)
        if self.region:
            s.setValue("region/left", self.region[0])
            s.setValue("region/top", self.region[1])
            s.setValue("region/width", self.region[2])
            s.setValue("region/height", self.region[3])
        else:
            s.remove("region")
        s.setValue("source_language", self.source_language)
        s.setValue("target_language", self.target_language)
        s.setValue("capture_interval_ms", self.capture_interval_ms)
        s.setValue("translation/cache_enabled", self.cache_enabled)
        s.setValue("translation/cache_ttl_minutes", self.cache_ttl_minutes)
        s.setValue("translation/cache_sweep_minutes", self.cache_sweep_minutes)
        s.setValue("translation/api_endpoint", self.api_endpoint)
        s.setValue("translation/api_key", self.api_key)
        s.setValue("ocr/small_area_threshold", self.small_area_threshold)
        s.setValue("ocr/large_area_threshold", self.large_area_threshold)
        s.setValue("stop_timeout_ms", self.stop_timeout_ms)
        s.sync()

    @classmethod
    def load(cls, settings: QSettings | None = None) -> AppSettings:
        s = settings if settings is not None else QSettings(ORGANIZATION, APPLICATION)
        region = None
        if s.contains("region/left"):
            region = (
                int(s.value("region/left", 0)),
                int(s.value("region/top", 0)),
                int(s.value("region/width", 100)),
                int(s.value("region/height", 100)),
            )

        return cls(
            region=region,
            source_language=str(s.value("source_language", "en")),
            target_language=str(s.value("target_language", "es")),
            capture_interval_ms=int(s.value("capture_interval_ms", 1000)),
            cache_enabled=_as_bool(s.value("translation/cache_enabled", True)),
            cache_ttl_minutes=int(s.value("translation/cache_ttl_minutes", 60)),
            cache_sweep_minutes=int(s.value("translation/cache_sweep_minutes", 5)),
            api_endpoint=str(s.value("translation/api_endpoint", DEFAULT_ENDPOINT)),
            api_key=str(s.value("translation/api_key", "")),
            small_area_threshold=int(s.value("ocr/small_area_threshold", 10_000)),
            large_area_threshold=int(s.value("ocr/large_area_threshold", 100_000)),
            stop_timeout_ms=int(s.value("stop_timeout_ms", 3000)),
        )

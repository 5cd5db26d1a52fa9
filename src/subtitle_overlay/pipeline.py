"""One capture cycle: capture -> OCR -> repair -> translate -> event.

Every stage is fail-soft. Capture and recognition failures end the cycle
(the next tick retries); a blank read ends it silently; correction and
translation failures degrade to the best text available. Failures are
reported through ``on_pipeline_error(stage, error)`` and never raised to
the scheduler.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from subtitle_overlay.debug_service import DebugService
from subtitle_overlay.errors import (
    STAGE_CAPTURE,
    STAGE_CORRECTION,
    STAGE_RECOGNITION,
    STAGE_TRANSLATION,
)
from subtitle_overlay.ocr_worker import OcrEngine, Region, ScreenCapturer
from subtitle_overlay.parameter_store import ParameterStore
from subtitle_overlay.text_cleaner import TextCorrectionEngine
from subtitle_overlay.translation_cache import TranslationCache
from subtitle_overlay.translator import primary_subtag

logger = logging.getLogger(__name__)

AUTO_LANGUAGE = "auto"


@dataclass
class SubtitleEvent:
    original: str
    translated: str
    region: Region
    area_id: str
    timestamp: datetime = field(default_factory=datetime.now)


class PipelineOrchestrator:
    """Runs capture cycles and reports results through callbacks.

    ``source_language`` may be "auto": the optional ``detect_language``
    callable is asked, and without one the profile's language is assumed.
    """

    def __init__(
        self,
        store: ParameterStore,
        capturer: ScreenCapturer,
        ocr: OcrEngine,
        corrector: TextCorrectionEngine,
        translations: TranslationCache,
        source_language: str = "en",
        target_language: str = "es",
        on_subtitle_ready: Callable[[str, str], None] | None = None,
        on_pipeline_error: Callable[[str, Exception], None] | None = None,
        detect_language: Callable[[str], str] | None = None,
        debug: DebugService | None = None,
    ) -> None:
        self._store = store
        self._capturer = capturer
        self._ocr = ocr
        self._corrector = corrector
        self._translations = translations
        self.source_language = source_language
        self.target_language = target_language
        self._on_subtitle_ready = on_subtitle_ready
        self._on_pipeline_error = on_pipeline_error
        self._detect_language = detect_language
        self._debug = debug

    def run_cycle(self, region: Region, profile_id: str = "") -> SubtitleEvent | None:
        """Run one cycle. Returns the emitted event, or None if none was."""
        area_id = profile_id or ParameterStore.derive_area_id(*region)
        profile = self._store.get_profile(area_id, region[2], region[3])

        # --- Capture ---
        try:
            frame = self._capturer.capture(region)
        except Exception as e:
            logger.error("Capture failed for %s: %s", area_id, e)
            self._report(STAGE_CAPTURE, e)
            return None
        if self._debug:
            self._debug.cache_frame(frame.image)

        # --- Recognition ---
        source = self.source_language
        ocr_language = profile.language if source == AUTO_LANGUAGE else source
        try:
            raw = self._ocr.recognize(frame.image, ocr_language, profile)
        except Exception as e:
            logger.error("Recognition failed for %s: %s", area_id, e)
            self._report(STAGE_RECOGNITION, e)
            self._drop_frame()
            return None

        if not raw or not raw.strip():
            logger.debug("No text in %s", area_id)
            self._drop_frame()
            return None
        self._debug_log("OCR", raw)

        # --- Correction ---
        try:
            corrected = self._corrector.repair(raw, primary_subtag(ocr_language))
        except Exception as e:
            logger.error("Correction failed, using raw OCR text: %s", e)
            self._report(STAGE_CORRECTION, e)
            corrected = raw
        self._debug_log("REPAIR", corrected)
        if not corrected.strip():
            logger.debug("Nothing left after correction in %s", area_id)
            self._drop_frame()
            return None

        # --- Translation ---
        translated = ""
        if source == AUTO_LANGUAGE:
            source = self._resolve_source(corrected, profile.language)
        if primary_subtag(source) != primary_subtag(self.target_language):
            try:
                translated = self._translations.translate(
                    corrected, self.target_language, source,
                )
            except Exception as e:
                logger.error("Translation failed, showing source text: %s", e)
                self._report(STAGE_TRANSLATION, e)
                translated = corrected
            self._debug_log("TRANSLATE", translated)

        event = SubtitleEvent(
            original=corrected,
            translated=translated,
            region=region,
            area_id=area_id,
        )
        self._emit(event)
        return event

    def _resolve_source(self, text: str, fallback: str) -> str:
        if self._detect_language is None:
            return fallback
        try:
            return self._detect_language(text) or fallback
        except Exception as e:
            logger.warning("Language detection failed, assuming %s: %s", fallback, e)
            return fallback

    def _emit(self, event: SubtitleEvent) -> None:
        logger.info("Subtitle: %r -> %r", event.original, event.translated)
        if self._debug:
            self._debug.save_subtitle(event.original, event.translated)
        if self._on_subtitle_ready is None:
            return
        try:
            self._on_subtitle_ready(event.original, event.translated)
        except Exception as e:
            logger.error("Subtitle callback failed: %s", e, exc_info=True)

    def _report(self, stage: str, error: Exception) -> None:
        self._debug_log("ERROR", f"{stage}: {error}")
        if self._on_pipeline_error is None:
            return
        try:
            self._on_pipeline_error(stage, error)
        except Exception as e:
            logger.error("Error callback failed: %s", e)

    def _debug_log(self, tag: str, text: str) -> None:
        if self._debug:
            self._debug.log(tag, text)

    def _drop_frame(self) -> None:
        if self._debug:
            self._debug.drop_frame()

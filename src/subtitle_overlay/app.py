from __future__ import annotations

import logging
import signal
import sys

from PyQt6.QtCore import QCoreApplication, QTimer

from subtitle_overlay.capture_scheduler import CaptureScheduler
from subtitle_overlay.debug_service import DebugService, is_debug_enabled
from subtitle_overlay.ocr_worker import MssScreenCapturer, TesseractOcrEngine
from subtitle_overlay.parameter_store import ParameterStore
from subtitle_overlay.pipeline import PipelineOrchestrator
from subtitle_overlay.settings import AppSettings
from subtitle_overlay.signals import SubtitleSignals
from subtitle_overlay.text_cleaner import TextCorrectionEngine
from subtitle_overlay.translation_cache import TranslationCache
from subtitle_overlay.translator import GoogleTranslateBackend

logger = logging.getLogger(__name__)


class App:
    """Headless runner: captures the configured region and prints subtitles.

    The overlay window is a separate display layer; it connects to
    ``signals`` the same way ``_on_subtitle_ready`` does here.
    """

    def __init__(self, settings: AppSettings | None = None) -> None:
        self._qt_app = QCoreApplication.instance() or QCoreApplication(sys.argv)
        self._qt_app.setApplicationName("SubtitleOverlay")
        self._qt_app.setOrganizationName("SubtitleOverlay")

        self._settings = settings if settings is not None else AppSettings.load()
        s = self._settings

        self._debug: DebugService | None = None
        if is_debug_enabled():
            self._debug = DebugService()

        self._store = ParameterStore(
            small_area_threshold=s.small_area_threshold,
            large_area_threshold=s.large_area_threshold,
        )
        self._corrector = TextCorrectionEngine()
        self._backend = GoogleTranslateBackend(s.effective_api_key, endpoint=s.api_endpoint)
        self._translations = TranslationCache(
            self._backend,
            improve=self._corrector.improve_translation,
            ttl_s=s.cache_ttl_minutes * 60,
            sweep_interval_s=s.cache_sweep_minutes * 60,
            enabled=s.cache_enabled,
        )

        self.signals = SubtitleSignals()
        self._pipeline = PipelineOrchestrator(
            self._store,
            MssScreenCapturer(),
            TesseractOcrEngine(),
            self._corrector,
            self._translations,
            source_language=s.source_language,
            target_language=s.target_language,
            on_subtitle_ready=self.signals.subtitle_ready_callback,
            on_pipeline_error=self.signals.pipeline_error_callback,
            detect_language=self._backend.detect_language,
            debug=self._debug,
        )
        self._scheduler = CaptureScheduler(
            self._pipeline.run_cycle,
            on_error=self.signals.pipeline_error_callback,
            stop_timeout_s=s.stop_timeout_ms / 1000.0,
        )

        self.signals.subtitle_ready.connect(self._on_subtitle_ready)
        self.signals.pipeline_error.connect(self._on_pipeline_error)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def _on_subtitle_ready(self, original: str, translated: str) -> None:
        print(translated or original, flush=True)

    def _on_pipeline_error(self, stage: str, message: str) -> None:
        logger.warning("Pipeline %s error: %s", stage, message)

    # ------------------------------------------------------------------
    # Reading control
    # ------------------------------------------------------------------

    def start_reading(self) -> bool:
        region = self._settings.region
        if not region:
            logger.error("No capture region configured")
            return False
        if not self._backend.is_available:
            logger.warning("No translation API key, subtitles will not be translated")
        area_id = ParameterStore.derive_area_id(*region)
        self._translations.start_sweeper()
        self._scheduler.start(self._settings.capture_interval_ms, region, area_id)
        return True

    def stop_reading(self) -> None:
        self._scheduler.stop()
        self._translations.close()

    def run(self) -> int:
        if not self.start_reading():
            return 1

        # Let Python handle Ctrl+C while the Qt loop runs.
        signal.signal(signal.SIGINT, lambda *_: self._qt_app.quit())
        wake = QTimer()
        wake.timeout.connect(lambda: None)
        wake.start(200)

        exit_code = self._qt_app.exec()

        # Cleanup
        wake.stop()
        self.stop_reading()
        self._backend.close()
        self._settings.save()

        if self._debug:
            self._debug.shutdown()

        return exit_code


def main() -> None:
    logging.basicConfig(
        level=logging.DEBUG if is_debug_enabled() else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = App()
    sys.exit(app.run())

"""Qt bridge between the pipeline callbacks and the display layer.

The pipeline runs on the scheduler's timer thread and reports through plain
callbacks. Pass ``signals.subtitle_ready_callback`` and
``signals.pipeline_error_callback`` to the orchestrator; connected slots in
the GUI thread then receive the values through Qt's queued connections.
"""

from __future__ import annotations

from PyQt6.QtCore import QObject, pyqtSignal


class SubtitleSignals(QObject):
    subtitle_ready = pyqtSignal(str, str)   # original, translated
    pipeline_error = pyqtSignal(str, str)   # stage, message

    def subtitle_ready_callback(self, original: str, translated: str) -> None:
        self.subtitle_ready.emit(original, translated)

    def pipeline_error_callback(self, stage: str, error: Exception) -> None:
        self.pipeline_error.emit(stage, str(error))

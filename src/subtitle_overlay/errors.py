"""Error taxonomy for the capture -> OCR -> repair -> translate pipeline.

None of these are fatal. Each stage catches its own failure, reports it
through the pipeline error callback and degrades to the best text available.
"""

from __future__ import annotations

# Stage names passed to on_pipeline_error(stage, error)
STAGE_CAPTURE = "capture"
STAGE_RECOGNITION = "recognition"
STAGE_CORRECTION = "correction"
STAGE_TRANSLATION = "translation"
STAGE_CYCLE = "cycle"


class PipelineError(Exception):
    """Base class for pipeline stage failures."""

    stage = STAGE_CYCLE


class CaptureError(PipelineError):
    """Screen capture failed. The cycle is aborted and retried next tick."""

    stage = STAGE_CAPTURE


class RecognitionError(PipelineError):
    """OCR engine failed. The cycle is aborted and retried next tick."""

    stage = STAGE_RECOGNITION


class TranslationError(PipelineError):
    """Translation backend failed. Callers fall back to the source text."""

    stage = STAGE_TRANSLATION


class PersistenceError(Exception):
    """Profile storage could not be read or written."""

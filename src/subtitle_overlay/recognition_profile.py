"""Per-region OCR tuning profile and its size-based presets."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class RecognitionProfile:
    # Image preprocessing
    contrast: float = 1.0              # 0.5 .. 2.0
    brightness: float = 0.0            # -1.0 .. 1.0
    sharpness: float = 1.0             # 0.5 .. 2.0
    enable_noise_reduction: bool = True
    enable_deskew: bool = True

    # Text recognition
    minimum_confidence: float = 0.6    # 0.0 .. 1.0
    enable_word_segmentation: bool = True
    enable_line_segmentation: bool = True
    minimum_text_height: int = 8       # pixels
    maximum_text_height: int = 100     # pixels

    # Language and character set
    language: str = "en-US"
    enable_number_recognition: bool = True
    enable_symbol_recognition: bool = True
    enable_punctuation_recognition: bool = True

    # Advanced
    text_scale_factor: float = 1.0     # 0.5 .. 3.0
    enable_binarization: bool = False
    binarization_threshold: float = 0.5
    enable_morphological_operations: bool = False

    # Area bookkeeping
    area_id: str = ""
    last_modified: datetime = field(default_factory=datetime.now)
    description: str = ""

    def clone(self) -> RecognitionProfile:
        # Every field is an immutable scalar (datetime included), so a
        # shallow replace is a full copy.
        return dataclasses.replace(self)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data["last_modified"] = self.last_modified.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecognitionProfile:
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        stamp = kwargs.get("last_modified")
        if isinstance(stamp, str):
            kwargs["last_modified"] = datetime.fromisoformat(stamp)
        elif stamp is None:
            kwargs.pop("last_modified", None)
        return cls(**kwargs)

    # ------------------------------------------------------------------
    # Presets
    # ------------------------------------------------------------------

    @classmethod
    def default(cls) -> RecognitionProfile:
        return cls(description="Default")

    @classmethod
    def small_text(cls) -> RecognitionProfile:
        """Tuned for small capture areas: upscale more, accept lower confidence."""
        return cls(
            contrast=1.2,
            brightness=0.1,
            sharpness=1.3,
            minimum_confidence=0.5,
            minimum_text_height=6,
            maximum_text_height=50,
            text_scale_factor=1.5,
            description="Small text",
        )

    @classmethod
    def large_text(cls) -> RecognitionProfile:
        """Tuned for large capture areas: stricter confidence, taller glyphs."""
        return cls(
            minimum_confidence=0.7,
            minimum_text_height=12,
            maximum_text_height=200,
            description="Large text",
        )

    @classmethod
    def low_contrast(cls) -> RecognitionProfile:
        return cls(
            contrast=1.5,
            brightness=0.2,
            sharpness=1.2,
            minimum_confidence=0.4,
            text_scale_factor=1.3,
            enable_binarization=True,
            binarization_threshold=0.4,
            enable_morphological_operations=True,
            description="Low contrast",
        )

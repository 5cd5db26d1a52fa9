"""Screen capture and Tesseract recognition for one capture cycle.

- Screen capture via mss (BGRA -> RGB -> PIL)
- Profile-driven preprocessing: Pillow enhancers for contrast, brightness
  and sharpness; OpenCV for noise reduction, binarization, morphology and
  deskew
- Upscaling for small capture regions
- Word filtering by confidence and text height from ``image_to_data``

Both classes raise the pipeline's error types (CaptureError,
RecognitionError); the orchestrator decides what to report.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

import cv2
import numpy as np
import pytesseract
from mss import mss
from PIL import Image, ImageEnhance

from subtitle_overlay.errors import CaptureError, RecognitionError
from subtitle_overlay.recognition_profile import RecognitionProfile

logger = logging.getLogger(__name__)

Region = tuple[int, int, int, int]  # (left, top, width, height)


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------

@dataclass
class CapturedFrame:
    image: Image.Image
    region: Region
    captured_at: datetime = field(default_factory=datetime.now)


class ScreenCapturer(Protocol):
    def capture(self, region: Region) -> CapturedFrame:
        ...


class MssScreenCapturer:
    """Grabs a screen rectangle with mss.

    A fresh mss context per capture: mss handles are not safe to share
    across threads, and the scheduler may call from a new timer thread
    after every restart.
    """

    def capture(self, region: Region) -> CapturedFrame:
        left, top, width, height = region
        if width <= 0 or height <= 0:
            raise CaptureError(f"Empty capture region {region}")
        monitor = {"left": left, "top": top, "width": width, "height": height}
        try:
            with mss() as sct:
                screenshot = sct.grab(monitor)
        except Exception as e:
            raise CaptureError(f"Screen capture failed for {region}: {e}") from e

        img_array = np.array(screenshot, dtype=np.uint8)
        # BGRA -> RGB
        rgb = img_array[:, :, :3][:, :, ::-1].copy()
        return CapturedFrame(image=Image.fromarray(rgb), region=region)


# ---------------------------------------------------------------------------
# Languages
# ---------------------------------------------------------------------------

_TESSERACT_LANGUAGES: dict[str, str] = {
    "en": "eng",
    "es": "spa",
    "fr": "fra",
    "de": "deu",
    "it": "ita",
    "pt": "por",
    "ru": "rus",
    "uk": "ukr",
    "pl": "pol",
    "nl": "nld",
    "tr": "tur",
    "ja": "jpn",
    "ko": "kor",
    "zh-cn": "chi_sim",
    "zh-tw": "chi_tra",
    "zh": "chi_sim",
    "ar": "ara",
}


def tesseract_language(language: str) -> str:
    """'en-US' -> 'eng'. Tesseract codes ('eng', 'eng+rus') pass through."""
    tag = language.replace("_", "-").lower()
    if tag in _TESSERACT_LANGUAGES:
        return _TESSERACT_LANGUAGES[tag]
    primary = tag.split("-")[0]
    if primary in _TESSERACT_LANGUAGES:
        return _TESSERACT_LANGUAGES[primary]
    if len(primary) >= 3 or "+" in tag:
        return language
    logger.warning("No Tesseract language for %r, using eng", language)
    return "eng"


# ---------------------------------------------------------------------------
# Image preprocessing
# ---------------------------------------------------------------------------

# Below this height Tesseract loses accuracy on subtitle fonts.
MIN_HEIGHT = 100
MAX_SCALE = 4.0

# Skew angles outside this band are treated as layout, not skew.
_MAX_DESKEW_DEGREES = 15.0


def _upscale(img: Image.Image, scale_factor: float) -> Image.Image:
    """Scale by the profile factor, raised as needed to reach MIN_HEIGHT."""
    w, h = img.size
    scale = max(scale_factor, 1.0)
    if h < MIN_HEIGHT:
        scale = max(scale, MIN_HEIGHT / h)
    scale = min(scale, MAX_SCALE)
    if scale > 1.0:
        img = img.resize((round(w * scale), round(h * scale)), Image.Resampling.LANCZOS)
    return img


def _deskew(gray: np.ndarray) -> np.ndarray:
    _, mask = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY_INV + cv2.THRESH_OTSU)
    points = np.column_stack(np.where(mask > 0))[:, ::-1].astype(np.float32)
    if len(points) < 10:
        return gray

    angle = cv2.minAreaRect(points)[-1]
    if angle > 45:
        angle -= 90
    elif angle < -45:
        angle += 90
    if abs(angle) < 0.5 or abs(angle) > _MAX_DESKEW_DEGREES:
        return gray

    h, w = gray.shape[:2]
    matrix = cv2.getRotationMatrix2D((w / 2, h / 2), angle, 1.0)
    logger.debug("Deskew by %.1f degrees", angle)
    return cv2.warpAffine(
        gray, matrix, (w, h),
        flags=cv2.INTER_CUBIC, borderMode=cv2.BORDER_REPLICATE,
    )


def apply_profile(image: Image.Image, profile: RecognitionProfile) -> Image.Image:
    """Return a grayscale copy of ``image`` prepared for OCR."""
    img = image.convert("RGB")

    if profile.contrast != 1.0:
        img = ImageEnhance.Contrast(img).enhance(profile.contrast)
    if profile.brightness != 0.0:
        img = ImageEnhance.Brightness(img).enhance(1.0 + profile.brightness)
    if profile.sharpness != 1.0:
        img = ImageEnhance.Sharpness(img).enhance(profile.sharpness)

    img = _upscale(img, profile.text_scale_factor)
    gray = np.array(img.convert("L"), dtype=np.uint8)

    if profile.enable_noise_reduction:
        gray = cv2.medianBlur(gray, 3)

    if profile.enable_deskew:
        gray = _deskew(gray)

    if profile.enable_binarization:
        threshold = int(round(profile.binarization_threshold * 255))
        _, gray = cv2.threshold(gray, threshold, 255, cv2.THRESH_BINARY)

    if profile.enable_morphological_operations:
        kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (2, 2))
        gray = cv2.morphologyEx(gray, cv2.MORPH_CLOSE, kernel)

    return Image.fromarray(gray)


# ---------------------------------------------------------------------------
# Word filtering
# ---------------------------------------------------------------------------

_PUNCTUATION = frozenset(".,!?;:'\"-()")


def _filter_characters(word: str, profile: RecognitionProfile) -> str:
    if (profile.enable_number_recognition
            and profile.enable_symbol_recognition
            and profile.enable_punctuation_recognition):
        return word
    kept = []
    for c in word:
        if c.isdigit():
            if profile.enable_number_recognition:
                kept.append(c)
        elif c.isalpha() or c.isspace():
            kept.append(c)
        elif c in _PUNCTUATION:
            if profile.enable_punctuation_recognition:
                kept.append(c)
        elif profile.enable_symbol_recognition:
            kept.append(c)
    return "".join(kept)


def words_to_text(data: dict, profile: RecognitionProfile, scale: float = 1.0) -> str:
    """Assemble text from ``image_to_data`` output.

    Words below ``minimum_confidence`` or outside the text-height band
    (measured in source pixels, hence ``scale``) are dropped. Lines follow
    Tesseract's (block, paragraph, line) order.
    """
    min_conf = profile.minimum_confidence * 100
    separator = " " if profile.enable_word_segmentation else ""
    lines: dict[tuple[int, int, int], list[str]] = {}

    for i, raw_word in enumerate(data.get("text", [])):
        word = (raw_word or "").strip()
        if not word:
            continue
        try:
            conf = float(data["conf"][i])
        except (TypeError, ValueError):
            continue
        if conf < min_conf:
            continue
        height = data["height"][i] / scale
        if height < profile.minimum_text_height or height > profile.maximum_text_height:
            continue
        word = _filter_characters(word, profile)
        if not word:
            continue
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines.setdefault(key, []).append(word)

    return "\n".join(separator.join(words) for words in lines.values())


# ---------------------------------------------------------------------------
# OCR engine (Tesseract)
# ---------------------------------------------------------------------------

_TESSERACT_CONFIG = "--psm 6 --oem 1"
_SINGLE_LINE_CONFIG = "--psm 7 --oem 1"


class OcrEngine(Protocol):
    def recognize(self, image: Image.Image, language: str, profile: RecognitionProfile) -> str:
        ...

    def is_available(self) -> bool:
        ...


class TesseractOcrEngine:
    """Tesseract via pytesseract.

    Uses PSM 6 (single uniform block of text) and OEM 1 (LSTM). Profiles
    with line segmentation turned off are read as a single line (PSM 7).
    """

    def is_available(self) -> bool:
        try:
            pytesseract.get_tesseract_version()
        except (pytesseract.TesseractNotFoundError, OSError) as e:
            logger.error("Tesseract is not available: %s", e)
            return False
        return True

    def recognize(self, image: Image.Image, language: str, profile: RecognitionProfile) -> str:
        prepared = apply_profile(image, profile)
        scale = prepared.height / image.height if image.height else 1.0
        lang = tesseract_language(language or profile.language)
        config = (
            _TESSERACT_CONFIG if profile.enable_line_segmentation else _SINGLE_LINE_CONFIG
        )

        t0 = time.monotonic()
        try:
            data = pytesseract.image_to_data(
                prepared, lang=lang, config=config,
                output_type=pytesseract.Output.DICT,
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError) as e:
            raise RecognitionError(f"Tesseract failed: {e}") from e
        ocr_ms = int((time.monotonic() - t0) * 1000)

        text = words_to_text(data, profile, scale)
        logger.debug(
            "OCR (%dms, lang=%s) raw: %s",
            ocr_ms, lang, repr(text[:200] if text else ""),
        )
        return text

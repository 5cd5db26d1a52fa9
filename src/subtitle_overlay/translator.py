"""Google Cloud Translation (v2 REST) backend.

Thin HTTP wrapper: one POST per call, no caching and no fallback. Callers
(TranslationCache) decide what to do when it fails. Without an API key the
backend reports itself unavailable instead of failing every call.
"""

from __future__ import annotations

import logging
from typing import Protocol

import requests

from subtitle_overlay.errors import TranslationError

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://translation.googleapis.com/language/translate/v2"
DEFAULT_TIMEOUT_S = 10.0


class TranslationBackend(Protocol):
    """What TranslationCache needs from a translation service."""

    @property
    def is_available(self) -> bool:
        ...

    def translate(self, text: str, target_lang: str, source_lang: str | None = None) -> str:
        ...


class GoogleTranslateBackend:
    """Google Translate v2 over ``requests``.

    Region suffixes ("en-US") are reduced to the primary subtag, which is
    what the v2 API accepts, except for Chinese (zh-CN / zh-TW).
    """

    def __init__(
        self,
        api_key: str | None,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT_S,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key or ""
        self._endpoint = endpoint.rstrip("/")
        self._timeout = timeout
        self._session = session if session is not None else requests.Session()

    @property
    def is_available(self) -> bool:
        return bool(self._api_key)

    def translate(self, text: str, target_lang: str, source_lang: str | None = None) -> str:
        payload = {
            "q": text,
            "target": _api_language(target_lang),
            "format": "text",
        }
        if source_lang and source_lang != "auto":
            payload["source"] = _api_language(source_lang)

        data = self._post(self._endpoint, payload)
        try:
            return data["data"]["translations"][0]["translatedText"]
        except (KeyError, IndexError, TypeError) as e:
            raise TranslationError(f"Unexpected translation response: {data!r}") from e

    def detect_language(self, text: str) -> str:
        """Detected language code, "en" when unknown or unavailable."""
        if not text or not text.strip() or not self.is_available:
            return "en"
        try:
            data = self._post(f"{self._endpoint}/detect", {"q": text})
            return data["data"]["detections"][0][0]["language"]
        except (TranslationError, KeyError, IndexError, TypeError) as e:
            logger.error("Language detection failed for %r: %s", text[:80], e)
            return "en"

    def close(self) -> None:
        self._session.close()

    def _post(self, url: str, payload: dict) -> dict:
        if not self.is_available:
            raise TranslationError("Translation API key is not configured")
        try:
            resp = self._session.post(
                url,
                params={"key": self._api_key},
                json=payload,
                timeout=self._timeout,
            )
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise TranslationError(f"Translation request failed: {e}") from e
        except ValueError as e:
            raise TranslationError(f"Translation response is not JSON: {e}") from e


def primary_subtag(language: str) -> str:
    """'en-US' -> 'en', 'zh_Hant' -> 'zh'. Empty stays empty."""
    return language.replace("_", "-").split("-")[0].lower()


def _api_language(language: str) -> str:
    # Chinese needs the script/region part (zh-CN, zh-TW); others do not.
    tag = language.replace("_", "-")
    if primary_subtag(tag) == "zh" and "-" in tag:
        return tag
    return primary_subtag(tag)

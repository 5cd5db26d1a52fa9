"""Test the Google Translate backend against a fake requests session."""

from __future__ import annotations

import pytest
import requests

from subtitle_overlay.errors import TranslationError
from subtitle_overlay.translator import GoogleTranslateBackend, primary_subtag


class FakeResponse:
    def __init__(self, payload, status: int = 200) -> None:
        self._payload = payload
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None) -> None:
        self.response = response
        self.error = error
        self.requests = []

    def post(self, url, params=None, json=None, timeout=None):
        self.requests.append({"url": url, "params": params, "json": json, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self) -> None:
        pass


def translated(text: str) -> dict:
    return {"data": {"translations": [{"translatedText": text}]}}


def test_unavailable_without_api_key():
    backend = GoogleTranslateBackend(None, session=FakeSession())
    assert backend.is_available is False
    with pytest.raises(TranslationError):
        backend.translate("hello", "es")


def test_translate_request_and_response():
    session = FakeSession(FakeResponse(translated("Hola mundo")))
    backend = GoogleTranslateBackend("key", endpoint="https://example.test/v2/", session=session)

    assert backend.translate("Hello world", "es-ES", "en-US") == "Hola mundo"

    request = session.requests[0]
    assert request["url"] == "https://example.test/v2"
    assert request["params"] == {"key": "key"}
    assert request["json"] == {"q": "Hello world", "target": "es", "format": "text", "source": "en"}


def test_translate_auto_source_is_omitted():
    session = FakeSession(FakeResponse(translated("你好")))
    backend = GoogleTranslateBackend("key", session=session)

    backend.translate("hello", "zh-TW", "auto")

    assert session.requests[0]["json"] == {"q": "hello", "target": "zh-TW", "format": "text"}


def test_translate_errors_become_translation_errors():
    cases = [
        FakeSession(error=requests.ConnectionError("offline")),
        FakeSession(FakeResponse({}, status=403)),
        FakeSession(FakeResponse(ValueError("not json"))),
        FakeSession(FakeResponse({"data": {"translations": []}})),
    ]
    for session in cases:
        backend = GoogleTranslateBackend("key", session=session)
        with pytest.raises(TranslationError):
            backend.translate("hello", "es")


def test_detect_language():
    payload = {"data": {"detections": [[{"language": "fr", "confidence": 0.9}]]}}
    session = FakeSession(FakeResponse(payload))
    backend = GoogleTranslateBackend("key", endpoint="https://example.test/v2", session=session)

    assert backend.detect_language("bonjour") == "fr"
    assert session.requests[0]["url"] == "https://example.test/v2/detect"


def test_detect_language_falls_back_to_english():
    assert GoogleTranslateBackend(None, session=FakeSession()).detect_language("bonjour") == "en"
    failing = GoogleTranslateBackend("key", session=FakeSession(error=requests.Timeout("slow")))
    assert failing.detect_language("bonjour") == "en"
    assert failing.detect_language("  ") == "en"


def test_primary_subtag():
    assert primary_subtag("en-US") == "en"
    assert primary_subtag("zh_Hant") == "zh"
    assert primary_subtag("ES") == "es"
    assert primary_subtag("") == ""

"""Test settings persistence and the Qt signal bridge."""

from __future__ import annotations

from PyQt6.QtCore import QSettings

from subtitle_overlay.settings import API_KEY_ENV, AppSettings
from subtitle_overlay.signals import SubtitleSignals
from subtitle_overlay.translator import DEFAULT_ENDPOINT


def ini_settings(tmp_path) -> QSettings:
    return QSettings(str(tmp_path / "settings.ini"), QSettings.Format.IniFormat)


def test_defaults_when_nothing_saved(tmp_path):
    settings = AppSettings.load(ini_settings(tmp_path))
    assert settings == AppSettings()
    assert settings.capture_interval_ms == 1000
    assert settings.cache_ttl_minutes == 60
    assert settings.api_endpoint == DEFAULT_ENDPOINT


def test_save_and_load_round_trip(tmp_path):
    original = AppSettings(
        region=(10, 900, 1280, 120),
        source_language="ja",
        target_language="en",
        capture_interval_ms=750,
        cache_enabled=False,
        cache_ttl_minutes=15,
        cache_sweep_minutes=2,
        small_area_threshold=5000,
        large_area_threshold=200_000,
        stop_timeout_ms=1500,
        api_key="secret",
    )
    original.save(ini_settings(tmp_path))

    assert AppSettings.load(ini_settings(tmp_path)) == original


def test_clearing_region(tmp_path):
    AppSettings(region=(1, 2, 3, 4)).save(ini_settings(tmp_path))
    AppSettings(region=None).save(ini_settings(tmp_path))
    assert AppSettings.load(ini_settings(tmp_path)).region is None


def test_api_key_env_override(monkeypatch):
    settings = AppSettings(api_key="stored")
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    assert settings.effective_api_key == "stored"
    monkeypatch.setenv(API_KEY_ENV, "from-env")
    assert settings.effective_api_key == "from-env"


def test_signals_forward_callbacks():
    signals = SubtitleSignals()
    subtitles = []
    errors = []
    signals.subtitle_ready.connect(lambda original, translated: subtitles.append((original, translated)))
    signals.pipeline_error.connect(lambda stage, message: errors.append((stage, message)))

    signals.subtitle_ready_callback("Hello world", "Hola mundo.")
    signals.pipeline_error_callback("capture", RuntimeError("screen locked"))

    assert subtitles == [("Hello world", "Hola mundo.")]
    assert errors == [("capture", "screen locked")]

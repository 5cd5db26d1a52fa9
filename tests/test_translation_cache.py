"""Test translation caching, expiry, sweeping and degraded mode."""

from __future__ import annotations

import time

from subtitle_overlay.errors import TranslationError
from subtitle_overlay.translation_cache import TranslationCache


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeBackend:
    def __init__(self, available: bool = True, fail: bool = False) -> None:
        self.is_available = available
        self.fail = fail
        self.calls: list[tuple[str, str, str | None]] = []

    def translate(self, text: str, target_lang: str, source_lang: str | None = None) -> str:
        self.calls.append((text, target_lang, source_lang))
        if self.fail:
            raise TranslationError("backend down")
        return f"{target_lang}:{text}#{len(self.calls)}"


def test_hit_does_not_call_backend():
    backend = FakeBackend()
    cache = TranslationCache(backend, clock=FakeClock())

    first = cache.translate("hello", "es", "en")
    second = cache.translate("hello", "es", "en")

    assert first == second == "es:hello#1"
    assert len(backend.calls) == 1
    assert cache.stats.hits == 1


def test_key_is_exact():
    backend = FakeBackend()
    cache = TranslationCache(backend, clock=FakeClock())

    cache.translate("hello", "es", "en")
    cache.translate("Hello", "es", "en")
    cache.translate("hello", "fr", "en")
    cache.translate("hello", "es", None)

    assert len(backend.calls) == 4
    assert len(cache) == 4


def test_expired_entry_calls_backend_once_and_overwrites():
    backend = FakeBackend()
    clock = FakeClock(100.0)
    cache = TranslationCache(backend, ttl_s=10, clock=clock)

    assert cache.translate("hello", "es", "en") == "es:hello#1"
    clock.now = 109.9
    assert cache.translate("hello", "es", "en") == "es:hello#1"
    assert len(backend.calls) == 1

    # Live only while now < expires_at.
    clock.now = 110.0
    assert cache.translate("hello", "es", "en") == "es:hello#2"
    assert len(backend.calls) == 2

    entry = cache.entry("hello", "es", "en")
    assert entry.translated_text == "es:hello#2"
    assert entry.cached_at == 110.0
    assert entry.expires_at == 120.0


def test_blank_text_is_returned_unchanged():
    backend = FakeBackend()
    cache = TranslationCache(backend, clock=FakeClock())

    assert cache.translate("", "es") == ""
    assert cache.translate("   ", "es") == "   "
    assert backend.calls == []


def test_unavailable_backend_degrades_to_source_text():
    backend = FakeBackend(available=False)
    cache = TranslationCache(backend, clock=FakeClock())

    assert cache.translate("hello", "es", "en") == "hello"
    assert backend.calls == []
    assert cache.stats.degraded == 1


def test_backend_failure_degrades_and_is_not_cached():
    backend = FakeBackend(fail=True)
    cache = TranslationCache(backend, clock=FakeClock())

    assert cache.translate("hello", "es", "en") == "hello"
    assert len(cache) == 0

    backend.fail = False
    assert cache.translate("hello", "es", "en") == "es:hello#2"
    assert len(cache) == 1


def test_improve_hook_runs_before_caching():
    backend = FakeBackend()
    cache = TranslationCache(backend, improve=lambda text, lang: text.upper(), clock=FakeClock())

    assert cache.translate("hello", "es", "en") == "ES:HELLO#1"
    assert cache.get("hello", "es", "en") == "ES:HELLO#1"


def test_failing_improve_hook_keeps_raw_translation():
    def improve(text, lang):
        raise ValueError("broken")

    backend = FakeBackend()
    cache = TranslationCache(backend, improve=improve, clock=FakeClock())

    assert cache.translate("hello", "es", "en") == "es:hello#1"
    assert cache.get("hello", "es", "en") == "es:hello#1"


def test_disabled_cache_always_calls_backend():
    backend = FakeBackend()
    cache = TranslationCache(backend, enabled=False, clock=FakeClock())

    cache.translate("hello", "es", "en")
    cache.translate("hello", "es", "en")

    assert len(backend.calls) == 2
    assert len(cache) == 0


def test_sweep_removes_only_expired_entries():
    clock = FakeClock(0.0)
    cache = TranslationCache(FakeBackend(), ttl_s=10, clock=clock)

    cache.put("old", "es", "en", "viejo")
    clock.now = 5.0
    cache.put("new", "es", "en", "nuevo")

    clock.now = 10.0
    assert cache.sweep() == 1
    assert cache.entry("old", "es", "en") is None
    assert cache.get("new", "es", "en") == "nuevo"
    assert cache.stats.evicted == 1

    assert cache.sweep() == 0


def test_get_ignores_expired_entry_before_sweep():
    clock = FakeClock(0.0)
    cache = TranslationCache(FakeBackend(), ttl_s=10, clock=clock)

    cache.put("old", "es", "en", "viejo")
    clock.now = 11.0

    assert cache.get("old", "es", "en") is None
    assert cache.entry("old", "es", "en") is not None


def test_sweeper_thread_evicts_without_access():
    cache = TranslationCache(FakeBackend(), ttl_s=0.05, sweep_interval_s=0.05)
    cache.put("hello", "es", "en", "hola")

    cache.start_sweeper()
    try:
        deadline = time.monotonic() + 3.0
        while len(cache) and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        cache.close(timeout=1.0)

    assert len(cache) == 0
    assert cache.stats.evicted == 1

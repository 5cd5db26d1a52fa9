"""Memoized translation with time-based expiry.

Wraps a TranslationBackend. Entries are keyed by the exact
(text, source_lang, target_lang) tuple -- no normalization, so two OCR reads
that differ only in case are separate entries. An entry is live while
``now < expires_at``; expired entries are treated as absent even before the
background sweep removes them.

The cache is best-effort, not single-flight: two concurrent misses for the
same key both call the backend and the last insert wins.

Translation is never fatal. Blank input, a backend without credentials and
any backend error all return the source text unchanged.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from subtitle_overlay.translator import TranslationBackend

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 60 * 60
DEFAULT_SWEEP_INTERVAL_S = 5 * 60

CacheKey = tuple[str, str | None, str]


@dataclass(frozen=True)
class TranslationCacheEntry:
    translated_text: str
    cached_at: float
    expires_at: float

    def is_live(self, now: float) -> bool:
        return now < self.expires_at


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    degraded: int = 0
    evicted: int = 0


class TranslationCache:
    """Translation front-end with TTL cache and periodic sweep.

    ``improve`` post-processes every successful translation before it is
    cached and returned (see TextCorrectionEngine.improve_translation). If
    it raises, the raw translation is used.
    """

    def __init__(
        self,
        backend: TranslationBackend,
        improve: Callable[[str, str], str] | None = None,
        ttl_s: float = DEFAULT_TTL_S,
        sweep_interval_s: float = DEFAULT_SWEEP_INTERVAL_S,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._improve = improve
        self._ttl_s = ttl_s
        self._sweep_interval_s = sweep_interval_s
        self._enabled = enabled
        self._clock = clock

        self._lock = threading.Lock()
        self._entries: dict[CacheKey, TranslationCacheEntry] = {}
        self._stats = CacheStats()

        self._sweeper: threading.Thread | None = None
        self._stop_sweeper = threading.Event()

    # ------------------------------------------------------------------
    # Translate
    # ------------------------------------------------------------------

    def translate(self, text: str, target_lang: str, source_lang: str | None = None) -> str:
        if not text or not text.strip():
            return text

        if not self._backend.is_available:
            logger.warning("Translation backend not configured, showing source text")
            self._count("degraded")
            return text

        if self._enabled:
            cached = self.get(text, target_lang, source_lang)
            if cached is not None:
                logger.debug("Translation cache hit: %r", text[:80])
                return cached

        try:
            translated = self._backend.translate(text, target_lang, source_lang)
        except Exception as e:
            logger.error("Translation failed, showing source text: %s", e)
            self._count("degraded")
            return text

        if not translated or not translated.strip():
            logger.warning("Translation backend returned nothing for %r", text[:80])
            self._count("degraded")
            return text

        improved = self._apply_improve(translated, target_lang)
        if self._enabled:
            self.put(text, target_lang, source_lang, improved)

        logger.debug("Translated: %r -> %r -> %r", text, translated, improved)
        return improved

    def _apply_improve(self, translated: str, target_lang: str) -> str:
        if self._improve is None:
            return translated
        try:
            improved = self._improve(translated, target_lang)
        except Exception as e:
            logger.error("Translation post-processing failed: %s", e)
            return translated
        return improved or translated

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def get(self, text: str, target_lang: str, source_lang: str | None = None) -> str | None:
        """Live cached translation, or None on miss/expiry."""
        key = (text, source_lang, target_lang)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_live(now):
                self._stats.hits += 1
                return entry.translated_text
            self._stats.misses += 1
        return None

    def put(
        self,
        text: str,
        target_lang: str,
        source_lang: str | None,
        translated_text: str,
    ) -> TranslationCacheEntry:
        now = self._clock()
        entry = TranslationCacheEntry(
            translated_text=translated_text,
            cached_at=now,
            expires_at=now + self._ttl_s,
        )
        with self._lock:
            self._entries[(text, source_lang, target_lang)] = entry
        return entry

    def entry(self, text: str, target_lang: str, source_lang: str | None = None) -> TranslationCacheEntry | None:
        """Raw entry regardless of expiry (for inspection)."""
        with self._lock:
            return self._entries.get((text, source_lang, target_lang))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(**vars(self._stats))

    def _count(self, name: str) -> None:
        with self._lock:
            setattr(self._stats, name, getattr(self._stats, name) + 1)

    # ------------------------------------------------------------------
    # Expiry sweep
    # ------------------------------------------------------------------

    def sweep(self) -> int:
        """Remove entries with ``expires_at <= now``. Returns the count."""
        now = self._clock()
        with self._lock:
            snapshot = list(self._entries.items())

        expired = [(k, e) for k, e in snapshot if e.expires_at <= now]
        if not expired:
            return 0

        removed = 0
        with self._lock:
            for key, entry in expired:
                # Skip keys that were re-inserted since the snapshot.
                if self._entries.get(key) is entry:
                    del self._entries[key]
                    removed += 1
            self._stats.evicted += removed

        logger.debug("Swept %d expired translation(s)", removed)
        return removed

    def start_sweeper(self) -> None:
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop_sweeper.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop, name="translation-cache-sweeper", daemon=True,
        )
        self._sweeper.start()
        logger.debug("Cache sweeper started (every %.0fs)", self._sweep_interval_s)

    def close(self, timeout: float = 2.0) -> None:
        """Stop the sweeper thread."""
        self._stop_sweeper.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout)
            self._sweeper = None

    def _sweep_loop(self) -> None:
        while not self._stop_sweeper.wait(self._sweep_interval_s):
            try:
                self.sweep()
            except Exception as e:
                logger.error("Cache sweep failed: %s", e, exc_info=True)

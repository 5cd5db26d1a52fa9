"""Clean and repair OCR output before it is translated and displayed.

Three operations:
1. clean() -- generic normalization: whitespace, punctuation spacing,
   quotes, non-printable characters, sentence capitalization
2. repair() -- OCR-specific correction: whole-word substitution table,
   glyph confusions (digits inside words, "rn"/"m", "cl"/"d", ...) and
   fuzzy dictionary matching by normalized Levenshtein similarity
3. improve_translation() -- light grammar/readability pass applied to
   translated text

All tables are built once per engine and never mutated afterwards, so a
single engine can be shared by the capture thread and any other caller.
Every operation is best-effort: on an internal error the input is returned
unchanged.
"""

from __future__ import annotations

import logging
import re
from types import MappingProxyType
from typing import Iterable, Mapping

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Correction tuning
# ---------------------------------------------------------------------------

# Minimum similarity (exclusive) for a fuzzy dictionary replacement.
SIMILARITY_THRESHOLD = 0.7
# Words shorter than this are never corrected (function words, abbreviations).
MIN_CORRECTION_LENGTH = 3
# Upper bound on normalization passes; two are enough for real input.
_MAX_NORMALIZE_PASSES = 5


# ---------------------------------------------------------------------------
# Reference tables
# ---------------------------------------------------------------------------

# Whole-word misspellings. Takes priority over fuzzy matching.
WORD_REPLACEMENTS: dict[str, str] = {
    "teh": "the", "adn": "and", "thier": "their",
    "recieve": "receive", "seperate": "separate",
    "occured": "occurred", "begining": "beginning",
    "neccessary": "necessary", "accomodate": "accommodate",
    "definately": "definitely", "embarass": "embarrass",
    "existance": "existence", "occassion": "occasion",
    "priviledge": "privilege", "sucess": "success",
    "tommorow": "tomorrow", "untill": "until",
    "wierd": "weird", "whereever": "wherever",
}

# Digits and symbols OCR produces in place of letters inside words.
DIGIT_GLYPHS: dict[str, str] = {
    "0": "o", "1": "l", "5": "s", "8": "b", "|": "l",
}

# Substring confusions (seen -> intended). A variant is only accepted when
# it turns the word into a dictionary word. Order is the lookup order.
SUBSTRING_CONFUSIONS: tuple[tuple[str, str], ...] = (
    ("rn", "m"),
    ("m", "rn"),
    ("cl", "d"),
    ("d", "cl"),
    ("d", "el"),
    ("vv", "w"),
    ("w", "vv"),
    ("nn", "m"),
    ("li", "h"),
    ("ii", "u"),
    ("l", "i"),
    ("i", "l"),
    ("c", "e"),
    ("e", "c"),
)

# Common English words. Iteration order decides fuzzy-match ties.
COMMON_WORDS: tuple[str, ...] = (
    "the", "and", "is", "in", "to", "of", "a", "that", "it", "with", "he",
    "was", "for", "on", "are", "as", "you", "do", "at", "this", "but", "his",
    "by", "from", "they", "we", "say", "her", "she", "or", "an", "will", "my",
    "one", "all", "would", "there", "their", "what", "so", "up", "out", "if",
    "about", "who", "get", "which", "go", "me", "when", "make", "can", "like",
    "time", "no", "just", "him", "know", "take", "people", "into", "year",
    "your", "good", "some", "could", "them", "see", "other", "than", "then",
    "now", "look", "only", "come", "its", "over", "think", "also", "back",
    "after", "use", "two", "how", "our", "work", "first", "well", "way",
    "even", "new", "want", "because", "any", "these", "give", "day", "most",
    "us", "here", "should", "try", "tell", "call", "find", "ask", "need",
    "feel", "become", "leave", "put", "mean", "keep", "let", "begin", "seem",
    "help", "talk", "turn", "start", "might", "show", "part", "face", "own",
    "place", "where", "little", "round", "man", "came", "every", "under",
    "name", "very", "through", "form", "sentence", "great", "low", "line",
    "differ", "cause", "much", "before", "move", "right", "boy", "old", "too",
    "same", "does", "set", "three", "air", "play", "small", "end", "home",
    "read", "hand", "port", "large", "spell", "add", "land", "must", "big",
    "high", "such", "follow", "act", "why",
    # Subtitle vocabulary
    "hello", "world", "yes", "okay", "please", "thank", "thanks", "sorry",
    "what's", "where", "going", "been", "have", "has", "had", "were", "did",
    "not", "don't", "can't", "won't", "never", "always", "again", "still",
    "here's", "there's", "let's", "really", "something", "nothing",
    "everything", "anything", "someone", "everyone", "nobody", "together",
    "tonight", "today", "tomorrow", "morning", "night", "water", "house",
    "friend", "family", "mother", "father", "brother", "sister", "money",
    "love", "life", "live", "dead", "kill", "stop", "wait", "listen", "understand",
    "remember", "believe", "happen", "happened", "anyone", "maybe", "sure",
    "long", "last", "next", "down", "off", "away", "around", "without",
)


# ---------------------------------------------------------------------------
# Compiled regex patterns
# ---------------------------------------------------------------------------

# Any whitespace run except newlines.
_RE_HSPACE = re.compile(r"[^\S\n]+")

# Space before punctuation / missing space after it.
_RE_SPACE_BEFORE_PUNCT = re.compile(r"[^\S\n]+([.,!?;:])")
_RE_SPACE_AFTER_PUNCT = re.compile(r"([.,!?;:])[^\S\n]*(?=[A-Za-z])")

# "!!!" -> "!", ",," -> ","
_RE_REPEAT_TERMINAL = re.compile(r"([.!?])\1+")
_RE_REPEAT_SEPARATOR = re.compile(r"([,;:])\1+")

_RE_REPEAT_DQUOTE = re.compile(r'"{2,}')
_RE_REPEAT_SQUOTE = re.compile(r"'{2,}")

# Anything outside printable ASCII except newline.
_RE_NON_PRINTABLE = re.compile(r"[^\x20-\x7e\n]")

_RE_BLANK_LINES = re.compile(r"\n\s*\n")

_RE_SENTENCE_START = re.compile(r"(\A|[.!?][ \n]+)([a-z])")
_RE_PRONOUN_I = re.compile(r"\bi\b")

# Leading punctuation, word core, trailing punctuation.
_RE_TOKEN = re.compile(r"^([^\w|]*)(.*?)([^\w|]*)$", re.DOTALL)

# Translation grammar fixes (English targets only).
_GRAMMAR_FIXES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b(am|is|are)\s+(am|is|are)\b"), "is"),
    (re.compile(r"\b(have|has)\s+(have|has)\b"), "has"),
    (re.compile(r"\b(do|does)\s+(do|does)\b"), "does"),
    (re.compile(r"\b(he|she)\s+(am|are)\b"), r"\1 is"),
    (re.compile(r"\b(I)\s+(is|are)\b"), r"\1 am"),
    (re.compile(r"\b(you|we|they)\s+(is)\b"), r"\1 are"),
)

# Typographic quotes -> canonical ASCII quote/apostrophe.
_QUOTE_TABLE = str.maketrans({
    "“": '"',  # left double quotation
    "”": '"',  # right double quotation
    "„": '"',  # double low quotation
    "‟": '"',  # double high reversed
    "«": '"',  # left guillemet
    "»": '"',  # right guillemet
    "″": '"',  # double prime
    "‘": "'",  # left single quotation
    "’": "'",  # right single quotation
    "‚": "'",  # single low quotation
    "‛": "'",  # single high reversed
    "′": "'",  # prime
    "´": "'",  # acute accent
    "`": "'",
})


# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------

def levenshtein(a: str, b: str) -> int:
    """Edit distance (insert, delete, substitute; all cost 1)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Normalized similarity: 1 - distance / max(len(a), len(b))."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1.0 - levenshtein(a, b) / max(len(a), len(b))


def _match_capitalization(original: str, replacement: str) -> str:
    if original and replacement and original[0].isupper():
        return replacement[0].upper() + replacement[1:]
    return replacement


def _split_token(token: str) -> tuple[str, str, str]:
    """Split a token into (leading punctuation, core, trailing punctuation)."""
    m = _RE_TOKEN.match(token)
    if not m:
        return "", token, ""
    return m.group(1), m.group(2), m.group(3)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class TextCorrectionEngine:
    """Normalizes and repairs recognized text.

    ``dictionary`` order matters: fuzzy matches with equal scores resolve to
    the word that comes first.
    """

    def __init__(
        self,
        dictionary: Iterable[str] | None = None,
        word_replacements: Mapping[str, str] | None = None,
    ) -> None:
        words = COMMON_WORDS if dictionary is None else dictionary
        replacements = WORD_REPLACEMENTS if word_replacements is None else word_replacements

        self._dictionary: tuple[str, ...] = tuple(dict.fromkeys(w.lower() for w in words))
        self._dictionary_set = frozenset(self._dictionary)
        self._word_replacements = MappingProxyType(
            {k.lower(): v for k, v in replacements.items()}
        )
        self._digit_table = str.maketrans(DIGIT_GLYPHS)

    @property
    def dictionary(self) -> tuple[str, ...]:
        return self._dictionary

    @property
    def word_replacements(self) -> Mapping[str, str]:
        return self._word_replacements

    # ------------------------------------------------------------------
    # Clean
    # ------------------------------------------------------------------

    def clean(self, raw: str, source_lang: str = "en") -> str:
        """Generic normalization. ``clean(clean(t)) == clean(t)``."""
        if not raw or not raw.strip():
            return ""
        try:
            text = self._normalize(raw)
            text = self._fix_capitalization(text)
        except Exception as e:
            logger.error("Text cleaning failed (%s), keeping original: %s", source_lang, e)
            return raw
        logger.debug("Cleaned: %r -> %r", raw, text)
        return text

    def _normalize(self, text: str, ascii_only: bool = True) -> str:
        # Removing a character can expose new whitespace or punctuation
        # spacing issues, so repeat until nothing changes.
        for _ in range(_MAX_NORMALIZE_PASSES):
            updated = self._normalize_once(text, ascii_only)
            if updated == text:
                break
            text = updated
        return text

    def _normalize_once(self, text: str, ascii_only: bool) -> str:
        text = self._collapse_whitespace(text)
        text = self._fix_punctuation_spacing(text)
        text = self._fix_repeated_punctuation(text)
        if ascii_only:
            text = _RE_NON_PRINTABLE.sub("", text)
        text = _RE_BLANK_LINES.sub("\n", text)
        return text.strip()

    @staticmethod
    def _collapse_whitespace(text: str) -> str:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        lines = (_RE_HSPACE.sub(" ", line).strip() for line in text.split("\n"))
        return "\n".join(lines).strip()

    @staticmethod
    def _fix_punctuation_spacing(text: str) -> str:
        text = _RE_SPACE_BEFORE_PUNCT.sub(r"\1", text)
        return _RE_SPACE_AFTER_PUNCT.sub(r"\1 ", text)

    @staticmethod
    def _fix_repeated_punctuation(text: str) -> str:
        text = _RE_REPEAT_TERMINAL.sub(r"\1", text)
        text = _RE_REPEAT_SEPARATOR.sub(r"\1", text)
        text = text.translate(_QUOTE_TABLE)
        text = _RE_REPEAT_DQUOTE.sub('"', text)
        return _RE_REPEAT_SQUOTE.sub("'", text)

    @staticmethod
    def _fix_capitalization(text: str) -> str:
        text = _RE_SENTENCE_START.sub(lambda m: m.group(1) + m.group(2).upper(), text)
        return _RE_PRONOUN_I.sub("I", text)

    # ------------------------------------------------------------------
    # Repair
    # ------------------------------------------------------------------

    def repair(self, raw: str, source_lang: str = "en") -> str:
        """OCR-specific correction. Returns ``raw`` unchanged on any failure."""
        if not raw or not raw.strip():
            return ""
        try:
            # Accented and non-Latin letters are kept.
            text = self._normalize(raw, ascii_only=False)
            lines = [self._repair_line(line) for line in text.split("\n")]
            repaired = self._fix_punctuation_spacing("\n".join(lines))
        except Exception as e:
            logger.error("OCR repair failed (%s), keeping original: %s", source_lang, e)
            return raw
        if repaired != raw:
            logger.debug("Repaired: %r -> %r", raw, repaired)
        return repaired

    def _repair_line(self, line: str) -> str:
        fixed = []
        for token in line.split(" "):
            lead, core, trail = _split_token(token)
            fixed.append(lead + self._fix_word(core) + trail)
        return " ".join(fixed)

    def _fix_word(self, word: str) -> str:
        if len(word) < MIN_CORRECTION_LENGTH:
            return word

        lower = word.lower()
        replacement = self._word_replacements.get(lower)
        if replacement is None:
            if lower in self._dictionary_set or not lower.isascii():
                return word
            replacement = self._fix_glyphs(lower)
        if replacement is None or replacement == lower:
            return word
        return _match_capitalization(word, replacement)

    def _fix_glyphs(self, lower: str) -> str | None:
        """Try glyph confusions, then fuzzy matching. None if nothing fits."""
        candidate = self._swap_digit_glyphs(lower)
        if candidate in self._dictionary_set:
            return candidate

        variant = self._substring_variant(candidate)
        if variant is not None:
            return variant

        if candidate.isalpha():
            return self.find_similar_word(candidate)
        return None

    def _swap_digit_glyphs(self, word: str) -> str:
        letters = sum(1 for c in word if c.isalpha())
        glyphs = sum(1 for c in word if c in DIGIT_GLYPHS)
        # "wor1d" is a word with a misread letter; "1990" and "3rd" are not.
        if glyphs == 0 or letters <= glyphs:
            return word
        return word.translate(self._digit_table)

    def _substring_variant(self, word: str) -> str | None:
        for seen, intended in SUBSTRING_CONFUSIONS:
            start = word.find(seen)
            while start != -1:
                variant = word[:start] + intended + word[start + len(seen):]
                if variant in self._dictionary_set:
                    return variant
                start = word.find(seen, start + 1)
        return None

    def find_similar_word(self, word: str) -> str | None:
        """Best dictionary match with similarity above the threshold.

        Linear scan in dictionary order; a later candidate only wins with a
        strictly higher score.
        """
        if len(word) < MIN_CORRECTION_LENGTH:
            return None

        best_match: str | None = None
        best_score = 0.0
        for candidate in self._dictionary:
            if len(candidate) < MIN_CORRECTION_LENGTH:
                continue
            score = similarity(word, candidate)
            if score > SIMILARITY_THRESHOLD and score > best_score:
                best_score = score
                best_match = candidate
        return best_match

    # ------------------------------------------------------------------
    # Translation post-processing
    # ------------------------------------------------------------------

    def improve_translation(self, text: str, target_lang: str = "en") -> str:
        """Grammar/readability pass for translated text. Never raises."""
        if not text or not text.strip():
            return ""
        try:
            improved = text.strip()
            if target_lang.lower().startswith("en"):
                for pattern, repl in _GRAMMAR_FIXES:
                    improved = pattern.sub(repl, improved)
            improved = _RE_REPEAT_TERMINAL.sub(r"\1", improved)
            improved = _RE_REPEAT_SEPARATOR.sub(r"\1", improved)
            improved = self._collapse_whitespace(improved)
            if improved and improved[-1].isascii() and improved[-1].isalnum():
                improved += "."
        except Exception as e:
            logger.error("Translation improvement failed, keeping original: %s", e)
            return text
        if improved != text:
            logger.debug("Improved translation: %r -> %r", text, improved)
        return improved

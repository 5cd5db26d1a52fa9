"""Test OCR text cleaning, repair and translation post-processing."""

from __future__ import annotations

import pytest

from subtitle_overlay.text_cleaner import (
    SIMILARITY_THRESHOLD,
    TextCorrectionEngine,
    levenshtein,
    similarity,
)


@pytest.fixture
def engine() -> TextCorrectionEngine:
    return TextCorrectionEngine()


# ---------------------------------------------------------------------------
# clean()
# ---------------------------------------------------------------------------

CLEAN_SAMPLES = [
    "hello   world !!",
    "i think so.yes it is",
    "  “quoted”   text ,and more…  ",
    "first line\n\n\n  second   line ??",
    "wait\t\tfor it...i said wait!!!",
    "café ,  naïve",
    "a",
    "what ?!?! really ,, ok",
]


def test_clean_is_idempotent(engine):
    for sample in CLEAN_SAMPLES:
        once = engine.clean(sample)
        assert engine.clean(once) == once, sample


def test_clean_expected_output(engine):
    cases = [
        ("hello   world !!", "Hello world!"),
        ("i think so.yes", "I think so. Yes"),
        ("he said “hi”", 'He said "hi"'),
        ("line one\n\n\nline two", "Line one\nline two"),
        ("ok ,  fine", "Ok, fine"),
    ]
    for raw, expected in cases:
        assert engine.clean(raw) == expected, raw


def test_clean_blank_input(engine):
    assert engine.clean("") == ""
    assert engine.clean("   \n\t ") == ""


def test_clean_strips_non_printable(engine):
    assert engine.clean("hello \x07world") == "Hello world"
    assert engine.clean("h\u00e9llo w\u00f6rld") == "Hllo wrld"


def test_clean_returns_raw_on_internal_error(engine, monkeypatch):
    def boom(text):
        raise RuntimeError("broken")

    monkeypatch.setattr(engine, "_normalize", boom)
    assert engine.clean("  some  text ") == "  some  text "


# ---------------------------------------------------------------------------
# repair()
# ---------------------------------------------------------------------------

def test_repair_blank_returns_empty(engine, monkeypatch):
    def fail(word):
        raise AssertionError("dictionary search must not run for blank input")

    monkeypatch.setattr(engine, "find_similar_word", fail)
    assert engine.repair("") == ""
    assert engine.repair("  \n ") == ""


def test_repair_word_replacements(engine):
    assert engine.repair("teh") == "the"
    assert engine.repair("Teh man adn boy") == "The man and boy"


def test_repair_replacement_table_beats_fuzzy_match(engine):
    # "teh" is one edit from several dictionary words; the table still wins.
    assert engine.repair("teh end") == "the end"


def test_repair_short_words_untouched(engine):
    for text in ["a", "xz", "q7", "i", "Zq", "rn", "0k"]:
        assert engine.repair(text) == text


def test_repair_dictionary_words_kept(engine):
    assert engine.repair("The world is here") == "The world is here"


def test_repair_glyph_confusions(engine):
    assert engine.repair("Hdlo wor1d") == "Hello world"
    assert engine.repair("rnake") == "make"
    assert engine.repair("vvater") == "water"
    assert engine.repair("0ne") == "one"


def test_repair_numbers_untouched(engine):
    assert engine.repair("1990") == "1990"
    assert engine.repair("3rd") == "3rd"


def test_repair_keeps_punctuation_and_capitalization(engine):
    assert engine.repair("Wor1d!") == "World!"
    assert engine.repair('"Hdlo," she said') == '"Hello," she said'


def test_repair_does_not_touch_unknown_words(engine):
    assert engine.repair("xylophone") == "xylophone"


def test_repair_keeps_non_latin_text(engine):
    cases = [
        ("Привет мир", "ru"),
        ("¿Qué pasó, señor?", "es"),
        ("你好，世界", "zh"),
    ]
    for text, lang in cases:
        assert engine.repair(text, lang) == text


def test_repair_still_normalizes_spacing_in_non_latin_text(engine):
    assert engine.repair("Привет   мир ,  друг", "ru") == "Привет мир, друг"


def test_repair_returns_raw_on_internal_error(engine, monkeypatch):
    def boom(line):
        raise RuntimeError("broken")

    monkeypatch.setattr(engine, "_repair_line", boom)
    assert engine.repair("teh  wor1d") == "teh  wor1d"


# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------

def test_levenshtein():
    cases = [
        ("", "", 0),
        ("abc", "", 3),
        ("", "abc", 3),
        ("kitten", "sitting", 3),
        ("flaw", "lawn", 2),
        ("same", "same", 0),
    ]
    for a, b, expected in cases:
        assert levenshtein(a, b) == expected, (a, b)


def test_similarity_is_symmetric():
    pairs = [("hello", "helo"), ("world", "wor1d"), ("a", "abc"), ("", "x"), ("night", "nacht")]
    for a, b in pairs:
        assert similarity(a, b) == similarity(b, a)


def test_similarity_bounds():
    assert similarity("same", "same") == 1.0
    assert similarity("", "abc") == 0.0
    assert similarity("abc", "xyz") == 0.0
    assert similarity("cart", "carts") == pytest.approx(0.8)


def test_find_similar_word_threshold():
    engine = TextCorrectionEngine(dictionary=["cart", "card"])
    assert engine.find_similar_word("carts") == "cart"
    # 1 - 1/3 is below the threshold
    assert similarity("cab", "car") < SIMILARITY_THRESHOLD
    assert engine.find_similar_word("cab") is None


def test_find_similar_word_tie_goes_to_first():
    assert TextCorrectionEngine(dictionary=["bark", "dark"]).find_similar_word("lark") == "bark"
    assert TextCorrectionEngine(dictionary=["dark", "bark"]).find_similar_word("lark") == "dark"


def test_engine_tables_are_read_only(engine):
    with pytest.raises(TypeError):
        engine.word_replacements["teh"] = "tea"  # type: ignore[index]
    assert isinstance(engine.dictionary, tuple)


# ---------------------------------------------------------------------------
# improve_translation()
# ---------------------------------------------------------------------------

def test_improve_translation_english_grammar(engine):
    cases = [
        ("he are happy", "he is happy."),
        ("I is here!!!", "I am here!"),
        ("they is late", "they are late."),
        ("it is is fine", "it is fine."),
    ]
    for text, expected in cases:
        assert engine.improve_translation(text, "en") == expected, text


def test_improve_translation_other_languages(engine):
    assert engine.improve_translation("Hola   mundo", "es") == "Hola mundo."
    assert engine.improve_translation("¿Qué??", "es") == "¿Qué?"


def test_improve_translation_returns_text_on_error(engine, monkeypatch):
    def boom(text):
        raise RuntimeError("broken")

    monkeypatch.setattr(engine, "_collapse_whitespace", boom)
    assert engine.improve_translation("he are  here", "en") == "he are  here"

from __future__ import annotations

import pytest

from stroop_treadmill.speech import (
    NullSpeechRecognizer,
    SpeechAlternative,
    SpeechResult,
    map_speech_to_color,
    normalize_speech,
)


def test_normalize_lowercases_trims_and_strips_punctuation() -> None:
    assert normalize_speech("  Blue!  ") == "blue"
    assert normalize_speech("The answer is... GREEN.") == "the answer is green"
    assert normalize_speech(None) == ""


@pytest.mark.parametrize(
    ("transcript", "expected"),
    [
        ("red", "RED"),
        ("Read", "RED"),
        ("blew", "BLUE"),
        ("grain", "GREEN"),
        ("yello", "YELLOW"),
        ("YELLOW.", "YELLOW"),
    ],
)
def test_exact_and_homophone_matches(transcript: str, expected: str) -> None:
    assert map_speech_to_color(transcript) == expected


def test_phrase_containing_a_colour_word_is_accepted() -> None:
    assert map_speech_to_color("the answer is blue") == "BLUE"
    assert map_speech_to_color("green I think") == "GREEN"


def test_colour_embedded_inside_another_word_is_not_accepted() -> None:
    assert map_speech_to_color("blueberry") is None
    assert map_speech_to_color("bored") is None


def test_no_match_returns_none() -> None:
    assert map_speech_to_color("") is None
    assert map_speech_to_color("purple") is None


def test_top_transcript_uses_first_alternative() -> None:
    result = SpeechResult(
        alternatives=(SpeechAlternative("red", 0.8), SpeechAlternative("blue", 0.1)),
    )
    assert result.top_transcript == "red"
    assert SpeechResult(alternatives=()).top_transcript == ""


def test_null_recognizer_is_unavailable_and_inert() -> None:
    rec = NullSpeechRecognizer()
    assert rec.available is False
    rec.start(on_result=lambda r: None, on_error=lambda m: None, on_end=lambda: None)
    rec.stop()

"""Speech input capability and transcript-to-colour mapping.

The recognizer itself is an external collaborator. The engine only needs the
three observable events (result, error, end) and an idempotent stop().
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class SpeechAlternative:
    transcript: str
    confidence: float = 0.0


@dataclass(frozen=True, slots=True)
class SpeechResult:
    alternatives: tuple[SpeechAlternative, ...]

    @property
    def top_transcript(self) -> str:
        if not self.alternatives:
            return ""
        return self.alternatives[0].transcript


ResultHandler = Callable[[SpeechResult], None]
ErrorHandler = Callable[[str], None]
EndHandler = Callable[[], None]


class SpeechRecognizer(Protocol):
    @property
    def available(self) -> bool: ...

    def start(self, *, on_result: ResultHandler, on_error: ErrorHandler, on_end: EndHandler) -> None:
        """Begin one listening session. May raise if the platform rejects the call."""
        ...

    def stop(self) -> None:
        """Stop listening. Stopping an inactive recognizer is a no-op."""
        ...

    def poll(self) -> None:
        """Deliver queued events on the calling thread. Called once per frame."""
        ...


class NullSpeechRecognizer:
    """Recognizer used when no speech backend is present: never listens."""

    @property
    def available(self) -> bool:
        return False

    def start(self, *, on_result: ResultHandler, on_error: ErrorHandler, on_end: EndHandler) -> None:
        return

    def stop(self) -> None:
        return

    def poll(self) -> None:
        return


# Order matters: the first matching entry wins.
SPEECH_COLOR_MAP: tuple[tuple[str, str], ...] = (
    ("red", "RED"),
    ("read", "RED"),
    ("blue", "BLUE"),
    ("blew", "BLUE"),
    ("green", "GREEN"),
    ("grain", "GREEN"),
    ("yellow", "YELLOW"),
    ("yello", "YELLOW"),
)

_PUNCT_RE = re.compile(r"[^\w\s-]")
_SPACE_RE = re.compile(r"\s+")


def normalize_speech(text: str | None) -> str:
    s = (text or "").lower().strip()
    s = _PUNCT_RE.sub("", s)
    return _SPACE_RE.sub(" ", s).strip()


def map_speech_to_color(transcript: str | None) -> str | None:
    """Map a transcript to a canonical colour label, or None.

    Exact match wins; otherwise a table word appearing as a whole word in a
    phrase ("the answer is blue") is accepted.
    """

    t = normalize_speech(transcript)
    if not t:
        return None
    for key, label in SPEECH_COLOR_MAP:
        if t == key:
            return label
    words = set(t.split(" "))
    for key, label in SPEECH_COLOR_MAP:
        if key in words:
            return label
    return None

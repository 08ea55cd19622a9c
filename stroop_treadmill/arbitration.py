from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .clock import Clock
from .speech import SpeechRecognizer, SpeechResult, map_speech_to_color

logger = logging.getLogger(__name__)


class ChoiceId(str, Enum):
    LEFT = "left"
    RIGHT = "right"


class ResponseSource(str, Enum):
    TAP = "tap"
    SPEECH = "speech"


@dataclass(frozen=True, slots=True)
class Resolution:
    label: str
    source: ResponseSource
    at_s: float


class ChoiceControls(Protocol):
    def set_enabled(self, enabled: bool) -> None: ...


class ResponseArbitrator:
    """Accept exactly one response per trial from two racing sources.

    Tap and speech both funnel into _resolve(), which checks and sets the
    ``answered`` latch before anything else happens. All events must be
    dispatched on the engine's thread; the latch is the only exclusion.

    Each speech session is tagged with an epoch. Callbacks from an older
    session (previous trial, or one that was stopped) are ignored.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        controls: ChoiceControls,
        on_resolved: Callable[[Resolution], None],
        recognizer: SpeechRecognizer | None = None,
    ) -> None:
        self._clock = clock
        self._controls = controls
        self._on_resolved = on_resolved
        self._recognizer = recognizer

        self._answered = False
        self._armed = False
        self._choices: dict[ChoiceId, str] = {}

        self._speech_epoch = 0
        self._speech_active = False
        self._speech_result_seen = False

    @property
    def answered(self) -> bool:
        return self._answered

    @property
    def armed(self) -> bool:
        return self._armed

    @property
    def listening(self) -> bool:
        return self._speech_active

    def reset(self) -> None:
        """Prepare for a new trial: clear the latch and drop any armed state."""

        self.stop_speech()
        self._answered = False
        self._armed = False
        self._choices = {}

    def arm(self, *, choice_left: str, choice_right: str, voice: bool) -> bool:
        """Open the trial for responses. Returns False if already armed or answered."""

        if self._armed or self._answered:
            logger.debug("Ignoring re-arm of an armed or answered trial")
            return False

        self._armed = True
        self._choices = {ChoiceId.LEFT: choice_left, ChoiceId.RIGHT: choice_right}
        self._controls.set_enabled(True)
        if voice:
            self._start_speech()
        return True

    def disarm(self) -> None:
        self._armed = False
        self._choices = {}
        self._controls.set_enabled(False)
        self.stop_speech()

    def tap(self, choice: ChoiceId) -> bool:
        if not self._armed:
            return False
        label = self._choices.get(ChoiceId(choice), "")
        if not label:
            return False
        return self._resolve(label, ResponseSource.TAP)

    def stop_speech(self) -> None:
        was_active = self._speech_active
        self._speech_active = False
        self._speech_epoch += 1
        if not was_active or self._recognizer is None:
            return
        try:
            self._recognizer.stop()
        except Exception:
            logger.debug("Speech recognizer stop() failed", exc_info=True)

    def poll_speech(self) -> None:
        """Let the recognizer deliver queued events on this thread."""
        if self._recognizer is not None:
            self._recognizer.poll()

    def _resolve(self, label: str, source: ResponseSource) -> bool:
        at_s = self._clock.now()
        if self._answered:
            logger.debug("Discarding late %s response %r", source.value, label)
            return False
        self._answered = True
        self._controls.set_enabled(False)
        self.stop_speech()
        self._armed = False
        self._on_resolved(Resolution(label=label, source=source, at_s=at_s))
        return True

    def _start_speech(self) -> None:
        # Never let a previous session leak into this trial.
        self.stop_speech()

        recognizer = self._recognizer
        if recognizer is None or not recognizer.available:
            return

        epoch = self._speech_epoch
        self._speech_active = True
        self._speech_result_seen = False
        try:
            recognizer.start(
                on_result=lambda result: self._on_speech_result(epoch, result),
                on_error=lambda message: self._on_speech_error(epoch, message),
                on_end=lambda: self._on_speech_end(epoch),
            )
        except Exception:
            logger.debug("Speech recognizer rejected start(); continuing with tap only", exc_info=True)
            self.stop_speech()

    def _on_speech_result(self, epoch: int, result: SpeechResult) -> None:
        if epoch != self._speech_epoch or not self._armed or self._answered:
            return
        if self._speech_result_seen:
            return
        self._speech_result_seen = True

        label = map_speech_to_color(result.top_transcript)
        if label is None:
            logger.debug("Unmapped transcript %r; tap remains available", result.top_transcript)
            return
        self._resolve(label, ResponseSource.SPEECH)

    def _on_speech_error(self, epoch: int, message: str) -> None:
        if epoch != self._speech_epoch:
            return
        logger.debug("Speech error: %s", message)
        self.stop_speech()

    def _on_speech_end(self, epoch: int) -> None:
        if epoch != self._speech_epoch:
            return
        # No automatic restart; tap stays open.
        self._speech_active = False

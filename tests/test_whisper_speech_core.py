from __future__ import annotations

import threading
from dataclasses import dataclass

import pytest

from stroop_treadmill import whisper_speech
from stroop_treadmill.cognitive_core import Phase
from stroop_treadmill.config import Participant, StroopConfig, StroopSettings
from stroop_treadmill.speech import NullSpeechRecognizer, SpeechResult
from stroop_treadmill.stroop_test import StroopTest
from stroop_treadmill.whisper_speech import WhisperSpeechRecognizer, build_speech_recognizer


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


class Events:
    def __init__(self) -> None:
        self.seen: list[tuple[str, object]] = []
        self.threads: set[int] = set()

    def handlers(self) -> dict[str, object]:
        return {
            "on_result": lambda r: self._add("result", r.top_transcript),
            "on_error": lambda m: self._add("error", m),
            "on_end": lambda: self._add("end", None),
        }

    def _add(self, kind: str, payload: object) -> None:
        self.threads.add(threading.get_ident())
        self.seen.append((kind, payload))


def _silence(window_s: float, stop: threading.Event) -> list[float]:
    return [0.0] * 16


def test_result_is_only_delivered_from_poll_on_the_calling_thread() -> None:
    rec = WhisperSpeechRecognizer(capture=_silence, transcribe=lambda audio: "blue", window_s=0.1)
    ev = Events()

    rec.start(**ev.handlers())  # type: ignore[arg-type]
    rec.join(2.0)
    assert ev.seen == []

    rec.poll()
    assert ev.seen == [("result", "blue"), ("end", None)]
    assert ev.threads == {threading.get_ident()}


def test_capture_failure_reports_error_then_end() -> None:
    def broken(window_s: float, stop: threading.Event) -> list[float]:
        raise RuntimeError("no input device")

    rec = WhisperSpeechRecognizer(capture=broken, transcribe=lambda audio: "red")
    ev = Events()
    rec.start(**ev.handlers())  # type: ignore[arg-type]
    rec.join(2.0)
    rec.poll()

    assert ev.seen == [("error", "no input device"), ("end", None)]


def test_empty_transcript_only_ends_the_session() -> None:
    rec = WhisperSpeechRecognizer(capture=_silence, transcribe=lambda audio: "")
    ev = Events()
    rec.start(**ev.handlers())  # type: ignore[arg-type]
    rec.join(2.0)
    rec.poll()

    assert ev.seen == [("end", None)]


def test_stopped_session_delivers_nothing() -> None:
    def until_stopped(window_s: float, stop: threading.Event) -> None:
        stop.wait(2.0)
        return None

    rec = WhisperSpeechRecognizer(capture=until_stopped, transcribe=lambda audio: "green")
    ev = Events()
    rec.start(**ev.handlers())  # type: ignore[arg-type]
    rec.stop()
    rec.join(2.0)
    rec.poll()

    assert ev.seen == []


def test_restart_drops_events_from_the_previous_session() -> None:
    gate = threading.Event()

    def gated(window_s: float, stop: threading.Event) -> list[float]:
        gate.wait(2.0)
        return [0.0]

    rec = WhisperSpeechRecognizer(capture=gated, transcribe=lambda audio: "yellow")
    old = Events()
    new = Events()

    rec.start(**old.handlers())  # type: ignore[arg-type]
    first = rec._worker
    rec.start(**new.handlers())  # type: ignore[arg-type]
    gate.set()
    assert first is not None
    first.join(2.0)
    rec.join(2.0)
    rec.poll()

    assert old.seen == []
    assert new.seen == [("result", "yellow"), ("end", None)]


def test_spoken_answer_is_scored_through_the_engine_update_loop() -> None:
    clock = FakeClock()
    engine_ref: list[StroopTest] = []

    def say_the_ink(audio: object) -> str:
        engine = engine_ref[0]
        return f"It's {engine.trials[engine.current_index].ink.lower()}."

    rec = WhisperSpeechRecognizer(capture=_silence, transcribe=say_the_ink, window_s=0.1)
    engine = StroopTest(clock=clock, seed=3, recognizer=rec)
    engine_ref.append(engine)
    engine.start(StroopSettings(n_trials=1, audio_cue=False, voice=True), Participant("P1"))

    clock.advance(0.5)
    engine.update()
    assert engine.snapshot().listening is True

    rec.join(2.0)
    clock.advance(0.25)
    engine.update()

    assert engine.phase is Phase.DONE
    record = engine.records()[0]
    assert record.correct == 1
    assert record.rt_ms == 250


def test_factory_falls_back_to_no_voice(monkeypatch: pytest.MonkeyPatch) -> None:
    assert isinstance(build_speech_recognizer(StroopConfig(voice_disabled=True)), NullSpeechRecognizer)

    monkeypatch.setattr(whisper_speech, "voice_backend_installed", lambda: False)
    assert isinstance(build_speech_recognizer(StroopConfig()), NullSpeechRecognizer)

    monkeypatch.setattr(whisper_speech, "voice_backend_installed", lambda: True)
    rec = build_speech_recognizer(StroopConfig(whisper_model="tiny.en"))
    assert isinstance(rec, WhisperSpeechRecognizer)
    assert rec.available is True


def test_speech_result_carries_the_whisper_text() -> None:
    captured: list[SpeechResult] = []
    rec = WhisperSpeechRecognizer(capture=_silence, transcribe=lambda audio: "grain")
    rec.start(on_result=captured.append, on_error=lambda m: None, on_end=lambda: None)
    rec.join(2.0)
    rec.poll()

    assert [r.top_transcript for r in captured] == ["grain"]

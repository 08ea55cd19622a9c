"""Offline speech input: microphone capture with sounddevice, transcription with whisper.

Each listening session records a short window on a worker thread and
transcribes it. Events are queued and only delivered from poll(), which the
engine calls every frame, so the arbitrator never sees another thread.
"""

from __future__ import annotations

import importlib.util
import logging
import queue
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .config import StroopConfig
from .speech import (
    EndHandler,
    ErrorHandler,
    NullSpeechRecognizer,
    ResultHandler,
    SpeechAlternative,
    SpeechRecognizer,
    SpeechResult,
)

logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000
VOICE_MODULES = ("whisper", "sounddevice", "numpy")

# (window_s, stop_event) -> mono float32 samples at SAMPLE_RATE, or None when stopped early.
Capture = Callable[[float, threading.Event], Any]
Transcribe = Callable[[Any], str]


class SoundDeviceCapture:
    """Record from the default input device until the window closes or stop is set."""

    def __init__(self, *, sample_rate: int = SAMPLE_RATE, block_s: float = 0.1) -> None:
        self._sample_rate = int(sample_rate)
        self._block = max(1, int(sample_rate * block_s))

    def __call__(self, window_s: float, stop: threading.Event) -> Any:
        import numpy as np
        import sounddevice as sd

        chunks = []
        deadline = time.perf_counter() + window_s
        with sd.InputStream(
            samplerate=self._sample_rate,
            channels=1,
            dtype="float32",
            blocksize=self._block,
        ) as stream:
            while not stop.is_set() and time.perf_counter() < deadline:
                data, _overflowed = stream.read(self._block)
                chunks.append(data[:, 0].copy())
        if stop.is_set() or not chunks:
            return None
        return np.concatenate(chunks)


class WhisperTranscriber:
    """Lazily loads one whisper model and reuses it for every session."""

    def __init__(self, model_name: str = "base.en") -> None:
        self._model_name = model_name
        self._model: Any = None
        self._lock = threading.Lock()

    def __call__(self, audio: Any) -> str:
        with self._lock:
            if self._model is None:
                import whisper

                logger.info("Loading whisper model %r", self._model_name)
                self._model = whisper.load_model(self._model_name)
            # condition_on_previous_text=False keeps silence from turning into invented words.
            result = self._model.transcribe(
                audio,
                language="en",
                fp16=False,
                condition_on_previous_text=False,
            )
        return str(result.get("text", "")).strip()


@dataclass(slots=True)
class _Session:
    on_result: ResultHandler
    on_error: ErrorHandler
    on_end: EndHandler
    stop: threading.Event = field(default_factory=threading.Event)


class WhisperSpeechRecognizer:
    def __init__(self, *, capture: Capture, transcribe: Transcribe, window_s: float = 2.5) -> None:
        self._capture = capture
        self._transcribe = transcribe
        self._window_s = float(window_s)
        self._events: queue.Queue[tuple[_Session, str, object]] = queue.Queue()
        self._session: _Session | None = None
        self._worker: threading.Thread | None = None

    @property
    def available(self) -> bool:
        return True

    def start(self, *, on_result: ResultHandler, on_error: ErrorHandler, on_end: EndHandler) -> None:
        self.stop()
        session = _Session(on_result=on_result, on_error=on_error, on_end=on_end)
        self._session = session
        self._worker = threading.Thread(target=self._listen, args=(session,), daemon=True)
        self._worker.start()

    def stop(self) -> None:
        if self._session is not None:
            self._session.stop.set()
            self._session = None

    def poll(self) -> None:
        while True:
            try:
                session, kind, payload = self._events.get_nowait()
            except queue.Empty:
                return
            if session.stop.is_set():
                continue
            if kind == "result":
                session.on_result(payload)  # type: ignore[arg-type]
            elif kind == "error":
                session.on_error(str(payload))
            else:
                session.on_end()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the current worker to finish."""
        worker = self._worker
        if worker is not None:
            worker.join(timeout)

    def _listen(self, session: _Session) -> None:
        try:
            audio = self._capture(self._window_s, session.stop)
            if session.stop.is_set():
                return
            text = "" if audio is None else self._transcribe(audio)
        except Exception as exc:
            logger.debug("Speech session failed", exc_info=True)
            self._events.put((session, "error", str(exc) or type(exc).__name__))
        else:
            if text:
                alt = SpeechAlternative(transcript=text, confidence=0.0)
                self._events.put((session, "result", SpeechResult(alternatives=(alt,))))
        self._events.put((session, "end", None))


def voice_backend_installed() -> bool:
    return all(importlib.util.find_spec(name) is not None for name in VOICE_MODULES)


def build_speech_recognizer(config: StroopConfig) -> SpeechRecognizer:
    if config.voice_disabled:
        return NullSpeechRecognizer()
    if not voice_backend_installed():
        logger.info("Voice input unavailable; install the 'voice' extra to enable it")
        return NullSpeechRecognizer()
    return WhisperSpeechRecognizer(
        capture=SoundDeviceCapture(),
        transcribe=WhisperTranscriber(config.whisper_model),
        window_s=config.voice_window_s,
    )

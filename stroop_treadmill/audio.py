"""Pygame audio cue for stimulus onset.

Best-effort only: if the mixer cannot start or playback fails, the cue goes
quiet and the trial carries on.
"""

from __future__ import annotations

import logging
import math
from array import array

import pygame

logger = logging.getLogger(__name__)

SAMPLE_RATE = 22050
_FULL_SCALE = 32767


def render_beep(*, sample_rate: int, frequency_hz: float, duration_s: float, gain: float) -> array[int]:
    """Mono 16-bit sine burst under a Hann window, silent at both ends."""
    n = max(2, int(round(sample_rate * duration_s)))
    step = 2.0 * math.pi * frequency_hz / sample_rate
    window = 2.0 * math.pi / (n - 1)
    peak = max(0.0, min(1.0, gain)) * _FULL_SCALE
    return array(
        "h",
        (int(peak * 0.5 * (1.0 - math.cos(window * i)) * math.sin(step * i)) for i in range(n)),
    )


class ToneCue:
    """Short onset beep, rendered once when the run starts."""

    def __init__(self, *, frequency_hz: float = 880.0, duration_s: float = 0.08, gain: float = 0.06) -> None:
        self._sound: pygame.mixer.Sound | None = None
        try:
            if pygame.mixer.get_init() is None:
                pygame.mixer.init(frequency=SAMPLE_RATE, size=-16, channels=1, buffer=512)
            rate, _, channels = pygame.mixer.get_init()
            pcm = render_beep(sample_rate=int(rate), frequency_hz=frequency_hz, duration_s=duration_s, gain=gain)
            if channels > 1:
                pcm = array("h", (s for s in pcm for _ in range(channels)))
            self._sound = pygame.mixer.Sound(buffer=pcm.tobytes())
        except Exception:
            logger.warning("Audio cue unavailable; continuing without it", exc_info=True)
            self._sound = None

    @property
    def available(self) -> bool:
        return self._sound is not None

    def play(self) -> None:
        if self._sound is None:
            return
        try:
            self._sound.play()
        except Exception:
            logger.debug("Audio cue playback failed", exc_info=True)
            self._sound = None

from __future__ import annotations

import os

os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

import pygame  # noqa: E402

from stroop_treadmill.audio import ToneCue, render_beep  # noqa: E402


def test_tone_cue_never_raises_without_a_real_device() -> None:
    pygame.init()
    try:
        cue = ToneCue()
        cue.play()
        cue.play()
    finally:
        pygame.quit()


def test_beep_is_eighty_ms_quiet_and_silent_at_the_edges() -> None:
    pcm = render_beep(sample_rate=22050, frequency_hz=880.0, duration_s=0.08, gain=0.06)

    assert len(pcm) == 1764
    assert pcm[0] == 0
    assert abs(pcm[-1]) <= 1
    assert 0 < max(abs(s) for s in pcm) <= int(0.06 * 32767)


def test_beep_gain_is_clamped() -> None:
    loud = render_beep(sample_rate=8000, frequency_hz=440.0, duration_s=0.05, gain=5.0)
    assert max(abs(s) for s in loud) <= 32767

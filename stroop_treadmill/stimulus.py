from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .cognitive_core import SeededRng


class Congruency(str, Enum):
    CONGRUENT = "congruent"
    INCONGRUENT = "incongruent"


@dataclass(frozen=True, slots=True)
class StroopColor:
    name: str
    css: str


COLORS: tuple[StroopColor, ...] = (
    StroopColor("RED", "#ff4d4d"),
    StroopColor("BLUE", "#4da3ff"),
    StroopColor("GREEN", "#52d69b"),
    StroopColor("YELLOW", "#ffd84d"),
)
COLOR_NAMES: tuple[str, ...] = tuple(c.name for c in COLORS)
_CSS_BY_NAME = {c.name: c.css for c in COLORS}
FALLBACK_CSS = "#ffffff"


def color_css(name: str) -> str:
    return _CSS_BY_NAME.get(name, FALLBACK_CSS)


@dataclass(frozen=True, slots=True)
class Trial:
    trial_index: int
    word: str
    ink: str
    choice_left: str
    choice_right: str

    @property
    def congruency(self) -> Congruency:
        return Congruency.CONGRUENT if self.word == self.ink else Congruency.INCONGRUENT

    @property
    def correct_answer(self) -> str:
        return self.ink

    @property
    def ink_css(self) -> str:
        return color_css(self.ink)


class StroopGenerator:
    def __init__(self, rng: SeededRng) -> None:
        self._rng = rng

    def next_trial(self, *, trial_index: int, incongruent_rate: float) -> Trial:
        if self._rng.random() < incongruent_rate:
            word, ink = self._pick_two_different()
        else:
            word = self._rng.choice(COLOR_NAMES)
            ink = word

        left, right = self._rng.shuffle([word, ink])
        return Trial(
            trial_index=int(trial_index),
            word=word,
            ink=ink,
            choice_left=left,
            choice_right=right,
        )

    def _pick_two_different(self) -> tuple[str, str]:
        a = self._rng.choice(COLOR_NAMES)
        b = self._rng.choice(COLOR_NAMES)
        while b == a:
            b = self._rng.choice(COLOR_NAMES)
        return a, b


def generate_trials(n: int, incongruent_rate: float, *, rng: SeededRng | None = None) -> list[Trial]:
    """Build ``n`` trials with a target incongruent proportion.

    Each call owns its RNG; without an explicit ``rng`` the sequence is only
    reproducible in distribution.
    """

    if n < 0:
        raise ValueError("n must be >= 0")
    if not (0.0 <= incongruent_rate <= 1.0):
        raise ValueError("incongruent_rate must be in [0.0, 1.0]")

    gen = StroopGenerator(SeededRng() if rng is None else rng)
    return [gen.next_trial(trial_index=i + 1, incongruent_rate=incongruent_rate) for i in range(n)]

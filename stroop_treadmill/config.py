from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

EXPORT_DIR_ENV = "STROOP_EXPORT_DIR"
DISABLE_AUDIO_ENV = "STROOP_DISABLE_AUDIO"
PRACTICE_TRIALS_ENV = "STROOP_PRACTICE_TRIALS"
WHISPER_MODEL_ENV = "STROOP_WHISPER_MODEL"
DISABLE_VOICE_ENV = "STROOP_DISABLE_VOICE"


class SettingsError(ValueError):
    """Raised when run settings cannot be used; the run must not start."""


@dataclass(frozen=True, slots=True)
class StroopConfig:
    default_trials: int = 10
    default_incongruent_rate: float = 0.7
    practice_trials: int = 2
    max_trials: int = 500

    # Pre-stimulus jitter, whole milliseconds, inclusive bounds.
    jitter_min_ms: int = 250
    jitter_max_ms: int = 499

    export_dir: Path = Path("exports")
    audio_disabled: bool = False

    # Speech input (optional whisper backend).
    voice_disabled: bool = False
    whisper_model: str = "base.en"
    voice_window_s: float = 2.5

    def __post_init__(self) -> None:
        if self.practice_trials < 0:
            raise ValueError("practice_trials must be >= 0")
        if self.max_trials < 1:
            raise ValueError("max_trials must be >= 1")
        if not (0 <= self.jitter_min_ms <= self.jitter_max_ms):
            raise ValueError("jitter window must satisfy 0 <= min <= max")
        if self.voice_window_s <= 0:
            raise ValueError("voice_window_s must be > 0")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "StroopConfig":
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}

        export_dir = env.get(EXPORT_DIR_ENV, "").strip()
        if export_dir:
            kwargs["export_dir"] = Path(export_dir).expanduser()

        if env.get(DISABLE_AUDIO_ENV, "0").strip() == "1":
            kwargs["audio_disabled"] = True

        practice = env.get(PRACTICE_TRIALS_ENV, "").strip()
        if practice:
            try:
                kwargs["practice_trials"] = max(0, int(practice))
            except ValueError:
                logger.warning("Ignoring non-integer %s=%r", PRACTICE_TRIALS_ENV, practice)

        if env.get(DISABLE_VOICE_ENV, "0").strip() == "1":
            kwargs["voice_disabled"] = True

        model = env.get(WHISPER_MODEL_ENV, "").strip()
        if model:
            kwargs["whisper_model"] = model

        return cls(**kwargs)  # type: ignore[arg-type]


@dataclass(frozen=True, slots=True)
class StroopSettings:
    n_trials: int = 10
    incongruent_rate: float = 0.7
    audio_cue: bool = True
    practice: bool = False
    voice: bool = False

    def validate(self) -> None:
        if isinstance(self.n_trials, bool) or not isinstance(self.n_trials, int):
            raise SettingsError("Trial count must be a whole number.")
        if self.n_trials < 1:
            raise SettingsError("Trial count must be at least 1.")
        rate = self.incongruent_rate
        if isinstance(rate, bool) or not isinstance(rate, (int, float)) or math.isnan(rate):
            raise SettingsError("Incongruent rate must be a number.")
        if not (0.0 <= float(rate) <= 1.0):
            raise SettingsError("Incongruent rate must be between 0 and 1.")


@dataclass(frozen=True, slots=True)
class Participant:
    participant_id: str = ""
    condition: str = "walk"
    treadmill_speed: str = ""
    notes: str = ""

    @classmethod
    def from_form(
        cls,
        *,
        participant_id: str = "",
        condition: str = "walk",
        treadmill_speed: str = "",
        notes: str = "",
    ) -> "Participant":
        return cls(
            participant_id=str(participant_id).strip(),
            condition=str(condition).strip(),
            treadmill_speed=str(treadmill_speed).strip(),
            notes=str(notes).strip(),
        )


def parse_settings(
    *,
    n_trials: object,
    incongruent_rate: object,
    audio_cue: object = True,
    practice: object = False,
    voice: object = False,
    config: StroopConfig | None = None,
) -> StroopSettings:
    """Build validated settings from raw form values.

    Non-numeric values are rejected with SettingsError. Numeric values outside
    the allowed range are clamped: the trial count to [1, max_trials] only when
    it is already >= 1, the rate to [0, 1].
    """

    cfg = StroopConfig() if config is None else config

    count = _parse_trial_count(n_trials)
    if count < 1:
        raise SettingsError("Trial count must be at least 1.")
    if count > cfg.max_trials:
        logger.info("Clamping trial count %d to %d", count, cfg.max_trials)
        count = cfg.max_trials

    rate = _parse_rate(incongruent_rate)
    clamped = 0.0 if rate <= 0.0 else 1.0 if rate >= 1.0 else rate
    if clamped != rate:
        logger.info("Clamping incongruent rate %r to %r", rate, clamped)

    settings = StroopSettings(
        n_trials=count,
        incongruent_rate=clamped,
        audio_cue=bool(audio_cue),
        practice=bool(practice),
        voice=bool(voice),
    )
    settings.validate()
    return settings


def _parse_trial_count(raw: object) -> int:
    if isinstance(raw, bool):
        raise SettingsError("Trial count must be a whole number.")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if not raw.is_integer():
            raise SettingsError("Trial count must be a whole number.")
        return int(raw)
    text = str(raw).strip()
    try:
        return int(text, 10)
    except ValueError:
        raise SettingsError(f"Trial count {text!r} is not a whole number.") from None


def _parse_rate(raw: object) -> float:
    if isinstance(raw, bool):
        raise SettingsError("Incongruent rate must be a number.")
    try:
        value = float(str(raw).strip()) if isinstance(raw, str) else float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise SettingsError(f"Incongruent rate {raw!r} is not a number.") from None
    if not math.isfinite(value):
        raise SettingsError("Incongruent rate must be a finite number.")
    return value

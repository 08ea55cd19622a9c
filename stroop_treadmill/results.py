from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass, fields

from .cognitive_core import Phase, round_half_up
from .config import Participant
from .stimulus import Trial

RECORD_SCHEMA_VERSION = 1


@dataclass(frozen=True, slots=True)
class ResponseRecord:
    """One scored test trial. Field order is the export column order."""

    timestamp_local: str
    participant_id: str
    condition: str
    treadmill_speed: str
    notes: str
    trial: int
    word: str
    ink_colour: str
    congruency: str
    choice_left: str
    choice_right: str
    correct_answer: str
    response: str
    correct: int
    rt_ms: int

    def as_row(self) -> dict[str, object]:
        return {name: getattr(self, name) for name in RECORD_FIELDS}


RECORD_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(ResponseRecord))


@dataclass(frozen=True, slots=True)
class StroopSummary:
    total: int
    correct: int
    accuracy: float | None
    mean_rt_ms: float | None
    median_rt_ms: float | None


def local_timestamp() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S", time.localtime())


def mean(values: list[float]) -> float | None:
    if not values:
        return None
    return float(sum(values)) / float(len(values))


def median(values: list[float]) -> float | None:
    if not values:
        return None
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 1:
        return float(ordered[mid])
    return float(ordered[mid - 1] + ordered[mid]) / 2.0


class ResultsAggregator:
    """Collects test-phase responses; practice responses are dropped."""

    def __init__(
        self,
        participant: Participant,
        *,
        timestamp_fn: Callable[[], str] = local_timestamp,
    ) -> None:
        self._participant = participant
        self._timestamp_fn = timestamp_fn
        self._records: list[ResponseRecord] = []

    @property
    def participant(self) -> Participant:
        return self._participant

    def records(self) -> list[ResponseRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def record(self, phase: Phase, trial: Trial, chosen: str, rt_ms: int) -> ResponseRecord | None:
        if phase is not Phase.TEST:
            return None

        p = self._participant
        rec = ResponseRecord(
            timestamp_local=self._timestamp_fn(),
            participant_id=p.participant_id,
            condition=p.condition,
            treadmill_speed=p.treadmill_speed,
            notes=p.notes,
            trial=int(trial.trial_index),
            word=trial.word,
            ink_colour=trial.ink,
            congruency=trial.congruency.value,
            choice_left=trial.choice_left,
            choice_right=trial.choice_right,
            correct_answer=trial.correct_answer,
            response=str(chosen),
            correct=1 if chosen == trial.correct_answer else 0,
            rt_ms=max(0, int(rt_ms)),
        )
        self._records.append(rec)
        return rec

    def summary(self) -> StroopSummary:
        total = len(self._records)
        correct = sum(r.correct for r in self._records)
        rts = [float(r.rt_ms) for r in self._records if math.isfinite(r.rt_ms)]
        return StroopSummary(
            total=total,
            correct=correct,
            accuracy=None if total == 0 else correct / total,
            mean_rt_ms=mean(rts),
            median_rt_ms=median(rts),
        )

    def preview(self, n: int = 6) -> list[ResponseRecord]:
        return self._records[: max(0, int(n))]


UNAVAILABLE = "—"


def format_summary(s: StroopSummary) -> dict[str, str]:
    """Display strings for the results screen."""

    return {
        "trials": str(s.total),
        "accuracy": UNAVAILABLE if s.accuracy is None else f"{round_half_up(s.accuracy * 100.0)}%",
        "mean_rt": UNAVAILABLE if s.mean_rt_ms is None else f"{round_half_up(s.mean_rt_ms)} ms",
        "median_rt": UNAVAILABLE if s.median_rt_ms is None else f"{round_half_up(s.median_rt_ms)} ms",
    }

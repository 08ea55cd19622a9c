from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Core logic depends on this interface rather than calling real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.perf_counter() (monotonic, high resolution)."""

    def now(self) -> float:
        return time.perf_counter()


def elapsed_ms(start_s: float, end_s: float) -> int:
    """Whole milliseconds between two clock readings, rounded half-up, never negative."""

    delta_ms = (float(end_s) - float(start_s)) * 1000.0
    if delta_ms <= 0.0:
        return 0
    return int(delta_ms + 0.5)


@dataclass(slots=True)
class _ScheduledTask:
    due_at_s: float
    seq: int
    epoch: int
    callback: Callable[[], None]


class TaskScheduler:
    """Cooperative one-shot timers driven by an injected Clock.

    Tasks fire from poll(), which the owner calls from its update(). Every task
    carries the epoch it was scheduled in; cancel_all() bumps the epoch so tasks
    still queued from an older epoch are dropped instead of fired.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._epoch = 0
        self._seq = 0
        self._tasks: list[_ScheduledTask] = []

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def pending(self) -> int:
        return sum(1 for t in self._tasks if t.epoch == self._epoch)

    def schedule(self, delay_s: float, callback: Callable[[], None]) -> int:
        """Queue callback to run once at now() + delay_s. Returns the task epoch."""

        delay_s = max(0.0, float(delay_s))
        self._seq += 1
        self._tasks.append(
            _ScheduledTask(
                due_at_s=self._clock.now() + delay_s,
                seq=self._seq,
                epoch=self._epoch,
                callback=callback,
            )
        )
        return self._epoch

    def cancel_all(self) -> None:
        self._epoch += 1
        self._tasks.clear()

    def poll(self) -> int:
        """Run every due task of the current epoch. Returns how many fired."""

        fired = 0
        while True:
            now = self._clock.now()
            due = [t for t in self._tasks if t.due_at_s <= now]
            if not due:
                return fired
            task = min(due, key=lambda t: (t.due_at_s, t.seq))
            self._tasks.remove(task)
            if task.epoch != self._epoch:
                continue
            task.callback()
            fired += 1

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pomodoro.core.settings import TimerSettings


class Phase(str, Enum):
    WORK = "work"
    BREAK = "break"


@dataclass(frozen=True)
class TimerSnapshot:
    phase: Phase
    is_running: bool
    remaining_seconds: int
    total_seconds: int
    progress: float
    completed_work_count: int
    accumulated_elapsed: float
    is_long_break: bool = False

    @property
    def time_text(self) -> str:
        return f"{self.remaining_seconds // 60:02d}:{self.remaining_seconds % 60:02d}"


@dataclass(frozen=True)
class PhaseCompletion:
    finished_phase: Phase
    started_at: datetime
    ended_at: datetime
    duration_seconds: int
    next_phase: Phase
    long_break: bool
    auto_started: bool

    @property
    def was_work(self) -> bool:
        return self.finished_phase == Phase.WORK


class PomodoroTimer:
    """Wall-clock pomodoro engine detached from UI framework.

    Elapsed time is ``accumulated + (now - run_started)``; nothing is counted
    per tick, so a suspended process loses no time.
    """

    def __init__(self, settings: TimerSettings | None = None) -> None:
        self._settings = settings or TimerSettings()
        self._phase = Phase.WORK
        self._running = False
        self._completed_work_count = 0
        self._total_sec = self._settings.work_seconds
        self._accumulated_sec = 0.0
        self._run_started: float | None = None
        self._interval_started: float | None = None
        self._suspended_at: float | None = None

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_suspended(self) -> bool:
        return self._suspended_at is not None

    @property
    def settings(self) -> TimerSettings:
        return self._settings

    @property
    def completed_work_count(self) -> int:
        return self._completed_work_count

    @property
    def total_seconds(self) -> int:
        return self._total_sec

    @property
    def accumulated_elapsed(self) -> float:
        return self._accumulated_sec

    def seed_completed_count(self, count: int) -> None:
        self._completed_work_count = max(0, int(count))
        if not self._running and self._accumulated_sec == 0:
            self._total_sec = self._phase_length(self._phase)

    def start(self, now: float | None = None) -> None:
        if self._running:
            return
        if now is None:
            now = time.time()
        if self._interval_started is None:
            self._total_sec = self._phase_length(self._phase)
            self._accumulated_sec = 0.0
            self._interval_started = now
        self._run_started = now
        self._running = True

    def pause(self, now: float | None = None) -> None:
        if not self._running:
            return
        if now is None:
            now = time.time()
        self.resume(now)
        self._bank(now)
        self._running = False

    def toggle(self, now: float | None = None) -> None:
        if self._running:
            self.pause(now)
        else:
            self.start(now)

    def reset(self) -> None:
        self._phase = Phase.WORK
        self._running = False
        self._total_sec = self._settings.work_seconds
        self._accumulated_sec = 0.0
        self._run_started = None
        self._interval_started = None
        self._suspended_at = None

    def suspend(self, now: float | None = None) -> int | None:
        """Banks elapsed time before the process goes to the background.

        Returns the seconds left in the running interval, or None when the
        timer is paused and nothing needs a backstop.
        """
        if not self._running or self._suspended_at is not None:
            return None
        if now is None:
            now = time.time()
        self._bank(now)
        self._suspended_at = now
        return self._remaining(now)

    def resume(self, now: float | None = None) -> None:
        """Credits the wall-clock time spent in the background and keeps running."""
        if self._suspended_at is None:
            return
        if now is None:
            now = time.time()
        self._accumulated_sec += max(0.0, now - self._suspended_at)
        self._suspended_at = None
        self._run_started = now

    def tick(self, now: float | None = None) -> PhaseCompletion | None:
        if not self._running or self._suspended_at is not None:
            return None
        if now is None:
            now = time.time()
        if self._total_sec - self._elapsed(now) > 0:
            return None
        return self._complete(now)

    def apply_settings(self, settings: TimerSettings) -> bool:
        """Adopts new settings; returns True when the running interval kept its length.

        A paused interval is rebuilt from the new configuration at full length
        when a duration or the cadence changed. Flag-only changes leave the
        interval alone.
        """
        previous = self._settings
        self._settings = settings
        if self._running:
            return True
        if not previous.durations_differ(settings):
            return False
        self._total_sec = self._phase_length(self._phase)
        self._accumulated_sec = 0.0
        self._run_started = None
        self._interval_started = None
        return False

    def snapshot(self, now: float | None = None) -> TimerSnapshot:
        if now is None:
            now = time.time()
        remaining = self._remaining(now)
        progress = remaining / self._total_sec if self._total_sec > 0 else 0.0
        return TimerSnapshot(
            phase=self._phase,
            is_running=self._running,
            remaining_seconds=remaining,
            total_seconds=self._total_sec,
            progress=max(0.0, min(1.0, progress)),
            completed_work_count=self._completed_work_count,
            accumulated_elapsed=self._accumulated_sec,
            is_long_break=self._phase == Phase.BREAK and self._long_break_due(),
        )

    def _complete(self, now: float) -> PhaseCompletion:
        overshoot = max(0.0, self._elapsed(now) - self._total_sec)
        ended = now - overshoot
        started = self._interval_started if self._interval_started is not None else ended - self._total_sec
        finished = self._phase

        if finished == Phase.WORK:
            self._completed_work_count += 1
        long_break = finished == Phase.WORK and self._long_break_due()
        self._phase = Phase.BREAK if finished == Phase.WORK else Phase.WORK
        completion_total = self._total_sec
        self._total_sec = self._phase_length(self._phase)
        self._accumulated_sec = 0.0
        self._run_started = None
        self._interval_started = None
        self._running = False

        if self._phase == Phase.WORK:
            auto_start = self._settings.auto_start_pomodoros
        else:
            auto_start = self._settings.auto_start_breaks
        if auto_start:
            self.start(now)

        return PhaseCompletion(
            finished_phase=finished,
            started_at=datetime.fromtimestamp(started),
            ended_at=datetime.fromtimestamp(ended),
            duration_seconds=completion_total,
            next_phase=self._phase,
            long_break=long_break,
            auto_started=auto_start,
        )

    def _long_break_due(self) -> bool:
        cadence = self._settings.sessions_until_long_break
        count = self._completed_work_count
        return cadence > 0 and count > 0 and count % cadence == 0

    def _phase_length(self, phase: Phase) -> int:
        if phase == Phase.WORK:
            return self._settings.work_seconds
        if self._long_break_due():
            return self._settings.long_break_seconds
        return self._settings.short_break_seconds

    def _bank(self, now: float) -> None:
        if self._run_started is not None:
            self._accumulated_sec += max(0.0, now - self._run_started)
            self._run_started = None

    def _elapsed(self, now: float) -> float:
        elapsed = self._accumulated_sec
        if self._run_started is not None and self._suspended_at is None:
            elapsed += max(0.0, now - self._run_started)
        return elapsed

    def _remaining(self, now: float) -> int:
        return max(0, int(round(self._total_sec - self._elapsed(now))))

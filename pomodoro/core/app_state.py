from __future__ import annotations

import logging
import time
from datetime import date
from typing import Callable

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from pomodoro.core.notifications import NotificationService
from pomodoro.core.settings import SettingsStore, TimerSettings
from pomodoro.core.timer import PhaseCompletion, PomodoroTimer, TimerSnapshot
from pomodoro.data.recorder import SessionRecorder


logger = logging.getLogger(__name__)

TICK_INTERVAL_MS = 100
ADVISORY_TIMEOUT_MS = 3000


class TimerController(QObject):
    """Single owner of the running timer on the Qt main thread.

    Views read ``snapshot()`` and listen to the signals; they never touch the
    engine directly. The host calls ``on_suspend``/``on_resume`` around
    background transitions.
    """

    state_changed = pyqtSignal(object)
    phase_completed = pyqtSignal(object)
    advisory_changed = pyqtSignal(bool)

    def __init__(
        self,
        settings_store: SettingsStore,
        recorder: SessionRecorder,
        notifications: NotificationService,
        clock: Callable[[], float] = time.time,
        today: Callable[[], date] = date.today,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._settings_store = settings_store
        self._recorder = recorder
        self._notifications = notifications
        self._clock = clock
        self._timer_visible = True
        self._advisory_visible = False

        self.engine = PomodoroTimer(settings_store.settings)
        self.engine.seed_completed_count(recorder.completed_work_count_on(today()))

        self._tick_timer = QTimer(self)
        self._tick_timer.setInterval(TICK_INTERVAL_MS)
        self._tick_timer.timeout.connect(self.tick)

        self._advisory_timer = QTimer(self)
        self._advisory_timer.setSingleShot(True)
        self._advisory_timer.setInterval(ADVISORY_TIMEOUT_MS)
        self._advisory_timer.timeout.connect(self.dismiss_advisory)

        settings_store.settings_changed.connect(self._on_settings_changed)

    @property
    def advisory_visible(self) -> bool:
        return self._advisory_visible

    @property
    def timer_visible(self) -> bool:
        return self._timer_visible

    @property
    def tick_loop_active(self) -> bool:
        return self._tick_timer.isActive()

    def snapshot(self) -> TimerSnapshot:
        return self.engine.snapshot(self._clock())

    def start(self) -> None:
        self.engine.start(self._clock())
        self._restart_tick_loop()
        self._emit_state()

    def pause(self) -> None:
        self.engine.pause(self._clock())
        self._tick_timer.stop()
        self._notifications.cancel_backstop()
        self._emit_state()

    def toggle(self) -> None:
        if self.engine.is_running:
            self.pause()
        else:
            self.start()

    def reset(self) -> None:
        self.engine.reset()
        self._tick_timer.stop()
        self._notifications.cancel_backstop()
        self._emit_state()

    def tick(self) -> PhaseCompletion | None:
        completion = self.engine.tick(self._clock())
        if completion is not None:
            self._handle_completion(completion)
        self._emit_state()
        return completion

    def on_suspend(self, now: float | None = None) -> None:
        if now is None:
            now = self._clock()
        remaining = self.engine.suspend(now)
        self._tick_timer.stop()
        if remaining is None:
            return
        logger.debug("Suspended with %ss left in %s", remaining, self.engine.phase.value)
        self._notifications.schedule_backstop(remaining, self.engine.phase, self.engine.settings)

    def on_resume(self, now: float | None = None) -> None:
        if now is None:
            now = self._clock()
        self._notifications.cancel_backstop()
        if not self.engine.is_suspended:
            return
        self.engine.resume(now)
        completion = self.engine.tick(now)
        if completion is not None:
            self._handle_completion(completion)
        if self.engine.is_running:
            self._restart_tick_loop()
        self._emit_state()

    def set_timer_visible(self, visible: bool) -> None:
        self._timer_visible = visible

    def dismiss_advisory(self) -> None:
        self._advisory_timer.stop()
        if self._advisory_visible:
            self._advisory_visible = False
            self.advisory_changed.emit(False)

    def _show_advisory(self) -> None:
        self._advisory_visible = True
        self._advisory_timer.start()
        self.advisory_changed.emit(True)

    def _on_settings_changed(self, old: TimerSettings, new: TimerSettings) -> None:
        kept_running_interval = self.engine.apply_settings(new)
        if kept_running_interval and old.durations_differ(new):
            self._show_advisory()
        self._emit_state()

    def _handle_completion(self, completion: PhaseCompletion) -> None:
        self._recorder.record(
            start_time=completion.started_at,
            end_time=completion.ended_at,
            duration=completion.duration_seconds,
            is_completed=completion.was_work,
        )
        logger.info(
            "%s interval finished, next: %s%s",
            completion.finished_phase.value,
            "long " if completion.long_break else "",
            completion.next_phase.value,
        )
        self._notifications.announce_phase(completion.next_phase, self.engine.settings, self._timer_visible)
        if completion.auto_started:
            self._restart_tick_loop()
        else:
            self._tick_timer.stop()
        self.phase_completed.emit(completion)

    def _restart_tick_loop(self) -> None:
        self._tick_timer.stop()
        if self.engine.is_running:
            self._tick_timer.start()

    def _emit_state(self) -> None:
        self.state_changed.emit(self.snapshot())

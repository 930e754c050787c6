from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from PyQt6.QtCore import QObject, QTimer
from PyQt6.QtWidgets import QApplication, QSystemTrayIcon

from pomodoro.core.errors import NotificationPermissionDenied
from pomodoro.core.settings import TimerSettings
from pomodoro.core.timer import Phase


logger = logging.getLogger(__name__)

BACKSTOP_ID = "timer-end"
PHASE_ID = "phase-change"


@dataclass(frozen=True)
class Notification:
    title: str
    body: str
    with_sound: bool
    identifier: str = PHASE_ID


def phase_notification(next_phase: Phase, sound_enabled: bool, identifier: str = PHASE_ID) -> Notification:
    """Text announcing the phase the timer is switching into."""
    if next_phase == Phase.BREAK:
        return Notification(
            title="Break time!",
            body="You finished a focus session. Take a break.",
            with_sound=sound_enabled,
            identifier=identifier,
        )
    return Notification(
        title="Focus time!",
        body="The break is over. Back to work!",
        with_sound=sound_enabled,
        identifier=identifier,
    )


class Notifier(ABC):
    """Desktop notification backend."""

    @abstractmethod
    def request_authorization(self) -> bool:
        """Return True if notifications can be shown."""

    @abstractmethod
    def show(self, notification: Notification) -> None:
        """Display a banner now; raises NotificationPermissionDenied if not allowed."""

    @abstractmethod
    def play_sound(self) -> None:
        """Play the alert sound without a banner."""

    @abstractmethod
    def schedule(self, notification: Notification, delay_seconds: float) -> None:
        """Display ``notification`` after a delay, replacing any pending one with the same identifier."""

    @abstractmethod
    def cancel(self, identifier: str) -> None:
        """Drop a pending notification; unknown identifiers are ignored."""


class TrayNotifier(Notifier):
    """Shows banners through the system tray icon of the running QApplication."""

    def __init__(self, tray_icon: QSystemTrayIcon | None = None, parent: QObject | None = None) -> None:
        self._tray = tray_icon
        self._parent = parent
        self._pending: dict[str, QTimer] = {}

    def request_authorization(self) -> bool:
        return self._tray is not None and QSystemTrayIcon.isSystemTrayAvailable() and self._tray.supportsMessages()

    def show(self, notification: Notification) -> None:
        if not self.request_authorization():
            raise NotificationPermissionDenied("System tray notifications are not available")
        self._tray.showMessage(
            notification.title,
            notification.body,
            QSystemTrayIcon.MessageIcon.Information,
        )
        if notification.with_sound:
            self.play_sound()

    def play_sound(self) -> None:
        QApplication.beep()

    def schedule(self, notification: Notification, delay_seconds: float) -> None:
        self.cancel(notification.identifier)
        timer = QTimer(self._parent)
        timer.setSingleShot(True)
        timer.setInterval(max(0, int(delay_seconds * 1000)))
        timer.timeout.connect(lambda: self._fire(notification))
        self._pending[notification.identifier] = timer
        timer.start()

    def cancel(self, identifier: str) -> None:
        timer = self._pending.pop(identifier, None)
        if timer is not None:
            timer.stop()
            timer.deleteLater()

    def _fire(self, notification: Notification) -> None:
        self._pending.pop(notification.identifier, None)
        try:
            self.show(notification)
        except NotificationPermissionDenied:
            logger.debug("Dropping scheduled notification %s", notification.identifier)


class NotificationService:
    """Applies the user's notification settings on top of a Notifier."""

    def __init__(self, notifier: Notifier) -> None:
        self._notifier = notifier
        self._denied_logged = False

    def request_authorization(self) -> bool:
        granted = self._notifier.request_authorization()
        if not granted:
            logger.info("Notifications are not available, continuing without them")
        return granted

    def announce_phase(self, next_phase: Phase, settings: TimerSettings, timer_visible: bool) -> None:
        if not settings.notifications_enabled:
            return
        if timer_visible:
            if settings.sound_enabled:
                self._notifier.play_sound()
            return
        self._show(phase_notification(next_phase, settings.sound_enabled))

    def schedule_backstop(self, remaining_seconds: int, current_phase: Phase, settings: TimerSettings) -> None:
        self.cancel_backstop()
        if not settings.notifications_enabled:
            return
        next_phase = Phase.BREAK if current_phase == Phase.WORK else Phase.WORK
        notification = phase_notification(next_phase, settings.sound_enabled, identifier=BACKSTOP_ID)
        self._notifier.schedule(notification, remaining_seconds)

    def cancel_backstop(self) -> None:
        self._notifier.cancel(BACKSTOP_ID)

    def _show(self, notification: Notification) -> None:
        try:
            self._notifier.show(notification)
        except NotificationPermissionDenied:
            if not self._denied_logged:
                logger.info("Notification permission denied, skipping banners")
                self._denied_logged = True

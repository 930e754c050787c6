from __future__ import annotations

"""Application entry point: builds the services once and hands them to the window."""

import logging
import sys

from PyQt6.QtWidgets import QApplication, QStyle, QSystemTrayIcon

from pomodoro.core.app_state import TimerController
from pomodoro.core.config import AppConfig
from pomodoro.core.events import EventBus
from pomodoro.core.history import HistoryQuery
from pomodoro.core.logging_setup import setup_logging
from pomodoro.core.notifications import NotificationService, TrayNotifier
from pomodoro.core.remote import HttpRemoteStore
from pomodoro.core.settings import SettingsStore
from pomodoro.core.sync import SyncController, SyncReconciler
from pomodoro.data.recorder import SessionRecorder
from pomodoro.data.storage import Storage
from pomodoro.ui.main_window import MainWindow


logger = logging.getLogger(__name__)


def main() -> int:
    config = AppConfig.from_env()
    setup_logging(config.log_level, config.log_file)
    app = QApplication(sys.argv)
    app.setQuitOnLastWindowClosed(True)

    storage = Storage(config.db_path)
    storage.init_db()
    logger.info("Using database %s", config.db_path)

    events = EventBus()
    settings_store = SettingsStore(storage)
    settings_store.load()
    recorder = SessionRecorder(storage, events)

    tray_icon = QSystemTrayIcon(app.style().standardIcon(QStyle.StandardPixmap.SP_ComputerIcon), app)
    tray_icon.show()
    notifications = NotificationService(TrayNotifier(tray_icon, parent=app))
    notifications.request_authorization()

    controller = TimerController(settings_store, recorder, notifications)
    reconciler = SyncReconciler(recorder, HttpRemoteStore(config.sync_url, config.sync_token))
    sync_controller = SyncController(reconciler, settings_store, recorder, events)

    window = MainWindow(
        controller=controller,
        settings_store=settings_store,
        recorder=recorder,
        history_query=HistoryQuery(recorder),
        sync_controller=sync_controller,
        events=events,
    )
    window.show()
    if sync_controller.enabled:
        sync_controller.request_sync()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())

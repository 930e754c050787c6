from __future__ import annotations

from datetime import datetime, timedelta

from PyQt6.QtCore import QRect, Qt
from PyQt6.QtGui import QAction, QColor, QGuiApplication, QKeySequence, QPainter, QPen
from PyQt6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDoubleSpinBox,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QSpinBox,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from pomodoro.core import history
from pomodoro.core.app_state import TimerController
from pomodoro.core.events import EventBus
from pomodoro.core.history import HistoryQuery, Timeframe
from pomodoro.core.settings import SettingsStore, TimerSettings
from pomodoro.core.sync import SyncController, SyncStatus
from pomodoro.core.timer import Phase, TimerSnapshot
from pomodoro.data.recorder import SessionRecorder


WORK_COLOR = QColor("#e57373")
BREAK_COLOR = QColor("#81c784")
ADVISORY_TEXT = "Changes will apply to the next session"


class ProgressRing(QWidget):
    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setMinimumSize(320, 320)
        self._progress = 1.0
        self._text = "25:00"
        self._caption = "Focus Time"
        self._color = WORK_COLOR

    def set_state(self, snapshot: TimerSnapshot) -> None:
        self._progress = snapshot.progress
        self._text = snapshot.time_text
        if snapshot.phase == Phase.WORK:
            self._caption = "Focus Time"
            self._color = WORK_COLOR
        else:
            self._caption = "Long Break" if snapshot.is_long_break else "Break Time"
            self._color = BREAK_COLOR
        self.update()

    def paintEvent(self, event) -> None:  # noqa: N802
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        rect = self.rect().adjusted(20, 20, -20, -20)
        diameter = min(rect.width(), rect.height())
        circle_rect = QRect(
            rect.center().x() - diameter // 2,
            rect.center().y() - diameter // 2,
            diameter,
            diameter,
        )

        painter.setPen(QPen(QColor(0, 0, 0, 40), 16))
        painter.drawEllipse(circle_rect)
        painter.setPen(QPen(self._color, 16, Qt.PenStyle.SolidLine, Qt.PenCapStyle.RoundCap))
        painter.drawArc(circle_rect, 90 * 16, int(-360 * 16 * self._progress))

        painter.setPen(QColor("#263238"))
        font = painter.font()
        font.setPointSize(40)
        font.setBold(True)
        painter.setFont(font)
        painter.drawText(circle_rect, Qt.AlignmentFlag.AlignCenter, self._text)

        font.setPointSize(14)
        font.setBold(False)
        painter.setFont(font)
        caption_rect = circle_rect.adjusted(0, diameter // 3, 0, 0)
        painter.drawText(caption_rect, Qt.AlignmentFlag.AlignCenter, self._caption)


class MainWindow(QMainWindow):
    def __init__(
        self,
        controller: TimerController,
        settings_store: SettingsStore,
        recorder: SessionRecorder,
        history_query: HistoryQuery,
        sync_controller: SyncController,
        events: EventBus,
    ) -> None:
        super().__init__()
        self.setWindowTitle("Pomodoro")
        self.resize(900, 640)

        self.controller = controller
        self.settings_store = settings_store
        self.recorder = recorder
        self.history_query = history_query
        self.sync_controller = sync_controller
        self.events = events
        self._suspended = False

        self._build_ui()
        self._connect_signals()
        self._load_settings_form(settings_store.settings)
        self._on_state_changed(controller.snapshot())
        self._on_sync_status(sync_controller.status)
        self.refresh_history()

    def _build_ui(self) -> None:
        self.tabs = QTabWidget(self)
        self.setCentralWidget(self.tabs)
        self.tabs.addTab(self._build_timer_tab(), "Timer")
        self.tabs.addTab(self._build_history_tab(), "History")
        self.tabs.addTab(self._build_settings_tab(), "Settings")

        space_action = QAction(self)
        space_action.setShortcut(QKeySequence(Qt.Key.Key_Space))
        space_action.triggered.connect(self.controller.toggle)
        self.addAction(space_action)

    def _build_timer_tab(self) -> QWidget:
        tab = QWidget()
        layout = QVBoxLayout(tab)
        self.completed_label = QLabel()
        self.completed_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.completed_label)

        self.ring = ProgressRing()
        layout.addWidget(self.ring, 1)

        controls = QHBoxLayout()
        self.reset_btn = QPushButton("Reset")
        self.toggle_btn = QPushButton("Start")
        controls.addStretch()
        controls.addWidget(self.reset_btn)
        controls.addWidget(self.toggle_btn)
        controls.addStretch()
        layout.addLayout(controls)

        self.advisory_label = QLabel(ADVISORY_TEXT)
        self.advisory_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.advisory_label.setVisible(False)
        layout.addWidget(self.advisory_label)
        return tab

    def _build_history_tab(self) -> QWidget:
        tab = QWidget()
        layout = QVBoxLayout(tab)

        top_bar = QHBoxLayout()
        self.timeframe_combo = QComboBox()
        self.timeframe_combo.addItems([timeframe.value for timeframe in Timeframe])
        top_bar.addWidget(QLabel("Show:"))
        top_bar.addWidget(self.timeframe_combo)
        top_bar.addStretch()
        self.sync_status_label = QLabel()
        self.sync_btn = QPushButton("Sync now")
        top_bar.addWidget(self.sync_status_label)
        top_bar.addWidget(self.sync_btn)
        layout.addLayout(top_bar)

        stats_box = QWidget()
        stats_form = QFormLayout(stats_box)
        self.sessions_label = QLabel("0")
        self.minutes_label = QLabel("0")
        self.best_time_label = QLabel("-")
        self.best_day_label = QLabel("-")
        self.total_label = QLabel("0")
        stats_form.addRow("Sessions:", self.sessions_label)
        stats_form.addRow("Minutes:", self.minutes_label)
        stats_form.addRow("Most productive:", self.best_time_label)
        stats_form.addRow("Best weekday:", self.best_day_label)
        stats_form.addRow("All time:", self.total_label)
        layout.addWidget(stats_box)

        self.history_list = QListWidget()
        layout.addWidget(self.history_list, 1)
        return tab

    def _build_settings_tab(self) -> QWidget:
        tab = QWidget()
        layout = QVBoxLayout(tab)
        form = QFormLayout()

        self.work_spin = self._minutes_spin(1, 120)
        self.short_spin = self._minutes_spin(1, 60)
        self.long_spin = self._minutes_spin(1, 90)
        self.cadence_spin = QSpinBox()
        self.cadence_spin.setRange(1, 12)
        self.sound_check = QCheckBox()
        self.notifications_check = QCheckBox()
        self.auto_breaks_check = QCheckBox()
        self.auto_pomodoros_check = QCheckBox()
        self.cloud_check = QCheckBox()

        form.addRow("Focus (min):", self.work_spin)
        form.addRow("Short break (min):", self.short_spin)
        form.addRow("Long break (min):", self.long_spin)
        form.addRow("Sessions until long break:", self.cadence_spin)
        form.addRow("Sound:", self.sound_check)
        form.addRow("Notifications:", self.notifications_check)
        form.addRow("Auto-start breaks:", self.auto_breaks_check)
        form.addRow("Auto-start focus:", self.auto_pomodoros_check)
        form.addRow("Cloud backup:", self.cloud_check)
        layout.addLayout(form)

        buttons = QHBoxLayout()
        self.defaults_btn = QPushButton("Reset to defaults")
        self.clear_old_btn = QPushButton("Clear older than 30 days")
        self.clear_all_btn = QPushButton("Clear all history")
        buttons.addWidget(self.defaults_btn)
        buttons.addStretch()
        buttons.addWidget(self.clear_old_btn)
        buttons.addWidget(self.clear_all_btn)
        layout.addLayout(buttons)
        layout.addStretch()
        return tab

    def _minutes_spin(self, low: int, high: int) -> QDoubleSpinBox:
        spin = QDoubleSpinBox()
        spin.setRange(low, high)
        spin.setDecimals(0)
        return spin

    def _connect_signals(self) -> None:
        self.toggle_btn.clicked.connect(self.controller.toggle)
        self.reset_btn.clicked.connect(self.controller.reset)
        self.controller.state_changed.connect(self._on_state_changed)
        self.controller.advisory_changed.connect(self.advisory_label.setVisible)
        self.tabs.currentChanged.connect(self._on_tab_changed)

        self.timeframe_combo.currentTextChanged.connect(lambda _text: self.refresh_history())
        self.sync_btn.clicked.connect(self.sync_controller.request_sync)
        self.sync_controller.status_changed.connect(self._on_sync_status)
        self.events.session_added.connect(lambda _session: self.refresh_history())
        self.events.history_cleared.connect(self.refresh_history)
        self.events.sync_completed.connect(lambda _result: self.refresh_history())

        self.work_spin.valueChanged.connect(lambda value: self.settings_store.update(work_minutes=value))
        self.short_spin.valueChanged.connect(lambda value: self.settings_store.update(short_break_minutes=value))
        self.long_spin.valueChanged.connect(lambda value: self.settings_store.update(long_break_minutes=value))
        self.cadence_spin.valueChanged.connect(lambda value: self.settings_store.update(sessions_until_long_break=value))
        self.sound_check.toggled.connect(lambda value: self.settings_store.update(sound_enabled=value))
        self.notifications_check.toggled.connect(lambda value: self.settings_store.update(notifications_enabled=value))
        self.auto_breaks_check.toggled.connect(lambda value: self.settings_store.update(auto_start_breaks=value))
        self.auto_pomodoros_check.toggled.connect(lambda value: self.settings_store.update(auto_start_pomodoros=value))
        self.cloud_check.toggled.connect(lambda value: self.settings_store.update(cloud_sync_enabled=value))
        self.defaults_btn.clicked.connect(self._reset_settings)
        self.clear_old_btn.clicked.connect(self._clear_old_history)
        self.clear_all_btn.clicked.connect(self._clear_all_history)

        app = QGuiApplication.instance()
        if app is not None:
            app.applicationStateChanged.connect(self._on_application_state)

    def _load_settings_form(self, settings: TimerSettings) -> None:
        widgets = (
            (self.work_spin, settings.work_minutes),
            (self.short_spin, settings.short_break_minutes),
            (self.long_spin, settings.long_break_minutes),
            (self.cadence_spin, settings.sessions_until_long_break),
            (self.sound_check, settings.sound_enabled),
            (self.notifications_check, settings.notifications_enabled),
            (self.auto_breaks_check, settings.auto_start_breaks),
            (self.auto_pomodoros_check, settings.auto_start_pomodoros),
            (self.cloud_check, settings.cloud_sync_enabled),
        )
        for widget, value in widgets:
            widget.blockSignals(True)
            if isinstance(widget, QCheckBox):
                widget.setChecked(value)
            else:
                widget.setValue(value)
            widget.blockSignals(False)

    def _on_state_changed(self, snapshot: TimerSnapshot) -> None:
        self.ring.set_state(snapshot)
        self.toggle_btn.setText("Pause" if snapshot.is_running else "Start")
        self.completed_label.setText(f"Completed sessions: {snapshot.completed_work_count}")

    def _on_tab_changed(self, index: int) -> None:
        self.controller.set_timer_visible(index == 0 and self.isActiveWindow())

    def _on_application_state(self, state: Qt.ApplicationState) -> None:
        if state in (Qt.ApplicationState.ApplicationHidden, Qt.ApplicationState.ApplicationSuspended):
            self._suspended = True
            self.controller.on_suspend()
        elif state == Qt.ApplicationState.ApplicationActive:
            if self._suspended:
                self._suspended = False
                self.controller.on_resume()
                self.sync_controller.on_resume()
        self.controller.set_timer_visible(
            state == Qt.ApplicationState.ApplicationActive and self.tabs.currentIndex() == 0
        )

    def _on_sync_status(self, status: SyncStatus) -> None:
        self.sync_btn.setEnabled(not status.is_syncing)
        if status.is_syncing:
            text = "Syncing..."
        elif status.last_error:
            text = status.last_error
        elif status.last_synced_at:
            text = f"Last synced {status.last_synced_at:%Y-%m-%d %H:%M}"
        else:
            text = "Not synced yet"
        self.sync_status_label.setText(text)

    def refresh_history(self) -> None:
        timeframe = Timeframe(self.timeframe_combo.currentText())
        sessions = self.history_query.sessions_for_timeframe(timeframe)
        self.sessions_label.setText(str(history.total_completed(sessions)))
        self.minutes_label.setText(str(history.total_minutes(sessions)))
        best_time = history.most_productive_time_of_day(sessions)
        self.best_time_label.setText(best_time.value if best_time else "-")
        best_day = history.most_productive_weekday(sessions)
        self.best_day_label.setText(f"{history.WEEKDAY_NAMES[best_day[0]]} ({best_day[1]})" if best_day else "-")
        self.total_label.setText(str(self.history_query.stats().total_sessions))

        self.history_list.clear()
        for session in reversed(sessions):
            kind = "Focus" if session.is_completed else "Break"
            item_text = f"{session.start_time:%Y-%m-%d %H:%M} · {kind} · {session.duration_text}"
            QListWidgetItem(item_text, self.history_list)

    def _reset_settings(self) -> None:
        self._load_settings_form(self.settings_store.reset_to_defaults())

    def _clear_old_history(self) -> None:
        removed = self.recorder.clear_older_than(datetime.now() - timedelta(days=30))
        self.sync_controller.delete_remote(removed)

    def _clear_all_history(self) -> None:
        answer = QMessageBox.question(
            self,
            "Clear history",
            "Delete every recorded session?",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
        )
        if answer == QMessageBox.StandardButton.Yes:
            removed = self.recorder.clear_all()
            self.sync_controller.delete_remote(removed)

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Iterable

import pytest
from PyQt6.QtCore import QCoreApplication

from pomodoro.core.errors import NotificationPermissionDenied, RemoteTransientError, RemoteUnavailable
from pomodoro.core.events import EventBus
from pomodoro.core.notifications import Notification, NotificationService, Notifier
from pomodoro.core.settings import SettingsStore
from pomodoro.core.sync import RemoteStore
from pomodoro.data.models import Session
from pomodoro.data.recorder import SessionRecorder
from pomodoro.data.storage import Storage


@pytest.fixture(scope="session", autouse=True)
def qapp() -> QCoreApplication:
    return QCoreApplication.instance() or QCoreApplication([])


class FakeClock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeNotifier(Notifier):
    def __init__(self, authorized: bool = True) -> None:
        self.authorized = authorized
        self.shown: list[Notification] = []
        self.sounds = 0
        self.scheduled: dict[str, tuple[Notification, float]] = {}
        self.cancelled: list[str] = []

    def request_authorization(self) -> bool:
        return self.authorized

    def show(self, notification: Notification) -> None:
        if not self.authorized:
            raise NotificationPermissionDenied("denied")
        self.shown.append(notification)

    def play_sound(self) -> None:
        self.sounds += 1

    def schedule(self, notification: Notification, delay_seconds: float) -> None:
        self.scheduled[notification.identifier] = (notification, delay_seconds)

    def cancel(self, identifier: str) -> None:
        self.cancelled.append(identifier)
        self.scheduled.pop(identifier, None)


class InMemoryRemoteStore(RemoteStore):
    def __init__(self, sessions: Iterable[Session] = ()) -> None:
        self.records = {session.id: session for session in sessions}
        self.account_available = True
        self.fail_fetch = False
        self.fail_save = False
        self.fail_delete = False
        self.saved: list[str] = []

    def check_account(self) -> None:
        if not self.account_available:
            raise RemoteUnavailable("no account")

    def fetch_all(self) -> list[Session]:
        if self.fail_fetch:
            raise RemoteTransientError("network down")
        return list(self.records.values())

    def save(self, sessions: Iterable[Session]) -> None:
        if self.fail_save:
            raise RemoteTransientError("push failed")
        for session in sessions:
            self.records[session.id] = session
            self.saved.append(session.id)

    def delete(self, session_ids: Iterable[str]) -> None:
        if self.fail_delete:
            raise RemoteTransientError("delete failed")
        for session_id in session_ids:
            self.records.pop(session_id, None)


def make_session(start: str, minutes: float = 25, is_completed: bool = True, session_id: str | None = None) -> Session:
    start_time = datetime.fromisoformat(start)
    return Session(
        id=session_id or str(uuid.uuid4()),
        start_time=start_time,
        end_time=start_time + timedelta(minutes=minutes),
        duration=minutes * 60,
        is_completed=is_completed,
    )


@pytest.fixture()
def session_factory():
    return make_session


@pytest.fixture()
def storage(tmp_path) -> Storage:
    storage = Storage(tmp_path / "pomodoro.db")
    storage.init_db()
    return storage


@pytest.fixture()
def events() -> EventBus:
    return EventBus()


@pytest.fixture()
def recorder(storage: Storage, events: EventBus) -> SessionRecorder:
    return SessionRecorder(storage, events, clock=lambda: datetime(2026, 3, 10, 12, 0))


@pytest.fixture()
def settings_store(storage: Storage) -> SettingsStore:
    store = SettingsStore(storage)
    store.load()
    return store


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def notifications(notifier: FakeNotifier) -> NotificationService:
    return NotificationService(notifier)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 10, 9, 0).timestamp())


@pytest.fixture()
def remote_factory():
    return InMemoryRemoteStore

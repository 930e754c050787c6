from __future__ import annotations

"""Two-way union merge between the local history and a remote session store."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Iterable

from PyQt6.QtCore import QObject, QRunnable, QThreadPool, pyqtSignal, pyqtSlot

from pomodoro.core.errors import RemoteTransientError, SyncError
from pomodoro.core.events import EventBus
from pomodoro.core.settings import SettingsStore, TimerSettings
from pomodoro.data.models import Session
from pomodoro.data.recorder import SessionRecorder


logger = logging.getLogger(__name__)


class RemoteStore(ABC):
    """One record per session, keyed by session id."""

    @abstractmethod
    def check_account(self) -> None:
        """Raise RemoteUnavailable when no usable account is configured."""

    @abstractmethod
    def fetch_all(self) -> list[Session]:
        """Return every remote session; raise RemoteTransientError on failure."""

    @abstractmethod
    def save(self, sessions: Iterable[Session]) -> None:
        """Create or update the given sessions."""

    @abstractmethod
    def delete(self, session_ids: Iterable[str]) -> None:
        """Remove the given ids; unknown ids are ignored."""


@dataclass(frozen=True)
class SyncResult:
    pulled: int
    pushed: int
    synced_at: datetime


@dataclass(frozen=True)
class SyncStatus:
    is_syncing: bool = False
    last_synced_at: datetime | None = None
    last_error: str | None = None


class SyncReconciler:
    """Merges local and remote sets by id; sessions are immutable so there is no field merge.

    Remote sessions are written locally before the push. A failed push keeps
    them.
    """

    def __init__(
        self,
        recorder: SessionRecorder,
        remote: RemoteStore,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._recorder = recorder
        self._remote = remote
        self._clock = clock

    def sync(self) -> SyncResult:
        self._remote.check_account()
        remote_sessions = self._remote.fetch_all()
        remote_ids = {session.id for session in remote_sessions}

        local_ids = self._recorder.session_ids()
        new_from_remote = [session for session in remote_sessions if session.id not in local_ids]
        pulled = self._recorder.merge(new_from_remote)

        new_from_local = [session for session in self._recorder.sessions() if session.id not in remote_ids]
        if new_from_local:
            self._remote.save(new_from_local)

        synced_at = self._clock()
        self._recorder.mark_synced(synced_at)
        logger.info("Sync finished: %d pulled, %d pushed", len(pulled), len(new_from_local))
        return SyncResult(pulled=len(pulled), pushed=len(new_from_local), synced_at=synced_at)

    def delete_remote(self, session_ids: Iterable[str]) -> None:
        ids = list(session_ids)
        if not ids:
            return
        self._remote.check_account()
        self._remote.delete(ids)
        logger.info("Deleted %d session(s) from the remote store", len(ids))


class _WorkerSignals(QObject):
    finished = pyqtSignal(object, object)
    failed = pyqtSignal(object, object)


class _Worker(QRunnable):
    def __init__(self, kind: str, job: Callable[[], object]) -> None:
        super().__init__()
        self.kind = kind
        self.job = job
        self.signals = _WorkerSignals()

    @pyqtSlot()
    def run(self) -> None:
        try:
            result = self.job()
        except SyncError as exc:
            self.signals.failed.emit(self, exc)
            return
        except Exception as exc:
            logger.exception("Unexpected error in sync worker")
            self.signals.failed.emit(self, RemoteTransientError(str(exc)))
            return
        self.signals.finished.emit(self, result)


class SyncController(QObject):
    """Runs the reconciler in the background and publishes ``SyncStatus``.

    Status updates only happen on the thread that owns the controller.
    """

    status_changed = pyqtSignal(object)

    def __init__(
        self,
        reconciler: SyncReconciler,
        settings_store: SettingsStore,
        recorder: SessionRecorder,
        events: EventBus | None = None,
        pool: QThreadPool | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._reconciler = reconciler
        self._settings_store = settings_store
        self._events = events
        self._pool = pool or QThreadPool.globalInstance()
        self._workers: set[_Worker] = set()
        self._status = SyncStatus(last_synced_at=recorder.stats().last_synced_with_cloud)
        settings_store.settings_changed.connect(self._on_settings_changed)

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def enabled(self) -> bool:
        return self._settings_store.settings.cloud_sync_enabled

    def request_sync(self) -> bool:
        """Starts a background sync; returns False if one is already running."""
        if self._status.is_syncing:
            return False
        self._set_status(replace(self._status, is_syncing=True, last_error=None))
        self._submit("sync", self._reconciler.sync)
        return True

    def sync_now(self) -> SyncResult | None:
        """Blocking variant of ``request_sync``; errors end up in ``status``."""
        if self._status.is_syncing:
            return None
        self._set_status(replace(self._status, is_syncing=True, last_error=None))
        try:
            result = self._reconciler.sync()
        except SyncError as exc:
            self._on_failed(exc)
            return None
        self._on_sync_finished(result)
        return result

    def on_resume(self) -> None:
        if self.enabled:
            self.request_sync()

    def delete_remote(self, session_ids: Iterable[str]) -> None:
        ids = list(session_ids)
        if not ids or not self.enabled:
            return
        self._submit("delete", lambda: self._reconciler.delete_remote(ids))

    def _submit(self, kind: str, job: Callable[[], object]) -> None:
        worker = _Worker(kind, job)
        worker.setAutoDelete(False)
        self._workers.add(worker)
        worker.signals.finished.connect(self._on_worker_finished)
        worker.signals.failed.connect(self._on_worker_failed)
        self._pool.start(worker)

    def _on_worker_finished(self, worker: _Worker, result: object) -> None:
        self._workers.discard(worker)
        if worker.kind == "sync":
            self._on_sync_finished(result)

    def _on_worker_failed(self, worker: _Worker, error: SyncError) -> None:
        self._workers.discard(worker)
        if worker.kind == "sync":
            self._on_failed(error)
            return
        logger.warning("Remote %s failed: %s", worker.kind, error)
        self._set_status(replace(self._status, last_error=str(error)))

    def _on_sync_finished(self, result: SyncResult) -> None:
        self._set_status(SyncStatus(is_syncing=False, last_synced_at=result.synced_at, last_error=None))
        if self._events is not None:
            self._events.sync_completed.emit(result)

    def _on_failed(self, error: SyncError) -> None:
        logger.warning("Sync failed: %s", error)
        self._set_status(replace(self._status, is_syncing=False, last_error=str(error)))

    def _on_settings_changed(self, old: TimerSettings, new: TimerSettings) -> None:
        if new.cloud_sync_enabled and not old.cloud_sync_enabled:
            self.request_sync()

    def _set_status(self, status: SyncStatus) -> None:
        self._status = status
        self.status_changed.emit(status)

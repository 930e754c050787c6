from __future__ import annotations

"""Append-only session history with an incrementally maintained stats cache."""

import logging
import threading
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Iterable

from pomodoro.core.errors import PersistenceError
from pomodoro.core.events import EventBus
from pomodoro.data.models import PomodoroStats, Session, new_session_id
from pomodoro.data.storage import Storage


logger = logging.getLogger(__name__)


def apply_session(stats: PomodoroStats, session: Session, history: Iterable[Session], now: datetime) -> PomodoroStats:
    """Folds one appended session into ``stats``.

    ``history`` must already contain ``session``; it is used to count the
    completed work sessions on the session's day.
    """
    if not session.is_completed:
        return replace(stats, last_updated=now)
    day_count = sum(1 for item in history if item.is_completed and item.day == session.day)
    stats = replace(
        stats,
        total_sessions=stats.total_sessions + 1,
        total_time=stats.total_time + session.duration,
        last_updated=now,
    )
    if day_count > stats.most_productive_day_count:
        stats = replace(stats, most_productive_day=session.day_key, most_productive_day_count=day_count)
    return stats


def replay(sessions: Iterable[Session], now: datetime, last_synced: datetime | None = None) -> PomodoroStats:
    """Rebuilds statistics from scratch by applying every session in order."""
    stats = PomodoroStats(last_updated=now, last_synced_with_cloud=last_synced)
    seen: list[Session] = []
    for session in sessions:
        seen.append(session)
        stats = apply_session(stats, session, seen, now)
    return stats


class SessionRecorder:
    """Owns the local session list and the aggregate statistics.

    Both are loaded lazily and cached. Every mutation holds ``_lock`` until
    storage, cache and stats agree, so a sync worker thread and the timer can
    share one recorder.
    """

    def __init__(
        self,
        storage: Storage,
        events: EventBus | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._storage = storage
        self._events = events
        self._clock = clock
        self._lock = threading.RLock()
        self._sessions: list[Session] | None = None
        self._stats: PomodoroStats | None = None

    def sessions(self) -> list[Session]:
        with self._lock:
            self._ensure_loaded()
            return list(self._sessions or [])

    def stats(self) -> PomodoroStats:
        with self._lock:
            self._ensure_loaded()
            return self._stats or PomodoroStats()

    def session_ids(self) -> set[str]:
        with self._lock:
            self._ensure_loaded()
            return {session.id for session in self._sessions or []}

    def completed_work_count_on(self, day: date) -> int:
        return sum(1 for session in self.sessions() if session.is_completed and session.day == day)

    def record(self, start_time: datetime, end_time: datetime, duration: float, is_completed: bool) -> str:
        session = Session(
            id=new_session_id(),
            start_time=start_time.replace(microsecond=0),
            end_time=end_time.replace(microsecond=0),
            duration=float(duration),
            is_completed=is_completed,
        )
        self.merge([session])
        return session.id

    def merge(self, sessions: Iterable[Session]) -> list[Session]:
        """Appends the given sessions whose ids are unknown; returns what was added.

        On a storage failure nothing is added and the cache is left untouched.
        """
        with self._lock:
            self._ensure_loaded()
            current = list(self._sessions or [])
            known = {session.id for session in current}
            added: list[Session] = []
            for session in sessions:
                if session.id in known:
                    continue
                known.add(session.id)
                added.append(session)
            if not added:
                return []

            now = self._clock()
            stats = self._stats or PomodoroStats()
            history = list(current)
            for session in added:
                history.append(session)
                stats = apply_session(stats, session, history, now)
            history.sort(key=lambda item: item.start_time)

            try:
                self._storage.insert_sessions(added, stats=stats.to_dict())
            except PersistenceError:
                logger.exception("Failed to write %d session(s), keeping previous history", len(added))
                return []
            self._sessions = history
            self._stats = stats

        for session in added:
            logger.debug("Recorded session %s (completed=%s)", session.id, session.is_completed)
            if self._events is not None:
                self._events.session_added.emit(session)
        return added

    def clear_all(self) -> list[str]:
        """Deletes every session and zeroes the statistics; returns the removed ids."""
        with self._lock:
            self._ensure_loaded()
            removed = [session.id for session in self._sessions or []]
            stats = PomodoroStats(last_updated=self._clock())
            try:
                self._storage.delete_all_sessions(stats=stats.to_dict())
            except PersistenceError:
                logger.exception("Failed to clear history")
                return []
            self._sessions = []
            self._stats = stats
        logger.info("Cleared %d session(s)", len(removed))
        if self._events is not None:
            self._events.history_cleared.emit()
        return removed

    def clear_older_than(self, cutoff: datetime) -> list[str]:
        """Deletes sessions started before ``cutoff`` and replays stats from the rest."""
        with self._lock:
            self._ensure_loaded()
            current = self._sessions or []
            kept = [session for session in current if session.start_time >= cutoff]
            removed = [session.id for session in current if session.start_time < cutoff]
            if not removed:
                return []
            last_synced = self._stats.last_synced_with_cloud if self._stats else None
            stats = replay(kept, self._clock(), last_synced)
            try:
                self._storage.delete_sessions(removed, stats=stats.to_dict())
            except PersistenceError:
                logger.exception("Failed to clear history older than %s", cutoff)
                return []
            self._sessions = kept
            self._stats = stats
        logger.info("Cleared %d session(s) older than %s", len(removed), cutoff.isoformat())
        if self._events is not None:
            self._events.history_cleared.emit()
        return removed

    def recalculate_stats(self) -> PomodoroStats:
        with self._lock:
            self._ensure_loaded()
            last_synced = self._stats.last_synced_with_cloud if self._stats else None
            stats = replay(self._sessions or [], self._clock(), last_synced)
            self._save_stats(stats)
            return stats

    def mark_synced(self, at: datetime) -> None:
        with self._lock:
            self._ensure_loaded()
            self._save_stats(replace(self._stats or PomodoroStats(), last_synced_with_cloud=at))

    def reload(self) -> None:
        with self._lock:
            self._sessions = None
            self._stats = None

    def _save_stats(self, stats: PomodoroStats) -> None:
        try:
            self._storage.save_stats(stats.to_dict())
        except PersistenceError:
            logger.exception("Failed to write statistics")
            return
        self._stats = stats

    def _ensure_loaded(self) -> None:
        if self._sessions is None:
            try:
                self._sessions = self._storage.list_sessions()
            except PersistenceError:
                logger.exception("Failed to read sessions, starting from an empty history")
                self._sessions = []
        if self._stats is None:
            try:
                raw = self._storage.get_stats()
            except PersistenceError:
                logger.exception("Failed to read statistics")
                raw = None
            if raw is None:
                self._stats = PomodoroStats()
            else:
                try:
                    self._stats = PomodoroStats.from_dict(raw)
                except ValueError:
                    logger.warning("Statistics blob is corrupt, starting from zero")
                    self._stats = PomodoroStats()

from __future__ import annotations

"""Read-side queries and productivity aggregates over recorded sessions.

Listing queries return work and break sessions alike; the aggregates only
count completed work sessions. Ties in the "most productive" helpers go to
the first key met in chronological session order.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Iterable

from pomodoro.data.models import PomodoroStats, Session, TimeOfDay
from pomodoro.data.recorder import SessionRecorder


class Timeframe(str, Enum):
    DAILY = "Today"
    WEEKLY = "This Week"
    MONTHLY = "This Month"


@dataclass(frozen=True)
class DailyCount:
    day: date
    completed_sessions: int
    total_minutes: int


@dataclass(frozen=True)
class WeekdayCount:
    weekday: int
    sessions: int
    minutes: int

    @property
    def name(self) -> str:
        return WEEKDAY_NAMES[self.weekday]


WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


class HistoryQuery:
    def __init__(self, recorder: SessionRecorder) -> None:
        self._recorder = recorder

    def all_sessions(self) -> list[Session]:
        return self._recorder.sessions()

    def stats(self) -> PomodoroStats:
        return self._recorder.stats()

    def sessions_for_day(self, day: date) -> list[Session]:
        return [session for session in self.all_sessions() if session.day == day]

    def sessions_for_week(self, day: date) -> list[Session]:
        """Sessions in the ISO week (Monday to Sunday) containing ``day``."""
        week = day.isocalendar()[:2]
        return [session for session in self.all_sessions() if session.start_time.isocalendar()[:2] == week]

    def sessions_for_month(self, day: date) -> list[Session]:
        return [
            session
            for session in self.all_sessions()
            if (session.start_time.year, session.start_time.month) == (day.year, day.month)
        ]

    def sessions_in_range(self, start_day: date, end_day: date) -> list[Session]:
        """Sessions from the start of ``start_day`` up to the end of ``end_day``."""
        lower = datetime.combine(start_day, time.min)
        upper = datetime.combine(end_day + timedelta(days=1), time.min)
        return [session for session in self.all_sessions() if lower <= session.start_time < upper]

    def sessions_for_timeframe(self, timeframe: Timeframe, today: date | None = None) -> list[Session]:
        today = today or date.today()
        if timeframe == Timeframe.DAILY:
            return self.sessions_for_day(today)
        if timeframe == Timeframe.WEEKLY:
            return self.sessions_for_week(today)
        return self.sessions_for_month(today)

    def dates_with_sessions(self) -> list[date]:
        return sorted({session.day for session in self.all_sessions()})


def completed(sessions: Iterable[Session]) -> list[Session]:
    return [session for session in sessions if session.is_completed]


def total_completed(sessions: Iterable[Session]) -> int:
    return len(completed(sessions))


def total_minutes(sessions: Iterable[Session]) -> int:
    return int(sum(session.duration for session in completed(sessions)) // 60)


def group_by_day(sessions: Iterable[Session]) -> dict[str, list[Session]]:
    groups: dict[str, list[Session]] = {}
    for session in sessions:
        groups.setdefault(session.day_key, []).append(session)
    return groups


def group_by_time_of_day(sessions: Iterable[Session]) -> dict[TimeOfDay, list[Session]]:
    groups: dict[TimeOfDay, list[Session]] = {}
    for session in sessions:
        groups.setdefault(session.time_of_day, []).append(session)
    return groups


def _first_max(counts: Counter[Any]) -> tuple[Any, int]:
    # Counter keeps insertion order and max() returns the first maximum.
    key = max(counts, key=lambda item: counts[item])
    return key, counts[key]


def most_productive_time_of_day(sessions: Iterable[Session]) -> TimeOfDay | None:
    counts = Counter(session.time_of_day for session in completed(sessions))
    if not counts:
        return None
    return _first_max(counts)[0]


def most_productive_weekday(sessions: Iterable[Session]) -> tuple[int, int] | None:
    """Returns ``(weekday, completed count)`` with Monday as 0."""
    counts = Counter(session.start_time.weekday() for session in completed(sessions))
    if not counts:
        return None
    return _first_max(counts)


def most_productive_date(sessions: Iterable[Session]) -> tuple[date, int] | None:
    counts = Counter(session.day for session in completed(sessions))
    if not counts:
        return None
    return _first_max(counts)


def daily_counts(sessions: Iterable[Session]) -> list[DailyCount]:
    result = []
    for day_sessions in group_by_day(sessions).values():
        done = completed(day_sessions)
        result.append(
            DailyCount(
                day=day_sessions[0].day,
                completed_sessions=len(done),
                total_minutes=sum(int(session.duration // 60) for session in done),
            )
        )
    return sorted(result, key=lambda item: item.day)


def weekday_distribution(sessions: Iterable[Session]) -> list[WeekdayCount]:
    sessions_per_day = [0] * 7
    minutes_per_day = [0] * 7
    for session in completed(sessions):
        weekday = session.start_time.weekday()
        sessions_per_day[weekday] += 1
        minutes_per_day[weekday] += int(session.duration // 60)
    return [WeekdayCount(weekday=i, sessions=sessions_per_day[i], minutes=minutes_per_day[i]) for i in range(7)]


def time_of_day_distribution(sessions: Iterable[Session]) -> dict[TimeOfDay, int]:
    counts = Counter(session.time_of_day for session in completed(sessions))
    return {bucket: counts[bucket] for bucket in TimeOfDay if counts[bucket] > 0}

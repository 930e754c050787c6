from __future__ import annotations

"""Immutable session records and the aggregate statistics cache."""

import uuid
from dataclasses import asdict, dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any


class TimeOfDay(str, Enum):
    MORNING = "Morning"
    AFTERNOON = "Afternoon"
    EVENING = "Evening"
    NIGHT = "Night"

    @classmethod
    def for_hour(cls, hour: int) -> TimeOfDay:
        if 5 <= hour < 12:
            return cls.MORNING
        if 12 <= hour < 17:
            return cls.AFTERNOON
        if 17 <= hour < 21:
            return cls.EVENING
        return cls.NIGHT


def new_session_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Session:
    """One completed interval.

    ``is_completed`` is True for a finished work interval and False for a
    finished break. ``duration`` is the nominal interval length in seconds,
    frozen when the interval started, not ``end_time - start_time``.
    """

    id: str
    start_time: datetime
    end_time: datetime
    duration: float
    is_completed: bool

    @property
    def day(self) -> date:
        return self.start_time.date()

    @property
    def day_key(self) -> str:
        return self.start_time.strftime("%Y-%m-%d")

    @property
    def week_key(self) -> str:
        iso_year, iso_week, _ = self.start_time.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"

    @property
    def month_key(self) -> str:
        return self.start_time.strftime("%Y-%m")

    @property
    def time_of_day(self) -> TimeOfDay:
        return TimeOfDay.for_hour(self.start_time.hour)

    @property
    def duration_text(self) -> str:
        return f"{int(self.duration) // 60} min"

    def to_record(self) -> dict[str, Any]:
        """JSON-compatible form shared by local backups and the remote store."""
        return {
            "id": self.id,
            "startTime": self.start_time.isoformat(timespec="seconds"),
            "endTime": self.end_time.isoformat(timespec="seconds"),
            "duration": float(self.duration),
            "isCompleted": bool(self.is_completed),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Session:
        """Build a session from a remote record; raises ``ValueError`` on bad fields."""
        try:
            session_id = str(uuid.UUID(str(record["id"])))
            start_time = _parse_timestamp(record["startTime"])
            end_time = _parse_timestamp(record["endTime"])
            duration = float(record["duration"])
            is_completed = record["isCompleted"]
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Malformed session record: {record!r}") from exc
        if not isinstance(is_completed, bool):
            raise ValueError(f"Malformed session record: {record!r}")
        return cls(
            id=session_id,
            start_time=start_time,
            end_time=end_time,
            duration=duration,
            is_completed=is_completed,
        )


@dataclass(frozen=True)
class PomodoroStats:
    total_sessions: int = 0
    total_time: float = 0.0
    most_productive_day: str = ""
    most_productive_day_count: int = 0
    last_updated: datetime | None = None
    last_synced_with_cloud: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        for key in ("last_updated", "last_synced_with_cloud"):
            value = payload[key]
            payload[key] = value.isoformat(timespec="seconds") if value else None
        return payload

    @classmethod
    def from_dict(cls, raw: Any) -> PomodoroStats:
        if not isinstance(raw, dict):
            raise ValueError(f"Stats blob must be an object, got {type(raw).__name__}")
        try:
            return cls(
                total_sessions=int(raw.get("total_sessions", 0)),
                total_time=float(raw.get("total_time", 0.0)),
                most_productive_day=str(raw.get("most_productive_day", "")),
                most_productive_day_count=int(raw.get("most_productive_day_count", 0)),
                last_updated=_parse_optional_datetime(raw.get("last_updated")),
                last_synced_with_cloud=_parse_optional_datetime(raw.get("last_synced_with_cloud")),
            )
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Malformed stats blob: {raw!r}") from exc


def _parse_timestamp(value: Any) -> datetime:
    """Parses an ISO timestamp; values with an offset become naive local time."""
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _parse_optional_datetime(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    return datetime.fromisoformat(str(value))

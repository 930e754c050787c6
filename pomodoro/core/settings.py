from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, fields, replace
from numbers import Real
from typing import Any

from PyQt6.QtCore import QObject, pyqtSignal

from pomodoro.core.errors import ConfigurationInvalid, PersistenceError
from pomodoro.data.storage import SETTINGS_KEY, Storage


logger = logging.getLogger(__name__)

DURATION_KEYS = (
    "work_minutes",
    "short_break_minutes",
    "long_break_minutes",
    "sessions_until_long_break",
)


@dataclass(frozen=True)
class TimerSettings:
    work_minutes: float = 25.0
    short_break_minutes: float = 5.0
    long_break_minutes: float = 15.0
    sessions_until_long_break: int = 4
    sound_enabled: bool = True
    notifications_enabled: bool = True
    auto_start_breaks: bool = False
    auto_start_pomodoros: bool = False
    cloud_sync_enabled: bool = False

    @property
    def work_seconds(self) -> int:
        return int(self.work_minutes * 60)

    @property
    def short_break_seconds(self) -> int:
        return int(self.short_break_minutes * 60)

    @property
    def long_break_seconds(self) -> int:
        return int(self.long_break_minutes * 60)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Any, previous: TimerSettings | None = None) -> TimerSettings:
        """Builds settings from untrusted data.

        Invalid values are not adopted: each falls back to the matching field
        of ``previous`` and then to the documented default. Unknown keys are
        ignored.
        """
        base = previous or cls()
        if not isinstance(raw, dict):
            return base
        values: dict[str, Any] = {}
        for field in fields(cls):
            if field.name not in raw:
                continue
            try:
                values[field.name] = _validate(field.name, raw[field.name])
            except ConfigurationInvalid as exc:
                logger.warning("Ignoring setting %s: %s", field.name, exc)
        return replace(base, **values)

    def durations_differ(self, other: TimerSettings) -> bool:
        return any(getattr(self, key) != getattr(other, key) for key in DURATION_KEYS)


def _validate(name: str, value: Any) -> Any:
    default = getattr(TimerSettings, name)
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigurationInvalid(f"expected a boolean, got {value!r}")
        return value
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ConfigurationInvalid(f"expected a number, got {value!r}")
    if name == "sessions_until_long_break":
        if not math.isfinite(value) or int(value) != value or value <= 0:
            raise ConfigurationInvalid(f"cadence must be a positive integer, got {value!r}")
        return int(value)
    if not math.isfinite(value) or value * 60 < 1:
        raise ConfigurationInvalid(f"duration must be positive, got {value!r}")
    return float(value)


class SettingsStore(QObject):
    """Durable timer configuration, observed by the timer and sync controllers."""

    settings_changed = pyqtSignal(object, object)

    def __init__(self, storage: Storage) -> None:
        super().__init__()
        self._storage = storage
        self._settings = TimerSettings()

    @property
    def settings(self) -> TimerSettings:
        return self._settings

    def load(self) -> TimerSettings:
        try:
            raw = self._storage.get_setting(SETTINGS_KEY, {})
        except PersistenceError:
            logger.exception("Failed to read settings, using defaults")
            raw = {}
        self._settings = TimerSettings.from_dict(raw)
        return self._settings

    def update(self, **changes: Any) -> TimerSettings:
        unknown = set(changes) - {field.name for field in fields(TimerSettings)}
        if unknown:
            raise KeyError(f"Unknown settings: {', '.join(sorted(unknown))}")
        return self._apply(TimerSettings.from_dict(changes, previous=self._settings))

    def reset_to_defaults(self) -> TimerSettings:
        return self._apply(TimerSettings())

    def _apply(self, new: TimerSettings) -> TimerSettings:
        old = self._settings
        if new == old:
            return old
        try:
            self._storage.set_setting(SETTINGS_KEY, new.to_dict())
        except PersistenceError:
            logger.exception("Failed to persist settings, keeping them for this run only")
        self._settings = new
        self.settings_changed.emit(old, new)
        return new

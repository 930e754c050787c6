from __future__ import annotations


class PomodoroError(Exception):
    """Base class for all errors raised by the pomodoro core."""


class ConfigurationInvalid(PomodoroError, ValueError):
    """A duration or cadence setting is zero, negative or not a number."""


class PersistenceError(PomodoroError):
    """Local storage could not be read or written."""


class SyncError(PomodoroError):
    """Base class for remote sync failures surfaced to the user."""


class RemoteUnavailable(SyncError):
    """No remote account is configured or the account rejected the credentials."""


class RemoteTransientError(SyncError):
    """Network or server failure while talking to the remote store."""


class NotificationPermissionDenied(PomodoroError):
    """The desktop environment does not allow this process to show notifications."""

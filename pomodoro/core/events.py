from __future__ import annotations

from PyQt6.QtCore import QObject, pyqtSignal


class EventBus(QObject):
    """Process-wide notifications shared by the recorder, sync and views.

    Signals emitted from a worker thread are queued to receivers living on
    the main thread, so delivery stays ordered per emitter.
    """

    session_added = pyqtSignal(object)
    history_cleared = pyqtSignal()
    sync_completed = pyqtSignal(object)

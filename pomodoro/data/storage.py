from __future__ import annotations

"""SQLite storage: the append-only session table and JSON settings blobs."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Iterator

from pomodoro.core.errors import PersistenceError
from pomodoro.data.models import Session


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
SETTINGS_KEY = "timer_settings"
STATS_KEY = "pomodoro_stats"


class Storage:
    """Wraps the SQLite file; every public call opens its own connection."""
    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode = WAL;")
        except sqlite3.DatabaseError:
            pass
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot open {self.db_path}: {exc}") from exc
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise PersistenceError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_db(self) -> None:
        with self._transaction() as conn:
            conn.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER NOT NULL)")
            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
            if not row:
                conn.execute("INSERT INTO schema_version(version) VALUES (?)", (SCHEMA_VERSION,))
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions(
                    id TEXT PRIMARY KEY,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    duration REAL NOT NULL,
                    is_completed INTEGER NOT NULL CHECK(is_completed IN (0, 1))
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_start ON sessions(start_time)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS settings(
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
                """
            )

    def get_setting(self, key: str, default: Any = None) -> Any:
        with self._transaction() as conn:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        if not row:
            return default
        raw = row["value"]
        try:
            return json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            logger.warning("Setting %r holds undecodable data, using default", key)
            return default

    def set_setting(self, key: str, value: Any) -> None:
        with self._transaction() as conn:
            self._write_setting(conn, key, value)

    def _write_setting(self, conn: sqlite3.Connection, key: str, value: Any) -> None:
        conn.execute(
            "INSERT INTO settings(key, value) VALUES(?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
            (key, json.dumps(value)),
        )

    def get_stats(self) -> Any:
        return self.get_setting(STATS_KEY)

    def insert_sessions(self, sessions: Iterable[Session], stats: dict[str, Any] | None = None) -> int:
        """Appends sessions and optionally rewrites the stats blob in one transaction.

        Ids already stored are skipped. Returns the number of rows inserted.
        """
        inserted = 0
        with self._transaction() as conn:
            for session in sessions:
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO sessions(id, start_time, end_time, duration, is_completed)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        session.id,
                        session.start_time.isoformat(timespec="seconds"),
                        session.end_time.isoformat(timespec="seconds"),
                        float(session.duration),
                        int(session.is_completed),
                    ),
                )
                inserted += cursor.rowcount
            if stats is not None:
                self._write_setting(conn, STATS_KEY, stats)
        return inserted

    def list_sessions(self) -> list[Session]:
        """Returns every session in chronological order of start time."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT id, start_time, end_time, duration, is_completed
                FROM sessions
                ORDER BY start_time ASC, rowid ASC
                """
            ).fetchall()
        sessions: list[Session] = []
        for row in rows:
            try:
                sessions.append(
                    Session(
                        id=row["id"],
                        start_time=datetime.fromisoformat(row["start_time"]),
                        end_time=datetime.fromisoformat(row["end_time"]),
                        duration=float(row["duration"]),
                        is_completed=bool(row["is_completed"]),
                    )
                )
            except (TypeError, ValueError):
                logger.warning("Skipping undecodable session row %r", row["id"])
        return sessions

    def delete_all_sessions(self, stats: dict[str, Any] | None = None) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM sessions")
            if stats is not None:
                self._write_setting(conn, STATS_KEY, stats)

    def delete_sessions(self, session_ids: Iterable[str], stats: dict[str, Any] | None = None) -> None:
        with self._transaction() as conn:
            conn.executemany("DELETE FROM sessions WHERE id = ?", [(session_id,) for session_id in session_ids])
            if stats is not None:
                self._write_setting(conn, STATS_KEY, stats)

    def save_stats(self, stats: dict[str, Any]) -> None:
        self.set_setting(STATS_KEY, stats)

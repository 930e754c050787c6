from __future__ import annotations

"""Process configuration read from the environment at startup."""

import os
from dataclasses import dataclass
from pathlib import Path


def default_db_path() -> Path:
    return Path.cwd() / "pomodoro.db"


@dataclass(frozen=True)
class AppConfig:
    db_path: Path
    sync_url: str = ""
    sync_token: str = ""
    log_level: str = "INFO"
    log_file: Path | None = None

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> AppConfig:
        env = os.environ if environ is None else environ
        log_file = env.get("POMODORO_LOG_FILE", "")
        return cls(
            db_path=Path(env.get("POMODORO_DB_PATH") or default_db_path()),
            sync_url=env.get("POMODORO_SYNC_URL", ""),
            sync_token=env.get("POMODORO_SYNC_TOKEN", ""),
            log_level=env.get("POMODORO_LOG_LEVEL", "INFO").upper(),
            log_file=Path(log_file) if log_file else None,
        )

from __future__ import annotations

"""REST backup of session history.

Endpoints, relative to ``base_url``::

    GET  /sessions          -> [{"id", "startTime", "endTime", "duration", "isCompleted"}, ...]
    PUT  /sessions/<id>     upsert one record
    POST /sessions/delete   {"ids": [...]}
"""

import logging
from typing import Any, Iterable

import requests

from pomodoro.core.errors import RemoteTransientError, RemoteUnavailable
from pomodoro.core.sync import RemoteStore
from pomodoro.data.models import Session


logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10


class HttpRemoteStore(RemoteStore):
    def __init__(
        self,
        base_url: str,
        token: str | None,
        session: requests.Session | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token or ""
        self.timeout = timeout
        self._http = session or requests.Session()

    def check_account(self) -> None:
        if not self.base_url or not self.token:
            raise RemoteUnavailable("Cloud backup is not configured: sign in to enable sync")

    def fetch_all(self) -> list[Session]:
        response = self._request("GET", "/sessions")
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteTransientError("Backup server returned invalid JSON") from exc
        if isinstance(payload, dict):
            payload = payload.get("sessions")
        if not isinstance(payload, list):
            raise RemoteTransientError("Backup server returned an unexpected payload")

        sessions: list[Session] = []
        for record in payload:
            try:
                sessions.append(Session.from_record(record))
            except ValueError:
                logger.warning("Skipping malformed remote record: %r", record)
        return sessions

    def save(self, sessions: Iterable[Session]) -> None:
        for session in sessions:
            self._request("PUT", f"/sessions/{session.id}", json=session.to_record())

    def delete(self, session_ids: Iterable[str]) -> None:
        ids = list(session_ids)
        if ids:
            self._request("POST", "/sessions/delete", json={"ids": ids})

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        self.check_account()
        headers = {"Authorization": f"Bearer {self.token}"}
        try:
            response = self._http.request(
                method,
                f"{self.base_url}{path}",
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise RemoteTransientError(f"Cannot reach the backup server: {exc}") from exc
        if response.status_code in (401, 403):
            raise RemoteUnavailable("The backup account rejected the credentials")
        if response.status_code >= 400:
            raise RemoteTransientError(f"Backup server answered {response.status_code} to {method} {path}")
        return response

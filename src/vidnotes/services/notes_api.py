"""HTTP client for the external notes service."""

from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Dict, Mapping, Optional

import requests
from rich.console import Console

from vidnotes.config.settings import Settings, get_settings

RESPONSE_PREVIEW_CHARS = 200


class NotesApiError(RuntimeError):
    """Raised when the notes service rejects a request or cannot be reached."""

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass(slots=True)
class NoteSubmission:
    """Outcome of a single note submission.

    A duplicate-conflict answer is reported as ``success=True, skipped=True``.
    """

    success: bool
    skipped: bool = False
    status: Optional[int] = None
    error: Optional[str] = None
    response: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.skipped:
            payload["skipped"] = True
        if self.status is not None:
            payload["status"] = self.status
        if self.error is not None:
            payload["error"] = self.error
        if self.response is not None:
            payload["response"] = self.response
        return payload


class NotesApiClient:
    """Submit notes to the configured endpoint and interpret its answers."""

    def __init__(
        self,
        *,
        endpoint: Optional[str] = None,
        settings: Optional[Settings] = None,
        console: Optional[Console] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._console = console or Console()
        self._endpoint = endpoint or str(self._settings.notes_api_endpoint)
        self._timeout = self._settings.notes_api_timeout_seconds
        self._session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def save_note(self, payload: Mapping[str, Any]) -> NoteSubmission:
        """Post a note payload.

        Parameters
        ----------
        payload:
            Rendered note payload (``content`` plus ``metadata``).

        Returns
        -------
        NoteSubmission
            ``success`` for any 2xx answer, ``skipped`` for a 409 conflict, and
            ``success=False`` with an error message for every other failure.
        """

        try:
            response = self._post(payload)
        except NotesApiError as exc:
            self._console.log(f"[red]Notes API:[/red] failed to save note: {exc}")
            return NoteSubmission(success=False, status=exc.status, error=str(exc))

        if response.status_code == HTTPStatus.CONFLICT:
            self._console.log("[yellow]Notes API:[/yellow] note already exists (duplicate)")
            return NoteSubmission(success=True, skipped=True, status=response.status_code)

        self._console.log(f"[green]Notes API:[/green] note saved (status={response.status_code})")
        return NoteSubmission(success=True, status=response.status_code)

    def test_connection(self, payload: Mapping[str, Any]) -> NoteSubmission:
        """Post a test payload and return a truncated preview of the service's answer."""

        try:
            response = self._post(payload, accept_conflict=False)
        except NotesApiError as exc:
            return NoteSubmission(success=False, status=exc.status, error=str(exc))

        return NoteSubmission(
            success=True,
            status=response.status_code,
            response=response.text[:RESPONSE_PREVIEW_CHARS],
        )

    def close(self) -> None:
        self._session.close()

    def _post(self, payload: Mapping[str, Any], *, accept_conflict: bool = True) -> requests.Response:
        try:
            response = self._session.post(
                self._endpoint,
                json=dict(payload),
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise NotesApiError(f"Request to {self._endpoint} failed: {exc}") from exc

        if accept_conflict and response.status_code == HTTPStatus.CONFLICT:
            return response
        if not response.ok:
            raise NotesApiError(
                f"API request failed: {response.status_code} {response.reason}",
                status=response.status_code,
            )
        return response


__all__ = ["NoteSubmission", "NotesApiClient", "NotesApiError"]

"""Request dispatcher in front of the orchestrator (panels and the relay bridge talk to this)."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import ValidationError
from rich.console import Console

from vidnotes.config.settings import Settings, get_settings
from vidnotes.models.messages import ControllerAction, ConnectionTestRequest, ImportChannelRequest
from vidnotes.services.broadcaster import ProgressSink
from vidnotes.services.notes_api import NotesApiClient
from vidnotes.services.orchestrator import ImportJobError, ImportOrchestrator

NotesClientFactory = Callable[[Optional[str]], NotesApiClient]


class ImportController:
    """Answer ``{action, ...}`` request envelopes from control panels and the relay bridge."""

    def __init__(
        self,
        *,
        orchestrator: ImportOrchestrator,
        notes_client_factory: NotesClientFactory,
        settings: Optional[Settings] = None,
        console: Optional[Console] = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._notes_client_factory = notes_client_factory
        self._settings = settings or get_settings()
        self._console = console or Console()

    async def dispatch(
        self,
        envelope: Mapping[str, Any],
        *,
        external_observer: Optional[ProgressSink] = None,
    ) -> Dict[str, Any]:
        action = envelope.get("action")
        self._console.log(f"Controller: received {action!r}")

        if action == ControllerAction.PING.value:
            return {"success": True, "message": "Importer is available"}
        if action == ControllerAction.GET_CONFIG.value:
            return {
                "apiEndpoint": str(self._settings.notes_api_endpoint),
                "payloadTemplate": self._settings.payload_template,
            }
        if action == ControllerAction.IMPORT_CHANNEL.value:
            return await self._import_channel(envelope, external_observer)
        if action == ControllerAction.TEST_API.value:
            return await self._test_api(envelope)
        return {"success": False, "error": f"Unknown action: {action!r}"}

    async def _import_channel(
        self,
        envelope: Mapping[str, Any],
        external_observer: Optional[ProgressSink],
    ) -> Dict[str, Any]:
        try:
            request = ImportChannelRequest.model_validate(envelope)
        except ValidationError as exc:
            return {"success": False, "error": f"Invalid importChannel request: {exc.error_count()} error(s)"}

        limit = request.limit or self._settings.default_import_limit
        try:
            summary = await self._orchestrator.start_import(request.channel_url, limit, external_observer)
        except (ValueError, ImportJobError) as exc:
            self._console.log(f"[red]Controller:[/red] import rejected: {exc}")
            return {"success": False, "error": str(exc)}

        if not summary.ok:
            return {"success": False, "error": summary.error}
        return {"success": True}

    async def _test_api(self, envelope: Mapping[str, Any]) -> Dict[str, Any]:
        try:
            request = ConnectionTestRequest.model_validate(envelope)
        except ValidationError as exc:
            return {"success": False, "error": f"Invalid testAPI request: {exc.error_count()} error(s)"}

        client = self._notes_client_factory(request.endpoint)
        try:
            result = await asyncio.to_thread(client.test_connection, request.payload)
        finally:
            client.close()
        return result.as_dict()


__all__ = ["ImportController", "NotesClientFactory"]

import json
from pathlib import Path
from typing import Any, Mapping, Optional

import pytest
from rich.console import Console
from typer.testing import CliRunner

from vidnotes.cli import create_app
from vidnotes.cli.commands import import_channel
from vidnotes.config.settings import get_settings
from vidnotes.services.dedup import DedupStore
from vidnotes.services.notes_api import NoteSubmission

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, dedup_path: Path):
    monkeypatch.setenv("DEDUP_STORE_PATH", str(dedup_path))
    monkeypatch.setenv("NOTES_API_ENDPOINT", "http://notes.test/api/notes")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _app():
    return create_app(console=Console(width=200))


def test_imported_check_reports_membership(dedup_path: Path) -> None:
    DedupStore(dedup_path, console=Console(quiet=True)).mark("abc123")

    found = runner.invoke(_app(), ["imported", "--check", "abc123", "--json"])
    missing = runner.invoke(_app(), ["imported", "--check", "zzz", "--json"])

    assert found.exit_code == 0
    assert json.loads(found.stdout.splitlines()[-1]) == {"video_id": "abc123", "imported": True}
    assert json.loads(missing.stdout.splitlines()[-1]) == {"video_id": "zzz", "imported": False}


def test_imported_lists_store_size(dedup_path: Path) -> None:
    store = DedupStore(dedup_path, console=Console(quiet=True))
    store.mark("a")
    store.mark("b")

    result = runner.invoke(_app(), ["imported"])

    assert result.exit_code == 0
    assert "Imported videos: 2" in result.stdout


def test_import_channel_rejects_invalid_input_before_launching_browser() -> None:
    bad_url = runner.invoke(_app(), ["import-channel", "not a url"])
    bad_limit = runner.invoke(_app(), ["import-channel", "https://www.youtube.com/@chan", "--limit", "0"])

    assert bad_url.exit_code == import_channel.ImportExitCode.INVALID_INPUT
    assert "Invalid channel URL" in bad_url.stdout
    assert bad_limit.exit_code == import_channel.ImportExitCode.INVALID_INPUT


class StubNotesClient:
    def __init__(self, *, endpoint: Optional[str] = None, console: Optional[Console] = None) -> None:
        self.endpoint = endpoint or "http://notes.test/api/notes"

    def test_connection(self, payload: Mapping[str, Any]) -> NoteSubmission:
        if "down" in self.endpoint:
            return NoteSubmission(success=False, error="Request to endpoint failed")
        return NoteSubmission(success=True, status=201, response='{"id": 1}')

    def close(self) -> None:
        pass


def test_test_api_reports_success_and_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(import_channel, "NotesApiClient", StubNotesClient)

    ok = runner.invoke(_app(), ["test-api"])
    down = runner.invoke(_app(), ["test-api", "--endpoint", "http://down.test/notes"])

    assert ok.exit_code == 0
    assert "Connected to http://notes.test/api/notes" in ok.stdout
    assert down.exit_code == import_channel.ImportExitCode.NETWORK_ERROR
    assert "Connection failed" in down.stdout


class ConsoleRecordingClient(StubNotesClient):
    consoles: list = []

    def __init__(self, *, endpoint: Optional[str] = None, console: Optional[Console] = None) -> None:
        super().__init__(endpoint=endpoint, console=console)
        ConsoleRecordingClient.consoles.append(console)


@pytest.mark.parametrize(("level", "quiet"), [("ERROR", True), ("WARNING", True), ("INFO", False), ("debug", False)])
def test_log_level_gates_service_logging(monkeypatch: pytest.MonkeyPatch, level: str, quiet: bool) -> None:
    monkeypatch.setenv("LOG_LEVEL", level)
    get_settings.cache_clear()
    ConsoleRecordingClient.consoles = []
    monkeypatch.setattr(import_channel, "NotesApiClient", ConsoleRecordingClient)

    result = runner.invoke(_app(), ["test-api"])

    assert result.exit_code == 0
    [service_console] = ConsoleRecordingClient.consoles
    assert service_console.quiet is quiet
    assert service_console.stderr is True

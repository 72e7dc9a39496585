import asyncio
from typing import List, Optional

from rich.console import Console

from conftest import FakeDriver, FakeNotesClient, RecordingSink, scraped
from vidnotes.config.settings import Settings
from vidnotes.services.broadcaster import ProgressBroadcaster
from vidnotes.services.controller import ImportController
from vidnotes.services.orchestrator import ImportOrchestrator
from vidnotes.services.relay import LocalPageWindow, RelayBridge

LISTING = "https://www.youtube.com/@chan/videos"


class ClientFactory:
    def __init__(self) -> None:
        self.endpoints: List[Optional[str]] = []
        self.clients: List[FakeNotesClient] = []

    def __call__(self, endpoint: Optional[str] = None) -> FakeNotesClient:
        self.endpoints.append(endpoint)
        client = FakeNotesClient()
        self.clients.append(client)
        return client


def _controller(driver: FakeDriver, settings: Settings, console: Console, factory=None) -> ImportController:
    orchestrator = ImportOrchestrator(
        driver=driver,
        broadcaster=ProgressBroadcaster(console=console),
        settings=settings,
        console=console,
    )
    return ImportController(
        orchestrator=orchestrator,
        notes_client_factory=factory or ClientFactory(),
        settings=settings,
        console=console,
    )


def test_ping_and_unknown_actions(driver, settings, console) -> None:
    controller = _controller(driver, settings, console)

    assert asyncio.run(controller.dispatch({"action": "ping"}))["success"] is True
    assert asyncio.run(controller.dispatch({"action": "selfDestruct"})) == {
        "success": False,
        "error": "Unknown action: 'selfDestruct'",
    }


def test_get_config_exposes_endpoint_and_template(driver, settings, console) -> None:
    config = asyncio.run(_controller(driver, settings, console).dispatch({"action": "getConfig"}))

    assert config["apiEndpoint"] == "http://notes.test/api/notes"
    assert config["payloadTemplate"] == settings.payload_template


def test_import_channel_runs_job_with_default_limit(driver, settings, console) -> None:
    driver.listing(LISTING, [scraped("v1")])
    driver.replies["https://www.youtube.com/watch?v=v1"] = {"success": True}
    observer = RecordingSink()

    response = asyncio.run(
        _controller(driver, settings, console).dispatch(
            {"action": "importChannel", "channelUrl": "https://www.youtube.com/@chan"},
            external_observer=observer,
        )
    )

    assert response == {"success": True}
    assert driver.messages[0]["limit"] == settings.default_import_limit
    assert observer.messages[-1].completed is True


def test_import_channel_reports_setup_and_argument_errors(driver, settings, console) -> None:
    driver.listing(LISTING, [])
    controller = _controller(driver, settings, console)

    failed = asyncio.run(controller.dispatch({"action": "importChannel", "channelUrl": "https://www.youtube.com/@chan"}))
    invalid = asyncio.run(controller.dispatch({"action": "importChannel", "channelUrl": "nope", "limit": 3}))
    missing = asyncio.run(controller.dispatch({"action": "importChannel"}))

    assert failed == {"success": False, "error": "No videos found on channel"}
    assert invalid["success"] is False
    assert "Invalid channel URL" in invalid["error"]
    assert missing["success"] is False


def test_test_api_uses_requested_endpoint_and_closes_client(driver, settings, console) -> None:
    factory = ClientFactory()
    controller = _controller(driver, settings, console, factory)

    result = asyncio.run(
        controller.dispatch({"action": "testAPI", "endpoint": "http://other.test/hook", "payload": {"content": "t"}})
    )

    assert result == {"success": True, "status": 200, "response": "ok"}
    assert factory.endpoints == ["http://other.test/hook"]
    assert factory.clients[0].payloads == [{"content": "t"}]
    assert factory.clients[0].closed


def test_relay_bridge_drives_import_and_receives_progress(driver, settings, console) -> None:
    driver.listing(LISTING, [scraped("v1")])
    driver.replies["https://www.youtube.com/watch?v=v1"] = {"success": True}
    controller = _controller(driver, settings, console)
    window = LocalPageWindow()

    async def dispatch(envelope):
        return await controller.dispatch(envelope, external_observer=bridge)

    bridge = RelayBridge(window, dispatch, console=console)

    async def scenario() -> None:
        await bridge.attach()
        await window.post_message(
            {
                "type": "EXTENSION_MESSAGE",
                "id": 42,
                "payload": {"action": "importChannel", "channelUrl": "https://www.youtube.com/@chan", "limit": 1},
            }
        )

    asyncio.run(scenario())

    types = [message["type"] for message in window.posted]
    assert types == [
        "EXTENSION_BRIDGE_READY",
        "EXTENSION_MESSAGE",
        "EXTENSION_PROGRESS",
        "EXTENSION_PROGRESS",
        "EXTENSION_RESPONSE",
    ]
    assert window.posted[-1] == {"type": "EXTENSION_RESPONSE", "id": 42, "response": {"success": True}}
    assert window.posted[-2]["payload"]["completed"] is True

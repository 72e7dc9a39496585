"""Relay bridge living inside the external application's page.

The external application cannot reach the import controller directly. The bridge listens for
invoke events posted by the page's own script, forwards the payload verbatim, and posts the
answer back tagged with the caller's correlation id. Progress pushes bypass the correlation
protocol and are republished as page-local events.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from pydantic import ValidationError
from rich.console import Console

from vidnotes.models.messages import RELAY_READY, RELAY_REQUEST, RelayProgress, RelayRequest, RelayResponse
from vidnotes.services.broadcaster import ObserverUnavailableError
from vidnotes.utils.progress import ProgressMessage

Dispatcher = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


@dataclass(slots=True)
class PageEvent:
    """A message event observed in the external application's page."""

    data: Any
    same_window: bool


PageListener = Callable[[PageEvent], Awaitable[None]]


class PageWindow(Protocol):
    """Page-local event channel of the external application."""

    def add_listener(self, listener: PageListener) -> None:
        """Register ``listener`` for every message event in the page."""

    def remove_listener(self, listener: PageListener) -> None:
        """Stop delivering events to ``listener``."""

    async def post_message(self, data: Mapping[str, Any]) -> None:
        """Post ``data`` as a message event in the page."""


class RelayBridge:
    """Stateless forwarder between an external page and the import controller."""

    def __init__(
        self,
        window: PageWindow,
        dispatcher: Dispatcher,
        *,
        console: Optional[Console] = None,
    ) -> None:
        self._window = window
        self._dispatcher = dispatcher
        self._console = console or Console()
        self._attached = False

    @property
    def attached(self) -> bool:
        return self._attached

    async def attach(self) -> None:
        """Start listening and tell the page that the bridge is ready."""

        if self._attached:
            return
        self._window.add_listener(self.handle_event)
        self._attached = True
        await self._window.post_message({"type": RELAY_READY})
        self._console.log("[blue]Relay:[/blue] bridge attached")

    def detach(self) -> None:
        if not self._attached:
            return
        self._window.remove_listener(self.handle_event)
        self._attached = False

    async def handle_event(self, event: PageEvent) -> None:
        """Forward an invoke event from the page's own script and post the correlated answer."""

        if not event.same_window:
            return
        if not isinstance(event.data, Mapping) or event.data.get("type") != RELAY_REQUEST:
            return

        try:
            request = RelayRequest.model_validate(event.data)
        except ValidationError as exc:
            self._console.log(f"[yellow]Relay:[/yellow] dropping malformed invoke event ({exc.error_count()} error(s))")
            return

        try:
            response = await self._dispatcher(dict(request.payload))
        except Exception as exc:
            reply = RelayResponse(id=request.id, error=str(exc) or exc.__class__.__name__)
        else:
            reply = RelayResponse(id=request.id, response=response)
        await self._window.post_message(reply.model_dump(mode="json", exclude_none=True))

    async def deliver(self, message: ProgressMessage) -> None:
        """Republish a progress push as a page-local event."""

        if not self._attached:
            raise ObserverUnavailableError("Relay bridge is not attached to a page.")
        progress = RelayProgress(payload=message.to_wire())
        await self._window.post_message(progress.model_dump(mode="json"))


# ---------------------------------------------------------------------- #
# Page windows                                                           #
# ---------------------------------------------------------------------- #
class LocalPageWindow:
    """In-process :class:`PageWindow`; events posted here count as coming from the page itself."""

    def __init__(self) -> None:
        self._listeners: List[PageListener] = []
        self.posted: List[Dict[str, Any]] = []

    def add_listener(self, listener: PageListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: PageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def post_message(self, data: Mapping[str, Any]) -> None:
        self.posted.append(dict(data))
        await self.dispatch(PageEvent(data=dict(data), same_window=True))

    async def dispatch(self, event: PageEvent) -> None:
        for listener in list(self._listeners):
            await listener(event)


_BINDING_NAME = "__vidnotesRelay"
_LISTENER_SCRIPT = """
(() => {
  if (window.__vidnotesRelayInstalled) return;
  window.__vidnotesRelayInstalled = true;
  window.addEventListener('message', (event) => {
    if (!event.data || event.data.type !== 'EXTENSION_MESSAGE') return;
    window.__vidnotesRelay({ data: event.data, sameWindow: event.source === window });
  });
})();
"""


class PlaywrightPageWindow:
    """:class:`PageWindow` over a Playwright page, using an exposed binding for inbound events."""

    def __init__(self, page: Page, *, console: Optional[Console] = None) -> None:
        self._page = page
        self._console = console or Console()
        self._listeners: List[PageListener] = []
        self._installed = False

    async def install(self) -> None:
        """Expose the inbound binding and register the page-side message listener."""

        if self._installed:
            return
        await self._page.expose_function(_BINDING_NAME, self._on_page_event)
        await self._page.add_init_script(_LISTENER_SCRIPT)
        await self._page.evaluate(_LISTENER_SCRIPT)
        self._installed = True

    def add_listener(self, listener: PageListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: PageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def post_message(self, data: Mapping[str, Any]) -> None:
        if self._page.is_closed():
            raise ObserverUnavailableError("External application page is closed.")
        try:
            await self._page.evaluate("(data) => window.postMessage(data, '*')", dict(data))
        except PlaywrightError as exc:
            raise ObserverUnavailableError(f"External application page unreachable: {exc}") from exc

    async def _on_page_event(self, event: Dict[str, Any]) -> None:
        page_event = PageEvent(data=event.get("data"), same_window=bool(event.get("sameWindow")))
        for listener in list(self._listeners):
            await listener(page_event)


__all__ = [
    "Dispatcher",
    "LocalPageWindow",
    "PageEvent",
    "PageWindow",
    "PlaywrightPageWindow",
    "RelayBridge",
]

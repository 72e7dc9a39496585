"""Browser automation seam: work-page ownership, navigation, and page-agent messaging."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol
from uuid import uuid4

from playwright.async_api import Browser, BrowserContext, ElementHandle, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from rich.console import Console

from vidnotes.config.settings import Settings, get_settings
from vidnotes.models.job import WorkHandle


class BrowserError(RuntimeError):
    """Base exception raised by browser drivers."""


class NavigationTimeoutError(BrowserError):
    """Raised when a page does not finish loading within the navigation timeout."""


class PageClosedError(BrowserError):
    """Raised when an operation targets a work page that no longer exists."""


class AgentDeliveryError(BrowserError):
    """Raised when a request cannot reach the page agent or its channel breaks mid-call."""


# ---------------------------------------------------------------------- #
# DOM access used by page agents                                         #
# ---------------------------------------------------------------------- #
class DomNode(Protocol):
    """Minimal element interface the page agent relies on."""

    async def text(self) -> str:
        """Return the element's text content (empty string when absent)."""

    async def attribute(self, name: str) -> Optional[str]:
        """Return an attribute value or ``None``."""

    async def click(self) -> None:
        """Activate the element."""

    async def query(self, selector: str) -> Optional["DomNode"]:
        """Return the first descendant matching ``selector``."""


class PageDom(Protocol):
    """Document-level operations available to a page agent."""

    async def url(self) -> str:
        """Return the page's current location."""

    async def query(self, selector: str) -> Optional[DomNode]:
        """Return the first node matching ``selector``."""

    async def query_all(self, selector: str) -> List[DomNode]:
        """Return every node matching ``selector`` in document order."""

    async def scroll_to_bottom(self) -> None:
        """Scroll the document to its full height to trigger lazy loading."""


class PlaywrightNode:
    """:class:`DomNode` backed by a Playwright element handle."""

    def __init__(self, handle: ElementHandle) -> None:
        self._handle = handle

    async def text(self) -> str:
        return (await self._handle.text_content()) or ""

    async def attribute(self, name: str) -> Optional[str]:
        return await self._handle.get_attribute(name)

    async def click(self) -> None:
        await self._handle.click()

    async def query(self, selector: str) -> Optional["PlaywrightNode"]:
        child = await self._handle.query_selector(selector)
        return PlaywrightNode(child) if child is not None else None


class PlaywrightDom:
    """:class:`PageDom` backed by a Playwright page."""

    def __init__(self, page: Page) -> None:
        self._page = page

    async def url(self) -> str:
        return self._page.url

    async def query(self, selector: str) -> Optional[PlaywrightNode]:
        handle = await self._page.query_selector(selector)
        return PlaywrightNode(handle) if handle is not None else None

    async def query_all(self, selector: str) -> List[PlaywrightNode]:
        return [PlaywrightNode(handle) for handle in await self._page.query_selector_all(selector)]

    async def scroll_to_bottom(self) -> None:
        await self._page.evaluate("window.scrollTo(0, document.body.scrollHeight)")


class MessageReceiver(Protocol):
    """Anything that answers ``{action, ...}`` envelopes inside a page."""

    async def handle_message(self, envelope: Mapping[str, Any]) -> Dict[str, Any]:
        """Answer a single request envelope."""


AgentFactory = Callable[[PageDom], MessageReceiver]


# ---------------------------------------------------------------------- #
# Drivers                                                                #
# ---------------------------------------------------------------------- #
class BrowserDriver(Protocol):
    """Operations the orchestrator needs from a browser, keyed by ownership token."""

    async def open_page(self, job_id: Any) -> WorkHandle:
        """Open a new blank page owned by ``job_id``."""

    async def navigate(self, handle: WorkHandle, url: str, *, timeout: float) -> None:
        """Navigate the owned page and wait for load completion within ``timeout`` seconds."""

    async def send_message(self, handle: WorkHandle, envelope: Mapping[str, Any]) -> Dict[str, Any]:
        """Deliver a request to the page agent of the owned page and return its answer."""

    async def close_page(self, handle: WorkHandle) -> None:
        """Remove the owned page."""


class PlaywrightDriver:
    """Chromium-backed :class:`BrowserDriver` that injects a fresh page agent after every load."""

    def __init__(
        self,
        *,
        agent_factory: AgentFactory,
        settings: Optional[Settings] = None,
        console: Optional[Console] = None,
        headless: Optional[bool] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._console = console or Console()
        self._agent_factory = agent_factory
        self._headless = self._settings.browser_headless if headless is None else headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._pages: Dict[str, Page] = {}
        self._agents: Dict[str, MessageReceiver] = {}

    async def __aenter__(self) -> "PlaywrightDriver":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def start(self) -> None:
        """Launch Chromium and create the shared browser context."""

        if self._context is not None:
            return
        self._console.log(f"[blue]Browser:[/blue] launching Chromium (headless={self._headless})")
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self._headless)
        self._context = await self._browser.new_context()

    async def stop(self) -> None:
        """Close every page and shut the browser down."""

        for page_id in list(self._pages):
            await self._discard(page_id)
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def new_page(self) -> Page:
        """Open an unmanaged page in the shared context (used for the external application)."""

        if self._context is None:
            raise BrowserError("Browser driver has not been started.")
        return await self._context.new_page()

    async def open_page(self, job_id: Any) -> WorkHandle:
        page = await self.new_page()
        handle = WorkHandle(page_id=uuid4().hex, job_id=job_id)
        self._pages[handle.page_id] = page
        self._console.log(f"[blue]Browser:[/blue] opened work page {handle.page_id}")
        return handle

    async def navigate(self, handle: WorkHandle, url: str, *, timeout: float) -> None:
        page = self._page_for(handle)
        # the previous document's agent dies with it
        self._agents.pop(handle.page_id, None)
        try:
            await page.goto(url, wait_until="load", timeout=timeout * 1000)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeoutError(f"Navigation timeout after {timeout:.0f}s: {url}") from exc
        except PlaywrightError as exc:
            raise BrowserError(f"Navigation to {url} failed: {exc}") from exc
        self._agents[handle.page_id] = self._agent_factory(PlaywrightDom(page))

    async def send_message(self, handle: WorkHandle, envelope: Mapping[str, Any]) -> Dict[str, Any]:
        self._page_for(handle)
        agent = self._agents.get(handle.page_id)
        if agent is None:
            raise AgentDeliveryError("Could not establish connection. Receiving end does not exist.")
        try:
            return await agent.handle_message(envelope)
        except PlaywrightError as exc:
            raise AgentDeliveryError(f"Message channel closed before a response was received: {exc}") from exc

    async def close_page(self, handle: WorkHandle) -> None:
        if handle.page_id not in self._pages:
            raise PageClosedError(f"Work page {handle.page_id} is not open.")
        await self._discard(handle.page_id)
        self._console.log(f"[blue]Browser:[/blue] closed work page {handle.page_id}")

    def _page_for(self, handle: WorkHandle) -> Page:
        page = self._pages.get(handle.page_id)
        if page is None or page.is_closed():
            raise PageClosedError(f"Work page {handle.page_id} is not open.")
        return page

    async def _discard(self, page_id: str) -> None:
        self._agents.pop(page_id, None)
        page = self._pages.pop(page_id, None)
        if page is not None and not page.is_closed():
            await page.close()


__all__ = [
    "AgentDeliveryError",
    "AgentFactory",
    "BrowserDriver",
    "BrowserError",
    "DomNode",
    "MessageReceiver",
    "NavigationTimeoutError",
    "PageClosedError",
    "PageDom",
    "PlaywrightDom",
    "PlaywrightDriver",
    "PlaywrightNode",
]

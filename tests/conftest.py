from __future__ import annotations

import asyncio
import io
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import pytest
from rich.console import Console

from vidnotes.config.settings import ImportTiming, Settings
from vidnotes.models.job import WorkHandle
from vidnotes.services.browser import NavigationTimeoutError, PageClosedError
from vidnotes.services.notes_api import NoteSubmission
from vidnotes.utils.progress import ProgressMessage


# ---------------------------------------------------------------------- #
# DOM fakes                                                              #
# ---------------------------------------------------------------------- #
class FakeNode:
    def __init__(
        self,
        text: str = "",
        *,
        attrs: Optional[Dict[str, str]] = None,
        children: Optional[Dict[str, List["FakeNode"]]] = None,
        on_click: Optional[Callable[[], None]] = None,
    ) -> None:
        self._text = text
        self.attrs = attrs or {}
        self.children = children or {}
        self.on_click = on_click
        self.clicks = 0

    async def text(self) -> str:
        return self._text

    async def attribute(self, name: str) -> Optional[str]:
        return self.attrs.get(name)

    async def click(self) -> None:
        self.clicks += 1
        if self.on_click is not None:
            self.on_click()

    async def query(self, selector: str) -> Optional["FakeNode"]:
        matches = self.children.get(selector) or []
        return matches[0] if matches else None


class FakeDom:
    def __init__(self, url: str = "about:blank", nodes: Optional[Dict[str, List[FakeNode]]] = None) -> None:
        self.location = url
        self.nodes: Dict[str, List[FakeNode]] = nodes or {}
        self.scrolls = 0

    def add(self, selector: str, *nodes: FakeNode) -> None:
        self.nodes.setdefault(selector, []).extend(nodes)

    async def url(self) -> str:
        return self.location

    async def query(self, selector: str) -> Optional[FakeNode]:
        matches = self.nodes.get(selector) or []
        return matches[0] if matches else None

    async def query_all(self, selector: str) -> List[FakeNode]:
        return list(self.nodes.get(selector) or [])

    async def scroll_to_bottom(self) -> None:
        self.scrolls += 1


# ---------------------------------------------------------------------- #
# Browser driver fake                                                    #
# ---------------------------------------------------------------------- #
Reply = Union[Dict[str, Any], Exception, Callable[[], Any]]


class FakeDriver:
    """Scripted :class:`BrowserDriver`; replies are keyed by the page's current URL."""

    def __init__(self) -> None:
        self.replies: Dict[str, Reply] = {}
        self.navigation_failures: Dict[str, Exception] = {}
        self.opened: List[WorkHandle] = []
        self.closed: List[WorkHandle] = []
        self.navigations: List[str] = []
        self.messages: List[Dict[str, Any]] = []
        self._location: Dict[str, str] = {}

    @property
    def open_pages(self) -> int:
        return len(self.opened) - len(self.closed)

    async def open_page(self, job_id: Any) -> WorkHandle:
        handle = WorkHandle(page_id=f"page-{len(self.opened) + 1}", job_id=job_id)
        self.opened.append(handle)
        return handle

    async def navigate(self, handle: WorkHandle, url: str, *, timeout: float) -> None:
        self._require_open(handle)
        self.navigations.append(url)
        if url in self.navigation_failures:
            raise self.navigation_failures[url]
        self._location[handle.page_id] = url

    async def send_message(self, handle: WorkHandle, envelope: Mapping[str, Any]) -> Dict[str, Any]:
        self._require_open(handle)
        self.messages.append(dict(envelope))
        reply = self.replies[self._location[handle.page_id]]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            result = reply()
            if asyncio.iscoroutine(result):
                result = await result
            return result
        return reply

    async def close_page(self, handle: WorkHandle) -> None:
        self._require_open(handle)
        self.closed.append(handle)

    def _require_open(self, handle: WorkHandle) -> None:
        if handle not in self.opened or handle in self.closed:
            raise PageClosedError(f"Work page {handle.page_id} is not open.")

    # Scripting helpers
    def listing(self, url: str, videos: List[Dict[str, str]], channel_name: Optional[str] = "Test Channel") -> None:
        reply: Dict[str, Any] = {"success": True, "videos": videos}
        if channel_name is not None:
            reply["channelName"] = channel_name
        self.replies[url] = reply

    def timeout_on(self, url: str) -> None:
        self.navigation_failures[url] = NavigationTimeoutError(f"Navigation timeout after 30s: {url}")


def scraped(video_id: str, title: Optional[str] = None) -> Dict[str, str]:
    return {
        "url": f"https://www.youtube.com/watch?v={video_id}",
        "videoId": video_id,
        "title": title or f"Video {video_id}",
    }


# ---------------------------------------------------------------------- #
# Observer and notes-service fakes                                       #
# ---------------------------------------------------------------------- #
class RecordingSink:
    def __init__(self) -> None:
        self.messages: List[ProgressMessage] = []

    async def deliver(self, message: ProgressMessage) -> None:
        self.messages.append(message)


class FakeNotesClient:
    def __init__(self, *submissions: NoteSubmission) -> None:
        self._submissions = list(submissions) or [NoteSubmission(success=True, status=201)]
        self.payloads: List[Dict[str, Any]] = []
        self.closed = False

    def save_note(self, payload: Mapping[str, Any]) -> NoteSubmission:
        self.payloads.append(dict(payload))
        if len(self._submissions) > 1:
            return self._submissions.pop(0)
        return self._submissions[0]

    def test_connection(self, payload: Mapping[str, Any]) -> NoteSubmission:
        self.payloads.append(dict(payload))
        return NoteSubmission(success=True, status=200, response="ok")

    def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------- #
# Fixtures                                                               #
# ---------------------------------------------------------------------- #
@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), width=200)


@pytest.fixture
def dedup_path(tmp_path: Path) -> Path:
    return tmp_path / "imported_videos.json"


@pytest.fixture
def settings(dedup_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        notes_api_endpoint="http://notes.test/api/notes",
        dedup_store_path=dedup_path,
        timing=ImportTiming.immediate(),
    )


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


def console_output(console: Console) -> str:
    return console.file.getvalue()

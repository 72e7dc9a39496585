"""Page agent: scrapes channel listings and extracts/submits transcripts inside a work page."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError
from rich.console import Console

from vidnotes.config.settings import Settings, get_settings
from vidnotes.models.messages import (
    AgentAction,
    ExtractRequest,
    ExtractResponse,
    ScrapedVideo,
    ScrapeRequest,
    ScrapeResponse,
)
from vidnotes.services.browser import PageDom
from vidnotes.services.dedup import DedupStore, DedupStoreError
from vidnotes.services.notes_api import NotesApiClient
from vidnotes.services.transcript_panel import TranscriptReader, TranscriptRevealer, default_reveal_strategies
from vidnotes.utils.templates import NoteFields, render_payload_template
from vidnotes.utils.validation import (
    SHORT_FORM_MARKER,
    InvalidVideoURLError,
    canonical_video_url,
    extract_video_id,
    video_id_from_page_url,
    watch_url,
)

PLATFORM = "youtube"
UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_CHANNEL = "Unknown Channel"

VIDEO_LINK_SELECTOR = 'a[href*="/watch?v="]'
LINK_TITLE_SELECTOR = "#video-title"
LISTING_CHANNEL_SELECTORS = (
    "#channel-name yt-formatted-string",
    "ytd-channel-name yt-formatted-string",
    "#channel-header #text",
)
VIDEO_TITLE_SELECTORS = ("#title h1", ".title", ".watch-main-col .watch-title")
VIDEO_CHANNEL_SELECTORS = (
    "#channel-name a",
    "#channel-name yt-formatted-string",
    "ytd-channel-name yt-formatted-string a",
    ".ytd-channel-name a",
)


class TranscriptUnavailableError(RuntimeError):
    """Raised when no transcript control or no transcript text can be found for a video."""


@dataclass(slots=True)
class VideoInfo:
    """Identity of the video currently loaded in the page."""

    video_id: str
    title: str
    channel: str
    url: str

    @property
    def handle(self) -> str:
        return f"@{self.channel}"


class PageAgent:
    """Answers orchestrator requests for the document currently loaded in a work page.

    A new agent is attached after every navigation; all of its side effects stay inside the page.
    """

    def __init__(
        self,
        dom: PageDom,
        *,
        notes_client: NotesApiClient,
        dedup_store: Optional[DedupStore] = None,
        settings: Optional[Settings] = None,
        console: Optional[Console] = None,
        revealer: Optional[TranscriptRevealer] = None,
        transcript_reader: Optional[TranscriptReader] = None,
    ) -> None:
        self._dom = dom
        self._settings = settings or get_settings()
        self._console = console or Console()
        self._notes_client = notes_client
        self._dedup_store = dedup_store
        self._timing = self._settings.timing
        self._revealer = revealer or TranscriptRevealer(
            default_reveal_strategies(expand_wait=self._timing.description_expand),
            console=self._console,
        )
        self._transcript_reader = transcript_reader or TranscriptReader()

    # ------------------------------------------------------------------ #
    # Message protocol                                                   #
    # ------------------------------------------------------------------ #
    async def handle_message(self, envelope: Mapping[str, Any]) -> Dict[str, Any]:
        """Dispatch a request envelope and always answer with a ``success`` envelope."""

        action = envelope.get("action")
        try:
            if action == AgentAction.SCRAPE_CHANNEL_VIDEOS.value:
                request = ScrapeRequest.model_validate(envelope)
                return (await self.scrape_listing(request.limit)).to_wire()
            if action == AgentAction.EXTRACT_AND_SAVE_TRANSCRIPT.value:
                request = ExtractRequest.model_validate(envelope)
                return (await self.extract_and_submit(channel_name=request.channel_name)).to_wire()
        except ValidationError as exc:
            return {"success": False, "error": f"Invalid {action} request: {exc.error_count()} error(s)"}
        except Exception as exc:
            self._console.log(f"[red]Page agent:[/red] {action} failed: {exc}")
            return {"success": False, "error": str(exc)}

        return {"success": False, "error": f"Unknown action: {action!r}"}

    # ------------------------------------------------------------------ #
    # Listing scrape                                                     #
    # ------------------------------------------------------------------ #
    async def scrape_listing(self, limit: int) -> ScrapeResponse:
        """Collect up to ``limit`` unique, long-form videos from a channel listing.

        Parameters
        ----------
        limit:
            Maximum number of unique videos to return.

        Returns
        -------
        ScrapeResponse
            Videos in page order plus the channel name when the page exposes one. An empty list
            is a valid answer; the orchestrator decides that it is a failure.
        """

        self._console.log(f"Page agent: scraping channel videos (limit={limit})")
        await asyncio.sleep(self._timing.scrape_settle)

        for _ in range(self._timing.scroll_steps):
            await self._dom.scroll_to_bottom()
            await asyncio.sleep(self._timing.scroll_step_delay)

        links = await self._dom.query_all(VIDEO_LINK_SELECTOR)
        self._console.log(f"Page agent: found {len(links)} video links")

        videos: List[ScrapedVideo] = []
        seen = set()
        for link in links:
            if len(videos) >= limit:
                break
            href = await link.attribute("href") or ""
            if SHORT_FORM_MARKER in href:
                continue
            video_id = extract_video_id(href)
            if video_id is None or video_id in seen:
                continue
            seen.add(video_id)

            title = UNKNOWN_TITLE
            title_node = await link.query(LINK_TITLE_SELECTOR)
            if title_node is not None:
                title = (await title_node.attribute("title")) or (await title_node.text()).strip() or UNKNOWN_TITLE

            videos.append(ScrapedVideo(url=watch_url(video_id), video_id=video_id, title=title))

        channel_name = await self._first_text(LISTING_CHANNEL_SELECTORS)
        self._console.log(f"Page agent: scraped {len(videos)} videos (limit={limit}, channel={channel_name})")
        return ScrapeResponse(success=True, videos=videos, channel_name=channel_name)

    # ------------------------------------------------------------------ #
    # Transcript extraction                                              #
    # ------------------------------------------------------------------ #
    async def read_video_info(self, *, fallback_channel: Optional[str] = None) -> VideoInfo:
        """Read the current video's identity from the page rather than from the caller."""

        url = await self._dom.url()
        video_id = video_id_from_page_url(url)
        title = await self._first_text(VIDEO_TITLE_SELECTORS) or UNKNOWN_TITLE
        channel = await self._first_text(VIDEO_CHANNEL_SELECTORS) or fallback_channel or UNKNOWN_CHANNEL
        return VideoInfo(video_id=video_id, title=title, channel=channel, url=canonical_video_url(url))

    async def extract_transcript(self) -> str:
        """Open the transcript panel and return its text as a single whitespace-normalised string.

        Raises
        ------
        TranscriptUnavailableError
            If no reveal strategy finds a transcript control, or the open panel yields no text.
        """

        strategy = await self._revealer.reveal(self._dom)
        if strategy is None:
            raise TranscriptUnavailableError("Could not find transcript button - transcript may not be available")

        await asyncio.sleep(self._timing.transcript_load)
        await asyncio.sleep(self._timing.segment_render)

        transcript = await self._transcript_reader.read_text(self._dom)
        if not transcript:
            raise TranscriptUnavailableError("No transcript segments found")
        return transcript

    def build_payload(self, info: VideoInfo, transcript: str) -> Dict[str, Any]:
        """Render the configured payload template for a captured transcript."""

        fields = NoteFields(
            content=transcript,
            author=info.channel,
            handle=info.handle,
            url=info.url,
            timestamp=datetime.now(timezone.utc).isoformat(),
            platform=PLATFORM,
        )
        return render_payload_template(self._settings.payload_template, fields)

    async def extract_and_submit(self, *, channel_name: Optional[str] = None) -> ExtractResponse:
        """Extract the current video's transcript and submit it as a note.

        Parameters
        ----------
        channel_name:
            Author used only when the page itself does not expose a channel name.

        Returns
        -------
        ExtractResponse
            ``success`` on submission, ``success`` + ``skipped`` on a duplicate conflict, and
            ``success=False`` with an error for every per-item failure.
        """

        try:
            info = await self.read_video_info(fallback_channel=channel_name)
        except InvalidVideoURLError as exc:
            return ExtractResponse(success=False, error=str(exc))

        if self._settings.dedup_precheck and await self._already_imported(info.video_id):
            self._console.log(f"[yellow]Page agent:[/yellow] already imported, skipping (video_id={info.video_id})")
            return ExtractResponse(success=True, skipped=True, video_id=info.video_id, title=info.title)

        self._console.log(f"Page agent: extracting transcript for {info.title!r} (video_id={info.video_id})")
        try:
            transcript = await self.extract_transcript()
        except TranscriptUnavailableError as exc:
            self._console.log(f"[red]Page agent:[/red] {exc} (video_id={info.video_id})")
            return ExtractResponse(success=False, video_id=info.video_id, title=info.title, error=str(exc))

        payload = self.build_payload(info, transcript)
        submission = await asyncio.to_thread(self._notes_client.save_note, payload)
        if not submission.success:
            return ExtractResponse(success=False, video_id=info.video_id, title=info.title, error=submission.error)

        await self._remember(info.video_id)
        return ExtractResponse(success=True, skipped=submission.skipped, video_id=info.video_id, title=info.title)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #
    async def _first_text(self, selectors: Sequence[str]) -> Optional[str]:
        for selector in selectors:
            node = await self._dom.query(selector)
            if node is None:
                continue
            text = (await node.text()).strip()
            if text:
                return text
        return None

    async def _already_imported(self, video_id: str) -> bool:
        if self._dedup_store is None:
            return False
        return await asyncio.to_thread(self._dedup_store.has, video_id)

    async def _remember(self, video_id: str) -> None:
        if self._dedup_store is None:
            return
        try:
            await asyncio.to_thread(self._dedup_store.mark, video_id)
        except DedupStoreError as exc:
            self._console.log(f"[yellow]Page agent:[/yellow] could not record imported video: {exc}")


__all__ = ["PageAgent", "TranscriptUnavailableError", "VideoInfo"]

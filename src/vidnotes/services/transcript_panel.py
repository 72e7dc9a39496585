"""Transcript panel automation: ordered reveal strategies and segment readers.

Target-page markup is an unversioned external dependency, so both the reveal cascade and the
segment readers are plain ordered lists of strategies that callers may replace.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Tuple

from rich.console import Console

from vidnotes.services.browser import DomNode, PageDom

TRANSCRIPT_BUTTON_SELECTORS: Tuple[str, ...] = (
    'button[aria-label*="transcript" i]',
    'button[aria-label*="Show transcript" i]',
    'yt-button-renderer:has([aria-label*="transcript" i])',
)
TRANSCRIPT_TEXT_TARGETS: Tuple[Tuple[str, str], ...] = (
    ('[role="button"]', "Show transcript"),
    ("ytd-engagement-panel-title-header-renderer", "Transcript"),
    ("#description button", "Show transcript"),
    ("button", "Show transcript"),
)
EXPAND_DESCRIPTION_SELECTORS: Tuple[str, ...] = (
    '#description button[aria-label*="more" i]',
    "#expand",
)
SEGMENT_TEXT_SELECTOR = "ytd-transcript-segment-renderer .segment-text"
SEGMENT_CONTAINER_SELECTORS: Tuple[str, ...] = (
    "ytd-transcript-segment-renderer",
    ".ytd-transcript-segment-renderer",
    ".transcript-segment",
    "cue",
)
SEGMENT_INNER_TEXT_SELECTORS: Tuple[str, ...] = (
    ".segment-text",
    '[class*="cue-text"]',
    "yt-formatted-string:not(.segment-timestamp)",
)
TRANSCRIPT_AREA_SELECTORS: Tuple[str, ...] = (
    "ytd-transcript-renderer",
    "#transcript",
    '[aria-label*="transcript" i]',
    ".transcript-content",
)

_TIMESTAMP = re.compile(r"^\d+:\d+$")
_WHITESPACE = re.compile(r"\s+")


# ---------------------------------------------------------------------- #
# Reveal strategies                                                      #
# ---------------------------------------------------------------------- #
class RevealStrategy(Protocol):
    """Attempts to open the transcript panel; returns ``True`` once a control was activated."""

    name: str

    async def reveal(self, dom: PageDom) -> bool:
        """Try to open the panel on ``dom``."""


async def _click_first(dom: PageDom, selectors: Sequence[str]) -> Optional[str]:
    for selector in selectors:
        node = await dom.query(selector)
        if node is not None:
            await node.click()
            return selector
    return None


@dataclass(slots=True)
class DirectControlStrategy:
    """Click the first element matching one of the known transcript-control selectors."""

    selectors: Sequence[str] = TRANSCRIPT_BUTTON_SELECTORS
    name: str = "direct-control"

    async def reveal(self, dom: PageDom) -> bool:
        return await _click_first(dom, self.selectors) is not None


@dataclass(slots=True)
class TextScanStrategy:
    """Scan candidate elements for a case-insensitive text match and click the first hit."""

    targets: Sequence[Tuple[str, str]] = TRANSCRIPT_TEXT_TARGETS
    name: str = "text-scan"

    async def reveal(self, dom: PageDom) -> bool:
        for selector, needle in self.targets:
            lowered = needle.lower()
            for node in await dom.query_all(selector):
                if lowered in (await node.text()).lower():
                    await node.click()
                    return True
        return False


@dataclass(slots=True)
class ExpandDescriptionStrategy:
    """Expand the collapsed description, wait, then retry the direct control selectors."""

    expand_selectors: Sequence[str] = EXPAND_DESCRIPTION_SELECTORS
    control_selectors: Sequence[str] = TRANSCRIPT_BUTTON_SELECTORS
    expand_wait: float = 0.5
    name: str = "expand-description"

    async def reveal(self, dom: PageDom) -> bool:
        if await _click_first(dom, self.expand_selectors) is None:
            return False
        await asyncio.sleep(self.expand_wait)
        return await _click_first(dom, self.control_selectors) is not None


def default_reveal_strategies(*, expand_wait: float = 0.5) -> List[RevealStrategy]:
    return [DirectControlStrategy(), TextScanStrategy(), ExpandDescriptionStrategy(expand_wait=expand_wait)]


class TranscriptRevealer:
    """Run reveal strategies in order, stopping at the first that succeeds."""

    def __init__(self, strategies: Sequence[RevealStrategy], *, console: Optional[Console] = None) -> None:
        self._strategies = list(strategies)
        self._console = console or Console()

    async def reveal(self, dom: PageDom) -> Optional[str]:
        """Return the name of the strategy that opened the panel, or ``None``."""

        for strategy in self._strategies:
            try:
                opened = await strategy.reveal(dom)
            except Exception as exc:  # fall through to the next strategy
                self._console.log(f"[yellow]Transcript control strategy {strategy.name} errored:[/yellow] {exc}")
                continue
            if opened:
                self._console.log(f"Transcript panel opened via {strategy.name}")
                return strategy.name
        return None


# ---------------------------------------------------------------------- #
# Segment readers                                                        #
# ---------------------------------------------------------------------- #
class SegmentReader(Protocol):
    """Reads ordered transcript text chunks from an open panel."""

    async def read(self, dom: PageDom) -> List[str]:
        """Return segments in display order (empty when nothing matched)."""


@dataclass(slots=True)
class StructuredSegmentReader:
    """Read the text node of every structured segment."""

    selector: str = SEGMENT_TEXT_SELECTOR

    async def read(self, dom: PageDom) -> List[str]:
        segments: List[str] = []
        for node in await dom.query_all(self.selector):
            text = (await node.text()).strip()
            if text:
                segments.append(text)
        return segments


@dataclass(slots=True)
class SegmentContainerReader:
    """Fallback over alternative segment containers, keeping only their inner text nodes."""

    container_selectors: Sequence[str] = SEGMENT_CONTAINER_SELECTORS
    text_selectors: Sequence[str] = SEGMENT_INNER_TEXT_SELECTORS

    async def read(self, dom: PageDom) -> List[str]:
        for selector in self.container_selectors:
            segments: List[str] = []
            for container in await dom.query_all(selector):
                text_node = await self._text_node(container)
                if text_node is None:
                    continue
                text = (await text_node.text()).strip()
                if text and not _TIMESTAMP.match(text):
                    segments.append(text)
            if segments:
                return segments
        return []

    async def _text_node(self, container: DomNode) -> Optional[DomNode]:
        for selector in self.text_selectors:
            node = await container.query(selector)
            if node is not None:
                return node
        return None


@dataclass(slots=True)
class PanelTextReader:
    """Last resort: take the whole text of the first transcript area found."""

    area_selectors: Sequence[str] = TRANSCRIPT_AREA_SELECTORS

    async def read(self, dom: PageDom) -> List[str]:
        for selector in self.area_selectors:
            area = await dom.query(selector)
            if area is None:
                continue
            text = (await area.text()).strip()
            if text:
                return [text]
        return []


def default_segment_readers() -> List[SegmentReader]:
    return [StructuredSegmentReader(), SegmentContainerReader(), PanelTextReader()]


@dataclass(slots=True)
class TranscriptReader:
    """Read segments with the first reader that yields any, then join them into one text."""

    readers: Sequence[SegmentReader] = field(default_factory=default_segment_readers)

    async def read_segments(self, dom: PageDom) -> List[str]:
        for reader in self.readers:
            segments = await reader.read(dom)
            if segments:
                return segments
        return []

    async def read_text(self, dom: PageDom) -> str:
        return join_segments(await self.read_segments(dom))


def join_segments(segments: Sequence[str]) -> str:
    """Join segments with single spaces and collapse any run of whitespace."""

    return _WHITESPACE.sub(" ", " ".join(segments)).strip()


__all__ = [
    "DirectControlStrategy",
    "ExpandDescriptionStrategy",
    "PanelTextReader",
    "RevealStrategy",
    "SegmentContainerReader",
    "SegmentReader",
    "StructuredSegmentReader",
    "TextScanStrategy",
    "TranscriptReader",
    "TranscriptRevealer",
    "default_reveal_strategies",
    "default_segment_readers",
    "join_segments",
]

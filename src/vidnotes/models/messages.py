"""Envelopes exchanged between the orchestrator, page agents, and the relay bridge."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import Field

from vidnotes.models.base import WireModel


class AgentAction(str, Enum):
    """Requests a page agent knows how to answer."""

    SCRAPE_CHANNEL_VIDEOS = "scrapeChannelVideos"
    EXTRACT_AND_SAVE_TRANSCRIPT = "extractAndSaveTranscript"


class ControllerAction(str, Enum):
    """Requests accepted by the import controller from panels and the relay bridge."""

    PING = "ping"
    IMPORT_CHANNEL = "importChannel"
    GET_CONFIG = "getConfig"
    TEST_API = "testAPI"


class ScrapeRequest(WireModel):
    action: Literal["scrapeChannelVideos"] = AgentAction.SCRAPE_CHANNEL_VIDEOS.value
    limit: int = Field(ge=1)


class ExtractRequest(WireModel):
    action: Literal["extractAndSaveTranscript"] = AgentAction.EXTRACT_AND_SAVE_TRANSCRIPT.value
    channel_name: Optional[str] = None


class ScrapedVideo(WireModel):
    """Listing entry reported by the page agent."""

    url: str
    video_id: str = Field(min_length=1)
    title: str = "Unknown Title"


class ScrapeResponse(WireModel):
    success: bool
    videos: List[ScrapedVideo] = Field(default_factory=list)
    channel_name: Optional[str] = None
    error: Optional[str] = None


class ExtractResponse(WireModel):
    success: bool
    skipped: bool = False
    video_id: Optional[str] = None
    title: Optional[str] = None
    error: Optional[str] = None


class ImportChannelRequest(WireModel):
    action: Literal["importChannel"] = ControllerAction.IMPORT_CHANNEL.value
    channel_url: str
    limit: Optional[int] = None


class ConnectionTestRequest(WireModel):
    action: Literal["testAPI"] = ControllerAction.TEST_API.value
    endpoint: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


RELAY_REQUEST = "EXTENSION_MESSAGE"
RELAY_RESPONSE = "EXTENSION_RESPONSE"
RELAY_PROGRESS = "EXTENSION_PROGRESS"
RELAY_READY = "EXTENSION_BRIDGE_READY"

CorrelationId = Union[int, str]


class RelayRequest(WireModel):
    """Invoke event posted by the external application inside its own page."""

    type: Literal["EXTENSION_MESSAGE"] = RELAY_REQUEST
    id: CorrelationId
    payload: Dict[str, Any]


class RelayResponse(WireModel):
    type: Literal["EXTENSION_RESPONSE"] = RELAY_RESPONSE
    id: CorrelationId
    response: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class RelayProgress(WireModel):
    type: Literal["EXTENSION_PROGRESS"] = RELAY_PROGRESS
    payload: Dict[str, Any]


__all__ = [
    "AgentAction",
    "ControllerAction",
    "CorrelationId",
    "ExtractRequest",
    "ExtractResponse",
    "ImportChannelRequest",
    "RELAY_PROGRESS",
    "RELAY_READY",
    "RELAY_REQUEST",
    "RELAY_RESPONSE",
    "RelayProgress",
    "RelayRequest",
    "RelayResponse",
    "ScrapeRequest",
    "ScrapeResponse",
    "ScrapedVideo",
    "ConnectionTestRequest",
]

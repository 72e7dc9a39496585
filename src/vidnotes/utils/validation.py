"""Validation helpers for channel listing URLs and video identifiers."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import parse_qs, urlparse


class InvalidChannelURLError(ValueError):
    """Raised when a provided channel URL is syntactically invalid."""


class InvalidVideoURLError(ValueError):
    """Raised when a video identifier cannot be derived from a URL."""


LISTING_SUFFIX = "/videos"
VIDEO_LINK_PATTERN = re.compile(r"[?&]v=([A-Za-z0-9_-]{1,64})(?:[&#]|$)")
SHORT_FORM_MARKER = "/shorts/"
_TRAILING_SLASHES = re.compile(r"/+$")


def validate_channel_url(url: str) -> str:
    """Return ``url`` stripped of surrounding whitespace if it is an absolute http(s) URL."""

    stripped = (url or "").strip()
    parsed = urlparse(stripped)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc or " " in stripped:
        raise InvalidChannelURLError(f"Invalid channel URL: {url!r}")
    return stripped


def normalize_channel_url(url: str) -> str:
    """Canonicalise a channel URL so that it points at the channel's video listing.

    Trailing slashes are stripped first; a URL already ending in ``/videos`` is returned as-is,
    so normalising twice is a no-op.
    """

    trimmed = _TRAILING_SLASHES.sub("", validate_channel_url(url))
    if trimmed.endswith(LISTING_SUFFIX):
        return trimmed
    return trimmed + LISTING_SUFFIX


def extract_video_id(href: str) -> Optional[str]:
    """Return the ``v`` parameter of a watch link, or ``None`` when it is missing or malformed."""

    match = VIDEO_LINK_PATTERN.search(href or "")
    return match.group(1) if match else None


def video_id_from_page_url(url: str) -> str:
    """Extract the identifier of the video playing at ``url`` (watch pages and live streams)."""

    parsed = urlparse(url)
    candidates = parse_qs(parsed.query).get("v", [])
    if candidates and candidates[0]:
        return candidates[0]

    if "/live/" in parsed.path:
        candidate = parsed.path.split("/live/", 1)[1].strip("/")
        if candidate:
            return candidate

    raise InvalidVideoURLError(f"Could not determine video ID from {url!r}")


def canonical_video_url(url: str) -> str:
    """Drop every query parameter after the first one (``&t=...``, ``&list=...``)."""

    return url.split("&", 1)[0]


def watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


__all__ = [
    "InvalidChannelURLError",
    "InvalidVideoURLError",
    "SHORT_FORM_MARKER",
    "canonical_video_url",
    "extract_video_id",
    "normalize_channel_url",
    "validate_channel_url",
    "video_id_from_page_url",
    "watch_url",
]

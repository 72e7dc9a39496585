"""Rendering of the configurable note payload template."""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, Mapping

from pydantic import Field

from vidnotes.models.base import VidnotesBaseModel


class NoteFields(VidnotesBaseModel):
    """Values substituted into ``{{placeholder}}`` strings of the payload template."""

    content: str = ""
    author: str = ""
    handle: str = ""
    url: str = ""
    timestamp: str = ""
    platform: str = "unknown"
    is_share: bool = False
    shared_by: str = ""
    share_context: str = ""
    metrics: Dict[str, Any] = Field(default_factory=dict)


def _placeholder_values(fields: NoteFields) -> Dict[str, str]:
    share_prefix = f"{fields.share_context}\n\n" if fields.is_share and fields.share_context else ""
    is_share = "true" if fields.is_share else "false"
    return {
        "content": fields.content,
        "author": fields.author,
        "handle": fields.handle,
        "url": fields.url,
        "timestamp": fields.timestamp,
        "platform": fields.platform or "unknown",
        "isShare": is_share,
        "sharedBy": fields.shared_by,
        "shareContext": share_prefix,
        "metrics": json.dumps(fields.metrics, separators=(",", ":")),
        # legacy names kept by older templates
        "isRetweet": is_share,
        "retweetedBy": fields.shared_by,
        "retweetContext": share_prefix,
    }


def _render_string(value: str, replacements: Mapping[str, str]) -> str:
    for name, replacement in replacements.items():
        value = value.replace("{{" + name + "}}", replacement)
    return value


def render_payload_template(template: Any, fields: NoteFields) -> Any:
    """Return a deep copy of ``template`` with every placeholder replaced.

    Strings are substituted, lists and mappings are walked recursively and every other value
    is copied unchanged.
    """

    replacements = _placeholder_values(fields)

    def render(node: Any) -> Any:
        if isinstance(node, str):
            return _render_string(node, replacements)
        if isinstance(node, list):
            return [render(item) for item in node]
        if isinstance(node, Mapping):
            return {key: render(value) for key, value in node.items()}
        return node

    return render(copy.deepcopy(template))


__all__ = ["NoteFields", "render_payload_template"]

"""Pydantic models describing scraped video items."""

from __future__ import annotations

from enum import Enum

from pydantic import Field, HttpUrl

from vidnotes.models.base import VidnotesBaseModel


class ItemStatus(str, Enum):
    """Lifecycle states for a single video in the import queue."""

    PENDING = "pending"
    ACTIVE = "active"
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


_TERMINAL = {ItemStatus.SUCCEEDED, ItemStatus.SKIPPED, ItemStatus.FAILED}
_ALLOWED_TRANSITIONS = {
    ItemStatus.PENDING: {ItemStatus.ACTIVE, *_TERMINAL},
    ItemStatus.ACTIVE: _TERMINAL,
    ItemStatus.SUCCEEDED: set(),
    ItemStatus.SKIPPED: set(),
    ItemStatus.FAILED: set(),
}


class InvalidItemTransitionError(ValueError):
    """Raised when a video item would move backwards in its lifecycle."""


class VideoItem(VidnotesBaseModel):
    """A video discovered on a channel listing and queued for import.

    Status only ever moves forward (``pending -> active -> succeeded | skipped | failed``);
    use :meth:`advance` rather than assigning :attr:`item_status` directly.
    """

    id: str = Field(min_length=1, max_length=64)
    url: HttpUrl
    title: str = "Unknown Title"
    item_status: ItemStatus = ItemStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.item_status in _TERMINAL

    def advance(self, status: ItemStatus) -> None:
        """Move the item to ``status``, rejecting regressions."""

        if status == self.item_status:
            return
        if status not in _ALLOWED_TRANSITIONS[self.item_status]:
            raise InvalidItemTransitionError(
                f"Video {self.id} cannot move from {self.item_status.value} to {status.value}"
            )
        self.item_status = status


__all__ = ["InvalidItemTransitionError", "ItemStatus", "VideoItem"]

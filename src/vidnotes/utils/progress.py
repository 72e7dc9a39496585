"""Progress message types pushed to import observers."""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import Field

from vidnotes.models.base import WireModel

IMPORT_PROGRESS_ACTION = "importProgress"


class ProgressPhase(str, Enum):
    """Coarse phase reported alongside each progress message."""

    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


class ProgressMessage(WireModel):
    """Transient progress payload, built fresh for every update and never persisted."""

    action: Literal["importProgress"] = IMPORT_PROGRESS_ACTION
    current: int = Field(ge=0)
    total: int = Field(ge=0)
    status: Optional[ProgressPhase] = None
    video_title: Optional[str] = None
    channel_name: Optional[str] = None
    completed: Optional[bool] = None
    error: Optional[str] = None
    succeeded: Optional[int] = Field(default=None, ge=0)
    skipped: Optional[int] = Field(default=None, ge=0)
    failed: Optional[int] = Field(default=None, ge=0)

    @property
    def is_final(self) -> bool:
        return bool(self.completed)

    @classmethod
    def processing(cls, *, current: int, total: int, video_title: str, channel_name: str) -> "ProgressMessage":
        return cls(
            current=current,
            total=total,
            status=ProgressPhase.PROCESSING,
            video_title=video_title,
            channel_name=channel_name,
        )

    @classmethod
    def finished(
        cls,
        *,
        processed: int,
        total: int,
        succeeded: int,
        skipped: int,
        failed: int,
        channel_name: Optional[str] = None,
    ) -> "ProgressMessage":
        return cls(
            current=processed,
            total=total,
            status=ProgressPhase.COMPLETE,
            completed=True,
            succeeded=succeeded,
            skipped=skipped,
            failed=failed,
            channel_name=channel_name,
        )

    @classmethod
    def aborted(cls, error: str, *, channel_name: Optional[str] = None) -> "ProgressMessage":
        return cls(
            current=0,
            total=0,
            status=ProgressPhase.FAILED,
            completed=True,
            error=error,
            channel_name=channel_name,
        )


__all__ = ["IMPORT_PROGRESS_ACTION", "ProgressMessage", "ProgressPhase"]

"""Pydantic models describing a channel import job and its lifecycle."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import ConfigDict, Field

from vidnotes.models.base import VidnotesBaseModel
from vidnotes.models.video import ItemStatus, VideoItem


class JobStatus(str, Enum):
    """Lifecycle states for an import job."""

    CREATED = "created"
    NAVIGATING = "navigating"
    SCRAPING = "scraping"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


_JOB_TRANSITIONS = {
    JobStatus.CREATED: {JobStatus.NAVIGATING, JobStatus.FAILED},
    JobStatus.NAVIGATING: {JobStatus.SCRAPING, JobStatus.FAILED},
    JobStatus.SCRAPING: {JobStatus.PROCESSING, JobStatus.FAILED},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


class WorkHandle(VidnotesBaseModel):
    """Ownership token for the single work page of a job.

    The token is handed to every browser operation instead of a page reference, so only the
    holder can navigate or close the page and any automation driver can back it.
    """

    page_id: str = Field(min_length=1)
    job_id: UUID

    model_config = ConfigDict(extra="forbid", frozen=True)


class JobCounts(VidnotesBaseModel):
    """Aggregate outcome counters; ``processed`` always equals the sum of the outcomes."""

    processed: int = Field(default=0, ge=0)
    succeeded: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)

    def record(self, outcome: ItemStatus) -> None:
        """Count a terminal item outcome."""

        if outcome == ItemStatus.SUCCEEDED:
            self.succeeded += 1
        elif outcome == ItemStatus.SKIPPED:
            self.skipped += 1
        elif outcome == ItemStatus.FAILED:
            self.failed += 1
        else:
            raise ValueError(f"Cannot record non-terminal outcome {outcome.value!r}")
        self.processed += 1


class ImportJob(VidnotesBaseModel):
    """One pipeline run for one channel listing, owned and mutated by the orchestrator."""

    id: UUID = Field(default_factory=uuid4)
    source_url: str
    normalized_url: str
    limit: int = Field(ge=1)
    work_handle: Optional[WorkHandle] = None
    queue: List[VideoItem] = Field(default_factory=list)
    counts: JobCounts = Field(default_factory=JobCounts)
    status: JobStatus = JobStatus.CREATED
    channel_name: str = "Unknown Channel"
    error: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None

    @property
    def total(self) -> int:
        return len(self.queue)

    @property
    def is_terminal(self) -> bool:
        return self.status in {JobStatus.COMPLETED, JobStatus.FAILED}

    def advance(self, status: JobStatus) -> None:
        """Move the job to ``status`` following the lifecycle state machine."""

        if status not in _JOB_TRANSITIONS[self.status]:
            raise ValueError(f"Import job cannot move from {self.status.value} to {status.value}")
        self.status = status


class JobSummary(VidnotesBaseModel):
    """Terminal result of an import job."""

    job_id: UUID
    status: JobStatus
    channel_name: str
    normalized_url: str
    total: int = Field(ge=0)
    processed: int = Field(ge=0)
    succeeded: int = Field(ge=0)
    skipped: int = Field(ge=0)
    failed: int = Field(ge=0)
    error: Optional[str] = None
    started_at: datetime
    completed_at: datetime

    @property
    def ok(self) -> bool:
        return self.status == JobStatus.COMPLETED

    @classmethod
    def from_job(cls, job: ImportJob) -> "JobSummary":
        if job.completed_at is None:
            raise ValueError("Cannot summarise a job that has not finished.")
        return cls(
            job_id=job.id,
            status=job.status,
            channel_name=job.channel_name,
            normalized_url=job.normalized_url,
            total=job.total,
            processed=job.counts.processed,
            succeeded=job.counts.succeeded,
            skipped=job.counts.skipped,
            failed=job.counts.failed,
            error=job.error,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )


__all__ = ["ImportJob", "JobCounts", "JobStatus", "JobSummary", "WorkHandle"]

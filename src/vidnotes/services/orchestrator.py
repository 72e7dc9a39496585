"""Import orchestrator owning the job lifecycle and its single work page."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import ValidationError
from rich.console import Console

from vidnotes.config.settings import Settings, get_settings
from vidnotes.models.job import ImportJob, JobStatus, JobSummary, WorkHandle
from vidnotes.models.messages import ExtractRequest, ExtractResponse, ScrapedVideo, ScrapeRequest, ScrapeResponse
from vidnotes.models.video import ItemStatus, VideoItem
from vidnotes.services.broadcaster import ProgressBroadcaster, ProgressSink
from vidnotes.services.browser import BrowserDriver
from vidnotes.utils.progress import ProgressMessage
from vidnotes.utils.validation import normalize_channel_url


class ImportJobError(RuntimeError):
    """Base exception for import job failures."""


class SetupPhaseError(ImportJobError):
    """Raised when a job cannot reach the processing phase (page, navigation, or scrape)."""


class ImportAlreadyRunningError(ImportJobError):
    """Raised when an import is requested while another one is still active."""


class ImportOrchestrator:
    """Run channel imports one at a time on an exclusively owned work page.

    Progress flows out through the broadcaster; :meth:`start_import` additionally returns a
    :class:`JobSummary` for in-process callers.
    """

    def __init__(
        self,
        *,
        driver: BrowserDriver,
        broadcaster: ProgressBroadcaster,
        settings: Optional[Settings] = None,
        console: Optional[Console] = None,
    ) -> None:
        self._driver = driver
        self._broadcaster = broadcaster
        self._settings = settings or get_settings()
        self._console = console or Console()
        self._timing = self._settings.timing
        self._active_job: Optional[ImportJob] = None

    @property
    def active_job(self) -> Optional[ImportJob]:
        return self._active_job

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    async def start_import(
        self,
        channel_url: str,
        limit: int,
        external_observer: Optional[ProgressSink] = None,
    ) -> JobSummary:
        """Import up to ``limit`` videos from a channel.

        Parameters
        ----------
        channel_url:
            Any absolute channel URL; it is normalised to the channel's video listing.
        limit:
            Positive upper bound on the number of videos to import.
        external_observer:
            Optional sink receiving every progress message in addition to the internal panels.

        Returns
        -------
        JobSummary
            Terminal counts. Setup failures produce a ``failed`` summary instead of raising.

        Raises
        ------
        InvalidChannelURLError
            If ``channel_url`` is not an absolute http(s) URL.
        ValueError
            If ``limit`` is not a positive integer within the configured maximum.
        ImportAlreadyRunningError
            If another import is still active on this orchestrator.
        """

        normalized_url = normalize_channel_url(channel_url)
        self._validate_limit(limit)
        if self._active_job is not None:
            raise ImportAlreadyRunningError(
                f"An import is already running for {self._active_job.normalized_url}"
            )

        job = ImportJob(
            source_url=channel_url,
            normalized_url=normalized_url,
            limit=limit,
            started_at=datetime.now(timezone.utc),
        )
        self._active_job = job
        self._console.log(
            f"[blue]Import:[/blue] starting channel import (url={normalized_url}, limit={limit}, job_id={job.id})"
        )

        try:
            try:
                await self._prepare(job)
            except Exception as exc:
                await self._fail(job, exc, external_observer)
            else:
                await self._process_queue(job, external_observer)
                await self._complete(job, external_observer)
        finally:
            await self._release_page(job)
            self._active_job = None

        return JobSummary.from_job(job)

    # ------------------------------------------------------------------ #
    # Setup phase                                                        #
    # ------------------------------------------------------------------ #
    async def _prepare(self, job: ImportJob) -> None:
        """Open the work page, load the listing, and fill the queue; any error is fatal."""

        job.work_handle = await self._driver.open_page(job.id)

        job.advance(JobStatus.NAVIGATING)
        await self._driver.navigate(
            job.work_handle,
            job.normalized_url,
            timeout=self._settings.navigation_timeout_seconds,
        )
        await asyncio.sleep(self._timing.listing_settle)

        job.advance(JobStatus.SCRAPING)
        self._console.log("[blue]Import:[/blue] requesting video scraping from page agent")
        raw = await self._driver.send_message(job.work_handle, ScrapeRequest(limit=job.limit).to_wire())
        try:
            result = ScrapeResponse.model_validate(raw)
        except ValidationError as exc:
            raise SetupPhaseError(f"Malformed scrape response: {exc.error_count()} error(s)") from exc

        if not result.success:
            raise SetupPhaseError(result.error or "Failed to scrape videos")

        queue = self._build_queue(result.videos[: job.limit])
        if not queue:
            raise SetupPhaseError("No videos found on channel")

        job.channel_name = result.channel_name or job.channel_name
        job.queue = queue
        self._console.log(
            f"[blue]Import:[/blue] scraped {job.total} videos from channel {job.channel_name!r}"
        )

    def _build_queue(self, videos: List[ScrapedVideo]) -> List[VideoItem]:
        queue: List[VideoItem] = []
        for video in videos:
            try:
                queue.append(VideoItem(id=video.video_id, url=video.url, title=video.title))
            except ValidationError as exc:
                self._console.log(
                    f"[yellow]Import:[/yellow] skipping malformed listing entry "
                    f"(video_id={video.video_id[:80]!r}, {exc.error_count()} error(s))"
                )
        return queue

    # ------------------------------------------------------------------ #
    # Processing phase                                                   #
    # ------------------------------------------------------------------ #
    async def _process_queue(self, job: ImportJob, external_observer: Optional[ProgressSink]) -> None:
        """Process queued videos strictly in scrape order, isolating every per-item failure."""

        job.advance(JobStatus.PROCESSING)
        for index, item in enumerate(job.queue, start=1):
            await self._broadcaster.emit(
                ProgressMessage.processing(
                    current=index,
                    total=job.total,
                    video_title=item.title,
                    channel_name=job.channel_name,
                ),
                external_observer,
            )
            item.advance(ItemStatus.ACTIVE)
            outcome = await self._process_item(job, item)
            item.advance(outcome)
            job.counts.record(outcome)

    async def _process_item(self, job: ImportJob, item: VideoItem) -> ItemStatus:
        self._console.log(f"Import: processing video {job.counts.processed + 1}/{job.total}: {item.title!r}")
        try:
            handle = self._require_handle(job)
            await self._driver.navigate(handle, str(item.url), timeout=self._settings.navigation_timeout_seconds)
            await asyncio.sleep(self._timing.item_settle)
            raw = await self._driver.send_message(
                handle,
                ExtractRequest(channel_name=job.channel_name).to_wire(),
            )
            result = ExtractResponse.model_validate(raw)
        except Exception as exc:
            self._console.log(f"[red]Import:[/red] error processing video {item.title!r}: {exc}")
            return ItemStatus.FAILED

        if not result.success:
            self._console.log(f"[red]Import:[/red] failed to save {item.title!r}: {result.error}")
            return ItemStatus.FAILED
        if result.skipped:
            self._console.log(f"[yellow]Import:[/yellow] video already imported: {item.title!r}")
            return ItemStatus.SKIPPED
        self._console.log(f"[green]Import:[/green] saved {item.title!r}")
        return ItemStatus.SUCCEEDED

    # ------------------------------------------------------------------ #
    # Terminal transitions                                               #
    # ------------------------------------------------------------------ #
    async def _complete(self, job: ImportJob, external_observer: Optional[ProgressSink]) -> None:
        job.advance(JobStatus.COMPLETED)
        job.completed_at = datetime.now(timezone.utc)
        counts = job.counts
        self._console.log(
            f"[green]Import:[/green] complete (succeeded={counts.succeeded}, skipped={counts.skipped}, "
            f"failed={counts.failed}, total={job.total})"
        )
        await self._broadcaster.emit(
            ProgressMessage.finished(
                processed=counts.processed,
                total=job.total,
                succeeded=counts.succeeded,
                skipped=counts.skipped,
                failed=counts.failed,
                channel_name=job.channel_name,
            ),
            external_observer,
        )

    async def _fail(self, job: ImportJob, exc: Exception, external_observer: Optional[ProgressSink]) -> None:
        job.advance(JobStatus.FAILED)
        job.error = str(exc) or exc.__class__.__name__
        job.completed_at = datetime.now(timezone.utc)
        self._console.log(f"[red]Import:[/red] channel import failed: {job.error}")
        await self._broadcaster.emit(ProgressMessage.aborted(job.error), external_observer)

    async def _release_page(self, job: ImportJob) -> None:
        """Remove the work page on every exit path."""

        handle = job.work_handle
        if handle is None:
            return
        job.work_handle = None
        try:
            await self._driver.close_page(handle)
        except Exception as exc:  # page already gone
            self._console.log(f"[yellow]Import:[/yellow] work page cleanup failed: {exc}")

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #
    def _validate_limit(self, limit: int) -> None:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValueError(f"Import limit must be a positive integer, got {limit!r}")
        if limit > self._settings.max_import_limit:
            raise ValueError(f"Import limit {limit} exceeds the maximum of {self._settings.max_import_limit}")

    @staticmethod
    def _require_handle(job: ImportJob) -> WorkHandle:
        if job.work_handle is None:
            raise SetupPhaseError("Import job has no work page.")
        return job.work_handle


__all__ = ["ImportAlreadyRunningError", "ImportJobError", "ImportOrchestrator", "SetupPhaseError"]

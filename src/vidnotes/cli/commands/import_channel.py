"""CLI commands for importing channels, serving the relay bridge, and inspecting imports."""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import lru_cache, partial
from typing import Any, AsyncIterator, Dict, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TaskID, TextColumn
from rich.table import Table

from vidnotes.config.settings import Settings, get_settings
from vidnotes.models.job import JobSummary
from vidnotes.services.broadcaster import ProgressBroadcaster
from vidnotes.services.browser import PageDom, PlaywrightDriver
from vidnotes.services.controller import ImportController
from vidnotes.services.dedup import DedupStore
from vidnotes.services.notes_api import NotesApiClient
from vidnotes.services.orchestrator import ImportJobError, ImportOrchestrator
from vidnotes.services.page_agent import PageAgent
from vidnotes.services.relay import PlaywrightPageWindow, RelayBridge
from vidnotes.utils.progress import ProgressMessage
from vidnotes.utils.validation import InvalidChannelURLError, normalize_channel_url


class ImportExitCode:
    """Mapping of meaningful CLI exit codes."""

    SUCCESS = 0
    INVALID_INPUT = 1
    IMPORT_FAILED = 2
    NETWORK_ERROR = 3


@dataclass(slots=True)
class ImportRuntime:
    """Process-wide collaborators for one CLI invocation."""

    driver: PlaywrightDriver
    broadcaster: ProgressBroadcaster
    orchestrator: ImportOrchestrator
    controller: ImportController


class ProgressPanel:
    """Internal observer rendering progress messages on a rich progress bar."""

    def __init__(self, progress: Progress) -> None:
        self._progress = progress
        self._task: Optional[TaskID] = None

    async def deliver(self, message: ProgressMessage) -> None:
        if self._task is None:
            self._task = self._progress.add_task("Starting import", total=max(message.total, 1))

        if message.is_final:
            description = "[red]Import failed[/red]" if message.error else "[green]Import complete[/green]"
            self._progress.update(
                self._task,
                total=max(message.total, 1),
                completed=max(message.current, 1) if message.error else message.current,
                description=description,
            )
            return

        self._progress.update(
            self._task,
            total=message.total,
            completed=message.current - 1,
            description=f"Processing {message.video_title or 'video'}",
        )


def register(app: typer.Typer, console: Console) -> None:
    """Register CLI commands for channel import and dedup inspection."""

    @lru_cache(maxsize=1)
    def get_log_console() -> Console:
        """Service log output on stderr, silenced when ``LOG_LEVEL`` is above ``INFO``."""

        return Console(stderr=True, quiet=not get_settings().service_logging)

    @lru_cache(maxsize=1)
    def get_dedup_store() -> DedupStore:
        return DedupStore(get_settings().dedup_store_path, console=get_log_console())

    def make_notes_client(endpoint: Optional[str] = None) -> NotesApiClient:
        return NotesApiClient(endpoint=endpoint, console=get_log_console())

    @asynccontextmanager
    async def import_runtime(settings: Settings, *, headless: bool) -> AsyncIterator[ImportRuntime]:
        log_console = get_log_console()
        notes_client = make_notes_client()
        agent_factory = partial(
            _build_agent,
            notes_client=notes_client,
            dedup_store=get_dedup_store(),
            settings=settings,
            console=log_console,
        )
        try:
            async with PlaywrightDriver(
                agent_factory=agent_factory,
                settings=settings,
                console=log_console,
                headless=headless,
            ) as driver:
                broadcaster = ProgressBroadcaster(console=log_console)
                orchestrator = ImportOrchestrator(
                    driver=driver,
                    broadcaster=broadcaster,
                    settings=settings,
                    console=log_console,
                )
                controller = ImportController(
                    orchestrator=orchestrator,
                    notes_client_factory=make_notes_client,
                    settings=settings,
                    console=log_console,
                )
                yield ImportRuntime(driver, broadcaster, orchestrator, controller)
        finally:
            notes_client.close()

    @app.command("import-channel")
    def import_channel(
        channel_url: str = typer.Argument(..., help="Channel URL (the /videos listing is used)"),
        limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum number of videos to import"),
        headed: bool = typer.Option(False, "--headed", help="Show the browser window while importing"),
        json_output: bool = typer.Option(False, "--json", help="Print the job summary as JSON"),
    ) -> None:
        settings = get_settings()
        effective_limit = limit if limit is not None else settings.default_import_limit
        headless = settings.browser_headless and not headed

        try:
            normalize_channel_url(channel_url)
        except InvalidChannelURLError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(code=ImportExitCode.INVALID_INPUT) from exc
        if not 1 <= effective_limit <= settings.max_import_limit:
            console.print(f"[red]Error:[/red] --limit must be between 1 and {settings.max_import_limit}")
            raise typer.Exit(code=ImportExitCode.INVALID_INPUT)

        async def _run() -> JobSummary:
            async with import_runtime(settings, headless=headless) as runtime:
                if json_output:
                    return await runtime.orchestrator.start_import(channel_url, effective_limit)

                progress = Progress(
                    TextColumn("{task.description}"),
                    BarColumn(),
                    MofNCompleteColumn(),
                    console=console,
                    transient=False,
                )
                with progress:
                    runtime.broadcaster.subscribe(ProgressPanel(progress))
                    return await runtime.orchestrator.start_import(channel_url, effective_limit)

        try:
            summary = asyncio.run(_run())
        except ValueError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(code=ImportExitCode.INVALID_INPUT) from exc
        except ImportJobError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(code=ImportExitCode.IMPORT_FAILED) from exc

        if json_output:
            typer.echo(json.dumps(summary.model_dump(mode="json"), ensure_ascii=False, indent=2))
        else:
            _render_summary(console, summary)

        if not summary.ok:
            raise typer.Exit(code=ImportExitCode.IMPORT_FAILED)

    @app.command("serve-bridge")
    def serve_bridge(
        app_url: str = typer.Argument(..., help="URL of the external web application to attach the bridge to"),
    ) -> None:
        settings = get_settings()

        async def _serve() -> None:
            runtime_log = get_log_console()
            async with import_runtime(settings, headless=False) as runtime:
                page = await runtime.driver.new_page()
                window = PlaywrightPageWindow(page, console=runtime_log)
                await window.install()
                await page.goto(app_url, wait_until="load")

                async def dispatch(envelope: Dict[str, Any]) -> Dict[str, Any]:
                    return await runtime.controller.dispatch(envelope, external_observer=bridge)

                bridge = RelayBridge(window, dispatch, console=runtime_log)
                await bridge.attach()
                console.print(f"[bold green]Relay bridge attached to {app_url}.[/bold green] Close the page to stop.")
                await page.wait_for_event("close", timeout=0)
                bridge.detach()

        asyncio.run(_serve())

    @app.command("test-api")
    def test_api(
        endpoint: Optional[str] = typer.Option(None, "--endpoint", help="Override the configured notes endpoint"),
    ) -> None:
        client = make_notes_client(endpoint)
        payload = {
            "content": "Vidnotes connection test",
            "metadata": {"platform": "test", "url": "", "author": "vidnotes"},
        }
        try:
            result = client.test_connection(payload)
        finally:
            client.close()

        if not result.success:
            console.print(f"[red]Connection failed:[/red] {result.error}")
            raise typer.Exit(code=ImportExitCode.NETWORK_ERROR)
        console.print(f"[green]Connected to {client.endpoint}[/green] (status={result.status})")
        if result.response:
            console.print(Panel.fit(result.response, title="Response preview", border_style="blue"))

    @app.command("imported")
    def imported(
        check: Optional[str] = typer.Option(None, "--check", help="Report whether one video id was imported"),
        json_output: bool = typer.Option(False, "--json", help="Output imported ids as JSON"),
    ) -> None:
        store = get_dedup_store()

        if check is not None:
            found = store.has(check)
            if json_output:
                typer.echo(json.dumps({"video_id": check, "imported": found}))
            else:
                state = "[green]imported[/green]" if found else "[yellow]not imported[/yellow]"
                console.print(f"{check}: {state}")
            return

        ids = list(store)
        if json_output:
            typer.echo(json.dumps({"path": str(store.path), "count": len(ids), "video_ids": ids}, indent=2))
            return
        console.print(f"Dedup store: {store.path}")
        console.print(f"Imported videos: {len(ids)}")


def _build_agent(
    dom: PageDom,
    *,
    notes_client: NotesApiClient,
    dedup_store: DedupStore,
    settings: Settings,
    console: Console,
) -> PageAgent:
    return PageAgent(dom, notes_client=notes_client, dedup_store=dedup_store, settings=settings, console=console)


def _render_summary(console: Console, summary: JobSummary) -> None:
    if not summary.ok:
        console.print(Panel.fit(f"[red]{summary.error}[/red]", title="Import failed", border_style="red"))
        return

    table = Table(title=f"Import: {summary.channel_name}")
    table.add_column("Total", justify="right")
    table.add_column("Succeeded", justify="right", style="green")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Failed", justify="right", style="red")
    table.add_row(str(summary.total), str(summary.succeeded), str(summary.skipped), str(summary.failed))
    console.print(table)
    console.print(f"Listing: {summary.normalized_url}")


__all__ = ["ImportExitCode", "ProgressPanel", "register"]

"""Best-effort fan-out of import progress to every interested observer."""

from __future__ import annotations

from typing import Callable, List, Optional, Protocol

from rich.console import Console

from vidnotes.utils.progress import ProgressMessage


class ObserverUnavailableError(RuntimeError):
    """Raised by a sink when nobody is listening on its channel."""


class ProgressSink(Protocol):
    """Destination for progress messages."""

    async def deliver(self, message: ProgressMessage) -> None:
        """Push ``message`` to the observer; delivery is not confirmed."""


class CallbackSink:
    """Adapter turning a plain callable into a :class:`ProgressSink`."""

    def __init__(self, callback: Callable[[ProgressMessage], None]) -> None:
        self._callback = callback

    async def deliver(self, message: ProgressMessage) -> None:
        self._callback(message)


class ProgressBroadcaster:
    """Observer list notifying internal panels and an optional external observer.

    Each sink is notified in turn and in send order; a failing or absent sink is logged and
    skipped without affecting the others or the caller.
    """

    def __init__(self, *, console: Optional[Console] = None) -> None:
        self._console = console or Console()
        self._sinks: List[ProgressSink] = []

    def subscribe(self, sink: ProgressSink) -> None:
        if sink not in self._sinks:
            self._sinks.append(sink)

    def unsubscribe(self, sink: ProgressSink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    @property
    def sinks(self) -> List[ProgressSink]:
        return list(self._sinks)

    async def emit(self, message: ProgressMessage, external_observer: Optional[ProgressSink] = None) -> None:
        """Deliver ``message`` to every internal sink and, independently, to ``external_observer``."""

        self._console.log(
            f"Progress: {message.current}/{message.total}"
            + (" (completed)" if message.is_final else "")
            + (f" {message.video_title!r}" if message.video_title else "")
        )
        for sink in list(self._sinks):
            await self._notify(sink, message)
        if external_observer is not None:
            await self._notify(external_observer, message)

    async def _notify(self, sink: ProgressSink, message: ProgressMessage) -> None:
        try:
            await sink.deliver(message)
        except ObserverUnavailableError:
            pass
        except Exception as exc:
            self._console.log(f"[yellow]Progress delivery failed:[/yellow] {exc}")


__all__ = ["CallbackSink", "ObserverUnavailableError", "ProgressBroadcaster", "ProgressSink"]

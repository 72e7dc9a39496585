import asyncio
from typing import List

from rich.console import Console

from conftest import RecordingSink, console_output
from vidnotes.services.broadcaster import CallbackSink, ObserverUnavailableError, ProgressBroadcaster
from vidnotes.utils.progress import ProgressMessage


class BrokenSink:
    async def deliver(self, message: ProgressMessage) -> None:
        raise RuntimeError("panel crashed")


class AbsentSink:
    async def deliver(self, message: ProgressMessage) -> None:
        raise ObserverUnavailableError("nobody listening")


def _message(current: int = 1) -> ProgressMessage:
    return ProgressMessage.processing(current=current, total=2, video_title="Video", channel_name="Chan")


def test_emit_reaches_internal_sinks_then_external(console: Console) -> None:
    order: List[str] = []
    broadcaster = ProgressBroadcaster(console=console)
    broadcaster.subscribe(CallbackSink(lambda message: order.append("panel")))
    external = CallbackSink(lambda message: order.append("external"))

    asyncio.run(broadcaster.emit(_message(), external))

    assert order == ["panel", "external"]


def test_failing_sink_does_not_block_others(console: Console) -> None:
    broadcaster = ProgressBroadcaster(console=console)
    recorder = RecordingSink()
    external = RecordingSink()
    broadcaster.subscribe(BrokenSink())
    broadcaster.subscribe(recorder)

    async def scenario() -> None:
        await broadcaster.emit(_message(1), external)
        await broadcaster.emit(_message(2), external)

    asyncio.run(scenario())

    assert [m.current for m in recorder.messages] == [1, 2]
    assert [m.current for m in external.messages] == [1, 2]
    assert "panel crashed" in console_output(console)


def test_absent_observer_is_ignored_silently(console: Console) -> None:
    broadcaster = ProgressBroadcaster(console=console)
    broadcaster.subscribe(AbsentSink())

    asyncio.run(broadcaster.emit(_message(), AbsentSink()))

    assert "nobody listening" not in console_output(console)
    assert "delivery failed" not in console_output(console)


def test_subscribe_is_idempotent_and_unsubscribe_removes(console: Console) -> None:
    broadcaster = ProgressBroadcaster(console=console)
    sink = RecordingSink()
    broadcaster.subscribe(sink)
    broadcaster.subscribe(sink)
    assert broadcaster.sinks == [sink]

    broadcaster.unsubscribe(sink)
    asyncio.run(broadcaster.emit(_message()))

    assert sink.messages == []

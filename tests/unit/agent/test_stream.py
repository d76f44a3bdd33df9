"""
Unit tests for AssistantEventStream.
"""

import pytest

from turn_retry.agent.exceptions import AgentStreamError
from turn_retry.agent.stream import AssistantEventStream
from turn_retry.models.enums import FailureReason, StopReason
from turn_retry.models.events import StreamDoneEvent, StreamStartEvent, TextDeltaEvent

from tests.fixtures.streams import create_assistant_message


async def collect(stream: AssistantEventStream) -> list[str]:
    return [event.type async for event in stream]


@pytest.mark.asyncio
async def test_iteration_stops_after_terminal_event():
    stream = AssistantEventStream()
    stream.push(StreamStartEvent())
    stream.push(TextDeltaEvent(delta="Hel"))
    stream.push(StreamDoneEvent(message=create_assistant_message("Hello")))

    assert await collect(stream) == ["start", "text_delta", "done"]
    assert (await stream.result()).content == "Hello"


@pytest.mark.asyncio
async def test_events_after_terminal_are_dropped():
    stream = AssistantEventStream()
    stream.push(StreamDoneEvent(message=create_assistant_message("first")))
    stream.push(StreamDoneEvent(message=create_assistant_message("second")))

    assert await collect(stream) == ["done"]
    assert (await stream.result()).content == "first"


@pytest.mark.asyncio
async def test_abort_pushes_cancelled_error():
    stream = AssistantEventStream()
    stream.push(StreamStartEvent())
    stream.abort()

    assert await collect(stream) == ["start", "error"]
    result = await stream.result()
    assert result.stop_reason == StopReason.ABORTED
    assert result.failure_reason == FailureReason.CANCELLED
    assert stream.terminated is True


@pytest.mark.asyncio
async def test_close_without_terminal_raises():
    stream = AssistantEventStream()
    stream.push(StreamStartEvent())
    stream.close()

    with pytest.raises(AgentStreamError):
        await collect(stream)
    with pytest.raises(AgentStreamError):
        await stream.result()

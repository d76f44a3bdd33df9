"""
Unit tests for StreamingAgent.

Checks the engine contract the orchestrator relies on: exactly one terminal
event per attempt, delivered synchronously before the attempt call returns.
"""

import pytest

from turn_retry.agent.exceptions import AgentBusyError
from turn_retry.agent.stream import AssistantEventStream
from turn_retry.agent.streaming_agent import StreamingAgent
from turn_retry.models.enums import StopReason
from turn_retry.models.events import StreamStartEvent
from turn_retry.models.messages import AssistantMessage, UserMessage

from tests.fixtures.streams import ScriptedStreamFn, done_stream


def record(agent: StreamingAgent) -> list[str]:
    seen: list[str] = []
    agent.subscribe(lambda event: seen.append(event.type))
    return seen


@pytest.mark.asyncio
async def test_terminal_event_delivered_before_prompt_returns():
    agent = StreamingAgent(ScriptedStreamFn(fail_count=0))
    seen = record(agent)

    await agent.prompt("hi")

    assert seen == ["start", "done"]
    assert agent.is_streaming is False
    assert isinstance(agent.messages[0], UserMessage)
    assert agent.messages[-1].content == "Success"


@pytest.mark.asyncio
async def test_continue_turn_drops_failed_message():
    stream_fn = ScriptedStreamFn(fail_count=1)
    agent = StreamingAgent(stream_fn)

    await agent.prompt("hi")
    assert agent.messages[-1].is_error

    await agent.continue_turn()

    assert [m.role for m in stream_fn.contexts[1]] == ["user"]
    assert [m.role for m in agent.messages] == ["user", "assistant"]
    assert agent.messages[-1].is_error is False


@pytest.mark.asyncio
async def test_stream_exception_becomes_error_event():
    def broken_stream_fn(messages) -> AssistantEventStream:
        raise ConnectionError("connection refused")

    agent = StreamingAgent(broken_stream_fn)
    events = []
    agent.subscribe(events.append)

    await agent.prompt("hi")

    assert [e.type for e in events] == ["error"]
    assert events[0].error.error_message == "connection refused"
    assert agent.is_streaming is False


@pytest.mark.asyncio
async def test_closed_stream_becomes_error_event():
    def closing_stream_fn(messages) -> AssistantEventStream:
        stream = AssistantEventStream()
        stream.push(StreamStartEvent())
        stream.close()
        return stream

    agent = StreamingAgent(closing_stream_fn)
    events = []
    agent.subscribe(events.append)

    await agent.prompt("hi")

    assert [e.type for e in events] == ["start", "error"]
    assert events[-1].error.stop_reason == StopReason.ERROR
    assert "terminal event" in events[-1].error.error_message


@pytest.mark.asyncio
async def test_listener_errors_do_not_break_the_attempt():
    agent = StreamingAgent(lambda messages: done_stream())

    def broken(event) -> None:
        raise RuntimeError("listener bug")

    agent.subscribe(broken)
    seen = record(agent)

    await agent.prompt("hi")

    assert seen == ["start", "done"]


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    agent = StreamingAgent(lambda messages: done_stream())
    seen: list[str] = []
    unsubscribe = agent.subscribe(lambda event: seen.append(event.type))
    unsubscribe()

    await agent.prompt("hi")

    assert seen == []


@pytest.mark.asyncio
async def test_prompt_while_streaming_is_rejected():
    agent = StreamingAgent(lambda messages: done_stream())
    agent._current_stream = AssistantEventStream()

    with pytest.raises(AgentBusyError):
        await agent.prompt("hi")


def test_abort_without_stream_is_noop():
    agent = StreamingAgent(lambda messages: done_stream())

    agent.abort()

    assert agent.is_streaming is False
    assert agent.messages == []


def test_assistant_message_error_flags():
    aborted = AssistantMessage(stop_reason=StopReason.ABORTED)

    assert aborted.is_error is True
    assert aborted.is_cancelled is True
    assert AssistantMessage(content="ok").is_error is False

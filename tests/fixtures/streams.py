"""Scripted assistant streams for driving a StreamingAgent in tests."""

import asyncio

from turn_retry.agent.stream import AssistantEventStream
from turn_retry.models.enums import StopReason
from turn_retry.models.events import StreamDoneEvent, StreamErrorEvent, StreamStartEvent
from turn_retry.models.messages import AssistantMessage


def create_assistant_message(text: str = "", **overrides) -> AssistantMessage:
    """Assistant message with mock provider metadata."""
    fields = {"content": text, "model": "mock", "provider": "anthropic"}
    fields.update(overrides)
    return AssistantMessage(**fields)


class ScriptedStreamFn:
    """
    Stream function failing the first `fail_count` calls, then succeeding.

    Events are pushed from a loop callback, after the stream is returned,
    like a provider delivering chunks asynchronously.
    """

    def __init__(self, fail_count: int = 1, error_message: str = "overloaded_error"):
        self.fail_count = fail_count
        self.error_message = error_message
        self.call_count = 0
        self.contexts: list[list] = []

    def __call__(self, messages: list) -> AssistantEventStream:
        self.call_count += 1
        self.contexts.append(messages)
        call_number = self.call_count
        stream = AssistantEventStream()

        def produce() -> None:
            if call_number <= self.fail_count:
                msg = create_assistant_message(
                    stop_reason=StopReason.ERROR,
                    error_message=self.error_message,
                )
                stream.push(StreamStartEvent(partial=msg))
                stream.push(StreamErrorEvent(reason=StopReason.ERROR, error=msg))
            else:
                msg = create_assistant_message("Success")
                stream.push(StreamStartEvent(partial=msg))
                stream.push(StreamDoneEvent(reason=StopReason.STOP, message=msg))

        asyncio.get_running_loop().call_soon(produce)
        return stream


def done_stream(text: str = "ok") -> AssistantEventStream:
    """Stream whose events are already queued: start, then done."""
    stream = AssistantEventStream()
    stream.push(StreamStartEvent())
    stream.push(StreamDoneEvent(message=create_assistant_message(text)))
    return stream

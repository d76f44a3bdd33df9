"""
Push-based assistant event stream.

Producers push() events (typically from provider callbacks); the agent engine
consumes them with `async for`. Iteration stops right after the first terminal
event (`done` or `error`), and result() resolves to the terminal message.
"""

import asyncio

import structlog

from turn_retry.agent.exceptions import AgentStreamError
from turn_retry.models.events import (
    AssistantStreamEvent,
    StreamDoneEvent,
    StreamErrorEvent,
    TERMINAL_EVENT_TYPES,
)
from turn_retry.models.messages import AssistantMessage

logger = structlog.get_logger(__name__)

_CLOSED = object()


class AssistantEventStream:
    """Single-consumer event stream for one attempt."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._terminated = False
        self._closed = False
        self._result: AssistantMessage | None = None
        self._finished = asyncio.Event()

    @property
    def terminated(self) -> bool:
        return self._terminated

    def push(self, event: AssistantStreamEvent) -> None:
        """
        Queue an event for the consumer.

        Events pushed after the terminal event are dropped.
        """
        if self._terminated or self._closed:
            logger.warning("Dropping event pushed after stream end", extra={"event_type": event.type})
            return
        if event.type in TERMINAL_EVENT_TYPES:
            self._terminated = True
            self._result = event.message if isinstance(event, StreamDoneEvent) else event.error
            self._finished.set()
        self._queue.put_nowait(event)

    def close(self) -> None:
        """End the stream without a terminal event (producer gave up)."""
        if self._terminated or self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        self._finished.set()

    def abort(self, detail: str = "Request was aborted") -> None:
        """Terminate the stream with an aborted `error` event."""
        self.push(StreamErrorEvent.cancelled(detail))

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        while True:
            event = await self._queue.get()
            if event is _CLOSED:
                raise AgentStreamError("Stream closed without a terminal event")
            yield event
            if event.type in TERMINAL_EVENT_TYPES:
                return

    async def result(self) -> AssistantMessage:
        """Wait for and return the terminal message."""
        await self._finished.wait()
        if self._result is None:
            raise AgentStreamError("Stream closed without a terminal event")
        return self._result

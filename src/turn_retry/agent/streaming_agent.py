"""
Reference agent engine driving a user-supplied stream function.

stream_fn receives the current context (list of messages) and returns an
AssistantEventStream for one attempt. Model invocation, token streaming and
tool execution all live behind stream_fn.
"""

from typing import Callable

import structlog

from turn_retry.agent.base import BaseAgent
from turn_retry.agent.exceptions import AgentBusyError, AgentStreamError
from turn_retry.agent.stream import AssistantEventStream
from turn_retry.models.events import (
    StreamDoneEvent,
    StreamErrorEvent,
    TERMINAL_EVENT_TYPES,
)
from turn_retry.models.messages import AssistantMessage, Message, UserMessage

logger = structlog.get_logger(__name__)

StreamFn = Callable[[list[Message]], AssistantEventStream]


class StreamingAgent(BaseAgent):
    """
    Agent engine that forwards stream events to listeners.

    Guarantees exactly one terminal event per attempt: a stream that raises or
    closes early is reported as an `error` event. The terminal event reaches
    listeners synchronously, before prompt()/continue_turn() returns.
    """

    def __init__(self, stream_fn: StreamFn, system_prompt: str = ""):
        super().__init__()
        self.stream_fn = stream_fn
        self.system_prompt = system_prompt
        self._current_stream: AssistantEventStream | None = None

    @property
    def is_streaming(self) -> bool:
        return self._current_stream is not None

    async def prompt(self, text: str) -> None:
        if self.is_streaming:
            raise AgentBusyError("Agent is already streaming")
        self.messages.append(UserMessage(content=text))
        await self._run_attempt()

    async def continue_turn(self) -> None:
        if self.is_streaming:
            raise AgentBusyError("Agent is already streaming")
        # The failed assistant message is not part of the retried context
        if self.messages and isinstance(self.messages[-1], AssistantMessage) and self.messages[-1].is_error:
            self.messages.pop()
        await self._run_attempt()

    def abort(self) -> None:
        if self._current_stream is None:
            logger.debug("Abort requested with no stream in flight")
            return
        self._current_stream.abort()

    async def _run_attempt(self) -> None:
        try:
            stream = self.stream_fn(list(self.messages))
        except Exception as e:
            logger.error("Stream function raised", extra={"error": str(e)}, exc_info=True)
            self._finish(StreamErrorEvent.from_exception(e))
            return

        self._current_stream = stream
        terminal_seen = False
        try:
            async for event in stream:
                if event.type in TERMINAL_EVENT_TYPES:
                    terminal_seen = True
                    self._finish(event)
                else:
                    self._emit(event)
        except AgentStreamError as e:
            if not terminal_seen:
                logger.warning("Stream ended without terminal event", extra={"error": e.message})
                self._finish(StreamErrorEvent.from_exception(e))
        except Exception as e:
            if terminal_seen:
                raise
            logger.error("Stream raised during attempt", extra={"error": str(e)}, exc_info=True)
            self._finish(StreamErrorEvent.from_exception(e))
        finally:
            if self._current_stream is stream:
                self._current_stream = None

    def _finish(self, event: StreamDoneEvent | StreamErrorEvent) -> None:
        message = event.message if isinstance(event, StreamDoneEvent) else event.error
        self.messages.append(message)
        self._current_stream = None
        self._emit(event)

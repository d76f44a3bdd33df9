"""
Abstract agent engine interface.

The engine runs one attempt per prompt()/continue_turn() call and reports its
lifecycle to subscribed listeners. Contract relied upon by the orchestrator:

- exactly one terminal event (`done` or `error`) per invocation
- listeners are called synchronously, at the moment the terminal condition
  is known, before prompt()/continue_turn() returns
- cancellation is reported as an `error` event with StopReason.ABORTED
"""

from abc import ABC, abstractmethod
from typing import Callable

import structlog

from turn_retry.models.events import AssistantStreamEvent
from turn_retry.models.messages import Message

logger = structlog.get_logger(__name__)

AgentListener = Callable[[AssistantStreamEvent], None]


class BaseAgent(ABC):
    """
    Base class for agent engines.

    Concrete engines implement the attempt methods and call _emit() for every
    stream event. Listener management is shared.
    """

    def __init__(self) -> None:
        self._listeners: list[AgentListener] = []
        self.messages: list[Message] = []

    def subscribe(self, listener: AgentListener) -> Callable[[], None]:
        """Register a listener. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: AssistantStreamEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.error(
                    "Agent listener raised",
                    extra={"event_type": event.type},
                    exc_info=True,
                )

    @property
    @abstractmethod
    def is_streaming(self) -> bool:
        """True while an attempt is in flight."""

    @abstractmethod
    async def prompt(self, text: str) -> None:
        """Append a user message and run one attempt."""

    @abstractmethod
    async def continue_turn(self) -> None:
        """Re-run the current turn without new user input."""

    @abstractmethod
    def abort(self) -> None:
        """Stop the in-flight attempt; it ends with an aborted `error` event."""

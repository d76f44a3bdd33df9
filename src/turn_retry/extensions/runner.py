"""
Extension notification bus.

Extensions register coroutine handlers per event type. emit() awaits every
matching handler in registration order; one failing handler does not stop
the others, and all failures are reported together as ExtensionError.
"""

from collections import defaultdict
from typing import Any, Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

ExtensionHandler = Callable[[Any], Awaitable[None]]


class ExtensionError(Exception):
    """
    Raised by ExtensionRunner.emit when one or more handlers failed.

    Attributes:
        event_type: Type of the event being delivered
        errors: Exceptions raised by the failing handlers
    """

    def __init__(self, event_type: str, errors: list[Exception]):
        self.event_type = event_type
        self.errors = errors
        super().__init__(
            f"{len(errors)} extension handler(s) failed for '{event_type}': "
            + "; ".join(f"{type(e).__name__}: {e}" for e in errors)
        )


class ExtensionRunner:
    """Async event bus for extension handlers."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[ExtensionHandler]] = defaultdict(list)

    def on(self, event_type: str, handler: ExtensionHandler) -> Callable[[], None]:
        """Register a handler. Returns a function that removes it."""
        self._handlers[event_type].append(handler)

        def off() -> None:
            if handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)

        return off

    def has_handlers(self, event_type: str) -> bool:
        return bool(self._handlers.get(event_type))

    async def emit(self, event: Any) -> None:
        """
        Deliver an event to every handler registered for its type.

        Raises:
            ExtensionError: If any handler raised
        """
        errors: list[Exception] = []
        for handler in list(self._handlers.get(event.type, [])):
            try:
                await handler(event)
            except Exception as e:
                errors.append(e)
        if errors:
            raise ExtensionError(event.type, errors)

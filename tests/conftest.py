"""Shared test fixtures and configuration for all tests.

Provides a factory building an AgentSession around a ScriptedStreamFn
(fails the first N calls with a retryable error, then succeeds).
"""

import asyncio
from typing import Callable

import pytest

from turn_retry.agent.streaming_agent import StreamingAgent
from turn_retry.config import RetryConfig, SettingsManager
from turn_retry.extensions.runner import ExtensionRunner
from turn_retry.persistence.repository import InMemorySessionRepository
from turn_retry.session import AgentSession

from tests.fixtures.streams import ScriptedStreamFn


@pytest.fixture
def settings_manager() -> SettingsManager:
    """Retry enabled with 1ms base delay so tests run fast."""
    return SettingsManager(RetryConfig(enabled=True, max_retries=3, base_delay_ms=1))


@pytest.fixture
def create_session():
    """Factory fixture building an AgentSession around a ScriptedStreamFn.

    Usage:
        def test_something(create_session):
            session, stream_fn = create_session(fail_count=2, max_retries=3)

    slow_extension_emit registers an agent_end extension handler that yields
    to the event loop before returning, widening the window between the
    engine returning and the retry decision.
    """
    sessions: list[AgentSession] = []

    def _create(
        fail_count: int = 1,
        max_retries: int = 3,
        enabled: bool = True,
        slow_extension_emit: bool = False,
        error_message: str = "overloaded_error",
    ) -> tuple[AgentSession, ScriptedStreamFn]:
        stream_fn = ScriptedStreamFn(fail_count=fail_count, error_message=error_message)
        agent = StreamingAgent(stream_fn, system_prompt="Test")
        extensions = ExtensionRunner()
        if slow_extension_emit:
            async def slow_handler(event) -> None:
                await asyncio.sleep(0.01)

            extensions.on("agent_end", slow_handler)

        session = AgentSession(
            agent,
            SettingsManager(RetryConfig(enabled=enabled, max_retries=max_retries, base_delay_ms=1)),
            repository=InMemorySessionRepository(),
            extensions=extensions,
        )
        sessions.append(session)
        return session, stream_fn

    yield _create

    for session in sessions:
        session.dispose()


@pytest.fixture
def retry_event_log() -> Callable:
    """Subscriber factory recording auto_retry events as compact strings."""

    def _attach(session) -> list[str]:
        events: list[str] = []

        def listener(event) -> None:
            if event.type == "auto_retry_start":
                events.append(f"start:{event.attempt}")
            elif event.type == "auto_retry_end":
                events.append(f"end:success={'true' if event.success else 'false'}")

        session.subscribe(listener)
        return events

    return _attach

"""
Unit tests for ExtensionRunner.
"""

import pytest

from turn_retry.extensions.runner import ExtensionError, ExtensionRunner
from turn_retry.models.events import AgentEndEvent
from turn_retry.models.messages import AssistantMessage


def agent_end(attempt: int = 1) -> AgentEndEvent:
    return AgentEndEvent(turn_id="t1", attempt=attempt, message=AssistantMessage(content="ok"))


@pytest.mark.asyncio
async def test_handlers_run_in_registration_order():
    runner = ExtensionRunner()
    calls: list[str] = []

    async def first(event) -> None:
        calls.append("first")

    async def second(event) -> None:
        calls.append("second")

    runner.on("agent_end", first)
    runner.on("agent_end", second)

    await runner.emit(agent_end())

    assert calls == ["first", "second"]


@pytest.mark.asyncio
async def test_failures_are_aggregated_and_other_handlers_still_run():
    runner = ExtensionRunner()
    calls: list[str] = []

    async def broken(event) -> None:
        raise RuntimeError("boom")

    async def healthy(event) -> None:
        calls.append("healthy")

    runner.on("agent_end", broken)
    runner.on("agent_end", healthy)

    with pytest.raises(ExtensionError) as exc_info:
        await runner.emit(agent_end())

    assert calls == ["healthy"]
    assert exc_info.value.event_type == "agent_end"
    assert len(exc_info.value.errors) == 1
    assert "RuntimeError: boom" in str(exc_info.value)


@pytest.mark.asyncio
async def test_off_removes_handler():
    runner = ExtensionRunner()
    calls: list[int] = []

    async def handler(event) -> None:
        calls.append(event.attempt)

    off = runner.on("agent_end", handler)
    await runner.emit(agent_end(1))
    off()
    await runner.emit(agent_end(2))

    assert calls == [1]
    assert runner.has_handlers("agent_end") is False


@pytest.mark.asyncio
async def test_emit_without_handlers_is_noop():
    await ExtensionRunner().emit(agent_end())

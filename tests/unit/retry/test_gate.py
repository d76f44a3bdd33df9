"""
Unit tests for CompletionGate single-resolution semantics.
"""

import asyncio

import pytest

from turn_retry.models.enums import TurnStatus
from turn_retry.models.outcome import TurnOutcome
from turn_retry.retry.gate import CompletionGate


def outcome(status: TurnStatus = TurnStatus.SUCCEEDED) -> TurnOutcome:
    return TurnOutcome(turn_id="turn-1", status=status, attempts=1)


@pytest.mark.asyncio
async def test_gate_resolves_once():
    gate = CompletionGate("turn-1")

    assert gate.settled is False
    assert gate.resolve(outcome()) is True
    assert gate.resolve(outcome(TurnStatus.FAILED)) is False

    assert gate.settled is True
    assert (await gate.wait()).status == TurnStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_all_waiters_see_the_same_outcome():
    gate = CompletionGate("turn-1")
    waiters = [asyncio.create_task(gate.wait()) for _ in range(3)]
    await asyncio.sleep(0)

    assert not any(w.done() for w in waiters)

    gate.resolve(outcome(TurnStatus.EXHAUSTED))
    results = await asyncio.gather(*waiters)

    assert {r.status for r in results} == {TurnStatus.EXHAUSTED}


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_cancel_gate():
    gate = CompletionGate("turn-1")
    waiter = asyncio.create_task(gate.wait())
    await asyncio.sleep(0)

    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter

    assert gate.settled is False
    assert gate.resolve(outcome()) is True
    assert gate.result().success is True

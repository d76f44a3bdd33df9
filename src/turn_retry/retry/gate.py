"""
Completion gate: a single-resolution handle for an entire turn.

Callers await the gate instead of the engine, so a turn is only observed as
done once every retry and every side effect has finished. A fresh gate is
allocated per turn; a settled gate is never reset.
"""

import asyncio

import structlog

from turn_retry.models.outcome import TurnOutcome

logger = structlog.get_logger(__name__)


class CompletionGate:
    """asyncio.Future wrapper that can be resolved exactly once."""

    def __init__(self, turn_id: str):
        self.turn_id = turn_id
        self._future: asyncio.Future[TurnOutcome] = asyncio.get_running_loop().create_future()

    @property
    def settled(self) -> bool:
        return self._future.done()

    def resolve(self, outcome: TurnOutcome) -> bool:
        """
        Resolve the gate with the turn outcome.

        Returns:
            True if this call resolved the gate, False if it was already settled
        """
        if self._future.done():
            logger.warning(
                "Ignoring repeated gate resolution",
                extra={"turn_id": self.turn_id, "status": outcome.status.value},
            )
            return False
        self._future.set_result(outcome)
        return True

    async def wait(self) -> TurnOutcome:
        # shield: a cancelled waiter must not cancel the gate for other waiters
        return await asyncio.shield(self._future)

    def result(self) -> TurnOutcome:
        return self._future.result()

"""
Auto-retry orchestration for agent turns.

Main Components:
    - RetryOrchestrator: Turn driver; arms the completion gate synchronously
      on every terminal event, then runs side effects and the retry decision
    - RetryPolicy: Classifies failures and computes backoff delays
    - CompletionGate: Single-resolution handle awaited by callers
    - RetryState: Live retry bookkeeping for the in-flight turn

Usage:
    >>> from turn_retry.retry import RetryOrchestrator
    >>> orchestrator = RetryOrchestrator(agent, settings_manager)
    >>> outcome = await orchestrator.run_turn("Summarise the log")
"""

from turn_retry.retry.exceptions import TurnInProgressError
from turn_retry.retry.gate import CompletionGate
from turn_retry.retry.orchestrator import RetryOrchestrator
from turn_retry.retry.policy import RetryDecision, RetryPolicy
from turn_retry.retry.state import RetryState

__all__ = [
    "CompletionGate",
    "RetryDecision",
    "RetryOrchestrator",
    "RetryPolicy",
    "RetryState",
    "TurnInProgressError",
]

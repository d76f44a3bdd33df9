"""
Auto-retry orchestration for streaming agent turns.

Observes the lifecycle events a streaming agent emits for a single turn,
classifies terminal failures as retryable or not, and transparently re-issues
the turn with backoff. Callers awaiting a turn only ever see its final outcome,
after every retry and every side-effect notification has completed.

Architecture: RetryOrchestrator (turn driver + completion gate) on top of a
BaseAgent engine, with pluggable persistence and extension notification.
"""

from turn_retry.config import RetryConfig, Settings, SettingsManager
from turn_retry.models.outcome import TurnOutcome
from turn_retry.retry.orchestrator import RetryOrchestrator
from turn_retry.session import AgentSession

__version__ = "0.1.0"

__all__ = [
    "AgentSession",
    "RetryConfig",
    "RetryOrchestrator",
    "Settings",
    "SettingsManager",
    "TurnOutcome",
]

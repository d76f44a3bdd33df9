"""
Custom exceptions for the agent engine layer.

These let the orchestrator distinguish engine contract violations from
ordinary failed attempts (which arrive as `error` events, not exceptions).
"""


class AgentError(Exception):
    """
    Base exception for all agent engine errors.
    """
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class AgentStreamError(AgentError):
    """
    Raised when an assistant stream breaks its contract.

    Examples:
    - stream iteration raised
    - stream ended without a `done` or `error` event
    """
    pass


class AgentBusyError(AgentError):
    """
    Raised when an attempt is started while the engine is still streaming.
    """
    pass

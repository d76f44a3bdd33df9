"""
Enumerations for turn retry data models.

FailureReason is an open taxonomy reported by the agent engine: values outside
the retryable whitelist are treated as permanent failures.
"""

from enum import Enum


class StopReason(str, Enum):
    """Why an assistant stream stopped."""

    STOP = "stop"
    LENGTH = "length"
    TOOL_USE = "tool_use"
    ERROR = "error"
    ABORTED = "aborted"


class FailureReason(str, Enum):
    """
    Classified cause of a failed attempt.

    Only OVERLOADED, RATE_LIMITED, NETWORK and SERVER_ERROR are retryable.
    CANCELLED is never retryable, regardless of configuration.
    """

    OVERLOADED = "overloaded"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    SERVER_ERROR = "server_error"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    CONTEXT_OVERFLOW = "context_overflow"
    PERMANENT = "permanent"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class BackoffPolicy(str, Enum):
    """Delay growth between consecutive retries."""

    FIXED = "fixed"
    EXPONENTIAL = "exponential"


class TurnStatus(str, Enum):
    """
    Final status of a turn.

    EXHAUSTED has the same shape as FAILED but signals that the failure was
    retryable and the retry budget ran out.
    """

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"

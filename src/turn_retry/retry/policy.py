"""
Retry policy evaluator.

Decides whether a failed attempt is retryable and how long to back off.
The engine's failure taxonomy is open-ended, so classification whitelists
known transient causes and treats everything else as permanent.
"""

from dataclasses import dataclass
import re
from typing import Optional

import structlog

from turn_retry.config import RetryConfig
from turn_retry.models.enums import BackoffPolicy, FailureReason
from turn_retry.models.messages import AssistantMessage

logger = structlog.get_logger(__name__)

RETRYABLE_REASONS = frozenset(
    {
        FailureReason.OVERLOADED,
        FailureReason.RATE_LIMITED,
        FailureReason.NETWORK,
        FailureReason.SERVER_ERROR,
    }
)

_CONTEXT_OVERFLOW_PATTERN = re.compile(
    r"context.?(length|window)|prompt is too long|maximum context|exceeds the context",
    re.IGNORECASE,
)

# Ordered: first match wins
_REASON_PATTERNS: list[tuple[re.Pattern[str], FailureReason]] = [
    (re.compile(r"overloaded", re.IGNORECASE), FailureReason.OVERLOADED),
    (
        re.compile(r"rate.?limit|too many requests|\b429\b|retry delay", re.IGNORECASE),
        FailureReason.RATE_LIMITED,
    ),
    (
        re.compile(
            r"\b50[0234]\b|service.?unavailable|server error|internal error",
            re.IGNORECASE,
        ),
        FailureReason.SERVER_ERROR,
    ),
    (
        re.compile(
            r"connection.?(error|refused|reset)|other side closed|fetch failed|"
            r"upstream.?connect|reset before headers|terminated|timed? ?out",
            re.IGNORECASE,
        ),
        FailureReason.NETWORK,
    ),
    (
        re.compile(r"\b40[13]\b|unauthori[sz]ed|invalid.?api.?key|authentication", re.IGNORECASE),
        FailureReason.AUTHENTICATION,
    ),
    (re.compile(r"\b400\b|invalid request|validation", re.IGNORECASE), FailureReason.VALIDATION),
    (
        re.compile(
            r"\b404\b|not.?found|does not exist|billing|insufficient.?(credit|balance|quota)|unsupported",
            re.IGNORECASE,
        ),
        FailureReason.PERMANENT,
    ),
]


@dataclass(frozen=True)
class RetryDecision:
    """Classification of one terminal failure."""

    retryable: bool
    reason: Optional[FailureReason]


class RetryPolicy:
    """
    Failure classification and backoff computation.

    classify() depends only on the failure itself, so it is safe to call in
    the synchronous gate-arming step. Whether a retry actually happens also
    depends on the RetryConfig read at decision time (allows_retry()).
    """

    def resolve_reason(self, message: AssistantMessage) -> FailureReason:
        """Determine the failure cause, preferring the engine's explicit reason."""
        if message.is_cancelled:
            return FailureReason.CANCELLED
        if message.failure_reason is not None:
            return message.failure_reason

        text = message.error_message or ""
        if _CONTEXT_OVERFLOW_PATTERN.search(text):
            return FailureReason.CONTEXT_OVERFLOW
        for pattern, reason in _REASON_PATTERNS:
            if pattern.search(text):
                return reason
        return FailureReason.UNKNOWN

    def classify(self, message: AssistantMessage) -> RetryDecision:
        if not message.is_error:
            return RetryDecision(retryable=False, reason=None)
        reason = self.resolve_reason(message)
        return RetryDecision(retryable=reason in RETRYABLE_REASONS, reason=reason)

    def is_retry_candidate(self, message: AssistantMessage) -> bool:
        return self.classify(message).retryable

    def allows_retry(self, retry_index: int, config: RetryConfig) -> bool:
        """True if retry number `retry_index` (1-based) fits the budget."""
        return config.enabled and retry_index <= config.max_retries

    def next_delay(self, attempt: int, config: RetryConfig) -> float:
        """
        Backoff before retry number `attempt` (1-based), in milliseconds.

        Non-decreasing in `attempt` for both policies; capped at max_delay_ms.
        """
        if attempt < 1:
            raise ValueError("attempt must be >= 1")
        delay = config.base_delay_ms
        if config.backoff == BackoffPolicy.EXPONENTIAL:
            # Stop doubling at the cap; attempt may be arbitrarily large
            for _ in range(attempt - 1):
                if delay == 0 or delay >= config.max_delay_ms:
                    break
                delay *= 2
        return min(delay, config.max_delay_ms)

"""Custom Prometheus metrics for turn retry orchestration.

Alert rules should be configured for:
- auto_retries_total (high retry rate indicates provider instability)
- turns_total{status="exhausted"} (retry budget regularly running out)
- side_effect_failures_total (extensions or persistence failing)
"""

from prometheus_client import Counter, Histogram

# === Attempt Metrics ===

turn_attempts_total = Counter(
    "turn_attempts_total",
    "Total agent engine invocations by terminal result",
    ["result"],
)
"""
Attempts counter by terminal result.

Labels:
- result: done (stream succeeded), error (stream failed), aborted (cancelled)
"""

auto_retries_total = Counter(
    "auto_retries_total",
    "Total retries issued after a retryable failure",
    ["reason"],
)
"""
Retries counter by classified failure reason (overloaded, rate_limited, ...).
"""

retry_delay_seconds = Histogram(
    "retry_delay_seconds",
    "Backoff delay applied before a retry",
    buckets=[0.01, 0.1, 0.5, 1.0, 2.0, 4.0, 8.0, 16.0, 32.0, 60.0],
)

# === Turn Metrics ===

turns_total = Counter(
    "turns_total",
    "Total settled turns by final status",
    ["status"],
)
"""
Turns counter by final status.

Labels:
- status: succeeded, failed, exhausted, cancelled

Alert thresholds:
- WARN: exhausted > 5% of turns
"""

turn_duration_seconds = Histogram(
    "turn_duration_seconds",
    "Wall time from turn start to settlement, including retries",
    ["status"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
)

# === Side Effects ===

side_effect_failures_total = Counter(
    "side_effect_failures_total",
    "Failures of notification or persistence side effects",
    ["kind"],
)
"""
Side-effect failures by kind.

Labels:
- kind: extension, persistence, subscriber
"""


def record_attempt(result: str) -> None:
    turn_attempts_total.labels(result=result).inc()


def record_retry(reason: str, delay_ms: float) -> None:
    auto_retries_total.labels(reason=reason).inc()
    retry_delay_seconds.observe(delay_ms / 1000.0)


def record_turn(status: str, duration_ms: int) -> None:
    turns_total.labels(status=status).inc()
    turn_duration_seconds.labels(status=status).observe(duration_ms / 1000.0)


def record_side_effect_failure(kind: str) -> None:
    side_effect_failures_total.labels(kind=kind).inc()

"""
Live retry bookkeeping for one turn.
"""

from dataclasses import dataclass
from typing import Optional

from turn_retry.retry.gate import CompletionGate


@dataclass
class RetryState:
    """
    Mutable retry state, one instance per turn.

    Attributes:
        is_retrying: True from detection of a retry-eligible failure until the
            turn settles
        attempt_count: Engine invocations issued so far (initial + retries)
        retry_count: Retries announced so far (auto_retry_start events)
        pending_completion: Completion gate for the whole turn; created when
            the first terminal event is armed, never reused across turns
    """

    is_retrying: bool = False
    attempt_count: int = 0
    retry_count: int = 0
    pending_completion: Optional[CompletionGate] = None

    @property
    def gate_open(self) -> bool:
        return self.pending_completion is not None and not self.pending_completion.settled

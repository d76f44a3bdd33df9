"""
Turn attempt and outcome models.

TurnAttempt is ephemeral (one per engine invocation); TurnOutcome is the
single value a caller of run_turn() receives once the turn has settled.
"""

from dataclasses import dataclass, field
import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from turn_retry.models.enums import FailureReason, TurnStatus
from turn_retry.models.messages import AssistantMessage


@dataclass(frozen=True)
class TurnAttempt:
    """
    One invocation of the agent engine for a turn.

    Attributes:
        index: 1-based attempt number (1 = initial attempt)
        started_at: Monotonic clock reading when the attempt was issued
    """

    index: int
    started_at: float = field(default_factory=time.monotonic)

    def __post_init__(self) -> None:
        if self.index < 1:
            raise ValueError("index must be >= 1")

    @property
    def is_retry(self) -> bool:
        return self.index > 1


class TurnOutcome(BaseModel):
    """Final result of a turn, including all retries."""

    model_config = ConfigDict(frozen=True)

    turn_id: str = Field(..., description="Unique id of the turn")
    status: TurnStatus = Field(..., description="Final status")
    message: Optional[AssistantMessage] = Field(
        default=None,
        description="Last assistant message (success payload or last failure)",
    )
    attempts: int = Field(..., ge=1, description="Engine invocations issued for the turn")
    failure_reason: Optional[FailureReason] = Field(default=None, description="Classified cause")
    duration_ms: int = Field(default=0, ge=0, description="Wall time from start to settlement")

    @property
    def success(self) -> bool:
        return self.status == TurnStatus.SUCCEEDED

    @property
    def retries(self) -> int:
        return self.attempts - 1

    @property
    def error_message(self) -> Optional[str]:
        if self.success or self.message is None:
            return None
        return self.message.error_message

"""
Conversation messages exchanged with the agent engine.

AssistantMessage is both the payload of a successful `done` event and the
error carrier of an `error` event (stop_reason ERROR or ABORTED).
"""

import time
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from turn_retry.models.enums import FailureReason, StopReason


def _now_ms() -> int:
    return int(time.time() * 1000)


class UserMessage(BaseModel):
    """Prompt submitted by the user for a turn."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user"] = "user"
    content: str = Field(..., description="Prompt text")
    timestamp: int = Field(default_factory=_now_ms, description="Epoch milliseconds")


class AssistantMessage(BaseModel):
    """Final (or failed) assistant output of one attempt."""

    model_config = ConfigDict(frozen=True)

    role: Literal["assistant"] = "assistant"
    content: str = Field(default="", description="Generated text")
    model: str = Field(default="unknown", description="Model identifier")
    provider: str = Field(default="unknown", description="Provider identifier")
    stop_reason: StopReason = Field(default=StopReason.STOP, description="Why the stream stopped")
    error_message: Optional[str] = Field(default=None, description="Provider error text")
    failure_reason: Optional[FailureReason] = Field(
        default=None,
        description="Engine-classified failure cause, when the engine knows it",
    )
    timestamp: int = Field(default_factory=_now_ms, description="Epoch milliseconds")

    @property
    def is_error(self) -> bool:
        return self.stop_reason in (StopReason.ERROR, StopReason.ABORTED)

    @property
    def is_cancelled(self) -> bool:
        return (
            self.stop_reason == StopReason.ABORTED
            or self.failure_reason == FailureReason.CANCELLED
        )


Message = UserMessage | AssistantMessage

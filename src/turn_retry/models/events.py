"""
Lifecycle events flowing from the agent engine to the orchestrator, and from
the orchestrator to its subscribers and extensions.

Engine stream events (one attempt):
    start -> text_delta* -> done | error

Orchestrator events:
    auto_retry_start{attempt}  before each re-issued attempt
    auto_retry_end{success}    once per turn that was retried
    agent_end                  extension notification after every attempt
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from turn_retry.models.enums import FailureReason, StopReason
from turn_retry.models.messages import AssistantMessage


class StreamStartEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["start"] = "start"
    partial: Optional[AssistantMessage] = None


class TextDeltaEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text_delta"] = "text_delta"
    delta: str


class StreamDoneEvent(BaseModel):
    """Terminal success of an attempt."""

    model_config = ConfigDict(frozen=True)

    type: Literal["done"] = "done"
    reason: StopReason = StopReason.STOP
    message: AssistantMessage


class StreamErrorEvent(BaseModel):
    """Terminal failure (or cancellation) of an attempt."""

    model_config = ConfigDict(frozen=True)

    type: Literal["error"] = "error"
    reason: StopReason = StopReason.ERROR
    error: AssistantMessage

    @classmethod
    def from_exception(cls, exc: BaseException) -> "StreamErrorEvent":
        """Wrap an engine exception as an error terminal event."""
        return cls(
            error=AssistantMessage(
                stop_reason=StopReason.ERROR,
                error_message=str(exc) or type(exc).__name__,
            )
        )

    @classmethod
    def cancelled(cls, detail: str = "Request was aborted") -> "StreamErrorEvent":
        return cls(
            reason=StopReason.ABORTED,
            error=AssistantMessage(
                stop_reason=StopReason.ABORTED,
                error_message=detail,
                failure_reason=FailureReason.CANCELLED,
            ),
        )


AssistantStreamEvent = Annotated[
    Union[StreamStartEvent, TextDeltaEvent, StreamDoneEvent, StreamErrorEvent],
    Field(discriminator="type"),
]

TERMINAL_EVENT_TYPES = frozenset({"done", "error"})


class AgentEndEvent(BaseModel):
    """Extension notification emitted after each attempt's terminal event."""

    model_config = ConfigDict(frozen=True)

    type: Literal["agent_end"] = "agent_end"
    turn_id: str
    attempt: int = Field(..., ge=1)
    message: AssistantMessage


class AutoRetryStartEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["auto_retry_start"] = "auto_retry_start"
    attempt: int = Field(..., ge=1, description="Retry index (the first retry is 1)")
    max_attempts: int = Field(..., ge=0)
    delay_ms: float = Field(..., ge=0)
    error_message: str = ""


class AutoRetryEndEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["auto_retry_end"] = "auto_retry_end"
    success: bool
    attempt: int = Field(..., ge=0, description="Retries issued for the turn")
    final_error: Optional[str] = None


RetryEvent = Annotated[
    Union[AutoRetryStartEvent, AutoRetryEndEvent],
    Field(discriminator="type"),
]

SessionEvent = Union[AssistantStreamEvent, RetryEvent]

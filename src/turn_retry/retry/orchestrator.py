"""
Retry orchestrator: drives one turn across as many attempts as the retry
policy allows, and exposes a single completion gate for the whole turn.

Terminal event handling is split in two:

1. Synchronous prefix (_arm_gate), run inside the engine's listener call
   with no suspension point: marks the turn as retrying when the failure is
   retry-eligible and makes sure a live completion gate exists.
2. Asynchronous suffix (_process_terminal_event), run as a task: extension
   notification, persistence, retry decision, backoff and the next attempt.

Anything a caller can await is therefore in its final "still working" state
before the engine call that produced the terminal event returns.

Usage:
    orchestrator = RetryOrchestrator(agent, SettingsManager())
    outcome = await orchestrator.run_turn("Hello")
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional
import uuid

import structlog

from turn_retry.agent.base import BaseAgent
from turn_retry.agent.exceptions import AgentStreamError
from turn_retry.config import SettingsManager
from turn_retry.extensions.runner import ExtensionRunner
from turn_retry.logging_config import turn_log_context
from turn_retry.models.enums import FailureReason, TurnStatus
from turn_retry.models.events import (
    AgentEndEvent,
    AssistantStreamEvent,
    AutoRetryEndEvent,
    AutoRetryStartEvent,
    SessionEvent,
    StreamDoneEvent,
    StreamErrorEvent,
    TERMINAL_EVENT_TYPES,
)
from turn_retry.models.messages import AssistantMessage, Message
from turn_retry.models.outcome import TurnAttempt, TurnOutcome
from turn_retry.monitoring.metrics import (
    record_attempt,
    record_retry,
    record_side_effect_failure,
    record_turn,
)
from turn_retry.persistence.repository import SessionRepository
from turn_retry.retry.exceptions import TurnInProgressError
from turn_retry.retry.gate import CompletionGate
from turn_retry.retry.policy import RetryPolicy
from turn_retry.retry.state import RetryState

logger = structlog.get_logger(__name__)

SessionListener = Callable[[SessionEvent], None]


def _terminal_message(event: StreamDoneEvent | StreamErrorEvent) -> AssistantMessage:
    return event.message if isinstance(event, StreamDoneEvent) else event.error


class RetryOrchestrator:
    """
    Turn driver with transparent auto-retry.

    One turn at a time: run_turn() raises TurnInProgressError while a turn is
    in flight. Subscribers receive every engine event plus auto_retry_start /
    auto_retry_end, in emission order.

    Attributes:
        agent: Agent engine running the attempts
        settings_manager: Source of the live RetryConfig
        policy: Failure classification and backoff computation
        repository: Optional session persistence
        extensions: Optional extension bus notified with agent_end
        session_id: Key used for persistence
    """

    def __init__(
        self,
        agent: BaseAgent,
        settings_manager: SettingsManager,
        policy: RetryPolicy | None = None,
        repository: SessionRepository | None = None,
        extensions: ExtensionRunner | None = None,
        session_id: str | None = None,
    ):
        self.agent = agent
        self.settings_manager = settings_manager
        self.policy = policy or RetryPolicy()
        self.repository = repository
        self.extensions = extensions
        self.session_id = session_id or uuid.uuid4().hex

        self._state = RetryState()
        self._listeners: list[SessionListener] = []
        self._turn_id: str | None = None
        self._turn_started_at = 0.0
        self._current_attempt: TurnAttempt | None = None
        self._abort_requested = False
        self._backoff_abort: asyncio.Event | None = None
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe_agent = agent.subscribe(self._handle_agent_event)

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def retry_state(self) -> RetryState:
        return self._state

    @property
    def is_retrying(self) -> bool:
        return self._state.is_retrying

    @property
    def retry_attempt(self) -> int:
        return self._state.retry_count

    @property
    def turn_in_flight(self) -> bool:
        return self._turn_id is not None or self._state.gate_open

    @property
    def turn_id(self) -> Optional[str]:
        return self._turn_id

    @property
    def pending_completion(self) -> Optional[CompletionGate]:
        return self._state.pending_completion

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a session event listener. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def run_turn(self, text: str) -> TurnOutcome:
        """
        Run a turn to completion, retrying transient failures.

        Args:
            text: User prompt for the turn

        Returns:
            Final TurnOutcome (success, last failure, or cancellation)

        Raises:
            TurnInProgressError: A previous turn has not settled yet
        """
        if self.turn_in_flight:
            raise TurnInProgressError(self._turn_id)

        self._state = RetryState()
        self._turn_id = uuid.uuid4().hex
        self._turn_started_at = time.monotonic()
        self._abort_requested = False

        with turn_log_context(self.session_id, self._turn_id):
            logger.info("Starting turn", extra={"session_id": self.session_id, "turn_id": self._turn_id})

            state = self._state
            attempt = self._begin_attempt()
            await self._invoke(attempt, self.agent.prompt(text))

        # _invoke terminates the attempt, which always arms this turn's gate
        gate = state.pending_completion
        if gate is None:
            raise AgentStreamError("Turn finished without arming its completion gate")
        return await gate.wait()

    async def wait_until_settled(self) -> TurnOutcome | None:
        """
        Wait for the current turn, including retries, to settle.

        Returns None when no turn has reached a terminal event yet.
        """
        gate = self._state.pending_completion
        if gate is None:
            return None
        return await gate.wait()

    def abort(self) -> None:
        """
        Cancel the current turn.

        An in-flight attempt is aborted through the engine; a pending backoff
        wait is interrupted. Either way the turn settles as CANCELLED through
        the regular terminal path.
        """
        if not self.turn_in_flight:
            return
        logger.info("Abort requested", extra={"turn_id": self._turn_id})
        self._abort_requested = True
        if self._backoff_abort is not None:
            self._backoff_abort.set()
        if self._current_attempt is not None:
            self.agent.abort()

    def dispose(self) -> None:
        """
        Detach from the engine and cancel any pending background work.

        An in-flight attempt is aborted through the engine and the turn
        settles as CANCELLED, so a pending run_turn() returns.
        """
        self._unsubscribe_agent()
        if self._turn_id is not None:
            self._abort_requested = True
        if self._current_attempt is not None:
            self._current_attempt = None
            self.agent.abort()
        for task in list(self._tasks):
            task.cancel()
        if self._turn_id is not None and self._state.pending_completion is None:
            self._state.pending_completion = CompletionGate(self._turn_id)
        if self._state.gate_open:
            self._settle(self._build_outcome(TurnStatus.CANCELLED, None, FailureReason.CANCELLED))
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    def _begin_attempt(self) -> TurnAttempt:
        self._state.attempt_count += 1
        attempt = TurnAttempt(index=self._state.attempt_count)
        self._current_attempt = attempt
        logger.debug(
            "Issuing attempt",
            extra={"turn_id": self._turn_id, "attempt": attempt.index, "is_retry": attempt.is_retry},
        )
        return attempt

    async def _invoke(self, attempt: TurnAttempt, call: Awaitable[None]) -> None:
        """Await an engine call; convert contract violations into error events."""
        try:
            await call
        except Exception as e:
            logger.error(
                "Agent engine raised during attempt",
                extra={"turn_id": self._turn_id, "attempt": attempt.index, "error": str(e)},
                exc_info=True,
            )
            self._terminate_attempt(attempt, StreamErrorEvent.from_exception(e))
            return
        if self._current_attempt is attempt:
            logger.warning(
                "Agent returned without a terminal event",
                extra={"turn_id": self._turn_id, "attempt": attempt.index},
            )
            self._terminate_attempt(
                attempt,
                StreamErrorEvent.from_exception(
                    AgentStreamError("Agent returned without a terminal event")
                ),
            )

    def _terminate_attempt(self, attempt: TurnAttempt, event: StreamErrorEvent) -> None:
        """Feed a synthesized terminal event if `attempt` is still in flight."""
        if self._current_attempt is attempt:
            self._handle_agent_event(event)

    # ------------------------------------------------------------------
    # Terminal event handling
    # ------------------------------------------------------------------

    def _handle_agent_event(self, event: AssistantStreamEvent) -> None:
        """Engine listener. Runs synchronously inside the engine's emit call."""
        if event.type in TERMINAL_EVENT_TYPES:
            armed = self._arm_gate(event)
            if armed is not None:
                attempt, turn_id = armed
                self._spawn(self._process_terminal_event(event, attempt, turn_id))
        self._notify(event)

    def _arm_gate(
        self, event: StreamDoneEvent | StreamErrorEvent
    ) -> tuple[TurnAttempt, str] | None:
        # No awaits in here: callers may observe the gate as soon as we return.
        attempt = self._current_attempt
        if attempt is None or self._turn_id is None:
            logger.warning(
                "Ignoring terminal event with no attempt in flight",
                extra={"event_type": event.type, "turn_id": self._turn_id},
            )
            return None
        self._current_attempt = None

        if self.policy.is_retry_candidate(_terminal_message(event)):
            self._state.is_retrying = True
        if self._state.pending_completion is None:
            self._state.pending_completion = CompletionGate(self._turn_id)

        logger.debug(
            "Terminal event armed",
            extra={
                "turn_id": self._turn_id,
                "attempt": attempt.index,
                "event_type": event.type,
                "is_retrying": self._state.is_retrying,
            },
        )
        return attempt, self._turn_id

    async def _process_terminal_event(
        self,
        event: StreamDoneEvent | StreamErrorEvent,
        attempt: TurnAttempt,
        turn_id: str,
    ) -> None:
        message = _terminal_message(event)
        record_attempt("done" if event.type == "done" else message.stop_reason.value)

        await self._emit_extension_event(
            AgentEndEvent(turn_id=turn_id, attempt=attempt.index, message=message)
        )
        await self._persist_message(message)

        try:
            await self._decide(attempt, message)
        except Exception:
            logger.error(
                "Retry decision failed; settling turn as failed",
                extra={"turn_id": turn_id, "attempt": attempt.index},
                exc_info=True,
            )
            self._settle(self._build_outcome(TurnStatus.FAILED, message, FailureReason.UNKNOWN))

    async def _decide(self, attempt: TurnAttempt, message: AssistantMessage) -> None:
        if not message.is_error:
            await self._finish(TurnStatus.SUCCEEDED, message)
            return

        decision = self.policy.classify(message)
        if decision.reason == FailureReason.CANCELLED or self._abort_requested:
            logger.info("Turn cancelled", extra={"turn_id": self._turn_id, "attempt": attempt.index})
            await self._finish(TurnStatus.CANCELLED, message, FailureReason.CANCELLED)
            return

        if not decision.retryable:
            logger.warning(
                "Non-retryable failure",
                extra={
                    "turn_id": self._turn_id,
                    "attempt": attempt.index,
                    "reason": decision.reason.value if decision.reason else None,
                    "error_message": message.error_message,
                },
            )
            await self._finish(TurnStatus.FAILED, message, decision.reason)
            return

        # Read at every decision point so mid-turn changes apply
        config = self.settings_manager.get_retry_config()
        retry_index = self._state.retry_count + 1

        if not self.policy.allows_retry(retry_index, config):
            status = TurnStatus.EXHAUSTED if config.enabled else TurnStatus.FAILED
            logger.error(
                "Retry budget exhausted" if config.enabled else "Auto-retry disabled",
                extra={
                    "turn_id": self._turn_id,
                    "attempts": self._state.attempt_count,
                    "max_retries": config.max_retries,
                    "reason": decision.reason.value,
                    "error_message": message.error_message,
                },
            )
            await self._finish(status, message, decision.reason)
            return

        delay_ms = self.policy.next_delay(retry_index, config)
        logger.info(
            f"Retrying after {delay_ms}ms (retry {retry_index}/{config.max_retries})",
            extra={
                "turn_id": self._turn_id,
                "retry": retry_index,
                "delay_ms": delay_ms,
                "reason": decision.reason.value,
            },
        )

        if await self._backoff(delay_ms):
            logger.info("Retry cancelled during backoff", extra={"turn_id": self._turn_id})
            self._cancel_pending_retry()
            return

        self._state.retry_count = retry_index
        record_retry(decision.reason.value, delay_ms)
        self._notify(
            AutoRetryStartEvent(
                attempt=retry_index,
                max_attempts=config.max_retries,
                delay_ms=delay_ms,
                error_message=message.error_message or "",
            )
        )
        # A subscriber may have aborted from its auto_retry_start callback
        if self._abort_requested:
            logger.info("Retry cancelled before next attempt", extra={"turn_id": self._turn_id})
            self._cancel_pending_retry()
            return

        next_attempt = self._begin_attempt()
        await self._invoke(next_attempt, self.agent.continue_turn())

    def _cancel_pending_retry(self) -> None:
        """Settle a retry that was never issued through the terminal path."""
        self._current_attempt = TurnAttempt(index=self._state.attempt_count)
        self._handle_agent_event(StreamErrorEvent.cancelled("Retry cancelled"))

    async def _backoff(self, delay_ms: float) -> bool:
        """Sleep for the backoff delay. Returns True if aborted meanwhile."""
        self._backoff_abort = asyncio.Event()
        try:
            await asyncio.wait_for(self._backoff_abort.wait(), timeout=delay_ms / 1000.0)
        except asyncio.TimeoutError:
            return False
        finally:
            self._backoff_abort = None
        return True

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def _build_outcome(
        self,
        status: TurnStatus,
        message: AssistantMessage | None,
        reason: FailureReason | None = None,
    ) -> TurnOutcome:
        gate = self._state.pending_completion
        return TurnOutcome(
            turn_id=gate.turn_id if gate else (self._turn_id or "unknown"),
            status=status,
            message=message,
            attempts=max(self._state.attempt_count, 1),
            failure_reason=reason,
            duration_ms=int((time.monotonic() - self._turn_started_at) * 1000),
        )

    async def _finish(
        self,
        status: TurnStatus,
        message: AssistantMessage,
        reason: FailureReason | None = None,
    ) -> None:
        outcome = self._build_outcome(status, message, reason)
        await self._persist_outcome(outcome)
        self._settle(outcome)

    def _settle(self, outcome: TurnOutcome) -> None:
        gate = self._state.pending_completion
        if gate is None or gate.settled:
            logger.warning(
                "Turn already settled",
                extra={"turn_id": outcome.turn_id, "status": outcome.status.value},
            )
            return

        self._state.is_retrying = False
        if self._state.retry_count > 0:
            self._notify(
                AutoRetryEndEvent(
                    success=outcome.success,
                    attempt=self._state.retry_count,
                    final_error=outcome.error_message,
                )
            )
        record_turn(outcome.status.value, outcome.duration_ms)
        logger.info(
            "Turn settled",
            extra={
                "turn_id": outcome.turn_id,
                "status": outcome.status.value,
                "attempts": outcome.attempts,
                "duration_ms": outcome.duration_ms,
            },
        )
        self._turn_id = None
        gate.resolve(outcome)

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _notify(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                record_side_effect_failure("subscriber")
                logger.error(
                    "Session listener raised",
                    extra={"event_type": event.type},
                    exc_info=True,
                )

    async def _emit_extension_event(self, event: AgentEndEvent) -> None:
        if self.extensions is None:
            return
        try:
            await self.extensions.emit(event)
        except Exception as e:
            record_side_effect_failure("extension")
            logger.error(
                "Extension notification failed",
                extra={"event_type": event.type, "turn_id": event.turn_id, "error": str(e)},
                exc_info=True,
            )

    async def _persist_message(self, message: Message) -> None:
        if self.repository is None:
            return
        try:
            saved = await self.repository.append_message(self.session_id, message)
        except Exception:
            saved = False
            logger.error("Persisting message raised", extra={"session_id": self.session_id}, exc_info=True)
        if not saved:
            record_side_effect_failure("persistence")

    async def _persist_outcome(self, outcome: TurnOutcome) -> None:
        if self.repository is None:
            return
        try:
            saved = await self.repository.save_outcome(self.session_id, outcome)
        except Exception:
            saved = False
            logger.error("Persisting outcome raised", extra={"session_id": self.session_id}, exc_info=True)
        if not saved:
            record_side_effect_failure("persistence")

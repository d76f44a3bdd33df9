"""
Agent session: the user-facing facade over an agent engine with auto-retry.

Wires a BaseAgent to a RetryOrchestrator together with settings, persistence
and the extension bus, and keeps the conversation history in the repository.
"""

from typing import Callable
import uuid

import structlog

from turn_retry.agent.base import BaseAgent
from turn_retry.config import Settings, SettingsManager, settings as default_settings
from turn_retry.extensions.runner import ExtensionRunner
from turn_retry.models.messages import UserMessage
from turn_retry.models.outcome import TurnOutcome
from turn_retry.monitoring.metrics import record_side_effect_failure
from turn_retry.persistence.redis_client import RedisClient
from turn_retry.persistence.repository import (
    InMemorySessionRepository,
    RedisSessionRepository,
    SessionRepository,
)
from turn_retry.retry.exceptions import TurnInProgressError
from turn_retry.retry.orchestrator import RetryOrchestrator, SessionListener
from turn_retry.retry.policy import RetryPolicy

logger = structlog.get_logger(__name__)


class AgentSession:
    """
    One conversation with an agent, one turn at a time.

    Attributes:
        session_id: Persistence key for this conversation
        settings_manager: Live retry configuration
        repository: Message and outcome store
        extensions: Extension bus (agent_end notifications)
        orchestrator: Turn driver with auto-retry
    """

    def __init__(
        self,
        agent: BaseAgent,
        settings_manager: SettingsManager | None = None,
        repository: SessionRepository | None = None,
        extensions: ExtensionRunner | None = None,
        policy: RetryPolicy | None = None,
        session_id: str | None = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.settings_manager = settings_manager or SettingsManager()
        self.repository = repository or InMemorySessionRepository()
        self.extensions = extensions or ExtensionRunner()
        self.orchestrator = RetryOrchestrator(
            agent,
            self.settings_manager,
            policy=policy,
            repository=self.repository,
            extensions=self.extensions,
            session_id=self.session_id,
        )
        self._agent = agent
        self._prompt_pending = False

    @classmethod
    def from_settings(
        cls, agent: BaseAgent, settings: Settings | None = None, **kwargs
    ) -> "AgentSession":
        """
        Create a session configured from environment settings.

        Retry config is seeded from the RETRY_* settings (the process-wide
        settings when none are given). Unless a repository is passed, history
        is stored in Redis at REDIS_URL.
        """
        settings = settings or default_settings
        if kwargs.get("repository") is None:
            kwargs["repository"] = RedisSessionRepository(
                RedisClient.get_async_client(settings), settings
            )
        return cls(agent, SettingsManager.from_settings(settings), **kwargs)

    @property
    def agent(self) -> BaseAgent:
        return self._agent

    @property
    def is_retrying(self) -> bool:
        return self.orchestrator.is_retrying

    @property
    def retry_attempt(self) -> int:
        return self.orchestrator.retry_attempt

    @property
    def is_streaming(self) -> bool:
        return self._agent.is_streaming

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        return self.orchestrator.subscribe(listener)

    async def prompt(self, text: str) -> TurnOutcome:
        """
        Send a prompt and wait for the turn to finish, including retries.

        Args:
            text: User prompt

        Returns:
            Final TurnOutcome of the turn

        Raises:
            TurnInProgressError: A previous prompt is still being processed
        """
        # Reserve the session before the first suspension point
        if self._prompt_pending or self.orchestrator.turn_in_flight:
            raise TurnInProgressError(self.orchestrator.turn_id)
        self._prompt_pending = True
        try:
            await self._persist_user_message(UserMessage(content=text))
        finally:
            self._prompt_pending = False
        return await self.orchestrator.run_turn(text)

    async def _persist_user_message(self, message: UserMessage) -> None:
        try:
            saved = await self.repository.append_message(self.session_id, message)
        except Exception:
            saved = False
            logger.error("Persisting user message raised", extra={"session_id": self.session_id}, exc_info=True)
        if not saved:
            record_side_effect_failure("persistence")
            logger.warning("User message not persisted", extra={"session_id": self.session_id})

    async def wait_until_settled(self) -> TurnOutcome | None:
        return await self.orchestrator.wait_until_settled()

    def abort(self) -> None:
        self.orchestrator.abort()

    def dispose(self) -> None:
        self.orchestrator.dispose()

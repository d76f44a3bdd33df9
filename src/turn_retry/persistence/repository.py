"""
Repository pattern for session persistence.

Stores the message history and the turn outcomes of a session. Failed retry
attempts are kept in history even though the engine drops them from its
context before retrying.

Redis storage strategy:
- Messages: List "session:{session_id}:messages" with JSON entries
- Outcomes: List "session:{session_id}:outcomes" with JSON entries
- TTL: refreshed on every write (SESSION_TTL_SECONDS)
"""

from typing import Annotated, Protocol, Union

from pydantic import Field, TypeAdapter
from redis.asyncio import Redis as AsyncRedis
import structlog

from turn_retry.config import Settings
from turn_retry.models.messages import AssistantMessage, Message, UserMessage
from turn_retry.models.outcome import TurnOutcome

logger = structlog.get_logger(__name__)

_message_adapter: TypeAdapter[Message] = TypeAdapter(
    Annotated[Union[UserMessage, AssistantMessage], Field(discriminator="role")]
)


class SessionRepository(Protocol):
    """
    Persistence interface consumed by the orchestrator.

    Write methods return True on success and False on a handled failure.
    """

    async def append_message(self, session_id: str, message: Message) -> bool:
        ...

    async def save_outcome(self, session_id: str, outcome: TurnOutcome) -> bool:
        ...

    async def get_messages(self, session_id: str) -> list[Message]:
        ...

    async def get_outcomes(self, session_id: str) -> list[TurnOutcome]:
        ...


class InMemorySessionRepository:
    """Process-local repository, used for tests and ephemeral sessions."""

    def __init__(self) -> None:
        self._messages: dict[str, list[Message]] = {}
        self._outcomes: dict[str, list[TurnOutcome]] = {}

    async def append_message(self, session_id: str, message: Message) -> bool:
        self._messages.setdefault(session_id, []).append(message)
        return True

    async def save_outcome(self, session_id: str, outcome: TurnOutcome) -> bool:
        self._outcomes.setdefault(session_id, []).append(outcome)
        return True

    async def get_messages(self, session_id: str) -> list[Message]:
        return list(self._messages.get(session_id, []))

    async def get_outcomes(self, session_id: str) -> list[TurnOutcome]:
        return list(self._outcomes.get(session_id, []))


class RedisSessionRepository:
    """
    Repository for session messages and turn outcomes backed by Redis.
    """

    KEY_PREFIX = "session:"

    def __init__(self, redis_client: AsyncRedis, settings: Settings):
        """
        Initialize repository.

        Args:
            redis_client: Async Redis client instance
            settings: Application settings (for SESSION_TTL_SECONDS)
        """
        self.redis = redis_client
        self.ttl = settings.SESSION_TTL_SECONDS

    def _messages_key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}{session_id}:messages"

    def _outcomes_key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}{session_id}:outcomes"

    async def _append(self, key: str, payload: str) -> None:
        await self.redis.rpush(key, payload)
        await self.redis.expire(key, self.ttl)

    async def append_message(self, session_id: str, message: Message) -> bool:
        try:
            await self._append(self._messages_key(session_id), message.model_dump_json())
            logger.debug(
                "Appended session message",
                extra={"session_id": session_id, "role": message.role},
            )
            return True
        except Exception as e:
            logger.error(
                "Failed to append session message",
                extra={"session_id": session_id, "error": str(e)},
                exc_info=True,
            )
            return False

    async def save_outcome(self, session_id: str, outcome: TurnOutcome) -> bool:
        try:
            await self._append(self._outcomes_key(session_id), outcome.model_dump_json())
            logger.info(
                "Saved turn outcome",
                extra={
                    "session_id": session_id,
                    "turn_id": outcome.turn_id,
                    "status": outcome.status.value,
                    "ttl": self.ttl,
                },
            )
            return True
        except Exception as e:
            logger.error(
                "Failed to save turn outcome",
                extra={"session_id": session_id, "turn_id": outcome.turn_id, "error": str(e)},
                exc_info=True,
            )
            return False

    async def get_messages(self, session_id: str) -> list[Message]:
        try:
            raw = await self.redis.lrange(self._messages_key(session_id), 0, -1)
            return [_message_adapter.validate_json(entry) for entry in raw]
        except Exception as e:
            logger.error(
                "Failed to load session messages",
                extra={"session_id": session_id, "error": str(e)},
                exc_info=True,
            )
            return []

    async def get_outcomes(self, session_id: str) -> list[TurnOutcome]:
        try:
            raw = await self.redis.lrange(self._outcomes_key(session_id), 0, -1)
            return [TurnOutcome.model_validate_json(entry) for entry in raw]
        except Exception as e:
            logger.error(
                "Failed to load turn outcomes",
                extra={"session_id": session_id, "error": str(e)},
                exc_info=True,
            )
            return []

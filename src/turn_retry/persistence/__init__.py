"""Session persistence backends (in-memory and Redis)."""

from turn_retry.persistence.repository import (
    InMemorySessionRepository,
    RedisSessionRepository,
    SessionRepository,
)

__all__ = ["InMemorySessionRepository", "RedisSessionRepository", "SessionRepository"]

"""Unit test fixtures (mocks and stubs).

Provides mock objects for testing without external dependencies.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from turn_retry.config import Settings


@pytest.fixture
def mock_redis():
    """Mock async Redis client for unit tests."""
    mock = MagicMock()
    mock.rpush = AsyncMock(return_value=1)
    mock.expire = AsyncMock(return_value=True)
    mock.lrange = AsyncMock(return_value=[])
    mock.delete = AsyncMock(return_value=1)
    return mock


@pytest.fixture
def mock_settings():
    """Mock settings."""
    settings = MagicMock(spec=Settings)
    settings.SESSION_TTL_SECONDS = 3600
    return settings

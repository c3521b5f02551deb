"""Common test fixtures and configuration for pytest.

This module contains fixtures that can be used across all types of tests:
- Unit tests
- Integration tests
"""

from typing import AsyncGenerator

import pytest
from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

# Import all fixtures so they are automatically available for all tests
from tests.fixtures.common import (  # noqa
    mirror,
    mock_provider,
    sync_config,
    trial_config,
)


# Test Database Engine for Integration Tests
@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    yield engine

    await engine.dispose()


@pytest.fixture
def metadata() -> MetaData:
    """Fresh metadata so each test builds its own mirror table."""
    return MetaData()

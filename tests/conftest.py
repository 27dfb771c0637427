"""
Pytest configuration and shared fixtures for push dispatch tests.

Testing Standards:
- Async tests run under pytest-asyncio (auto mode enabled in pyproject.toml)
- Use AsyncMock for async function mocking
- In-memory stubs from push_dispatch.infrastructure.stubs act as fakes
- Unit tests go in tests/unit/
- Integration tests go in tests/integration/ and are marked `integration`
"""

from datetime import datetime, timezone

import pytest

from tests.helpers import FakeClock


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest.fixture
def project_version() -> str:
    """Provide the current project version for tests."""
    from push_dispatch import __version__

    return __version__


@pytest.fixture
def fake_clock() -> FakeClock:
    """Clock frozen at 2026-01-15T12:00:00Z."""
    return FakeClock(frozen_at=datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc))

"""Fixtures for integration tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest

from tests.helpers.mock_switcher import MockSwitcher, ResponseMode


@pytest.fixture
async def mock_switcher() -> AsyncGenerator[MockSwitcher]:
    """Fixture providing a mock switcher."""
    server = MockSwitcher()
    await server.start()
    yield server
    await server.stop()


@pytest.fixture
async def silent_switcher() -> AsyncGenerator[MockSwitcher]:
    """Fixture providing a switcher that never answers."""
    server = MockSwitcher(response_mode=ResponseMode.SILENT)
    await server.start()
    yield server
    await server.stop()

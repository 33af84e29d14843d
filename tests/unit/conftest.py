import pytest
from unittest.mock import AsyncMock, MagicMock


@pytest.fixture
def mock_uow():
    """Mock unit of work"""
    uow = MagicMock()
    uow.__aenter__ = AsyncMock(return_value=uow)
    uow.__aexit__ = AsyncMock()
    uow.commit = AsyncMock()
    uow.rollback = AsyncMock()
    return uow


@pytest.fixture
def mock_notifier():
    """Mock notification service that accepts every event"""
    notifier = MagicMock()
    notifier.notify = AsyncMock(return_value=True)
    return notifier


@pytest.fixture
def no_sleep():
    """Replacement for asyncio.sleep that records delays without waiting"""
    delays = []

    async def _sleep(seconds):
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep

"""Unit tests for ExpireSubscriptions use case"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

from src.app.use_cases.subscriptions.expire_subscriptions import ExpireSubscriptions
from src.domain.events import EventType
from src.domain.user import SubscriptionStatus, User

NOW = datetime(2024, 3, 1, 0, 0)


def _user(user_id, status=SubscriptionStatus.ACTIVE, end=NOW - timedelta(hours=1), is_pro=True):
    return User(
        id=user_id,
        email=f"{user_id}@example.com",
        is_pro=is_pro,
        subscription_status=status,
        subscription_end_date=end,
    )


@pytest.fixture
def users():
    return {
        "active": _user("active"),
        "past_due": _user("past_due", status=SubscriptionStatus.PAST_DUE),
        "cancelled": _user("cancelled", status=SubscriptionStatus.CANCELLED),
    }


@pytest.fixture
def mock_user_repo(users):
    repo = MagicMock()
    repo.get_expired_subscribers = AsyncMock(return_value=list(users.values()))
    repo.get_by_id = AsyncMock(side_effect=lambda user_id, for_update=False: users.get(user_id))
    repo.update = AsyncMock(side_effect=lambda user: user)
    return repo


@pytest.fixture
def use_case(mock_uow, mock_user_repo, mock_notifier):
    return ExpireSubscriptions(mock_uow, mock_user_repo, mock_notifier)


@pytest.mark.asyncio
class TestExpireSubscriptions:

    async def test_expires_every_elapsed_pro_status(self, use_case, users, mock_notifier):
        """
        Given: Active, past-due and cancelled users whose end date has passed
        When: The expiry sweep runs
        Then: All lose Pro, become expired, and keep their historical end date
        """
        result = await use_case.execute(now=NOW)

        assert result.is_ok()
        assert result.value.checked == 3
        assert result.value.expired == 3
        assert result.value.failed == 0
        for user in users.values():
            assert user.is_pro is False
            assert user.subscription_status == SubscriptionStatus.EXPIRED
            assert user.subscription_end_date == NOW - timedelta(hours=1)
        event_types = {c.args[1] for c in mock_notifier.notify.await_args_list}
        assert event_types == {EventType.SUBSCRIPTION_EXPIRED}

    async def test_second_run_is_a_no_op(self, use_case, mock_user_repo, mock_uow):
        await use_case.execute(now=NOW)
        mock_uow.commit.reset_mock()

        # The candidate query returns stale rows; the locked re-check filters them
        result = await use_case.execute(now=NOW)

        assert result.value.expired == 0
        mock_uow.commit.assert_not_awaited()

    async def test_renewed_concurrently_is_left_alone(self, use_case, users):
        users["active"].subscription_end_date = NOW + timedelta(days=30)

        result = await use_case.execute(now=NOW)

        assert result.value.expired == 2
        assert users["active"].is_pro is True
        assert "active" not in result.value.expired_user_ids

    async def test_one_failure_does_not_stop_the_sweep(self, use_case, mock_user_repo, users):
        async def update(user):
            if user.id == "past_due":
                raise RuntimeError("deadlock detected")
            return user

        mock_user_repo.update = AsyncMock(side_effect=update)

        result = await use_case.execute(now=NOW)

        assert result.value.expired == 2
        assert result.value.failed == 1
        assert sorted(result.value.expired_user_ids) == ["active", "cancelled"]

    async def test_candidate_query_failure(self, use_case, mock_user_repo):
        mock_user_repo.get_expired_subscribers = AsyncMock(side_effect=RuntimeError("db down"))

        result = await use_case.execute(now=NOW)

        assert result.is_err()
        assert result.error.code == "EXPIRY_SWEEP_FAILED"

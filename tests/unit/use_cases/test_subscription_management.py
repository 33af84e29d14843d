"""Unit tests for cancel, auto-renewal, payment methods, my-subscription and analytics"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

from src.app.use_cases.subscriptions.add_payment_method import AddPaymentMethod
from src.app.use_cases.subscriptions.cancel_subscription import CancelSubscription
from src.app.use_cases.subscriptions.get_my_subscription import GetMySubscription
from src.app.use_cases.subscriptions.subscription_analytics import SubscriptionAnalytics
from src.app.use_cases.subscriptions.update_auto_renewal import UpdateAutoRenewal
from src.app.use_cases.subscriptions.dtos import AddPaymentMethodCommandDTO
from src.domain.events import EventType
from src.domain.subscription_plan import PlanDuration, SubscriptionPlan
from src.domain.user import PaymentMethod, SubscriptionStatus, User

NOW = datetime(2024, 2, 10, 12, 0)


@pytest.fixture
def subscriber():
    return User(
        id="user_1",
        email="ada@example.com",
        is_pro=True,
        subscription_status=SubscriptionStatus.ACTIVE,
        subscription_plan_id="plan_1",
        subscription_start_date=datetime(2024, 1, 31, 9, 0),
        subscription_end_date=datetime(2024, 2, 29, 9, 0),
        auto_renewal=True,
    )


@pytest.fixture
def mock_user_repo(subscriber):
    repo = MagicMock()
    repo.get_by_id = AsyncMock(return_value=subscriber)
    repo.update = AsyncMock(side_effect=lambda user: user)
    repo.get_primary_payment_method = AsyncMock(return_value=None)
    repo.add_payment_method = AsyncMock(side_effect=lambda method: method)
    return repo


@pytest.mark.asyncio
class TestCancelSubscription:

    async def test_cancel_keeps_access_until_end_date(self, mock_uow, mock_user_repo, mock_notifier, subscriber):
        """
        Given: An active subscriber
        When: They cancel
        Then: Status cancelled, auto-renewal off, Pro kept until the end date
        """
        result = await CancelSubscription(mock_uow, mock_user_repo, mock_notifier).execute("user_1", now=NOW)

        assert result.is_ok()
        assert result.value.status == "cancelled"
        assert result.value.is_pro is True
        assert result.value.end_date == datetime(2024, 2, 29, 9, 0)
        assert subscriber.auto_renewal is False
        assert subscriber.subscription_cancelled_at == NOW
        assert mock_notifier.notify.await_args.args[1] == EventType.SUBSCRIPTION_CANCELLED

    async def test_cannot_cancel_without_subscription(self, mock_uow, mock_user_repo, mock_notifier, subscriber):
        subscriber.is_pro = False
        subscriber.subscription_status = SubscriptionStatus.EXPIRED

        result = await CancelSubscription(mock_uow, mock_user_repo, mock_notifier).execute("user_1", now=NOW)

        assert result.error.code == "NO_ACTIVE_SUBSCRIPTION"
        assert result.error.details == {"status": "expired"}
        mock_user_repo.update.assert_not_awaited()


@pytest.mark.asyncio
class TestUpdateAutoRenewal:

    async def test_toggle_off(self, mock_uow, mock_user_repo, subscriber):
        result = await UpdateAutoRenewal(mock_uow, mock_user_repo).execute("user_1", False)

        assert result.value.auto_renewal is False
        assert subscriber.auto_renewal is False
        mock_uow.commit.assert_awaited_once()

    async def test_unknown_user(self, mock_uow, mock_user_repo):
        mock_user_repo.get_by_id = AsyncMock(return_value=None)

        result = await UpdateAutoRenewal(mock_uow, mock_user_repo).execute("ghost", True)

        assert result.error.code == "USER_NOT_FOUND"


@pytest.mark.asyncio
class TestAddPaymentMethod:

    async def test_first_method_becomes_primary(self, mock_uow, mock_user_repo):
        result = await AddPaymentMethod(mock_uow, mock_user_repo).execute(
            AddPaymentMethodCommandDTO(user_id="user_1", provider_token="flw-t1", brand="visa", last4="4242")
        )

        assert result.is_ok()
        assert result.value.is_primary is True
        assert result.value.last4 == "4242"

    async def test_additional_method_is_secondary(self, mock_uow, mock_user_repo):
        mock_user_repo.get_primary_payment_method = AsyncMock(
            return_value=PaymentMethod(user_id="user_1", provider_token="flw-t0", is_primary=True)
        )

        result = await AddPaymentMethod(mock_uow, mock_user_repo).execute(
            AddPaymentMethodCommandDTO(user_id="user_1", provider_token="flw-t2")
        )

        assert result.value.is_primary is False


@pytest.mark.asyncio
class TestGetMySubscription:

    @pytest.fixture
    def mock_plan_repo(self):
        repo = MagicMock()
        repo.get_by_id = AsyncMock(
            return_value=SubscriptionPlan(
                id="plan_1", name="Pro Monthly", price=2500, duration=PlanDuration.MONTHLY
            )
        )
        return repo

    async def test_days_remaining_round_up(self, mock_user_repo, mock_plan_repo):
        result = await GetMySubscription(mock_user_repo, mock_plan_repo).execute("user_1", now=NOW)

        assert result.is_ok()
        response = result.value
        assert response.is_pro is True
        assert response.status == "active"
        assert response.plan.name == "Pro Monthly"
        # 18 days and 21 hours left
        assert response.days_remaining == 19

    async def test_past_due_carries_error_reason(self, mock_user_repo, mock_plan_repo, subscriber):
        subscriber.subscription_status = SubscriptionStatus.PAST_DUE
        subscriber.subscription_failure_reason = "Insufficient funds"

        result = await GetMySubscription(mock_user_repo, mock_plan_repo).execute("user_1", now=NOW)

        assert result.value.status == "past_due"
        assert result.value.error_reason == "Insufficient funds"

    async def test_elapsed_period_has_zero_days(self, mock_user_repo, mock_plan_repo):
        result = await GetMySubscription(mock_user_repo, mock_plan_repo).execute(
            "user_1", now=NOW + timedelta(days=60)
        )

        assert result.value.days_remaining == 0


@pytest.mark.asyncio
class TestSubscriptionAnalytics:

    async def test_counts_and_revenue(self):
        repo = MagicMock()
        repo.count_by_subscription_status = AsyncMock(
            return_value={"active": 5, "past_due": 2, "cancelled": 1, "expired": 4, "inactive": 30}
        )
        repo.revenue_by_plan = AsyncMock(
            return_value=[{"plan_name": "Pro Monthly", "count": 7, "revenue": 17500}]
        )

        result = await SubscriptionAnalytics(repo).execute()

        analytics = result.value
        assert analytics.total_pro_users == 8
        assert analytics.active == 5
        assert analytics.expired == 4
        assert analytics.revenue_by_plan[0].revenue == 17500

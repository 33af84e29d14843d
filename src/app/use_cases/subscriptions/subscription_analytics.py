"""Subscription Analytics Use Case (admin)"""

from datetime import datetime
from libs.result import Result, Return
from src.app.repositories.user_repository import UserRepository
from src.domain.user import PRO_STATUSES, SubscriptionStatus
from .dtos import RevenueByPlanDTO, SubscriptionAnalyticsDTO


class SubscriptionAnalytics:
    """Subscriber counts per status and period revenue per plan (active + past_due)"""

    def __init__(self, user_repo: UserRepository):
        self.user_repo = user_repo

    async def execute(self) -> Result[SubscriptionAnalyticsDTO]:
        counts = await self.user_repo.count_by_subscription_status()
        revenue = await self.user_repo.revenue_by_plan()

        def count(status: SubscriptionStatus) -> int:
            return int(counts.get(status.value, 0))

        return Return.ok(
            SubscriptionAnalyticsDTO(
                total_pro_users=sum(count(status) for status in PRO_STATUSES),
                active=count(SubscriptionStatus.ACTIVE),
                past_due=count(SubscriptionStatus.PAST_DUE),
                cancelled=count(SubscriptionStatus.CANCELLED),
                expired=count(SubscriptionStatus.EXPIRED),
                inactive=count(SubscriptionStatus.INACTIVE),
                revenue_by_plan=[RevenueByPlanDTO(**row) for row in revenue],
                generated_at=datetime.utcnow(),
            )
        )

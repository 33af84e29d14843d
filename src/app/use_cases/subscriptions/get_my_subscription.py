"""Get My Subscription Use Case"""

import math
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.repositories.user_repository import UserRepository
from src.app.repositories.subscription_plan_repository import SubscriptionPlanRepository
from .dtos import MySubscriptionResponseDTO
from .plans import to_plan_dto


class GetMySubscription:
    """
    Current subscription status, plan and days remaining

    days_remaining counts partial days as whole days and is 0 once the end
    date has passed. error_reason carries the last payment failure.
    """

    def __init__(self, user_repo: UserRepository, plan_repo: SubscriptionPlanRepository):
        self.user_repo = user_repo
        self.plan_repo = plan_repo

    async def execute(self, user_id: str, now: Optional[datetime] = None) -> Result[MySubscriptionResponseDTO]:
        now = now or datetime.utcnow()

        user = await self.user_repo.get_by_id(user_id)
        if not user:
            return Return.err(Error(code="USER_NOT_FOUND", message=f"User {user_id} not found"))

        plan = None
        if user.subscription_plan_id:
            plan = await self.plan_repo.get_by_id(user.subscription_plan_id)

        days_remaining = 0
        if user.subscription_end_date and user.subscription_end_date > now:
            days_remaining = math.ceil((user.subscription_end_date - now).total_seconds() / 86400)

        return Return.ok(
            MySubscriptionResponseDTO(
                is_pro=user.is_pro,
                status=user.subscription_status.value,
                plan=to_plan_dto(plan) if plan else None,
                start_date=user.subscription_start_date,
                end_date=user.subscription_end_date,
                days_remaining=days_remaining,
                auto_renewal=user.auto_renewal,
                cancelled_at=user.subscription_cancelled_at,
                error_reason=user.subscription_failure_reason,
                pending_transaction_id=user.pending_subscription_transaction_id,
                last_payment_reference=user.last_payment_reference,
                last_payment_amount=user.last_payment_amount,
                last_payment_date=user.last_payment_date,
            )
        )

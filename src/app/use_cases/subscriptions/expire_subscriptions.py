"""ExpireSubscriptions Use Case

Expiry sweep: Pro users whose paid period has elapsed lose Pro access.
"""

import logging
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.notification_service import NotificationService, dispatch_notification
from src.app.repositories.user_repository import UserRepository
from src.domain.events import EventType
from src.domain.user import PRO_STATUSES, SubscriptionStatus
from .dtos import ExpirySweepResultDTO

logger = logging.getLogger(__name__)


class ExpireSubscriptions:
    """
    Use Case: Expire elapsed subscriptions

    Business Rules:
    1. Targets is_pro users in active/past_due/cancelled with end date < now
    2. Sets is_pro=False and status=expired; the end date is kept as the
       historical period end
    3. Idempotent: expired users no longer match, so a second run is a no-op
    4. Each user is committed separately; one failure does not stop the sweep
    """

    def __init__(self, uow: UnitOfWork, user_repo: UserRepository, notifier: NotificationService):
        self.uow = uow
        self.user_repo = user_repo
        self.notifier = notifier

    async def execute(self, now: Optional[datetime] = None) -> Result[ExpirySweepResultDTO]:
        now = now or datetime.utcnow()

        try:
            candidates = await self.user_repo.get_expired_subscribers(now)
            user_ids = [user.id for user in candidates]
        except Exception as e:
            logger.error(f"Expiry sweep could not load candidates: {e}")
            return Return.err(
                Error(code="EXPIRY_SWEEP_FAILED", message="Failed to load expired subscriptions", reason=str(e))
            )

        logger.info(f"Found {len(user_ids)} expired subscriptions")

        expired_ids = []
        failed = 0
        for user_id in user_ids:
            try:
                if await self._expire_one(user_id, now):
                    expired_ids.append(user_id)
            except Exception as e:
                failed += 1
                await self.uow.rollback()
                logger.error(f"Error expiring subscription for user {user_id}: {e}")

        logger.info(f"Expiry sweep complete: {len(expired_ids)} expired, {failed} failed")

        return Return.ok(
            ExpirySweepResultDTO(
                checked=len(user_ids),
                expired=len(expired_ids),
                failed=failed,
                expired_user_ids=expired_ids,
            )
        )

    async def _expire_one(self, user_id: str, now: datetime) -> bool:
        # Re-read under lock; a concurrent renewal may have moved the end date
        user = await self.user_repo.get_by_id(user_id, for_update=True)
        if (
            not user
            or not user.is_pro
            or user.subscription_status not in PRO_STATUSES
            or not user.subscription_end_date
            or user.subscription_end_date >= now
        ):
            await self.uow.rollback()
            return False

        previous_status = user.subscription_status.value
        end_date = user.subscription_end_date

        user.is_pro = False
        user.subscription_status = SubscriptionStatus.EXPIRED
        user.pending_subscription_transaction_id = None
        user.updated_at = now
        await self.user_repo.update(user)
        await self.uow.commit()

        logger.info(f"Expired subscription for user {user_id} (was {previous_status})")

        await dispatch_notification(
            self.notifier,
            user_id,
            EventType.SUBSCRIPTION_EXPIRED,
            {
                "previous_status": previous_status,
                "end_date": end_date.isoformat(),
            },
        )
        return True

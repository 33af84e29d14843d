"""CancelSubscription Use Case

Cancellation stops auto-renewal but keeps Pro access until the paid period
ends; the expiry sweep takes it from there.
"""

import logging
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.notification_service import NotificationService, dispatch_notification
from src.app.repositories.user_repository import UserRepository
from src.domain.events import EventType
from src.domain.user import SubscriptionStatus
from .dtos import CancelResponseDTO

logger = logging.getLogger(__name__)


class CancelSubscription:

    def __init__(self, uow: UnitOfWork, user_repo: UserRepository, notifier: NotificationService):
        self.uow = uow
        self.user_repo = user_repo
        self.notifier = notifier

    async def execute(self, user_id: str, now: Optional[datetime] = None) -> Result[CancelResponseDTO]:
        now = now or datetime.utcnow()

        try:
            user = await self.user_repo.get_by_id(user_id, for_update=True)
            if not user:
                await self.uow.rollback()
                return Return.err(Error(code="USER_NOT_FOUND", message=f"User {user_id} not found"))

            if not user.is_pro or user.subscription_status not in (
                SubscriptionStatus.ACTIVE,
                SubscriptionStatus.PAST_DUE,
            ):
                status = user.subscription_status.value
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code="NO_ACTIVE_SUBSCRIPTION",
                        message="No active subscription to cancel",
                        details={"status": status},
                    )
                )

            user.subscription_status = SubscriptionStatus.CANCELLED
            user.auto_renewal = False
            user.subscription_cancelled_at = now
            user.updated_at = now
            await self.user_repo.update(user)
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="CANCEL_FAILED",
                    message="Failed to cancel subscription",
                    reason=str(e),
                )
            )

        end_date = user.subscription_end_date
        logger.info(f"User {user_id} cancelled subscription, access until {end_date}")

        await dispatch_notification(
            self.notifier,
            user_id,
            EventType.SUBSCRIPTION_CANCELLED,
            {"end_date": end_date.isoformat() if end_date else None},
        )

        return Return.ok(
            CancelResponseDTO(
                status=SubscriptionStatus.CANCELLED.value,
                is_pro=user.is_pro,
                end_date=end_date,
                message="Subscription cancelled. Pro access remains until the end of the current period.",
            )
        )

"""SQLAlchemy implementation of SubscriptionPlanRepository"""

from datetime import datetime
from typing import List, Optional
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.subscription_plan_repository import SubscriptionPlanRepository
from src.domain.subscription_plan import SubscriptionPlan


class SqlAlchemySubscriptionPlanRepository(SubscriptionPlanRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, plan_id: str) -> Optional[SubscriptionPlan]:
        stmt = select(SubscriptionPlan).where(SubscriptionPlan.id == plan_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_name(self, name: str) -> Optional[SubscriptionPlan]:
        stmt = select(SubscriptionPlan).where(SubscriptionPlan.name == name)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_active(self) -> List[SubscriptionPlan]:
        stmt = (
            select(SubscriptionPlan)
            .where(SubscriptionPlan.is_active.is_(True))
            .order_by(SubscriptionPlan.sort_order, SubscriptionPlan.price)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, plan: SubscriptionPlan) -> SubscriptionPlan:
        self.session.add(plan)
        await self.session.flush()
        await self.session.refresh(plan)
        return plan

    async def update(self, plan: SubscriptionPlan) -> SubscriptionPlan:
        """
        Update an existing plan

        Args:
            plan: SubscriptionPlan entity with updated values

        Returns:
            Updated SubscriptionPlan
        """
        plan.updated_at = datetime.utcnow()
        self.session.add(plan)
        await self.session.flush()
        await self.session.refresh(plan)
        return plan

"""Subscription Plan Repository Interface"""

from abc import ABC, abstractmethod
from typing import List, Optional
from src.domain.subscription_plan import SubscriptionPlan


class SubscriptionPlanRepository(ABC):
    """Repository interface for the subscription plan catalog"""

    @abstractmethod
    async def get_by_id(self, plan_id: str) -> Optional[SubscriptionPlan]:
        pass

    @abstractmethod
    async def get_by_name(self, name: str) -> Optional[SubscriptionPlan]:
        pass

    @abstractmethod
    async def list_active(self) -> List[SubscriptionPlan]:
        """
        Retrieve active plans ordered by sort_order, then price

        Returns:
            List of active plans
        """
        pass

    @abstractmethod
    async def create(self, plan: SubscriptionPlan) -> SubscriptionPlan:
        pass

    @abstractmethod
    async def update(self, plan: SubscriptionPlan) -> SubscriptionPlan:
        pass

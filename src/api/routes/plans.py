"""Subscription Plan API Routes

Public catalog of active plans.
"""

from typing import List
from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.use_cases.subscriptions.dtos import PlanDTO
from src.app.use_cases.subscriptions.plans import ListPlans
from src.adapter.repositories.subscription_plan_repository import SqlAlchemySubscriptionPlanRepository
from src.depends import ServiceContainer, get_container, get_session
from src.api.error import ClientError

router = APIRouter(prefix="/subscription-plans", tags=["Subscription Plans"])


@router.get(
    "",
    response_model=List[PlanDTO],
    status_code=status.HTTP_200_OK,
)
async def list_plans(
    session: AsyncSession = Depends(get_session),
    container: ServiceContainer = Depends(get_container),
):
    """
    List active subscription plans, ordered for display.

    Served from the plan cache when warm; admin changes invalidate it.

    **Returns:**
    - 200: Active plans (may be empty)
    """
    plan_repo = SqlAlchemySubscriptionPlanRepository(session)

    use_case = ListPlans(plan_repo, cache=container.plan_cache)
    result = await use_case.execute()

    if result.is_err():
        raise ClientError(result.error)

    return result.value

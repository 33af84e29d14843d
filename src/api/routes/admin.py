"""Admin API Routes

Plan administration, subscription analytics and on-demand maintenance runs.
All routes require the admin token.
"""

from datetime import timedelta
from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.use_cases.subscriptions import (
    CreatePlan,
    CreatePlanCommandDTO,
    LifecycleRunResultDTO,
    PlanDTO,
    SubscriptionAnalytics,
    SubscriptionAnalyticsDTO,
    UpdatePlan,
    UpdatePlanCommandDTO,
)
from src.app.use_cases.wallet import ReconcileLedger, ReconciliationResultDTO
from src.adapter.repositories.user_repository import SqlAlchemyUserRepository
from src.adapter.repositories.subscription_plan_repository import SqlAlchemySubscriptionPlanRepository
from src.adapter.repositories.transaction_repository import SqlAlchemyTransactionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import ServiceContainer, get_container, get_session
from src.api.error import ClientError
from src.api.security import require_admin

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.post(
    "/subscription-plans",
    response_model=PlanDTO,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {
            "description": "Plan name already used",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "PLAN_NAME_EXISTS",
                            "message": "A plan with this name already exists"
                        }
                    }
                }
            }
        }
    }
)
async def create_plan(
    request: CreatePlanCommandDTO,
    session: AsyncSession = Depends(get_session),
    container: ServiceContainer = Depends(get_container),
):
    """
    Create a subscription plan.

    Plan names are unique. The public plan listing cache is invalidated.
    """
    use_case = CreatePlan(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemySubscriptionPlanRepository(session),
        cache=container.plan_cache,
    )
    result = await use_case.execute(request)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.put(
    "/subscription-plans/{plan_id}",
    response_model=PlanDTO,
    status_code=status.HTTP_200_OK,
)
async def update_plan(
    plan_id: str,
    request: UpdatePlanCommandDTO,
    session: AsyncSession = Depends(get_session),
    container: ServiceContainer = Depends(get_container),
):
    """
    Update a subscription plan.

    Only the fields sent are changed. Past transactions keep their own
    price and plan snapshot.
    """
    use_case = UpdatePlan(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemySubscriptionPlanRepository(session),
        cache=container.plan_cache,
    )
    result = await use_case.execute(plan_id, request)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.get(
    "/subscriptions/analytics",
    response_model=SubscriptionAnalyticsDTO,
    status_code=status.HTTP_200_OK,
)
async def subscription_analytics(
    session: AsyncSession = Depends(get_session),
):
    """Subscriber counts by status and revenue by plan"""
    result = await SubscriptionAnalytics(SqlAlchemyUserRepository(session)).execute()

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.post(
    "/subscriptions/run-lifecycle",
    response_model=LifecycleRunResultDTO,
    status_code=status.HTTP_200_OK,
)
async def run_lifecycle(
    container: ServiceContainer = Depends(get_container),
):
    """Run the expiry and renewal sweeps now (same code path as the scheduler)"""
    return await container.lifecycle_worker.run_once()


@router.post(
    "/reconciliation",
    response_model=ReconciliationResultDTO,
    status_code=status.HTTP_200_OK,
)
async def reconcile_ledger(
    session: AsyncSession = Depends(get_session),
    container: ServiceContainer = Depends(get_container),
):
    """Read-only wallet reconciliation report"""
    use_case = ReconcileLedger(
        SqlAlchemyUserRepository(session),
        SqlAlchemyTransactionRepository(session),
        stale_after=timedelta(hours=float(container.config.STALE_PENDING_HOURS)),
    )
    result = await use_case.execute()

    if result.is_err():
        raise ClientError(result.error)

    return result.value

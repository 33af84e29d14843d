"""Subscription Plan Catalog Use Cases

Listing (served from the plan cache when warm) and admin create/update, which
invalidate the cache.
"""

import logging
from datetime import datetime
from typing import List, Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.plan_cache import PlanCache
from src.app.repositories.subscription_plan_repository import SubscriptionPlanRepository
from src.domain.subscription_plan import SubscriptionPlan
from .dtos import CreatePlanCommandDTO, PlanDTO, UpdatePlanCommandDTO

logger = logging.getLogger(__name__)


def to_plan_dto(plan: SubscriptionPlan) -> PlanDTO:
    return PlanDTO(
        id=plan.id,
        name=plan.name,
        description=plan.description,
        price=plan.price,
        currency=plan.currency,
        duration=plan.duration.value if hasattr(plan.duration, "value") else plan.duration,
        features=plan.features or [],
        limits=plan.limits or {},
        is_active=plan.is_active,
        sort_order=plan.sort_order,
    )


class ListPlans:
    """Active plans ordered by sort_order then price"""

    def __init__(self, plan_repo: SubscriptionPlanRepository, cache: Optional[PlanCache] = None):
        self.plan_repo = plan_repo
        self.cache = cache

    async def execute(self) -> Result[List[PlanDTO]]:
        if self.cache:
            cached = await self.cache.get_active_plans()
            if cached is not None:
                return Return.ok([PlanDTO(**record) for record in cached])

        plans = [to_plan_dto(plan) for plan in await self.plan_repo.list_active()]
        if self.cache:
            await self.cache.set_active_plans([plan.model_dump(mode="json") for plan in plans])

        return Return.ok(plans)


class CreatePlan:
    """
    Admin: add a plan to the catalog

    Business Rules:
    1. Plan names are unique (PLAN_NAME_EXISTS)
    2. The plan cache is invalidated after commit
    """

    def __init__(
        self,
        uow: UnitOfWork,
        plan_repo: SubscriptionPlanRepository,
        cache: Optional[PlanCache] = None,
    ):
        self.uow = uow
        self.plan_repo = plan_repo
        self.cache = cache

    async def execute(self, command: CreatePlanCommandDTO) -> Result[PlanDTO]:
        if await self.plan_repo.get_by_name(command.name):
            return Return.err(
                Error(
                    code="PLAN_NAME_EXISTS",
                    message=f"A plan named '{command.name}' already exists",
                )
            )

        try:
            plan = await self.plan_repo.create(
                SubscriptionPlan(
                    name=command.name,
                    description=command.description,
                    price=command.price,
                    currency=command.currency.upper(),
                    duration=command.duration,
                    features=command.features,
                    limits=command.limits,
                    is_active=command.is_active,
                    sort_order=command.sort_order,
                )
            )
            response = to_plan_dto(plan)
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="PLAN_CREATE_FAILED",
                    message="Failed to create subscription plan",
                    reason=str(e),
                )
            )

        if self.cache:
            await self.cache.invalidate()

        logger.info(f"Subscription plan {response.name} created ({response.id})")
        return Return.ok(response)


class UpdatePlan:
    """
    Admin: edit a plan

    Historical transactions keep their own plan snapshot, so edits never
    change what past payments recorded.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        plan_repo: SubscriptionPlanRepository,
        cache: Optional[PlanCache] = None,
    ):
        self.uow = uow
        self.plan_repo = plan_repo
        self.cache = cache

    async def execute(self, plan_id: str, command: UpdatePlanCommandDTO) -> Result[PlanDTO]:
        plan = await self.plan_repo.get_by_id(plan_id)
        if not plan:
            return Return.err(
                Error(code="PLAN_NOT_FOUND", message=f"Subscription plan {plan_id} not found")
            )

        changes = {k: v for k, v in command.model_dump(exclude_unset=True).items() if v is not None}

        if "name" in changes and changes["name"] != plan.name:
            existing = await self.plan_repo.get_by_name(changes["name"])
            if existing and existing.id != plan.id:
                return Return.err(
                    Error(
                        code="PLAN_NAME_EXISTS",
                        message=f"A plan named '{changes['name']}' already exists",
                    )
                )

        if changes.get("currency"):
            changes["currency"] = changes["currency"].upper()

        try:
            for field, value in changes.items():
                setattr(plan, field, value)
            plan.updated_at = datetime.utcnow()
            plan = await self.plan_repo.update(plan)
            response = to_plan_dto(plan)
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="PLAN_UPDATE_FAILED",
                    message="Failed to update subscription plan",
                    reason=str(e),
                )
            )

        if self.cache:
            await self.cache.invalidate()

        logger.info(f"Subscription plan {plan_id} updated: {sorted(changes)}")
        return Return.ok(response)

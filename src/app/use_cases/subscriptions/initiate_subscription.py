"""InitiateSubscription Use Case

Creates a pending subscription payment with a plan snapshot and returns the
provider's hosted payment link. Activation happens on settlement.
"""

import logging
from datetime import datetime
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.payment_gateway import PaymentGateway, PaymentGatewayError, PaymentLinkRequest
from src.app.repositories.user_repository import UserRepository
from src.app.repositories.subscription_plan_repository import SubscriptionPlanRepository
from src.app.repositories.transaction_repository import TransactionRepository
from src.domain.subscription_plan import PlanDuration
from src.domain.transaction import Transaction, TransactionStatus, TransactionType, generate_tx_ref
from src.domain.user import SubscriptionStatus
from .dtos import SubscribeCommandDTO, SubscribeResponseDTO
from .plans import to_plan_dto

logger = logging.getLogger(__name__)


class InitiateSubscription:
    """
    Use Case: Start a subscription payment

    Business Rules:
    1. A user with a running active subscription cannot subscribe again
    2. Only active plans can be purchased
    3. The transaction stores the plan name, duration and price at this moment
    4. If the provider returns no link the pending transaction is deleted
    5. The user's pending_subscription_transaction_id points at the in-flight charge
    """

    def __init__(
        self,
        uow: UnitOfWork,
        user_repo: UserRepository,
        plan_repo: SubscriptionPlanRepository,
        transaction_repo: TransactionRepository,
        gateway: PaymentGateway,
        redirect_url: str,
    ):
        self.uow = uow
        self.user_repo = user_repo
        self.plan_repo = plan_repo
        self.transaction_repo = transaction_repo
        self.gateway = gateway
        self.redirect_url = redirect_url

    async def execute(self, command: SubscribeCommandDTO) -> Result[SubscribeResponseDTO]:
        now = datetime.utcnow()

        user = await self.user_repo.get_by_id(command.user_id)
        if not user:
            return Return.err(
                Error(code="USER_NOT_FOUND", message=f"User {command.user_id} not found")
            )

        if (
            user.is_pro
            and user.subscription_status == SubscriptionStatus.ACTIVE
            and user.subscription_end_date
            and user.subscription_end_date > now
        ):
            return Return.err(
                Error(
                    code="ALREADY_SUBSCRIBED",
                    message="You already have an active subscription",
                    details={"end_date": user.subscription_end_date.isoformat()},
                )
            )

        plan = await self.plan_repo.get_by_id(command.plan_id)
        if not plan or not plan.is_active:
            return Return.err(
                Error(
                    code="PLAN_NOT_FOUND",
                    message=f"Subscription plan {command.plan_id} not found or inactive",
                )
            )

        plan_dto = to_plan_dto(plan)
        email = user.email
        full_name = user.full_name
        tx_ref = generate_tx_ref("SUB", command.user_id, plan.id)

        try:
            transaction = await self.transaction_repo.create(
                Transaction(
                    user_id=command.user_id,
                    transaction_type=TransactionType.SUBSCRIPTION,
                    amount=plan.price,
                    currency=plan.currency,
                    tx_ref=tx_ref,
                    status=TransactionStatus.PENDING,
                    description=f"{plan.name} subscription",
                    subscription_plan_id=plan.id,
                    plan_name=plan.name,
                    plan_duration=PlanDuration(plan.duration).value,
                    meta={"plan_price": plan.price, "plan_currency": plan.currency},
                )
            )
            transaction_id = transaction.id
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="SUBSCRIPTION_INIT_FAILED",
                    message="Failed to create subscription transaction",
                    reason=str(e),
                )
            )

        failure_reason = None
        link = None
        try:
            link_result = await self.gateway.initialize_payment(
                PaymentLinkRequest(
                    tx_ref=tx_ref,
                    amount=plan_dto.price,
                    currency=plan_dto.currency,
                    customer_email=email,
                    customer_name=full_name,
                    redirect_url=self.redirect_url,
                    title=f"{plan_dto.name} Subscription",
                    description=f"{plan_dto.duration.capitalize()} subscription to {plan_dto.name}",
                    meta={
                        "user_id": command.user_id,
                        "plan_id": plan_dto.id,
                        "transaction_type": TransactionType.SUBSCRIPTION.value,
                    },
                )
            )
            if link_result.success and link_result.link:
                link = link_result.link
            else:
                failure_reason = link_result.error or "Provider returned no payment link"
        except PaymentGatewayError as e:
            failure_reason = str(e)

        if link is None:
            logger.error(f"Subscription payment initialization failed for {tx_ref}: {failure_reason}")
            try:
                await self.transaction_repo.delete(transaction_id)
                await self.uow.commit()
            except Exception as e:
                await self.uow.rollback()
                logger.error(f"Could not delete orphaned pending transaction {transaction_id}: {e}")
            return Return.err(
                Error(
                    code="PAYMENT_INIT_FAILED",
                    message="Failed to initialize payment",
                    reason=failure_reason,
                )
            )

        try:
            user = await self.user_repo.get_by_id(command.user_id, for_update=True)
            user.pending_subscription_transaction_id = transaction_id
            user.updated_at = datetime.utcnow()
            await self.user_repo.update(user)
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Could not record pending subscription {tx_ref} on user {command.user_id}: {e}")

        logger.info(f"Subscription payment {tx_ref} initiated for user {command.user_id} ({plan_dto.name})")

        return Return.ok(
            SubscribeResponseDTO(
                tx_ref=tx_ref,
                payment_link=link,
                plan=plan_dto,
                amount=plan_dto.price,
                currency=plan_dto.currency,
            )
        )

"""RenewSubscription Use Case

One auto-renewal attempt for one user. The lifecycle worker runs it per
candidate, each in its own session, so a failure stays with that user.
"""

import logging
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.notification_service import NotificationService, dispatch_notification
from src.app.services.payment_gateway import (
    ChargeRequest,
    ChargeResult,
    PaymentGateway,
    PaymentGatewayError,
    PaymentGatewayTimeout,
)
from src.app.services.retry import RetryPolicy, RetryExhausted
from src.app.repositories.user_repository import UserRepository
from src.app.repositories.subscription_plan_repository import SubscriptionPlanRepository
from src.app.repositories.transaction_repository import TransactionRepository
from src.domain.events import EventType
from src.domain.subscription_plan import PlanDuration, add_billing_period
from src.domain.transaction import Transaction, TransactionStatus, TransactionType, generate_tx_ref
from src.domain.user import SubscriptionStatus
from .dtos import RenewalOutcome, RenewalResultDTO

logger = logging.getLogger(__name__)

SYSTEM_ERROR_REASON = "System error during renewal"


class RenewSubscription:
    """
    Use Case: Attempt to auto-renew a subscription

    Business Rules:
    1. Only active, auto-renewing Pro users are renewed (re-checked under lock)
    2. No payment method -> past_due, user notified, no charge
    3. Missing or invalid plan -> past_due, no charge
    4. Every attempt gets a fresh tx_ref and a pending transaction before the charge
    5. Gateway timeouts are retried with backoff and never count as success
    6. Success extends the end date by one period from the previous end date
    7. Failure -> past_due with the provider's reason; Pro access is kept
       until the end date (the expiry sweep handles it)
    8. Any unexpected error still leaves the user past_due. If the charge had
       already succeeded, the transaction is flagged for reconciliation instead
       of being marked failed
    """

    def __init__(
        self,
        uow: UnitOfWork,
        user_repo: UserRepository,
        plan_repo: SubscriptionPlanRepository,
        transaction_repo: TransactionRepository,
        gateway: PaymentGateway,
        notifier: NotificationService,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.uow = uow
        self.user_repo = user_repo
        self.plan_repo = plan_repo
        self.transaction_repo = transaction_repo
        self.gateway = gateway
        self.notifier = notifier
        self.retry_policy = retry_policy or RetryPolicy(max_retries=2, retry_on=(PaymentGatewayTimeout,))

    async def execute(self, user_id: str, now: Optional[datetime] = None) -> Result[RenewalResultDTO]:
        now = now or datetime.utcnow()
        transaction_id = None
        charge = None

        try:
            user = await self.user_repo.get_by_id(user_id, for_update=True)
            if (
                not user
                or not user.is_pro
                or user.subscription_status != SubscriptionStatus.ACTIVE
                or not user.auto_renewal
            ):
                await self.uow.rollback()
                return Return.ok(RenewalResultDTO(user_id=user_id, outcome=RenewalOutcome.SKIPPED))

            logger.info(f"Starting auto-renewal attempt for user {user_id}")

            # Step 1: Payment method
            method = await self.user_repo.get_primary_payment_method(user_id)
            if not method:
                logger.warning(f"No payment method found for user {user_id}, marking as past due")
                return await self._past_due(user_id, "No payment method available", now, notify=True)

            # Step 2: Plan
            plan = None
            if user.subscription_plan_id:
                plan = await self.plan_repo.get_by_id(user.subscription_plan_id)
            if not plan or not plan.price:
                logger.error(f"Invalid subscription plan for user {user_id}")
                return await self._past_due(user_id, "Subscription plan unavailable", now, notify=False)

            previous_end = user.subscription_end_date or now
            duration = PlanDuration(plan.duration)
            charge_request = ChargeRequest(
                tx_ref=generate_tx_ref("RENEW", user_id),
                amount=plan.price,
                currency=plan.currency,
                customer_email=user.email,
                customer_name=user.full_name,
                payment_token=method.provider_token,
                description=f"Auto-renewal for {plan.name} subscription",
            )
            plan_name = plan.name

            # Step 3: Record the attempt before charging
            transaction = await self.transaction_repo.create(
                Transaction(
                    user_id=user_id,
                    transaction_type=TransactionType.SUBSCRIPTION,
                    amount=charge_request.amount,
                    currency=charge_request.currency,
                    tx_ref=charge_request.tx_ref,
                    status=TransactionStatus.PENDING,
                    description=charge_request.description,
                    subscription_plan_id=plan.id,
                    plan_name=plan_name,
                    plan_duration=duration.value,
                    payment_method=method.brand,
                    meta={"renewal": True, "previous_end_date": previous_end.isoformat()},
                )
            )
            transaction_id = transaction.id
            user.pending_subscription_transaction_id = transaction_id
            user.updated_at = now
            await self.user_repo.update(user)
            await self.uow.commit()

            # Step 4: Charge
            logger.info(
                f"Attempting to charge {charge_request.amount} {charge_request.currency} for user {user_id}"
            )
            charge = await self._charge(charge_request)

            # Step 5: Apply result
            if charge.success:
                return await self._renewed(
                    user_id, transaction_id, charge_request, charge, previous_end, duration, plan_name, now
                )
            return await self._charge_failed(
                user_id, transaction_id, charge_request.tx_ref, charge.error or "Payment processing failed", now
            )

        except Exception as e:
            logger.error(f"Critical error during auto-renewal for user {user_id}: {e}")
            await self.uow.rollback()
            try:
                if transaction_id and charge is not None and charge.success:
                    # Money was captured; the transaction stays pending for the provider event or an operator
                    await self.transaction_repo.flag_for_reconciliation(
                        transaction_id,
                        f"Renewal charge {charge.transaction_id} succeeded but the renewal was not applied: {e}",
                    )
                elif transaction_id:
                    await self.transaction_repo.mark_resolved(
                        transaction_id, TransactionStatus.FAILED, failure_reason=SYSTEM_ERROR_REASON
                    )
                return await self._past_due(user_id, SYSTEM_ERROR_REASON, now, notify=True)
            except Exception as recovery_error:
                await self.uow.rollback()
                logger.error(f"Failed to mark user {user_id} past due after renewal error: {recovery_error}")
                return Return.err(
                    Error(
                        code="RENEWAL_FAILED",
                        message=f"Renewal for user {user_id} failed",
                        reason=str(e),
                    )
                )

    async def _charge(self, request: ChargeRequest) -> ChargeResult:
        try:
            return await self.retry_policy.run(
                lambda: self.gateway.charge(request),
                description=f"Renewal charge {request.tx_ref}",
            )
        except RetryExhausted as e:
            return ChargeResult(success=False, error=f"Payment provider timed out: {e.last_error}")
        except PaymentGatewayError as e:
            logger.error(f"Payment processing error for {request.tx_ref}: {e}")
            return ChargeResult(success=False, error="Payment system unavailable")

    async def _renewed(
        self,
        user_id: str,
        transaction_id: str,
        request: ChargeRequest,
        charge: ChargeResult,
        previous_end: datetime,
        duration: PlanDuration,
        plan_name: str,
        now: datetime,
    ) -> Result[RenewalResultDTO]:
        await self.transaction_repo.mark_resolved(
            transaction_id,
            TransactionStatus.SUCCESSFUL,
            provider_transaction_id=charge.transaction_id,
        )

        user = await self.user_repo.get_by_id(user_id, for_update=True)
        new_end = add_billing_period(previous_end, duration)
        user.subscription_end_date = new_end
        user.subscription_status = SubscriptionStatus.ACTIVE
        user.is_pro = True
        user.subscription_failure_reason = None
        user.last_payment_reference = request.tx_ref
        user.last_payment_amount = request.amount
        user.last_payment_date = now
        if user.pending_subscription_transaction_id == transaction_id:
            user.pending_subscription_transaction_id = None
        user.updated_at = now
        await self.user_repo.update(user)
        await self.uow.commit()

        logger.info(
            f"Auto-renewal successful for user {user_id}, transaction ID: {charge.transaction_id}, "
            f"active until {new_end}"
        )

        payload = {
            "tx_ref": request.tx_ref,
            "amount": request.amount,
            "currency": request.currency,
            "plan_name": plan_name,
            "subscription_end_date": new_end.isoformat(),
        }
        await dispatch_notification(self.notifier, user_id, EventType.PAYMENT_SUCCEEDED, payload)
        await dispatch_notification(self.notifier, user_id, EventType.SUBSCRIPTION_RENEWED, payload)

        return Return.ok(
            RenewalResultDTO(
                user_id=user_id,
                outcome=RenewalOutcome.RENEWED,
                tx_ref=request.tx_ref,
                new_end_date=new_end,
            )
        )

    async def _charge_failed(
        self, user_id: str, transaction_id: str, tx_ref: str, reason: str, now: datetime
    ) -> Result[RenewalResultDTO]:
        logger.error(f"Auto-renewal failed for user {user_id}: {reason}")
        await self.transaction_repo.mark_resolved(
            transaction_id, TransactionStatus.FAILED, failure_reason=reason
        )
        result = await self._past_due(user_id, reason, now, notify=True)
        if result.is_ok():
            result.value.tx_ref = tx_ref
        return result

    async def _past_due(self, user_id: str, reason: str, now: datetime, notify: bool) -> Result[RenewalResultDTO]:
        user = await self.user_repo.get_by_id(user_id, for_update=True)
        if user:
            user.subscription_status = SubscriptionStatus.PAST_DUE
            user.subscription_failure_reason = reason
            user.pending_subscription_transaction_id = None
            user.updated_at = now
            await self.user_repo.update(user)
        await self.uow.commit()

        if notify:
            payload = {"error_reason": reason}
            await dispatch_notification(self.notifier, user_id, EventType.SUBSCRIPTION_RENEWAL_FAILED, payload)
            await dispatch_notification(self.notifier, user_id, EventType.SUBSCRIPTION_PAST_DUE, payload)

        return Return.ok(
            RenewalResultDTO(user_id=user_id, outcome=RenewalOutcome.PAST_DUE, error_reason=reason)
        )

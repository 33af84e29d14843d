"""SettlePayment Use Case

Applies a provider-confirmed payment to the ledger and subscription state at most
once. Shared by the webhook reconciler and the client-driven verification path.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional
from libs.result import Result, Return, Error
from src.app.errors import IntegrityViolation
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.notification_service import NotificationService, dispatch_notification
from src.app.repositories.user_repository import UserRepository
from src.app.repositories.subscription_plan_repository import SubscriptionPlanRepository
from src.app.repositories.transaction_repository import TransactionRepository
from src.domain.events import EventType
from src.domain.subscription_plan import PlanDuration, add_billing_period
from src.domain.transaction import Transaction, TransactionStatus, TransactionType
from src.domain.user import SubscriptionStatus
from .dtos import (
    PaymentFailureCommandDTO,
    SettlementCommandDTO,
    SettlementOutcome,
    SettlementResponseDTO,
)

logger = logging.getLogger(__name__)


class SettlePayment:
    """
    Use Case: Settle a confirmed payment

    Business Rules:
    1. Idempotency: a transaction already successful (by tx_ref, or by provider
       transaction ID) is never re-applied
    2. Integrity: reported amount and currency must equal the stored values;
       a mismatch leaves the transaction pending and flags it for manual review.
       A success reported for a failed or cancelled transaction is flagged too,
       never applied and never silently dropped
    3. Atomicity: the pending -> successful transition and the per-type state
       change are committed together
    4. Notifications are dispatched after commit and never roll back state

    settle() raises IntegrityViolation for fatal conditions and lets every other
    exception propagate, so callers can retry transient failures. execute()
    wraps settle() into a Result.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        user_repo: UserRepository,
        plan_repo: SubscriptionPlanRepository,
        transaction_repo: TransactionRepository,
        notifier: NotificationService,
    ):
        self.uow = uow
        self.user_repo = user_repo
        self.plan_repo = plan_repo
        self.transaction_repo = transaction_repo
        self.notifier = notifier

    async def execute(self, command: SettlementCommandDTO) -> Result[SettlementResponseDTO]:
        try:
            return Return.ok(await self.settle(command))
        except IntegrityViolation as e:
            return Return.err(e.error)
        except Exception as e:
            logger.error(f"Settlement of {command.tx_ref} failed: {e}")
            return Return.err(
                Error(
                    code="SETTLEMENT_FAILED",
                    message="Failed to settle payment",
                    reason=str(e),
                )
            )

    async def settle(self, command: SettlementCommandDTO, now: Optional[datetime] = None) -> SettlementResponseDTO:
        now = now or datetime.utcnow()

        try:
            # Step 1: Locate the transaction (idempotency key)
            transaction = await self.transaction_repo.get_by_tx_ref(command.tx_ref, for_update=True)
            if not transaction:
                await self.uow.rollback()
                raise IntegrityViolation(
                    Error(
                        code="TRANSACTION_NOT_FOUND",
                        message=f"No transaction found for reference {command.tx_ref}",
                    )
                )

            # Step 2: Duplicate delivery is expected and must be a no-op
            if transaction.status == TransactionStatus.SUCCESSFUL:
                logger.info(f"Transaction {command.tx_ref} already processed, skipping")
                return await self._release(transaction, SettlementOutcome.ALREADY_PROCESSED)

            if command.provider_transaction_id:
                settled = await self.transaction_repo.get_by_provider_transaction_id(
                    command.provider_transaction_id
                )
                if settled and settled.status == TransactionStatus.SUCCESSFUL:
                    logger.info(
                        f"Provider transaction {command.provider_transaction_id} already "
                        f"settled as {settled.tx_ref}, skipping"
                    )
                    return await self._release(settled, SettlementOutcome.ALREADY_PROCESSED)

            # Provider captured money for a transaction recorded as failed/cancelled
            if transaction.status != TransactionStatus.PENDING:
                reason = (
                    f"provider reported a successful payment ({command.provider_transaction_id or 'no id'}, "
                    f"{command.amount} {command.currency}) for a {transaction.status.value} transaction"
                )
                logger.error(f"Transaction {command.tx_ref} needs manual reconciliation: {reason}")
                response = self._response(transaction, SettlementOutcome.MANUAL_RECONCILIATION)
                await self._flag(transaction.id, reason)
                return response

            # Step 3: Amount/currency cross-check
            if (
                Decimal(command.amount) != Decimal(transaction.amount)
                or command.currency.upper() != transaction.currency.upper()
            ):
                logger.error(
                    f"Payment amount/currency mismatch for {command.tx_ref}. "
                    f"Expected: {transaction.amount} {transaction.currency}, "
                    f"Got: {command.amount} {command.currency}"
                )
                error = Error(
                    code="AMOUNT_MISMATCH",
                    message="Payment amount/currency does not match the transaction",
                    reason=(
                        f"expected {transaction.amount} {transaction.currency}, "
                        f"got {command.amount} {command.currency}"
                    ),
                    details={
                        "expected_amount": transaction.amount,
                        "expected_currency": transaction.currency,
                        "received_amount": str(command.amount),
                        "received_currency": command.currency,
                    },
                )
                await self._flag(transaction.id, f"amount/currency mismatch: {error.reason}")
                raise IntegrityViolation(error)

            # Step 4: Claim the pending -> successful transition
            claimed = await self.transaction_repo.mark_resolved(
                transaction.id,
                TransactionStatus.SUCCESSFUL,
                provider_transaction_id=command.provider_transaction_id,
                payment_method=command.payment_type,
            )
            if not claimed:
                logger.info(f"Transaction {command.tx_ref} resolved concurrently, skipping")
                return await self._release(transaction, SettlementOutcome.ALREADY_PROCESSED)

            # Step 5: Apply the per-type state change
            response = await self._apply(transaction, now)

            # Step 6: Commit
            await self.uow.commit()

        except IntegrityViolation:
            raise
        except Exception:
            await self.uow.rollback()
            raise

        logger.info(
            f"Settled {transaction.transaction_type.value} transaction {transaction.tx_ref} "
            f"for user {transaction.user_id}"
        )

        # Step 7: Best-effort notifications
        await self._notify_success(transaction, response)

        return response

    async def record_failure(self, command: PaymentFailureCommandDTO, now: Optional[datetime] = None) -> SettlementResponseDTO:
        """
        Record a failed/cancelled payment

        No ledger mutation occurs. Terminal transactions are left untouched.
        """
        now = now or datetime.utcnow()
        status = (
            TransactionStatus.CANCELLED
            if command.status.lower() == TransactionStatus.CANCELLED.value
            else TransactionStatus.FAILED
        )

        try:
            transaction = await self.transaction_repo.get_by_tx_ref(command.tx_ref, for_update=True)
            if not transaction:
                await self.uow.rollback()
                raise IntegrityViolation(
                    Error(
                        code="TRANSACTION_NOT_FOUND",
                        message=f"No transaction found for reference {command.tx_ref}",
                    )
                )

            if transaction.status != TransactionStatus.PENDING:
                return await self._release(transaction, SettlementOutcome.ALREADY_PROCESSED)

            claimed = await self.transaction_repo.mark_resolved(
                transaction.id,
                status,
                provider_transaction_id=command.provider_transaction_id,
                failure_reason=command.reason,
            )
            if not claimed:
                return await self._release(transaction, SettlementOutcome.ALREADY_PROCESSED)

            if transaction.transaction_type == TransactionType.SUBSCRIPTION:
                user = await self.user_repo.get_by_id(transaction.user_id, for_update=True)
                if user:
                    user.subscription_failure_reason = command.reason
                    if user.pending_subscription_transaction_id == transaction.id:
                        user.pending_subscription_transaction_id = None
                    user.updated_at = now
                    await self.user_repo.update(user)

            await self.uow.commit()

        except IntegrityViolation:
            raise
        except Exception:
            await self.uow.rollback()
            raise

        logger.info(f"Recorded {status.value} payment for {command.tx_ref}: {command.reason}")

        await dispatch_notification(
            self.notifier,
            transaction.user_id,
            EventType.PAYMENT_FAILED,
            {
                "tx_ref": transaction.tx_ref,
                "transaction_type": transaction.transaction_type.value,
                "amount": transaction.amount,
                "currency": transaction.currency,
                "error_reason": command.reason,
            },
        )

        return SettlementResponseDTO(
            tx_ref=transaction.tx_ref,
            outcome=SettlementOutcome.FAILURE_RECORDED,
            transaction_type=transaction.transaction_type.value,
            status=status.value,
            user_id=transaction.user_id,
        )

    async def flag_for_manual_reconciliation(self, tx_ref: str, reason: str) -> bool:
        """
        Persist the manual-reconciliation marker after retries were exhausted

        Returns:
            True if the transaction exists and was flagged
        """
        await self.uow.rollback()
        transaction = await self.transaction_repo.get_by_tx_ref(tx_ref)
        if not transaction:
            return False
        await self.transaction_repo.flag_for_reconciliation(transaction.id, reason)
        await self.uow.commit()
        logger.error(f"Transaction {tx_ref} flagged for manual reconciliation: {reason}")
        return True

    async def _apply(self, transaction: Transaction, now: datetime) -> SettlementResponseDTO:
        if transaction.transaction_type == TransactionType.SUBSCRIPTION:
            return await self._activate_subscription(transaction, now)

        if transaction.transaction_type == TransactionType.COURSE_ENROLLMENT:
            if not transaction.course_id:
                await self._integrity_failure(
                    transaction,
                    Error(code="COURSE_NOT_FOUND", message="Enrollment transaction has no course"),
                )
            created = await self.user_repo.add_enrollment(
                transaction.user_id, transaction.course_id, transaction_id=transaction.id
            )
            if created:
                logger.info(f"User {transaction.user_id} enrolled in course {transaction.course_id}")
            return self._response(transaction, SettlementOutcome.APPLIED, status=TransactionStatus.SUCCESSFUL)

        if transaction.transaction_type == TransactionType.TOPUP:
            new_balance = await self.user_repo.credit_wallet(transaction.user_id, transaction.amount)
            if new_balance is None:
                await self._integrity_failure(
                    transaction,
                    Error(code="USER_NOT_FOUND", message=f"User {transaction.user_id} not found"),
                )
            response = self._response(transaction, SettlementOutcome.APPLIED, status=TransactionStatus.SUCCESSFUL)
            response.new_balance = new_balance
            return response

        return self._response(transaction, SettlementOutcome.APPLIED, status=TransactionStatus.SUCCESSFUL)

    async def _activate_subscription(self, transaction: Transaction, now: datetime) -> SettlementResponseDTO:
        user = await self.user_repo.get_by_id(transaction.user_id, for_update=True)
        if not user:
            await self._integrity_failure(
                transaction,
                Error(code="USER_NOT_FOUND", message=f"User {transaction.user_id} not found"),
            )

        plan = None
        if transaction.subscription_plan_id:
            plan = await self.plan_repo.get_by_id(transaction.subscription_plan_id)
        if not plan:
            await self._integrity_failure(
                transaction,
                Error(
                    code="PLAN_NOT_FOUND",
                    message=f"Subscription plan {transaction.subscription_plan_id} not found",
                ),
            )

        # The transaction's snapshot wins over later plan edits
        duration = PlanDuration(transaction.plan_duration or plan.duration)

        user.is_pro = True
        user.subscription_status = SubscriptionStatus.ACTIVE
        user.subscription_plan_id = plan.id
        user.subscription_start_date = now
        user.subscription_end_date = add_billing_period(now, duration)
        user.subscription_cancelled_at = None
        user.subscription_failure_reason = None
        user.last_payment_reference = transaction.tx_ref
        user.last_payment_amount = transaction.amount
        user.last_payment_date = now
        if user.pending_subscription_transaction_id == transaction.id:
            user.pending_subscription_transaction_id = None
        user.updated_at = now
        await self.user_repo.update(user)

        logger.info(
            f"User {user.id} subscription to {plan.name} activated until {user.subscription_end_date}"
        )

        response = self._response(transaction, SettlementOutcome.APPLIED, status=TransactionStatus.SUCCESSFUL)
        response.subscription_end_date = user.subscription_end_date
        return response

    async def _integrity_failure(self, transaction: Transaction, error: Error) -> None:
        logger.error(f"Integrity failure settling {transaction.tx_ref}: {error.message}")
        await self._flag(transaction.id, error.message)
        raise IntegrityViolation(error)

    async def _flag(self, transaction_id: str, reason: str) -> None:
        # Discard partial work, keep the transaction pending, record the marker
        await self.uow.rollback()
        await self.transaction_repo.flag_for_reconciliation(transaction_id, reason)
        await self.uow.commit()

    async def _release(self, transaction: Transaction, outcome: SettlementOutcome) -> SettlementResponseDTO:
        # Snapshot before rollback expires the loaded instance
        response = self._response(transaction, outcome)
        await self.uow.rollback()
        return response

    async def _notify_success(self, transaction: Transaction, response: SettlementResponseDTO) -> None:
        payload = {
            "tx_ref": transaction.tx_ref,
            "transaction_type": transaction.transaction_type.value,
            "amount": transaction.amount,
            "currency": transaction.currency,
        }
        await dispatch_notification(self.notifier, transaction.user_id, EventType.PAYMENT_SUCCEEDED, payload)

        if transaction.transaction_type == TransactionType.SUBSCRIPTION:
            await dispatch_notification(
                self.notifier,
                transaction.user_id,
                EventType.SUBSCRIPTION_ACTIVATED,
                {
                    **payload,
                    "plan_name": transaction.plan_name,
                    "subscription_end_date": response.subscription_end_date.isoformat()
                    if response.subscription_end_date else None,
                },
            )
        elif transaction.transaction_type == TransactionType.TOPUP:
            await dispatch_notification(
                self.notifier,
                transaction.user_id,
                EventType.WALLET_CREDITED,
                {**payload, "new_balance": response.new_balance},
            )
        elif transaction.transaction_type == TransactionType.COURSE_ENROLLMENT:
            await dispatch_notification(
                self.notifier,
                transaction.user_id,
                EventType.COURSE_ENROLLED,
                {**payload, "course_id": transaction.course_id},
            )

    def _response(
        self,
        transaction: Transaction,
        outcome: SettlementOutcome,
        status: Optional[TransactionStatus] = None,
    ) -> SettlementResponseDTO:
        status = status or transaction.status
        return SettlementResponseDTO(
            tx_ref=transaction.tx_ref,
            outcome=outcome,
            transaction_type=transaction.transaction_type.value,
            status=status.value if hasattr(status, "value") else status,
            user_id=transaction.user_id,
        )

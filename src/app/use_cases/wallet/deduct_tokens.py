"""DeductTokens Use Case

Debits a user's wallet with a conditional update so concurrent deductions can
never overdraw it, and optionally pays the course instructor.
"""

import logging
from datetime import datetime
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.notification_service import NotificationService, dispatch_notification
from src.app.repositories.user_repository import UserRepository
from src.app.repositories.transaction_repository import TransactionRepository
from src.domain.events import EventType
from src.domain.transaction import Transaction, TransactionStatus, TransactionType, generate_tx_ref
from .dtos import DeductCommandDTO, DeductResponseDTO

logger = logging.getLogger(__name__)


class DeductTokens:
    """
    Use Case: Deduct tokens from a user's wallet

    Business Rules:
    1. amount > 0
    2. Non-negative balance: the debit only applies while balance >= amount
       (single conditional UPDATE, no read-modify-write)
    3. Idempotency: an idempotency_key is used as tx_ref; a replay returns the
       original transaction without a second debit
    4. Debit, deduction record and buyer enrollment commit together
    5. Paid course: the instructor is credited in a second step; if that step
       fails the buyer's deduction is flagged for manual reconciliation

    Flow:
    1. Validate and check idempotency
    2. Conditional debit (reports required vs. available on failure)
    3. Record successful deduction, enroll buyer, commit
    4. Publish wallet.deducted
    5. Credit instructor earnings (paid course only)
    """

    def __init__(
        self,
        uow: UnitOfWork,
        user_repo: UserRepository,
        transaction_repo: TransactionRepository,
        notifier: NotificationService,
        currency: str = "NGN",
    ):
        self.uow = uow
        self.user_repo = user_repo
        self.transaction_repo = transaction_repo
        self.notifier = notifier
        self.currency = currency

    async def execute(self, command: DeductCommandDTO) -> Result[DeductResponseDTO]:
        # Step 1: Validate
        if command.amount <= 0:
            return Return.err(
                Error(
                    code="INVALID_AMOUNT",
                    message="Amount must be greater than zero",
                    details={"amount": command.amount},
                )
            )

        if bool(command.course_id) != bool(command.instructor_id):
            return Return.err(
                Error(
                    code="VALIDATION_ERROR",
                    message="course_id and instructor_id must be provided together",
                )
            )

        if command.instructor_id and command.instructor_id == command.user_id:
            return Return.err(
                Error(
                    code="VALIDATION_ERROR",
                    message="Instructors cannot purchase their own course",
                )
            )

        if command.idempotency_key:
            existing = await self.transaction_repo.get_by_tx_ref(command.idempotency_key)
            if existing:
                return self._replay(existing, command)

        try:
            # Step 2: Conditional debit
            balance_after = await self.user_repo.debit_wallet(command.user_id, command.amount)
            if balance_after is None:
                return await self._reject_debit(command)

            # Step 3: Record the deduction
            tx_ref = command.idempotency_key or generate_tx_ref("deduct", command.user_id)
            now = datetime.utcnow()
            deduction = await self.transaction_repo.create(
                Transaction(
                    user_id=command.user_id,
                    transaction_type=TransactionType.DEDUCTION,
                    amount=command.amount,
                    currency=self.currency,
                    tx_ref=tx_ref,
                    status=TransactionStatus.SUCCESSFUL,
                    description=command.description,
                    course_id=command.course_id,
                    beneficiary_user_id=command.instructor_id,
                    completed_at=now,
                )
            )

            if command.course_id:
                await self.user_repo.add_enrollment(
                    command.user_id, command.course_id, transaction_id=deduction.id
                )

            await self.uow.commit()

        except Exception as e:
            await self.uow.rollback()
            if command.idempotency_key:
                # Lost a race against a concurrent replay of the same key
                existing = await self.transaction_repo.get_by_tx_ref(command.idempotency_key)
                if existing:
                    return self._replay(existing, command)
            logger.error(f"Deduction for user {command.user_id} failed: {e}")
            return Return.err(
                Error(
                    code="DEDUCTION_FAILED",
                    message="Failed to deduct tokens",
                    reason=str(e),
                )
            )

        logger.info(
            f"Deducted {command.amount} from user {command.user_id} "
            f"({deduction.tx_ref}), balance now {balance_after}"
        )

        # Step 4: Real-time balance event
        await dispatch_notification(
            self.notifier,
            command.user_id,
            EventType.WALLET_DEDUCTED,
            {
                "amount": command.amount,
                "new_balance": balance_after,
                "description": deduction.description,
                "tx_ref": deduction.tx_ref,
            },
        )

        response = DeductResponseDTO(
            transaction_id=deduction.id,
            tx_ref=deduction.tx_ref,
            amount=deduction.amount,
            balance_after=balance_after,
            description=deduction.description,
            created_at=deduction.created_at,
        )

        # Step 5: Instructor earnings
        if command.instructor_id:
            credited = await self._credit_instructor(deduction, command)
            response.instructor_credited = credited
            response.requires_reconciliation = not credited

        return Return.ok(response)

    async def _reject_debit(self, command: DeductCommandDTO) -> Result[DeductResponseDTO]:
        user = await self.user_repo.get_by_id(command.user_id)
        available = user.wallet_balance if user else None
        await self.uow.rollback()
        if available is None:
            return Return.err(
                Error(code="USER_NOT_FOUND", message=f"User {command.user_id} not found")
            )
        logger.info(
            f"Insufficient balance for user {command.user_id}: "
            f"required={command.amount}, available={available}"
        )
        return Return.err(
            Error(
                code="INSUFFICIENT_BALANCE",
                message=f"Insufficient wallet balance. Required: {command.amount}, Available: {available}",
                details={"required": command.amount, "available": available},
            )
        )

    async def _credit_instructor(self, deduction: Transaction, command: DeductCommandDTO) -> bool:
        instructor_id = command.instructor_id
        deduction_id = deduction.id
        deduction_ref = deduction.tx_ref
        try:
            new_balance = await self.user_repo.credit_wallet(
                instructor_id, command.amount, as_earnings=True
            )
            if new_balance is None:
                raise LookupError(f"Instructor {instructor_id} not found")

            await self.transaction_repo.create(
                Transaction(
                    user_id=instructor_id,
                    transaction_type=TransactionType.EARNINGS,
                    amount=command.amount,
                    currency=self.currency,
                    tx_ref=f"earn_{deduction_ref}",
                    status=TransactionStatus.SUCCESSFUL,
                    description=f"Earnings for course {command.course_id}",
                    course_id=command.course_id,
                    beneficiary_user_id=command.user_id,
                    completed_at=datetime.utcnow(),
                )
            )
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            reason = f"Instructor credit failed: {e}"
            logger.error(f"Deduction {deduction_ref} requires reconciliation. {reason}")
            await self._flag_deduction(deduction_id, reason)
            return False

        logger.info(f"Credited {command.amount} earnings to instructor {instructor_id}")
        await dispatch_notification(
            self.notifier,
            instructor_id,
            EventType.WALLET_EARNINGS_CREDITED,
            {
                "amount": command.amount,
                "new_balance": new_balance,
                "course_id": command.course_id,
                "tx_ref": f"earn_{deduction_ref}",
            },
        )
        return True

    async def _flag_deduction(self, deduction_id: str, reason: str) -> None:
        try:
            await self.transaction_repo.flag_for_reconciliation(deduction_id, reason)
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Could not flag deduction {deduction_id} for reconciliation: {e}")

    def _replay(self, existing: Transaction, command: DeductCommandDTO) -> Result[DeductResponseDTO]:
        if existing.user_id != command.user_id or existing.transaction_type != TransactionType.DEDUCTION:
            return Return.err(
                Error(
                    code="IDEMPOTENCY_CONFLICT",
                    message="Idempotency key already used for a different operation",
                )
            )
        return Return.ok(
            DeductResponseDTO(
                transaction_id=existing.id,
                tx_ref=existing.tx_ref,
                amount=existing.amount,
                description=existing.description,
                requires_reconciliation=existing.requires_reconciliation,
                replayed=True,
                created_at=existing.created_at,
            )
        )

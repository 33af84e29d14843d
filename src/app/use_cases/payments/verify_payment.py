"""VerifyPayment Use Case

Client-driven fallback for when the provider webhook is delayed or lost: the
caller asks the provider for the payment state and settles it the same way the
webhook would.
"""

import logging
from decimal import Decimal
from typing import Optional, Sequence
from libs.result import Result, Return, Error
from src.app.repositories.transaction_repository import TransactionRepository
from src.app.services.payment_gateway import PaymentGateway, PaymentGatewayError
from src.domain.transaction import TransactionStatus, TransactionType
from .dtos import (
    PaymentFailureCommandDTO,
    SettlementCommandDTO,
    SettlementOutcome,
    SettlementResponseDTO,
    VerifyPaymentCommandDTO,
)
from .settle_payment import SettlePayment

logger = logging.getLogger(__name__)


class VerifyPayment:
    """
    Use Case: Verify a payment with the provider and settle it

    Business Rules:
    1. The transaction must belong to the caller
    2. An already successful transaction is returned as-is (no side effects)
    3. Provider "successful" settles through SettlePayment, including the
       amount/currency cross-check
    4. Any other provider status resolves the transaction as failed
    5. Gateway errors and timeouts never count as success
    """

    def __init__(
        self,
        transaction_repo: TransactionRepository,
        gateway: PaymentGateway,
        settlement: SettlePayment,
        allowed_types: Optional[Sequence[TransactionType]] = None,
    ):
        self.transaction_repo = transaction_repo
        self.gateway = gateway
        self.settlement = settlement
        self.allowed_types = tuple(allowed_types) if allowed_types else None

    async def execute(self, command: VerifyPaymentCommandDTO) -> Result[SettlementResponseDTO]:
        transaction = await self.transaction_repo.get_by_tx_ref(command.tx_ref)
        if not transaction or transaction.user_id != command.user_id:
            return Return.err(
                Error(
                    code="TRANSACTION_NOT_FOUND",
                    message=f"No transaction found for reference {command.tx_ref}",
                )
            )

        if self.allowed_types and transaction.transaction_type not in self.allowed_types:
            return Return.err(
                Error(
                    code="VALIDATION_ERROR",
                    message=f"Transaction {command.tx_ref} cannot be verified here",
                    reason=f"transaction_type={transaction.transaction_type.value}",
                )
            )

        if transaction.status == TransactionStatus.SUCCESSFUL:
            return Return.ok(
                SettlementResponseDTO(
                    tx_ref=transaction.tx_ref,
                    outcome=SettlementOutcome.ALREADY_PROCESSED,
                    transaction_type=transaction.transaction_type.value,
                    status=transaction.status.value,
                    user_id=transaction.user_id,
                )
            )

        if transaction.status != TransactionStatus.PENDING:
            return Return.err(
                Error(
                    code="PAYMENT_VERIFICATION_FAILED",
                    message=f"Payment already {transaction.status.value}",
                    reason=transaction.failure_reason,
                )
            )

        try:
            verification = await self.gateway.verify(command.transaction_id)
        except PaymentGatewayError as e:
            logger.error(f"Verification of {command.tx_ref} with the provider failed: {e}")
            return Return.err(
                Error(
                    code="PAYMENT_GATEWAY_UNAVAILABLE",
                    message="Payment provider is unavailable, try again later",
                    reason=str(e),
                )
            )

        if verification.tx_ref and verification.tx_ref != command.tx_ref:
            logger.error(
                f"Provider transaction {command.transaction_id} belongs to {verification.tx_ref}, "
                f"not {command.tx_ref}"
            )
            return Return.err(
                Error(
                    code="PAYMENT_VERIFICATION_FAILED",
                    message="Provider transaction does not match this payment",
                )
            )

        if verification.status.lower() == TransactionStatus.SUCCESSFUL.value:
            return await self.settlement.execute(
                SettlementCommandDTO(
                    tx_ref=command.tx_ref,
                    amount=Decimal(verification.amount or 0),
                    currency=verification.currency or "",
                    provider_transaction_id=verification.transaction_id or command.transaction_id,
                    payment_type=verification.payment_type,
                )
            )

        reason = verification.message or f"Payment {verification.status}"
        try:
            await self.settlement.record_failure(
                PaymentFailureCommandDTO(
                    tx_ref=command.tx_ref,
                    status=TransactionStatus.FAILED.value,
                    reason=reason,
                    provider_transaction_id=command.transaction_id,
                )
            )
        except Exception as e:
            logger.error(f"Could not record failed verification for {command.tx_ref}: {e}")

        return Return.err(
            Error(
                code="PAYMENT_VERIFICATION_FAILED",
                message="Payment verification failed",
                reason=reason,
            )
        )

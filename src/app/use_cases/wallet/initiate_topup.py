"""InitiateTopUp Use Case

Creates a pending top-up and requests a hosted payment link. The wallet is
credited later, only when the payment is settled.
"""

import logging
from typing import Sequence
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.payment_gateway import PaymentGateway, PaymentGatewayError, PaymentLinkRequest
from src.app.repositories.user_repository import UserRepository
from src.app.repositories.transaction_repository import TransactionRepository
from src.domain.money import to_major_units
from src.domain.transaction import Transaction, TransactionStatus, TransactionType, generate_tx_ref
from .dtos import TopUpCommandDTO, TopUpResponseDTO

logger = logging.getLogger(__name__)


class InitiateTopUp:
    """
    Use Case: Initiate a wallet top-up

    Business Rules:
    1. amount > 0 and currency must be supported
    2. A pending transaction with a fresh tx_ref is stored before the provider is called
    3. If the provider does not return a link, the pending transaction is deleted
    4. Never credits the wallet
    """

    def __init__(
        self,
        uow: UnitOfWork,
        user_repo: UserRepository,
        transaction_repo: TransactionRepository,
        gateway: PaymentGateway,
        redirect_url: str,
        default_currency: str = "NGN",
        supported_currencies: Sequence[str] = ("NGN",),
    ):
        self.uow = uow
        self.user_repo = user_repo
        self.transaction_repo = transaction_repo
        self.gateway = gateway
        self.redirect_url = redirect_url
        self.default_currency = default_currency
        self.supported_currencies = {c.upper() for c in supported_currencies}

    async def execute(self, command: TopUpCommandDTO) -> Result[TopUpResponseDTO]:
        if command.amount <= 0:
            return Return.err(
                Error(
                    code="INVALID_AMOUNT",
                    message="Top-up amount must be greater than zero",
                    details={"amount": command.amount},
                )
            )

        currency = (command.currency or self.default_currency).upper()
        if currency not in self.supported_currencies:
            return Return.err(
                Error(
                    code="UNSUPPORTED_CURRENCY",
                    message=f"Currency {currency} is not supported",
                    details={"supported": sorted(self.supported_currencies)},
                )
            )

        user = await self.user_repo.get_by_id(command.user_id)
        if not user:
            return Return.err(
                Error(code="USER_NOT_FOUND", message=f"User {command.user_id} not found")
            )
        email = user.email
        full_name = user.full_name

        tx_ref = generate_tx_ref("topup", command.user_id)

        try:
            transaction = await self.transaction_repo.create(
                Transaction(
                    user_id=command.user_id,
                    transaction_type=TransactionType.TOPUP,
                    amount=command.amount,
                    currency=currency,
                    tx_ref=tx_ref,
                    status=TransactionStatus.PENDING,
                    description=f"Wallet top-up of {command.amount} {currency}",
                )
            )
            transaction_id = transaction.id
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="TOPUP_FAILED",
                    message="Failed to create top-up transaction",
                    reason=str(e),
                )
            )

        failure_reason = None
        link = None
        try:
            link_result = await self.gateway.initialize_payment(
                PaymentLinkRequest(
                    tx_ref=tx_ref,
                    amount=command.amount,
                    currency=currency,
                    customer_email=email,
                    customer_name=full_name,
                    redirect_url=self.redirect_url,
                    title="Wallet Top-up",
                    description=f"Top up wallet with {to_major_units(command.amount, currency)} {currency}",
                    meta={"user_id": command.user_id, "transaction_type": TransactionType.TOPUP.value},
                )
            )
            if link_result.success and link_result.link:
                link = link_result.link
            else:
                failure_reason = link_result.error or "Provider returned no payment link"
        except PaymentGatewayError as e:
            failure_reason = str(e)

        if link is None:
            logger.error(f"Top-up initialization failed for {tx_ref}: {failure_reason}")
            await self._discard(transaction_id)
            return Return.err(
                Error(
                    code="PAYMENT_INIT_FAILED",
                    message="Failed to initialize payment",
                    reason=failure_reason,
                )
            )

        logger.info(f"Top-up {tx_ref} initiated for user {command.user_id}")

        return Return.ok(
            TopUpResponseDTO(
                tx_ref=tx_ref,
                payment_link=link,
                amount=command.amount,
                currency=currency,
            )
        )

    async def _discard(self, transaction_id: str) -> None:
        try:
            await self.transaction_repo.delete(transaction_id)
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Could not delete orphaned pending transaction {transaction_id}: {e}")

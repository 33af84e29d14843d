"""Wallet API Routes

FastAPI routes for wallet balance, top-ups, deductions and history.
"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.api.schemas.subscription_request import VerifyPaymentRequestSchema
from src.api.schemas.wallet_request import DeductRequestSchema, TopUpRequestSchema
from src.app.use_cases.payments import SettlementResponseDTO, VerifyPayment, VerifyPaymentCommandDTO
from src.app.use_cases.wallet import (
    BalanceResponseDTO,
    DeductCommandDTO,
    DeductResponseDTO,
    DeductTokens,
    GetBalance,
    InitiateTopUp,
    ListTransactions,
    ListTransactionsQueryDTO,
    ListTransactionsResponseDTO,
    TopUpCommandDTO,
    TopUpResponseDTO,
    TransactionSummary,
    TransactionSummaryResponseDTO,
)
from src.adapter.repositories.user_repository import SqlAlchemyUserRepository
from src.adapter.repositories.transaction_repository import SqlAlchemyTransactionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.domain.transaction import TransactionType
from src.depends import ServiceContainer, get_container, get_session
from src.api.error import ClientError
from src.api.security import get_current_user_id

router = APIRouter(prefix="/wallet", tags=["Wallet"])


@router.get(
    "/balance",
    response_model=BalanceResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        404: {
            "description": "User not found",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "USER_NOT_FOUND",
                            "message": "User not found"
                        }
                    }
                }
            }
        }
    }
)
async def get_balance(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Get the caller's wallet balance.

    **Returns:**
    - 200: Balance, lifetime earnings and lifetime spend
    - 404: User not found
    """
    use_case = GetBalance(SqlAlchemyUserRepository(session))
    result = await use_case.execute(user_id)

    if result.is_err():
        raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)

    return result.value


@router.post(
    "/topup",
    response_model=TopUpResponseDTO,
    status_code=status.HTTP_201_CREATED,
)
async def initiate_topup(
    request: TopUpRequestSchema,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    container: ServiceContainer = Depends(get_container),
):
    """
    Start a wallet top-up.

    Returns a provider payment link. The wallet is credited only once the
    provider confirms the payment (webhook or `/wallet/verify-payment`).

    **Example request:**
    ```json
    {"amount": 5000, "currency": "NGN"}
    ```

    **Returns:**
    - 201: Payment link and tx_ref
    - 400: Unsupported currency
    - 404: User not found
    - 502: Payment provider failure (no pending transaction is left behind)
    """
    config = container.config
    use_case = InitiateTopUp(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyUserRepository(session),
        SqlAlchemyTransactionRepository(session),
        gateway=container.gateway,
        redirect_url=config.PAYMENT_REDIRECT_URL,
        default_currency=config.DEFAULT_CURRENCY,
        supported_currencies=config.SUPPORTED_CURRENCIES,
    )
    command = TopUpCommandDTO(user_id=user_id, amount=request.amount, currency=request.currency)
    result = await use_case.execute(command)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.post(
    "/deduct",
    response_model=DeductResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        402: {
            "description": "Insufficient balance",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "INSUFFICIENT_BALANCE",
                            "message": "Insufficient balance",
                            "reason": "Required: 1500, Available: 900",
                            "details": {"required": 1500, "available": 900}
                        }
                    }
                }
            }
        }
    }
)
async def deduct(
    request: DeductRequestSchema,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    container: ServiceContainer = Depends(get_container),
):
    """
    Deduct from the caller's wallet.

    The balance never goes negative: the debit is a single conditional update.
    Sending the same `idempotency_key` again returns the original transaction.
    With `course_id` and `instructor_id`, the instructor is credited the same amount.

    **Returns:**
    - 200: Deduction recorded (or replayed)
    - 402: Insufficient balance (details carry required and available)
    - 409: idempotency_key already used for a different operation
    """
    use_case = DeductTokens(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyUserRepository(session),
        SqlAlchemyTransactionRepository(session),
        notifier=container.notifier,
        currency=container.config.DEFAULT_CURRENCY,
    )
    command = DeductCommandDTO(
        user_id=user_id,
        amount=request.amount,
        description=request.description,
        idempotency_key=request.idempotency_key,
        course_id=request.course_id,
        instructor_id=request.instructor_id,
    )
    result = await use_case.execute(command)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.get(
    "/transactions",
    response_model=ListTransactionsResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def list_transactions(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    transaction_type: Optional[str] = Query(default=None, alias="type"),
    transaction_status: Optional[str] = Query(default=None, alias="status"),
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Paginated transaction history, newest first.

    **Query parameters:**
    - `page`, `limit` (max 100)
    - `type`: topup, deduction, earnings, refund, withdrawal, subscription, course_enrollment
    - `status`: pending, successful, failed, cancelled
    - `start_date`, `end_date`: ISO 8601 bounds on created_at
    """
    query = ListTransactionsQueryDTO(
        user_id=user_id,
        page=page,
        limit=limit,
        transaction_type=transaction_type,
        status=transaction_status,
        start_date=start_date,
        end_date=end_date,
    )
    result = await ListTransactions(SqlAlchemyTransactionRepository(session)).execute(query)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.get(
    "/summary",
    response_model=TransactionSummaryResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def transaction_summary(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """Totals by type and by status, plus the most recent transactions"""
    result = await TransactionSummary(SqlAlchemyTransactionRepository(session)).execute(user_id)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.post(
    "/verify-payment",
    response_model=SettlementResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def verify_wallet_payment(
    request: VerifyPaymentRequestSchema,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    container: ServiceContainer = Depends(get_container),
):
    """
    Verify a top-up or course payment with the provider and credit it.

    Idempotent: a payment already applied by the webhook is returned as is.
    """
    use_case = VerifyPayment(
        SqlAlchemyTransactionRepository(session),
        container.gateway,
        container.settlement(session),
        allowed_types=[TransactionType.TOPUP, TransactionType.COURSE_ENROLLMENT],
    )
    result = await use_case.execute(
        VerifyPaymentCommandDTO(
            user_id=user_id,
            tx_ref=request.tx_ref,
            transaction_id=request.transaction_id,
        )
    )

    if result.is_err():
        raise ClientError(result.error)

    return result.value

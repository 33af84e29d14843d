"""Subscription API Routes

FastAPI routes for the subscription lifecycle and the payment-provider webhook.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.api.schemas.subscription_request import (
    AutoRenewalRequestSchema,
    PaymentMethodRequestSchema,
    SubscribeRequestSchema,
    VerifyPaymentRequestSchema,
)
from src.app.use_cases.payments import (
    ProcessPaymentWebhook,
    SettlementResponseDTO,
    VerifyPayment,
    VerifyPaymentCommandDTO,
    WebhookCommandDTO,
    WebhookResponseDTO,
)
from src.app.use_cases.subscriptions import (
    AddPaymentMethod,
    AddPaymentMethodCommandDTO,
    AutoRenewalResponseDTO,
    CancelResponseDTO,
    CancelSubscription,
    GetMySubscription,
    InitiateSubscription,
    MySubscriptionResponseDTO,
    PaymentMethodResponseDTO,
    SubscribeCommandDTO,
    SubscribeResponseDTO,
    UpdateAutoRenewal,
)
from src.adapter.repositories.user_repository import SqlAlchemyUserRepository
from src.adapter.repositories.subscription_plan_repository import SqlAlchemySubscriptionPlanRepository
from src.adapter.repositories.transaction_repository import SqlAlchemyTransactionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.domain.transaction import TransactionType
from src.depends import ServiceContainer, get_container, get_session
from src.api.error import ClientError
from src.api.security import get_current_user_id

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


@router.post(
    "/subscribe",
    response_model=SubscribeResponseDTO,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {
            "description": "Already subscribed",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "ALREADY_SUBSCRIBED",
                            "message": "User already has an active subscription"
                        }
                    }
                }
            }
        },
        502: {
            "description": "Payment provider did not return a payment link",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "PAYMENT_INIT_FAILED",
                            "message": "Failed to initialize payment"
                        }
                    }
                }
            }
        }
    }
)
async def subscribe(
    request: SubscribeRequestSchema,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    container: ServiceContainer = Depends(get_container),
):
    """
    Start a subscription payment.

    Creates a pending subscription transaction with a fresh `tx_ref` and returns
    the provider's hosted payment link. The subscription activates only when the
    provider confirms the charge (webhook or `/subscriptions/verify`).

    **Returns:**
    - 201: Payment link and tx_ref
    - 400: Already subscribed
    - 404: User or plan not found
    - 502: Payment provider failure (no pending transaction is left behind)
    """
    uow = SqlAlchemyUnitOfWork(session)
    user_repo = SqlAlchemyUserRepository(session)
    plan_repo = SqlAlchemySubscriptionPlanRepository(session)
    transaction_repo = SqlAlchemyTransactionRepository(session)

    use_case = InitiateSubscription(
        uow,
        user_repo,
        plan_repo,
        transaction_repo,
        gateway=container.gateway,
        redirect_url=container.config.PAYMENT_REDIRECT_URL,
    )
    result = await use_case.execute(SubscribeCommandDTO(user_id=user_id, plan_id=request.plan_id))

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.post(
    "/verify",
    response_model=SettlementResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def verify_subscription_payment(
    request: VerifyPaymentRequestSchema,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    container: ServiceContainer = Depends(get_container),
):
    """
    Verify a subscription payment with the provider (fallback for a missed webhook).

    Settles through the same idempotent path as the webhook, so calling it after
    the webhook already applied the payment is harmless.

    **Returns:**
    - 200: Payment applied, or already processed
    - 400: Provider reports the payment as not successful
    - 404: Transaction not found for this user
    - 503: Payment provider unavailable
    """
    use_case = VerifyPayment(
        SqlAlchemyTransactionRepository(session),
        container.gateway,
        container.settlement(session),
        allowed_types=[TransactionType.SUBSCRIPTION],
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


@router.get(
    "/my-subscription",
    response_model=MySubscriptionResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def get_my_subscription(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Current subscription status, plan and days remaining.

    `error_reason` carries the last renewal failure while the subscription is past due.
    """
    use_case = GetMySubscription(
        SqlAlchemyUserRepository(session),
        SqlAlchemySubscriptionPlanRepository(session),
    )
    result = await use_case.execute(user_id)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.post(
    "/cancel",
    response_model=CancelResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def cancel_subscription(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    container: ServiceContainer = Depends(get_container),
):
    """
    Cancel the subscription.

    Auto-renewal stops immediately; Pro access remains until the current end date.
    """
    use_case = CancelSubscription(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyUserRepository(session),
        container.notifier,
    )
    result = await use_case.execute(user_id)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.put(
    "/auto-renewal",
    response_model=AutoRenewalResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def update_auto_renewal(
    request: AutoRenewalRequestSchema,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """Turn auto-renewal on or off"""
    use_case = UpdateAutoRenewal(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyUserRepository(session),
    )
    result = await use_case.execute(user_id, request.enabled)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.post(
    "/payment-methods",
    response_model=PaymentMethodResponseDTO,
    status_code=status.HTTP_201_CREATED,
)
async def add_payment_method(
    request: PaymentMethodRequestSchema,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Register a tokenised card for auto-renewal charges.

    The first method registered, or one sent with `is_primary`, becomes primary.
    """
    use_case = AddPaymentMethod(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyUserRepository(session),
    )
    command = AddPaymentMethodCommandDTO(
        user_id=user_id,
        provider_token=request.provider_token,
        brand=request.brand,
        last4=request.last4,
        is_primary=request.is_primary,
    )
    result = await use_case.execute(command)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.post(
    "/webhook",
    response_model=WebhookResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        401: {
            "description": "Invalid signature",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "INVALID_SIGNATURE",
                            "message": "Invalid webhook signature"
                        }
                    }
                }
            }
        },
        400: {
            "description": "Malformed payload or integrity violation (not retryable)",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "AMOUNT_MISMATCH",
                            "message": "Payment amount or currency does not match the transaction",
                            "reason": "expected 3000 NGN, got 2500 NGN"
                        }
                    }
                }
            }
        }
    }
)
async def payment_webhook(
    request: Request,
    session: AsyncSession = Depends(get_session),
    container: ServiceContainer = Depends(get_container),
):
    """
    Payment provider webhook.

    The signature is verified against the raw request bytes before parsing.
    Only `charge.completed` events change state; everything else is acknowledged.

    **Returns:**
    - 200: Applied, already processed, ignored, or flagged for manual reconciliation
    - 400: Malformed payload or integrity violation (e.g., amount mismatch)
    - 401: Missing or invalid signature
    - 500: Transient failure; safe for the provider to redeliver
    """
    raw_body = await request.body()

    use_case = ProcessPaymentWebhook(
        settlement=container.settlement(session),
        verifier=container.webhook_verifier,
        retry_policy=container.webhook_retry_policy(),
    )
    command = WebhookCommandDTO(
        raw_body=raw_body,
        signature=request.headers.get(container.config.WEBHOOK_SIGNATURE_HEADER),
        client_ip=request.client.host if request.client else None,
    )
    result = await use_case.execute(command)

    if result.is_err():
        if result.error.code == "INVALID_SIGNATURE":
            raise ClientError(result.error, status_code=status.HTTP_401_UNAUTHORIZED)
        if result.error.code == "RECONCILIATION_FLAG_FAILED":
            raise ClientError(result.error, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
        raise ClientError(result.error, status_code=status.HTTP_400_BAD_REQUEST)

    return result.value

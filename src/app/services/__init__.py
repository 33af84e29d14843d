from .unit_of_work import UnitOfWork
from .notification_service import NotificationService, dispatch_notification
from .payment_gateway import (
    PaymentGateway,
    PaymentGatewayError,
    PaymentGatewayTimeout,
    PaymentLinkRequest,
    PaymentLinkResult,
    ChargeRequest,
    ChargeResult,
    VerificationResult,
)
from .webhook_signature import WebhookSignatureVerifier, SignatureMode
from .retry import RetryPolicy, RetryExhausted
from .plan_cache import PlanCache

__all__ = [
    "UnitOfWork",
    "NotificationService",
    "dispatch_notification",
    "PaymentGateway",
    "PaymentGatewayError",
    "PaymentGatewayTimeout",
    "PaymentLinkRequest",
    "PaymentLinkResult",
    "ChargeRequest",
    "ChargeResult",
    "VerificationResult",
    "WebhookSignatureVerifier",
    "SignatureMode",
    "RetryPolicy",
    "RetryExhausted",
    "PlanCache",
]

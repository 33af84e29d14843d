"""Payment settlement use cases"""
from .settle_payment import SettlePayment
from .process_webhook import ProcessPaymentWebhook, CHARGE_COMPLETED_EVENT
from .verify_payment import VerifyPayment
from .dtos import (
    SettlementOutcome,
    SettlementCommandDTO,
    PaymentFailureCommandDTO,
    SettlementResponseDTO,
    WebhookCommandDTO,
    ChargeEventDataDTO,
    WebhookPayloadDTO,
    WebhookResponseDTO,
    VerifyPaymentCommandDTO,
)

__all__ = [
    "SettlePayment",
    "ProcessPaymentWebhook",
    "CHARGE_COMPLETED_EVENT",
    "VerifyPayment",
    "SettlementOutcome",
    "SettlementCommandDTO",
    "PaymentFailureCommandDTO",
    "SettlementResponseDTO",
    "WebhookCommandDTO",
    "ChargeEventDataDTO",
    "WebhookPayloadDTO",
    "WebhookResponseDTO",
    "VerifyPaymentCommandDTO",
]

"""Data Transfer Objects for payment settlement and webhook reconciliation"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class SettlementOutcome(str, Enum):
    APPLIED = "applied"
    ALREADY_PROCESSED = "already_processed"
    IGNORED = "ignored"
    FAILURE_RECORDED = "failure_recorded"
    MANUAL_RECONCILIATION = "manual_reconciliation"


class SettlementCommandDTO(BaseModel):
    """
    Provider-confirmed payment to settle against a stored transaction

    amount/currency are the values the provider reports; they must match the
    stored transaction exactly.
    """

    tx_ref: str = Field(..., min_length=1)
    amount: Decimal = Field(..., description="Amount reported by the provider, converted to minor units")
    currency: str = Field(...)
    provider_transaction_id: Optional[str] = Field(default=None)
    payment_type: Optional[str] = Field(default=None)


class PaymentFailureCommandDTO(BaseModel):
    tx_ref: str = Field(..., min_length=1)
    status: str = Field(default="failed")
    reason: str = Field(default="Payment failed")
    provider_transaction_id: Optional[str] = Field(default=None)


class SettlementResponseDTO(BaseModel):
    tx_ref: str
    outcome: SettlementOutcome
    transaction_type: Optional[str] = None
    status: Optional[str] = None
    user_id: Optional[str] = None
    subscription_end_date: Optional[datetime] = None
    new_balance: Optional[int] = None

    class Config:
        json_schema_extra = {
            "example": {
                "tx_ref": "SUB_5f1c_9a8b",
                "outcome": "applied",
                "transaction_type": "subscription",
                "status": "successful",
                "user_id": "5f1c...",
                "subscription_end_date": "2024-02-29T10:00:00",
                "new_balance": None,
            }
        }


class WebhookCommandDTO(BaseModel):
    raw_body: bytes
    signature: Optional[str] = None
    client_ip: Optional[str] = None


class ChargeEventDataDTO(BaseModel):
    """The data object of a charge.completed delivery; amount is in the provider's major units"""

    id: Optional[Any] = None
    tx_ref: str = Field(..., min_length=1)
    status: str
    amount: Decimal
    currency: str
    narration: Optional[str] = None
    processor_response: Optional[str] = None
    payment_type: Optional[str] = None


class WebhookPayloadDTO(BaseModel):
    event: str
    data: Dict[str, Any] = Field(default_factory=dict)


class WebhookResponseDTO(BaseModel):
    status: str = "success"
    event: Optional[str] = None
    outcome: SettlementOutcome
    tx_ref: Optional[str] = None


class VerifyPaymentCommandDTO(BaseModel):
    user_id: str
    tx_ref: str = Field(..., min_length=1)
    transaction_id: str = Field(..., min_length=1, description="Provider transaction ID")

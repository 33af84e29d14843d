"""Request schemas for Subscription API

Pydantic models for validating incoming HTTP requests.
"""

from typing import Optional, Union
from pydantic import BaseModel, Field, field_validator


class SubscribeRequestSchema(BaseModel):
    """
    Request schema for starting a subscription payment

    Used for POST /subscriptions/subscribe endpoint.
    """

    plan_id: str = Field(
        ...,
        min_length=1,
        description="Subscription plan identifier (required, non-empty)"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "plan_id": "b6a1f0c2-7d4e-4a53-9d7f-2f1f2c3a9e10"
            }
        }


class VerifyPaymentRequestSchema(BaseModel):
    """
    Request schema for client-driven payment verification

    Used for POST /subscriptions/verify and POST /wallet/verify-payment.
    The provider redirect carries both values as query parameters.
    """

    tx_ref: str = Field(
        ...,
        min_length=1,
        description="Reference returned when the payment was initiated"
    )

    transaction_id: Union[str, int] = Field(
        ...,
        description="Provider transaction ID from the payment redirect"
    )

    @field_validator('transaction_id')
    @classmethod
    def validate_transaction_id(cls, v):
        """Provider IDs arrive as numbers or strings; keep them as strings"""
        v = str(v).strip()
        if not v:
            raise ValueError("transaction_id must not be empty")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "tx_ref": "SUB_5f1c_b6a1_1705312200000_9a8b7c6d",
                "transaction_id": "4975432"
            }
        }


class AutoRenewalRequestSchema(BaseModel):
    """Request schema for PUT /subscriptions/auto-renewal"""

    enabled: bool = Field(..., description="Whether the subscription renews automatically")


class PaymentMethodRequestSchema(BaseModel):
    """
    Request schema for registering a tokenised payment method

    Raw card data is never accepted; only the provider token.
    """

    provider_token: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Card token issued by the payment provider"
    )

    brand: Optional[str] = Field(
        default=None,
        max_length=50,
        description="Card brand (e.g., 'visa', 'mastercard')"
    )

    last4: Optional[str] = Field(
        default=None,
        pattern=r"^\d{4}$",
        description="Last four digits of the card"
    )

    is_primary: bool = Field(
        default=False,
        description="Use this method for auto-renewal charges"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "provider_token": "flw-t1nf-5b0f12d8a1c3e4f",
                "brand": "visa",
                "last4": "4242",
                "is_primary": True
            }
        }

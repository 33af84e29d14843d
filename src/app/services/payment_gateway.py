"""Payment Gateway Interface

Thin contract over the third-party payment provider.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class PaymentGatewayError(Exception):
    """Provider call failed (network, HTTP or provider-side error)"""


class PaymentGatewayTimeout(PaymentGatewayError):
    """Provider call exceeded its timeout; never treated as success"""


class PaymentLinkRequest(BaseModel):
    tx_ref: str
    amount: int
    currency: str
    customer_email: str
    customer_name: str = ""
    redirect_url: str
    title: str
    description: str
    meta: Dict[str, Any] = Field(default_factory=dict)


class PaymentLinkResult(BaseModel):
    success: bool
    link: Optional[str] = None
    error: Optional[str] = None


class ChargeRequest(BaseModel):
    """Charge against a stored (tokenised) payment method"""
    tx_ref: str
    amount: int
    currency: str
    customer_email: str
    customer_name: str = ""
    payment_token: str
    description: str = ""


class ChargeResult(BaseModel):
    success: bool
    transaction_id: Optional[str] = None
    error: Optional[str] = None


class VerificationResult(BaseModel):
    """amount is in minor units, possibly fractional if the provider reported sub-unit precision"""
    status: str
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    tx_ref: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_type: Optional[str] = None
    message: Optional[str] = None


class PaymentGateway(ABC):
    """
    Abstract payment gateway

    Declined payments are reported through the result objects; transport
    failures and timeouts raise PaymentGatewayError / PaymentGatewayTimeout.
    """

    @abstractmethod
    async def initialize_payment(self, request: PaymentLinkRequest) -> PaymentLinkResult:
        """
        Request a hosted payment link for a pending transaction

        Args:
            request: PaymentLinkRequest with tx_ref, amount, customer and redirect info

        Returns:
            PaymentLinkResult with the link, or the provider's error message
        """
        pass

    @abstractmethod
    async def charge(self, request: ChargeRequest) -> ChargeResult:
        """
        Charge a stored payment method

        Args:
            request: ChargeRequest with amount and payment token

        Returns:
            ChargeResult with the provider transaction ID, or the decline reason
        """
        pass

    @abstractmethod
    async def verify(self, transaction_id: str) -> VerificationResult:
        """
        Look up the provider-side state of a transaction

        Args:
            transaction_id: Provider transaction ID

        Returns:
            VerificationResult with status, amount and currency as the provider recorded them, amount in minor units
        """
        pass

    async def close(self) -> None:
        """Release network resources"""
        return None

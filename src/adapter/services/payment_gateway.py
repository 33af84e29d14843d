"""Payment Gateway Implementations

Flutterwave v3 over httpx for production and an in-process sandbox for local
development.
"""

import logging
import secrets
from typing import Any, Dict, Optional
import httpx
from src.domain.money import to_major_units, to_minor_units
from src.app.services.payment_gateway import (
    ChargeRequest,
    ChargeResult,
    PaymentGateway,
    PaymentGatewayError,
    PaymentGatewayTimeout,
    PaymentLinkRequest,
    PaymentLinkResult,
    VerificationResult,
)

logger = logging.getLogger(__name__)


class FlutterwavePaymentGateway(PaymentGateway):
    """
    Flutterwave v3 client

    Endpoints used:
    - POST /payments (hosted payment link)
    - POST /tokenized-charges (charge a stored card token)
    - GET /transactions/{id}/verify

    Every call is bounded by the client timeout; a timeout raises
    PaymentGatewayTimeout and never counts as success.

    Flutterwave amounts are major units; they are converted to and from the
    minor units used everywhere else at this boundary.
    """

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.flutterwave.com/v3",
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {secret_key}",
                "Content-Type": "application/json",
            },
        )

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            logger.error(f"Flutterwave {method} {path} timed out: {e}")
            raise PaymentGatewayTimeout(f"Payment provider timed out on {path}") from e
        except httpx.HTTPError as e:
            logger.error(f"Flutterwave {method} {path} failed: {e}")
            raise PaymentGatewayError(f"Payment provider request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise PaymentGatewayError(
                f"Invalid response from payment provider (HTTP {response.status_code})"
            ) from e

        if response.status_code >= 500:
            raise PaymentGatewayError(
                f"Payment provider error (HTTP {response.status_code}): {payload.get('message')}"
            )
        return payload

    async def initialize_payment(self, request: PaymentLinkRequest) -> PaymentLinkResult:
        payload = await self._request(
            "POST",
            "/payments",
            json={
                "tx_ref": request.tx_ref,
                "amount": float(to_major_units(request.amount, request.currency)),
                "currency": request.currency,
                "redirect_url": request.redirect_url,
                "customer": {"email": request.customer_email, "name": request.customer_name},
                "customizations": {"title": request.title, "description": request.description},
                "meta": request.meta,
            },
        )
        if payload.get("status") == "success":
            return PaymentLinkResult(success=True, link=(payload.get("data") or {}).get("link"))
        return PaymentLinkResult(success=False, error=payload.get("message") or "Payment initialization failed")

    async def charge(self, request: ChargeRequest) -> ChargeResult:
        logger.info(f"Processing tokenized charge {request.tx_ref} - Amount: {request.amount} {request.currency}")
        payload = await self._request(
            "POST",
            "/tokenized-charges",
            json={
                "token": request.payment_token,
                "tx_ref": request.tx_ref,
                "amount": float(to_major_units(request.amount, request.currency)),
                "currency": request.currency,
                "email": request.customer_email,
                "fullname": request.customer_name,
                "narration": request.description,
            },
        )
        data = payload.get("data") or {}
        if payload.get("status") == "success" and data.get("status") == "successful":
            return ChargeResult(success=True, transaction_id=str(data.get("id")))
        return ChargeResult(
            success=False,
            error=data.get("processor_response") or payload.get("message") or "Payment failed",
        )

    async def verify(self, transaction_id: str) -> VerificationResult:
        payload = await self._request("GET", f"/transactions/{transaction_id}/verify")
        data = payload.get("data") or {}
        if payload.get("status") != "success" or not data:
            return VerificationResult(status="failed", message=payload.get("message") or "Verification failed")

        return VerificationResult(
            status=str(data.get("status", "failed")),
            amount=to_minor_units(data["amount"], data.get("currency")) if data.get("amount") is not None else None,
            currency=data.get("currency"),
            tx_ref=data.get("tx_ref"),
            transaction_id=str(data.get("id")) if data.get("id") is not None else transaction_id,
            payment_type=data.get("payment_type"),
            message=data.get("processor_response"),
        )

    async def close(self) -> None:
        await self._client.aclose()


class SandboxPaymentGateway(PaymentGateway):
    """
    Deterministic in-process gateway for development

    - Payment links point at a local checkout URL
    - Charges succeed unless the token starts with "tok_decline"
    - verify() reports payments created through this instance as successful
    """

    DECLINE_PREFIX = "tok_decline"

    def __init__(self, checkout_base_url: str = "http://localhost:8000/sandbox/checkout"):
        self.checkout_base_url = checkout_base_url.rstrip("/")
        self._payments: Dict[str, Dict[str, Any]] = {}

    def _record(self, tx_ref: str, amount: int, currency: str) -> str:
        transaction_id = f"SBX-{secrets.token_hex(6).upper()}"
        self._payments[transaction_id] = {"tx_ref": tx_ref, "amount": amount, "currency": currency}
        return transaction_id

    async def initialize_payment(self, request: PaymentLinkRequest) -> PaymentLinkResult:
        transaction_id = self._record(request.tx_ref, request.amount, request.currency)
        logger.info(f"Sandbox payment link for {request.tx_ref} (transaction {transaction_id})")
        return PaymentLinkResult(
            success=True,
            link=f"{self.checkout_base_url}/{request.tx_ref}?transaction_id={transaction_id}",
        )

    async def charge(self, request: ChargeRequest) -> ChargeResult:
        if request.payment_token.startswith(self.DECLINE_PREFIX):
            logger.info(f"Sandbox charge {request.tx_ref} declined")
            return ChargeResult(success=False, error="Card declined")
        transaction_id = self._record(request.tx_ref, request.amount, request.currency)
        logger.info(f"Sandbox charge {request.tx_ref} succeeded (transaction {transaction_id})")
        return ChargeResult(success=True, transaction_id=transaction_id)

    async def verify(self, transaction_id: str) -> VerificationResult:
        payment = self._payments.get(transaction_id)
        if not payment:
            return VerificationResult(status="failed", message="Unknown transaction")
        return VerificationResult(
            status="successful",
            amount=payment["amount"],
            currency=payment["currency"],
            tx_ref=payment["tx_ref"],
            transaction_id=transaction_id,
            payment_type="card",
        )


def create_payment_gateway(
    mode: str,
    secret_key: str = "",
    base_url: str = "https://api.flutterwave.com/v3",
    timeout: float = 15.0,
) -> PaymentGateway:
    """
    Factory function to create the configured payment gateway

    Args:
        mode: "flutterwave" or "sandbox"
    """
    if mode == "flutterwave":
        if not secret_key:
            raise ValueError("FLUTTERWAVE_SECRET_KEY is required when PAYMENT_GATEWAY_MODE=flutterwave")
        return FlutterwavePaymentGateway(secret_key=secret_key, base_url=base_url, timeout=timeout)
    return SandboxPaymentGateway()

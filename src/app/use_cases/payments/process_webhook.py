"""ProcessPaymentWebhook Use Case

Authenticates a provider callback and applies it through SettlePayment under a
bounded exponential-backoff retry policy.
"""

import json
import logging
from pydantic import ValidationError
from libs.result import Result, Return, Error
from src.app.errors import IntegrityViolation
from src.app.services.retry import RetryPolicy, RetryExhausted
from src.app.services.webhook_signature import WebhookSignatureVerifier
from src.domain.money import to_minor_units
from src.domain.transaction import TransactionStatus
from .dtos import (
    ChargeEventDataDTO,
    PaymentFailureCommandDTO,
    SettlementCommandDTO,
    SettlementOutcome,
    WebhookCommandDTO,
    WebhookPayloadDTO,
    WebhookResponseDTO,
)
from .settle_payment import SettlePayment

logger = logging.getLogger(__name__)

CHARGE_COMPLETED_EVENT = "charge.completed"


class ProcessPaymentWebhook:
    """
    Use Case: Reconcile an inbound payment-provider webhook

    Business Rules:
    1. Signature is checked against the raw body before anything is parsed;
       a bad signature changes nothing and is never retried
    2. Only charge.completed triggers business logic; other events are acknowledged
    3. Settlement is at-most-once (see SettlePayment)
    4. IntegrityViolation is fatal for the event; any other failure is retried
       with exponential backoff
    5. After retries are exhausted the transaction is flagged for manual
       reconciliation and the delivery is still acknowledged

    Error codes map to HTTP responses: INVALID_SIGNATURE -> 401,
    INVALID_PAYLOAD / integrity errors -> 400, RECONCILIATION_FLAG_FAILED -> 500.
    """

    def __init__(
        self,
        settlement: SettlePayment,
        verifier: WebhookSignatureVerifier,
        retry_policy: RetryPolicy,
    ):
        self.settlement = settlement
        self.verifier = verifier
        self.retry_policy = retry_policy

    async def execute(self, command: WebhookCommandDTO) -> Result[WebhookResponseDTO]:
        # Step 1: Authenticate the raw bytes
        if not self.verifier.verify(command.raw_body, command.signature):
            logger.warning(
                f"Invalid webhook signature from {command.client_ip or 'unknown'} "
                f"(header present: {bool(command.signature)})"
            )
            return Return.err(
                Error(
                    code="INVALID_SIGNATURE",
                    message="Invalid webhook signature",
                )
            )

        # Step 2: Parse and classify
        try:
            payload = WebhookPayloadDTO(**json.loads(command.raw_body))
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning(f"Malformed webhook payload: {e}")
            return Return.err(
                Error(
                    code="INVALID_PAYLOAD",
                    message="Webhook payload is not a valid event",
                    reason=str(e),
                )
            )

        if payload.event != CHARGE_COMPLETED_EVENT:
            logger.info(f"Ignoring webhook event {payload.event}")
            return Return.ok(
                WebhookResponseDTO(event=payload.event, outcome=SettlementOutcome.IGNORED)
            )

        try:
            data = ChargeEventDataDTO(**payload.data)
        except ValidationError as e:
            logger.warning(f"Malformed charge.completed data: {e}")
            return Return.err(
                Error(
                    code="INVALID_PAYLOAD",
                    message="charge.completed data is missing required fields",
                    reason=str(e),
                )
            )

        provider_transaction_id = str(data.id) if data.id is not None else None
        logger.info(f"Processing {payload.event} for {data.tx_ref} (status={data.status})")

        # Step 3: Settle or record failure, retrying transient errors
        if data.status.lower() == TransactionStatus.SUCCESSFUL.value:
            settlement_command = SettlementCommandDTO(
                tx_ref=data.tx_ref,
                amount=to_minor_units(data.amount, data.currency),
                currency=data.currency,
                provider_transaction_id=provider_transaction_id,
                payment_type=data.payment_type,
            )

            async def action():
                return await self.settlement.settle(settlement_command)
        else:
            failure_command = PaymentFailureCommandDTO(
                tx_ref=data.tx_ref,
                status=data.status,
                reason=data.processor_response or data.narration or f"Payment {data.status}",
                provider_transaction_id=provider_transaction_id,
            )

            async def action():
                return await self.settlement.record_failure(failure_command)

        try:
            settled = await self.retry_policy.run(action, description=f"Webhook settlement of {data.tx_ref}")
        except IntegrityViolation as e:
            return Return.err(e.error)
        except RetryExhausted as e:
            return await self._give_up(payload.event, data.tx_ref, e)

        return Return.ok(
            WebhookResponseDTO(
                event=payload.event,
                outcome=settled.outcome,
                tx_ref=settled.tx_ref,
            )
        )

    async def _give_up(self, event: str, tx_ref: str, exhausted: RetryExhausted) -> Result[WebhookResponseDTO]:
        reason = f"Webhook processing failed after {exhausted.attempts} attempts: {exhausted.last_error}"
        logger.error(f"Permanent failure for {tx_ref}, manual reconciliation required: {reason}")
        try:
            flagged = await self.settlement.flag_for_manual_reconciliation(tx_ref, reason)
        except Exception as e:
            logger.error(f"Could not flag {tx_ref} for manual reconciliation: {e}")
            return Return.err(
                Error(
                    code="RECONCILIATION_FLAG_FAILED",
                    message="Webhook could not be processed",
                    reason=str(e),
                )
            )

        if not flagged:
            logger.error(f"Transaction {tx_ref} not found while flagging for manual reconciliation")

        return Return.ok(
            WebhookResponseDTO(
                event=event,
                outcome=SettlementOutcome.MANUAL_RECONCILIATION,
                tx_ref=tx_ref,
            )
        )

"""Unit tests for VerifyPayment use case"""

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from libs.result import Return
from src.app.services.payment_gateway import PaymentGatewayTimeout, VerificationResult
from src.app.use_cases.payments.verify_payment import VerifyPayment
from src.app.use_cases.payments.dtos import (
    SettlementOutcome,
    SettlementResponseDTO,
    VerifyPaymentCommandDTO,
)
from src.domain.transaction import Transaction, TransactionStatus, TransactionType


@pytest.fixture
def pending_topup():
    return Transaction(
        id="txn_1",
        user_id="user_1",
        transaction_type=TransactionType.TOPUP,
        amount=5000,
        currency="NGN",
        tx_ref="topup_1",
    )


@pytest.fixture
def mock_transaction_repo(pending_topup):
    repo = MagicMock()
    repo.get_by_tx_ref = AsyncMock(return_value=pending_topup)
    return repo


@pytest.fixture
def mock_gateway():
    gateway = MagicMock()
    gateway.verify = AsyncMock(
        return_value=VerificationResult(
            status="successful",
            amount=5000,
            currency="NGN",
            tx_ref="topup_1",
            transaction_id="98765",
            payment_type="card",
        )
    )
    return gateway


@pytest.fixture
def mock_settlement():
    settlement = MagicMock()
    settlement.execute = AsyncMock(
        return_value=Return.ok(SettlementResponseDTO(tx_ref="topup_1", outcome=SettlementOutcome.APPLIED))
    )
    settlement.record_failure = AsyncMock()
    return settlement


@pytest.fixture
def use_case(mock_transaction_repo, mock_gateway, mock_settlement):
    return VerifyPayment(
        mock_transaction_repo,
        mock_gateway,
        mock_settlement,
        allowed_types=[TransactionType.TOPUP, TransactionType.COURSE_ENROLLMENT],
    )


def _command(user_id="user_1"):
    return VerifyPaymentCommandDTO(user_id=user_id, tx_ref="topup_1", transaction_id="98765")


@pytest.mark.asyncio
class TestVerifyPayment:

    async def test_provider_success_settles_through_shared_path(self, use_case, mock_settlement):
        result = await use_case.execute(_command())

        assert result.is_ok()
        assert result.value.outcome == SettlementOutcome.APPLIED
        command = mock_settlement.execute.await_args.args[0]
        assert command.tx_ref == "topup_1"
        assert command.amount == Decimal("5000")
        assert command.currency == "NGN"
        assert command.provider_transaction_id == "98765"

    async def test_other_users_transaction_is_not_found(self, use_case, mock_gateway):
        result = await use_case.execute(_command(user_id="someone_else"))

        assert result.is_err()
        assert result.error.code == "TRANSACTION_NOT_FOUND"
        mock_gateway.verify.assert_not_awaited()

    async def test_wrong_transaction_type(self, use_case, pending_topup):
        pending_topup.transaction_type = TransactionType.SUBSCRIPTION

        result = await use_case.execute(_command())

        assert result.error.code == "VALIDATION_ERROR"

    async def test_already_successful_has_no_side_effects(self, use_case, pending_topup, mock_gateway, mock_settlement):
        """
        Given: The webhook already settled the payment
        When: The client verifies it again
        Then: ALREADY_PROCESSED without calling the provider or settlement
        """
        pending_topup.status = TransactionStatus.SUCCESSFUL

        result = await use_case.execute(_command())

        assert result.value.outcome == SettlementOutcome.ALREADY_PROCESSED
        mock_gateway.verify.assert_not_awaited()
        mock_settlement.execute.assert_not_awaited()

    async def test_gateway_timeout_is_never_success(self, use_case, mock_gateway, mock_settlement):
        mock_gateway.verify = AsyncMock(side_effect=PaymentGatewayTimeout("timed out"))

        result = await use_case.execute(_command())

        assert result.is_err()
        assert result.error.code == "PAYMENT_GATEWAY_UNAVAILABLE"
        mock_settlement.execute.assert_not_awaited()
        mock_settlement.record_failure.assert_not_awaited()

    async def test_provider_failure_records_failed_payment(self, use_case, mock_gateway, mock_settlement):
        mock_gateway.verify = AsyncMock(
            return_value=VerificationResult(status="failed", tx_ref="topup_1", message="Card declined")
        )

        result = await use_case.execute(_command())

        assert result.is_err()
        assert result.error.code == "PAYMENT_VERIFICATION_FAILED"
        assert result.error.reason == "Card declined"
        command = mock_settlement.record_failure.await_args.args[0]
        assert command.status == "failed"

    async def test_provider_transaction_for_another_reference(self, use_case, mock_gateway, mock_settlement):
        mock_gateway.verify = AsyncMock(
            return_value=VerificationResult(status="successful", amount=5000, currency="NGN", tx_ref="topup_other")
        )

        result = await use_case.execute(_command())

        assert result.error.code == "PAYMENT_VERIFICATION_FAILED"
        mock_settlement.execute.assert_not_awaited()

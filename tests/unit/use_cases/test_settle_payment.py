"""Unit tests for SettlePayment use case

Tests cover:
- Subscription activation with calendar billing period
- Idempotency (already successful, provider id already settled, lost race)
- Amount/currency mismatch leaves the transaction pending and flagged
- Top-up credits the wallet
- Failure recording
"""

import pytest
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from src.app.errors import IntegrityViolation
from src.app.use_cases.payments.settle_payment import SettlePayment
from src.app.use_cases.payments.dtos import (
    PaymentFailureCommandDTO,
    SettlementCommandDTO,
    SettlementOutcome,
)
from src.domain.events import EventType
from src.domain.subscription_plan import PlanDuration, SubscriptionPlan
from src.domain.transaction import Transaction, TransactionStatus, TransactionType
from src.domain.user import SubscriptionStatus, User

NOW = datetime(2024, 1, 31, 9, 0)


@pytest.fixture
def sample_plan():
    return SubscriptionPlan(id="plan_1", name="Pro Monthly", price=2500, currency="NGN", duration=PlanDuration.MONTHLY)


@pytest.fixture
def sample_user():
    return User(id="user_1", email="ada@example.com", pending_subscription_transaction_id="txn_1")


@pytest.fixture
def subscription_txn():
    return Transaction(
        id="txn_1",
        user_id="user_1",
        transaction_type=TransactionType.SUBSCRIPTION,
        amount=2500,
        currency="NGN",
        tx_ref="SUB_1",
        subscription_plan_id="plan_1",
        plan_name="Pro Monthly",
        plan_duration="monthly",
    )


@pytest.fixture
def mock_user_repo(sample_user):
    repo = MagicMock()
    repo.get_by_id = AsyncMock(return_value=sample_user)
    repo.update = AsyncMock(side_effect=lambda user: user)
    repo.credit_wallet = AsyncMock(return_value=7500)
    repo.add_enrollment = AsyncMock(return_value=True)
    return repo


@pytest.fixture
def mock_plan_repo(sample_plan):
    repo = MagicMock()
    repo.get_by_id = AsyncMock(return_value=sample_plan)
    return repo


@pytest.fixture
def mock_transaction_repo(subscription_txn):
    repo = MagicMock()
    repo.get_by_tx_ref = AsyncMock(return_value=subscription_txn)
    repo.get_by_provider_transaction_id = AsyncMock(return_value=None)
    repo.mark_resolved = AsyncMock(return_value=True)
    repo.flag_for_reconciliation = AsyncMock()
    return repo


@pytest.fixture
def settlement(mock_uow, mock_user_repo, mock_plan_repo, mock_transaction_repo, mock_notifier):
    return SettlePayment(
        uow=mock_uow,
        user_repo=mock_user_repo,
        plan_repo=mock_plan_repo,
        transaction_repo=mock_transaction_repo,
        notifier=mock_notifier,
    )


def _command(**overrides):
    data = {
        "tx_ref": "SUB_1",
        "amount": Decimal("2500"),
        "currency": "NGN",
        "provider_transaction_id": "4975432",
        "payment_type": "card",
    }
    data.update(overrides)
    return SettlementCommandDTO(**data)


@pytest.mark.asyncio
class TestSubscriptionSettlement:

    async def test_activates_subscription_for_one_calendar_month(
        self, settlement, sample_user, mock_uow, mock_transaction_repo
    ):
        """
        Given: A pending monthly subscription transaction for 2500 NGN
        When: The provider confirms 2500 NGN on 2024-01-31
        Then: User is Pro and active until 2024-02-29, and the transaction is claimed once
        """
        response = await settlement.settle(_command(), now=NOW)

        assert response.outcome == SettlementOutcome.APPLIED
        assert response.subscription_end_date == datetime(2024, 2, 29, 9, 0)
        assert sample_user.is_pro is True
        assert sample_user.subscription_status == SubscriptionStatus.ACTIVE
        assert sample_user.subscription_plan_id == "plan_1"
        assert sample_user.pending_subscription_transaction_id is None
        assert sample_user.last_payment_reference == "SUB_1"
        mock_transaction_repo.mark_resolved.assert_awaited_once_with(
            "txn_1",
            TransactionStatus.SUCCESSFUL,
            provider_transaction_id="4975432",
            payment_method="card",
        )
        mock_uow.commit.assert_awaited_once()

    async def test_dispatches_payment_and_activation_events(self, settlement, mock_notifier):
        await settlement.settle(_command(), now=NOW)

        event_types = [c.args[1] for c in mock_notifier.notify.await_args_list]
        assert event_types == [EventType.PAYMENT_SUCCEEDED, EventType.SUBSCRIPTION_ACTIVATED]

    async def test_notification_failure_does_not_undo_settlement(self, settlement, mock_notifier, mock_uow):
        mock_notifier.notify = AsyncMock(side_effect=RuntimeError("socket down"))

        response = await settlement.settle(_command(), now=NOW)

        assert response.outcome == SettlementOutcome.APPLIED
        mock_uow.commit.assert_awaited_once()

    async def test_missing_plan_is_integrity_violation(
        self, settlement, mock_plan_repo, mock_transaction_repo, sample_user
    ):
        mock_plan_repo.get_by_id = AsyncMock(return_value=None)

        with pytest.raises(IntegrityViolation) as exc_info:
            await settlement.settle(_command(), now=NOW)

        assert exc_info.value.error.code == "PLAN_NOT_FOUND"
        mock_transaction_repo.flag_for_reconciliation.assert_awaited_once()
        assert sample_user.is_pro is False


@pytest.mark.asyncio
class TestSettlementIdempotency:

    async def test_already_successful_is_a_no_op(
        self, settlement, subscription_txn, mock_transaction_repo, mock_user_repo, mock_notifier
    ):
        """
        Given: The transaction is already successful (duplicate delivery)
        When: The same payment is settled again
        Then: Nothing is mutated and no notification is sent
        """
        subscription_txn.status = TransactionStatus.SUCCESSFUL

        response = await settlement.settle(_command(), now=NOW)

        assert response.outcome == SettlementOutcome.ALREADY_PROCESSED
        mock_transaction_repo.mark_resolved.assert_not_awaited()
        mock_user_repo.update.assert_not_awaited()
        mock_notifier.notify.assert_not_awaited()

    async def test_provider_id_already_settled_elsewhere(self, settlement, mock_transaction_repo, mock_user_repo):
        other = Transaction(
            id="txn_0",
            user_id="user_1",
            transaction_type=TransactionType.SUBSCRIPTION,
            amount=2500,
            tx_ref="SUB_0",
            status=TransactionStatus.SUCCESSFUL,
        )
        mock_transaction_repo.get_by_provider_transaction_id = AsyncMock(return_value=other)

        response = await settlement.settle(_command(), now=NOW)

        assert response.outcome == SettlementOutcome.ALREADY_PROCESSED
        assert response.tx_ref == "SUB_0"
        mock_user_repo.update.assert_not_awaited()

    async def test_lost_claim_race_applies_nothing(self, settlement, mock_transaction_repo, mock_user_repo, mock_uow):
        mock_transaction_repo.mark_resolved = AsyncMock(return_value=False)

        response = await settlement.settle(_command(), now=NOW)

        assert response.outcome == SettlementOutcome.ALREADY_PROCESSED
        mock_user_repo.update.assert_not_awaited()
        mock_uow.commit.assert_not_awaited()

    async def test_success_for_failed_transaction_is_flagged(
        self, settlement, subscription_txn, mock_transaction_repo, mock_user_repo, mock_uow
    ):
        """
        Given: A renewal attempt was recorded as failed
        When: The provider later reports the same reference as successful
        Then: It is not applied, and the transaction is flagged for manual reconciliation
        """
        subscription_txn.status = TransactionStatus.FAILED

        response = await settlement.settle(_command(), now=NOW)

        assert response.outcome == SettlementOutcome.MANUAL_RECONCILIATION
        assert response.status == "failed"
        mock_transaction_repo.mark_resolved.assert_not_awaited()
        mock_user_repo.update.assert_not_awaited()
        flagged_id, reason = mock_transaction_repo.flag_for_reconciliation.await_args.args
        assert flagged_id == "txn_1"
        assert "4975432" in reason
        mock_uow.commit.assert_awaited_once()

    async def test_success_for_cancelled_transaction_is_flagged(self, settlement, subscription_txn, mock_transaction_repo):
        subscription_txn.status = TransactionStatus.CANCELLED

        response = await settlement.settle(_command(), now=NOW)

        assert response.outcome == SettlementOutcome.MANUAL_RECONCILIATION
        mock_transaction_repo.flag_for_reconciliation.assert_awaited_once()


@pytest.mark.asyncio
class TestAmountMismatch:

    async def test_mismatched_amount_leaves_transaction_pending(
        self, settlement, mock_transaction_repo, mock_user_repo
    ):
        """
        Given: Transaction stored with amount 3000
        When: Provider reports 2500 for the same tx_ref
        Then: IntegrityViolation AMOUNT_MISMATCH, no claim, no activation, flagged for review
        """
        mock_transaction_repo.get_by_tx_ref.return_value.amount = 3000

        with pytest.raises(IntegrityViolation) as exc_info:
            await settlement.settle(_command(amount=Decimal("2500")), now=NOW)

        error = exc_info.value.error
        assert error.code == "AMOUNT_MISMATCH"
        assert error.details["expected_amount"] == 3000
        assert error.details["received_amount"] == "2500"
        mock_transaction_repo.mark_resolved.assert_not_awaited()
        mock_user_repo.update.assert_not_awaited()
        mock_transaction_repo.flag_for_reconciliation.assert_awaited_once()

    async def test_mismatched_currency(self, settlement, mock_transaction_repo):
        with pytest.raises(IntegrityViolation) as exc_info:
            await settlement.settle(_command(currency="USD"), now=NOW)

        assert exc_info.value.error.code == "AMOUNT_MISMATCH"
        mock_transaction_repo.mark_resolved.assert_not_awaited()

    async def test_currency_comparison_ignores_case(self, settlement):
        response = await settlement.settle(_command(currency="ngn"), now=NOW)

        assert response.outcome == SettlementOutcome.APPLIED

    async def test_unknown_tx_ref(self, settlement, mock_transaction_repo):
        mock_transaction_repo.get_by_tx_ref = AsyncMock(return_value=None)

        result = await settlement.execute(_command(tx_ref="SUB_404"))

        assert result.is_err()
        assert result.error.code == "TRANSACTION_NOT_FOUND"


@pytest.mark.asyncio
class TestTopUpAndEnrollmentSettlement:

    async def test_topup_credits_wallet(self, settlement, mock_transaction_repo, mock_user_repo, mock_notifier):
        mock_transaction_repo.get_by_tx_ref = AsyncMock(
            return_value=Transaction(
                id="txn_2",
                user_id="user_1",
                transaction_type=TransactionType.TOPUP,
                amount=5000,
                tx_ref="topup_1",
            )
        )

        response = await settlement.settle(_command(tx_ref="topup_1", amount=Decimal("5000")), now=NOW)

        assert response.outcome == SettlementOutcome.APPLIED
        assert response.new_balance == 7500
        mock_user_repo.credit_wallet.assert_awaited_once_with("user_1", 5000)
        event_types = [c.args[1] for c in mock_notifier.notify.await_args_list]
        assert EventType.WALLET_CREDITED in event_types

    async def test_course_payment_enrolls_user(self, settlement, mock_transaction_repo, mock_user_repo):
        mock_transaction_repo.get_by_tx_ref = AsyncMock(
            return_value=Transaction(
                id="txn_3",
                user_id="user_1",
                transaction_type=TransactionType.COURSE_ENROLLMENT,
                amount=1500,
                tx_ref="course_1",
                course_id="course_42",
            )
        )

        response = await settlement.settle(_command(tx_ref="course_1", amount=Decimal("1500")), now=NOW)

        assert response.outcome == SettlementOutcome.APPLIED
        mock_user_repo.add_enrollment.assert_awaited_once_with("user_1", "course_42", transaction_id="txn_3")


@pytest.mark.asyncio
class TestRecordFailure:

    async def test_marks_failed_and_records_reason(
        self, settlement, mock_transaction_repo, sample_user, mock_notifier
    ):
        response = await settlement.record_failure(
            PaymentFailureCommandDTO(tx_ref="SUB_1", status="failed", reason="Insufficient funds"),
            now=NOW,
        )

        assert response.outcome == SettlementOutcome.FAILURE_RECORDED
        assert response.status == "failed"
        mock_transaction_repo.mark_resolved.assert_awaited_once_with(
            "txn_1",
            TransactionStatus.FAILED,
            provider_transaction_id=None,
            failure_reason="Insufficient funds",
        )
        assert sample_user.subscription_failure_reason == "Insufficient funds"
        assert sample_user.pending_subscription_transaction_id is None
        assert sample_user.is_pro is False
        assert mock_notifier.notify.await_args.args[1] == EventType.PAYMENT_FAILED

    async def test_terminal_transaction_is_left_alone(self, settlement, subscription_txn, mock_transaction_repo):
        subscription_txn.status = TransactionStatus.SUCCESSFUL

        response = await settlement.record_failure(PaymentFailureCommandDTO(tx_ref="SUB_1"))

        assert response.outcome == SettlementOutcome.ALREADY_PROCESSED
        mock_transaction_repo.mark_resolved.assert_not_awaited()

    async def test_cancelled_status(self, settlement, mock_transaction_repo):
        response = await settlement.record_failure(
            PaymentFailureCommandDTO(tx_ref="SUB_1", status="cancelled", reason="User cancelled")
        )

        assert response.status == "cancelled"

"""Integration tests for Subscription API endpoints and the payment webhook"""

import json
import pytest
from datetime import datetime, timedelta
from httpx import AsyncClient
from sqlmodel import select

from src.domain.transaction import Transaction, TransactionStatus
from src.domain.user import SubscriptionStatus, User

USER_HEADERS = {"X-User-Id": "user_1"}


def _charge_completed(tx_ref, amount, currency="NGN", status="successful", provider_id=4975432):
    return json.dumps({
        "event": "charge.completed",
        "data": {
            "id": provider_id,
            "tx_ref": tx_ref,
            "status": status,
            "amount": amount,
            "currency": currency,
            "payment_type": "card",
            "processor_response": "Approved" if status == "successful" else "Insufficient funds",
        },
    }).encode()


async def _subscribe(client: AsyncClient, plan_id: str) -> dict:
    response = await client.post(
        "/subscriptions/subscribe",
        json={"plan_id": plan_id},
        headers=USER_HEADERS,
    )
    assert response.status_code == 201
    return response.json()


async def _transaction(session_factory, tx_ref: str) -> Transaction:
    async with session_factory() as session:
        result = await session.execute(select(Transaction).where(Transaction.tx_ref == tx_ref))
        return result.scalar_one()


class TestSubscribeAPIIntegration:
    """Subscription initiation"""

    @pytest.mark.asyncio
    async def test_subscribe_creates_pending_transaction(self, client: AsyncClient, user, pro_plan, session_factory):
        """Given a free user, when subscribing, then a pending transaction snapshots the plan"""
        # Act
        data = await _subscribe(client, pro_plan.id)

        # Assert
        assert data["tx_ref"].startswith("SUB_user_1_")
        assert data["payment_link"].startswith("http://test/sandbox/checkout/")
        assert data["amount"] == 3000
        assert data["plan"]["name"] == "Pro Monthly"

        txn = await _transaction(session_factory, data["tx_ref"])
        assert txn.status == TransactionStatus.PENDING
        assert txn.amount == 3000
        assert txn.plan_name == "Pro Monthly"

    @pytest.mark.asyncio
    async def test_subscribe_requires_identity(self, client: AsyncClient, pro_plan):
        """Given no X-User-Id header, when subscribing, then 401"""
        response = await client.post("/subscriptions/subscribe", json={"plan_id": pro_plan.id})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_subscribe_unknown_plan(self, client: AsyncClient, user):
        """Given an unknown plan id, when subscribing, then 404"""
        response = await client.post(
            "/subscriptions/subscribe", json={"plan_id": "missing"}, headers=USER_HEADERS
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "PLAN_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_subscribe_twice_while_active(self, client: AsyncClient, db_session, user, pro_plan):
        """Given an active Pro user, when subscribing again, then 400 ALREADY_SUBSCRIBED"""
        # Arrange
        user.is_pro = True
        user.subscription_status = SubscriptionStatus.ACTIVE
        user.subscription_end_date = datetime.utcnow() + timedelta(days=10)
        db_session.add(user)
        await db_session.commit()

        # Act
        response = await client.post(
            "/subscriptions/subscribe", json={"plan_id": pro_plan.id}, headers=USER_HEADERS
        )

        # Assert
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "ALREADY_SUBSCRIBED"


class TestWebhookAPIIntegration:
    """Webhook reconciliation end to end"""

    @pytest.mark.asyncio
    async def test_successful_charge_activates_pro(self, client: AsyncClient, user, pro_plan, load, session_factory, webhook_headers):
        """Given a pending subscription, when charge.completed arrives, then the user is Pro"""
        # Arrange
        subscription = await _subscribe(client, pro_plan.id)
        before = datetime.utcnow()

        # Act
        response = await client.post(
            "/subscriptions/webhook",
            content=_charge_completed(subscription["tx_ref"], 30),
            headers={**webhook_headers, "Content-Type": "application/json"},
        )

        # Assert
        assert response.status_code == 200
        assert response.json()["outcome"] == "applied"

        refreshed = await load(User, "user_1")
        assert refreshed.is_pro is True
        assert refreshed.subscription_status == SubscriptionStatus.ACTIVE
        assert refreshed.subscription_plan_id == pro_plan.id
        assert refreshed.subscription_end_date > before + timedelta(days=27)
        assert refreshed.last_payment_reference == subscription["tx_ref"]

        txn = await _transaction(session_factory, subscription["tx_ref"])
        assert txn.status == TransactionStatus.SUCCESSFUL
        assert txn.provider_transaction_id == "4975432"

        status_response = await client.get("/subscriptions/my-subscription", headers=USER_HEADERS)
        assert status_response.status_code == 200
        assert status_response.json()["is_pro"] is True
        assert status_response.json()["status"] == "active"
        assert status_response.json()["plan"]["id"] == pro_plan.id

    @pytest.mark.asyncio
    async def test_duplicate_delivery_is_applied_once(self, client: AsyncClient, user, pro_plan, load, webhook_headers):
        """Given a settled payment, when the same webhook is redelivered, then nothing changes"""
        # Arrange
        subscription = await _subscribe(client, pro_plan.id)
        body = _charge_completed(subscription["tx_ref"], 30)
        first = await client.post("/subscriptions/webhook", content=body, headers=webhook_headers)
        end_after_first = (await load(User, "user_1")).subscription_end_date

        # Act
        second = await client.post("/subscriptions/webhook", content=body, headers=webhook_headers)

        # Assert
        assert first.json()["outcome"] == "applied"
        assert second.status_code == 200
        assert second.json()["outcome"] == "already_processed"
        assert (await load(User, "user_1")).subscription_end_date == end_after_first

    @pytest.mark.asyncio
    async def test_amount_mismatch_is_rejected_and_flagged(self, client: AsyncClient, user, pro_plan, load, session_factory, webhook_headers):
        """Given a pending 3000 kobo payment, when the provider reports 25 NGN (2500 kobo), then nothing is applied"""
        # Arrange
        subscription = await _subscribe(client, pro_plan.id)

        # Act
        response = await client.post(
            "/subscriptions/webhook",
            content=_charge_completed(subscription["tx_ref"], 25),
            headers=webhook_headers,
        )

        # Assert
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "AMOUNT_MISMATCH"

        txn = await _transaction(session_factory, subscription["tx_ref"])
        assert txn.status == TransactionStatus.PENDING
        assert txn.requires_reconciliation is True
        assert (await load(User, "user_1")).is_pro is False

    @pytest.mark.asyncio
    async def test_invalid_signature_changes_nothing(self, client: AsyncClient, user, pro_plan, load, session_factory):
        """Given a wrong verif-hash, when the webhook arrives, then 401 and no state change"""
        # Arrange
        subscription = await _subscribe(client, pro_plan.id)

        # Act
        response = await client.post(
            "/subscriptions/webhook",
            content=_charge_completed(subscription["tx_ref"], 30),
            headers={"verif-hash": "forged"},
        )
        missing = await client.post(
            "/subscriptions/webhook",
            content=_charge_completed(subscription["tx_ref"], 30),
        )

        # Assert
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_SIGNATURE"
        assert missing.status_code == 401
        txn = await _transaction(session_factory, subscription["tx_ref"])
        assert txn.status == TransactionStatus.PENDING
        assert (await load(User, "user_1")).is_pro is False

    @pytest.mark.asyncio
    async def test_failed_charge_marks_transaction_failed(self, client: AsyncClient, user, pro_plan, load, session_factory, webhook_headers):
        """Given a pending payment, when the provider reports failure, then the transaction fails"""
        # Arrange
        subscription = await _subscribe(client, pro_plan.id)

        # Act
        response = await client.post(
            "/subscriptions/webhook",
            content=_charge_completed(subscription["tx_ref"], 30, status="failed"),
            headers=webhook_headers,
        )

        # Assert
        assert response.status_code == 200
        assert response.json()["outcome"] == "failure_recorded"
        txn = await _transaction(session_factory, subscription["tx_ref"])
        assert txn.status == TransactionStatus.FAILED
        assert txn.failure_reason == "Insufficient funds"
        assert (await load(User, "user_1")).is_pro is False

    @pytest.mark.asyncio
    async def test_success_after_recorded_failure_is_flagged(self, client: AsyncClient, user, pro_plan, load, session_factory, webhook_headers):
        """Given a payment recorded as failed, when the provider then reports it successful, then it is flagged, not applied"""
        # Arrange
        subscription = await _subscribe(client, pro_plan.id)
        await client.post(
            "/subscriptions/webhook",
            content=_charge_completed(subscription["tx_ref"], 30, status="failed"),
            headers=webhook_headers,
        )

        # Act
        response = await client.post(
            "/subscriptions/webhook",
            content=_charge_completed(subscription["tx_ref"], 30),
            headers=webhook_headers,
        )

        # Assert
        assert response.status_code == 200
        assert response.json()["outcome"] == "manual_reconciliation"
        txn = await _transaction(session_factory, subscription["tx_ref"])
        assert txn.status == TransactionStatus.FAILED
        assert txn.requires_reconciliation is True
        assert (await load(User, "user_1")).is_pro is False

    @pytest.mark.asyncio
    async def test_other_events_are_acknowledged(self, client: AsyncClient, webhook_headers):
        """Given a non-charge event, when it arrives, then it is acknowledged and ignored"""
        body = json.dumps({"event": "transfer.completed", "data": {"id": 1}}).encode()

        response = await client.post(
            "/subscriptions/webhook", content=body, headers=webhook_headers
        )

        assert response.status_code == 200
        assert response.json()["outcome"] == "ignored"

    @pytest.mark.asyncio
    async def test_malformed_payload(self, client: AsyncClient, webhook_headers):
        """Given a correctly signed but unparsable body, when it arrives, then 400"""
        response = await client.post(
            "/subscriptions/webhook", content=b"not json", headers=webhook_headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PAYLOAD"


class TestVerifySubscriptionAPIIntegration:
    """Client-driven verification fallback"""

    @pytest.mark.asyncio
    async def test_verify_applies_payment(self, client: AsyncClient, user, pro_plan, load):
        """Given a sandbox checkout, when the client verifies, then the subscription activates"""
        # Arrange
        subscription = await _subscribe(client, pro_plan.id)
        provider_id = subscription["payment_link"].split("transaction_id=")[1]

        # Act
        response = await client.post(
            "/subscriptions/verify",
            json={"tx_ref": subscription["tx_ref"], "transaction_id": provider_id},
            headers=USER_HEADERS,
        )

        # Assert
        assert response.status_code == 200
        assert response.json()["outcome"] == "applied"
        assert (await load(User, "user_1")).is_pro is True

    @pytest.mark.asyncio
    async def test_verify_after_webhook_is_idempotent(self, client: AsyncClient, user, pro_plan, load, webhook_headers):
        """Given the webhook already settled, when the client verifies, then already_processed"""
        # Arrange
        subscription = await _subscribe(client, pro_plan.id)
        provider_id = subscription["payment_link"].split("transaction_id=")[1]
        await client.post(
            "/subscriptions/webhook",
            content=_charge_completed(subscription["tx_ref"], 30, provider_id=provider_id),
            headers=webhook_headers,
        )
        end_date = (await load(User, "user_1")).subscription_end_date

        # Act
        response = await client.post(
            "/subscriptions/verify",
            json={"tx_ref": subscription["tx_ref"], "transaction_id": provider_id},
            headers=USER_HEADERS,
        )

        # Assert
        assert response.status_code == 200
        assert response.json()["outcome"] == "already_processed"
        assert (await load(User, "user_1")).subscription_end_date == end_date

    @pytest.mark.asyncio
    async def test_verify_someone_elses_transaction(self, client: AsyncClient, db_session, user, pro_plan):
        """Given another user's tx_ref, when verifying, then 404"""
        # Arrange
        subscription = await _subscribe(client, pro_plan.id)
        db_session.add(User(id="user_2", email="other@example.com"))
        await db_session.commit()

        # Act
        response = await client.post(
            "/subscriptions/verify",
            json={"tx_ref": subscription["tx_ref"], "transaction_id": "SBX-1"},
            headers={"X-User-Id": "user_2"},
        )

        # Assert
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "TRANSACTION_NOT_FOUND"


class TestSubscriptionManagementAPIIntegration:
    """Cancel, auto-renewal and payment methods"""

    @pytest.mark.asyncio
    async def test_cancel_keeps_access_until_end_date(self, client: AsyncClient, db_session, user, pro_plan, load):
        """Given an active Pro user, when cancelling, then Pro stays until the end date"""
        # Arrange
        end_date = datetime.utcnow() + timedelta(days=12)
        user.is_pro = True
        user.subscription_status = SubscriptionStatus.ACTIVE
        user.subscription_plan_id = pro_plan.id
        user.subscription_end_date = end_date
        db_session.add(user)
        await db_session.commit()

        # Act
        response = await client.post("/subscriptions/cancel", headers=USER_HEADERS)

        # Assert
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert response.json()["is_pro"] is True

        refreshed = await load(User, "user_1")
        assert refreshed.subscription_status == SubscriptionStatus.CANCELLED
        assert refreshed.auto_renewal is False
        assert refreshed.is_pro is True
        assert refreshed.subscription_end_date == end_date

    @pytest.mark.asyncio
    async def test_auto_renewal_toggle(self, client: AsyncClient, user, load):
        response = await client.put(
            "/subscriptions/auto-renewal", json={"enabled": False}, headers=USER_HEADERS
        )

        assert response.status_code == 200
        assert response.json()["auto_renewal"] is False
        assert (await load(User, "user_1")).auto_renewal is False

    @pytest.mark.asyncio
    async def test_first_payment_method_becomes_primary(self, client: AsyncClient, user):
        response = await client.post(
            "/subscriptions/payment-methods",
            json={"provider_token": "flw-t1nf-abc", "brand": "visa", "last4": "4242"},
            headers=USER_HEADERS,
        )

        assert response.status_code == 201
        assert response.json()["is_primary"] is True
        assert response.json()["last4"] == "4242"

    @pytest.mark.asyncio
    async def test_list_active_plans(self, client: AsyncClient, pro_plan):
        response = await client.get("/subscription-plans")

        assert response.status_code == 200
        assert [plan["name"] for plan in response.json()] == ["Pro Monthly"]

"""Subscription Lifecycle Background Worker

Runs the expiry sweep and the auto-renewal sweep on a fixed cadence.
Can be run as a standalone script or started by the API's ServiceContainer.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.repositories.user_repository import SqlAlchemyUserRepository
from src.adapter.repositories.subscription_plan_repository import SqlAlchemySubscriptionPlanRepository
from src.adapter.repositories.transaction_repository import SqlAlchemyTransactionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.services.notification_service import NotificationService
from src.app.services.payment_gateway import PaymentGateway, PaymentGatewayTimeout
from src.app.services.retry import RetryPolicy
from src.app.use_cases.subscriptions import (
    ExpireSubscriptions,
    RenewSubscription,
    ExpirySweepResultDTO,
    LifecycleRunResultDTO,
    RenewalOutcome,
    RenewalResultDTO,
    RenewalSweepResultDTO,
)

logger = logging.getLogger(__name__)


class SubscriptionLifecycleWorker:
    """
    Background worker for subscription expiry and auto-renewal

    Features:
    - Expires Pro users whose end date has passed (idempotent)
    - Renews active, auto-renewing users whose end date falls inside the lookahead window
    - Each renewal runs in its own session; one user's failure never aborts the sweep
    - Can run once, continuously, or as an asyncio task (start/stop)

    Usage:
        # Run once
        worker = SubscriptionLifecycleWorker(gateway, notifier)
        result = await worker.run_once()

        # Run continuously
        await worker.run_forever(interval_seconds=86400)  # Daily
    """

    def __init__(
        self,
        gateway: PaymentGateway,
        notifier: NotificationService,
        session_factory: Optional[sessionmaker] = None,
        db_uri: Optional[str] = None,
        lookahead_days: Optional[int] = None,
        interval_seconds: Optional[int] = None,
        charge_retry_policy: Optional[RetryPolicy] = None,
    ):
        """
        Initialize the worker

        Args:
            gateway: Payment gateway used for renewal charges
            notifier: Notification dispatcher for lifecycle events
            session_factory: Session factory to share (creates its own engine when omitted)
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            lookahead_days: Renewal window in days (defaults to RENEWAL_LOOKAHEAD_DAYS)
            interval_seconds: Cadence for run_forever/start
            charge_retry_policy: Retry policy for gateway timeouts during renewal charges
        """
        self.engine = None
        if session_factory is None:
            self.db_uri = db_uri or ApplicationConfig.DB_URI
            self.engine = create_async_engine(self.db_uri, echo=False, future=True)
            session_factory = sessionmaker(
                self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
            )
        self.async_session_factory = session_factory

        self.gateway = gateway
        self.notifier = notifier
        self.lookahead_days = (
            lookahead_days if lookahead_days is not None else int(ApplicationConfig.RENEWAL_LOOKAHEAD_DAYS)
        )
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else int(ApplicationConfig.SUBSCRIPTION_SWEEP_INTERVAL_SECONDS)
        )
        self.charge_retry_policy = charge_retry_policy or RetryPolicy(
            max_retries=ApplicationConfig.RENEWAL_CHARGE_MAX_RETRIES,
            retry_on=(PaymentGatewayTimeout,),
        )
        self._task: Optional[asyncio.Task] = None

        logger.info("SubscriptionLifecycleWorker initialized")

    async def run_expiry_sweep(self, now: Optional[datetime] = None) -> ExpirySweepResultDTO:
        """Expire every Pro user whose subscription end date has passed"""
        async with self.async_session_factory() as session:
            use_case = ExpireSubscriptions(
                uow=SqlAlchemyUnitOfWork(session),
                user_repo=SqlAlchemyUserRepository(session),
                notifier=self.notifier,
            )
            result = await use_case.execute(now)

        if result.is_err():
            logger.error(f"Expiry sweep failed: {result.error.message}")
            raise RuntimeError(f"Expiry sweep failed: {result.error.message}")

        return result.value

    async def run_renewal_sweep(self, now: Optional[datetime] = None) -> RenewalSweepResultDTO:
        """
        Attempt renewal for every candidate inside the lookahead window

        Candidates are loaded first; each attempt then gets a fresh session.
        """
        now = now or datetime.utcnow()
        cutoff = now + timedelta(days=self.lookahead_days)

        async with self.async_session_factory() as session:
            candidates = await SqlAlchemyUserRepository(session).get_renewal_candidates(now, cutoff)
            user_ids = [user.id for user in candidates]

        logger.info(f"Renewal sweep: {len(user_ids)} candidates due before {cutoff.isoformat()}")

        results = []
        failed = 0
        for user_id in user_ids:
            outcome = await self._renew_one(user_id, now)
            if outcome is None:
                failed += 1
            else:
                results.append(outcome)

        response = RenewalSweepResultDTO(
            checked=len(user_ids),
            renewed=sum(1 for r in results if r.outcome == RenewalOutcome.RENEWED),
            past_due=sum(1 for r in results if r.outcome == RenewalOutcome.PAST_DUE),
            skipped=sum(1 for r in results if r.outcome == RenewalOutcome.SKIPPED),
            failed=failed,
            results=results,
        )
        logger.info(
            f"Renewal sweep complete: renewed={response.renewed}, past_due={response.past_due}, "
            f"skipped={response.skipped}, failed={response.failed}"
        )
        return response

    async def _renew_one(self, user_id: str, now: datetime) -> Optional[RenewalResultDTO]:
        try:
            async with self.async_session_factory() as session:
                use_case = RenewSubscription(
                    uow=SqlAlchemyUnitOfWork(session),
                    user_repo=SqlAlchemyUserRepository(session),
                    plan_repo=SqlAlchemySubscriptionPlanRepository(session),
                    transaction_repo=SqlAlchemyTransactionRepository(session),
                    gateway=self.gateway,
                    notifier=self.notifier,
                    retry_policy=self.charge_retry_policy,
                )
                result = await use_case.execute(user_id, now=now)
        except Exception as e:
            logger.error(f"Renewal for user {user_id} crashed: {e}")
            return None

        if result.is_err():
            logger.error(f"Renewal for user {user_id} failed: {result.error.message} ({result.error.reason})")
            return None
        return result.value

    async def run_once(self, now: Optional[datetime] = None) -> LifecycleRunResultDTO:
        """
        Run the expiry sweep, then the renewal sweep

        Returns:
            LifecycleRunResultDTO with both sweep results
        """
        start_time = time.time()
        now = now or datetime.utcnow()

        expiry = await self.run_expiry_sweep(now)
        renewal = await self.run_renewal_sweep(now)

        return LifecycleRunResultDTO(
            expiry=expiry,
            renewal=renewal,
            execution_time_ms=int((time.time() - start_time) * 1000),
        )

    async def run_forever(self, interval_seconds: Optional[int] = None):
        """
        Run both sweeps continuously at the specified interval

        Args:
            interval_seconds: Seconds between runs (default: configured cadence)
        """
        interval_seconds = interval_seconds or self.interval_seconds
        logger.info(f"Starting subscription lifecycle sweeps with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Lifecycle cycle complete. "
                    f"Expired {result.expiry.expired}/{result.expiry.checked}, "
                    f"renewed {result.renewal.renewed}/{result.renewal.checked} "
                    f"in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Lifecycle cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    def start(self) -> None:
        """Schedule run_forever on the running event loop"""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self.run_forever())
        logger.info("Subscription lifecycle scheduler started")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def stop(self) -> None:
        """Cancel the scheduled task, if any"""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Subscription lifecycle scheduler stopped")

    async def shutdown(self):
        """Cleanup resources"""
        await self.stop()
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("SubscriptionLifecycleWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Run once
        python -m src.worker.subscription_lifecycle --once

        # Run continuously (default: daily)
        python -m src.worker.subscription_lifecycle

        # Run continuously with custom interval (in seconds)
        python -m src.worker.subscription_lifecycle --interval 3600
    """
    import argparse
    from src.adapter.services.notification_service import create_notification_service
    from src.adapter.services.payment_gateway import create_payment_gateway

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Subscription Lifecycle Worker")
    parser.add_argument(
        "--once", action="store_true", help="Run once and exit"
    )
    parser.add_argument(
        "--interval", type=int, default=int(ApplicationConfig.SUBSCRIPTION_SWEEP_INTERVAL_SECONDS),
        help="Interval between runs in seconds (default: 86400 = 24 hours)"
    )
    args = parser.parse_args()

    gateway = create_payment_gateway(
        ApplicationConfig.PAYMENT_GATEWAY_MODE,
        secret_key=ApplicationConfig.FLUTTERWAVE_SECRET_KEY,
        base_url=ApplicationConfig.FLUTTERWAVE_BASE_URL,
        timeout=ApplicationConfig.PAYMENT_GATEWAY_TIMEOUT_SECONDS,
    )
    notifier = create_notification_service(webhook_url=ApplicationConfig.NOTIFICATION_WEBHOOK_URL)
    worker = SubscriptionLifecycleWorker(gateway, notifier)

    try:
        if args.once:
            result = await worker.run_once()
            print("Subscription lifecycle run complete:")
            print(f"  Expired: {result.expiry.expired} of {result.expiry.checked} (failed: {result.expiry.failed})")
            print(
                f"  Renewals: {result.renewal.renewed} renewed, {result.renewal.past_due} past due, "
                f"{result.renewal.skipped} skipped, {result.renewal.failed} failed"
            )
            print(f"  Execution time: {result.execution_time_ms}ms")
            for r in result.renewal.results:
                if r.outcome == RenewalOutcome.PAST_DUE:
                    print(f"  - User {r.user_id}: past due ({r.error_reason})")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()
        await gateway.close()


if __name__ == "__main__":
    asyncio.run(main())

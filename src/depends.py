import logging
from typing import Optional
from fastapi import Request
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from src.adapter.services.notification_service import create_notification_service
from src.adapter.services.payment_gateway import create_payment_gateway
from src.adapter.services.plan_cache import create_plan_cache
from src.adapter.services.realtime_broker import RealtimeBroker
from src.app.errors import IntegrityViolation
from src.app.services.notification_service import NotificationService
from src.app.services.payment_gateway import PaymentGateway, PaymentGatewayTimeout
from src.app.services.plan_cache import PlanCache
from src.app.services.retry import RetryPolicy
from src.app.services.webhook_signature import WebhookSignatureVerifier
from src.app.use_cases.payments.settle_payment import SettlePayment
from src.adapter.repositories.user_repository import SqlAlchemyUserRepository
from src.adapter.repositories.subscription_plan_repository import SqlAlchemySubscriptionPlanRepository
from src.adapter.repositories.transaction_repository import SqlAlchemyTransactionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.worker.subscription_lifecycle import SubscriptionLifecycleWorker

logger = logging.getLogger(__name__)

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


async def create_tables(bind=None) -> None:
    async with (bind or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


class ServiceContainer:
    """
    Process-wide collaborators shared by routes and the lifecycle scheduler

    Built once per app in create_app and stored on app.state.container.
    start()/stop() are driven by the app lifespan.
    """

    def __init__(
        self,
        config=ApplicationConfig,
        session_factory: Optional[sessionmaker] = None,
        gateway: Optional[PaymentGateway] = None,
        broker: Optional[RealtimeBroker] = None,
        notifier: Optional[NotificationService] = None,
        plan_cache: Optional[PlanCache] = None,
    ):
        self.config = config
        self.session_factory = session_factory or AsyncSessionLocal
        self.gateway = gateway or create_payment_gateway(
            config.PAYMENT_GATEWAY_MODE,
            secret_key=config.FLUTTERWAVE_SECRET_KEY,
            base_url=config.FLUTTERWAVE_BASE_URL,
            timeout=config.PAYMENT_GATEWAY_TIMEOUT_SECONDS,
        )
        self.broker = broker or RealtimeBroker()
        self.notifier = notifier or create_notification_service(
            webhook_url=config.NOTIFICATION_WEBHOOK_URL,
            broker=self.broker,
        )
        self.plan_cache = plan_cache or create_plan_cache(
            config.CACHE_BACKEND,
            redis_url=config.REDIS_URL,
            ttl_seconds=int(config.PLAN_CACHE_TTL_SECONDS),
        )
        self.webhook_verifier = WebhookSignatureVerifier(
            config.WEBHOOK_SECRET_HASH, config.WEBHOOK_SIGNATURE_MODE
        )
        self.lifecycle_worker = SubscriptionLifecycleWorker(
            gateway=self.gateway,
            notifier=self.notifier,
            session_factory=self.session_factory,
            lookahead_days=int(config.RENEWAL_LOOKAHEAD_DAYS),
            interval_seconds=int(config.SUBSCRIPTION_SWEEP_INTERVAL_SECONDS),
            charge_retry_policy=RetryPolicy(
                max_retries=config.RENEWAL_CHARGE_MAX_RETRIES,
                retry_on=(PaymentGatewayTimeout,),
            ),
        )

    def settlement(self, session: AsyncSession) -> SettlePayment:
        """SettlePayment bound to one request session"""
        return SettlePayment(
            uow=SqlAlchemyUnitOfWork(session),
            user_repo=SqlAlchemyUserRepository(session),
            plan_repo=SqlAlchemySubscriptionPlanRepository(session),
            transaction_repo=SqlAlchemyTransactionRepository(session),
            notifier=self.notifier,
        )

    def webhook_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.config.WEBHOOK_MAX_RETRIES,
            base_delay=self.config.WEBHOOK_RETRY_BASE_DELAY_SECONDS,
            give_up_on=(IntegrityViolation,),
        )

    async def start(self) -> None:
        if self.config.AUTO_CREATE_TABLES:
            await create_tables(self.session_factory.kw.get("bind"))
        if self.config.SUBSCRIPTION_SCHEDULER_ENABLED:
            self.lifecycle_worker.start()
        else:
            logger.info("Subscription scheduler disabled")

    async def stop(self) -> None:
        await self.lifecycle_worker.stop()
        await self.gateway.close()
        await self.plan_cache.close()
        self.broker.close()


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container

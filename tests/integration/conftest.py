from datetime import datetime
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from src.adapter.services.notification_service import LoggingNotificationService
from src.adapter.services.payment_gateway import SandboxPaymentGateway
from src.depends import ServiceContainer, get_session
from src.domain.subscription_plan import PlanDuration, SubscriptionPlan
from src.domain.user import User

WEBHOOK_SECRET = "test-webhook-secret"
ADMIN_TOKEN = "test-admin-token"


class IntegrationConfig(ApplicationConfig):
    WEBHOOK_SECRET_HASH = WEBHOOK_SECRET
    WEBHOOK_RETRY_BASE_DELAY_SECONDS = 0.0
    ADMIN_API_TOKEN = ADMIN_TOKEN
    ENABLE_LOGGING_MIDDLEWARE = False
    SUBSCRIPTION_SCHEDULER_ENABLED = False
    CORS_ORIGINS = []
    CACHE_BACKEND = "memory"


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """File-backed SQLite database, recreated for every test"""
    test_db_url = f"sqlite+aiosqlite:///{tmp_path / 'billing_test.db'}"

    engine = create_async_engine(test_db_url, echo=False, future=True)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Session used by tests to arrange data"""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def load(session_factory):
    """Read an entity back through a fresh session (sees what the API committed)"""

    async def _load(model, entity_id):
        async with session_factory() as session:
            return await session.get(model, entity_id)

    return _load


@pytest_asyncio.fixture
async def gateway():
    return SandboxPaymentGateway(checkout_base_url="http://test/sandbox/checkout")


@pytest_asyncio.fixture
async def container(session_factory, gateway):
    return ServiceContainer(
        IntegrationConfig,
        session_factory=session_factory,
        gateway=gateway,
        notifier=LoggingNotificationService(),
    )


@pytest_asyncio.fixture
async def client(container, session_factory):
    """Test client; every request gets its own session like in production"""
    from src.api.app import create_app

    app = create_app(IntegrationConfig, container)

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def pro_plan(db_session):
    plan = SubscriptionPlan(
        name="Pro Monthly",
        description="All courses, monthly",
        price=3000,
        currency="NGN",
        duration=PlanDuration.MONTHLY,
        features=[{"name": "Unlimited courses"}],
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )
    db_session.add(plan)
    await db_session.commit()
    return plan


@pytest_asyncio.fixture
async def user(db_session):
    user = User(
        id="user_1",
        email="learner@example.com",
        full_name="Ada Learner",
        wallet_balance=0,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def webhook_headers():
    return {"verif-hash": WEBHOOK_SECRET}


@pytest_asyncio.fixture
async def admin_headers():
    return {"X-Admin-Token": ADMIN_TOKEN}

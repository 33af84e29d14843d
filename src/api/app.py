"""FastAPI application factory"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from src.api.error import ClientError, client_error_handler
from src.api.routes import admin, plans, realtime, subscriptions, wallet
from src.depends import ServiceContainer

logger = logging.getLogger(__name__)


def _init_sentry(config) -> None:
    import sentry_sdk

    sentry_sdk.init(
        dsn=config.DSN_SENTRY,
        environment=config.SENTRY_ENVIRONMENT,
        traces_sample_rate=0.0,
    )
    logger.info(f"Sentry enabled for environment {config.SENTRY_ENVIRONMENT}")


def create_app(config, container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the API application

    Args:
        config: ApplicationConfig (or a subclass overriding attributes)
        container: Prebuilt ServiceContainer (tests inject fakes here)
    """
    logging.basicConfig(
        level=getattr(logging, str(config.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if config.ENABLE_SENTRY and config.DSN_SENTRY:
        _init_sentry(config)

    container = container or ServiceContainer(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await container.start()
        try:
            yield
        finally:
            await container.stop()

    app = FastAPI(
        title="SkillSwap Billing Service",
        description="Subscriptions, wallet and payment reconciliation",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.container = container

    if config.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.CORS_ORIGINS,
            allow_credentials=config.CORS_ALLOW_CREDENTIALS,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    if config.ENABLE_LOGGING_MIDDLEWARE:
        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            start_time = time.time()
            response = await call_next(request)
            duration_ms = int((time.time() - start_time) * 1000)
            logger.info(f"{request.method} {request.url.path} {response.status_code} {duration_ms}ms")
            return response

    app.add_exception_handler(ClientError, client_error_handler)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    for router in (plans.router, subscriptions.router, wallet.router, admin.router, realtime.router):
        app.include_router(router, prefix=config.API_PREFIX)

    return app

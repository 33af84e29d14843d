from .unit_of_work import SqlAlchemyUnitOfWork
from .notification_service import (
    LoggingNotificationService,
    RealtimeNotificationService,
    WebhookNotificationService,
    CompositeNotificationService,
    create_notification_service,
)
from .payment_gateway import FlutterwavePaymentGateway, SandboxPaymentGateway, create_payment_gateway
from .realtime_broker import RealtimeBroker
from .plan_cache import InMemoryPlanCache, RedisPlanCache, create_plan_cache

__all__ = [
    "SqlAlchemyUnitOfWork",
    "LoggingNotificationService",
    "RealtimeNotificationService",
    "WebhookNotificationService",
    "CompositeNotificationService",
    "create_notification_service",
    "FlutterwavePaymentGateway",
    "SandboxPaymentGateway",
    "create_payment_gateway",
    "RealtimeBroker",
    "InMemoryPlanCache",
    "RedisPlanCache",
    "create_plan_cache",
]

from .user_repository import SqlAlchemyUserRepository
from .subscription_plan_repository import SqlAlchemySubscriptionPlanRepository
from .transaction_repository import SqlAlchemyTransactionRepository

__all__ = [
    "SqlAlchemyUserRepository",
    "SqlAlchemySubscriptionPlanRepository",
    "SqlAlchemyTransactionRepository",
]

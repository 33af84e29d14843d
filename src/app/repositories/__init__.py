from .user_repository import UserRepository
from .subscription_plan_repository import SubscriptionPlanRepository
from .transaction_repository import TransactionRepository

__all__ = [
    "UserRepository",
    "SubscriptionPlanRepository",
    "TransactionRepository",
]

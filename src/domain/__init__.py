from .base import BaseModel, generate_uuid
from .user import User, PaymentMethod, CourseEnrollment, SubscriptionStatus, PRO_STATUSES
from .subscription_plan import SubscriptionPlan, PlanDuration, add_months, add_billing_period
from .transaction import Transaction, TransactionType, TransactionStatus, generate_tx_ref
from .events import EventType

__all__ = [
    "BaseModel",
    "generate_uuid",
    "User",
    "PaymentMethod",
    "CourseEnrollment",
    "SubscriptionStatus",
    "PRO_STATUSES",
    "SubscriptionPlan",
    "PlanDuration",
    "add_months",
    "add_billing_period",
    "Transaction",
    "TransactionType",
    "TransactionStatus",
    "generate_tx_ref",
    "EventType",
]

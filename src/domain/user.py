"""User Domain Entities

Only the billing-relevant projection of a marketplace user: wallet, subscription
state, stored payment methods and course enrollments.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, UniqueConstraint
from sqlalchemy import CheckConstraint
from src.domain.base import BaseModel, generate_uuid


class SubscriptionStatus(str, Enum):
    """Subscription status types"""
    INACTIVE = "inactive"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# Statuses under which a user keeps Pro access until subscription_end_date
PRO_STATUSES = (
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.PAST_DUE,
    SubscriptionStatus.CANCELLED,
)


class User(BaseModel, table=True):
    """
    User - wallet and subscription state

    Domain Rules:
    - wallet_balance >= 0 (enforced by check constraint and conditional updates)
    - is_pro implies subscription_end_date is set
    - Wallet is mutated only through wallet and settlement use cases
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint('wallet_balance >= 0', name='wallet_balance_non_negative'),
        CheckConstraint('total_earnings >= 0', name='total_earnings_non_negative'),
        CheckConstraint('total_spent >= 0', name='total_spent_non_negative'),
    )

    id: str = Field(default_factory=generate_uuid, primary_key=True)

    email: str = Field(index=True, unique=True)

    full_name: str = Field(default="")

    wallet_balance: int = Field(default=0, description="Spendable balance (minor units)")

    total_earnings: int = Field(default=0)

    total_spent: int = Field(default=0)

    is_pro: bool = Field(default=False, index=True)

    subscription_status: SubscriptionStatus = Field(default=SubscriptionStatus.INACTIVE, index=True)

    subscription_plan_id: Optional[str] = Field(default=None, foreign_key="subscription_plans.id")

    subscription_start_date: Optional[datetime] = Field(default=None)

    subscription_end_date: Optional[datetime] = Field(default=None, index=True)

    subscription_cancelled_at: Optional[datetime] = Field(default=None)

    subscription_failure_reason: Optional[str] = Field(default=None)

    auto_renewal: bool = Field(default=True)

    pending_subscription_transaction_id: Optional[str] = Field(default=None)

    last_payment_reference: Optional[str] = Field(default=None)

    last_payment_amount: Optional[int] = Field(default=None)

    last_payment_date: Optional[datetime] = Field(default=None)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    updated_at: datetime = Field(default_factory=datetime.utcnow)


class PaymentMethod(BaseModel, table=True):
    """Tokenised payment method used for recurring charges"""

    __tablename__ = "payment_methods"

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    provider_token: str = Field(description="Provider-issued card token")
    brand: Optional[str] = Field(default=None)
    last4: Optional[str] = Field(default=None, max_length=4)
    is_primary: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class CourseEnrollment(BaseModel, table=True):
    """Membership of a user in a course's enrolled set"""

    __tablename__ = "course_enrollments"
    __table_args__ = (
        UniqueConstraint('user_id', 'course_id', name='uq_enrollment_user_course'),
    )

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    course_id: str = Field(index=True)
    transaction_id: Optional[str] = Field(default=None)
    enrolled_at: datetime = Field(default_factory=datetime.utcnow)

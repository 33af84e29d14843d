"""Subscription Plan Domain Entity

Plan catalog entries and the calendar arithmetic used to compute billing periods.
"""

import calendar
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List
from sqlmodel import Field, Column
from sqlalchemy import CheckConstraint, JSON, String
from src.domain.base import BaseModel, generate_uuid


class PlanDuration(str, Enum):
    """Billing period of a plan"""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    @property
    def months(self) -> int:
        return {
            PlanDuration.MONTHLY: 1,
            PlanDuration.QUARTERLY: 3,
            PlanDuration.YEARLY: 12,
        }[self]


def add_months(value: datetime, months: int) -> datetime:
    """
    Add calendar months, clamping the day to the end of the target month

    2024-01-31 + 1 month -> 2024-02-29, 2023-01-31 + 1 month -> 2023-02-28.
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    _, last_day = calendar.monthrange(year, month)
    return value.replace(year=year, month=month, day=min(value.day, last_day))


def add_billing_period(value: datetime, duration: PlanDuration) -> datetime:
    """Advance a timestamp by one billing period of the given duration"""
    return add_months(value, PlanDuration(duration).months)


class SubscriptionPlan(BaseModel, table=True):
    """
    Subscription Plan - catalog entry users subscribe to

    Domain Rules:
    - name is unique
    - price is non-negative (minor currency units)
    - Past transactions keep their own plan/price snapshot, so editing a plan
      never alters historical records
    """

    __tablename__ = "subscription_plans"
    __table_args__ = (
        CheckConstraint('price >= 0', name='plan_price_non_negative'),
    )

    id: str = Field(default_factory=generate_uuid, primary_key=True)

    name: str = Field(
        sa_column=Column(String(100), nullable=False, unique=True),
        description="Unique plan name"
    )

    description: str = Field(default="", description="Plan description")

    price: int = Field(description="Price per billing period in minor currency units")

    currency: str = Field(default="NGN", max_length=3)

    duration: PlanDuration = Field(description="Billing period (monthly, quarterly, yearly)")

    features: List[Dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False, default=list),
    )

    limits: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False, default=dict),
    )

    is_active: bool = Field(default=True, index=True)

    sort_order: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    updated_at: datetime = Field(default_factory=datetime.utcnow)

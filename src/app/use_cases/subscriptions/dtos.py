"""Data Transfer Objects for subscription use cases"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from src.domain.subscription_plan import PlanDuration


class PlanDTO(BaseModel):
    id: str
    name: str
    description: str
    price: int
    currency: str
    duration: str
    features: List[Dict[str, Any]] = Field(default_factory=list)
    limits: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool
    sort_order: int = 0


class CreatePlanCommandDTO(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="")
    price: int = Field(..., ge=0, description="Price per period in minor units")
    currency: str = Field(default="NGN", min_length=3, max_length=3)
    duration: PlanDuration
    features: List[Dict[str, Any]] = Field(default_factory=list)
    limits: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    sort_order: int = 0

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Pro Monthly",
                "description": "Unlimited courses and AI assistant",
                "price": 2500,
                "currency": "NGN",
                "duration": "monthly",
                "features": [{"name": "AI assistant", "included": True}],
                "limits": {"courses": -1},
            }
        }


class UpdatePlanCommandDTO(BaseModel):
    """Partial update; unset fields are left unchanged"""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[int] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    duration: Optional[PlanDuration] = None
    features: Optional[List[Dict[str, Any]]] = None
    limits: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class SubscribeCommandDTO(BaseModel):
    user_id: str
    plan_id: str = Field(..., min_length=1)


class SubscribeResponseDTO(BaseModel):
    tx_ref: str
    payment_link: str
    plan: PlanDTO
    amount: int
    currency: str


class MySubscriptionResponseDTO(BaseModel):
    is_pro: bool
    status: str
    plan: Optional[PlanDTO] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    days_remaining: int = 0
    auto_renewal: bool
    cancelled_at: Optional[datetime] = None
    error_reason: Optional[str] = None
    pending_transaction_id: Optional[str] = None
    last_payment_reference: Optional[str] = None
    last_payment_amount: Optional[int] = None
    last_payment_date: Optional[datetime] = None


class CancelResponseDTO(BaseModel):
    status: str
    is_pro: bool
    end_date: Optional[datetime] = None
    message: str


class AutoRenewalResponseDTO(BaseModel):
    auto_renewal: bool


class AddPaymentMethodCommandDTO(BaseModel):
    user_id: str
    provider_token: str = Field(..., min_length=1)
    brand: Optional[str] = None
    last4: Optional[str] = Field(default=None, min_length=4, max_length=4)
    is_primary: bool = False


class PaymentMethodResponseDTO(BaseModel):
    id: str
    brand: Optional[str] = None
    last4: Optional[str] = None
    is_primary: bool
    created_at: datetime


class RenewalOutcome:
    RENEWED = "renewed"
    PAST_DUE = "past_due"
    SKIPPED = "skipped"


class RenewalResultDTO(BaseModel):
    user_id: str
    outcome: str
    tx_ref: Optional[str] = None
    new_end_date: Optional[datetime] = None
    error_reason: Optional[str] = None


class ExpirySweepResultDTO(BaseModel):
    checked: int
    expired: int
    failed: int
    expired_user_ids: List[str] = Field(default_factory=list)


class RenewalSweepResultDTO(BaseModel):
    checked: int
    renewed: int
    past_due: int
    skipped: int
    failed: int
    results: List[RenewalResultDTO] = Field(default_factory=list)


class LifecycleRunResultDTO(BaseModel):
    expiry: ExpirySweepResultDTO
    renewal: RenewalSweepResultDTO
    execution_time_ms: int


class RevenueByPlanDTO(BaseModel):
    plan_name: str
    count: int
    revenue: int


class SubscriptionAnalyticsDTO(BaseModel):
    total_pro_users: int
    active: int
    past_due: int
    cancelled: int
    expired: int
    inactive: int
    revenue_by_plan: List[RevenueByPlanDTO]
    generated_at: datetime

"""Subscription use cases"""
from .plans import ListPlans, CreatePlan, UpdatePlan, to_plan_dto
from .initiate_subscription import InitiateSubscription
from .get_my_subscription import GetMySubscription
from .cancel_subscription import CancelSubscription
from .update_auto_renewal import UpdateAutoRenewal
from .add_payment_method import AddPaymentMethod
from .expire_subscriptions import ExpireSubscriptions
from .renew_subscription import RenewSubscription
from .subscription_analytics import SubscriptionAnalytics
from .dtos import (
    PlanDTO,
    CreatePlanCommandDTO,
    UpdatePlanCommandDTO,
    SubscribeCommandDTO,
    SubscribeResponseDTO,
    MySubscriptionResponseDTO,
    CancelResponseDTO,
    AutoRenewalResponseDTO,
    AddPaymentMethodCommandDTO,
    PaymentMethodResponseDTO,
    RenewalOutcome,
    RenewalResultDTO,
    ExpirySweepResultDTO,
    RenewalSweepResultDTO,
    LifecycleRunResultDTO,
    RevenueByPlanDTO,
    SubscriptionAnalyticsDTO,
)

__all__ = [
    "ListPlans",
    "CreatePlan",
    "UpdatePlan",
    "to_plan_dto",
    "InitiateSubscription",
    "GetMySubscription",
    "CancelSubscription",
    "UpdateAutoRenewal",
    "AddPaymentMethod",
    "ExpireSubscriptions",
    "RenewSubscription",
    "SubscriptionAnalytics",
    "PlanDTO",
    "CreatePlanCommandDTO",
    "UpdatePlanCommandDTO",
    "SubscribeCommandDTO",
    "SubscribeResponseDTO",
    "MySubscriptionResponseDTO",
    "CancelResponseDTO",
    "AutoRenewalResponseDTO",
    "AddPaymentMethodCommandDTO",
    "PaymentMethodResponseDTO",
    "RenewalOutcome",
    "RenewalResultDTO",
    "ExpirySweepResultDTO",
    "RenewalSweepResultDTO",
    "LifecycleRunResultDTO",
    "RevenueByPlanDTO",
    "SubscriptionAnalyticsDTO",
]

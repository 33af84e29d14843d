"""Background workers for the billing service"""
from .ledger_reconciler import LedgerReconcilerWorker
from .subscription_lifecycle import SubscriptionLifecycleWorker

__all__ = ["LedgerReconcilerWorker", "SubscriptionLifecycleWorker"]

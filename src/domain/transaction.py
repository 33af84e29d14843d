"""Transaction Domain Entity

One payment attempt or wallet mutation. The tx_ref is globally unique and is the
primary idempotency key for settlement.
"""

import secrets
import time
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import CheckConstraint, JSON, String
from src.domain.base import BaseModel, generate_uuid


class TransactionType(str, Enum):
    TOPUP = "topup"
    DEDUCTION = "deduction"
    EARNINGS = "earnings"
    REFUND = "refund"
    WITHDRAWAL = "withdrawal"
    SUBSCRIPTION = "subscription"
    COURSE_ENROLLMENT = "course_enrollment"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


# Wallet effect of a successful transaction, used by ledger reconciliation
WALLET_CREDIT_TYPES = (TransactionType.TOPUP, TransactionType.EARNINGS, TransactionType.REFUND)
WALLET_DEBIT_TYPES = (TransactionType.DEDUCTION, TransactionType.WITHDRAWAL)


def generate_tx_ref(prefix: str, *parts: str) -> str:
    """
    Build a unique transaction reference

    Example: generate_tx_ref("topup", user_id) -> "topup_<user_id>_1705312200000_9f2c4a1b"
    """
    segments = [prefix, *[str(p) for p in parts if p], str(int(time.time() * 1000)), secrets.token_hex(4)]
    return "_".join(segments)


class Transaction(BaseModel, table=True):
    """
    Transaction - a payment attempt or wallet mutation owned by one user

    Domain Rules:
    - Created pending, resolves exactly once to successful/failed/cancelled
    - A successful transaction is never re-applied to the wallet or subscription
    - tx_ref is unique (idempotency key)
    - Plan fields are a snapshot taken at creation time
    """

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint('amount >= 0', name='transaction_amount_non_negative'),
        Index('ix_transactions_user_type', 'user_id', 'transaction_type'),
        Index('ix_transactions_created_at', 'created_at'),
    )

    id: str = Field(default_factory=generate_uuid, primary_key=True)

    user_id: str = Field(foreign_key="users.id", index=True)

    transaction_type: TransactionType = Field(description="Transaction type")

    amount: int = Field(description="Amount in minor currency units")

    currency: str = Field(default="NGN", max_length=3)

    tx_ref: str = Field(
        sa_column=Column(String(255), nullable=False, unique=True, index=True),
        description="Globally unique reference (idempotency key)"
    )

    status: TransactionStatus = Field(default=TransactionStatus.PENDING, index=True)

    description: str = Field(default="")

    provider_transaction_id: Optional[str] = Field(default=None, index=True)

    failure_reason: Optional[str] = Field(default=None)

    payment_method: Optional[str] = Field(default=None)

    course_id: Optional[str] = Field(default=None)

    beneficiary_user_id: Optional[str] = Field(default=None)

    subscription_plan_id: Optional[str] = Field(default=None)

    plan_name: Optional[str] = Field(default=None)

    plan_duration: Optional[str] = Field(default=None)

    meta: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False, default=dict),
    )

    requires_reconciliation: bool = Field(default=False, index=True)

    initiated_at: datetime = Field(default_factory=datetime.utcnow)

    completed_at: Optional[datetime] = Field(default=None)

    failed_at: Optional[datetime] = Field(default=None)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    updated_at: datetime = Field(default_factory=datetime.utcnow)

"""Data Transfer Objects for wallet use cases"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class BalanceResponseDTO(BaseModel):
    """Read-only wallet projection"""

    user_id: str = Field(..., description="User identifier")
    balance: int = Field(..., description="Spendable balance in minor units")
    total_earnings: int = Field(..., description="Lifetime earnings credited")
    total_spent: int = Field(..., description="Lifetime deductions")
    last_updated: datetime = Field(..., description="Last wallet update")

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "5f1c...",
                "balance": 12500,
                "total_earnings": 4000,
                "total_spent": 1500,
                "last_updated": "2024-01-15T10:30:00",
            }
        }


class TopUpCommandDTO(BaseModel):
    user_id: str = Field(..., description="User identifier")
    amount: int = Field(..., description="Amount to top up (must be > 0)")
    currency: Optional[str] = Field(default=None, description="Defaults to the configured currency")


class TopUpResponseDTO(BaseModel):
    tx_ref: str
    payment_link: str
    amount: int
    currency: str
    status: str = "pending"


class DeductCommandDTO(BaseModel):
    """
    Wallet deduction

    When course_id and instructor_id are both set, the same amount is credited
    to the instructor as earnings.
    """

    user_id: str = Field(..., description="User being charged")
    amount: int = Field(..., description="Amount to deduct (must be > 0)")
    description: str = Field(default="Wallet deduction")
    idempotency_key: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Caller-supplied key; replays return the original transaction",
    )
    course_id: Optional[str] = Field(default=None)
    instructor_id: Optional[str] = Field(default=None)


class DeductResponseDTO(BaseModel):
    transaction_id: str
    tx_ref: str
    amount: int
    balance_after: Optional[int] = None
    description: str
    instructor_credited: Optional[bool] = None
    requires_reconciliation: bool = False
    replayed: bool = False
    created_at: datetime


class ListTransactionsQueryDTO(BaseModel):
    user_id: str
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    transaction_type: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class TransactionDTO(BaseModel):
    id: str
    tx_ref: str
    transaction_type: str
    amount: int
    currency: str
    status: str
    description: str
    failure_reason: Optional[str] = None
    course_id: Optional[str] = None
    plan_name: Optional[str] = None
    requires_reconciliation: bool = False
    created_at: datetime
    completed_at: Optional[datetime] = None


class PaginationDTO(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
    has_next: bool
    has_prev: bool


class ListTransactionsResponseDTO(BaseModel):
    transactions: List[TransactionDTO]
    pagination: PaginationDTO


class SummaryBucketDTO(BaseModel):
    key: str
    count: int
    total_amount: int


class TransactionSummaryResponseDTO(BaseModel):
    by_type: List[SummaryBucketDTO]
    by_status: List[SummaryBucketDTO]
    recent: List[TransactionDTO]


class LedgerDiscrepancyDTO(BaseModel):
    user_id: str
    wallet_balance: int
    calculated_balance: int
    discrepancy: int


class FlaggedTransactionDTO(BaseModel):
    transaction_id: str
    tx_ref: str
    user_id: str
    transaction_type: str
    status: str
    amount: int
    reason: Optional[str] = None
    created_at: datetime


class ReconciliationResultDTO(BaseModel):
    total_wallets_checked: int
    discrepancies_found: int
    discrepancies: List[LedgerDiscrepancyDTO]
    flagged_transactions: List[FlaggedTransactionDTO]
    stale_pending_transactions: List[FlaggedTransactionDTO]
    reconciliation_time: datetime
    execution_time_ms: int

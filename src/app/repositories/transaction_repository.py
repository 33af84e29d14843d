"""Transaction Repository Interface

Defines the contract for transaction persistence operations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from src.domain.transaction import Transaction, TransactionStatus, TransactionType


class TransactionRepository(ABC):
    """
    Repository interface for Transaction persistence

    Idempotency is enforced via the unique tx_ref and the pending -> terminal
    transition, which is applied with a conditional update (mark_resolved).
    """

    @abstractmethod
    async def create(self, transaction: Transaction) -> Transaction:
        """
        Create a new transaction

        Raises:
            IntegrityError: If tx_ref already exists
        """
        pass

    @abstractmethod
    async def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def get_by_tx_ref(self, tx_ref: str, for_update: bool = False) -> Optional[Transaction]:
        """
        Retrieve transaction by its reference

        Args:
            tx_ref: Unique transaction reference
            for_update: If True, lock the row with SELECT FOR UPDATE

        Returns:
            Transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_by_provider_transaction_id(self, provider_transaction_id: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def mark_resolved(
        self,
        transaction_id: str,
        status: TransactionStatus,
        provider_transaction_id: Optional[str] = None,
        failure_reason: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> bool:
        """
        Transition a pending transaction to a terminal status

        The update only applies while the row is still pending, so at most one
        caller ever resolves a given transaction.

        Returns:
            True if this call performed the transition, False if it was already resolved
        """
        pass

    @abstractmethod
    async def flag_for_reconciliation(self, transaction_id: str, reason: str) -> None:
        """Mark a transaction as requiring manual reconciliation"""
        pass

    @abstractmethod
    async def delete(self, transaction_id: str) -> None:
        pass

    @abstractmethod
    async def list_by_user(
        self,
        user_id: str,
        transaction_type: Optional[TransactionType] = None,
        status: Optional[TransactionStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Transaction], int]:
        """
        Retrieve a user's transactions, most recent first

        Returns:
            Tuple of (transactions page, total matching count)
        """
        pass

    @abstractmethod
    async def summarize_by_user(self, user_id: str) -> Dict[str, List[Dict[str, Any]]]:
        """
        Aggregate a user's transactions

        Returns:
            {"by_type": [{"key", "count", "total_amount"}], "by_status": [...]}
        """
        pass

    @abstractmethod
    async def get_wallet_sum_by_user(self, user_id: str) -> int:
        """Net wallet effect of the user's successful transactions"""
        pass

    @abstractmethod
    async def get_flagged_for_reconciliation(self) -> List[Transaction]:
        pass

    @abstractmethod
    async def get_stale_pending(self, older_than: datetime) -> List[Transaction]:
        pass

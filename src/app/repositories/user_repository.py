"""User Repository Interface

Defines the contract for user wallet and subscription persistence.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional
from src.domain.user import User, PaymentMethod


class UserRepository(ABC):
    """
    Repository interface for User persistence

    Wallet mutations are conditional, single-statement updates so concurrent
    operations against the same wallet can never interleave into a lost update
    or drive the balance below zero.
    """

    @abstractmethod
    async def get_by_id(self, user_id: str, for_update: bool = False) -> Optional[User]:
        """
        Retrieve user by ID

        Args:
            user_id: User identifier
            for_update: If True, lock the row with SELECT FOR UPDATE (pessimistic lock)

        Returns:
            User if found, None otherwise
        """
        pass

    @abstractmethod
    async def create(self, user: User) -> User:
        pass

    @abstractmethod
    async def update(self, user: User) -> User:
        """
        Persist changes made to a loaded user

        Args:
            user: User entity with updated values

        Returns:
            Updated User
        """
        pass

    @abstractmethod
    async def debit_wallet(self, user_id: str, amount: int) -> Optional[int]:
        """
        Atomically decrement balance and increment total_spent

        The update only applies when balance >= amount.

        Args:
            user_id: User identifier
            amount: Amount to debit (> 0)

        Returns:
            New balance if the debit was applied, None if the balance was insufficient
            or the user does not exist
        """
        pass

    @abstractmethod
    async def credit_wallet(self, user_id: str, amount: int, as_earnings: bool = False) -> Optional[int]:
        """
        Atomically increment balance (and total_earnings when as_earnings)

        Args:
            user_id: User identifier
            amount: Amount to credit (> 0)
            as_earnings: Also count the amount towards total_earnings

        Returns:
            New balance, or None if the user does not exist
        """
        pass

    @abstractmethod
    async def get_all(self) -> List[User]:
        pass

    @abstractmethod
    async def get_expired_subscribers(self, now: datetime) -> List[User]:
        """
        Pro users whose paid period has elapsed

        Returns users with is_pro=True, status in (active, past_due, cancelled)
        and subscription_end_date < now.
        """
        pass

    @abstractmethod
    async def get_renewal_candidates(self, now: datetime, cutoff: datetime) -> List[User]:
        """
        Active auto-renewing Pro users whose period ends at or before cutoff

        Args:
            now: Current time (users already past their end date are left to the expiry sweep)
            cutoff: Upper bound of the renewal window

        Returns:
            Users eligible for a renewal attempt
        """
        pass

    @abstractmethod
    async def get_primary_payment_method(self, user_id: str) -> Optional[PaymentMethod]:
        """Primary payment method, or the oldest one if none is flagged primary"""
        pass

    @abstractmethod
    async def add_payment_method(self, method: PaymentMethod) -> PaymentMethod:
        """Store a payment method, demoting the previous primary when method.is_primary"""
        pass

    @abstractmethod
    async def add_enrollment(self, user_id: str, course_id: str, transaction_id: Optional[str] = None) -> bool:
        """
        Add a course to the user's enrolled set

        Returns:
            True if the enrollment was created, False if it already existed
        """
        pass

    @abstractmethod
    async def count_by_subscription_status(self) -> Dict[str, int]:
        pass

    @abstractmethod
    async def revenue_by_plan(self) -> List[Dict[str, Any]]:
        """
        Per-plan subscriber count and period revenue for active and past-due subscribers

        Returns:
            [{"plan_name": str, "count": int, "revenue": int}]
        """
        pass

"""SQLAlchemy implementation of TransactionRepository

Provides persistence for Transaction entities with idempotency enforcement via
the unique tx_ref and a conditional pending -> terminal transition.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import case, delete, func, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.transaction_repository import TransactionRepository
from src.domain.transaction import (
    Transaction,
    TransactionStatus,
    TransactionType,
    WALLET_CREDIT_TYPES,
    WALLET_DEBIT_TYPES,
)


class SqlAlchemyTransactionRepository(TransactionRepository):
    """
    SQLAlchemy implementation of TransactionRepository

    Features:
    - Idempotency enforcement via unique tx_ref constraint
    - At-most-once resolution (UPDATE ... WHERE status = pending)
    - Aggregations for summaries and ledger reconciliation
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, transaction: Transaction) -> Transaction:
        """
        Create a new transaction

        Raises:
            IntegrityError: If tx_ref already exists (duplicate attempt)
        """
        self.session.add(transaction)
        await self.session.flush()
        await self.session.refresh(transaction)
        return transaction

    async def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_tx_ref(self, tx_ref: str, for_update: bool = False) -> Optional[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.tx_ref == tx_ref)
            .execution_options(populate_existing=True)
        )

        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_provider_transaction_id(self, provider_transaction_id: str) -> Optional[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.provider_transaction_id == provider_transaction_id)
            .order_by(Transaction.completed_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_resolved(
        self,
        transaction_id: str,
        status: TransactionStatus,
        provider_transaction_id: Optional[str] = None,
        failure_reason: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> bool:
        now = datetime.utcnow()
        values: Dict[str, Any] = {"status": status, "updated_at": now}

        if status == TransactionStatus.SUCCESSFUL:
            values["completed_at"] = now
        else:
            values["failed_at"] = now
        if provider_transaction_id:
            values["provider_transaction_id"] = provider_transaction_id
        if failure_reason:
            values["failure_reason"] = failure_reason
        if payment_method:
            values["payment_method"] = payment_method

        stmt = (
            update(Transaction)
            .where(
                Transaction.id == transaction_id,
                Transaction.status == TransactionStatus.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def flag_for_reconciliation(self, transaction_id: str, reason: str) -> None:
        stmt = (
            update(Transaction)
            .where(Transaction.id == transaction_id)
            .values(
                requires_reconciliation=True,
                failure_reason=reason,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def delete(self, transaction_id: str) -> None:
        stmt = (
            delete(Transaction)
            .where(Transaction.id == transaction_id)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    def _user_filters(
        self,
        user_id: str,
        transaction_type: Optional[TransactionType],
        status: Optional[TransactionStatus],
        start_date: Optional[datetime],
        end_date: Optional[datetime],
    ) -> list:
        filters = [Transaction.user_id == user_id]
        if transaction_type:
            filters.append(Transaction.transaction_type == transaction_type)
        if status:
            filters.append(Transaction.status == status)
        if start_date:
            filters.append(Transaction.created_at >= start_date)
        if end_date:
            filters.append(Transaction.created_at <= end_date)
        return filters

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
        filters = self._user_filters(user_id, transaction_type, status, start_date, end_date)

        # Get total count
        count_stmt = select(func.count()).select_from(Transaction).where(*filters)
        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar()

        # Get paginated transactions ordered by created_at DESC
        stmt = (
            select(Transaction)
            .where(*filters)
            .order_by(Transaction.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        transactions = list(result.scalars().all())

        return transactions, total

    async def summarize_by_user(self, user_id: str) -> Dict[str, List[Dict[str, Any]]]:
        summary: Dict[str, List[Dict[str, Any]]] = {}
        for name, column in (("by_type", Transaction.transaction_type), ("by_status", Transaction.status)):
            stmt = (
                select(column, func.count(Transaction.id), func.coalesce(func.sum(Transaction.amount), 0))
                .where(Transaction.user_id == user_id)
                .group_by(column)
            )
            result = await self.session.execute(stmt)
            summary[name] = [
                {
                    "key": key.value if hasattr(key, "value") else str(key),
                    "count": count,
                    "total_amount": int(total_amount),
                }
                for key, count, total_amount in result.all()
            ]
        return summary

    async def get_wallet_sum_by_user(self, user_id: str) -> int:
        signed_amount = case(
            (Transaction.transaction_type.in_(WALLET_CREDIT_TYPES), Transaction.amount),
            (Transaction.transaction_type.in_(WALLET_DEBIT_TYPES), -Transaction.amount),
            else_=0,
        )
        stmt = select(func.coalesce(func.sum(signed_amount), 0)).where(
            Transaction.user_id == user_id,
            Transaction.status == TransactionStatus.SUCCESSFUL,
        )
        result = await self.session.execute(stmt)
        return int(result.scalar() or 0)

    async def get_flagged_for_reconciliation(self) -> List[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.requires_reconciliation.is_(True))
            .order_by(Transaction.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_stale_pending(self, older_than: datetime) -> List[Transaction]:
        stmt = (
            select(Transaction)
            .where(
                Transaction.status == TransactionStatus.PENDING,
                Transaction.created_at < older_than,
            )
            .order_by(Transaction.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

"""
List Transactions Use Case

Retrieves a user's transaction history with filters and page-based pagination.
"""
import math
from libs.result import Result, Return, Error
from src.app.repositories.transaction_repository import TransactionRepository
from src.domain.transaction import Transaction, TransactionStatus, TransactionType
from .dtos import (
    ListTransactionsQueryDTO,
    ListTransactionsResponseDTO,
    PaginationDTO,
    TransactionDTO,
)


def to_transaction_dto(txn: Transaction) -> TransactionDTO:
    return TransactionDTO(
        id=txn.id,
        tx_ref=txn.tx_ref,
        transaction_type=txn.transaction_type.value if hasattr(txn.transaction_type, "value") else txn.transaction_type,
        amount=txn.amount,
        currency=txn.currency,
        status=txn.status.value if hasattr(txn.status, "value") else txn.status,
        description=txn.description,
        failure_reason=txn.failure_reason,
        course_id=txn.course_id,
        plan_name=txn.plan_name,
        requires_reconciliation=txn.requires_reconciliation,
        created_at=txn.created_at,
        completed_at=txn.completed_at,
    )


class ListTransactions:
    """
    Use case: View wallet transaction history

    Transactions are ordered by created_at DESC (most recent first).
    Filterable by type, status and created_at date range.
    """

    def __init__(self, transaction_repo: TransactionRepository):
        self.transaction_repo = transaction_repo

    async def execute(self, query: ListTransactionsQueryDTO) -> Result[ListTransactionsResponseDTO]:
        """
        List transactions for a user

        Args:
            query: Filters and pagination (page is 1-based)

        Returns:
            Result[ListTransactionsResponseDTO]: Page of transactions with pagination metadata
        """
        try:
            transaction_type = TransactionType(query.transaction_type) if query.transaction_type else None
            status = TransactionStatus(query.status) if query.status else None
        except ValueError as e:
            return Return.err(
                Error(code="VALIDATION_ERROR", message="Invalid transaction filter", reason=str(e))
            )

        if query.start_date and query.end_date and query.start_date > query.end_date:
            return Return.err(
                Error(code="VALIDATION_ERROR", message="start_date must not be after end_date")
            )

        transactions, total = await self.transaction_repo.list_by_user(
            user_id=query.user_id,
            transaction_type=transaction_type,
            status=status,
            start_date=query.start_date,
            end_date=query.end_date,
            limit=query.limit,
            offset=(query.page - 1) * query.limit,
        )

        pages = math.ceil(total / query.limit) if total else 0

        return Return.ok(
            ListTransactionsResponseDTO(
                transactions=[to_transaction_dto(txn) for txn in transactions],
                pagination=PaginationDTO(
                    page=query.page,
                    limit=query.limit,
                    total=total,
                    pages=pages,
                    has_next=query.page < pages,
                    has_prev=query.page > 1,
                ),
            )
        )

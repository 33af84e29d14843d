"""Transaction Summary Use Case"""

from libs.result import Result, Return
from src.app.repositories.transaction_repository import TransactionRepository
from .dtos import SummaryBucketDTO, TransactionSummaryResponseDTO
from .list_transactions import to_transaction_dto

RECENT_TRANSACTIONS = 5


class TransactionSummary:
    """Totals by type and by status, plus the most recent transactions"""

    def __init__(self, transaction_repo: TransactionRepository):
        self.transaction_repo = transaction_repo

    async def execute(self, user_id: str) -> Result[TransactionSummaryResponseDTO]:
        summary = await self.transaction_repo.summarize_by_user(user_id)
        recent, _ = await self.transaction_repo.list_by_user(
            user_id=user_id, limit=RECENT_TRANSACTIONS, offset=0
        )

        return Return.ok(
            TransactionSummaryResponseDTO(
                by_type=[SummaryBucketDTO(**bucket) for bucket in summary.get("by_type", [])],
                by_status=[SummaryBucketDTO(**bucket) for bucket in summary.get("by_status", [])],
                recent=[to_transaction_dto(txn) for txn in recent],
            )
        )

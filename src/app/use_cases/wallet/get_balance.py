"""Get Balance Use Case

Retrieves a user's wallet projection.
"""

from libs.result import Result, Return, Error
from src.app.repositories.user_repository import UserRepository
from src.app.use_cases.wallet.dtos import BalanceResponseDTO


class GetBalance:
    """
    Get Balance Use Case

    Read-only operation; the ledger store is the single source of truth, so
    nothing here is cached.
    """

    def __init__(self, user_repo: UserRepository):
        self.user_repo = user_repo

    async def execute(self, user_id: str) -> Result[BalanceResponseDTO]:
        """
        Execute get balance operation

        Args:
            user_id: The user identifier

        Returns:
            Result[BalanceResponseDTO]: Success with wallet data or error

        Errors:
            USER_NOT_FOUND: Unknown user
        """
        user = await self.user_repo.get_by_id(user_id)

        if not user:
            return Return.err(
                Error(
                    code="USER_NOT_FOUND",
                    message=f"User {user_id} not found",
                )
            )

        return Return.ok(
            BalanceResponseDTO(
                user_id=user.id,
                balance=user.wallet_balance,
                total_earnings=user.total_earnings,
                total_spent=user.total_spent,
                last_updated=user.updated_at,
            )
        )

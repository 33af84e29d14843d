"""UpdateAutoRenewal Use Case"""

from datetime import datetime
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.user_repository import UserRepository
from .dtos import AutoRenewalResponseDTO


class UpdateAutoRenewal:

    def __init__(self, uow: UnitOfWork, user_repo: UserRepository):
        self.uow = uow
        self.user_repo = user_repo

    async def execute(self, user_id: str, enabled: bool) -> Result[AutoRenewalResponseDTO]:
        try:
            user = await self.user_repo.get_by_id(user_id, for_update=True)
            if not user:
                await self.uow.rollback()
                return Return.err(Error(code="USER_NOT_FOUND", message=f"User {user_id} not found"))

            user.auto_renewal = enabled
            user.updated_at = datetime.utcnow()
            await self.user_repo.update(user)
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="AUTO_RENEWAL_UPDATE_FAILED",
                    message="Failed to update auto-renewal",
                    reason=str(e),
                )
            )

        return Return.ok(AutoRenewalResponseDTO(auto_renewal=enabled))

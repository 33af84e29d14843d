"""AddPaymentMethod Use Case

Registers a provider-tokenised card used for auto-renewal charges. Raw card
data never reaches this service.
"""

import logging
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.user_repository import UserRepository
from src.domain.user import PaymentMethod
from .dtos import AddPaymentMethodCommandDTO, PaymentMethodResponseDTO

logger = logging.getLogger(__name__)


class AddPaymentMethod:
    """The first stored method, or one explicitly marked primary, becomes primary"""

    def __init__(self, uow: UnitOfWork, user_repo: UserRepository):
        self.uow = uow
        self.user_repo = user_repo

    async def execute(self, command: AddPaymentMethodCommandDTO) -> Result[PaymentMethodResponseDTO]:
        user = await self.user_repo.get_by_id(command.user_id)
        if not user:
            return Return.err(
                Error(code="USER_NOT_FOUND", message=f"User {command.user_id} not found")
            )

        try:
            current_primary = await self.user_repo.get_primary_payment_method(command.user_id)
            method = await self.user_repo.add_payment_method(
                PaymentMethod(
                    user_id=command.user_id,
                    provider_token=command.provider_token,
                    brand=command.brand,
                    last4=command.last4,
                    is_primary=command.is_primary or current_primary is None,
                )
            )
            response = PaymentMethodResponseDTO(
                id=method.id,
                brand=method.brand,
                last4=method.last4,
                is_primary=method.is_primary,
                created_at=method.created_at,
            )
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="PAYMENT_METHOD_FAILED",
                    message="Failed to store payment method",
                    reason=str(e),
                )
            )

        logger.info(f"Payment method {response.id} added for user {command.user_id}")
        return Return.ok(response)

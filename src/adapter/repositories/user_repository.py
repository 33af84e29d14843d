"""SQLAlchemy implementation of UserRepository

Wallet mutations are single conditional UPDATE statements so concurrent
debits and credits against one wallet serialise in the database.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import func, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.user_repository import UserRepository
from src.domain.subscription_plan import SubscriptionPlan
from src.domain.user import CourseEnrollment, PaymentMethod, PRO_STATUSES, SubscriptionStatus, User


class SqlAlchemyUserRepository(UserRepository):
    """
    SQLAlchemy implementation of UserRepository

    Features:
    - Pessimistic locking via SELECT FOR UPDATE (ignored by SQLite)
    - Conditional balance updates (balance >= amount checked in the UPDATE)
    - Reads always refresh already-loaded instances
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str, for_update: bool = False) -> Optional[User]:
        """
        Retrieve user by ID with optional row-level locking

        Args:
            user_id: User identifier
            for_update: If True, locks the row with SELECT FOR UPDATE

        Returns:
            User if found, None otherwise
        """
        stmt = select(User).where(User.id == user_id).execution_options(populate_existing=True)

        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, user: User) -> User:
        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user)
        return user

    async def update(self, user: User) -> User:
        self.session.add(user)
        await self.session.flush()
        return user

    async def debit_wallet(self, user_id: str, amount: int) -> Optional[int]:
        stmt = (
            update(User)
            .where(User.id == user_id, User.wallet_balance >= amount)
            .values(
                wallet_balance=User.wallet_balance - amount,
                total_spent=User.total_spent + amount,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self._current_balance(user_id)

    async def credit_wallet(self, user_id: str, amount: int, as_earnings: bool = False) -> Optional[int]:
        values = {
            "wallet_balance": User.wallet_balance + amount,
            "updated_at": datetime.utcnow(),
        }
        if as_earnings:
            values["total_earnings"] = User.total_earnings + amount

        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self._current_balance(user_id)

    async def _current_balance(self, user_id: str) -> int:
        result = await self.session.execute(select(User.wallet_balance).where(User.id == user_id))
        return result.scalar_one()

    async def get_all(self) -> List[User]:
        result = await self.session.execute(select(User).order_by(User.created_at))
        return list(result.scalars().all())

    async def get_expired_subscribers(self, now: datetime) -> List[User]:
        stmt = select(User).where(
            User.is_pro.is_(True),
            User.subscription_status.in_(PRO_STATUSES),
            User.subscription_end_date < now,
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_renewal_candidates(self, now: datetime, cutoff: datetime) -> List[User]:
        stmt = (
            select(User)
            .where(
                User.is_pro.is_(True),
                User.subscription_status == SubscriptionStatus.ACTIVE,
                User.auto_renewal.is_(True),
                User.subscription_end_date >= now,
                User.subscription_end_date <= cutoff,
            )
            .order_by(User.subscription_end_date)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_primary_payment_method(self, user_id: str) -> Optional[PaymentMethod]:
        stmt = (
            select(PaymentMethod)
            .where(PaymentMethod.user_id == user_id)
            .order_by(PaymentMethod.is_primary.desc(), PaymentMethod.created_at)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_payment_method(self, method: PaymentMethod) -> PaymentMethod:
        if method.is_primary:
            await self.session.execute(
                update(PaymentMethod)
                .where(PaymentMethod.user_id == method.user_id)
                .values(is_primary=False)
                .execution_options(synchronize_session=False)
            )
        self.session.add(method)
        await self.session.flush()
        await self.session.refresh(method)
        return method

    async def add_enrollment(self, user_id: str, course_id: str, transaction_id: Optional[str] = None) -> bool:
        stmt = select(CourseEnrollment).where(
            CourseEnrollment.user_id == user_id,
            CourseEnrollment.course_id == course_id,
        )
        result = await self.session.execute(stmt)
        if result.scalar_one_or_none():
            return False

        self.session.add(
            CourseEnrollment(user_id=user_id, course_id=course_id, transaction_id=transaction_id)
        )
        await self.session.flush()
        return True

    async def count_by_subscription_status(self) -> Dict[str, int]:
        stmt = select(User.subscription_status, func.count(User.id)).group_by(User.subscription_status)
        result = await self.session.execute(stmt)
        return {
            (status.value if hasattr(status, "value") else str(status)): count
            for status, count in result.all()
        }

    async def revenue_by_plan(self) -> List[Dict[str, Any]]:
        stmt = (
            select(
                SubscriptionPlan.name,
                func.count(User.id),
                func.coalesce(func.sum(SubscriptionPlan.price), 0),
            )
            .join(SubscriptionPlan, User.subscription_plan_id == SubscriptionPlan.id)
            .where(
                User.subscription_status.in_(
                    [SubscriptionStatus.ACTIVE, SubscriptionStatus.PAST_DUE]
                )
            )
            .group_by(SubscriptionPlan.name)
            .order_by(SubscriptionPlan.name)
        )
        result = await self.session.execute(stmt)
        return [
            {"plan_name": name, "count": count, "revenue": int(revenue)}
            for name, count, revenue in result.all()
        ]

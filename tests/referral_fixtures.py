from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models.referral_rewards import ReferralReward
from app.db.models.users import User
from app.db.repo.referral_rewards_repo import ReferralRewardsRepo

UTC = timezone.utc
NOW_UTC = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


async def _load_user(session_factory: async_sessionmaker[AsyncSession], user_id: int) -> User:
    async with session_factory() as session:
        user = await session.get(User, user_id)
        assert user is not None
        return user


async def _load_rewards(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    beneficiary_user_id: int,
) -> list[ReferralReward]:
    async with session_factory() as session:
        result = await session.execute(
            select(ReferralReward)
            .where(ReferralReward.beneficiary_user_id == beneficiary_user_id)
            .order_by(ReferralReward.created_at.asc())
        )
        return list(result.scalars().all())


async def _set_user_fields(
    session_factory: async_sessionmaker[AsyncSession],
    user_id: int,
    **values: object,
) -> None:
    async with session_factory.begin() as session:
        await session.execute(update(User).where(User.id == user_id).values(**values))


async def _create_reward_row(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    beneficiary_user_id: int,
    referred_user_id: int,
    status: str,
    created_at: datetime = NOW_UTC,
    amount: Decimal = Decimal("10.00"),
    currency: str = "USD",
) -> UUID:
    async with session_factory.begin() as session:
        reward = await ReferralRewardsRepo.create(
            session,
            reward=ReferralReward(
                beneficiary_user_id=beneficiary_user_id,
                referred_user_id=referred_user_id,
                reward_type="CASH",
                amount=amount,
                currency=currency,
                status=status,
                created_at=created_at,
                available_at=created_at if status != "PENDING" else None,
                expires_at=created_at + timedelta(days=365),
            ),
        )
        return reward.id

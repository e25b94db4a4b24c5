from __future__ import annotations

from collections.abc import Collection, Sequence
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.referral_rewards import ReferralReward
from app.db.models.users import User


class ReferralRewardsRepo:
    @staticmethod
    async def create(session: AsyncSession, *, reward: ReferralReward) -> ReferralReward:
        session.add(reward)
        await session.flush()
        return reward

    @staticmethod
    async def get_by_id(session: AsyncSession, reward_id: UUID) -> ReferralReward | None:
        return await session.get(ReferralReward, reward_id)

    @staticmethod
    async def get_for_pair(
        session: AsyncSession,
        *,
        beneficiary_user_id: int,
        referred_user_id: int,
    ) -> ReferralReward | None:
        stmt = select(ReferralReward).where(
            ReferralReward.beneficiary_user_id == beneficiary_user_id,
            ReferralReward.referred_user_id == referred_user_id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_for_beneficiary_by_ids_for_update(
        session: AsyncSession,
        *,
        beneficiary_user_id: int,
        reward_ids: Sequence[UUID],
    ) -> list[ReferralReward]:
        if not reward_ids:
            return []
        stmt = (
            select(ReferralReward)
            .where(
                ReferralReward.id.in_(tuple(reward_ids)),
                ReferralReward.beneficiary_user_id == beneficiary_user_id,
            )
            .with_for_update()
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def activate_pending_for_referred(
        session: AsyncSession,
        *,
        referred_user_id: int,
        available_at: datetime,
    ) -> int:
        stmt = (
            update(ReferralReward)
            .where(
                ReferralReward.referred_user_id == referred_user_id,
                ReferralReward.status == "PENDING",
            )
            .values(status="AVAILABLE", available_at=available_at)
        )
        result = await session.execute(stmt)
        return int(result.rowcount or 0)

    @staticmethod
    async def list_referred_ids_with_stale_pending(
        session: AsyncSession,
        *,
        after_user_id: int | None,
        limit: int,
    ) -> list[int]:
        stmt = (
            select(ReferralReward.referred_user_id)
            .distinct()
            .join(User, User.id == ReferralReward.referred_user_id)
            .where(
                ReferralReward.status == "PENDING",
                User.referral_completed_at.is_not(None),
            )
            .order_by(ReferralReward.referred_user_id.asc())
            .limit(limit)
        )
        if after_user_id is not None:
            stmt = stmt.where(ReferralReward.referred_user_id > after_user_id)
        result = await session.execute(stmt)
        return [int(user_id) for user_id in result.scalars().all()]

    @staticmethod
    async def redeem_available(
        session: AsyncSession,
        *,
        beneficiary_user_id: int,
        reward_ids: Sequence[UUID],
        redemption_method: str,
        redemption_details: dict[str, object],
        settlement_ref: str,
        redeemed_at: datetime,
    ) -> int:
        stmt = (
            update(ReferralReward)
            .where(
                ReferralReward.id.in_(tuple(reward_ids)),
                ReferralReward.beneficiary_user_id == beneficiary_user_id,
                ReferralReward.status == "AVAILABLE",
            )
            .values(
                status="REDEEMED",
                redemption_method=redemption_method,
                redemption_details=redemption_details,
                settlement_ref=settlement_ref,
                redeemed_at=redeemed_at,
            )
        )
        result = await session.execute(stmt)
        return int(result.rowcount or 0)

    @staticmethod
    async def expire(
        session: AsyncSession,
        *,
        reward_id: UUID,
        from_statuses: Collection[str],
        expired_at: datetime,
    ) -> bool:
        stmt = (
            update(ReferralReward)
            .where(
                ReferralReward.id == reward_id,
                ReferralReward.status.in_(tuple(from_statuses)),
            )
            .values(status="EXPIRED", expired_at=expired_at)
        )
        result = await session.execute(stmt)
        return bool(result.rowcount)

    @staticmethod
    async def list_expiration_candidates(
        session: AsyncSession,
        *,
        statuses: Collection[str],
        created_before_utc: datetime,
        after: tuple[datetime, UUID] | None,
        limit: int,
    ) -> list[tuple[UUID, datetime]]:
        stmt = (
            select(ReferralReward.id, ReferralReward.created_at)
            .where(
                ReferralReward.status.in_(tuple(statuses)),
                ReferralReward.created_at < created_before_utc,
            )
            .order_by(ReferralReward.created_at.asc(), ReferralReward.id.asc())
            .limit(limit)
        )
        if after is not None:
            after_created_at, after_id = after
            stmt = stmt.where(
                or_(
                    ReferralReward.created_at > after_created_at,
                    and_(
                        ReferralReward.created_at == after_created_at,
                        ReferralReward.id > after_id,
                    ),
                )
            )
        result = await session.execute(stmt)
        return [(reward_id, created_at) for reward_id, created_at in result.all()]

    @staticmethod
    async def summarize_by_status(
        session: AsyncSession,
        *,
        beneficiary_user_id: int,
        from_utc: datetime | None = None,
        to_utc: datetime | None = None,
    ) -> dict[str, tuple[int, Decimal]]:
        stmt = (
            select(
                ReferralReward.status,
                func.count(ReferralReward.id),
                func.coalesce(func.sum(ReferralReward.amount), 0),
            )
            .where(ReferralReward.beneficiary_user_id == beneficiary_user_id)
            .group_by(ReferralReward.status)
        )
        if from_utc is not None:
            stmt = stmt.where(ReferralReward.created_at >= from_utc)
        if to_utc is not None:
            stmt = stmt.where(ReferralReward.created_at < to_utc)
        result = await session.execute(stmt)
        return {
            str(status): (int(count or 0), Decimal(str(amount or 0)))
            for status, count, amount in result.all()
        }

    @staticmethod
    async def list_for_beneficiary(
        session: AsyncSession,
        *,
        beneficiary_user_id: int,
        status: str | None,
        offset: int,
        limit: int,
    ) -> tuple[list[tuple[ReferralReward, User]], int]:
        conditions = [ReferralReward.beneficiary_user_id == beneficiary_user_id]
        if status is not None:
            conditions.append(ReferralReward.status == status)

        stmt = (
            select(ReferralReward, User)
            .join(User, User.id == ReferralReward.referred_user_id)
            .where(*conditions)
            .order_by(ReferralReward.created_at.desc(), ReferralReward.id.desc())
            .offset(offset)
            .limit(limit)
        )
        count_stmt = select(func.count(ReferralReward.id)).where(*conditions)

        total = int((await session.execute(count_stmt)).scalar_one() or 0)
        result = await session.execute(stmt)
        return [(reward, user) for reward, user in result.all()], total

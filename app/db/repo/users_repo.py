from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.referral_rewards import ReferralReward
from app.db.models.users import User


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class UsersRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, user_id: int) -> User | None:
        return await session.get(User, user_id)

    @staticmethod
    async def get_by_id_for_update(session: AsyncSession, user_id: int) -> User | None:
        stmt = select(User).where(User.id == user_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_referral_code(session: AsyncSession, referral_code: str) -> User | None:
        stmt = select(User).where(User.referral_code == referral_code)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(session: AsyncSession, email: str) -> User | None:
        stmt = (
            select(User)
            .where(func.lower(User.email) == email.strip().lower())
            .order_by(User.id.asc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        username: str | None,
        email: str | None,
        first_name: str | None = None,
        last_name: str | None = None,
        created_at: datetime | None = None,
    ) -> User:
        user = User(
            username=username,
            email=email,
            first_name=first_name,
            last_name=last_name,
        )
        if created_at is not None:
            user.created_at = created_at
        session.add(user)
        await session.flush()
        return user

    @staticmethod
    async def set_referral_code_if_missing(
        session: AsyncSession,
        *,
        user_id: int,
        referral_code: str,
    ) -> bool:
        stmt = (
            update(User)
            .where(User.id == user_id, User.referral_code.is_(None))
            .values(referral_code=referral_code)
        )
        result = await session.execute(stmt)
        return bool(result.rowcount)

    @staticmethod
    async def set_referred_by_if_missing(
        session: AsyncSession,
        *,
        user_id: int,
        referrer_user_id: int,
    ) -> bool:
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                User.id != referrer_user_id,
                User.referred_by_user_id.is_(None),
            )
            .values(referred_by_user_id=referrer_user_id)
        )
        result = await session.execute(stmt)
        return bool(result.rowcount)

    @staticmethod
    async def mark_referral_completed(
        session: AsyncSession,
        *,
        user_id: int,
        completed_at: datetime,
    ) -> bool:
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                User.referred_by_user_id.is_not(None),
                User.referral_completed_at.is_(None),
            )
            .values(referral_completed_at=completed_at)
        )
        result = await session.execute(stmt)
        return bool(result.rowcount)

    @staticmethod
    async def increment_active_days(session: AsyncSession, *, user_id: int) -> int:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(active_days_count=User.active_days_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return int(result.rowcount or 0)

    @staticmethod
    async def touch_last_active(session: AsyncSession, *, user_id: int, active_at: datetime) -> int:
        stmt = update(User).where(User.id == user_id).values(last_active_at=active_at)
        result = await session.execute(stmt)
        return int(result.rowcount or 0)

    @staticmethod
    async def list_completion_candidate_ids(
        session: AsyncSession,
        *,
        min_active_days: int,
        after_user_id: int | None,
        limit: int,
    ) -> list[int]:
        stmt = (
            select(User.id)
            .where(
                User.referred_by_user_id.is_not(None),
                User.referral_completed_at.is_(None),
                User.active_days_count >= min_active_days,
            )
            .order_by(User.id.asc())
            .limit(limit)
        )
        if after_user_id is not None:
            stmt = stmt.where(User.id > after_user_id)
        result = await session.execute(stmt)
        return [int(user_id) for user_id in result.scalars().all()]

    @staticmethod
    async def list_last_active_between(
        session: AsyncSession,
        *,
        from_utc: datetime,
        to_utc: datetime,
        after_user_id: int | None,
        limit: int,
    ) -> list[tuple[int, datetime]]:
        stmt = (
            select(User.id, User.last_active_at)
            .where(
                User.last_active_at.is_not(None),
                User.last_active_at >= from_utc,
                User.last_active_at < to_utc,
            )
            .order_by(User.id.asc())
            .limit(limit)
        )
        if after_user_id is not None:
            stmt = stmt.where(User.id > after_user_id)
        result = await session.execute(stmt)
        return [(int(user_id), last_active_at) for user_id, last_active_at in result.all()]

    @staticmethod
    async def count_referrals(
        session: AsyncSession,
        *,
        referrer_user_id: int,
    ) -> tuple[int, int]:
        """Returns (total, completed) for everyone attributed to the referrer."""
        stmt = select(
            func.count(User.id),
            func.coalesce(
                func.sum(case((User.referral_completed_at.is_not(None), 1), else_=0)),
                0,
            ),
        ).where(User.referred_by_user_id == referrer_user_id)
        result = await session.execute(stmt)
        total, completed = result.one()
        return int(total or 0), int(completed or 0)

    @staticmethod
    async def list_referred_signups_between(
        session: AsyncSession,
        *,
        referrer_user_id: int,
        from_utc: datetime | None,
        to_utc: datetime,
    ) -> list[tuple[datetime, datetime | None]]:
        stmt = (
            select(User.created_at, User.referral_completed_at)
            .where(
                User.referred_by_user_id == referrer_user_id,
                User.created_at < to_utc,
            )
            .order_by(User.created_at.asc())
        )
        if from_utc is not None:
            stmt = stmt.where(User.created_at >= from_utc)
        result = await session.execute(stmt)
        return [(created_at, completed_at) for created_at, completed_at in result.all()]

    @staticmethod
    async def list_referral_history(
        session: AsyncSession,
        *,
        referrer_user_id: int,
        completed: bool | None,
        search: str | None,
        sort_by: str,
        descending: bool,
        offset: int,
        limit: int,
    ) -> tuple[list[tuple[User, ReferralReward | None]], int]:
        conditions = [User.referred_by_user_id == referrer_user_id]
        if completed is True:
            conditions.append(User.referral_completed_at.is_not(None))
        elif completed is False:
            conditions.append(User.referral_completed_at.is_(None))
        if search:
            pattern = f"%{_escape_like(search.strip().lower())}%"
            conditions.append(
                or_(
                    func.lower(func.coalesce(User.first_name, "")).like(pattern, escape="\\"),
                    func.lower(func.coalesce(User.last_name, "")).like(pattern, escape="\\"),
                    func.lower(func.coalesce(User.username, "")).like(pattern, escape="\\"),
                    func.lower(func.coalesce(User.email, "")).like(pattern, escape="\\"),
                )
            )

        sort_columns = {
            "created_at": User.created_at,
            "completed_at": User.referral_completed_at,
            "name": func.lower(
                func.coalesce(User.first_name, "") + " " + func.coalesce(User.last_name, "")
            ),
            "email": func.lower(func.coalesce(User.email, "")),
            "reward_amount": func.coalesce(ReferralReward.amount, 0),
        }
        sort_column = sort_columns[sort_by]
        order = sort_column.desc() if descending else sort_column.asc()

        stmt = (
            select(User, ReferralReward)
            .outerjoin(
                ReferralReward,
                (ReferralReward.referred_user_id == User.id)
                & (ReferralReward.beneficiary_user_id == referrer_user_id),
            )
            .where(*conditions)
            .order_by(order, User.id.asc())
            .offset(offset)
            .limit(limit)
        )
        count_stmt = select(func.count(User.id)).where(*conditions)

        total = int((await session.execute(count_stmt)).scalar_one() or 0)
        result = await session.execute(stmt)
        return [(user, reward) for user, reward in result.all()], total

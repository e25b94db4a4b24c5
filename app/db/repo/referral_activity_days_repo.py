from __future__ import annotations

from datetime import date, datetime

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.referral_activity_days import ReferralActivityDay


def _insert_for(session: AsyncSession):
    if session.get_bind().dialect.name == "sqlite":
        return sqlite.insert
    return postgresql.insert


class ReferralActivityDaysRepo:
    @staticmethod
    async def create_once(
        session: AsyncSession,
        *,
        user_id: int,
        activity_date: date,
        first_seen_at: datetime,
    ) -> bool:
        insert = _insert_for(session)
        stmt = (
            insert(ReferralActivityDay)
            .values(
                user_id=user_id,
                activity_date=activity_date,
                first_seen_at=first_seen_at,
            )
            .on_conflict_do_nothing(
                index_elements=[ReferralActivityDay.user_id, ReferralActivityDay.activity_date]
            )
            .returning(ReferralActivityDay.user_id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

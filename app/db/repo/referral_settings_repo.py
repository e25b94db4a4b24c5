from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.referral_settings import ReferralSettings


class ReferralSettingsRepo:
    @staticmethod
    async def get_by_user_id(session: AsyncSession, user_id: int) -> ReferralSettings | None:
        return await session.get(ReferralSettings, user_id)

    @staticmethod
    async def get_by_user_id_for_update(
        session: AsyncSession,
        user_id: int,
    ) -> ReferralSettings | None:
        stmt = (
            select(ReferralSettings)
            .where(ReferralSettings.user_id == user_id)
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_active_by_custom_code(
        session: AsyncSession,
        custom_code: str,
    ) -> ReferralSettings | None:
        stmt = select(ReferralSettings).where(
            ReferralSettings.custom_referral_code == custom_code,
            ReferralSettings.use_custom_code.is_(True),
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_custom_code(
        session: AsyncSession,
        custom_code: str,
    ) -> ReferralSettings | None:
        stmt = select(ReferralSettings).where(
            func.upper(ReferralSettings.custom_referral_code) == custom_code.upper()
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, settings: ReferralSettings) -> ReferralSettings:
        session.add(settings)
        await session.flush()
        return settings

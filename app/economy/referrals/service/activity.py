from __future__ import annotations

from datetime import datetime, timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.repo.referral_activity_days_repo import ReferralActivityDaysRepo
from app.db.repo.users_repo import UsersRepo
from app.economy.referrals.errors import ReferralUserNotFoundError

from .time_utils import _utc_date, _utc_day_bounds

logger = structlog.get_logger(__name__)


async def record_activity(
    session: AsyncSession,
    *,
    user_id: int,
    observed_at: datetime,
) -> bool:
    """Counts the UTC day of `observed_at` once; returns True only for a newly counted day."""
    inserted = await ReferralActivityDaysRepo.create_once(
        session,
        user_id=user_id,
        activity_date=_utc_date(observed_at),
        first_seen_at=observed_at,
    )
    if not inserted:
        return False
    await UsersRepo.increment_active_days(session, user_id=user_id)
    return True


async def mark_active(session: AsyncSession, *, user_id: int, now_utc: datetime) -> bool:
    touched = await UsersRepo.touch_last_active(session, user_id=user_id, active_at=now_utc)
    if not touched:
        raise ReferralUserNotFoundError(f"user not found: {user_id}")
    return await record_activity(session, user_id=user_id, observed_at=now_utc)


async def run_activity_rollover(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    now_utc: datetime,
    batch_size: int = 500,
) -> dict[str, int]:
    today_start_utc, _ = _utc_day_bounds(now_utc)
    from_utc = today_start_utc - timedelta(days=1)
    result = {
        "examined": 0,
        "recorded": 0,
        "failed": 0,
    }

    after_user_id: int | None = None
    while True:
        async with session_factory() as session:
            rows = await UsersRepo.list_last_active_between(
                session,
                from_utc=from_utc,
                to_utc=now_utc,
                after_user_id=after_user_id,
                limit=batch_size,
            )
        if not rows:
            break

        for user_id, last_active_at in rows:
            result["examined"] += 1
            try:
                async with session_factory.begin() as session:
                    recorded = await record_activity(
                        session,
                        user_id=user_id,
                        observed_at=last_active_at,
                    )
            except Exception:
                result["failed"] += 1
                logger.exception("referral_activity_rollover_item_failed", user_id=user_id)
                continue
            if recorded:
                result["recorded"] += 1

        after_user_id = rows[-1][0]
        if len(rows) < batch_size:
            break

    return result

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.repo.referral_rewards_repo import ReferralRewardsRepo
from app.economy.referrals.constants import REWARD_STATUS_AVAILABLE, REWARD_STATUS_PENDING

logger = structlog.get_logger(__name__)


def _expirable_statuses(*, include_pending: bool) -> tuple[str, ...]:
    if include_pending:
        return (REWARD_STATUS_PENDING, REWARD_STATUS_AVAILABLE)
    return (REWARD_STATUS_AVAILABLE,)


async def expire_reward(
    session: AsyncSession,
    *,
    reward_id: UUID,
    now_utc: datetime,
    include_pending: bool = False,
) -> bool:
    return await ReferralRewardsRepo.expire(
        session,
        reward_id=reward_id,
        from_statuses=_expirable_statuses(include_pending=include_pending),
        expired_at=now_utc,
    )


async def _expire_each(
    session_factory: async_sessionmaker[AsyncSession],
    reward_ids: Sequence[UUID],
    *,
    now_utc: datetime,
    include_pending: bool,
    result: dict[str, int],
) -> None:
    for reward_id in reward_ids:
        result["examined"] += 1
        try:
            async with session_factory.begin() as session:
                expired = await expire_reward(
                    session,
                    reward_id=reward_id,
                    now_utc=now_utc,
                    include_pending=include_pending,
                )
        except Exception:
            result["failed"] += 1
            logger.exception("referral_reward_expiration_item_failed", reward_id=str(reward_id))
            continue
        if expired:
            result["expired"] += 1
        else:
            result["skipped"] += 1


async def run_reward_expiration(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    now_utc: datetime,
    max_age_days: int = 365,
    reward_ids: Sequence[UUID] | None = None,
    include_pending: bool = False,
    batch_size: int = 500,
) -> dict[str, int]:
    """Expires rewards older than `max_age_days`, or exactly `reward_ids` when given."""
    result = {
        "examined": 0,
        "expired": 0,
        "skipped": 0,
        "failed": 0,
    }

    if reward_ids is not None:
        await _expire_each(
            session_factory,
            list(dict.fromkeys(reward_ids)),
            now_utc=now_utc,
            include_pending=include_pending,
            result=result,
        )
        return result

    created_before_utc = now_utc - timedelta(days=max_age_days)
    statuses = _expirable_statuses(include_pending=include_pending)
    after: tuple[datetime, UUID] | None = None
    while True:
        async with session_factory() as session:
            candidates = await ReferralRewardsRepo.list_expiration_candidates(
                session,
                statuses=statuses,
                created_before_utc=created_before_utc,
                after=after,
                limit=batch_size,
            )
        if not candidates:
            break

        await _expire_each(
            session_factory,
            [reward_id for reward_id, _ in candidates],
            now_utc=now_utc,
            include_pending=include_pending,
            result=result,
        )
        last_id, last_created_at = candidates[-1]
        after = (last_created_at, last_id)
        if len(candidates) < batch_size:
            break

    return result

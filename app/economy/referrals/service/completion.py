from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.repo.referral_rewards_repo import ReferralRewardsRepo
from app.db.repo.users_repo import UsersRepo
from app.economy.referrals.errors import ReferralUserNotFoundError

logger = structlog.get_logger(__name__)


async def complete_referral(session: AsyncSession, *, user_id: int, now_utc: datetime) -> bool:
    """Marks the referred user completed and activates the pending reward of their referrer.

    Returns False when the user has no referrer or was already completed; a pending
    reward left behind by an interrupted run is still activated in that case.
    """
    user = await UsersRepo.get_by_id(session, user_id)
    if user is None:
        raise ReferralUserNotFoundError(f"user not found: {user_id}")
    if user.referred_by_user_id is None:
        return False

    completed = await UsersRepo.mark_referral_completed(
        session,
        user_id=user_id,
        completed_at=now_utc,
    )
    activated = await ReferralRewardsRepo.activate_pending_for_referred(
        session,
        referred_user_id=user_id,
        available_at=now_utc,
    )
    if completed:
        logger.info(
            "referral_completed",
            user_id=user_id,
            referrer_user_id=user.referred_by_user_id,
            rewards_activated=activated,
        )
    elif activated:
        logger.info("referral_rewards_repaired", user_id=user_id, rewards_activated=activated)
    return completed


async def run_referral_completion(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    now_utc: datetime,
    threshold_days: int = 7,
    batch_size: int = 500,
) -> dict[str, int]:
    result = {
        "examined": 0,
        "completed": 0,
        "repaired": 0,
        "failed": 0,
    }

    after_user_id: int | None = None
    while True:
        async with session_factory() as session:
            candidate_ids = await UsersRepo.list_completion_candidate_ids(
                session,
                min_active_days=threshold_days,
                after_user_id=after_user_id,
                limit=batch_size,
            )
        if not candidate_ids:
            break

        for user_id in candidate_ids:
            result["examined"] += 1
            try:
                async with session_factory.begin() as session:
                    completed = await complete_referral(session, user_id=user_id, now_utc=now_utc)
            except Exception:
                result["failed"] += 1
                logger.exception("referral_completion_item_failed", user_id=user_id)
                continue
            if completed:
                result["completed"] += 1

        after_user_id = candidate_ids[-1]
        if len(candidate_ids) < batch_size:
            break

    # Completed users whose reward is still PENDING, left behind by an interrupted run.
    after_user_id = None
    while True:
        async with session_factory() as session:
            stale_user_ids = await ReferralRewardsRepo.list_referred_ids_with_stale_pending(
                session,
                after_user_id=after_user_id,
                limit=batch_size,
            )
        if not stale_user_ids:
            break

        for user_id in stale_user_ids:
            try:
                async with session_factory.begin() as session:
                    activated = await ReferralRewardsRepo.activate_pending_for_referred(
                        session,
                        referred_user_id=user_id,
                        available_at=now_utc,
                    )
            except Exception:
                result["failed"] += 1
                logger.exception("referral_reward_repair_failed", user_id=user_id)
                continue
            result["repaired"] += activated

        after_user_id = stale_user_ids[-1]
        if len(stale_user_ids) < batch_size:
            break

    return result

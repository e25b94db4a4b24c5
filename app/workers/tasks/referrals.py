from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from uuid import UUID

import structlog

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.economy.referrals.service import ReferralService
from app.workers.asyncio_runner import run_async_job
from app.workers.celery_app import celery_app
from app.workers.tasks.referrals_schedule import (
    JOB_ACTIVITY_ROLLOVER,
    JOB_COMPLETION,
    JOB_REWARD_EXPIRATION,
    configure_referral_schedule,
)

logger = structlog.get_logger(__name__)


async def run_referral_activity_rollover_async(*, batch_size: int | None = None) -> dict[str, int]:
    settings = get_settings()
    result = await ReferralService.run_activity_rollover(
        SessionLocal,
        now_utc=datetime.now(timezone.utc),
        batch_size=batch_size or settings.referral_job_batch_size,
    )
    logger.info("referral_activity_rollover_finished", **result)
    return result


async def run_referral_completion_async(*, batch_size: int | None = None) -> dict[str, int]:
    settings = get_settings()
    result = await ReferralService.run_referral_completion(
        SessionLocal,
        now_utc=datetime.now(timezone.utc),
        threshold_days=settings.referral_completion_threshold_days,
        batch_size=batch_size or settings.referral_job_batch_size,
    )
    logger.info("referral_completion_finished", **result)
    return result


async def run_referral_reward_expiration_async(
    *,
    reward_ids: Sequence[str] | None = None,
    batch_size: int | None = None,
) -> dict[str, int]:
    settings = get_settings()
    result = await ReferralService.run_reward_expiration(
        SessionLocal,
        now_utc=datetime.now(timezone.utc),
        max_age_days=settings.referral_reward_max_age_days,
        reward_ids=[UUID(str(reward_id)) for reward_id in reward_ids] if reward_ids else None,
        include_pending=settings.referral_expire_pending_rewards,
        batch_size=batch_size or settings.referral_job_batch_size,
    )
    logger.info("referral_reward_expiration_finished", scoped=reward_ids is not None, **result)
    return result


REFERRAL_JOB_RUNNERS: dict[str, Callable[[], Awaitable[dict[str, int]]]] = {
    JOB_ACTIVITY_ROLLOVER: run_referral_activity_rollover_async,
    JOB_COMPLETION: run_referral_completion_async,
    JOB_REWARD_EXPIRATION: run_referral_reward_expiration_async,
}


@celery_app.task(name="app.workers.tasks.referrals.run_referral_activity_rollover")
def run_referral_activity_rollover(batch_size: int | None = None) -> dict[str, int]:
    return run_async_job(
        run_referral_activity_rollover_async(batch_size=batch_size),
        job_name=JOB_ACTIVITY_ROLLOVER,
    )


@celery_app.task(name="app.workers.tasks.referrals.run_referral_completion")
def run_referral_completion(batch_size: int | None = None) -> dict[str, int]:
    return run_async_job(
        run_referral_completion_async(batch_size=batch_size),
        job_name=JOB_COMPLETION,
    )


@celery_app.task(name="app.workers.tasks.referrals.run_referral_reward_expiration")
def run_referral_reward_expiration(
    reward_ids: list[str] | None = None,
    batch_size: int | None = None,
) -> dict[str, int]:
    return run_async_job(
        run_referral_reward_expiration_async(reward_ids=reward_ids, batch_size=batch_size),
        job_name=JOB_REWARD_EXPIRATION,
    )


configure_referral_schedule(celery_app)

from __future__ import annotations

from datetime import datetime, timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.models.referral_rewards import ReferralReward
from app.db.repo.referral_rewards_repo import ReferralRewardsRepo
from app.db.repo.users_repo import UsersRepo
from app.economy.referrals.constants import REWARD_STATUS_PENDING
from app.economy.referrals.errors import (
    AlreadyReferredError,
    InvalidReferralCodeError,
    ReferralUserNotFoundError,
    SelfReferralError,
)

from .codes import build_referrer_summary, resolve_referrer
from .models import ApplyReferralResult, CodeValidationResult
from .time_utils import _money

logger = structlog.get_logger(__name__)


async def apply_referral(
    session: AsyncSession,
    *,
    user_id: int,
    code: str,
    now_utc: datetime,
) -> ApplyReferralResult:
    referrer = await resolve_referrer(session, code)
    if referrer is None:
        raise InvalidReferralCodeError(f"unknown referral code: {code}")
    if referrer.id == user_id:
        raise SelfReferralError(f"user {user_id} cannot refer themselves")

    user = await UsersRepo.get_by_id_for_update(session, user_id)
    if user is None:
        raise ReferralUserNotFoundError(f"user not found: {user_id}")
    if user.referred_by_user_id is not None:
        raise AlreadyReferredError(f"user {user_id} is already referred")

    linked = await UsersRepo.set_referred_by_if_missing(
        session,
        user_id=user_id,
        referrer_user_id=referrer.id,
    )
    if not linked:
        raise AlreadyReferredError(f"user {user_id} is already referred")

    settings = get_settings()
    reward = await ReferralRewardsRepo.create(
        session,
        reward=ReferralReward(
            beneficiary_user_id=referrer.id,
            referred_user_id=user_id,
            reward_type=settings.referral_reward_type,
            amount=_money(settings.referral_reward_amount),
            currency=settings.referral_reward_currency,
            status=REWARD_STATUS_PENDING,
            redemption_details=None,
            created_at=now_utc,
            expires_at=now_utc + timedelta(days=settings.referral_reward_max_age_days),
        ),
    )
    logger.info(
        "referral_applied",
        user_id=user_id,
        referrer_user_id=referrer.id,
        reward_id=str(reward.id),
    )
    return ApplyReferralResult(
        success=True,
        referrer=await build_referrer_summary(session, referrer=referrer),
        reward_id=reward.id,
    )


async def validate_code(session: AsyncSession, *, code: str | None) -> CodeValidationResult:
    referrer = await resolve_referrer(session, code)
    if referrer is None:
        return CodeValidationResult(valid=False)
    return CodeValidationResult(
        valid=True,
        referrer=await build_referrer_summary(session, referrer=referrer),
    )

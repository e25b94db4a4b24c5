from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repo.referral_rewards_repo import ReferralRewardsRepo
from app.economy.referrals.constants import (
    REDEMPTION_METHODS,
    REDEMPTION_PROCESSING_TIME,
    REWARD_STATUS_AVAILABLE,
    REWARD_STATUS_REDEEMED,
)
from app.economy.referrals.errors import (
    InvalidRedemptionError,
    MixedCurrencyError,
    RewardNotAvailableError,
)

from .models import RedemptionResult
from .time_utils import _money

logger = structlog.get_logger(__name__)


def _parse_reward_ids(reward_ids: Sequence[UUID | str]) -> list[UUID]:
    parsed: list[UUID] = []
    for raw_id in reward_ids:
        if isinstance(raw_id, UUID):
            parsed.append(raw_id)
            continue
        try:
            parsed.append(UUID(str(raw_id)))
        except ValueError as exc:
            raise RewardNotAvailableError(raw_id) from exc
    return list(dict.fromkeys(parsed))


def _settlement_ref(*, user_id: int, now_utc: datetime) -> str:
    return f"TXN_{int(now_utc.timestamp() * 1000)}_{user_id}"


async def redeem_rewards(
    session: AsyncSession,
    *,
    user_id: int,
    reward_ids: Sequence[UUID | str],
    method: str,
    details: Mapping[str, object] | None,
    now_utc: datetime,
) -> RedemptionResult:
    """Moves every requested reward to REDEEMED or none of them.

    Raising rolls back the caller's transaction, so a partial batch never persists.
    """
    normalized_method = (method or "").strip().lower()
    if normalized_method not in REDEMPTION_METHODS:
        raise InvalidRedemptionError(f"unsupported redemption method: {method}")
    if details is not None and not isinstance(details, Mapping):
        raise InvalidRedemptionError("redemption details must be a mapping")
    ids = _parse_reward_ids(reward_ids)
    if not ids:
        raise InvalidRedemptionError("no rewards requested")

    rewards = await ReferralRewardsRepo.list_for_beneficiary_by_ids_for_update(
        session,
        beneficiary_user_id=user_id,
        reward_ids=ids,
    )
    rewards_by_id = {reward.id: reward for reward in rewards}
    for reward_id in ids:
        reward = rewards_by_id.get(reward_id)
        if reward is None or reward.status != REWARD_STATUS_AVAILABLE:
            raise RewardNotAvailableError(reward_id)

    currencies = {rewards_by_id[reward_id].currency for reward_id in ids}
    if len(currencies) > 1:
        raise MixedCurrencyError(f"rewards span currencies: {sorted(currencies)}")

    settlement_ref = _settlement_ref(user_id=user_id, now_utc=now_utc)
    updated = await ReferralRewardsRepo.redeem_available(
        session,
        beneficiary_user_id=user_id,
        reward_ids=ids,
        redemption_method=normalized_method,
        redemption_details=dict(details or {}),
        settlement_ref=settlement_ref,
        redeemed_at=now_utc,
    )
    if updated != len(ids):
        rewards = await ReferralRewardsRepo.list_for_beneficiary_by_ids_for_update(
            session,
            beneficiary_user_id=user_id,
            reward_ids=ids,
        )
        redeemed_now = {
            reward.id
            for reward in rewards
            if reward.status == REWARD_STATUS_REDEEMED and reward.settlement_ref == settlement_ref
        }
        missed = next((reward_id for reward_id in ids if reward_id not in redeemed_now), ids[0])
        logger.warning(
            "referral_redemption_conflict",
            user_id=user_id,
            requested=len(ids),
            updated=updated,
            reward_id=str(missed),
        )
        raise RewardNotAvailableError(missed)

    total_amount = _money(sum((rewards_by_id[reward_id].amount for reward_id in ids), Decimal("0")))
    currency = currencies.pop()
    logger.info(
        "referral_rewards_redeemed",
        user_id=user_id,
        count=len(ids),
        total_amount=str(total_amount),
        currency=currency,
        redemption_method=normalized_method,
        settlement_ref=settlement_ref,
    )
    return RedemptionResult(
        reward_ids=ids,
        count=len(ids),
        total_amount=total_amount,
        currency=currency,
        redemption_method=normalized_method,
        settlement_ref=settlement_ref,
        processing_time=REDEMPTION_PROCESSING_TIME,
        redeemed_at=now_utc,
    )

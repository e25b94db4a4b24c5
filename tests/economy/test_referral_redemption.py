from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from app.db.repo.referral_rewards_repo import ReferralRewardsRepo
from app.economy.referrals.errors import (
    InvalidRedemptionError,
    MixedCurrencyError,
    RewardNotAvailableError,
)
from app.economy.referrals.service import ReferralService
from tests.referral_fixtures import NOW_UTC, _create_reward_row, _load_rewards


async def _referrer_with_friends(create_user, count: int) -> tuple[int, list[int]]:
    referrer_id = await create_user("alice")
    friend_ids = [await create_user(f"friend{index}") for index in range(count)]
    return referrer_id, friend_ids


@pytest.mark.asyncio
async def test_redeem_available_reward_records_settlement(session_factory, create_user) -> None:
    referrer_id, (friend_id,) = await _referrer_with_friends(create_user, 1)
    reward_id = await _create_reward_row(
        session_factory,
        beneficiary_user_id=referrer_id,
        referred_user_id=friend_id,
        status="AVAILABLE",
    )

    async with session_factory.begin() as session:
        result = await ReferralService.redeem(
            session,
            user_id=referrer_id,
            reward_ids=[str(reward_id)],
            method="PayPal",
            details={"email": "alice@example.test"},
            now_utc=NOW_UTC,
        )

    assert result.count == 1
    assert result.total_amount == Decimal("10.00")
    assert result.currency == "USD"
    assert result.redemption_method == "paypal"
    assert result.processing_time == "3-5 business days"
    assert result.settlement_ref == f"TXN_{int(NOW_UTC.timestamp() * 1000)}_{referrer_id}"
    assert result.reward_ids == [reward_id]

    (reward,) = await _load_rewards(session_factory, beneficiary_user_id=referrer_id)
    assert reward.status == "REDEEMED"
    assert reward.redeemed_at == NOW_UTC
    assert reward.redemption_method == "paypal"
    assert reward.redemption_details == {"email": "alice@example.test"}
    assert reward.settlement_ref == result.settlement_ref


@pytest.mark.asyncio
async def test_redeem_is_all_or_nothing_when_one_reward_is_not_available(
    session_factory, create_user
) -> None:
    referrer_id, friend_ids = await _referrer_with_friends(create_user, 2)
    available_id = await _create_reward_row(
        session_factory,
        beneficiary_user_id=referrer_id,
        referred_user_id=friend_ids[0],
        status="AVAILABLE",
    )
    pending_id = await _create_reward_row(
        session_factory,
        beneficiary_user_id=referrer_id,
        referred_user_id=friend_ids[1],
        status="PENDING",
    )

    with pytest.raises(RewardNotAvailableError) as exc_info:
        async with session_factory.begin() as session:
            await ReferralService.redeem(
                session,
                user_id=referrer_id,
                reward_ids=[available_id, pending_id],
                method="account_credit",
                details=None,
                now_utc=NOW_UTC,
            )

    assert exc_info.value.reward_id == pending_id
    statuses = {
        reward.id: reward.status
        for reward in await _load_rewards(session_factory, beneficiary_user_id=referrer_id)
    }
    assert statuses == {available_id: "AVAILABLE", pending_id: "PENDING"}


@pytest.mark.asyncio
async def test_redeem_rejects_rewards_owned_by_someone_else(session_factory, create_user) -> None:
    referrer_id, (friend_id,) = await _referrer_with_friends(create_user, 1)
    intruder_id = await create_user("mallory")
    reward_id = await _create_reward_row(
        session_factory,
        beneficiary_user_id=referrer_id,
        referred_user_id=friend_id,
        status="AVAILABLE",
    )

    with pytest.raises(RewardNotAvailableError):
        async with session_factory.begin() as session:
            await ReferralService.redeem(
                session,
                user_id=intruder_id,
                reward_ids=[reward_id],
                method="account_credit",
                details=None,
                now_utc=NOW_UTC,
            )

    (reward,) = await _load_rewards(session_factory, beneficiary_user_id=referrer_id)
    assert reward.status == "AVAILABLE"


@pytest.mark.asyncio
async def test_redeem_twice_fails_the_second_time(session_factory, create_user) -> None:
    referrer_id, (friend_id,) = await _referrer_with_friends(create_user, 1)
    reward_id = await _create_reward_row(
        session_factory,
        beneficiary_user_id=referrer_id,
        referred_user_id=friend_id,
        status="AVAILABLE",
    )

    async with session_factory.begin() as session:
        await ReferralService.redeem(
            session,
            user_id=referrer_id,
            reward_ids=[reward_id],
            method="gift_card",
            details=None,
            now_utc=NOW_UTC,
        )
    with pytest.raises(RewardNotAvailableError):
        async with session_factory.begin() as session:
            await ReferralService.redeem(
                session,
                user_id=referrer_id,
                reward_ids=[reward_id],
                method="gift_card",
                details=None,
                now_utc=NOW_UTC,
            )


@pytest.mark.asyncio
async def test_redeem_rejects_mixed_currencies(session_factory, create_user) -> None:
    referrer_id, friend_ids = await _referrer_with_friends(create_user, 2)
    usd_id = await _create_reward_row(
        session_factory,
        beneficiary_user_id=referrer_id,
        referred_user_id=friend_ids[0],
        status="AVAILABLE",
    )
    eur_id = await _create_reward_row(
        session_factory,
        beneficiary_user_id=referrer_id,
        referred_user_id=friend_ids[1],
        status="AVAILABLE",
        currency="EUR",
    )

    with pytest.raises(MixedCurrencyError):
        async with session_factory.begin() as session:
            await ReferralService.redeem(
                session,
                user_id=referrer_id,
                reward_ids=[usd_id, eur_id],
                method="bank_transfer",
                details=None,
                now_utc=NOW_UTC,
            )

    rewards = await _load_rewards(session_factory, beneficiary_user_id=referrer_id)
    assert {reward.status for reward in rewards} == {"AVAILABLE"}


@pytest.mark.asyncio
async def test_redeem_collapses_duplicate_ids_and_sums_amounts(session_factory, create_user) -> None:
    referrer_id, friend_ids = await _referrer_with_friends(create_user, 2)
    first_id = await _create_reward_row(
        session_factory,
        beneficiary_user_id=referrer_id,
        referred_user_id=friend_ids[0],
        status="AVAILABLE",
        amount=Decimal("10.00"),
    )
    second_id = await _create_reward_row(
        session_factory,
        beneficiary_user_id=referrer_id,
        referred_user_id=friend_ids[1],
        status="AVAILABLE",
        amount=Decimal("2.50"),
    )

    async with session_factory.begin() as session:
        result = await ReferralService.redeem(
            session,
            user_id=referrer_id,
            reward_ids=[first_id, str(first_id), second_id],
            method="crypto",
            details={"wallet": "0xabc"},
            now_utc=NOW_UTC,
        )

    assert result.count == 2
    assert result.reward_ids == [first_id, second_id]
    assert result.total_amount == Decimal("12.50")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("method", "reward_ids", "error"),
    [
        ("cheque", None, InvalidRedemptionError),
        ("paypal", [], InvalidRedemptionError),
        ("paypal", ["not-a-uuid"], RewardNotAvailableError),
        ("paypal", [uuid4()], RewardNotAvailableError),
    ],
)
async def test_redeem_rejects_invalid_requests(
    session_factory, create_user, method, reward_ids, error
) -> None:
    referrer_id, (friend_id,) = await _referrer_with_friends(create_user, 1)
    reward_id = await _create_reward_row(
        session_factory,
        beneficiary_user_id=referrer_id,
        referred_user_id=friend_id,
        status="AVAILABLE",
    )

    with pytest.raises(error):
        async with session_factory.begin() as session:
            await ReferralService.redeem(
                session,
                user_id=referrer_id,
                reward_ids=[reward_id] if reward_ids is None else reward_ids,
                method=method,
                details=None,
                now_utc=NOW_UTC,
            )

    (reward,) = await _load_rewards(session_factory, beneficiary_user_id=referrer_id)
    assert reward.status == "AVAILABLE"


@pytest.mark.asyncio
async def test_redeem_rolls_back_when_a_reward_expires_mid_batch(
    monkeypatch, session_factory, create_user
) -> None:
    referrer_id, friend_ids = await _referrer_with_friends(create_user, 2)
    kept_id = await _create_reward_row(
        session_factory,
        beneficiary_user_id=referrer_id,
        referred_user_id=friend_ids[0],
        status="AVAILABLE",
    )
    racing_id = await _create_reward_row(
        session_factory,
        beneficiary_user_id=referrer_id,
        referred_user_id=friend_ids[1],
        status="AVAILABLE",
    )
    real_redeem_available = ReferralRewardsRepo.redeem_available

    async def redeem_after_concurrent_expiry(session, **kwargs):
        await ReferralRewardsRepo.expire(
            session,
            reward_id=racing_id,
            from_statuses=("AVAILABLE",),
            expired_at=NOW_UTC,
        )
        return await real_redeem_available(session, **kwargs)

    monkeypatch.setattr(ReferralRewardsRepo, "redeem_available", redeem_after_concurrent_expiry)

    with pytest.raises(RewardNotAvailableError) as exc_info:
        async with session_factory.begin() as session:
            await ReferralService.redeem(
                session,
                user_id=referrer_id,
                reward_ids=[kept_id, racing_id],
                method="account_credit",
                details=None,
                now_utc=NOW_UTC,
            )

    assert exc_info.value.reward_id == racing_id
    rewards = await _load_rewards(session_factory, beneficiary_user_id=referrer_id)
    statuses = {reward.id: reward.status for reward in rewards}
    assert statuses[kept_id] == "AVAILABLE"
    assert all(reward.settlement_ref is None for reward in rewards)

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from app.db.models.referral_activity_days import ReferralActivityDay
from app.economy.referrals.errors import ReferralUserNotFoundError
from app.economy.referrals.service import ReferralService
from app.economy.referrals.service import activity as activity_module
from app.economy.referrals.service import completion as completion_module
from tests.referral_fixtures import (
    NOW_UTC,
    _create_reward_row,
    _load_rewards,
    _load_user,
    _set_user_fields,
)


async def _referred_pair(session_factory, create_user, suffix: str) -> tuple[int, int]:
    referrer_id = await create_user(f"referrer{suffix}")
    referred_id = await create_user(f"referred{suffix}")
    async with session_factory.begin() as session:
        code = await ReferralService.generate_referral_code(session, user_id=referrer_id)
        await ReferralService.apply_referral(
            session, user_id=referred_id, code=code, now_utc=NOW_UTC
        )
    return referrer_id, referred_id


@pytest.mark.asyncio
async def test_record_activity_counts_each_utc_day_once(session_factory, create_user) -> None:
    user_id = await create_user("quinn")
    observations = [
        NOW_UTC.replace(hour=0, minute=5),
        NOW_UTC,
        NOW_UTC.replace(hour=23, minute=59),
        NOW_UTC + timedelta(days=1),
    ]

    recorded: list[bool] = []
    for observed_at in observations:
        async with session_factory.begin() as session:
            recorded.append(
                await ReferralService.record_activity(
                    session, user_id=user_id, observed_at=observed_at
                )
            )

    assert recorded == [True, False, False, True]
    user = await _load_user(session_factory, user_id)
    assert user.active_days_count == 2

    async with session_factory() as session:
        days = await session.execute(
            select(func.count()).select_from(ReferralActivityDay).where(
                ReferralActivityDay.user_id == user_id
            )
        )
    assert days.scalar_one() == 2


@pytest.mark.asyncio
async def test_mark_active_touches_last_active_and_counts_day(session_factory, create_user) -> None:
    user_id = await create_user("rosa")

    async with session_factory.begin() as session:
        first = await ReferralService.mark_active(session, user_id=user_id, now_utc=NOW_UTC)
    async with session_factory.begin() as session:
        second = await ReferralService.mark_active(
            session, user_id=user_id, now_utc=NOW_UTC + timedelta(hours=1)
        )

    assert (first, second) == (True, False)
    user = await _load_user(session_factory, user_id)
    assert user.last_active_at == NOW_UTC + timedelta(hours=1)
    assert user.active_days_count == 1


@pytest.mark.asyncio
async def test_mark_active_unknown_user_raises(session_factory) -> None:
    with pytest.raises(ReferralUserNotFoundError):
        async with session_factory.begin() as session:
            await ReferralService.mark_active(session, user_id=999, now_utc=NOW_UTC)


@pytest.mark.asyncio
async def test_activity_rollover_records_yesterdays_last_active(session_factory, create_user) -> None:
    active_yesterday = await create_user("sam")
    active_long_ago = await create_user("tina")
    never_active = await create_user("uma")
    await _set_user_fields(
        session_factory, active_yesterday, last_active_at=NOW_UTC - timedelta(days=1)
    )
    await _set_user_fields(
        session_factory, active_long_ago, last_active_at=NOW_UTC - timedelta(days=5)
    )

    result = await ReferralService.run_activity_rollover(
        session_factory, now_utc=NOW_UTC, batch_size=1
    )
    assert result == {"examined": 1, "recorded": 1, "failed": 0}

    rerun = await ReferralService.run_activity_rollover(session_factory, now_utc=NOW_UTC)
    assert rerun == {"examined": 1, "recorded": 0, "failed": 0}

    assert (await _load_user(session_factory, active_yesterday)).active_days_count == 1
    assert (await _load_user(session_factory, active_long_ago)).active_days_count == 0
    assert (await _load_user(session_factory, never_active)).active_days_count == 0


@pytest.mark.asyncio
async def test_completion_sweep_activates_reward_at_threshold(session_factory, create_user) -> None:
    referrer_id, referred_id = await _referred_pair(session_factory, create_user, "a")
    _, below_threshold_id = await _referred_pair(session_factory, create_user, "b")
    await _set_user_fields(session_factory, referred_id, active_days_count=7)
    await _set_user_fields(session_factory, below_threshold_id, active_days_count=6)

    completed_at = NOW_UTC + timedelta(days=8)
    result = await ReferralService.run_referral_completion(
        session_factory, now_utc=completed_at, threshold_days=7, batch_size=10
    )

    assert result == {"examined": 1, "completed": 1, "repaired": 0, "failed": 0}
    referred = await _load_user(session_factory, referred_id)
    assert referred.referral_completed_at == completed_at
    assert (await _load_user(session_factory, below_threshold_id)).referral_completed_at is None

    rewards = await _load_rewards(session_factory, beneficiary_user_id=referrer_id)
    assert [reward.status for reward in rewards] == ["AVAILABLE"]
    assert rewards[0].available_at == completed_at

    rerun = await ReferralService.run_referral_completion(
        session_factory, now_utc=completed_at + timedelta(days=1), threshold_days=7
    )
    assert rerun == {"examined": 0, "completed": 0, "repaired": 0, "failed": 0}
    referred = await _load_user(session_factory, referred_id)
    assert referred.referral_completed_at == completed_at


@pytest.mark.asyncio
async def test_completion_sweep_ignores_users_without_referrer(session_factory, create_user) -> None:
    loner_id = await create_user("victor")
    await _set_user_fields(session_factory, loner_id, active_days_count=30)

    result = await ReferralService.run_referral_completion(session_factory, now_utc=NOW_UTC)

    assert result["examined"] == 0
    assert (await _load_user(session_factory, loner_id)).referral_completed_at is None


@pytest.mark.asyncio
async def test_completion_sweep_repairs_pending_reward_of_completed_user(
    session_factory, create_user
) -> None:
    referrer_id = await create_user("wendy")
    referred_id = await create_user("xavier")
    await _set_user_fields(
        session_factory,
        referred_id,
        referred_by_user_id=referrer_id,
        referral_completed_at=NOW_UTC - timedelta(days=1),
        active_days_count=9,
    )
    await _create_reward_row(
        session_factory,
        beneficiary_user_id=referrer_id,
        referred_user_id=referred_id,
        status="PENDING",
    )

    result = await ReferralService.run_referral_completion(session_factory, now_utc=NOW_UTC)

    assert result == {"examined": 0, "completed": 0, "repaired": 1, "failed": 0}
    rewards = await _load_rewards(session_factory, beneficiary_user_id=referrer_id)
    assert rewards[0].status == "AVAILABLE"


@pytest.mark.asyncio
async def test_complete_referral_is_idempotent_and_never_touches_terminal_rewards(
    session_factory, create_user
) -> None:
    referrer_id, referred_id = await _referred_pair(session_factory, create_user, "c")
    rewards = await _load_rewards(session_factory, beneficiary_user_id=referrer_id)
    async with session_factory.begin() as session:
        await ReferralService.expire_reward(
            session, reward_id=rewards[0].id, now_utc=NOW_UTC, include_pending=True
        )

    async with session_factory.begin() as session:
        first = await ReferralService.complete_referral(
            session, user_id=referred_id, now_utc=NOW_UTC
        )
    async with session_factory.begin() as session:
        second = await ReferralService.complete_referral(
            session, user_id=referred_id, now_utc=NOW_UTC + timedelta(days=1)
        )

    assert (first, second) == (True, False)
    rewards = await _load_rewards(session_factory, beneficiary_user_id=referrer_id)
    assert rewards[0].status == "EXPIRED"
    assert (await _load_user(session_factory, referred_id)).referral_completed_at == NOW_UTC


@pytest.mark.asyncio
async def test_completion_sweep_keeps_going_after_a_failed_user(
    monkeypatch, session_factory, create_user
) -> None:
    referred_ids: list[int] = []
    for suffix in ("d", "e", "f"):
        _, referred_id = await _referred_pair(session_factory, create_user, suffix)
        await _set_user_fields(session_factory, referred_id, active_days_count=7)
        referred_ids.append(referred_id)
    failing_id = referred_ids[1]
    real_complete_referral = completion_module.complete_referral

    async def flaky_complete_referral(session, *, user_id, now_utc):
        if user_id == failing_id:
            raise RuntimeError("lock timeout")
        return await real_complete_referral(session, user_id=user_id, now_utc=now_utc)

    monkeypatch.setattr(completion_module, "complete_referral", flaky_complete_referral)

    result = await ReferralService.run_referral_completion(
        session_factory, now_utc=NOW_UTC, batch_size=1
    )

    assert result == {"examined": 3, "completed": 2, "repaired": 0, "failed": 1}
    completed_at = [
        (await _load_user(session_factory, user_id)).referral_completed_at
        for user_id in referred_ids
    ]
    assert completed_at == [NOW_UTC, None, NOW_UTC]


@pytest.mark.asyncio
async def test_completion_repair_pages_through_every_stale_reward(
    session_factory, create_user
) -> None:
    referrer_id = await create_user("yara")
    for name in ("zane", "zoe", "zack"):
        referred_id = await create_user(name)
        await _set_user_fields(
            session_factory,
            referred_id,
            referred_by_user_id=referrer_id,
            referral_completed_at=NOW_UTC - timedelta(days=1),
        )
        await _create_reward_row(
            session_factory,
            beneficiary_user_id=referrer_id,
            referred_user_id=referred_id,
            status="PENDING",
        )

    result = await ReferralService.run_referral_completion(
        session_factory, now_utc=NOW_UTC, batch_size=1
    )

    assert result == {"examined": 0, "completed": 0, "repaired": 3, "failed": 0}
    rewards = await _load_rewards(session_factory, beneficiary_user_id=referrer_id)
    assert [reward.status for reward in rewards] == ["AVAILABLE"] * 3


@pytest.mark.asyncio
async def test_activity_rollover_keeps_going_after_a_failed_user(
    monkeypatch, session_factory, create_user
) -> None:
    user_ids = [await create_user(name) for name in ("amir", "bea", "cole")]
    for user_id in user_ids:
        await _set_user_fields(
            session_factory, user_id, last_active_at=NOW_UTC - timedelta(hours=3)
        )
    failing_id = user_ids[0]
    real_record_activity = activity_module.record_activity

    async def flaky_record_activity(session, *, user_id, observed_at):
        if user_id == failing_id:
            raise RuntimeError("deadlock detected")
        return await real_record_activity(session, user_id=user_id, observed_at=observed_at)

    monkeypatch.setattr(activity_module, "record_activity", flaky_record_activity)

    result = await ReferralService.run_activity_rollover(
        session_factory, now_utc=NOW_UTC, batch_size=2
    )

    assert result == {"examined": 3, "recorded": 2, "failed": 1}
    active_days = [
        (await _load_user(session_factory, user_id)).active_days_count for user_id in user_ids
    ]
    assert active_days == [0, 1, 1]

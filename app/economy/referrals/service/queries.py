from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.repo.referral_rewards_repo import ReferralRewardsRepo
from app.db.repo.users_repo import UsersRepo
from app.economy.referrals.constants import (
    DEFAULT_PAGE_LIMIT,
    DEFAULT_STATS_PERIOD,
    HISTORY_SORT_FIELDS,
    HISTORY_STATUS_FILTERS,
    MAX_PAGE_LIMIT,
    REWARD_STATUS_AVAILABLE,
    REWARD_STATUS_EXPIRED,
    REWARD_STATUS_FILTERS,
    REWARD_STATUS_PENDING,
    REWARD_STATUS_REDEEMED,
    STATS_PERIODS,
)
from app.economy.referrals.errors import ReferralUserNotFoundError

from .codes import generate_referral_code
from .models import (
    HistoryItem,
    HistoryPage,
    ReferralCodeInfo,
    ReferralStats,
    RewardItem,
    RewardsPage,
    RewardsSummary,
    StatsOverview,
    TimeSeriesPoint,
)
from .time_utils import _build_pagination, _conversion_rate, _money, _utc_date


def _resolve_page(page: int, limit: int) -> tuple[int, int, int]:
    resolved_page = max(1, int(page))
    resolved_limit = max(1, min(MAX_PAGE_LIMIT, int(limit)))
    return resolved_page, resolved_limit, (resolved_page - 1) * resolved_limit


def _share_url(code: str) -> str:
    return f"{get_settings().referral_frontend_url.rstrip('/')}/signup?ref={code}"


async def get_my_referral_code(session: AsyncSession, *, user_id: int) -> ReferralCodeInfo:
    code = await generate_referral_code(session, user_id=user_id)
    total, successful = await UsersRepo.count_referrals(session, referrer_user_id=user_id)
    return ReferralCodeInfo(
        code=code,
        share_url=_share_url(code),
        total_referrals=total,
        successful_referrals=successful,
        pending_referrals=total - successful,
        conversion_rate=_conversion_rate(successful, total),
    )


def _build_time_series(
    signups: list[tuple[datetime, datetime | None]],
    *,
    start_day: date,
    end_day: date,
) -> list[TimeSeriesPoint]:
    referrals_by_day: Counter[date] = Counter()
    conversions_by_day: Counter[date] = Counter()
    for created_at, completed_at in signups:
        day = _utc_date(created_at)
        referrals_by_day[day] += 1
        if completed_at is not None:
            conversions_by_day[day] += 1

    points: list[TimeSeriesPoint] = []
    day = start_day
    while day <= end_day:
        referrals = referrals_by_day[day]
        conversions = conversions_by_day[day]
        points.append(
            TimeSeriesPoint(
                day=day,
                referrals=referrals,
                conversions=conversions,
                conversion_rate=_conversion_rate(conversions, referrals),
            )
        )
        day += timedelta(days=1)
    return points


async def get_stats(
    session: AsyncSession,
    *,
    user_id: int,
    now_utc: datetime,
    period: str = DEFAULT_STATS_PERIOD,
    start_at: datetime | None = None,
    end_at: datetime | None = None,
) -> ReferralStats:
    user = await UsersRepo.get_by_id(session, user_id)
    if user is None:
        raise ReferralUserNotFoundError(f"user not found: {user_id}")

    resolved_period = period if period in STATS_PERIODS else DEFAULT_STATS_PERIOD
    if start_at is not None and end_at is not None:
        range_start, range_end = start_at, end_at
        resolved_period = "custom"
    else:
        range_end = end_at or now_utc
        window = STATS_PERIODS[resolved_period]
        range_start = range_end - window if window is not None else None

    total, successful = await UsersRepo.count_referrals(session, referrer_user_id=user_id)
    by_status = await ReferralRewardsRepo.summarize_by_status(
        session,
        beneficiary_user_id=user_id,
        from_utc=range_start,
        to_utc=range_end,
    )

    def amount_for(status: str) -> Decimal:
        return _money(by_status.get(status, (0, Decimal("0")))[1])

    pending = amount_for(REWARD_STATUS_PENDING)
    available = amount_for(REWARD_STATUS_AVAILABLE)
    redeemed = amount_for(REWARD_STATUS_REDEEMED)

    signups = await UsersRepo.list_referred_signups_between(
        session,
        referrer_user_id=user_id,
        from_utc=range_start,
        to_utc=range_end,
    )
    if range_start is not None:
        start_day = _utc_date(range_start)
    elif signups:
        start_day = _utc_date(signups[0][0])
    else:
        start_day = _utc_date(range_end)

    return ReferralStats(
        period=resolved_period,
        start_at=range_start,
        end_at=range_end,
        overview=StatsOverview(
            total_referrals=total,
            successful_referrals=successful,
            pending_referrals=total - successful,
            conversion_rate=_conversion_rate(successful, total),
            total_rewards=pending + available + redeemed,
            available_rewards=available,
            pending_rewards=pending,
            redeemed_rewards=redeemed,
        ),
        time_series=_build_time_series(
            signups,
            start_day=start_day,
            end_day=_utc_date(range_end),
        ),
    )


async def get_history(
    session: AsyncSession,
    *,
    user_id: int,
    now_utc: datetime,
    page: int = 1,
    limit: int = DEFAULT_PAGE_LIMIT,
    status_filter: str = "all",
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> HistoryPage:
    if status_filter not in HISTORY_STATUS_FILTERS:
        raise ValueError(f"unsupported history status filter: {status_filter}")
    if sort_by not in HISTORY_SORT_FIELDS:
        raise ValueError(f"unsupported history sort field: {sort_by}")
    if sort_order not in {"asc", "desc"}:
        raise ValueError(f"unsupported sort order: {sort_order}")

    resolved_page, resolved_limit, offset = _resolve_page(page, limit)
    completed = {"all": None, "pending": False, "completed": True}[status_filter]
    rows, total = await UsersRepo.list_referral_history(
        session,
        referrer_user_id=user_id,
        completed=completed,
        search=search.strip() if search and search.strip() else None,
        sort_by=sort_by,
        descending=sort_order == "desc",
        offset=offset,
        limit=resolved_limit,
    )

    items = [
        HistoryItem(
            user_id=referred.id,
            name=referred.display_name,
            email=referred.email,
            registered_at=referred.created_at,
            completed_at=referred.referral_completed_at,
            status="completed" if referred.referral_completed_at is not None else "pending",
            active_days_count=referred.active_days_count,
            days_since_registration=max(0, (now_utc - referred.created_at).days),
            reward_id=reward.id if reward is not None else None,
            reward_amount=_money(reward.amount) if reward is not None else None,
            reward_currency=reward.currency if reward is not None else None,
            reward_status=reward.status if reward is not None else None,
        )
        for referred, reward in rows
    ]
    return HistoryPage(
        items=items,
        pagination=_build_pagination(page=resolved_page, limit=resolved_limit, total=total),
    )


async def get_rewards(
    session: AsyncSession,
    *,
    user_id: int,
    page: int = 1,
    limit: int = DEFAULT_PAGE_LIMIT,
    status_filter: str = "all",
) -> RewardsPage:
    if status_filter not in REWARD_STATUS_FILTERS:
        raise ValueError(f"unsupported reward status filter: {status_filter}")

    resolved_page, resolved_limit, offset = _resolve_page(page, limit)
    rows, total = await ReferralRewardsRepo.list_for_beneficiary(
        session,
        beneficiary_user_id=user_id,
        status=REWARD_STATUS_FILTERS[status_filter],
        offset=offset,
        limit=resolved_limit,
    )
    by_status = await ReferralRewardsRepo.summarize_by_status(session, beneficiary_user_id=user_id)

    def count_for(status: str) -> int:
        return by_status.get(status, (0, Decimal("0")))[0]

    def amount_for(status: str) -> Decimal:
        return _money(by_status.get(status, (0, Decimal("0")))[1])

    summary = RewardsSummary(
        total_available=amount_for(REWARD_STATUS_AVAILABLE),
        total_redeemed=amount_for(REWARD_STATUS_REDEEMED),
        pending_amount=amount_for(REWARD_STATUS_PENDING),
        total_lifetime=(
            amount_for(REWARD_STATUS_AVAILABLE)
            + amount_for(REWARD_STATUS_REDEEMED)
            + amount_for(REWARD_STATUS_PENDING)
        ),
        available_count=count_for(REWARD_STATUS_AVAILABLE),
        redeemed_count=count_for(REWARD_STATUS_REDEEMED),
        pending_count=count_for(REWARD_STATUS_PENDING),
        expired_count=count_for(REWARD_STATUS_EXPIRED),
    )
    items = [
        RewardItem(
            reward_id=reward.id,
            reward_type=reward.reward_type,
            amount=_money(reward.amount),
            currency=reward.currency,
            status=reward.status,
            created_at=reward.created_at,
            available_at=reward.available_at,
            redeemed_at=reward.redeemed_at,
            expires_at=reward.expires_at,
            expired_at=reward.expired_at,
            referred_user_id=referred.id,
            referred_user_name=referred.display_name,
            referred_user_email=referred.email,
        )
        for reward, referred in rows
    ]
    return RewardsPage(
        items=items,
        summary=summary,
        pagination=_build_pagination(page=resolved_page, limit=resolved_limit, total=total),
    )

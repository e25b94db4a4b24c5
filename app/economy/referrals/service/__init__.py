from __future__ import annotations

from .activity import mark_active, record_activity, run_activity_rollover
from .attribution import apply_referral, validate_code
from .codes import generate_referral_code, resolve_referrer
from .completion import complete_referral, run_referral_completion
from .expiration import expire_reward, run_reward_expiration
from .models import (
    ApplyReferralResult,
    CodeValidationResult,
    HistoryItem,
    HistoryPage,
    Pagination,
    RedemptionResult,
    ReferralCodeInfo,
    ReferralPreferences,
    ReferralStats,
    ReferrerSummary,
    RewardItem,
    RewardsPage,
    RewardsSummary,
    StatsOverview,
    TimeSeriesPoint,
)
from .preferences import get_referral_settings, update_referral_settings
from .queries import get_history, get_my_referral_code, get_rewards, get_stats
from .redemption import redeem_rewards


class ReferralService:
    generate_referral_code = staticmethod(generate_referral_code)
    resolve_referrer = staticmethod(resolve_referrer)
    get_my_referral_code = staticmethod(get_my_referral_code)
    apply_referral = staticmethod(apply_referral)
    validate_code = staticmethod(validate_code)
    get_stats = staticmethod(get_stats)
    get_history = staticmethod(get_history)
    get_rewards = staticmethod(get_rewards)
    redeem = staticmethod(redeem_rewards)
    mark_active = staticmethod(mark_active)
    record_activity = staticmethod(record_activity)
    complete_referral = staticmethod(complete_referral)
    expire_reward = staticmethod(expire_reward)
    get_referral_settings = staticmethod(get_referral_settings)
    update_referral_settings = staticmethod(update_referral_settings)
    run_activity_rollover = staticmethod(run_activity_rollover)
    run_referral_completion = staticmethod(run_referral_completion)
    run_reward_expiration = staticmethod(run_reward_expiration)


__all__ = [
    "ApplyReferralResult",
    "CodeValidationResult",
    "HistoryItem",
    "HistoryPage",
    "Pagination",
    "RedemptionResult",
    "ReferralCodeInfo",
    "ReferralPreferences",
    "ReferralService",
    "ReferralStats",
    "ReferrerSummary",
    "RewardItem",
    "RewardsPage",
    "RewardsSummary",
    "StatsOverview",
    "TimeSeriesPoint",
]

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True, slots=True)
class ReferrerSummary:
    user_id: int
    display_name: str
    successful_referrals: int


@dataclass(frozen=True, slots=True)
class ReferralCodeInfo:
    code: str
    share_url: str
    total_referrals: int
    successful_referrals: int
    pending_referrals: int
    conversion_rate: float


@dataclass(frozen=True, slots=True)
class ApplyReferralResult:
    success: bool
    referrer: ReferrerSummary
    reward_id: UUID


@dataclass(frozen=True, slots=True)
class CodeValidationResult:
    valid: bool
    referrer: ReferrerSummary | None = None


@dataclass(frozen=True, slots=True)
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


@dataclass(frozen=True, slots=True)
class StatsOverview:
    total_referrals: int
    successful_referrals: int
    pending_referrals: int
    conversion_rate: float
    total_rewards: Decimal
    available_rewards: Decimal
    pending_rewards: Decimal
    redeemed_rewards: Decimal


@dataclass(frozen=True, slots=True)
class TimeSeriesPoint:
    day: date
    referrals: int
    conversions: int
    conversion_rate: float


@dataclass(frozen=True, slots=True)
class ReferralStats:
    period: str
    start_at: datetime | None
    end_at: datetime
    overview: StatsOverview
    time_series: list[TimeSeriesPoint]


@dataclass(frozen=True, slots=True)
class HistoryItem:
    user_id: int
    name: str
    email: str | None
    registered_at: datetime
    completed_at: datetime | None
    status: str
    active_days_count: int
    days_since_registration: int
    reward_id: UUID | None
    reward_amount: Decimal | None
    reward_currency: str | None
    reward_status: str | None


@dataclass(frozen=True, slots=True)
class HistoryPage:
    items: list[HistoryItem]
    pagination: Pagination


@dataclass(frozen=True, slots=True)
class RewardItem:
    reward_id: UUID
    reward_type: str
    amount: Decimal
    currency: str
    status: str
    created_at: datetime
    available_at: datetime | None
    redeemed_at: datetime | None
    expires_at: datetime | None
    expired_at: datetime | None
    referred_user_id: int
    referred_user_name: str
    referred_user_email: str | None


@dataclass(frozen=True, slots=True)
class RewardsSummary:
    total_available: Decimal
    total_redeemed: Decimal
    pending_amount: Decimal
    total_lifetime: Decimal
    available_count: int
    redeemed_count: int
    pending_count: int
    expired_count: int


@dataclass(frozen=True, slots=True)
class RewardsPage:
    items: list[RewardItem]
    summary: RewardsSummary
    pagination: Pagination


@dataclass(frozen=True, slots=True)
class RedemptionResult:
    reward_ids: list[UUID]
    count: int
    total_amount: Decimal
    currency: str
    redemption_method: str
    settlement_ref: str
    processing_time: str
    redeemed_at: datetime


@dataclass(frozen=True, slots=True)
class ReferralPreferences:
    user_id: int
    notifications_enabled: bool
    email_notifications: bool
    push_notifications: bool
    privacy_mode: str
    custom_referral_code: str | None
    use_custom_code: bool
    preferred_redemption_method: str
    created_at: datetime | None
    updated_at: datetime | None

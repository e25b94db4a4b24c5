from __future__ import annotations

from datetime import timedelta

REWARD_STATUS_PENDING = "PENDING"
REWARD_STATUS_AVAILABLE = "AVAILABLE"
REWARD_STATUS_REDEEMED = "REDEEMED"
REWARD_STATUS_EXPIRED = "EXPIRED"

REWARD_STATUSES: tuple[str, ...] = (
    REWARD_STATUS_PENDING,
    REWARD_STATUS_AVAILABLE,
    REWARD_STATUS_REDEEMED,
    REWARD_STATUS_EXPIRED,
)
REWARD_TYPES: tuple[str, ...] = ("CASH", "CREDIT", "DISCOUNT", "BONUS")

REDEMPTION_METHODS: frozenset[str] = frozenset(
    {"bank_transfer", "paypal", "gift_card", "account_credit", "crypto"}
)
REDEMPTION_PROCESSING_TIME = "3-5 business days"

PRIVACY_MODES: frozenset[str] = frozenset({"public", "friends_only", "private"})

HISTORY_STATUS_FILTERS: frozenset[str] = frozenset({"all", "pending", "completed"})
HISTORY_SORT_FIELDS: frozenset[str] = frozenset(
    {"created_at", "completed_at", "name", "email", "reward_amount"}
)
REWARD_STATUS_FILTERS: dict[str, str | None] = {
    "all": None,
    "pending": REWARD_STATUS_PENDING,
    "available": REWARD_STATUS_AVAILABLE,
    "redeemed": REWARD_STATUS_REDEEMED,
    "expired": REWARD_STATUS_EXPIRED,
}

STATS_PERIODS: dict[str, timedelta | None] = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "1y": timedelta(days=365),
    "all": None,
}
DEFAULT_STATS_PERIOD = "30d"

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100

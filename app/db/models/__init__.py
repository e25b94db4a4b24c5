from app.db.models.base import Base
from app.db.models.referral_activity_days import ReferralActivityDay
from app.db.models.referral_rewards import ReferralReward
from app.db.models.referral_settings import ReferralSettings
from app.db.models.users import User

__all__ = [
    "Base",
    "ReferralActivityDay",
    "ReferralReward",
    "ReferralSettings",
    "User",
]

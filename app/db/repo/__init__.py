from app.db.repo.referral_activity_days_repo import ReferralActivityDaysRepo
from app.db.repo.referral_rewards_repo import ReferralRewardsRepo
from app.db.repo.referral_settings_repo import ReferralSettingsRepo
from app.db.repo.users_repo import UsersRepo

__all__ = [
    "ReferralActivityDaysRepo",
    "ReferralRewardsRepo",
    "ReferralSettingsRepo",
    "UsersRepo",
]

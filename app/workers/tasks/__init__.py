from app.workers.tasks.referrals import (
    run_referral_activity_rollover,
    run_referral_completion,
    run_referral_reward_expiration,
)

__all__ = [
    "run_referral_activity_rollover",
    "run_referral_completion",
    "run_referral_reward_expiration",
]

from app.economy.referrals import ReferralService

__all__ = ["ReferralService"]

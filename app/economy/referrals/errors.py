from __future__ import annotations

from uuid import UUID


class ReferralError(Exception):
    code = "E_REFERRAL"
    http_status = 400


class InvalidReferralCodeError(ReferralError):
    code = "E_REFERRAL_CODE_INVALID"


class SelfReferralError(ReferralError):
    code = "E_REFERRAL_SELF"


class AlreadyReferredError(ReferralError):
    code = "E_REFERRAL_ALREADY_APPLIED"


class CodeGenerationExhaustedError(ReferralError):
    code = "E_REFERRAL_CODE_EXHAUSTED"
    http_status = 409


class RewardNotAvailableError(ReferralError):
    code = "E_REFERRAL_REWARD_NOT_AVAILABLE"
    http_status = 409

    def __init__(self, reward_id: UUID | str | None) -> None:
        super().__init__(f"reward is not available: {reward_id}")
        self.reward_id = reward_id


class MixedCurrencyError(ReferralError):
    code = "E_REFERRAL_MIXED_CURRENCY"
    http_status = 409


class DuplicateCustomCodeError(ReferralError):
    code = "E_REFERRAL_CUSTOM_CODE_TAKEN"
    http_status = 409


class ReferralUserNotFoundError(ReferralError):
    code = "E_REFERRAL_USER_NOT_FOUND"
    http_status = 404


class InvalidRedemptionError(ReferralError):
    code = "E_REFERRAL_REDEMPTION_INVALID"

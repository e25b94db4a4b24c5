from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.referral_codes import normalize_referral_code
from app.db.models.referral_settings import ReferralSettings
from app.db.repo.referral_settings_repo import ReferralSettingsRepo
from app.db.repo.users_repo import UsersRepo
from app.economy.referrals.constants import PRIVACY_MODES, REDEMPTION_METHODS
from app.economy.referrals.errors import DuplicateCustomCodeError, ReferralUserNotFoundError

from .models import ReferralPreferences

logger = structlog.get_logger(__name__)

_BOOL_FIELDS = frozenset(
    {"notifications_enabled", "email_notifications", "push_notifications", "use_custom_code"}
)
_UPDATABLE_FIELDS = _BOOL_FIELDS | {
    "privacy_mode",
    "custom_referral_code",
    "preferred_redemption_method",
}


def _to_preferences(user_id: int, settings: ReferralSettings | None) -> ReferralPreferences:
    if settings is None:
        return ReferralPreferences(
            user_id=user_id,
            notifications_enabled=True,
            email_notifications=True,
            push_notifications=True,
            privacy_mode="public",
            custom_referral_code=None,
            use_custom_code=False,
            preferred_redemption_method="account_credit",
            created_at=None,
            updated_at=None,
        )
    return ReferralPreferences(
        user_id=settings.user_id,
        notifications_enabled=settings.notifications_enabled,
        email_notifications=settings.email_notifications,
        push_notifications=settings.push_notifications,
        privacy_mode=settings.privacy_mode,
        custom_referral_code=settings.custom_referral_code,
        use_custom_code=settings.use_custom_code,
        preferred_redemption_method=settings.preferred_redemption_method,
        created_at=settings.created_at,
        updated_at=settings.updated_at,
    )


async def get_referral_settings(session: AsyncSession, *, user_id: int) -> ReferralPreferences:
    settings = await ReferralSettingsRepo.get_by_user_id(session, user_id)
    return _to_preferences(user_id, settings)


async def _validated_custom_code(
    session: AsyncSession,
    *,
    user_id: int,
    raw_code: object,
) -> str | None:
    if raw_code is None or (isinstance(raw_code, str) and not raw_code.strip()):
        return None
    code = normalize_referral_code(raw_code) if isinstance(raw_code, str) else None
    if code is None:
        raise ValueError(f"invalid custom referral code: {raw_code!r}")

    holder = await ReferralSettingsRepo.get_by_custom_code(session, code)
    if holder is not None and holder.user_id != user_id:
        raise DuplicateCustomCodeError(f"custom referral code is taken: {code}")
    code_owner = await UsersRepo.get_by_referral_code(session, code)
    if code_owner is not None and code_owner.id != user_id:
        raise DuplicateCustomCodeError(f"custom referral code is taken: {code}")
    return code


async def update_referral_settings(
    session: AsyncSession,
    *,
    user_id: int,
    changes: Mapping[str, object],
    now_utc: datetime,
) -> ReferralPreferences:
    unknown = set(changes) - _UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"unknown referral settings: {sorted(unknown)}")
    for field in _BOOL_FIELDS & set(changes):
        if not isinstance(changes[field], bool):
            raise ValueError(f"{field} must be a boolean")
    if "privacy_mode" in changes and changes["privacy_mode"] not in PRIVACY_MODES:
        raise ValueError(f"unsupported privacy mode: {changes['privacy_mode']}")
    if (
        "preferred_redemption_method" in changes
        and changes["preferred_redemption_method"] not in REDEMPTION_METHODS
    ):
        raise ValueError(
            f"unsupported redemption method: {changes['preferred_redemption_method']}"
        )

    user = await UsersRepo.get_by_id(session, user_id)
    if user is None:
        raise ReferralUserNotFoundError(f"user not found: {user_id}")

    values = dict(changes)
    if "custom_referral_code" in values:
        values["custom_referral_code"] = await _validated_custom_code(
            session,
            user_id=user_id,
            raw_code=values["custom_referral_code"],
        )

    settings = await ReferralSettingsRepo.get_by_user_id_for_update(session, user_id)
    if settings is None:
        settings = await ReferralSettingsRepo.create(
            session,
            settings=ReferralSettings(user_id=user_id, created_at=now_utc, updated_at=now_utc),
        )
    for field, value in values.items():
        setattr(settings, field, value)
    if settings.custom_referral_code is None:
        settings.use_custom_code = False
    settings.updated_at = now_utc
    await session.flush()

    logger.info("referral_settings_updated", user_id=user_id, fields=sorted(values))
    return _to_preferences(user_id, settings)

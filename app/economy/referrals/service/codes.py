from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.referral_codes import (
    derive_referral_code_base,
    normalize_referral_code,
    referral_code_candidate,
)
from app.db.models.users import User
from app.db.repo.referral_settings_repo import ReferralSettingsRepo
from app.db.repo.users_repo import UsersRepo
from app.economy.referrals.errors import CodeGenerationExhaustedError, ReferralUserNotFoundError

from .models import ReferrerSummary

logger = structlog.get_logger(__name__)


async def _is_code_taken(session: AsyncSession, *, code: str, user_id: int) -> bool:
    owner = await UsersRepo.get_by_referral_code(session, code)
    if owner is not None and owner.id != user_id:
        return True
    custom_owner = await ReferralSettingsRepo.get_by_custom_code(session, code)
    return custom_owner is not None and custom_owner.user_id != user_id


async def generate_referral_code(session: AsyncSession, *, user_id: int) -> str:
    """Returns the user's code, assigning one from their handle on first use."""
    user = await UsersRepo.get_by_id_for_update(session, user_id)
    if user is None:
        raise ReferralUserNotFoundError(f"user not found: {user_id}")
    if user.referral_code:
        return user.referral_code

    base = derive_referral_code_base(user_id=user.id, username=user.username, email=user.email)
    max_attempts = get_settings().referral_code_max_attempts
    for attempt in range(max_attempts):
        candidate = referral_code_candidate(base, attempt)
        if await _is_code_taken(session, code=candidate, user_id=user.id):
            continue
        assigned = await UsersRepo.set_referral_code_if_missing(
            session,
            user_id=user.id,
            referral_code=candidate,
        )
        if not assigned:
            # Another request assigned a code first.
            await session.refresh(user, attribute_names=["referral_code"])
            if user.referral_code:
                return user.referral_code
            continue
        user.referral_code = candidate
        logger.info("referral_code_assigned", user_id=user.id, referral_code=candidate)
        return candidate

    logger.warning("referral_code_generation_exhausted", user_id=user.id, base=base)
    raise CodeGenerationExhaustedError(f"no free referral code for user {user.id}")


async def resolve_referrer(session: AsyncSession, raw_code: str | None) -> User | None:
    """Resolves a referral code, an active custom code, or an email address to its owner."""
    if raw_code is None or not raw_code.strip():
        return None
    value = raw_code.strip()
    if "@" in value:
        return await UsersRepo.get_by_email(session, value)

    code = normalize_referral_code(value)
    if code is None:
        return None
    referrer = await UsersRepo.get_by_referral_code(session, code)
    if referrer is not None:
        return referrer
    custom = await ReferralSettingsRepo.get_active_by_custom_code(session, code)
    if custom is None:
        return None
    return await UsersRepo.get_by_id(session, custom.user_id)


async def build_referrer_summary(session: AsyncSession, *, referrer: User) -> ReferrerSummary:
    _, successful = await UsersRepo.count_referrals(session, referrer_user_id=referrer.id)
    return ReferrerSummary(
        user_id=referrer.id,
        display_name=referrer.display_name,
        successful_referrals=successful,
    )

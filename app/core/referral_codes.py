from __future__ import annotations

import re

REFERRAL_CODE_RE = re.compile(r"^[A-Z0-9][A-Z0-9-]{1,63}$")
MAX_BASE_LENGTH = 24
_NON_CODE_CHARS_RE = re.compile(r"[^A-Z0-9]")


def normalize_referral_code(raw_code: str | None) -> str | None:
    """Uppercases and trims a user supplied code; returns None when it cannot be a code."""
    if raw_code is None:
        return None
    candidate = raw_code.strip().upper()
    if not REFERRAL_CODE_RE.match(candidate):
        return None
    return candidate


def derive_referral_code_base(
    *,
    user_id: int,
    username: str | None,
    email: str | None,
) -> str:
    handle = username or (email.split("@", maxsplit=1)[0] if email else None)
    base = _NON_CODE_CHARS_RE.sub("", (handle or "").upper())[:MAX_BASE_LENGTH]
    if len(base) < 3:
        return f"USER{user_id}"
    return base


def referral_code_candidate(base: str, attempt: int) -> str:
    if attempt <= 0:
        return base
    return f"{base}-{attempt}"

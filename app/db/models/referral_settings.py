from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base, UtcDateTime


class ReferralSettings(Base):
    __tablename__ = "referral_settings"
    __table_args__ = (
        CheckConstraint(
            "privacy_mode IN ('public','friends_only','private')",
            name="ck_referral_settings_privacy_mode",
        ),
    )

    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id"),
        primary_key=True,
    )
    notifications_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    email_notifications: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    push_notifications: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    privacy_mode: Mapped[str] = mapped_column(
        String(16), nullable=False, default="public", server_default=text("'public'")
    )
    custom_referral_code: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    use_custom_code: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    preferred_redemption_method: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="account_credit",
        server_default=text("'account_credit'"),
    )
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)

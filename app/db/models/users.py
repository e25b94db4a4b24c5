from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import BigIntPK, Base, UtcDateTime


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "referred_by_user_id IS NULL OR referred_by_user_id <> id",
            name="ck_users_no_self_referral",
        ),
        CheckConstraint("active_days_count >= 0", name="ck_users_active_days_non_negative"),
        Index("idx_users_email", "email"),
        Index("idx_users_referred_by_completed", "referred_by_user_id", "referral_completed_at"),
        Index("idx_users_created_at", "created_at"),
        Index("idx_users_last_active", "last_active_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    username: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    first_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    referral_code: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    referred_by_user_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("users.id"),
        nullable=True,
    )
    referral_completed_at: Mapped[datetime | None] = mapped_column(UtcDateTime, nullable=True)
    active_days_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    created_at: Mapped[datetime] = mapped_column(
        UtcDateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )
    last_active_at: Mapped[datetime | None] = mapped_column(UtcDateTime, nullable=True)

    @property
    def display_name(self) -> str:
        full_name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full_name or self.username or f"User {self.id}"

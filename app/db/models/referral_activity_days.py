from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import BigInteger, Date, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base, UtcDateTime


class ReferralActivityDay(Base):
    __tablename__ = "referral_activity_days"
    __table_args__ = (
        Index("idx_referral_activity_days_activity_date", "activity_date"),
    )

    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id"),
        primary_key=True,
    )
    activity_date: Mapped[date] = mapped_column(Date, primary_key=True)
    first_seen_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)

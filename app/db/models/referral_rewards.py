from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base, UtcDateTime


class ReferralReward(Base):
    __tablename__ = "referral_rewards"
    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING','AVAILABLE','REDEEMED','EXPIRED')",
            name="ck_referral_rewards_status",
        ),
        CheckConstraint(
            "reward_type IN ('CASH','CREDIT','DISCOUNT','BONUS')",
            name="ck_referral_rewards_reward_type",
        ),
        CheckConstraint("amount >= 0", name="ck_referral_rewards_amount_non_negative"),
        CheckConstraint(
            "beneficiary_user_id <> referred_user_id",
            name="ck_referral_rewards_no_self_referral",
        ),
        UniqueConstraint(
            "beneficiary_user_id",
            "referred_user_id",
            name="uq_referral_rewards_beneficiary_referred",
        ),
        Index("idx_referral_rewards_beneficiary_status", "beneficiary_user_id", "status"),
        Index("idx_referral_rewards_referred", "referred_user_id"),
        Index("idx_referral_rewards_status_created", "status", "created_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    beneficiary_user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id"),
        nullable=False,
    )
    referred_user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id"),
        nullable=False,
    )
    reward_type: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    redemption_method: Mapped[str | None] = mapped_column(String(32), nullable=True)
    redemption_details: Mapped[dict[str, object] | None] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
    )
    settlement_ref: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    available_at: Mapped[datetime | None] = mapped_column(UtcDateTime, nullable=True)
    redeemed_at: Mapped[datetime | None] = mapped_column(UtcDateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(UtcDateTime, nullable=True)
    expired_at: Mapped[datetime | None] = mapped_column(UtcDateTime, nullable=True)

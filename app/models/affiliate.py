"""
Affiliate model.

A user enrolled to earn commission for referring paying subscribers.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base


if TYPE_CHECKING:
    from app.models.payout_request import PayoutRequest
    from app.models.referral import Referral


class Affiliate(Base):
    """
    Affiliate entity.

    Monetary aggregates are integer cents. They are a cache over the
    referrals ledger and can be recomputed from it at any time.

    Attributes:
        id: Primary key
        user_id: Owning user (one affiliate per user)
        referral_code: Unique shareable code, immutable once assigned
        commission_rate: Integer percentage fixed at registration
        payout_destination_id: External payout account reference
        payout_onboarded: Set once the destination can receive payouts
        is_active: Deactivated affiliates' codes no longer validate
        total_earned: Sum of all commissions (cents)
        total_paid: Sum of all settled payouts (cents)
        referral_count: Number of referrals recorded
        created_at: Registration time
        onboarded_at: When payout_onboarded flipped to True
    """

    __tablename__ = "affiliates"
    __table_args__ = (
        CheckConstraint(
            "commission_rate >= 0 AND commission_rate <= 100",
            name="commission_rate_range",
        ),
        CheckConstraint("total_earned >= 0", name="total_earned_non_negative"),
        CheckConstraint("total_paid >= 0", name="total_paid_non_negative"),
        CheckConstraint("referral_count >= 0", name="referral_count_non_negative"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    user_id: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True
    )

    referral_code: Mapped[str] = mapped_column(
        String(32), nullable=False, unique=True, index=True
    )

    commission_rate: Mapped[int] = mapped_column(Integer, nullable=False)

    # Payout destination (Stripe Connect account)
    payout_destination_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    payout_onboarded: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )

    # Aggregates (cents)
    total_earned: Mapped[int] = mapped_column(
        BigInteger, default=0, nullable=False
    )
    total_paid: Mapped[int] = mapped_column(
        BigInteger, default=0, nullable=False
    )
    referral_count: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    onboarded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    referrals: Mapped[list["Referral"]] = relationship(
        "Referral", back_populates="affiliate", lazy="raise"
    )
    payout_requests: Mapped[list["PayoutRequest"]] = relationship(
        "PayoutRequest", back_populates="affiliate", lazy="raise"
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Affiliate(id={self.id}, user_id={self.user_id!r}, "
            f"code={self.referral_code!r}, onboarded={self.payout_onboarded})>"
        )

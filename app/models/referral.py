"""
Referral model.

One commission-earning event tied to exactly one subscription charge.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.enums import ReferralStatus


if TYPE_CHECKING:
    from app.models.affiliate import Affiliate


class Referral(Base):
    """
    Referral ledger entry.

    Attributes:
        id: Primary key
        affiliate_id: Owning affiliate
        referred_user_id: The paying user
        subscription_charge_id: Billing event ID, unique across all referrals
        charge_amount: Charge amount (cents)
        commission_amount: floor(charge_amount * rate / 100) (cents)
        status: pending or paid
        created_at: Recording time, start of the clearance window
        paid_at: Settlement time
    """

    __tablename__ = "referrals"
    __table_args__ = (
        Index("idx_referrals_affiliate_status", "affiliate_id", "status"),
        CheckConstraint("charge_amount >= 0", name="charge_amount_non_negative"),
        CheckConstraint(
            "commission_amount >= 0", name="commission_amount_non_negative"
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    affiliate_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("affiliates.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    referred_user_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )

    # Idempotency key for at-least-once billing event delivery
    subscription_charge_id: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True
    )

    charge_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    commission_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=ReferralStatus.PENDING.value,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    affiliate: Mapped["Affiliate"] = relationship(
        "Affiliate", back_populates="referrals"
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Referral(id={self.id}, affiliate_id={self.affiliate_id}, "
            f"charge={self.subscription_charge_id!r}, "
            f"commission={self.commission_amount}, status={self.status!r})>"
        )

"""
PayoutRequest model.

An affiliate's claim on their cleared balance, settled after admin approval.
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
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.enums import PayoutRequestStatus


if TYPE_CHECKING:
    from app.models.affiliate import Affiliate


# Partial index predicate: at most one in-flight request per affiliate
IN_FLIGHT_PREDICATE = text("status IN ('pending', 'approved')")


class PayoutRequest(Base):
    """
    Payout request entity.

    The referral set a request settles is not stored: it is re-derived
    at approval as the affiliate's pending referrals that had cleared
    at ``requested_at``.

    Attributes:
        id: Primary key
        affiliate_id: Requesting affiliate
        amount: Quoted cleared sum at request time (cents)
        status: pending, approved, paid or rejected
        rejection_reason: Set only when rejected
        transfer_reference: External transfer ID once issued
        requested_at: Creation time, pins the settlement scope
        approved_at: When the transfer was issued
        settled_at: When the ledger was settled
        rejected_at: When the request was rejected
        processed_by: Admin identifier that approved or rejected
    """

    __tablename__ = "payout_requests"
    __table_args__ = (
        Index(
            "uq_payout_requests_in_flight_affiliate",
            "affiliate_id",
            unique=True,
            postgresql_where=IN_FLIGHT_PREDICATE,
            sqlite_where=IN_FLIGHT_PREDICATE,
        ),
        Index("idx_payout_requests_status", "status"),
        CheckConstraint("amount > 0", name="amount_positive"),
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

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=PayoutRequestStatus.PENDING.value,
        nullable=False,
    )

    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    transfer_reference: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True
    )

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    settled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rejected_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processed_by: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )

    affiliate: Mapped["Affiliate"] = relationship(
        "Affiliate", back_populates="payout_requests"
    )

    @property
    def is_in_flight(self) -> bool:
        """Whether this request still blocks new requests."""
        return self.status in (
            PayoutRequestStatus.PENDING.value,
            PayoutRequestStatus.APPROVED.value,
        )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PayoutRequest(id={self.id}, affiliate_id={self.affiliate_id}, "
            f"amount={self.amount}, status={self.status!r})>"
        )

"""
Referral repository.

Data access layer for Referral model (the commission ledger).
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import ReferralStatus
from app.models.referral import Referral
from app.repositories.base import BaseRepository


@dataclass(frozen=True)
class LedgerTotals:
    """Aggregates derived directly from the ledger (cents)."""

    referral_count: int
    total_earned: int
    total_paid: int


class ReferralRepository(BaseRepository[Referral]):
    """Referral repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral repository."""
        super().__init__(Referral, session)

    async def get_by_charge_id(
        self, subscription_charge_id: str
    ) -> Referral | None:
        """
        Get referral recorded for a subscription charge.

        Args:
            subscription_charge_id: Billing event ID

        Returns:
            Referral or None
        """
        return await self.get_by(subscription_charge_id=subscription_charge_id)

    async def get_pending_by_affiliate(
        self, affiliate_id: int
    ) -> list[Referral]:
        """
        Get all pending referrals of an affiliate, oldest first.

        Args:
            affiliate_id: Affiliate ID

        Returns:
            List of pending referrals
        """
        stmt = (
            select(Referral)
            .where(
                Referral.affiliate_id == affiliate_id,
                Referral.status == ReferralStatus.PENDING.value,
            )
            .order_by(Referral.created_at.asc(), Referral.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_recent_by_affiliate(
        self, affiliate_id: int, limit: int
    ) -> list[Referral]:
        """
        Get most recent referrals of an affiliate, newest first.

        Args:
            affiliate_id: Affiliate ID
            limit: Max number of referrals

        Returns:
            List of referrals
        """
        stmt = (
            select(Referral)
            .where(Referral.affiliate_id == affiliate_id)
            .order_by(Referral.created_at.desc(), Referral.id.desc())
            .limit(limit)
            # Status is updated in bulk; do not serve stale identity-map rows
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_paid(
        self, referral_ids: list[int], paid_at: datetime
    ) -> int:
        """
        Transition pending referrals to paid.

        Only rows still pending are touched, so the returned count tells
        the caller whether every requested referral was settled.

        Args:
            referral_ids: Referral IDs to settle
            paid_at: Settlement time

        Returns:
            Number of referrals transitioned
        """
        if not referral_ids:
            return 0

        stmt = (
            update(Referral)
            .where(
                Referral.id.in_(referral_ids),
                Referral.status == ReferralStatus.PENDING.value,
            )
            .values(status=ReferralStatus.PAID.value, paid_at=paid_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def get_ledger_totals(self, affiliate_id: int) -> LedgerTotals:
        """
        Derive aggregates for an affiliate in a single query.

        Args:
            affiliate_id: Affiliate ID

        Returns:
            LedgerTotals with count, earned and paid sums
        """
        paid_commission = case(
            (
                Referral.status == ReferralStatus.PAID.value,
                Referral.commission_amount,
            ),
            else_=0,
        )
        stmt = select(
            func.count(Referral.id).label("referral_count"),
            func.coalesce(func.sum(Referral.commission_amount), 0).label(
                "total_earned"
            ),
            func.coalesce(func.sum(paid_commission), 0).label("total_paid"),
        ).where(Referral.affiliate_id == affiliate_id)

        row = (await self.session.execute(stmt)).one()
        return LedgerTotals(
            referral_count=int(row.referral_count),
            total_earned=int(row.total_earned),
            total_paid=int(row.total_paid),
        )

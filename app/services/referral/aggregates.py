"""
Affiliate aggregate reconciliation.

The aggregates on the affiliate row are a cache over the referral ledger.
This module derives them from the ledger and detects or repairs drift.
"""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.affiliate_repository import AffiliateRepository
from app.repositories.referral_repository import LedgerTotals, ReferralRepository
from app.utils.db_decorators import with_rollback_on_error
from app.utils.exceptions import AffiliateNotFound


@dataclass(frozen=True)
class AggregateDrift:
    """Cached versus ledger-derived aggregates of one affiliate."""

    affiliate_id: int
    cached: LedgerTotals
    derived: LedgerTotals

    @property
    def has_drift(self) -> bool:
        """Whether the cache disagrees with the ledger."""
        return self.cached != self.derived


class AffiliateAggregateManager:
    """Recomputes and reconciles affiliate aggregates."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize aggregate manager."""
        self.session = session
        self.affiliate_repo = AffiliateRepository(session)
        self.referral_repo = ReferralRepository(session)

    async def recompute_aggregates(self, affiliate_id: int) -> LedgerTotals:
        """
        Derive totalEarned, totalPaid and referralCount from the ledger.

        Args:
            affiliate_id: Affiliate ID

        Returns:
            LedgerTotals derived from referrals
        """
        return await self.referral_repo.get_ledger_totals(affiliate_id)

    @with_rollback_on_error
    async def reconcile_aggregates(
        self, affiliate_id: int, fix: bool = False
    ) -> AggregateDrift:
        """
        Compare cached aggregates with the ledger.

        Args:
            affiliate_id: Affiliate ID
            fix: Overwrite the cache with derived values on drift

        Returns:
            AggregateDrift report

        Raises:
            AffiliateNotFound: No such affiliate
        """
        affiliate = await self.affiliate_repo.get_by_id_for_update(affiliate_id)
        if not affiliate:
            raise AffiliateNotFound(
                f"Affiliate {affiliate_id} not found", affiliate_id=affiliate_id
            )

        cached = LedgerTotals(
            referral_count=affiliate.referral_count,
            total_earned=affiliate.total_earned,
            total_paid=affiliate.total_paid,
        )
        derived = await self.recompute_aggregates(affiliate_id)
        drift = AggregateDrift(affiliate_id=affiliate_id, cached=cached, derived=derived)

        if drift.has_drift:
            logger.warning(
                "Affiliate aggregate drift detected",
                extra={
                    "affiliate_id": affiliate_id,
                    "cached": cached,
                    "derived": derived,
                    "fix": fix,
                },
            )
            if fix:
                await self.affiliate_repo.overwrite_aggregates(
                    affiliate_id,
                    total_earned=derived.total_earned,
                    total_paid=derived.total_paid,
                    referral_count=derived.referral_count,
                )

        # Releases the row lock either way
        await self.session.commit()
        return drift

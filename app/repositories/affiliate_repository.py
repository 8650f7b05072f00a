"""
Affiliate repository.

Data access layer for Affiliate model.
"""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.affiliate import Affiliate
from app.repositories.base import BaseRepository


class AffiliateRepository(BaseRepository[Affiliate]):
    """
    Affiliate repository with specific queries.

    Aggregate mutations are single SQL increments so concurrent writers
    never lose updates. They do not touch in-session objects; refresh an
    entity after commit to read the new values.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize affiliate repository."""
        super().__init__(Affiliate, session)

    async def get_by_user(self, user_id: str) -> Affiliate | None:
        """
        Get affiliate record owned by a user.

        Args:
            user_id: Owning user ID

        Returns:
            Affiliate or None
        """
        return await self.get_by(user_id=user_id)

    async def get_by_code(self, referral_code: str) -> Affiliate | None:
        """
        Get affiliate by referral code (active or not).

        Args:
            referral_code: Normalised (upper-case) referral code

        Returns:
            Affiliate or None
        """
        return await self.get_by(referral_code=referral_code)

    async def code_exists(self, referral_code: str) -> bool:
        """Check whether a referral code is already taken."""
        stmt = select(Affiliate.id).where(
            Affiliate.referral_code == referral_code
        )
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def increment_earnings(
        self, affiliate_id: int, commission_amount: int
    ) -> bool:
        """
        Add one referral and its commission to the aggregates.

        Args:
            affiliate_id: Affiliate ID
            commission_amount: Commission in cents

        Returns:
            True if the affiliate row was updated
        """
        stmt = (
            update(Affiliate)
            .where(Affiliate.id == affiliate_id)
            .values(
                total_earned=Affiliate.total_earned + commission_amount,
                referral_count=Affiliate.referral_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def increment_paid(self, affiliate_id: int, amount: int) -> bool:
        """
        Add a settled payout to the paid aggregate.

        Args:
            affiliate_id: Affiliate ID
            amount: Settled amount in cents

        Returns:
            True if the affiliate row was updated
        """
        stmt = (
            update(Affiliate)
            .where(Affiliate.id == affiliate_id)
            .values(total_paid=Affiliate.total_paid + amount)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def set_payout_destination(
        self, affiliate_id: int, destination_id: str
    ) -> bool:
        """
        Store the payout destination unless one is already linked.

        Args:
            affiliate_id: Affiliate ID
            destination_id: External destination ID

        Returns:
            True if stored, False if a destination was already linked
        """
        stmt = (
            update(Affiliate)
            .where(
                Affiliate.id == affiliate_id,
                Affiliate.payout_destination_id.is_(None),
            )
            .values(payout_destination_id=destination_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def mark_onboarded(
        self, affiliate_id: int, onboarded_at: datetime
    ) -> bool:
        """
        Flip payout_onboarded to True if it is still False.

        Args:
            affiliate_id: Affiliate ID
            onboarded_at: Transition time

        Returns:
            True only for the call that performed the transition
        """
        stmt = (
            update(Affiliate)
            .where(
                Affiliate.id == affiliate_id,
                Affiliate.payout_onboarded == False,  # noqa: E712
            )
            .values(payout_onboarded=True, onboarded_at=onboarded_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def deactivate(self, affiliate_id: int) -> bool:
        """
        Deactivate an affiliate so its code no longer validates.

        Returns:
            True if the affiliate was active before the call
        """
        stmt = (
            update(Affiliate)
            .where(
                Affiliate.id == affiliate_id,
                Affiliate.is_active == True,  # noqa: E712
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def overwrite_aggregates(
        self,
        affiliate_id: int,
        total_earned: int,
        total_paid: int,
        referral_count: int,
    ) -> None:
        """Replace cached aggregates with values derived from the ledger."""
        stmt = (
            update(Affiliate)
            .where(Affiliate.id == affiliate_id)
            .values(
                total_earned=total_earned,
                total_paid=total_paid,
                referral_count=referral_count,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

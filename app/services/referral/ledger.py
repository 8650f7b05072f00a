"""
Referral ledger.

Append and query commission-earning events. Cleared/processing state is
derived on read from the creation time; it is never stored.
"""

from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.models.referral import Referral
from app.repositories.affiliate_repository import AffiliateRepository
from app.repositories.referral_repository import ReferralRepository
from app.services.referral.config import calculate_commission
from app.utils.datetime_utils import ensure_utc, utc_now
from app.utils.db_decorators import with_rollback_on_error
from app.utils.exceptions import (
    AffiliateNotFound,
    DuplicateCharge,
    InvariantViolation,
)
from clearance import ClearanceCalculator, ClearanceSplit


@dataclass(frozen=True)
class ClearedBalance:
    """Cleared, still-pending commissions of one affiliate."""

    amount: int
    referral_ids: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class _Entry:
    id: int
    created_at: datetime
    commission_amount: int


class ReferralLedger:
    """
    Commission ledger for affiliates.

    Args:
        session: Database session
        clearance_days: Clearance window in business days
    """

    def __init__(
        self, session: AsyncSession, clearance_days: int | None = None
    ) -> None:
        self.session = session
        self.referral_repo = ReferralRepository(session)
        self.affiliate_repo = AffiliateRepository(session)
        self.calculator = ClearanceCalculator(
            settings.clearance_business_days
            if clearance_days is None
            else clearance_days
        )

    @with_rollback_on_error
    async def append_referral(
        self,
        affiliate_id: int,
        referred_user_id: str,
        subscription_charge_id: str,
        charge_amount: int,
        created_at: datetime | None = None,
    ) -> Referral:
        """
        Record the commission earned from one subscription charge.

        The referral insert and the aggregate increment commit together.
        The unique index on subscription_charge_id is the idempotency
        guard; the lookup beforehand only avoids a failed insert.

        Args:
            affiliate_id: Earning affiliate
            referred_user_id: Paying user
            subscription_charge_id: Billing event ID
            charge_amount: Charge in cents
            created_at: Recording time (defaults to now)

        Returns:
            Created referral

        Raises:
            DuplicateCharge: The charge was already recorded (treat as success)
            AffiliateNotFound: No such affiliate
        """
        existing = await self.referral_repo.get_by_charge_id(subscription_charge_id)
        if existing:
            raise DuplicateCharge(existing)

        affiliate = await self.affiliate_repo.get_by_id(affiliate_id)
        if not affiliate:
            raise AffiliateNotFound(
                f"Affiliate {affiliate_id} not found", affiliate_id=affiliate_id
            )

        commission = calculate_commission(charge_amount, affiliate.commission_rate)

        try:
            referral = await self.referral_repo.create(
                affiliate_id=affiliate_id,
                referred_user_id=referred_user_id,
                subscription_charge_id=subscription_charge_id,
                charge_amount=charge_amount,
                commission_amount=commission,
                created_at=created_at or utc_now(),
            )
        except IntegrityError:
            # Concurrent delivery of the same charge won the insert
            await self.session.rollback()
            existing = await self.referral_repo.get_by_charge_id(
                subscription_charge_id
            )
            if existing:
                raise DuplicateCharge(existing)
            raise

        if not await self.affiliate_repo.increment_earnings(affiliate_id, commission):
            raise InvariantViolation(
                f"Aggregate update missed affiliate {affiliate_id}",
                affiliate_id=affiliate_id,
            )

        await self.session.commit()

        logger.info(
            "Referral appended",
            extra={
                "referral_id": referral.id,
                "affiliate_id": affiliate_id,
                "subscription_charge_id": subscription_charge_id,
                "charge_amount": charge_amount,
                "commission_amount": commission,
            },
        )
        return referral

    async def get_clearance_split(
        self, affiliate_id: int, now: datetime
    ) -> ClearanceSplit:
        """
        Split an affiliate's pending referrals into cleared and processing.

        Args:
            affiliate_id: Affiliate ID
            now: Reference time

        Returns:
            ClearanceSplit with sums and IDs
        """
        pending = await self.referral_repo.get_pending_by_affiliate(affiliate_id)
        entries = [
            _Entry(
                id=referral.id,
                created_at=ensure_utc(referral.created_at),
                commission_amount=referral.commission_amount,
            )
            for referral in pending
        ]
        return self.calculator.split(entries, ensure_utc(now))

    async def get_cleared_pending_sum(
        self, affiliate_id: int, now: datetime
    ) -> ClearedBalance:
        """
        Sum pending commissions that have cleared as of ``now``.

        Args:
            affiliate_id: Affiliate ID
            now: Reference time

        Returns:
            ClearedBalance with the total and contributing referral IDs
        """
        split = await self.get_clearance_split(affiliate_id, now)
        return ClearedBalance(
            amount=split.cleared_amount, referral_ids=split.cleared_ids
        )

    async def get_processing_sum(self, affiliate_id: int, now: datetime) -> int:
        """
        Sum pending commissions still inside the clearance window.

        Args:
            affiliate_id: Affiliate ID
            now: Reference time

        Returns:
            Processing amount in cents
        """
        split = await self.get_clearance_split(affiliate_id, now)
        return split.processing_amount

    async def mark_paid(self, referral_ids: list[int], paid_at: datetime) -> None:
        """
        Transition referrals from pending to paid.

        Does not commit: must run inside the payout settlement transaction
        so it lands together with the request and aggregate updates.

        Args:
            referral_ids: Referrals to settle
            paid_at: Settlement time

        Raises:
            InvariantViolation: Some referral was missing or not pending
        """
        expected = len(set(referral_ids))
        updated = await self.referral_repo.mark_paid(list(set(referral_ids)), paid_at)
        if updated != expected:
            raise InvariantViolation(
                f"Expected to settle {expected} referrals, settled {updated}",
                referral_ids=sorted(set(referral_ids)),
            )

    async def get_recent_referrals(
        self, affiliate_id: int, limit: int
    ) -> list[Referral]:
        """Most recent referrals of an affiliate, newest first."""
        return await self.referral_repo.get_recent_by_affiliate(affiliate_id, limit)

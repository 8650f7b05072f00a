"""
Payout request handling module.

Handles creation of payout requests: onboarding gate, one in-flight request
per affiliate, cleared funds only, minimum threshold.
"""

from datetime import datetime

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.models.enums import PayoutRequestStatus
from app.models.payout_request import PayoutRequest
from app.repositories.affiliate_repository import AffiliateRepository
from app.repositories.payout_request_repository import PayoutRequestRepository
from app.services.referral.ledger import ReferralLedger
from app.utils.datetime_utils import ensure_utc, utc_now
from app.utils.db_decorators import with_rollback_on_error
from app.utils.exceptions import (
    AffiliateNotFound,
    BelowMinimum,
    InvariantViolation,
    NoClearedFunds,
    NotOnboarded,
    RequestAlreadyPending,
)


class PayoutRequestHandler:
    """Handles payout request creation and validation."""

    def __init__(
        self,
        session: AsyncSession,
        ledger: ReferralLedger | None = None,
        minimum_payout_cents: int | None = None,
    ) -> None:
        """
        Initialize payout request handler.

        Args:
            session: Database session
            ledger: Referral ledger (defaults to one on the same session)
            minimum_payout_cents: Minimum cleared balance for a request

        Raises:
            ValueError: Minimum below one cent
        """
        self.session = session
        self.affiliate_repo = AffiliateRepository(session)
        self.payout_repo = PayoutRequestRepository(session)
        self.ledger = ledger or ReferralLedger(session)
        self.minimum_payout_cents = (
            settings.minimum_payout_cents
            if minimum_payout_cents is None
            else minimum_payout_cents
        )
        if self.minimum_payout_cents < 1:
            raise ValueError(
                f"minimum_payout_cents must be >= 1, got {self.minimum_payout_cents}"
            )

    @with_rollback_on_error
    async def request_payout(
        self, affiliate_id: int, now: datetime | None = None
    ) -> PayoutRequest:
        """
        Create a payout request for the affiliate's cleared balance.

        The affiliate row is locked for the duration of the checks, and
        the partial unique index on in-flight requests backs the
        one-in-flight rule if the lock is bypassed. Referrals stay pending
        until settlement.

        Args:
            affiliate_id: Affiliate ID
            now: Request time; pins which referrals the request covers

        Returns:
            Created pending PayoutRequest

        Raises:
            AffiliateNotFound: No such affiliate
            NotOnboarded: Payout destination not onboarded
            RequestAlreadyPending: Another request is in flight
            NoClearedFunds: No referral has cleared
            BelowMinimum: Cleared sum under the minimum
        """
        now = ensure_utc(now or utc_now())

        # Lock affiliate row: serializes requests of the same affiliate
        affiliate = await self.affiliate_repo.get_by_id_for_update(affiliate_id)
        if not affiliate:
            raise AffiliateNotFound(
                f"Affiliate {affiliate_id} not found", affiliate_id=affiliate_id
            )

        if not affiliate.payout_onboarded or not affiliate.payout_destination_id:
            raise NotOnboarded(
                "Payout destination onboarding not completed",
                affiliate_id=affiliate_id,
            )

        in_flight = await self.payout_repo.get_in_flight_by_affiliate(affiliate_id)
        if len(in_flight) > 1:
            logger.critical(
                "Multiple in-flight payout requests",
                extra={
                    "affiliate_id": affiliate_id,
                    "request_ids": [r.id for r in in_flight],
                },
            )
            raise InvariantViolation(
                f"Affiliate {affiliate_id} has {len(in_flight)} in-flight payout requests",
                affiliate_id=affiliate_id,
            )
        if in_flight:
            raise RequestAlreadyPending(
                f"Payout request {in_flight[0].id} is still {in_flight[0].status}",
                affiliate_id=affiliate_id,
                request_id=in_flight[0].id,
            )

        split = await self.ledger.get_clearance_split(affiliate_id, now)

        if not split.cleared_ids:
            raise NoClearedFunds(processing_amount=split.processing_amount)

        if split.cleared_amount < self.minimum_payout_cents:
            raise BelowMinimum(
                cleared_amount=split.cleared_amount,
                minimum_amount=self.minimum_payout_cents,
            )

        try:
            payout_request = await self.payout_repo.create(
                affiliate_id=affiliate_id,
                amount=split.cleared_amount,
                status=PayoutRequestStatus.PENDING.value,
                requested_at=now,
            )
        except IntegrityError as e:
            await self.session.rollback()
            in_flight = await self.payout_repo.get_in_flight_by_affiliate(
                affiliate_id
            )
            if not in_flight:
                raise
            raise RequestAlreadyPending(
                "Concurrent payout request already in flight",
                affiliate_id=affiliate_id,
                request_id=in_flight[0].id,
            ) from e

        await self.session.commit()

        logger.info(
            "Payout request created",
            extra={
                "request_id": payout_request.id,
                "affiliate_id": affiliate_id,
                "amount": split.cleared_amount,
                "referral_count": len(split.cleared_ids),
                "processing_amount": split.processing_amount,
            },
        )
        return payout_request

"""
Payout lifecycle handling module.

Handles admin approval (external transfer, then atomic settlement) and
rejection of payout requests.
"""

from datetime import datetime

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.affiliate import Affiliate
from app.models.enums import PayoutRequestStatus
from app.models.payout_request import PayoutRequest
from app.repositories.affiliate_repository import AffiliateRepository
from app.repositories.payout_request_repository import PayoutRequestRepository
from app.services.payout_destination.base import PayoutDestinationProvider
from app.services.referral.ledger import ClearedBalance, ReferralLedger
from app.utils.datetime_utils import ensure_utc, utc_now
from app.utils.db_decorators import with_rollback_on_error
from app.utils.exceptions import (
    AlreadyProcessed,
    InvariantViolation,
    NotOnboarded,
    PayoutDestinationError,
    PayoutRequestNotFound,
    RejectionReasonRequired,
)


def transfer_idempotency_key(request_id: int) -> str:
    """Provider idempotency key for a payout request's transfer."""
    return f"affiliate-payout-request-{request_id}"


class PayoutLifecycleHandler:
    """Handles payout approval, settlement and rejection."""

    def __init__(
        self,
        session: AsyncSession,
        provider: PayoutDestinationProvider | None = None,
        ledger: ReferralLedger | None = None,
    ) -> None:
        """
        Initialize payout lifecycle handler.

        Args:
            session: Database session
            provider: Payout destination provider (needed for approval only)
            ledger: Referral ledger (defaults to one on the same session)
        """
        self.session = session
        self.provider = provider
        self.affiliate_repo = AffiliateRepository(session)
        self.payout_repo = PayoutRequestRepository(session)
        self.ledger = ledger or ReferralLedger(session)

    async def _lock_request(self, request_id: int) -> PayoutRequest:
        payout_request = await self.payout_repo.get_by_id_for_update(request_id)
        if not payout_request:
            raise PayoutRequestNotFound(
                f"Payout request {request_id} not found", request_id=request_id
            )
        return payout_request

    async def _settlement_scope(
        self, payout_request: PayoutRequest
    ) -> ClearedBalance:
        """
        Re-derive the referrals a request pays.

        Scope is the affiliate's pending referrals that had cleared at
        request time; referrals clearing later are left for a future
        request. The sum must equal the quoted amount.
        """
        scope = await self.ledger.get_cleared_pending_sum(
            payout_request.affiliate_id, ensure_utc(payout_request.requested_at)
        )
        if scope.amount != payout_request.amount:
            logger.critical(
                "Payout settlement scope does not match quoted amount",
                extra={
                    "request_id": payout_request.id,
                    "quoted_amount": payout_request.amount,
                    "derived_amount": scope.amount,
                    "referral_ids": scope.referral_ids,
                },
            )
            raise InvariantViolation(
                f"Payout request {payout_request.id} quoted {payout_request.amount}, "
                f"ledger derives {scope.amount}",
                request_id=payout_request.id,
            )
        return scope

    @with_rollback_on_error
    async def approve(
        self,
        request_id: int,
        now: datetime | None = None,
        admin_id: str | None = None,
    ) -> PayoutRequest:
        """
        Approve a payout request: transfer funds, then settle the ledger.

        Step 1 (pending only): issue the transfer for the quoted amount and
        commit the transfer reference with status APPROVED. A failed
        transfer leaves the request pending and nothing written.

        Step 2: in one transaction mark the scoped referrals paid, set the
        request PAID and add the amount to the affiliate's total_paid.

        Retrying an APPROVED request skips the transfer and only settles.
        A pending request first asks the provider for a transfer already
        issued under its idempotency key (a timed-out call whose result
        was never recorded) and adopts it instead of transferring again.

        Args:
            request_id: Payout request ID
            now: Approval time
            admin_id: Approving admin (audit)

        Returns:
            Settled PayoutRequest

        Raises:
            PayoutRequestNotFound: No such request
            AlreadyProcessed: Request already paid or rejected
            TransferFailed: Provider refused or failed the transfer
            InvariantViolation: Ledger no longer matches the quote
        """
        now = ensure_utc(now or utc_now())

        payout_request = await self._lock_request(request_id)
        if not payout_request.is_in_flight:
            raise AlreadyProcessed(payout_request.id, payout_request.status)

        affiliate = await self.affiliate_repo.get_by_id_for_update(
            payout_request.affiliate_id
        )
        scope = await self._settlement_scope(payout_request)

        if payout_request.transfer_reference is None:
            await self._issue_transfer(payout_request, affiliate, now, admin_id)
        else:
            logger.info(
                "Transfer already recorded, settling without re-issuing",
                extra={
                    "request_id": payout_request.id,
                    "transfer_reference": payout_request.transfer_reference,
                },
            )

        await self._settle(payout_request, scope, now)
        return payout_request

    async def _issue_transfer(
        self,
        payout_request: PayoutRequest,
        affiliate: Affiliate,
        now: datetime,
        admin_id: str | None,
    ) -> None:
        """Issue or adopt the transfer, then commit its reference (APPROVED)."""
        if not affiliate.payout_destination_id:
            raise NotOnboarded(
                "Affiliate has no payout destination",
                affiliate_id=affiliate.id,
            )

        if self.provider is None:
            raise PayoutDestinationError("Payout destination provider not configured")

        idempotency_key = transfer_idempotency_key(payout_request.id)
        transfer_reference = await self.provider.find_transfer(
            affiliate.payout_destination_id, idempotency_key
        )
        if transfer_reference:
            logger.warning(
                "Adopting unrecorded payout transfer",
                extra={
                    "request_id": payout_request.id,
                    "affiliate_id": affiliate.id,
                    "transfer_reference": transfer_reference,
                },
            )
        else:
            transfer_reference = await self.provider.transfer(
                affiliate.payout_destination_id,
                payout_request.amount,
                idempotency_key=idempotency_key,
                metadata={
                    "affiliate_id": str(affiliate.id),
                    "payout_request_id": str(payout_request.id),
                },
            )

        payout_request.status = PayoutRequestStatus.APPROVED.value
        payout_request.transfer_reference = transfer_reference
        payout_request.approved_at = now
        payout_request.processed_by = admin_id
        await self.session.commit()

        logger.info(
            "Payout transfer issued",
            extra={
                "request_id": payout_request.id,
                "affiliate_id": affiliate.id,
                "amount": payout_request.amount,
                "transfer_reference": transfer_reference,
                "admin_id": admin_id,
            },
        )

    async def _settle(
        self, payout_request: PayoutRequest, scope: ClearedBalance, now: datetime
    ) -> None:
        """Mark referrals paid, request paid and bump total_paid atomically."""
        # Re-acquire locks released by the reference commit
        payout_request = await self._lock_request(payout_request.id)
        if payout_request.status != PayoutRequestStatus.APPROVED.value:
            raise AlreadyProcessed(payout_request.id, payout_request.status)
        await self.affiliate_repo.get_by_id_for_update(payout_request.affiliate_id)

        await self.ledger.mark_paid(scope.referral_ids, now)

        payout_request.status = PayoutRequestStatus.PAID.value
        payout_request.settled_at = now

        if not await self.affiliate_repo.increment_paid(
            payout_request.affiliate_id, payout_request.amount
        ):
            raise InvariantViolation(
                f"Aggregate update missed affiliate {payout_request.affiliate_id}",
                request_id=payout_request.id,
            )

        await self.session.commit()

        logger.info(
            "Payout settled",
            extra={
                "request_id": payout_request.id,
                "affiliate_id": payout_request.affiliate_id,
                "amount": payout_request.amount,
                "referral_ids": scope.referral_ids,
                "transfer_reference": payout_request.transfer_reference,
            },
        )

    @with_rollback_on_error
    async def reject(
        self,
        request_id: int,
        reason: str,
        now: datetime | None = None,
        admin_id: str | None = None,
    ) -> PayoutRequest:
        """
        Reject a pending payout request.

        Referrals stay pending and become eligible for a future request.

        Args:
            request_id: Payout request ID
            reason: Rejection reason (required)
            now: Rejection time
            admin_id: Rejecting admin (audit)

        Returns:
            Rejected PayoutRequest

        Raises:
            RejectionReasonRequired: Empty reason
            PayoutRequestNotFound: No such request
            AlreadyProcessed: Request not pending
        """
        if not reason or not reason.strip():
            raise RejectionReasonRequired("A rejection reason is required")

        now = ensure_utc(now or utc_now())

        payout_request = await self._lock_request(request_id)
        if payout_request.status != PayoutRequestStatus.PENDING.value:
            raise AlreadyProcessed(payout_request.id, payout_request.status)

        payout_request.status = PayoutRequestStatus.REJECTED.value
        payout_request.rejection_reason = reason.strip()
        payout_request.rejected_at = now
        payout_request.processed_by = admin_id
        await self.session.commit()

        logger.info(
            "Payout request rejected",
            extra={
                "request_id": payout_request.id,
                "affiliate_id": payout_request.affiliate_id,
                "amount": payout_request.amount,
                "reason": payout_request.rejection_reason,
                "admin_id": admin_id,
            },
        )
        return payout_request

"""
Affiliate program service - Main service facade.

This service acts as the caller-facing entry point and delegates to
specialized modules. Affiliate-facing methods translate precondition
failures into actionable messages; admin methods return raw failure
detail for diagnosis.

Module structure:
- affiliate/registry: Registration, code validation, payout destination
- referral/ledger: Commission ledger, cleared and processing sums
- referral/aggregates: Aggregate reconciliation
- payout/payout_request_handler: Payout request creation
- payout/payout_lifecycle_handler: Approval, settlement, rejection
- payout/payout_query_service: Queries and history
"""

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.business_constants import DASHBOARD_RECENT_REFERRALS_LIMIT
from app.config.settings import settings
from app.models.affiliate import Affiliate
from app.models.payout_request import PayoutRequest
from app.models.referral import Referral
from app.services.affiliate.registry import AffiliateRegistry, OnboardingLink
from app.services.base_service import BaseService, log_operation
from app.services.payout.payout_lifecycle_handler import PayoutLifecycleHandler
from app.services.payout.payout_query_service import PayoutQueryService
from app.services.payout.payout_request_handler import PayoutRequestHandler
from app.services.payout_destination.base import PayoutDestinationProvider
from app.services.payout_destination.stripe_provider import (
    create_default_provider,
)
from app.services.referral.aggregates import (
    AffiliateAggregateManager,
    AggregateDrift,
)
from app.services.referral.ledger import ReferralLedger
from app.utils.datetime_utils import ensure_utc, utc_now
from app.utils.exceptions import (
    REPORT_TO_CALLER,
    SURFACE_FOR_RETRY,
    AffiliateNotFound,
    BelowMinimum,
    CodeGenerationExhausted,
    NoClearedFunds,
    NotOnboarded,
    RequestAlreadyPending,
)
from clearance import format_cents


NOT_REGISTERED_MESSAGE = "You are not registered as an affiliate."
PROVIDER_UNAVAILABLE_MESSAGE = (
    "The payout provider is unavailable right now. Please try again later."
)


@dataclass(frozen=True)
class AffiliateDashboard:
    """Affiliate-facing summary. Amounts are integer cents."""

    affiliate_id: int
    referral_code: str
    referral_link: str
    commission_rate: int
    total_earned: int
    total_paid: int
    cleared_amount: int
    processing_amount: int
    referral_count: int
    payout_connected: bool
    payout_onboarded: bool
    pending_payout: PayoutRequest | None = None
    recent_referrals: list[Referral] = field(default_factory=list)


@dataclass(frozen=True)
class OnboardingStatus:
    connected: bool
    onboarded: bool
    destination_id: str | None = None


def build_referral_link(referral_code: str) -> str:
    """Public sign-up link carrying the referral code."""
    return f"{settings.public_base_url}/?ref={referral_code}"


class AffiliateProgramService(BaseService):
    """
    Affiliate program service.

    This is a facade over the registry, ledger and payout workflow.
    Affiliate-facing methods are keyed by the caller's user ID.
    """

    def __init__(
        self,
        session: AsyncSession,
        provider: PayoutDestinationProvider | None = None,
    ) -> None:
        """Initialize affiliate program service and all sub-components."""
        super().__init__(session)

        if provider is None:
            provider = create_default_provider()

        # Initialize all specialized components
        self.registry = AffiliateRegistry(session, provider)
        self.ledger = ReferralLedger(session)
        self.aggregates = AffiliateAggregateManager(session)
        self.request_handler = PayoutRequestHandler(session, ledger=self.ledger)
        self.lifecycle_handler = PayoutLifecycleHandler(
            session, provider, ledger=self.ledger
        )
        self.query_service = PayoutQueryService(session)

    # ========================================================================
    # AFFILIATE-FACING
    # ========================================================================

    @log_operation
    async def register_affiliate(
        self, user_id: str
    ) -> tuple[Affiliate | None, str | None]:
        """
        Register the user as affiliate (idempotent).

        Args:
            user_id: User ID

        Returns:
            Tuple of (affiliate, error_message)
        """
        try:
            affiliate, _created = await self.registry.register(user_id)
        except CodeGenerationExhausted:
            return None, "Could not generate a referral code. Please try again."
        return affiliate, None

    async def get_dashboard(
        self, user_id: str, now: datetime | None = None
    ) -> tuple[AffiliateDashboard | None, str | None]:
        """
        Get the affiliate dashboard.

        Args:
            user_id: User ID
            now: Reference time for clearance

        Returns:
            Tuple of (dashboard, error_message)
        """
        affiliate = await self.registry.get_by_user(user_id)
        if not affiliate:
            return None, NOT_REGISTERED_MESSAGE

        # Aggregates are updated in SQL; reload cached columns
        await self.session.refresh(affiliate)

        now = ensure_utc(now or utc_now())
        split = await self.ledger.get_clearance_split(affiliate.id, now)
        recent = await self.ledger.get_recent_referrals(
            affiliate.id, DASHBOARD_RECENT_REFERRALS_LIMIT
        )
        pending_payout = await self.query_service.get_in_flight_request(
            affiliate.id
        )

        dashboard = AffiliateDashboard(
            affiliate_id=affiliate.id,
            referral_code=affiliate.referral_code,
            referral_link=build_referral_link(affiliate.referral_code),
            commission_rate=affiliate.commission_rate,
            total_earned=affiliate.total_earned,
            total_paid=affiliate.total_paid,
            cleared_amount=split.cleared_amount,
            processing_amount=split.processing_amount,
            referral_count=affiliate.referral_count,
            payout_connected=affiliate.payout_destination_id is not None,
            payout_onboarded=affiliate.payout_onboarded,
            pending_payout=pending_payout,
            recent_referrals=recent,
        )
        return dashboard, None

    @log_operation
    async def start_onboarding(
        self, user_id: str
    ) -> tuple[OnboardingLink | None, str | None]:
        """
        Start (or resume) payout destination onboarding.

        Args:
            user_id: User ID

        Returns:
            Tuple of (onboarding_link, error_message)
        """
        affiliate = await self.registry.get_by_user(user_id)
        if not affiliate:
            return None, NOT_REGISTERED_MESSAGE

        try:
            link = await self.registry.link_payout_destination(affiliate.id)
        except SURFACE_FOR_RETRY:
            return None, PROVIDER_UNAVAILABLE_MESSAGE
        return link, None

    async def get_onboarding_status(
        self, user_id: str
    ) -> tuple[OnboardingStatus | None, str | None]:
        """
        Check payout onboarding, syncing with the provider if needed.

        Args:
            user_id: User ID

        Returns:
            Tuple of (status, error_message)
        """
        affiliate = await self.registry.get_by_user(user_id)
        if not affiliate:
            return None, NOT_REGISTERED_MESSAGE

        if not affiliate.payout_destination_id:
            return OnboardingStatus(connected=False, onboarded=False), None

        try:
            onboarded = await self.registry.confirm_onboarding(affiliate.id)
        except SURFACE_FOR_RETRY:
            return None, PROVIDER_UNAVAILABLE_MESSAGE

        return (
            OnboardingStatus(
                connected=True,
                onboarded=onboarded,
                destination_id=affiliate.payout_destination_id,
            ),
            None,
        )

    @log_operation
    async def request_payout(
        self, user_id: str, now: datetime | None = None
    ) -> tuple[PayoutRequest | None, str | None]:
        """
        Request a payout of the cleared balance.

        Args:
            user_id: User ID
            now: Request time

        Returns:
            Tuple of (payout_request, error_message)
        """
        affiliate = await self.registry.get_by_user(user_id)
        if not affiliate:
            return None, NOT_REGISTERED_MESSAGE

        try:
            payout_request = await self.request_handler.request_payout(
                affiliate.id, now
            )
        except NotOnboarded:
            return None, (
                "Connect and verify your payout account before requesting "
                "a payout."
            )
        except RequestAlreadyPending:
            return None, (
                "You already have a payout request in progress. Wait until "
                "it is processed before requesting another."
            )
        except NoClearedFunds as e:
            message = "You have no cleared earnings yet."
            if e.processing_amount:
                message += (
                    f" {format_cents(e.processing_amount)} is still processing"
                    f" and clears {settings.clearance_business_days} business"
                    f" days after each referral."
                )
            return None, message
        except BelowMinimum as e:
            return None, (
                f"Minimum payout is {format_cents(e.minimum_amount)}. "
                f"Your cleared balance is {format_cents(e.cleared_amount)}."
            )

        return payout_request, None

    async def validate_referral_code(self, code: str | None) -> bool:
        """Check a referral code at sign-up (case-insensitive, never raises)."""
        return await self.registry.validate_code(code)

    # ========================================================================
    # ADMIN
    # ========================================================================

    async def list_payout_requests(
        self, status: str = "pending", limit: int | None = None
    ) -> list[PayoutRequest]:
        """List payout requests with a status, oldest first."""
        return await self.query_service.list_payout_requests(status, limit=limit)

    async def get_affiliate_payout_requests(
        self, affiliate_id: int, limit: int | None = None
    ) -> list[PayoutRequest]:
        """Payout history of an affiliate, newest first."""
        return await self.query_service.get_affiliate_payout_requests(
            affiliate_id, limit=limit
        )

    @log_operation
    async def approve_payout(
        self,
        request_id: int,
        admin_id: str | None = None,
        now: datetime | None = None,
    ) -> tuple[PayoutRequest | None, str | None]:
        """
        Approve and settle a payout request (admin only).

        Args:
            request_id: Payout request ID
            admin_id: Admin ID (audit)
            now: Approval time

        Returns:
            Tuple of (payout_request, error_detail)
        """
        try:
            payout_request = await self.lifecycle_handler.approve(
                request_id, now=now, admin_id=admin_id
            )
        except REPORT_TO_CALLER + SURFACE_FOR_RETRY as e:
            return None, f"{e.code}: {e}"
        return payout_request, None

    @log_operation
    async def reject_payout(
        self,
        request_id: int,
        reason: str,
        admin_id: str | None = None,
        now: datetime | None = None,
    ) -> tuple[PayoutRequest | None, str | None]:
        """
        Reject a pending payout request (admin only).

        Args:
            request_id: Payout request ID
            reason: Rejection reason
            admin_id: Admin ID (audit)
            now: Rejection time

        Returns:
            Tuple of (payout_request, error_detail)
        """
        try:
            payout_request = await self.lifecycle_handler.reject(
                request_id, reason, now=now, admin_id=admin_id
            )
        except REPORT_TO_CALLER as e:
            return None, f"{e.code}: {e}"
        return payout_request, None

    @log_operation
    async def deactivate_affiliate(
        self, affiliate_id: int
    ) -> tuple[bool, str | None]:
        """
        Deactivate an affiliate (admin only).

        Returns:
            Tuple of (changed, error_detail)
        """
        try:
            changed = await self.registry.deactivate(affiliate_id)
        except AffiliateNotFound as e:
            return False, f"{e.code}: {e}"
        return changed, None

    async def reconcile_aggregates(
        self, affiliate_id: int, fix: bool = False
    ) -> AggregateDrift:
        """Compare (and optionally repair) cached affiliate aggregates."""
        return await self.aggregates.reconcile_aggregates(affiliate_id, fix=fix)

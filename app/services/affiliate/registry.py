"""
Affiliate registry.

Manages affiliate identity, unique referral codes, commission rate and
payout destination linkage.
"""

from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.business_constants import REFERRAL_CODE_MAX_ATTEMPTS
from app.config.settings import settings
from app.models.affiliate import Affiliate
from app.repositories.affiliate_repository import AffiliateRepository
from app.services.affiliate.code_generator import (
    generate_referral_code,
    normalize_referral_code,
)
from app.services.payout_destination.base import PayoutDestinationProvider
from app.utils.datetime_utils import utc_now
from app.utils.db_decorators import with_rollback_on_error
from app.utils.exceptions import (
    AffiliateNotFound,
    AlreadyRegistered,
    CodeGenerationExhausted,
    InvalidReferralCode,
    PayoutDestinationError,
)


@dataclass(frozen=True)
class OnboardingLink:
    """Handoff to the payout provider's onboarding flow."""

    destination_id: str
    url: str


class AffiliateRegistry:
    """
    Affiliate registration and payout destination linkage.

    Args:
        session: Database session
        provider: Payout destination provider (needed for linkage only)
        commission_rate: Rate assigned to new affiliates
        code_factory: Referral code generator
        max_code_attempts: Collision retries before giving up
    """

    def __init__(
        self,
        session: AsyncSession,
        provider: PayoutDestinationProvider | None = None,
        commission_rate: int | None = None,
        code_factory: Callable[[], str] = generate_referral_code,
        max_code_attempts: int = REFERRAL_CODE_MAX_ATTEMPTS,
    ) -> None:
        self.session = session
        self.provider = provider
        self.affiliate_repo = AffiliateRepository(session)
        self.commission_rate = (
            settings.affiliate_commission_rate
            if commission_rate is None
            else commission_rate
        )
        self.code_factory = code_factory
        self.max_code_attempts = max_code_attempts

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    @with_rollback_on_error
    async def register(self, user_id: str) -> tuple[Affiliate, bool]:
        """
        Register a user as affiliate.

        Re-registration is an idempotent success: the existing record
        is returned.

        Args:
            user_id: User ID

        Returns:
            Tuple of (affiliate, created)

        Raises:
            CodeGenerationExhausted: No free code within the allowed attempts
        """
        try:
            affiliate = await self.create_affiliate(user_id)
        except AlreadyRegistered as e:
            logger.debug(
                "Affiliate already registered",
                extra={"user_id": user_id, "affiliate_id": e.affiliate.id},
            )
            return e.affiliate, False

        return affiliate, True

    async def create_affiliate(self, user_id: str) -> Affiliate:
        """
        Create the affiliate record for a user.

        Raises:
            AlreadyRegistered: The user already has an affiliate record
            CodeGenerationExhausted: No free code within the allowed attempts
        """
        existing = await self.affiliate_repo.get_by_user(user_id)
        if existing:
            raise AlreadyRegistered(existing)

        for attempt in range(1, self.max_code_attempts + 1):
            code = self.code_factory()
            if await self.affiliate_repo.code_exists(code):
                logger.debug(
                    "Referral code collision",
                    extra={"code": code, "attempt": attempt},
                )
                continue

            try:
                affiliate = await self.affiliate_repo.create(
                    user_id=user_id,
                    referral_code=code,
                    commission_rate=self.commission_rate,
                )
                await self.session.commit()
            except IntegrityError:
                # Lost a race on user_id or on the code itself
                await self.session.rollback()
                existing = await self.affiliate_repo.get_by_user(user_id)
                if existing:
                    raise AlreadyRegistered(existing)
                continue

            logger.info(
                "Affiliate registered",
                extra={
                    "affiliate_id": affiliate.id,
                    "user_id": user_id,
                    "referral_code": code,
                    "commission_rate": self.commission_rate,
                },
            )
            return affiliate

        logger.error(
            "Referral code generation exhausted",
            extra={"user_id": user_id, "attempts": self.max_code_attempts},
        )
        raise CodeGenerationExhausted(
            f"No unique referral code after {self.max_code_attempts} attempts",
            user_id=user_id,
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def get_affiliate(self, affiliate_id: int) -> Affiliate:
        """
        Get affiliate by ID.

        Raises:
            AffiliateNotFound: No such affiliate
        """
        affiliate = await self.affiliate_repo.get_by_id(affiliate_id)
        if not affiliate:
            raise AffiliateNotFound(
                f"Affiliate {affiliate_id} not found", affiliate_id=affiliate_id
            )
        return affiliate

    async def get_by_user(self, user_id: str) -> Affiliate | None:
        """Get the affiliate record owned by a user, if any."""
        return await self.affiliate_repo.get_by_user(user_id)

    async def resolve_code(self, code: str | None) -> Affiliate:
        """
        Resolve a referral code to an active affiliate.

        Args:
            code: Referral code in any case

        Returns:
            Active affiliate owning the code

        Raises:
            InvalidReferralCode: Blank, unknown or deactivated code
        """
        if not code or not code.strip():
            raise InvalidReferralCode("Referral code is blank")

        affiliate = await self.affiliate_repo.get_by_code(
            normalize_referral_code(code)
        )
        if not affiliate or not affiliate.is_active:
            raise InvalidReferralCode(
                f"Referral code {code!r} is unknown or inactive", code=code
            )
        return affiliate

    async def validate_code(self, code: str | None) -> bool:
        """
        Check whether a referral code belongs to an active affiliate.

        Never raises: lookup failures count as an invalid code.
        """
        try:
            await self.resolve_code(code)
        except InvalidReferralCode:
            return False
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "Referral code validation failed",
                extra={"code": code, "error": str(e)},
            )
            return False
        return True

    @with_rollback_on_error
    async def deactivate(self, affiliate_id: int) -> bool:
        """
        Deactivate an affiliate; its code stops validating.

        Returns:
            True if the affiliate was active before the call
        """
        affiliate = await self.get_affiliate(affiliate_id)
        changed = await self.affiliate_repo.deactivate(affiliate_id)
        await self.session.commit()
        await self.session.refresh(affiliate)

        if changed:
            logger.info(
                "Affiliate deactivated", extra={"affiliate_id": affiliate_id}
            )
        return changed

    # ------------------------------------------------------------------
    # Payout destination
    # ------------------------------------------------------------------

    def _require_provider(self) -> PayoutDestinationProvider:
        if self.provider is None:
            raise PayoutDestinationError("Payout destination provider not configured")
        return self.provider

    @with_rollback_on_error
    async def link_payout_destination(self, affiliate_id: int) -> OnboardingLink:
        """
        Create (once) the payout destination and return an onboarding link.

        The affiliate row is locked before the destination check, so
        concurrent calls create at most one destination. The destination
        ID is committed before the onboarding link is requested, so a
        retry after any later failure reuses it.

        Args:
            affiliate_id: Affiliate ID

        Returns:
            OnboardingLink with destination ID and URL

        Raises:
            AffiliateNotFound: No such affiliate
            PayoutDestinationError: Provider call failed
        """
        provider = self._require_provider()
        affiliate = await self.affiliate_repo.get_by_id_for_update(affiliate_id)
        if not affiliate:
            raise AffiliateNotFound(
                f"Affiliate {affiliate_id} not found", affiliate_id=affiliate_id
            )
        destination_id = affiliate.payout_destination_id

        if not destination_id:
            destination_id = await provider.create_destination(
                affiliate.id, affiliate.user_id
            )
            stored = await self.affiliate_repo.set_payout_destination(
                affiliate.id, destination_id
            )
            await self.session.commit()
            await self.session.refresh(affiliate)

            if stored:
                logger.info(
                    "Payout destination linked",
                    extra={
                        "affiliate_id": affiliate.id,
                        "destination_id": destination_id,
                    },
                )
            else:
                # A concurrent call linked first; keep the stored one
                logger.warning(
                    "Payout destination already linked, discarding new one",
                    extra={
                        "affiliate_id": affiliate.id,
                        "discarded_destination_id": destination_id,
                        "destination_id": affiliate.payout_destination_id,
                    },
                )
                destination_id = affiliate.payout_destination_id

        url = await provider.create_onboarding_link(destination_id)
        return OnboardingLink(destination_id=destination_id, url=url)

    @with_rollback_on_error
    async def confirm_onboarding(self, affiliate_id: int) -> bool:
        """
        Sync onboarding state from the payout provider.

        Flips payout_onboarded exactly once, when the destination has both
        charge and payout capabilities. Safe to call repeatedly.

        Args:
            affiliate_id: Affiliate ID

        Returns:
            Whether the affiliate is onboarded

        Raises:
            AffiliateNotFound: No such affiliate
            PayoutDestinationError: Provider call failed
        """
        affiliate = await self.get_affiliate(affiliate_id)

        if affiliate.payout_onboarded:
            return True
        if not affiliate.payout_destination_id:
            return False

        status = await self._require_provider().get_destination_status(
            affiliate.payout_destination_id
        )
        if not status.is_ready:
            logger.debug(
                "Payout destination not ready",
                extra={
                    "affiliate_id": affiliate.id,
                    "charges_enabled": status.charges_enabled,
                    "payouts_enabled": status.payouts_enabled,
                },
            )
            return False

        flipped = await self.affiliate_repo.mark_onboarded(
            affiliate.id, utc_now()
        )
        await self.session.commit()
        await self.session.refresh(affiliate)

        if flipped:
            logger.info(
                "Affiliate payout onboarding confirmed",
                extra={
                    "affiliate_id": affiliate.id,
                    "destination_id": affiliate.payout_destination_id,
                },
            )
        return True

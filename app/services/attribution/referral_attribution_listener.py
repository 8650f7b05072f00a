"""
Referral attribution listener.

Consumes "subscription activated" billing events and appends a ledger
entry for the affiliate whose code the paying user signed up with.
Safe under at-least-once delivery: the unique subscription charge ID in
the ledger is the only deduplication mechanism.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.services.affiliate.registry import AffiliateRegistry
from app.services.referral.ledger import ReferralLedger
from app.utils.exceptions import DuplicateCharge, InvalidReferralCode


@dataclass(frozen=True)
class SubscriptionActivated:
    """Billing event emitted when a subscription charge succeeds."""

    subscription_charge_id: str
    payer_user_id: str
    charge_amount: int
    currency: str
    referred_by_code: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "SubscriptionActivated":
        """
        Build an event from a queue payload.

        Raises:
            KeyError: Required field missing
            ValueError: Amount is not a non-negative integer
        """
        charge_amount = payload["charge_amount"]
        if isinstance(charge_amount, bool) or not isinstance(charge_amount, int):
            raise ValueError(
                f"charge_amount must be integer cents, got {charge_amount!r}"
            )
        if charge_amount < 0:
            raise ValueError(f"charge_amount must be >= 0, got {charge_amount}")

        return cls(
            subscription_charge_id=str(payload["subscription_charge_id"]),
            payer_user_id=str(payload["payer_user_id"]),
            charge_amount=charge_amount,
            currency=str(payload["currency"]).lower(),
            referred_by_code=payload.get("referred_by_code") or None,
        )


class AttributionOutcome(StrEnum):
    """What the listener did with an event."""

    NO_CODE = "no_code"
    UNKNOWN_CODE = "unknown_code"
    CURRENCY_MISMATCH = "currency_mismatch"
    ATTRIBUTED = "attributed"
    ALREADY_PROCESSED = "already_processed"


@dataclass(frozen=True)
class AttributionResult:
    outcome: AttributionOutcome
    affiliate_id: int | None = None
    referral_id: int | None = None
    commission_amount: int | None = None


class ReferralAttributionListener:
    """
    Attributes subscription charges to referring affiliates.

    Never raises for events that cannot be attributed (no code, dead code,
    foreign currency, already processed); those are dropped and logged.
    Persistence errors propagate so the delivering queue retries.
    """

    def __init__(
        self,
        session: AsyncSession,
        registry: AffiliateRegistry | None = None,
        ledger: ReferralLedger | None = None,
        currency: str | None = None,
    ) -> None:
        self.session = session
        self.registry = registry or AffiliateRegistry(session)
        self.ledger = ledger or ReferralLedger(session)
        self.currency = (currency or settings.payout_currency).lower()

    async def handle(self, event: SubscriptionActivated) -> AttributionResult:
        """
        Process one subscription activation.

        Args:
            event: Billing event

        Returns:
            AttributionResult describing the outcome
        """
        log_extra = {
            "subscription_charge_id": event.subscription_charge_id,
            "payer_user_id": event.payer_user_id,
            "charge_amount": event.charge_amount,
        }

        if not event.referred_by_code:
            logger.debug("No referral code on subscription", extra=log_extra)
            return AttributionResult(AttributionOutcome.NO_CODE)

        if event.currency.lower() != self.currency:
            logger.warning(
                "Dropping referral for unsupported currency",
                extra={
                    **log_extra,
                    "currency": event.currency,
                    "expected_currency": self.currency,
                },
            )
            return AttributionResult(AttributionOutcome.CURRENCY_MISMATCH)

        try:
            affiliate = await self.registry.resolve_code(event.referred_by_code)
        except InvalidReferralCode:
            logger.info(
                "Dropping referral for unknown or inactive code",
                extra={**log_extra, "referral_code": event.referred_by_code},
            )
            return AttributionResult(AttributionOutcome.UNKNOWN_CODE)

        try:
            referral = await self.ledger.append_referral(
                affiliate_id=affiliate.id,
                referred_user_id=event.payer_user_id,
                subscription_charge_id=event.subscription_charge_id,
                charge_amount=event.charge_amount,
            )
        except DuplicateCharge as e:
            logger.info(
                "Duplicate subscription charge ignored",
                extra={**log_extra, "referral_id": e.referral.id},
            )
            return AttributionResult(
                AttributionOutcome.ALREADY_PROCESSED,
                affiliate_id=e.referral.affiliate_id,
                referral_id=e.referral.id,
                commission_amount=e.referral.commission_amount,
            )

        return AttributionResult(
            AttributionOutcome.ATTRIBUTED,
            affiliate_id=affiliate.id,
            referral_id=referral.id,
            commission_amount=referral.commission_amount,
        )

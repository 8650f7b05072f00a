"""
Stripe Connect payout destination provider.

Express connected accounts act as payout destinations; platform
transfers move commission funds to them.
"""

import asyncio

import stripe
from loguru import logger

from app.config.business_constants import (
    ONBOARDING_REFRESH_PATH,
    ONBOARDING_RETURN_PATH,
)
from app.config.settings import settings
from app.services.payout_destination.base import DestinationStatus
from app.utils.exceptions import PayoutDestinationError, TransferFailed


class StripeConnectProvider:
    """
    PayoutDestinationProvider backed by Stripe Connect Express.

    The Stripe SDK is synchronous; calls run in a worker thread so the
    event loop is never blocked.
    """

    def __init__(
        self,
        api_key: str,
        public_base_url: str,
        currency: str = "usd",
        client: stripe.StripeClient | None = None,
    ) -> None:
        """
        Initialize provider.

        Args:
            api_key: Stripe secret key
            public_base_url: Base URL for onboarding redirects
            currency: Transfer currency
            client: Preconfigured client (tests)
        """
        self.client = client or stripe.StripeClient(api_key)
        self.public_base_url = public_base_url.rstrip("/")
        self.currency = currency

    async def create_destination(self, affiliate_id: int, user_id: str) -> str:
        """Create an Express account for the affiliate."""
        try:
            account = await asyncio.to_thread(
                self.client.accounts.create,
                params={
                    "type": "express",
                    "metadata": {
                        "affiliate_id": str(affiliate_id),
                        "user_id": user_id,
                    },
                },
            )
        except stripe.StripeError as e:
            logger.error(
                "Failed to create Stripe Connect account",
                extra={"affiliate_id": affiliate_id, "error": str(e)},
            )
            raise PayoutDestinationError(
                f"Failed to create payout destination: {e.user_message or e}",
                affiliate_id=affiliate_id,
            ) from e

        logger.info(
            "Created Stripe Connect account",
            extra={"affiliate_id": affiliate_id, "account_id": account.id},
        )
        return account.id

    async def get_destination_status(
        self, destination_id: str
    ) -> DestinationStatus:
        """Retrieve charges/payouts capability flags."""
        try:
            account = await asyncio.to_thread(
                self.client.accounts.retrieve, destination_id
            )
        except stripe.StripeError as e:
            raise PayoutDestinationError(
                f"Failed to retrieve payout destination: {e.user_message or e}",
                destination_id=destination_id,
            ) from e

        return DestinationStatus(
            charges_enabled=bool(account.charges_enabled),
            payouts_enabled=bool(account.payouts_enabled),
        )

    async def create_onboarding_link(self, destination_id: str) -> str:
        """Create an account onboarding link."""
        try:
            account_link = await asyncio.to_thread(
                self.client.account_links.create,
                params={
                    "account": destination_id,
                    "refresh_url": f"{self.public_base_url}{ONBOARDING_REFRESH_PATH}",
                    "return_url": f"{self.public_base_url}{ONBOARDING_RETURN_PATH}",
                    "type": "account_onboarding",
                },
            )
        except stripe.StripeError as e:
            raise PayoutDestinationError(
                f"Failed to create onboarding link: {e.user_message or e}",
                destination_id=destination_id,
            ) from e

        return account_link.url

    async def transfer(
        self,
        destination_id: str,
        amount_cents: int,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Create a platform transfer to the connected account."""
        try:
            transfer = await asyncio.to_thread(
                self.client.transfers.create,
                params={
                    "amount": amount_cents,
                    "currency": self.currency,
                    "destination": destination_id,
                    "transfer_group": idempotency_key,
                    "metadata": {"type": "affiliate_payout", **(metadata or {})},
                },
                options={"idempotency_key": idempotency_key},
            )
        except stripe.StripeError as e:
            logger.error(
                "Stripe transfer failed",
                extra={
                    "destination_id": destination_id,
                    "amount": amount_cents,
                    "idempotency_key": idempotency_key,
                    "error": str(e),
                },
            )
            raise TransferFailed(
                f"Transfer failed: {e.user_message or e}",
                destination_id=destination_id,
                amount=amount_cents,
            ) from e

        logger.info(
            "Stripe transfer created",
            extra={
                "transfer_id": transfer.id,
                "destination_id": destination_id,
                "amount": amount_cents,
            },
        )
        return transfer.id

    async def find_transfer(
        self, destination_id: str, idempotency_key: str
    ) -> str | None:
        """Find a transfer by the transfer group set from its idempotency key."""
        try:
            transfers = await asyncio.to_thread(
                self.client.transfers.list,
                params={
                    "destination": destination_id,
                    "transfer_group": idempotency_key,
                    "limit": 1,
                },
            )
        except stripe.StripeError as e:
            raise PayoutDestinationError(
                f"Failed to look up transfer: {e.user_message or e}",
                destination_id=destination_id,
                idempotency_key=idempotency_key,
            ) from e

        if not transfers.data:
            return None
        return transfers.data[0].id


def create_default_provider() -> StripeConnectProvider | None:
    """
    Build the Stripe provider from settings.

    Returns:
        Provider, or None when no Stripe key is configured
    """
    if not settings.stripe_secret_key:
        return None
    return StripeConnectProvider(
        api_key=settings.stripe_secret_key,
        public_base_url=settings.public_base_url,
        currency=settings.payout_currency,
    )

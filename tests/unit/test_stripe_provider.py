"""
Tests for the Stripe Connect payout destination provider.

The Stripe client is mocked; no network calls.
"""

from unittest.mock import MagicMock

import pytest
import stripe

from app.services.payout_destination.stripe_provider import StripeConnectProvider
from app.utils.exceptions import PayoutDestinationError, TransferFailed


@pytest.fixture
def stripe_client():
    """Mock StripeClient."""
    client = MagicMock()
    client.accounts.create.return_value = MagicMock(id="acct_123")
    client.accounts.retrieve.return_value = MagicMock(
        charges_enabled=True, payouts_enabled=False
    )
    client.account_links.create.return_value = MagicMock(
        url="https://connect.stripe.com/setup/e/acct_123"
    )
    client.transfers.create.return_value = MagicMock(id="tr_123")
    return client


@pytest.fixture
def provider(stripe_client) -> StripeConnectProvider:
    return StripeConnectProvider(
        api_key="sk_test_x",
        public_base_url="https://probaly.app/",
        currency="usd",
        client=stripe_client,
    )


class TestStripeConnectProvider:
    """Tests for StripeConnectProvider."""

    @pytest.mark.asyncio
    async def test_create_destination_express(self, provider, stripe_client):
        destination_id = await provider.create_destination(7, "user-1")

        assert destination_id == "acct_123"
        params = stripe_client.accounts.create.call_args.kwargs["params"]
        assert params["type"] == "express"
        assert params["metadata"] == {"affiliate_id": "7", "user_id": "user-1"}

    @pytest.mark.asyncio
    async def test_destination_status(self, provider):
        status = await provider.get_destination_status("acct_123")

        assert status.charges_enabled is True
        assert status.payouts_enabled is False
        assert status.is_ready is False

    @pytest.mark.asyncio
    async def test_onboarding_link_urls(self, provider, stripe_client):
        url = await provider.create_onboarding_link("acct_123")

        assert url == "https://connect.stripe.com/setup/e/acct_123"
        params = stripe_client.account_links.create.call_args.kwargs["params"]
        assert params["refresh_url"] == "https://probaly.app/affiliate?refresh=true"
        assert params["return_url"] == "https://probaly.app/affiliate?success=true"
        assert params["type"] == "account_onboarding"

    @pytest.mark.asyncio
    async def test_transfer_passes_idempotency_key(self, provider, stripe_client):
        reference = await provider.transfer(
            "acct_123", 1960, idempotency_key="affiliate-payout-request-1"
        )

        assert reference == "tr_123"
        call = stripe_client.transfers.create.call_args
        assert call.kwargs["params"]["amount"] == 1960
        assert call.kwargs["params"]["currency"] == "usd"
        assert call.kwargs["params"]["destination"] == "acct_123"
        assert call.kwargs["options"] == {
            "idempotency_key": "affiliate-payout-request-1"
        }

    @pytest.mark.asyncio
    async def test_transfer_error_wrapped(self, provider, stripe_client):
        stripe_client.transfers.create.side_effect = stripe.StripeError(
            "Insufficient funds"
        )

        with pytest.raises(TransferFailed, match="Insufficient funds"):
            await provider.transfer("acct_123", 1960, idempotency_key="k")

    @pytest.mark.asyncio
    async def test_destination_error_wrapped(self, provider, stripe_client):
        stripe_client.accounts.create.side_effect = stripe.StripeError("down")

        with pytest.raises(PayoutDestinationError):
            await provider.create_destination(7, "user-1")

    @pytest.mark.asyncio
    async def test_transfer_grouped_by_idempotency_key(self, provider, stripe_client):
        await provider.transfer(
            "acct_123", 1960, idempotency_key="affiliate-payout-request-1"
        )

        params = stripe_client.transfers.create.call_args.kwargs["params"]
        assert params["transfer_group"] == "affiliate-payout-request-1"

    @pytest.mark.asyncio
    async def test_find_transfer_by_group(self, provider, stripe_client):
        stripe_client.transfers.list.return_value = MagicMock(
            data=[MagicMock(id="tr_123")]
        )

        reference = await provider.find_transfer(
            "acct_123", "affiliate-payout-request-1"
        )

        assert reference == "tr_123"
        params = stripe_client.transfers.list.call_args.kwargs["params"]
        assert params["destination"] == "acct_123"
        assert params["transfer_group"] == "affiliate-payout-request-1"

    @pytest.mark.asyncio
    async def test_find_transfer_none(self, provider, stripe_client):
        stripe_client.transfers.list.return_value = MagicMock(data=[])

        assert await provider.find_transfer("acct_123", "k") is None

    @pytest.mark.asyncio
    async def test_find_transfer_error_wrapped(self, provider, stripe_client):
        stripe_client.transfers.list.side_effect = stripe.StripeError("down")

        with pytest.raises(PayoutDestinationError):
            await provider.find_transfer("acct_123", "k")

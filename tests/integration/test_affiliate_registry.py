"""Integration tests for the affiliate registry."""

import pytest
from sqlalchemy import update

from app.models.affiliate import Affiliate
from app.services.affiliate.registry import AffiliateRegistry
from app.services.payout_destination.base import DestinationStatus
from app.utils.exceptions import (
    AffiliateNotFound,
    CodeGenerationExhausted,
    InvalidReferralCode,
    PayoutDestinationError,
)


async def reload_affiliate(session, affiliate_id: int) -> Affiliate:
    return await session.get(Affiliate, affiliate_id, populate_existing=True)


class TestRegistration:
    """Affiliate registration and referral codes."""

    @pytest.mark.asyncio
    async def test_register_creates_affiliate(self, registry):
        affiliate, created = await registry.register("user-1")

        assert created is True
        assert affiliate.referral_code == "PRO4X7K2"
        assert affiliate.commission_rate == 40
        assert affiliate.payout_onboarded is False
        assert affiliate.total_earned == 0
        assert affiliate.referral_count == 0

    @pytest.mark.asyncio
    async def test_register_is_idempotent(self, registry):
        first, _ = await registry.register("user-1")
        second, created = await registry.register("user-1")

        assert created is False
        assert second.id == first.id
        assert second.referral_code == "PRO4X7K2"

    @pytest.mark.asyncio
    async def test_code_collision_retries(self, session, registry):
        await registry.register("user-1")
        codes = iter(["PRO4X7K2", "PRO4X7K2", "PROAAAAA"])
        other = AffiliateRegistry(session, code_factory=lambda: next(codes))

        affiliate, created = await other.register("user-2")

        assert created is True
        assert affiliate.referral_code == "PROAAAAA"

    @pytest.mark.asyncio
    async def test_code_generation_exhausted(self, session, registry):
        await registry.register("user-1")
        factory_calls = []

        def taken_code() -> str:
            factory_calls.append(1)
            return "PRO4X7K2"

        other = AffiliateRegistry(
            session, code_factory=taken_code, max_code_attempts=3
        )

        with pytest.raises(CodeGenerationExhausted):
            await other.register("user-2")

        assert len(factory_calls) == 3
        assert await other.get_by_user("user-2") is None

    @pytest.mark.asyncio
    async def test_commission_rate_fixed_at_registration(self, session):
        registry = AffiliateRegistry(session, commission_rate=25)

        affiliate, _ = await registry.register("user-1")

        assert affiliate.commission_rate == 25

    @pytest.mark.asyncio
    async def test_get_affiliate_not_found(self, registry):
        with pytest.raises(AffiliateNotFound):
            await registry.get_affiliate(999)


class TestCodeValidation:
    """Case-insensitive code validation that never raises."""

    @pytest.mark.asyncio
    async def test_validate_code_case_insensitive(self, registry, affiliate_id):
        assert await registry.validate_code("PRO4X7K2") is True
        assert await registry.validate_code("pro4x7k2") is True
        assert await registry.validate_code(" Pro4X7k2 ") is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["PROZZZZZ", "", "   ", None])
    async def test_validate_unknown_code(self, registry, affiliate_id, code):
        assert await registry.validate_code(code) is False

    @pytest.mark.asyncio
    async def test_deactivated_code_invalid(self, registry, affiliate_id):
        assert await registry.deactivate(affiliate_id) is True

        assert await registry.validate_code("PRO4X7K2") is False
        with pytest.raises(InvalidReferralCode):
            await registry.resolve_code("PRO4X7K2")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["PROZZZZZ", "", None])
    async def test_resolve_unknown_code_raises(self, registry, affiliate_id, code):
        with pytest.raises(InvalidReferralCode):
            await registry.resolve_code(code)

    @pytest.mark.asyncio
    async def test_deactivate_twice(self, registry, affiliate_id):
        assert await registry.deactivate(affiliate_id) is True
        assert await registry.deactivate(affiliate_id) is False


class TestPayoutDestination:
    """Payout destination linkage and onboarding confirmation."""

    @pytest.mark.asyncio
    async def test_link_creates_destination_once(
        self, session, registry, affiliate_id, payout_provider
    ):
        first = await registry.link_payout_destination(affiliate_id)
        second = await registry.link_payout_destination(affiliate_id)

        assert first.destination_id == "acct_test_123"
        assert second.destination_id == "acct_test_123"
        assert first.url.startswith("https://connect.stripe.com/")
        payout_provider.create_destination.assert_awaited_once_with(
            affiliate_id, "user-affiliate"
        )
        assert payout_provider.create_onboarding_link.await_count == 2

        affiliate = await reload_affiliate(session, affiliate_id)
        assert affiliate.payout_destination_id == "acct_test_123"
        assert affiliate.payout_onboarded is False

    @pytest.mark.asyncio
    async def test_link_reads_destination_under_row_lock(
        self, session, registry, affiliate_id, payout_provider
    ):
        # Load the affiliate, then let another transaction link first
        await registry.get_affiliate(affiliate_id)
        await session.execute(
            update(Affiliate)
            .where(Affiliate.id == affiliate_id)
            .values(payout_destination_id="acct_concurrent")
            .execution_options(synchronize_session=False)
        )
        await session.commit()

        link = await registry.link_payout_destination(affiliate_id)

        assert link.destination_id == "acct_concurrent"
        payout_provider.create_destination.assert_not_awaited()
        payout_provider.create_onboarding_link.assert_awaited_once_with(
            "acct_concurrent"
        )

    @pytest.mark.asyncio
    async def test_link_unknown_affiliate(self, registry):
        with pytest.raises(AffiliateNotFound):
            await registry.link_payout_destination(999)

    @pytest.mark.asyncio
    async def test_destination_persisted_before_link_failure(
        self, session, registry, affiliate_id, payout_provider
    ):
        payout_provider.create_onboarding_link.side_effect = PayoutDestinationError(
            "Stripe unavailable"
        )

        with pytest.raises(PayoutDestinationError):
            await registry.link_payout_destination(affiliate_id)

        affiliate = await reload_affiliate(session, affiliate_id)
        assert affiliate.payout_destination_id == "acct_test_123"

        payout_provider.create_onboarding_link.side_effect = None
        link = await registry.link_payout_destination(affiliate_id)

        assert link.destination_id == "acct_test_123"
        payout_provider.create_destination.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_confirm_without_destination(self, registry, affiliate_id, payout_provider):
        assert await registry.confirm_onboarding(affiliate_id) is False
        payout_provider.get_destination_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_confirm_requires_both_capabilities(
        self, session, registry, affiliate_id, payout_provider
    ):
        await registry.link_payout_destination(affiliate_id)
        payout_provider.get_destination_status.return_value = DestinationStatus(
            charges_enabled=True, payouts_enabled=False
        )

        assert await registry.confirm_onboarding(affiliate_id) is False

        affiliate = await reload_affiliate(session, affiliate_id)
        assert affiliate.payout_onboarded is False

    @pytest.mark.asyncio
    async def test_confirm_flips_once(
        self, session, registry, affiliate_id, payout_provider
    ):
        await registry.link_payout_destination(affiliate_id)

        assert await registry.confirm_onboarding(affiliate_id) is True
        affiliate = await reload_affiliate(session, affiliate_id)
        onboarded_at = affiliate.onboarded_at
        assert affiliate.payout_onboarded is True
        assert onboarded_at is not None

        assert await registry.confirm_onboarding(affiliate_id) is True
        affiliate = await reload_affiliate(session, affiliate_id)
        assert affiliate.onboarded_at == onboarded_at
        payout_provider.get_destination_status.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_link_without_provider(self, session, affiliate_id):
        registry = AffiliateRegistry(session)

        with pytest.raises(PayoutDestinationError):
            await registry.link_payout_destination(affiliate_id)

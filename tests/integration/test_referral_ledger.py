"""Integration tests for the referral ledger and aggregate reconciliation."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import InvalidRequestError

from app.models.affiliate import Affiliate
from app.models.referral import Referral
from app.repositories.affiliate_repository import AffiliateRepository
from app.services.referral.aggregates import AffiliateAggregateManager
from app.utils.exceptions import (
    AffiliateNotFound,
    DuplicateCharge,
    InvariantViolation,
)


# Monday; 14 business days later is Friday 2026-01-23 10:00
MONDAY = datetime(2026, 1, 5, 10, 0, tzinfo=UTC)
CLEARED_AT = datetime(2026, 1, 23, 10, 0, tzinfo=UTC)


async def reload_affiliate(session, affiliate_id: int) -> Affiliate:
    return await session.get(Affiliate, affiliate_id, populate_existing=True)


async def count_referrals(session) -> int:
    return (await session.execute(select(func.count(Referral.id)))).scalar_one()


class TestAppendReferral:
    """Ledger append and idempotency."""

    @pytest.mark.asyncio
    async def test_append_computes_commission(self, session, ledger, affiliate_id):
        referral = await ledger.append_referral(
            affiliate_id, "payer-1", "ch_001", 4900, created_at=MONDAY
        )

        assert referral.commission_amount == 1960
        assert referral.charge_amount == 4900
        assert referral.status == "pending"

        affiliate = await reload_affiliate(session, affiliate_id)
        assert affiliate.total_earned == 1960
        assert affiliate.referral_count == 1
        assert affiliate.total_paid == 0

    @pytest.mark.asyncio
    async def test_duplicate_charge_counted_once(self, session, ledger, affiliate_id):
        first = await ledger.append_referral(affiliate_id, "payer-1", "ch_001", 4900)

        with pytest.raises(DuplicateCharge) as exc_info:
            await ledger.append_referral(affiliate_id, "payer-1", "ch_001", 4900)

        assert exc_info.value.referral.id == first.id
        assert await count_referrals(session) == 1

        affiliate = await reload_affiliate(session, affiliate_id)
        assert affiliate.total_earned == 1960
        assert affiliate.referral_count == 1

    @pytest.mark.asyncio
    async def test_unknown_affiliate(self, session, ledger):
        with pytest.raises(AffiliateNotFound):
            await ledger.append_referral(999, "payer-1", "ch_001", 4900)

        assert await count_referrals(session) == 0

    @pytest.mark.asyncio
    async def test_charge_ids_unique_across_affiliates(
        self, session, ledger, affiliate_id
    ):
        """A charge belongs to one referral, whoever it would be attributed to."""
        other = await AffiliateRepository(session).create(
            user_id="user-other", referral_code="PROOTHER", commission_rate=40
        )
        await session.commit()
        other_id = other.id

        await ledger.append_referral(affiliate_id, "payer-1", "ch_001", 4900)
        with pytest.raises(DuplicateCharge):
            await ledger.append_referral(other_id, "payer-1", "ch_001", 4900)

        affiliate = await reload_affiliate(session, other_id)
        assert affiliate.referral_count == 0

    @pytest.mark.asyncio
    async def test_affiliate_collections_never_lazy_load(
        self, session, ledger, affiliate_id
    ):
        await ledger.append_referral(
            affiliate_id, "payer-1", "ch_001", 4900, created_at=MONDAY
        )
        session.expunge_all()
        affiliate = await session.get(Affiliate, affiliate_id)

        with pytest.raises(InvalidRequestError):
            affiliate.referrals
        with pytest.raises(InvalidRequestError):
            affiliate.payout_requests


class TestClearedAndProcessing:
    """Cleared and processing sums."""

    @pytest.mark.asyncio
    async def test_sums_split_by_clearance(self, ledger, affiliate_id):
        await ledger.append_referral(
            affiliate_id, "payer-1", "ch_001", 4900, created_at=MONDAY
        )
        await ledger.append_referral(
            affiliate_id, "payer-2", "ch_002", 2500,
            created_at=MONDAY + timedelta(days=1),
        )

        cleared = await ledger.get_cleared_pending_sum(affiliate_id, CLEARED_AT)
        processing = await ledger.get_processing_sum(affiliate_id, CLEARED_AT)

        assert cleared.amount == 1960
        assert len(cleared.referral_ids) == 1
        assert processing == 1000

    @pytest.mark.asyncio
    async def test_nothing_cleared_before_window(self, ledger, affiliate_id):
        await ledger.append_referral(
            affiliate_id, "payer-1", "ch_001", 4900, created_at=MONDAY
        )

        cleared = await ledger.get_cleared_pending_sum(
            affiliate_id, CLEARED_AT - timedelta(seconds=1)
        )

        assert cleared.amount == 0
        assert cleared.referral_ids == []

    @pytest.mark.asyncio
    async def test_paid_referrals_excluded(self, session, ledger, affiliate_id):
        referral = await ledger.append_referral(
            affiliate_id, "payer-1", "ch_001", 4900, created_at=MONDAY
        )
        referral_id = referral.id

        await ledger.mark_paid([referral_id], CLEARED_AT)
        await session.commit()

        cleared = await ledger.get_cleared_pending_sum(affiliate_id, CLEARED_AT)
        assert cleared.amount == 0
        assert await ledger.get_processing_sum(affiliate_id, CLEARED_AT) == 0

    @pytest.mark.asyncio
    async def test_mark_paid_twice_is_invariant_violation(
        self, session, ledger, affiliate_id
    ):
        referral = await ledger.append_referral(
            affiliate_id, "payer-1", "ch_001", 4900, created_at=MONDAY
        )
        referral_id = referral.id
        await ledger.mark_paid([referral_id], CLEARED_AT)
        await session.commit()

        with pytest.raises(InvariantViolation):
            await ledger.mark_paid([referral_id], CLEARED_AT)

    @pytest.mark.asyncio
    async def test_recent_referrals_newest_first(self, ledger, affiliate_id):
        for index in range(3):
            await ledger.append_referral(
                affiliate_id, f"payer-{index}", f"ch_{index}", 1000,
                created_at=MONDAY + timedelta(hours=index),
            )

        recent = await ledger.get_recent_referrals(affiliate_id, limit=2)

        assert [r.subscription_charge_id for r in recent] == ["ch_2", "ch_1"]


class TestAggregates:
    """Aggregates are a recomputable cache over the ledger."""

    @pytest.mark.asyncio
    async def test_recompute_matches_cache(self, session, ledger, affiliate_id):
        await ledger.append_referral(affiliate_id, "payer-1", "ch_001", 4900)
        await ledger.append_referral(affiliate_id, "payer-2", "ch_002", 2500)
        with pytest.raises(DuplicateCharge):
            await ledger.append_referral(affiliate_id, "payer-2", "ch_002", 2500)

        manager = AffiliateAggregateManager(session)
        derived = await manager.recompute_aggregates(affiliate_id)
        affiliate = await reload_affiliate(session, affiliate_id)

        assert derived.referral_count == affiliate.referral_count == 2
        assert derived.total_earned == affiliate.total_earned == 2960
        assert derived.total_paid == affiliate.total_paid == 0

        drift = await manager.reconcile_aggregates(affiliate_id)
        assert drift.has_drift is False

    @pytest.mark.asyncio
    async def test_reconcile_repairs_drift(self, session, ledger, affiliate_id):
        await ledger.append_referral(affiliate_id, "payer-1", "ch_001", 4900)
        await AffiliateRepository(session).overwrite_aggregates(
            affiliate_id, total_earned=5, total_paid=0, referral_count=9
        )
        await session.commit()

        manager = AffiliateAggregateManager(session)
        report = await manager.reconcile_aggregates(affiliate_id)
        assert report.has_drift is True
        assert report.cached.total_earned == 5
        assert report.derived.total_earned == 1960

        fixed = await manager.reconcile_aggregates(affiliate_id, fix=True)
        assert fixed.has_drift is True

        affiliate = await reload_affiliate(session, affiliate_id)
        assert affiliate.total_earned == 1960
        assert affiliate.referral_count == 1
        assert (await manager.reconcile_aggregates(affiliate_id)).has_drift is False

    @pytest.mark.asyncio
    async def test_reconcile_unknown_affiliate(self, session):
        with pytest.raises(AffiliateNotFound):
            await AffiliateAggregateManager(session).reconcile_aggregates(999)

"""
Referral attribution task.

Consumes "subscription activated" billing events and records the referral
commission for the affiliate the payer signed up with.
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

import dramatiq
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.attribution import (
    ReferralAttributionListener,
    SubscriptionActivated,
)
from jobs.async_runner import create_local_session, run_async
from jobs.broker import broker


SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@dramatiq.actor(broker=broker, queue_name="billing", time_limit=60_000)
def attribute_subscription_charge(payload: dict[str, Any]) -> dict[str, Any]:
    """
    Attribute one subscription charge to its referring affiliate.

    Redelivery is safe: a charge already in the ledger is reported as
    already processed. Database errors propagate so the broker retries.

    Args:
        payload: Billing event with subscription_charge_id, payer_user_id,
            charge_amount (cents), currency and optional referred_by_code

    Returns:
        Dict with outcome, affiliate_id, referral_id
    """
    try:
        event = SubscriptionActivated.from_payload(payload)
    except (KeyError, ValueError) as e:
        logger.error(
            "Malformed subscription event dropped",
            extra={"payload": payload, "error": str(e)},
        )
        return {"outcome": "malformed", "affiliate_id": None, "referral_id": None}

    return run_async(process_subscription_event(event))


async def process_subscription_event(
    event: SubscriptionActivated,
    session_factory: SessionFactory = create_local_session,
) -> dict[str, Any]:
    """
    Run the attribution listener in its own session.

    Args:
        event: Parsed billing event
        session_factory: Async context manager yielding a session

    Returns:
        Dict with outcome, affiliate_id, referral_id
    """
    async with session_factory() as session:
        result = await ReferralAttributionListener(session).handle(event)

    logger.info(
        "Subscription event processed",
        extra={
            "subscription_charge_id": event.subscription_charge_id,
            "outcome": result.outcome.value,
            "affiliate_id": result.affiliate_id,
            "referral_id": result.referral_id,
        },
    )
    return {
        "outcome": result.outcome.value,
        "affiliate_id": result.affiliate_id,
        "referral_id": result.referral_id,
    }

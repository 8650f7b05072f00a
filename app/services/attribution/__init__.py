"""
Referral attribution package.

- referral_attribution_listener: billing event to ledger entry
"""

from app.services.attribution.referral_attribution_listener import (
    AttributionOutcome,
    AttributionResult,
    ReferralAttributionListener,
    SubscriptionActivated,
)


__all__ = [
    "AttributionOutcome",
    "AttributionResult",
    "ReferralAttributionListener",
    "SubscriptionActivated",
]

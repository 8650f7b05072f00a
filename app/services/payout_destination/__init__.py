"""
Payout destination providers.

- base: provider contract and destination status
- stripe_provider: Stripe Connect Express implementation
"""

from app.services.payout_destination.base import (
    DestinationStatus,
    PayoutDestinationProvider,
)
from app.services.payout_destination.stripe_provider import (
    StripeConnectProvider,
    create_default_provider,
)


__all__ = [
    "DestinationStatus",
    "PayoutDestinationProvider",
    "StripeConnectProvider",
    "create_default_provider",
]

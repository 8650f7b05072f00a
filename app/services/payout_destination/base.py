"""
Payout destination provider contract.

The affiliate registry and payout workflow talk to the external payout
provider only through this interface.
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class DestinationStatus:
    """Capability flags of an external payout destination."""

    charges_enabled: bool
    payouts_enabled: bool

    @property
    def is_ready(self) -> bool:
        """Destination can receive payouts."""
        return self.charges_enabled and self.payouts_enabled


class PayoutDestinationProvider(Protocol):
    """
    External payout provider.

    Implementations raise PayoutDestinationError for destination calls and
    TransferFailed for transfers the provider definitively refused.
    """

    async def create_destination(
        self, affiliate_id: int, user_id: str
    ) -> str:
        """Create a payout destination and return its ID."""
        ...

    async def get_destination_status(
        self, destination_id: str
    ) -> DestinationStatus:
        """Fetch capability flags of a destination."""
        ...

    async def create_onboarding_link(self, destination_id: str) -> str:
        """Return a URL where the affiliate completes onboarding."""
        ...

    async def transfer(
        self,
        destination_id: str,
        amount_cents: int,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """
        Move funds to a destination and return the transfer reference.

        Repeating a call with the same idempotency key must not move
        funds twice.
        """
        ...

    async def find_transfer(
        self, destination_id: str, idempotency_key: str
    ) -> str | None:
        """
        Look up a transfer previously issued under an idempotency key.

        Used before any transfer retry, so a transfer whose result was
        never recorded is adopted instead of issued again.
        """
        ...

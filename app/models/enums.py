"""
Enum definitions for the affiliate program models.
"""

from enum import StrEnum


class ReferralStatus(StrEnum):
    """
    Referral (ledger entry) status.

    Cleared/processing is not stored: it is computed from created_at.
    """

    PENDING = "pending"
    PAID = "paid"


class PayoutRequestStatus(StrEnum):
    """
    Payout request status.

    Transitions:
        PENDING -> APPROVED -> PAID
        PENDING -> REJECTED

    APPROVED means the transfer was issued and its reference recorded,
    settlement of the ledger is not committed yet.
    """

    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"


# Requests that block a new payout request for the same affiliate
IN_FLIGHT_PAYOUT_STATUSES = (
    PayoutRequestStatus.PENDING.value,
    PayoutRequestStatus.APPROVED.value,
)

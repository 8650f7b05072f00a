"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from app.models.affiliate import Affiliate
from app.models.base import Base
from app.models.enums import (
    IN_FLIGHT_PAYOUT_STATUSES,
    PayoutRequestStatus,
    ReferralStatus,
)
from app.models.payout_request import PayoutRequest
from app.models.referral import Referral


__all__ = [
    "Base",
    # Affiliate program
    "Affiliate",
    "Referral",
    "PayoutRequest",
    # Enums
    "ReferralStatus",
    "PayoutRequestStatus",
    "IN_FLIGHT_PAYOUT_STATUSES",
]

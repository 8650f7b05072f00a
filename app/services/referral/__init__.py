"""
Referral services package.

Contains the commission ledger:
- config: commission calculation
- ledger: append/query of referrals, cleared and processing sums, settlement
- aggregates: recompute and reconcile cached affiliate aggregates
"""

from app.services.referral.aggregates import (
    AffiliateAggregateManager,
    AggregateDrift,
)
from app.services.referral.config import calculate_commission
from app.services.referral.ledger import ClearedBalance, ReferralLedger


__all__ = [
    # Configuration
    "calculate_commission",
    # Ledger
    "ReferralLedger",
    "ClearedBalance",
    # Aggregates
    "AffiliateAggregateManager",
    "AggregateDrift",
]

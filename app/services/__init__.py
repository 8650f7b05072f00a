"""
Services.

Business logic layer of the affiliate program.
"""

# Base Service Infrastructure
from app.services.base_service import BaseService, log_operation

# Core Services
from app.services.affiliate import AffiliateRegistry, OnboardingLink
from app.services.affiliate_program_service import (
    AffiliateDashboard,
    AffiliateProgramService,
    OnboardingStatus,
)
from app.services.attribution import (
    AttributionOutcome,
    ReferralAttributionListener,
    SubscriptionActivated,
)
from app.services.payout import (
    PayoutLifecycleHandler,
    PayoutQueryService,
    PayoutRequestHandler,
)
from app.services.referral import AffiliateAggregateManager, ReferralLedger

# Payout Destination Providers
from app.services.payout_destination import (
    PayoutDestinationProvider,
    StripeConnectProvider,
)


__all__ = [
    # Base
    "BaseService",
    "log_operation",
    # Facade
    "AffiliateProgramService",
    "AffiliateDashboard",
    "OnboardingStatus",
    # Affiliate
    "AffiliateRegistry",
    "OnboardingLink",
    # Ledger
    "ReferralLedger",
    "AffiliateAggregateManager",
    # Payouts
    "PayoutRequestHandler",
    "PayoutLifecycleHandler",
    "PayoutQueryService",
    # Attribution
    "ReferralAttributionListener",
    "SubscriptionActivated",
    "AttributionOutcome",
    # Providers
    "PayoutDestinationProvider",
    "StripeConnectProvider",
]

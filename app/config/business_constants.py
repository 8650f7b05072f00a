"""
Business logic constants for the affiliate program.

Central location for business rules that are not deployment knobs.
This module has no imports from app so settings and services can both use it.
"""

import string


# Commission percentage assigned to new affiliates (40%)
DEFAULT_COMMISSION_RATE = 40

# Minimum cleared balance for a payout request: $10
DEFAULT_MINIMUM_PAYOUT_CENTS = 1000

# Referral codes: fixed prefix + random alphanumeric part, e.g. PRO4X7K2
REFERRAL_CODE_PREFIX = "PRO"
REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits
REFERRAL_CODE_RANDOM_LENGTH = 5
REFERRAL_CODE_MAX_ATTEMPTS = 10

# Dashboard shows this many most recent referrals
DASHBOARD_RECENT_REFERRALS_LIMIT = 50

# Onboarding redirect paths (appended to settings.public_base_url)
ONBOARDING_REFRESH_PATH = "/affiliate?refresh=true"
ONBOARDING_RETURN_PATH = "/affiliate?success=true"

"""
Affiliate services package.

- code_generator: referral code generation and normalisation
- registry: registration, code validation, payout destination linkage
"""

from app.services.affiliate.code_generator import (
    generate_referral_code,
    normalize_referral_code,
)
from app.services.affiliate.registry import AffiliateRegistry, OnboardingLink


__all__ = [
    "AffiliateRegistry",
    "OnboardingLink",
    "generate_referral_code",
    "normalize_referral_code",
]

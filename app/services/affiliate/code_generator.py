"""
Referral code generation.

Codes are a fixed prefix followed by random characters drawn from an
upper-case alphanumeric alphabet, e.g. ``PRO4X7K2``.
"""

import secrets

from app.config.business_constants import (
    REFERRAL_CODE_ALPHABET,
    REFERRAL_CODE_PREFIX,
    REFERRAL_CODE_RANDOM_LENGTH,
)


def generate_referral_code(
    prefix: str = REFERRAL_CODE_PREFIX,
    length: int = REFERRAL_CODE_RANDOM_LENGTH,
    alphabet: str = REFERRAL_CODE_ALPHABET,
) -> str:
    """
    Generate a random referral code.

    Args:
        prefix: Fixed code prefix
        length: Number of random characters
        alphabet: Characters to sample from

    Returns:
        Referral code
    """
    return prefix + "".join(secrets.choice(alphabet) for _ in range(length))


def normalize_referral_code(code: str) -> str:
    """Normalise user input for case-insensitive code lookup."""
    return code.strip().upper()

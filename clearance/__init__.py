"""
Commission Clearance Calculator.

Standalone package deciding when a referral commission becomes withdrawable.
A commission clears a fixed number of business days (Monday to Friday, no
holiday calendar) after the moment it was recorded.

Example:
    >>> from datetime import datetime, UTC
    >>> from clearance import add_business_days
    >>>
    >>> friday = datetime(2026, 1, 2, 15, 30, tzinfo=UTC)
    >>> add_business_days(friday, 1).strftime("%A %H:%M")
    'Monday 15:30'
"""

from clearance.constants import CLEARANCE_DAYS
from clearance.core.calendar import add_business_days, clearance_date, is_cleared
from clearance.core.calculator import ClearanceCalculator
from clearance.core.models import ClearanceSplit, LedgerEntry
from clearance.utils import format_cents


__version__ = "1.0.0"
__all__ = [
    # Core
    "ClearanceCalculator",
    "add_business_days",
    "clearance_date",
    "is_cleared",
    # Models
    "ClearanceSplit",
    "LedgerEntry",
    # Constants
    "CLEARANCE_DAYS",
    # Formatters
    "format_cents",
]

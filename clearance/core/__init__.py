"""
Core clearance functionality.

Business-day arithmetic and the calculator that splits ledger entries
into cleared and processing buckets.
"""

from clearance.core.calculator import ClearanceCalculator
from clearance.core.calendar import add_business_days, clearance_date, is_cleared
from clearance.core.models import ClearanceSplit, LedgerEntry

__all__ = [
    "ClearanceCalculator",
    "ClearanceSplit",
    "LedgerEntry",
    "add_business_days",
    "clearance_date",
    "is_cleared",
]

"""
Clearance calculator.

Splits pending ledger entries into cleared (requestable) and processing
buckets. Works on plain integers (cents) and datetimes only.
"""

from collections.abc import Iterable
from datetime import datetime

from clearance.constants import CLEARANCE_DAYS
from clearance.core.calendar import clearance_date, is_cleared
from clearance.core.models import ClearanceSplit, LedgerEntry


class ClearanceCalculator:
    """
    Pure calculator for commission clearance.

    Args:
        days: Clearance window in business days
    """

    def __init__(self, days: int = CLEARANCE_DAYS) -> None:
        if days < 0:
            raise ValueError("Clearance window cannot be negative")
        self.days = days

    def clears_at(self, created_at: datetime) -> datetime:
        """Return the moment an entry created at ``created_at`` clears."""
        return clearance_date(created_at, self.days)

    def is_cleared(self, created_at: datetime, now: datetime) -> bool:
        """Check whether an entry created at ``created_at`` has cleared."""
        return is_cleared(created_at, now, self.days)

    def split(
        self, entries: Iterable[LedgerEntry], now: datetime
    ) -> ClearanceSplit:
        """
        Split entries into cleared and processing buckets as of ``now``.

        Args:
            entries: Pending ledger entries
            now: Reference time

        Returns:
            ClearanceSplit with sums and contributing IDs
        """
        cleared_amount = 0
        processing_amount = 0
        cleared_ids: list[int] = []
        processing_ids: list[int] = []

        for entry in entries:
            if self.is_cleared(entry.created_at, now):
                cleared_amount += entry.commission_amount
                cleared_ids.append(entry.id)
            else:
                processing_amount += entry.commission_amount
                processing_ids.append(entry.id)

        return ClearanceSplit(
            cleared_amount=cleared_amount,
            cleared_ids=cleared_ids,
            processing_amount=processing_amount,
            processing_ids=processing_ids,
        )

"""
Data models for the clearance calculator.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol


class LedgerEntry(Protocol):
    """Anything carrying an id, a creation time and a commission in cents."""

    id: int
    created_at: datetime
    commission_amount: int


@dataclass(frozen=True)
class ClearanceSplit:
    """
    Pending commissions split by clearance state.

    Attributes:
        cleared_amount: Sum of cleared commissions (cents)
        cleared_ids: IDs of the entries contributing to ``cleared_amount``
        processing_amount: Sum of commissions still inside the window (cents)
        processing_ids: IDs of the entries still inside the window
    """

    cleared_amount: int = 0
    cleared_ids: list[int] = field(default_factory=list)
    processing_amount: int = 0
    processing_ids: list[int] = field(default_factory=list)

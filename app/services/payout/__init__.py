"""
Payout services package.

This package provides the payout workflow:
- payout_request_handler: Payout request creation and its preconditions
- payout_lifecycle_handler: Approval (transfer + settlement) and rejection
- payout_query_service: Queries and history

All components are re-exported for easy importing.
"""

from app.services.payout.payout_lifecycle_handler import (
    PayoutLifecycleHandler,
    transfer_idempotency_key,
)
from app.services.payout.payout_query_service import PayoutQueryService
from app.services.payout.payout_request_handler import PayoutRequestHandler


__all__ = [
    "PayoutRequestHandler",
    "PayoutLifecycleHandler",
    "PayoutQueryService",
    "transfer_idempotency_key",
]

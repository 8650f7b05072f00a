"""
Payout query service module.

Handles queries for payout requests: admin review queue, affiliate
history and single request lookups.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import PayoutRequestStatus
from app.models.payout_request import PayoutRequest
from app.repositories.payout_request_repository import PayoutRequestRepository
from app.utils.exceptions import PayoutRequestNotFound


class PayoutQueryService:
    """Handles payout request query operations."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize payout query service.

        Args:
            session: Database session
        """
        self.session = session
        self.payout_repo = PayoutRequestRepository(session)

    async def list_payout_requests(
        self,
        status: str = PayoutRequestStatus.PENDING.value,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[PayoutRequest]:
        """
        List payout requests with a status, oldest first.

        Args:
            status: Request status (pending by default, the review queue)
            limit: Max number of results
            offset: Number of results to skip

        Returns:
            List of payout requests

        Raises:
            ValueError: Unknown status
        """
        status = PayoutRequestStatus(status).value
        return await self.payout_repo.list_by_status(
            status, limit=limit, offset=offset
        )

    async def get_affiliate_payout_requests(
        self, affiliate_id: int, limit: int | None = None
    ) -> list[PayoutRequest]:
        """
        Get an affiliate's payout history, newest first.

        Args:
            affiliate_id: Affiliate ID
            limit: Max number of results

        Returns:
            List of payout requests
        """
        return await self.payout_repo.list_by_affiliate(affiliate_id, limit=limit)

    async def get_payout_request(self, request_id: int) -> PayoutRequest:
        """
        Get payout request by ID.

        Raises:
            PayoutRequestNotFound: No such request
        """
        payout_request = await self.payout_repo.get_by_id(request_id)
        if not payout_request:
            raise PayoutRequestNotFound(
                f"Payout request {request_id} not found", request_id=request_id
            )
        return payout_request

    async def get_in_flight_request(
        self, affiliate_id: int
    ) -> PayoutRequest | None:
        """Get the affiliate's pending or approved request, if any."""
        in_flight = await self.payout_repo.get_in_flight_by_affiliate(affiliate_id)
        return in_flight[0] if in_flight else None

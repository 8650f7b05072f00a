"""
PayoutRequest repository.

Data access layer for PayoutRequest model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import IN_FLIGHT_PAYOUT_STATUSES
from app.models.payout_request import PayoutRequest
from app.repositories.base import BaseRepository


class PayoutRequestRepository(BaseRepository[PayoutRequest]):
    """PayoutRequest repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize payout request repository."""
        super().__init__(PayoutRequest, session)

    async def get_in_flight_by_affiliate(
        self, affiliate_id: int
    ) -> list[PayoutRequest]:
        """
        Get pending or approved requests of an affiliate.

        More than one row means the uniqueness guarantee was bypassed.

        Args:
            affiliate_id: Affiliate ID

        Returns:
            List of in-flight requests
        """
        stmt = select(PayoutRequest).where(
            PayoutRequest.affiliate_id == affiliate_id,
            PayoutRequest.status.in_(IN_FLIGHT_PAYOUT_STATUSES),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_status(
        self, status: str, limit: int | None = None, offset: int | None = None
    ) -> list[PayoutRequest]:
        """
        List requests with a status, oldest first (admin review queue).

        Args:
            status: Request status
            limit: Max number of results
            offset: Number of results to skip

        Returns:
            List of requests
        """
        stmt = (
            select(PayoutRequest)
            .where(PayoutRequest.status == status)
            .order_by(PayoutRequest.requested_at.asc(), PayoutRequest.id.asc())
        )
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_affiliate(
        self, affiliate_id: int, limit: int | None = None
    ) -> list[PayoutRequest]:
        """
        List an affiliate's requests, newest first.

        Args:
            affiliate_id: Affiliate ID
            limit: Max number of results

        Returns:
            List of requests
        """
        return await self.find_all(limit=limit, affiliate_id=affiliate_id)

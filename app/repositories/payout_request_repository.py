"""
PayoutRequest repository.

Data access layer for PayoutRequest model.
"""

from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import PayoutStatus
from app.models.payout_request import PayoutRequest
from app.repositories.base import BaseRepository


class PayoutRequestRepository(BaseRepository[PayoutRequest]):
    """PayoutRequest repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize payout request repository."""
        super().__init__(PayoutRequest, session)

    async def has_pending(self, affiliate_id: int) -> bool:
        """Check if affiliate has an unresolved payout request."""
        return await self.exists(
            affiliate_id=affiliate_id, status=PayoutStatus.PENDING.value
        )

    async def get_locked_amount(self, affiliate_id: int) -> Decimal:
        """
        Sum of Pending payout requests (reserved funds).

        Args:
            affiliate_id: Affiliate ID

        Returns:
            Reserved amount
        """
        stmt = select(
            func.coalesce(func.sum(PayoutRequest.amount), Decimal("0"))
        ).where(
            PayoutRequest.affiliate_id == affiliate_id,
            PayoutRequest.status == PayoutStatus.PENDING.value,
        )
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar()))

    async def delete_for_affiliate(self, affiliate_id: int) -> int:
        """Delete all payout requests of an affiliate."""
        stmt = delete(PayoutRequest).where(
            PayoutRequest.affiliate_id == affiliate_id
        )
        result = await self.session.execute(stmt)
        return result.rowcount

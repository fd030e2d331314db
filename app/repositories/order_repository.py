"""
Order repository.

Read access to storefront orders for commission processing.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.affiliate_transaction import AffiliateTransaction
from app.models.enums import COMMISSION_TYPES, OrderStatus
from app.models.order import Order
from app.repositories.base import BaseRepository


class OrderRepository(BaseRepository[Order]):
    """Order repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize order repository."""
        super().__init__(Order, session)

    async def get_by_order_id(
        self, order_id: str, for_update: bool = False
    ) -> Order | None:
        """
        Get order by external order ID.

        Args:
            order_id: External order ID
            for_update: Lock the row (SELECT ... FOR UPDATE)

        Returns:
            Order or None
        """
        stmt = select(Order).where(Order.order_id == order_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(
                populate_existing=True
            )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_commissioned_stats(
        self, affiliate_id: int, since: datetime | None = None
    ) -> tuple[int, Decimal]:
        """
        Count non-cancelled orders distributed with an affiliate as direct.

        An order counts once its commission is on the ledger, the same
        moment distribution increments the affiliate's order counters.

        Args:
            affiliate_id: Coupon owner (source of the commission entries)
            since: Only orders distributed at or after this moment

        Returns:
            Tuple (order count, sales amount)
        """
        commissioned = select(AffiliateTransaction.order_id).where(
            AffiliateTransaction.from_affiliate_id == affiliate_id,
            AffiliateTransaction.order_id.is_not(None),
            AffiliateTransaction.type.in_([t.value for t in COMMISSION_TYPES]),
        )
        if since is not None:
            commissioned = commissioned.where(
                AffiliateTransaction.created_at >= since
            )

        stmt = select(
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_amount), Decimal("0")),
        ).where(
            Order.order_id.in_(commissioned),
            Order.status != OrderStatus.CANCEL.value,
        )

        result = await self.session.execute(stmt)
        count, sales = result.one()
        return int(count or 0), Decimal(str(sales))

"""
AffiliateTransaction repository.

Data access layer for the commission ledger.
"""

from decimal import Decimal

from sqlalchemy import case, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.affiliate_transaction import AffiliateTransaction
from app.models.enums import OrderStatus, TransactionType
from app.models.order import Order
from app.repositories.base import BaseRepository


class AffiliateTransactionRepository(BaseRepository[AffiliateTransaction]):
    """AffiliateTransaction repository with ledger aggregations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize affiliate transaction repository."""
        super().__init__(AffiliateTransaction, session)

    async def exists_for_order(self, order_id: str) -> bool:
        """
        Check if any commission was already recorded for an order.

        Args:
            order_id: External order ID

        Returns:
            True if the order was already distributed
        """
        stmt = (
            select(AffiliateTransaction.id)
            .where(AffiliateTransaction.order_id == order_id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_by_order(self, order_id: str) -> list[AffiliateTransaction]:
        """Get all ledger entries of an order."""
        stmt = (
            select(AffiliateTransaction)
            .where(AffiliateTransaction.order_id == order_id)
            .order_by(AffiliateTransaction.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_recipient_ids_for_order(self, order_id: str) -> list[int]:
        """Get IDs of affiliates credited for an order."""
        stmt = (
            select(AffiliateTransaction.affiliate_id)
            .where(AffiliateTransaction.order_id == order_id)
            .distinct()
        )
        result = await self.session.execute(stmt)
        return [row[0] for row in result.all()]

    async def get_earnings_by_type(
        self, affiliate_id: int
    ) -> dict[str, Decimal]:
        """
        Sum credited amounts per transaction type.

        Args:
            affiliate_id: Recipient affiliate ID

        Returns:
            Dict type -> sum, every TransactionType present (zero if none)
        """
        stmt = (
            select(
                AffiliateTransaction.type,
                func.coalesce(
                    func.sum(AffiliateTransaction.amount), Decimal("0")
                ),
            )
            .where(AffiliateTransaction.affiliate_id == affiliate_id)
            .group_by(AffiliateTransaction.type)
        )
        result = await self.session.execute(stmt)

        earnings = {t.value: Decimal("0") for t in TransactionType}
        for tx_type, total in result.all():
            earnings[tx_type] = Decimal(str(total))
        return earnings

    async def get_settled_split(
        self, affiliate_id: int
    ) -> tuple[Decimal, Decimal]:
        """
        Split an affiliate's credits into settled and unsettled sums.

        Settled means the source order is Delivered. Entries without an
        order (bonuses) or whose order is not Delivered are unsettled.

        Args:
            affiliate_id: Recipient affiliate ID

        Returns:
            Tuple (settled, unsettled)
        """
        delivered = Order.status == OrderStatus.DELIVERED.value
        stmt = (
            select(
                func.coalesce(
                    func.sum(
                        case((delivered, AffiliateTransaction.amount), else_=0)
                    ),
                    Decimal("0"),
                ),
                func.coalesce(
                    func.sum(
                        case(
                            (delivered, 0),
                            else_=AffiliateTransaction.amount,
                        )
                    ),
                    Decimal("0"),
                ),
            )
            .select_from(AffiliateTransaction)
            .outerjoin(Order, Order.order_id == AffiliateTransaction.order_id)
            .where(AffiliateTransaction.affiliate_id == affiliate_id)
        )
        result = await self.session.execute(stmt)
        settled, unsettled = result.one()
        return Decimal(str(settled)), Decimal(str(unsettled))

    async def has_bonus_from(
        self, referrer_id: int, from_affiliate_id: int
    ) -> bool:
        """Check if referrer already got a bonus for this affiliate."""
        stmt = (
            select(AffiliateTransaction.id)
            .where(
                AffiliateTransaction.affiliate_id == referrer_id,
                AffiliateTransaction.from_affiliate_id == from_affiliate_id,
                AffiliateTransaction.type == TransactionType.BONUS.value,
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_involved_affiliate_ids(self, affiliate_id: int) -> set[int]:
        """
        Get the other side of every transaction touching an affiliate.

        Args:
            affiliate_id: Affiliate as recipient or source

        Returns:
            IDs whose aggregates depend on these transactions
        """
        stmt = select(
            AffiliateTransaction.affiliate_id,
            AffiliateTransaction.from_affiliate_id,
        ).where(
            or_(
                AffiliateTransaction.affiliate_id == affiliate_id,
                AffiliateTransaction.from_affiliate_id == affiliate_id,
            )
        )
        result = await self.session.execute(stmt)

        ids: set[int] = set()
        for recipient_id, source_id in result.all():
            ids.add(recipient_id)
            if source_id is not None:
                ids.add(source_id)
        ids.discard(affiliate_id)
        return ids

    async def delete_for_affiliate(self, affiliate_id: int) -> int:
        """
        Delete transactions where affiliate is recipient or source.

        Args:
            affiliate_id: Affiliate being removed

        Returns:
            Number of deleted rows
        """
        stmt = delete(AffiliateTransaction).where(
            or_(
                AffiliateTransaction.affiliate_id == affiliate_id,
                AffiliateTransaction.from_affiliate_id == affiliate_id,
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def delete_orphans(self) -> int:
        """
        Delete transactions whose order no longer exists.

        Returns:
            Number of deleted rows
        """
        stmt = delete(AffiliateTransaction).where(
            AffiliateTransaction.order_id.is_not(None),
            AffiliateTransaction.order_id.not_in(select(Order.order_id)),
        )
        result = await self.session.execute(stmt)
        return result.rowcount

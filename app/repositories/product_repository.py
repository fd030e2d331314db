"""
Product repository.

Read access to product cost configuration.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.product import Product
from app.repositories.base import BaseRepository


class ProductRepository(BaseRepository[Product]):
    """Product repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize product repository."""
        super().__init__(Product, session)

    async def get_many(self, product_ids: list[str]) -> dict[str, Product]:
        """
        Load several products in one query.

        Args:
            product_ids: Product IDs referenced by order items

        Returns:
            Dict product_id -> Product (missing IDs are absent)
        """
        if not product_ids:
            return {}

        stmt = select(Product).where(Product.id.in_(set(product_ids)))
        result = await self.session.execute(stmt)
        return {product.id: product for product in result.scalars().all()}

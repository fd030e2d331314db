"""
Affiliate repository.

Data access layer for Affiliate model, including binary tree queries.
"""

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.affiliate import Affiliate
from app.models.enums import AffiliateStatus
from app.repositories.base import BaseRepository


def normalize_coupon(code: str) -> str:
    """Coupon match key: trimmed, upper-cased."""
    return code.strip().upper()


class AffiliateRepository(BaseRepository[Affiliate]):
    """Affiliate repository with tree and coupon queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize affiliate repository."""
        super().__init__(Affiliate, session)

    async def get_by_coupon(self, coupon_code: str) -> Affiliate | None:
        """
        Get affiliate by coupon code (case-insensitive, trimmed).

        Args:
            coupon_code: Code as entered on the order

        Returns:
            Affiliate or None
        """
        stmt = select(Affiliate).where(
            func.upper(func.trim(Affiliate.coupon_code))
            == normalize_coupon(coupon_code)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def coupon_exists(self, coupon_code: str) -> bool:
        """Check if a coupon code is already issued."""
        return await self.get_by_coupon(coupon_code) is not None

    async def get_children(self, parent_id: int) -> list[Affiliate]:
        """
        Get direct tree children of an affiliate, left before right.

        Args:
            parent_id: Parent affiliate ID

        Returns:
            List of children (at most two in a healthy tree)
        """
        stmt = (
            select(Affiliate)
            .where(Affiliate.parent_id == parent_id)
            .order_by(Affiliate.position, Affiliate.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_child_slots(
        self, parent_ids: list[int]
    ) -> list[tuple[int, int, str | None]]:
        """
        Get (parent_id, child_id, position) rows for a whole tree level.

        Optimized for breadth-first scans - one query per level,
        only IDs are fetched.

        Args:
            parent_ids: IDs of the current level

        Returns:
            List of (parent_id, child_id, position)
        """
        if not parent_ids:
            return []

        stmt = (
            select(Affiliate.parent_id, Affiliate.id, Affiliate.position)
            .where(Affiliate.parent_id.in_(parent_ids))
            .order_by(Affiliate.id)
        )
        result = await self.session.execute(stmt)
        return [(row[0], row[1], row[2]) for row in result.all()]

    async def get_default_root(
        self, exclude_id: int | None = None
    ) -> Affiliate | None:
        """
        Get the earliest approved affiliate that has no tree parent.

        Args:
            exclude_id: Affiliate that must not be returned

        Returns:
            Root affiliate or None if the tree is empty
        """
        stmt = (
            select(Affiliate)
            .where(
                Affiliate.parent_id.is_(None),
                Affiliate.status == AffiliateStatus.APPROVED.value,
            )
            .order_by(Affiliate.approved_at, Affiliate.id)
            .limit(1)
        )
        if exclude_id is not None:
            stmt = stmt.where(Affiliate.id != exclude_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_tree_rows(self) -> list[tuple[int, int | None, str | None]]:
        """Get (id, parent_id, position) for every affiliate."""
        stmt = select(Affiliate.id, Affiliate.parent_id, Affiliate.position)
        result = await self.session.execute(stmt)
        return [(row[0], row[1], row[2]) for row in result.all()]

    async def get_all_ids(self) -> list[int]:
        """Get IDs of all affiliates."""
        result = await self.session.execute(
            select(Affiliate.id).order_by(Affiliate.id)
        )
        return [row[0] for row in result.all()]

    async def set_placement(
        self, affiliate_id: int, parent_id: int | None, position: str | None
    ) -> None:
        """
        Write tree placement.

        Args:
            affiliate_id: Affiliate being placed
            parent_id: New parent (None = root)
            position: "left", "right" or None
        """
        stmt = (
            update(Affiliate)
            .where(Affiliate.id == affiliate_id)
            .values(parent_id=parent_id, position=position)
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def clear_referrer_links(self, referrer_id: int) -> int:
        """
        Clear referrer_id on every affiliate invited by referrer_id.

        Args:
            referrer_id: Affiliate being removed

        Returns:
            Number of affiliates updated
        """
        stmt = (
            update(Affiliate)
            .where(Affiliate.referrer_id == referrer_id)
            .values(referrer_id=None)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def clear_self_parents(self) -> int:
        """
        Null out parent links that point at the row itself.

        Returns:
            Number of affiliates repaired
        """
        stmt = (
            update(Affiliate)
            .where(Affiliate.parent_id == Affiliate.id)
            .values(parent_id=None, position=None)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

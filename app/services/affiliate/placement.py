"""
Tree placement resolver.

Finds the slot a new (or re-homed) affiliate takes in the binary tree:
breadth-first from the referrer, left before right.
"""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.models.enums import TreePosition
from app.repositories.affiliate_repository import AffiliateRepository
from app.utils.exceptions import TreeCycleError


SLOT_ORDER = (TreePosition.LEFT.value, TreePosition.RIGHT.value)


@dataclass(frozen=True)
class Placement:
    """Resolved tree slot. Both None means the node becomes a root."""

    parent_id: int | None
    position: str | None

    @property
    def is_root(self) -> bool:
        """Check if node is placed as root."""
        return self.parent_id is None


ROOT_PLACEMENT = Placement(parent_id=None, position=None)


class PlacementResolver:
    """
    Read-only tree slot resolver.

    Callers write the placement under the (parent_id, position) unique
    constraint and resolve again on conflict.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize placement resolver.

        Args:
            session: Async database session
        """
        self.session = session
        self.affiliate_repo = AffiliateRepository(session)

    async def resolve(
        self, referrer_id: int | None, exclude_id: int | None = None
    ) -> Placement:
        """
        Resolve placement for an affiliate.

        Args:
            referrer_id: Preferred sponsor; None, missing or excluded
                referrers fall back to the root
            exclude_id: Affiliate being placed; never returned as parent
                and its subtree is never searched

        Returns:
            Placement (ROOT_PLACEMENT if the tree is empty)
        """
        start_id = None
        if referrer_id is not None and referrer_id != exclude_id:
            referrer = await self.affiliate_repo.get_by_id(referrer_id)
            if referrer is not None and not await self._in_subtree(
                referrer.id, exclude_id
            ):
                start_id = referrer.id
            else:
                logger.debug(
                    "Referrer unusable for placement, using root",
                    extra={"referrer_id": referrer_id, "exclude_id": exclude_id},
                )

        if start_id is None:
            start_id = await self._get_root_id(exclude_id)

        if start_id is None:
            return ROOT_PLACEMENT

        placement = await self.find_slot(start_id, exclude_id)
        logger.debug(
            "Placement resolved",
            extra={
                "referrer_id": referrer_id,
                "exclude_id": exclude_id,
                "parent_id": placement.parent_id,
                "position": placement.position,
            },
        )
        return placement

    async def find_slot(
        self, start_id: int, exclude_id: int | None = None
    ) -> Placement:
        """
        Breadth-first search for the first free slot under start_id.

        One query per tree level.

        Args:
            start_id: Subtree root to search
            exclude_id: Node whose subtree is skipped

        Returns:
            First free slot, left before right
        """
        level = [start_id]
        visited = {start_id}

        while level:
            rows = await self.affiliate_repo.get_child_slots(level)

            children: dict[int, dict[str, int]] = {}
            for parent_id, child_id, position in rows:
                children.setdefault(parent_id, {})[position] = child_id

            next_level: list[int] = []
            for parent_id in level:
                slots = children.get(parent_id, {})
                for position in SLOT_ORDER:
                    if position not in slots:
                        return Placement(parent_id=parent_id, position=position)

                for position in SLOT_ORDER:
                    child_id = slots[position]
                    if child_id == exclude_id or child_id in visited:
                        continue
                    visited.add(child_id)
                    next_level.append(child_id)

            level = next_level

        # A finite tree always has a free leaf slot; running out means loops.
        raise TreeCycleError(start_id, sorted(visited))

    async def _get_root_id(self, exclude_id: int | None) -> int | None:
        """Designated root, else earliest approved parentless affiliate."""
        root_id = settings.root_affiliate_id
        if root_id is not None and root_id != exclude_id:
            root = await self.affiliate_repo.get_by_id(root_id)
            if root is not None and not await self._in_subtree(root.id, exclude_id):
                return root.id
            logger.warning(
                "Configured root affiliate unusable, falling back",
                extra={"root_affiliate_id": root_id},
            )

        root = await self.affiliate_repo.get_default_root(exclude_id=exclude_id)
        return root.id if root is not None else None

    async def _in_subtree(self, node_id: int, subtree_root: int | None) -> bool:
        """
        Check if node_id lies in the subtree rooted at subtree_root.

        Raises:
            TreeCycleError: If the parent chain loops
        """
        if subtree_root is None:
            return False

        chain = [node_id]
        current = node_id
        while current is not None:
            if current == subtree_root:
                return True
            node = await self.affiliate_repo.get_by_id(current)
            if node is None:
                return False
            current = node.parent_id
            if current in chain:
                raise TreeCycleError(node_id, chain + [current])
            chain.append(current)
        return False

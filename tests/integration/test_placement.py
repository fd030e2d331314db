"""
Integration tests for binary tree placement.

Tests cover:
- Breadth-first, left-before-right slot resolution
- Root fallback rules
- Exclusion of the node being placed
- UNIQUE(parent_id, position) enforcement
"""

import pytest
from sqlalchemy.exc import IntegrityError

from app.config.settings import settings
from app.models.enums import AffiliateStatus
from app.services.affiliate.placement import ROOT_PLACEMENT, PlacementResolver


class TestPlacementResolver:
    """Integration tests for PlacementResolver."""

    @pytest.mark.asyncio
    async def test_empty_tree_places_as_root(self, db_session):
        resolver = PlacementResolver(db_session)

        placement = await resolver.resolve(None)

        assert placement == ROOT_PLACEMENT
        assert placement.is_root

    @pytest.mark.asyncio
    async def test_left_before_right(self, db_session, make_affiliate):
        root = await make_affiliate()
        resolver = PlacementResolver(db_session)

        first = await resolver.resolve(root.id)
        assert (first.parent_id, first.position) == (root.id, "left")

        await make_affiliate(parent_id=root.id, position="left")
        second = await resolver.resolve(root.id)
        assert (second.parent_id, second.position) == (root.id, "right")

    @pytest.mark.asyncio
    async def test_breadth_first_order(self, db_session, make_affiliate):
        """Full level is skipped; next level fills left to right."""
        root = await make_affiliate()
        a = await make_affiliate(parent_id=root.id, position="left")
        b = await make_affiliate(parent_id=root.id, position="right")
        await make_affiliate(parent_id=a.id, position="left")
        await make_affiliate(parent_id=a.id, position="right")

        placement = await PlacementResolver(db_session).resolve(root.id)

        assert (placement.parent_id, placement.position) == (b.id, "left")

    @pytest.mark.asyncio
    async def test_search_starts_at_referrer(self, db_session, make_affiliate):
        root = await make_affiliate()
        await make_affiliate(parent_id=root.id, position="left")
        b = await make_affiliate(parent_id=root.id, position="right")

        placement = await PlacementResolver(db_session).resolve(b.id)

        assert (placement.parent_id, placement.position) == (b.id, "left")

    @pytest.mark.asyncio
    async def test_no_referrer_uses_earliest_approved_root(
        self, db_session, make_affiliate
    ):
        await make_affiliate(status=AffiliateStatus.PENDING.value, is_active=False)
        root = await make_affiliate()

        placement = await PlacementResolver(db_session).resolve(None)

        assert placement.parent_id == root.id

    @pytest.mark.asyncio
    async def test_missing_referrer_falls_back_to_root(
        self, db_session, make_affiliate
    ):
        root = await make_affiliate()

        placement = await PlacementResolver(db_session).resolve(9999)

        assert placement.parent_id == root.id

    @pytest.mark.asyncio
    async def test_never_returns_excluded_node(self, db_session, make_affiliate):
        """Node being placed is never its own parent."""
        root = await make_affiliate()
        node = await make_affiliate()

        placement = await PlacementResolver(db_session).resolve(
            node.id, exclude_id=node.id
        )

        assert placement.parent_id == root.id
        assert placement.parent_id != node.id

    @pytest.mark.asyncio
    async def test_excluded_subtree_not_searched(self, db_session, make_affiliate):
        """Slots below the excluded node are skipped."""
        root = await make_affiliate()
        moving = await make_affiliate(parent_id=root.id, position="left")
        right = await make_affiliate(parent_id=root.id, position="right")

        placement = await PlacementResolver(db_session).resolve(
            root.id, exclude_id=moving.id
        )

        assert (placement.parent_id, placement.position) == (right.id, "left")

    @pytest.mark.asyncio
    async def test_referrer_inside_excluded_subtree_falls_back(
        self, db_session, make_affiliate
    ):
        """Placing a node under its own descendant would create a cycle."""
        root = await make_affiliate()
        moving = await make_affiliate(parent_id=root.id, position="left")
        child = await make_affiliate(parent_id=moving.id, position="left")

        placement = await PlacementResolver(db_session).resolve(
            child.id, exclude_id=moving.id
        )

        assert placement.parent_id == root.id
        assert placement.position == "right"

    @pytest.mark.asyncio
    async def test_configured_root(self, db_session, make_affiliate, monkeypatch):
        await make_affiliate()
        designated = await make_affiliate()
        monkeypatch.setattr(settings, "root_affiliate_id", designated.id)

        placement = await PlacementResolver(db_session).resolve(None)

        assert placement.parent_id == designated.id


class TestSlotUniqueness:
    """The database rejects two children in one slot."""

    @pytest.mark.asyncio
    async def test_duplicate_slot_rejected(self, db_session, make_affiliate):
        root = await make_affiliate()
        await make_affiliate(parent_id=root.id, position="left")

        with pytest.raises(IntegrityError):
            await make_affiliate(parent_id=root.id, position="left")
        await db_session.rollback()

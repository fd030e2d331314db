"""
Integration tests for affiliate removal.

Tests cover:
- Rolling children up to the former parent
- Root removal
- Cleanup of ledger entries, payout requests and referrer links
- Reconciliation of affected affiliates
"""

from decimal import Decimal

import pytest

from app.models.enums import PayoutStatus
from app.models.payout_request import PayoutRequest
from app.repositories.affiliate_repository import AffiliateRepository
from app.services.affiliate.commission_distributor import CommissionDistributor
from app.services.affiliate.network_surgery import NetworkSurgery
from app.services.affiliate.placement import ROOT_PLACEMENT, PlacementResolver
from app.utils.exceptions import AffiliateNotFoundError


class TestRollup:
    """Children of a removed node move up to its former parent."""

    @pytest.mark.asyncio
    async def test_children_take_parent_slots(self, db_session, make_affiliate):
        parent = await make_affiliate(full_name="P")
        removed = await make_affiliate(parent_id=parent.id, position="left")
        a = await make_affiliate(parent_id=removed.id, position="left")
        b = await make_affiliate(parent_id=removed.id, position="right")

        result = await NetworkSurgery(db_session).remove(removed.id)

        assert [(child, p.parent_id, p.position) for child, p in result.relocated] == [
            (a.id, parent.id, "left"),
            (b.id, parent.id, "right"),
        ]
        await db_session.refresh(a)
        await db_session.refresh(b)
        assert (a.parent_id, a.position) == (parent.id, "left")
        assert (b.parent_id, b.position) == (parent.id, "right")
        assert await AffiliateRepository(db_session).get_by_id(removed.id) is None

    @pytest.mark.asyncio
    async def test_former_slot_preferred(self, db_session, make_affiliate):
        parent = await make_affiliate()
        removed = await make_affiliate(parent_id=parent.id, position="right")
        child = await make_affiliate(parent_id=removed.id, position="left")

        await NetworkSurgery(db_session).remove(removed.id)

        await db_session.refresh(child)
        assert (child.parent_id, child.position) == (parent.id, "right")

    @pytest.mark.asyncio
    async def test_overflow_goes_breadth_first(self, db_session, make_affiliate):
        parent = await make_affiliate()
        removed = await make_affiliate(parent_id=parent.id, position="left")
        sibling = await make_affiliate(parent_id=parent.id, position="right")
        a = await make_affiliate(parent_id=removed.id, position="left")
        b = await make_affiliate(parent_id=removed.id, position="right")

        result = await NetworkSurgery(db_session).remove(removed.id)

        placements = dict(result.relocated)
        assert (placements[a.id].parent_id, placements[a.id].position) == (
            parent.id,
            "left",
        )
        assert (placements[b.id].parent_id, placements[b.id].position) == (
            a.id,
            "left",
        )
        await db_session.refresh(sibling)
        assert (sibling.parent_id, sibling.position) == (parent.id, "right")

    @pytest.mark.asyncio
    async def test_grandchildren_stay_attached(self, db_session, make_affiliate):
        parent = await make_affiliate()
        removed = await make_affiliate(parent_id=parent.id, position="left")
        child = await make_affiliate(parent_id=removed.id, position="left")
        grandchild = await make_affiliate(parent_id=child.id, position="left")

        await NetworkSurgery(db_session).remove(removed.id)

        await db_session.refresh(grandchild)
        assert grandchild.parent_id == child.id

    @pytest.mark.asyncio
    async def test_later_placement_does_not_collide(
        self, db_session, make_affiliate
    ):
        parent = await make_affiliate()
        removed = await make_affiliate(parent_id=parent.id, position="left")
        a = await make_affiliate(parent_id=removed.id, position="left")
        await make_affiliate(parent_id=removed.id, position="right")

        await NetworkSurgery(db_session).remove(removed.id)
        placement = await PlacementResolver(db_session).resolve(parent.id)

        assert (placement.parent_id, placement.position) == (a.id, "left")
        await make_affiliate(
            parent_id=placement.parent_id, position=placement.position
        )

    @pytest.mark.asyncio
    async def test_leaf_removal(self, db_session, make_affiliate):
        parent = await make_affiliate()
        leaf = await make_affiliate(parent_id=parent.id, position="left")

        result = await NetworkSurgery(db_session).remove(leaf.id)

        assert result.relocated == []
        placement = await PlacementResolver(db_session).resolve(parent.id)
        assert (placement.parent_id, placement.position) == (parent.id, "left")


class TestRootRemoval:
    """Removing a root promotes its first child."""

    @pytest.mark.asyncio
    async def test_first_child_becomes_root(self, db_session, make_affiliate):
        root = await make_affiliate()
        a = await make_affiliate(parent_id=root.id, position="left")
        b = await make_affiliate(parent_id=root.id, position="right")

        result = await NetworkSurgery(db_session).remove(root.id)

        assert result.new_root_id == a.id
        await db_session.refresh(a)
        await db_session.refresh(b)
        assert (a.parent_id, a.position) == (None, None)
        assert (b.parent_id, b.position) == (a.id, "left")

    @pytest.mark.asyncio
    async def test_lone_root(self, db_session, make_affiliate):
        root = await make_affiliate()

        result = await NetworkSurgery(db_session).remove(root.id)

        assert result.new_root_id is None
        assert await PlacementResolver(db_session).resolve(None) == ROOT_PLACEMENT


class TestCleanup:
    """Dependent rows are removed and aggregates recomputed."""

    @pytest.mark.asyncio
    async def test_transactions_and_aggregates(
        self, db_session, make_affiliate, make_product, make_order
    ):
        await make_product("kit", pool_percent=Decimal("100"))
        upline = await make_affiliate()
        direct = await make_affiliate(
            coupon_code="DIRECT1", parent_id=upline.id, position="left"
        )
        await make_order(
            "ORD-1",
            "DIRECT1",
            [{"product_id": "kit", "quantity": 1, "price": "1000"}],
        )
        await CommissionDistributor(db_session).distribute("ORD-1")

        result = await NetworkSurgery(db_session).remove(direct.id)

        assert result.deleted_transactions == 2
        assert result.reconciled == [upline.id]
        await db_session.refresh(upline)
        assert upline.level1_earnings == Decimal("0")
        assert upline.pending_balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_payout_requests_and_referrer_links(
        self, db_session, make_affiliate
    ):
        removed = await make_affiliate()
        invited = await make_affiliate(referrer_id=removed.id)
        db_session.add(
            PayoutRequest(
                affiliate_id=removed.id,
                amount=Decimal("500"),
                upi_id="gone@upi",
                status=PayoutStatus.PENDING.value,
            )
        )
        await db_session.commit()

        result = await NetworkSurgery(db_session).remove(removed.id)

        assert result.deleted_payout_requests == 1
        assert result.cleared_referrer_links == 1
        await db_session.refresh(invited)
        assert invited.referrer_id is None

    @pytest.mark.asyncio
    async def test_unknown_affiliate(self, db_session):
        with pytest.raises(AffiliateNotFoundError):
            await NetworkSurgery(db_session).remove(404)

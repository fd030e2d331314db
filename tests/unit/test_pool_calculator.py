"""
Unit tests for commission pool computation and splitting.

Tests cover:
- Pool from line items with default and per-product pool percent
- Unresolvable products
- Level splits, rounding and capping at 100% of the pool
"""

from decimal import Decimal

import pytest

from app.models.enums import OrderStatus
from app.services.affiliate.pool_calculator import compute, share_of, split_pool
from app.services.affiliate.records import (
    LineItem,
    OrderSnapshot,
    ProductCostConfig,
)


DEFAULT_SPLITS = {1: Decimal("20"), 2: Decimal("18"), 3: Decimal("12")}


def make_order(*items: LineItem) -> OrderSnapshot:
    """Build snapshot from line items."""
    return OrderSnapshot(
        order_id="ORD-1",
        coupon_code="TEST1234",
        status=OrderStatus.PAYMENT_CONFIRMED,
        total_amount=sum((item.line_total for item in items), Decimal("0")),
        items=items,
    )


class TestCompute:
    """Test pool computation."""

    def test_default_pool_percent(self):
        """Product without pool percent uses the default 60%."""
        order = make_order(LineItem("p1", 2, Decimal("500")))
        products = {"p1": ProductCostConfig("p1", pool_percent=None)}

        result = compute(order, products, default_pool_percent=Decimal("60"))

        assert result.pool == Decimal("600")
        assert result.unresolved == ()

    def test_product_pool_percent(self):
        """Per-product pool percent overrides the default."""
        order = make_order(
            LineItem("p1", 1, Decimal("1000")),
            LineItem("p2", 3, Decimal("100")),
        )
        products = {
            "p1": ProductCostConfig("p1", pool_percent=Decimal("50")),
            "p2": ProductCostConfig("p2", pool_percent=Decimal("10")),
        }

        result = compute(order, products, default_pool_percent=Decimal("60"))

        assert result.pool == Decimal("530")

    def test_unresolved_product_contributes_zero(self):
        """Missing product config is excluded and reported."""
        order = make_order(
            LineItem("p1", 1, Decimal("1000")),
            LineItem("ghost", 1, Decimal("999")),
        )
        products = {"p1": ProductCostConfig("p1", pool_percent=Decimal("100"))}

        result = compute(order, products)

        assert result.pool == Decimal("1000")
        assert result.unresolved == ("ghost",)

    def test_all_unresolved_gives_zero_pool(self):
        order = make_order(LineItem("ghost", 1, Decimal("100")))
        result = compute(order, {})
        assert result.pool == Decimal("0")


class TestSplitPool:
    """Test pool splitting between levels."""

    def test_reference_scenario(self):
        """Pool 1000 at 30%: 300 / 200 / 180 / 120."""
        shares = split_pool(Decimal("1000"), Decimal("30"), DEFAULT_SPLITS)

        assert shares == {
            0: Decimal("300.00"),
            1: Decimal("200.00"),
            2: Decimal("180.00"),
            3: Decimal("120.00"),
        }

    def test_shares_never_exceed_pool(self):
        """Elite 60% + 50% of splits is capped at 100%."""
        pool = Decimal("1000")
        shares = split_pool(pool, Decimal("60"), DEFAULT_SPLITS)

        assert shares[0] == Decimal("600.00")
        assert shares[1] == Decimal("200.00")
        assert shares[2] == Decimal("180.00")
        assert shares[3] == Decimal("20.00")
        assert sum(shares.values()) == pool

    def test_rate_above_hundred_leaves_nothing_for_ancestors(self):
        shares = split_pool(Decimal("100"), Decimal("100"), DEFAULT_SPLITS)
        assert shares[0] == Decimal("100.00")
        assert shares[1] == shares[2] == shares[3] == Decimal("0.00")

    @pytest.mark.parametrize(
        "pool",
        [Decimal("33.33"), Decimal("0.07"), Decimal("123456.789"), Decimal("1")],
    )
    def test_rounding_down_conserves_pool(self, pool):
        """Rounded shares never sum above the pool."""
        shares = split_pool(pool, Decimal("55"), DEFAULT_SPLITS)
        assert sum(shares.values()) <= pool
        assert all(share >= 0 for share in shares.values())

    def test_missing_level_split_is_zero(self):
        shares = split_pool(Decimal("100"), Decimal("30"), {1: Decimal("20")})
        assert shares[2] == Decimal("0.00")
        assert shares[3] == Decimal("0.00")


def test_share_of_rounds_down():
    """9.999 becomes 9.99."""
    assert share_of(Decimal("33.33"), Decimal("30")) == Decimal("9.99")

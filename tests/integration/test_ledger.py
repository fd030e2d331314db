"""
Integration tests for BalanceLedger.

Tests cover:
- Reconciliation stability after normal operations
- Repair of corrupted aggregates
- Pending/available split by order delivery
- Payout reservations and paid balance
- Full resync with orphan pruning
- Order counters agreeing with distribution
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio

from app.models.enums import OrderStatus, PayoutStatus, TransactionType
from app.models.payout_request import PayoutRequest
from app.repositories.affiliate_transaction_repository import (
    AffiliateTransactionRepository,
)
from app.services.affiliate.approval import AffiliateApprovalService
from app.services.affiliate.commission_distributor import CommissionDistributor
from app.services.affiliate.ledger import BalanceLedger
from app.utils.exceptions import AffiliateNotFoundError


KIT_ORDER = [{"product_id": "kit", "quantity": 1, "price": "1000"}]


@pytest_asyncio.fixture
async def distributed(db_session, make_affiliate, make_product, make_order):
    """Upline and direct affiliate with one distributed order."""
    await make_product("kit", pool_percent=Decimal("100"))
    upline = await make_affiliate(full_name="Upline")
    direct = await make_affiliate(
        full_name="Direct",
        coupon_code="DIRECT1",
        parent_id=upline.id,
        position="left",
    )
    order = await make_order("ORD-1", "DIRECT1", KIT_ORDER)
    await CommissionDistributor(db_session).distribute("ORD-1")
    return upline, direct, order


class TestReconcile:
    """Test single-affiliate reconciliation."""

    @pytest.mark.asyncio
    async def test_noop_after_distribution(self, db_session, distributed):
        """Incremental updates and recomputation agree."""
        upline, direct, _ = distributed
        ledger = BalanceLedger(db_session)

        assert not (await ledger.reconcile(direct.id)).changed
        assert not (await ledger.reconcile(upline.id)).changed

    @pytest.mark.asyncio
    async def test_repairs_corrupted_aggregates(self, db_session, distributed):
        _, direct, _ = distributed
        direct.pending_balance = Decimal("999")
        direct.total_orders = 7
        direct.current_tier = "Elite"
        await db_session.commit()
        ledger = BalanceLedger(db_session)

        first = await ledger.reconcile(direct.id)

        assert first.changed
        assert set(first.changes) == {
            "pending_balance",
            "total_orders",
            "current_tier",
        }
        await db_session.refresh(direct)
        assert direct.pending_balance == Decimal("300")
        assert direct.total_orders == 1
        assert direct.current_tier == "Newbie"

        second = await ledger.reconcile(direct.id)
        assert not second.changed

    @pytest.mark.asyncio
    async def test_delivered_order_becomes_available(
        self, db_session, distributed
    ):
        upline, direct, order = distributed
        order.status = OrderStatus.DELIVERED.value
        await db_session.commit()
        ledger = BalanceLedger(db_session)

        await ledger.reconcile(direct.id)
        await ledger.reconcile(upline.id)

        await db_session.refresh(direct)
        await db_session.refresh(upline)
        assert direct.pending_balance == Decimal("0")
        assert direct.available_balance == Decimal("300")
        assert upline.available_balance == Decimal("200")

    @pytest.mark.asyncio
    async def test_cancelled_orders_not_counted(
        self, db_session, distributed, make_order
    ):
        _, direct, _ = distributed
        await make_order("ORD-2", "DIRECT1", KIT_ORDER, status=OrderStatus.CANCEL)

        result = await BalanceLedger(db_session).reconcile(direct.id)

        assert not result.changed
        await db_session.refresh(direct)
        assert direct.total_orders == 1
        assert direct.total_sales_amount == Decimal("1000")

    @pytest.mark.asyncio
    async def test_reserved_and_paid_amounts_excluded(
        self, db_session, distributed
    ):
        _, direct, order = distributed
        order.status = OrderStatus.DELIVERED.value
        direct.paid_balance = Decimal("50")
        db_session.add(
            PayoutRequest(
                affiliate_id=direct.id,
                amount=Decimal("100"),
                upi_id="direct@upi",
                status=PayoutStatus.PENDING.value,
            )
        )
        await db_session.commit()

        await BalanceLedger(db_session).reconcile(direct.id)

        await db_session.refresh(direct)
        assert direct.available_balance == Decimal("150")
        assert direct.paid_balance == Decimal("50")

    @pytest.mark.asyncio
    async def test_available_never_negative(self, db_session, distributed):
        _, direct, _ = distributed
        direct.paid_balance = Decimal("5000")
        await db_session.commit()

        await BalanceLedger(db_session).reconcile(direct.id)

        await db_session.refresh(direct)
        assert direct.available_balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_bonus_kept_outside_total(
        self, db_session, distributed
    ):
        upline, direct, _ = distributed
        await AffiliateTransactionRepository(db_session).create(
            affiliate_id=upline.id,
            from_affiliate_id=direct.id,
            amount=Decimal("20"),
            type=TransactionType.BONUS.value,
        )
        await db_session.commit()

        await BalanceLedger(db_session).reconcile(upline.id)

        await db_session.refresh(upline)
        assert upline.bonus_earnings == Decimal("20")
        assert upline.total_earnings == Decimal("200")
        assert upline.pending_balance == Decimal("220")

    @pytest.mark.asyncio
    async def test_missing_affiliate(self, db_session):
        with pytest.raises(AffiliateNotFoundError):
            await BalanceLedger(db_session).reconcile(404)


class TestReconcileAll:
    """Test full resync."""

    @pytest.mark.asyncio
    async def test_prunes_orphaned_transactions(self, db_session, distributed):
        upline, direct, order = distributed
        await db_session.delete(order)
        await db_session.commit()

        result = await BalanceLedger(db_session).reconcile_all()

        assert result.pruned_transactions == 2
        assert result.reconciled == 2
        assert result.corrected == 2
        assert result.failed == []

        await db_session.refresh(direct)
        await db_session.refresh(upline)
        assert direct.total_earnings == Decimal("0")
        assert direct.pending_balance == Decimal("0")
        assert direct.total_orders == 0
        assert upline.level1_earnings == Decimal("0")

    @pytest.mark.asyncio
    async def test_keeps_bonus_transactions(self, db_session, distributed):
        """Entries without an order are not orphans."""
        upline, direct, _ = distributed
        await AffiliateTransactionRepository(db_session).create(
            affiliate_id=upline.id,
            from_affiliate_id=direct.id,
            amount=Decimal("20"),
            type=TransactionType.BONUS.value,
        )
        await db_session.commit()

        result = await BalanceLedger(db_session).reconcile_all()

        assert result.pruned_transactions == 0

    @pytest.mark.asyncio
    async def test_clean_database_is_stable(self, db_session, distributed):
        ledger = BalanceLedger(db_session)

        result = await ledger.reconcile_all()

        assert result.reconciled == 2
        assert result.corrected == 0


class TestOrderCounters:
    """Distribution and reconciliation count the same orders."""

    @pytest.mark.asyncio
    async def test_order_placed_before_upgrade_distributed_after(
        self, db_session, make_affiliate, make_product, make_order
    ):
        await make_product("kit", pool_percent=Decimal("100"))
        paid_at = datetime.now(UTC) - timedelta(hours=1)
        direct = await make_affiliate(
            coupon_code="PAID1", is_paid=True, paid_at=paid_at
        )
        order = await make_order("ORD-1", "PAID1", KIT_ORDER)
        order.created_at = paid_at - timedelta(days=1)
        await db_session.commit()

        await CommissionDistributor(db_session).distribute("ORD-1")
        await db_session.refresh(direct)
        assert direct.orders_since_paid == 1

        result = await BalanceLedger(db_session).reconcile(direct.id)

        assert not result.changed
        await db_session.refresh(direct)
        assert direct.orders_since_paid == 1
        assert direct.total_orders == 1

    @pytest.mark.asyncio
    async def test_undistributed_orders_not_counted(
        self, db_session, distributed, make_order
    ):
        _, direct, _ = distributed
        await make_order(
            "ORD-2",
            "DIRECT1",
            KIT_ORDER,
            status=OrderStatus.PENDING_VERIFICATION,
        )

        result = await BalanceLedger(db_session).reconcile(direct.id)

        assert not result.changed
        await db_session.refresh(direct)
        assert direct.total_orders == 1
        assert direct.total_sales_amount == Decimal("1000")

    @pytest.mark.asyncio
    async def test_orders_distributed_before_upgrade_excluded(
        self, db_session, distributed
    ):
        _, direct, _ = distributed
        await AffiliateApprovalService(db_session).activate_paid(
            direct.id, payment_verified=True
        )

        result = await BalanceLedger(db_session).reconcile(direct.id)

        assert not result.changed
        await db_session.refresh(direct)
        assert direct.orders_since_paid == 0
        assert direct.total_orders == 1

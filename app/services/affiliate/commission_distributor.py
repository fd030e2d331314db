"""
Commission distributor.

Splits an order's commission pool between the direct affiliate (coupon
owner) and up to three tree ancestors, exactly once per order.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.affiliate import Affiliate
from app.models.enums import OrderStatus, TransactionStatus, TransactionType
from app.repositories.affiliate_config_repository import (
    AffiliateConfigRepository,
)
from app.repositories.affiliate_repository import AffiliateRepository
from app.repositories.affiliate_transaction_repository import (
    AffiliateTransactionRepository,
)
from app.repositories.order_repository import OrderRepository
from app.repositories.product_repository import ProductRepository
from app.services.affiliate.balance_mutator import BalanceMutator
from app.services.affiliate.config import (
    COMMISSION_DEPTH,
    COMMISSION_ELIGIBLE_STATUSES,
    EARNINGS_FIELD_BY_TYPE,
)
from app.services.affiliate.pool_calculator import compute, split_pool
from app.services.affiliate.records import OrderSnapshot, ProductCostConfig
from app.services.affiliate.tiers import classify
from app.utils.exceptions import (
    AffiliateIntegrityError,
    SelfParentError,
    TreeCycleError,
    is_unique_violation,
)


class DistributionStatus(str, Enum):
    """Outcome of a distribution attempt."""

    PROCESSED = "processed"
    ALREADY_PROCESSED = "already_processed"
    ORDER_NOT_FOUND = "order_not_found"
    ORDER_CANCELLED = "order_cancelled"
    NOT_ELIGIBLE = "not_eligible"
    NO_COUPON = "no_coupon"
    NO_AFFILIATE = "no_affiliate"
    AFFILIATE_NOT_APPROVED = "affiliate_not_approved"
    NO_ITEMS = "no_items"
    NO_POOL = "no_pool"


@dataclass
class CommissionShare:
    """Commission credited to one recipient."""

    affiliate_id: int
    level: int
    type: TransactionType
    amount: Decimal


@dataclass
class DistributionResult:
    """Result of commission distribution."""

    processed: bool
    status: DistributionStatus
    order_id: str
    pool: Decimal = Decimal("0")
    recipients: list[CommissionShare] = field(default_factory=list)
    distributed: Decimal = Decimal("0")
    forfeited: Decimal = Decimal("0")
    unresolved_items: tuple[str, ...] = ()
    tier: str | None = None

    @classmethod
    def skipped(
        cls, order_id: str, status: DistributionStatus, **kwargs
    ) -> "DistributionResult":
        """Build a no-op result."""
        return cls(processed=False, status=status, order_id=order_id, **kwargs)


class CommissionDistributor:
    """
    Commission distributor.

    Idempotence: the order row is locked while checking for existing
    ledger entries, and UNIQUE(order_id, affiliate_id) rejects a concurrent
    second distribution; the loser rolls back and reports ALREADY_PROCESSED.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize commission distributor.

        Args:
            session: Async database session
        """
        self.session = session
        self.affiliate_repo = AffiliateRepository(session)
        self.transaction_repo = AffiliateTransactionRepository(session)
        self.order_repo = OrderRepository(session)
        self.product_repo = ProductRepository(session)
        self.config_repo = AffiliateConfigRepository(session)
        self.balances = BalanceMutator(session)

    async def distribute(self, order: OrderSnapshot | str) -> DistributionResult:
        """
        Distribute commissions for an order.

        Args:
            order: Order snapshot or external order ID; the stored order row
                is authoritative

        Returns:
            DistributionResult (no-ops are reported, never raised)

        Raises:
            AffiliateIntegrityError: Tree corruption found on the ancestor walk
            SQLAlchemyError: Database failure (after rollback)
        """
        order_id = order if isinstance(order, str) else order.order_id

        try:
            result = await self._distribute(order_id)
            # Also releases the order row lock on no-op paths
            await self.session.commit()
            return result

        except IntegrityError as e:
            await self.session.rollback()
            if is_unique_violation(e, "uq_affiliate_tx_order_recipient"):
                logger.info(
                    "Concurrent distribution lost the race, order already processed",
                    extra={"order_id": order_id},
                )
                return DistributionResult.skipped(
                    order_id, DistributionStatus.ALREADY_PROCESSED
                )
            logger.error(
                f"Integrity error distributing order {order_id}: {e}",
                exc_info=True,
            )
            raise

        except AffiliateIntegrityError as e:
            await self.session.rollback()
            logger.error(
                "Tree integrity violation during distribution",
                extra={"order_id": order_id, "error": str(e)},
            )
            raise

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Database error distributing order {order_id}: {e}",
                exc_info=True,
            )
            raise

    async def _distribute(self, order_id: str) -> DistributionResult:
        """Distribution body; runs inside the caller's transaction."""
        stored = await self.order_repo.get_by_order_id(order_id, for_update=True)
        if stored is None:
            logger.warning(
                "Order not found for distribution", extra={"order_id": order_id}
            )
            return DistributionResult.skipped(
                order_id, DistributionStatus.ORDER_NOT_FOUND
            )

        order = OrderSnapshot.from_model(stored)

        if order.status == OrderStatus.CANCEL:
            return DistributionResult.skipped(
                order_id, DistributionStatus.ORDER_CANCELLED
            )
        if order.status not in COMMISSION_ELIGIBLE_STATUSES:
            logger.info(
                "Order payment not confirmed, nothing to distribute",
                extra={"order_id": order_id, "status": order.status.value},
            )
            return DistributionResult.skipped(
                order_id, DistributionStatus.NOT_ELIGIBLE
            )

        if await self.transaction_repo.exists_for_order(order_id):
            logger.debug(
                "Order already distributed", extra={"order_id": order_id}
            )
            return DistributionResult.skipped(
                order_id, DistributionStatus.ALREADY_PROCESSED
            )

        if not order.coupon_code:
            return DistributionResult.skipped(order_id, DistributionStatus.NO_COUPON)

        direct = await self.affiliate_repo.get_by_coupon(order.coupon_code)
        if direct is None:
            logger.info(
                "No affiliate owns order coupon",
                extra={"order_id": order_id, "coupon_code": order.coupon_code},
            )
            return DistributionResult.skipped(
                order_id, DistributionStatus.NO_AFFILIATE
            )
        if not direct.is_approved:
            logger.info(
                "Coupon owner is not an approved affiliate",
                extra={
                    "order_id": order_id,
                    "affiliate_id": direct.id,
                    "status": direct.status,
                },
            )
            return DistributionResult.skipped(
                order_id, DistributionStatus.AFFILIATE_NOT_APPROVED
            )

        if not order.items:
            return DistributionResult.skipped(order_id, DistributionStatus.NO_ITEMS)

        products = await self._load_product_configs(order)
        pool_result = compute(order, products)
        if pool_result.pool <= 0:
            return DistributionResult.skipped(
                order_id,
                DistributionStatus.NO_POOL,
                pool=pool_result.pool,
                unresolved_items=pool_result.unresolved,
            )
        pool = pool_result.pool

        tier = classify(direct.qualifying_order_count, direct.is_paid)
        splits = await self.config_repo.get_level_splits()
        shares = split_pool(pool, tier.rate, splits)

        ancestors = await self._get_ancestors(direct)
        recipients = [
            (level, recipient)
            for level, recipient in [(0, direct)] + list(enumerate(ancestors, start=1))
            if shares[level] > 0
        ]
        if not recipients:
            # Order counters only count orders with ledger entries
            return DistributionResult.skipped(
                order_id,
                DistributionStatus.NO_POOL,
                pool=pool,
                unresolved_items=pool_result.unresolved,
            )

        credited: list[CommissionShare] = []
        for level, recipient in recipients:
            credited.append(
                await self._credit(order, direct, recipient, level, shares[level])
            )

        await self._update_direct_stats(direct, order.total_amount)
        await self.session.flush()

        distributed = sum((share.amount for share in credited), Decimal("0"))
        result = DistributionResult(
            processed=True,
            status=DistributionStatus.PROCESSED,
            order_id=order_id,
            pool=pool,
            recipients=credited,
            distributed=distributed,
            forfeited=pool - distributed,
            unresolved_items=pool_result.unresolved,
            tier=tier.name.value,
        )

        logger.info(
            "Order commissions distributed",
            extra={
                "order_id": order_id,
                "direct_affiliate_id": direct.id,
                "tier": tier.name.value,
                "pool": str(pool),
                "distributed": str(distributed),
                "forfeited": str(result.forfeited),
                "recipients": len(credited),
            },
        )
        return result

    async def _load_product_configs(
        self, order: OrderSnapshot
    ) -> dict[str, ProductCostConfig]:
        """Load cost configs; broken configs are treated as missing."""
        products = await self.product_repo.get_many(
            [item.product_id for item in order.items]
        )

        configs: dict[str, ProductCostConfig] = {}
        for product_id, product in products.items():
            try:
                configs[product_id] = ProductCostConfig.from_model(product)
            except ValueError as e:
                logger.warning(
                    "Invalid product cost config excluded from pool",
                    extra={"product_id": product_id, "error": str(e)},
                )
        return configs

    async def _get_ancestors(self, direct: Affiliate) -> list[Affiliate]:
        """
        Walk parent links up to COMMISSION_DEPTH levels.

        Stops at the first missing ancestor.

        Raises:
            SelfParentError: If a node is its own parent
            TreeCycleError: If the chain loops
        """
        ancestors: list[Affiliate] = []
        chain = [direct.id]
        node = direct

        for _ in range(COMMISSION_DEPTH):
            if node.parent_id is None:
                break
            if node.parent_id == node.id:
                raise SelfParentError(node.id)
            if node.parent_id in chain:
                raise TreeCycleError(direct.id, chain + [node.parent_id])

            parent = await self.affiliate_repo.get_by_id(node.parent_id)
            if parent is None:
                logger.warning(
                    "Dangling parent link, remaining levels forfeited",
                    extra={"affiliate_id": node.id, "parent_id": node.parent_id},
                )
                break

            ancestors.append(parent)
            chain.append(parent.id)
            node = parent

        return ancestors

    async def _credit(
        self,
        order: OrderSnapshot,
        direct: Affiliate,
        recipient: Affiliate,
        level: int,
        amount: Decimal,
    ) -> CommissionShare:
        """Write ledger entry and increment recipient aggregates."""
        tx_type = TransactionType.for_level(level)

        await self.transaction_repo.create(
            affiliate_id=recipient.id,
            from_affiliate_id=direct.id,
            order_id=order.order_id,
            amount=amount,
            type=tx_type.value,
            status=TransactionStatus.COMPLETED.value,
            description=(
                f"Direct commission for order {order.order_id}"
                if level == 0
                else f"Level {level} commission for order {order.order_id}"
            ),
        )
        await self.balances.apply(
            recipient.id,
            {
                EARNINGS_FIELD_BY_TYPE[tx_type.value]: amount,
                "total_earnings": amount,
                "pending_balance": amount,
            },
        )

        return CommissionShare(
            affiliate_id=recipient.id, level=level, type=tx_type, amount=amount
        )

    async def _update_direct_stats(
        self, direct: Affiliate, total_amount: Decimal
    ) -> None:
        """Count the order for the coupon owner and refresh their tier."""
        await self.balances.apply(
            direct.id,
            {
                "total_orders": 1,
                "total_sales_amount": total_amount,
                "orders_since_paid": 1 if direct.is_paid else 0,
            },
        )

        await self.session.refresh(direct)
        tier = classify(direct.qualifying_order_count, direct.is_paid)
        if direct.current_tier != tier.name.value:
            logger.info(
                "Affiliate tier changed",
                extra={
                    "affiliate_id": direct.id,
                    "from_tier": direct.current_tier,
                    "to_tier": tier.name.value,
                },
            )
            direct.current_tier = tier.name.value

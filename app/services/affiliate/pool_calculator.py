"""
Pool calculator.

Computes the affiliate commission pool of an order and splits it between
the direct affiliate and the ancestor levels.
"""

from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal

from loguru import logger

from app.config.settings import settings
from app.services.affiliate.config import COMMISSION_DEPTH, HUNDRED, MONEY_QUANTUM
from app.services.affiliate.records import OrderSnapshot, ProductCostConfig


@dataclass(frozen=True)
class PoolResult:
    """Result of pool computation."""

    pool: Decimal
    unresolved: tuple[str, ...] = field(default_factory=tuple)


def compute(
    order: OrderSnapshot,
    products: dict[str, ProductCostConfig],
    default_pool_percent: Decimal | None = None,
) -> PoolResult:
    """
    Compute the commission pool of an order.

    Each line contributes price * quantity * pool_percent / 100. Lines whose
    product has no cost configuration contribute nothing and are reported.

    Args:
        order: Order snapshot
        products: Product cost configs by product ID
        default_pool_percent: Used when a product has no pool percent

    Returns:
        PoolResult with pool and unresolved product IDs
    """
    if default_pool_percent is None:
        default_pool_percent = settings.default_pool_percent

    pool = Decimal("0")
    unresolved: list[str] = []

    for item in order.items:
        product = products.get(item.product_id)
        if product is None:
            unresolved.append(item.product_id)
            continue

        pool_percent = (
            product.pool_percent
            if product.pool_percent is not None
            else default_pool_percent
        )
        pool += item.line_total * pool_percent / HUNDRED

    if unresolved:
        logger.warning(
            "Order items without product cost config excluded from pool",
            extra={"order_id": order.order_id, "product_ids": unresolved},
        )

    return PoolResult(pool=pool, unresolved=tuple(unresolved))


def share_of(pool: Decimal, percent: Decimal) -> Decimal:
    """Percent of pool, rounded down to the money quantum."""
    return (pool * percent / HUNDRED).quantize(MONEY_QUANTUM, rounding=ROUND_DOWN)


def split_pool(
    pool: Decimal,
    direct_rate: Decimal,
    level_splits: dict[int, Decimal],
    depth: int = COMMISSION_DEPTH,
) -> dict[int, Decimal]:
    """
    Split pool into per-level shares (0 = direct affiliate).

    Percentages are granted in level order until 100% of the pool is used;
    a level whose percentage no longer fits is capped to what remains.

    Args:
        pool: Commission pool
        direct_rate: Tier rate of the direct affiliate, percent
        level_splits: Ancestor level -> percent
        depth: Number of ancestor levels

    Returns:
        Dict level -> share; sum never exceeds pool
    """
    remaining = HUNDRED
    shares: dict[int, Decimal] = {}

    percents = [direct_rate] + [
        level_splits.get(level, Decimal("0")) for level in range(1, depth + 1)
    ]
    for level, percent in enumerate(percents):
        granted = min(max(percent, Decimal("0")), remaining)
        remaining -= granted
        shares[level] = share_of(pool, granted)

    return shares

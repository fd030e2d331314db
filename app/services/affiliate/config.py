"""
Affiliate engine configuration.

Contains constants for commission distribution.
"""

from decimal import Decimal

from app.config.affiliate_tiers import AFFILIATE_TIERS, LOWEST_TIER
from app.models.enums import OrderStatus


# Ancestor levels paid above the direct affiliate (direct = level 0)
COMMISSION_DEPTH = 3

# Shares are rounded down to the paisa so they never exceed the pool
MONEY_QUANTUM = Decimal("0.01")

HUNDRED = Decimal("100")

# Order statuses at which payment is confirmed and commission is owed
COMMISSION_ELIGIBLE_STATUSES = frozenset({
    OrderStatus.PAYMENT_CONFIRMED,
    OrderStatus.SHIPPING,
    OrderStatus.DELIVERED,
})

# Balance fields BalanceMutator may touch
BALANCE_FIELDS = frozenset({
    "direct_earnings",
    "level1_earnings",
    "level2_earnings",
    "level3_earnings",
    "total_earnings",
    "bonus_earnings",
    "pending_balance",
    "available_balance",
    "paid_balance",
    "total_sales_amount",
})

# Integer counters BalanceMutator may touch
COUNTER_FIELDS = frozenset({"total_orders", "orders_since_paid"})

# Earnings bucket per transaction type
EARNINGS_FIELD_BY_TYPE = {
    "direct": "direct_earnings",
    "level1": "level1_earnings",
    "level2": "level2_earnings",
    "level3": "level3_earnings",
    "bonus": "bonus_earnings",
}


__all__ = [
    "AFFILIATE_TIERS",
    "BALANCE_FIELDS",
    "COMMISSION_ELIGIBLE_STATUSES",
    "COMMISSION_DEPTH",
    "COUNTER_FIELDS",
    "EARNINGS_FIELD_BY_TYPE",
    "HUNDRED",
    "LOWEST_TIER",
    "MONEY_QUANTUM",
]

"""
Single source of truth for affiliate tier configuration.

Tiers map the qualifying order count of a paid affiliate to a commission
rate (percent of the order pool paid to the direct affiliate).
"""

from decimal import Decimal
from enum import Enum
from typing import NamedTuple


class AffiliateTierName(str, Enum):
    """Tier names."""

    NEWBIE = "Newbie"
    STARTER = "Starter"
    SILVER = "Silver"
    GOLDEN = "Golden"
    PLATINUM = "Platinum"
    PRO = "Pro"
    ELITE = "Elite"


class AffiliateTier(NamedTuple):
    """Tier configuration."""

    name: AffiliateTierName
    min_orders: int  # inclusive
    max_orders: int | None  # inclusive, None = open-ended
    rate: Decimal  # percent of the pool

    def matches(self, order_count: int) -> bool:
        """Check whether order count falls inside the tier range."""
        if order_count < self.min_orders:
            return False
        return self.max_orders is None or order_count <= self.max_orders


# Ordered from lowest to highest
AFFILIATE_TIERS: tuple[AffiliateTier, ...] = (
    AffiliateTier(AffiliateTierName.NEWBIE, 0, 20, Decimal("30")),
    AffiliateTier(AffiliateTierName.STARTER, 21, 50, Decimal("35")),
    AffiliateTier(AffiliateTierName.SILVER, 51, 100, Decimal("40")),
    AffiliateTier(AffiliateTierName.GOLDEN, 101, 150, Decimal("45")),
    AffiliateTier(AffiliateTierName.PLATINUM, 151, 180, Decimal("50")),
    AffiliateTier(AffiliateTierName.PRO, 181, 200, Decimal("55")),
    AffiliateTier(AffiliateTierName.ELITE, 201, None, Decimal("60")),
)


def validate_tiers(tiers: tuple[AffiliateTier, ...]) -> None:
    """
    Validate a tier table.

    Ranges must start at 0, be contiguous and non-overlapping, and only the
    last tier may be open-ended.

    Args:
        tiers: Tier table ordered from lowest to highest

    Raises:
        ValueError: If the table is malformed
    """
    if not tiers:
        raise ValueError("Tier table is empty")

    if tiers[0].min_orders != 0:
        raise ValueError(
            f"First tier must start at 0 orders, starts at {tiers[0].min_orders}"
        )

    for current, following in zip(tiers, tiers[1:]):
        if current.max_orders is None:
            raise ValueError(
                f"Only the last tier may be open-ended, {current.name.value} is not last"
            )
        if current.max_orders < current.min_orders:
            raise ValueError(f"Tier {current.name.value} has an empty range")
        if following.min_orders != current.max_orders + 1:
            raise ValueError(
                f"Tiers {current.name.value} and {following.name.value} "
                f"are not contiguous"
            )

    if tiers[-1].max_orders is not None:
        raise ValueError("Last tier must be open-ended")

    for tier in tiers:
        if not Decimal("0") <= tier.rate <= Decimal("100"):
            raise ValueError(f"Tier {tier.name.value} rate out of range: {tier.rate}")


validate_tiers(AFFILIATE_TIERS)

LOWEST_TIER = AFFILIATE_TIERS[0]


def get_tier_by_name(name: str | AffiliateTierName) -> AffiliateTier | None:
    """Get tier configuration by name."""
    if isinstance(name, str):
        try:
            name = AffiliateTierName(name)
        except ValueError:
            return None
    for tier in AFFILIATE_TIERS:
        if tier.name == name:
            return tier
    return None

"""
Tier classifier.

Maps an affiliate's qualifying order count to a commission tier.
"""

from loguru import logger

from app.config.affiliate_tiers import (
    AFFILIATE_TIERS,
    AffiliateTier,
    validate_tiers,
)


def classify(
    order_count: int,
    is_paid: bool,
    tiers: tuple[AffiliateTier, ...] = AFFILIATE_TIERS,
) -> AffiliateTier:
    """
    Classify affiliate into a tier.

    Unpaid affiliates always stay in the lowest tier regardless of volume.
    Paid affiliates are matched against inclusive ranges.

    Args:
        order_count: Qualifying orders (orders_since_paid for paid affiliates)
        is_paid: Whether the paid tier program is active
        tiers: Tier table, lowest first

    Returns:
        Matching tier, or the lowest tier if nothing matches
    """
    lowest = tiers[0]

    if not is_paid:
        return lowest

    for tier in tiers:
        if tier.matches(order_count):
            return tier

    logger.warning(
        "No tier matched order count, falling back to lowest tier",
        extra={"order_count": order_count, "fallback": lowest.name.value},
    )
    return lowest


class TierClassifier:
    """Tier classifier bound to a validated tier table."""

    def __init__(self, tiers: tuple[AffiliateTier, ...] = AFFILIATE_TIERS) -> None:
        """
        Initialize classifier.

        Args:
            tiers: Tier table, validated on construction

        Raises:
            ValueError: If the table is malformed
        """
        validate_tiers(tiers)
        self.tiers = tiers

    def classify(self, order_count: int, is_paid: bool) -> AffiliateTier:
        """Classify against this classifier's table."""
        return classify(order_count, is_paid, self.tiers)

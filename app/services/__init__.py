"""
Services.

Business logic layer.
"""

# Affiliate network
from app.services.affiliate import (
    AffiliateApprovalService,
    BalanceLedger,
    CommissionDistributor,
    NetworkSurgery,
    OrderLifecycle,
    PayoutService,
    PlacementResolver,
    TreeAuditor,
)


__all__ = [
    "AffiliateApprovalService",
    "BalanceLedger",
    "CommissionDistributor",
    "NetworkSurgery",
    "OrderLifecycle",
    "PayoutService",
    "PlacementResolver",
    "TreeAuditor",
]

"""
Affiliate services package.

Contains modular services for the affiliate network:
- config: Engine constants (COMMISSION_DEPTH, balance fields)
- records: Typed boundary records (orders, line items, decisions)
- placement: Binary tree slot resolution
- tiers: Tier classification
- pool_calculator: Commission pool computation and splitting
- balance_mutator: Atomic balance updates
- commission_distributor: Per-order commission distribution
- ledger: Balance reconciliation
- network_surgery: Affiliate removal and tree rollup
- approval: Approval, rejection, paid activation
- payouts: Payout requests and admin decisions
- order_lifecycle: Order status state machine
- tree_audit: Tree integrity audit
"""

from app.services.affiliate.approval import (
    AffiliateApprovalService,
    ApprovalResult,
    ApprovalStatus,
    generate_coupon_code,
)
from app.services.affiliate.balance_mutator import BalanceMutator
from app.services.affiliate.commission_distributor import (
    CommissionDistributor,
    CommissionShare,
    DistributionResult,
    DistributionStatus,
)
from app.services.affiliate.config import COMMISSION_DEPTH
from app.services.affiliate.ledger import (
    BalanceLedger,
    ReconcileAllResult,
    ReconcileResult,
)
from app.services.affiliate.network_surgery import NetworkSurgery, RemovalResult
from app.services.affiliate.order_lifecycle import (
    ALLOWED_TRANSITIONS,
    LifecycleResult,
    OrderLifecycle,
)
from app.services.affiliate.payouts import (
    PayoutOutcome,
    PayoutResult,
    PayoutService,
)
from app.services.affiliate.placement import Placement, PlacementResolver
from app.services.affiliate.pool_calculator import PoolResult, compute, split_pool
from app.services.affiliate.records import (
    AffiliateApprovalEvent,
    LineItem,
    OrderSnapshot,
    PayoutDecision,
    ProductCostConfig,
)
from app.services.affiliate.tiers import TierClassifier, classify
from app.services.affiliate.tree_audit import TreeAuditor, TreeAuditReport


__all__ = [
    # Configuration
    "COMMISSION_DEPTH",
    # Records
    "AffiliateApprovalEvent",
    "LineItem",
    "OrderSnapshot",
    "PayoutDecision",
    "ProductCostConfig",
    # Tree
    "Placement",
    "PlacementResolver",
    "NetworkSurgery",
    "RemovalResult",
    "TreeAuditor",
    "TreeAuditReport",
    # Commissions
    "TierClassifier",
    "classify",
    "PoolResult",
    "compute",
    "split_pool",
    "BalanceMutator",
    "CommissionDistributor",
    "CommissionShare",
    "DistributionResult",
    "DistributionStatus",
    "BalanceLedger",
    "ReconcileAllResult",
    "ReconcileResult",
    # Lifecycle
    "AffiliateApprovalService",
    "ApprovalResult",
    "ApprovalStatus",
    "generate_coupon_code",
    "PayoutOutcome",
    "PayoutResult",
    "PayoutService",
    "ALLOWED_TRANSITIONS",
    "LifecycleResult",
    "OrderLifecycle",
]

"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from app.models.affiliate import Affiliate
from app.models.affiliate_config import AffiliateConfig
from app.models.affiliate_transaction import AffiliateTransaction
from app.models.base import Base
from app.models.enums import (
    COMMISSION_TYPES,
    AffiliateStatus,
    OrderStatus,
    PayoutStatus,
    TransactionStatus,
    TransactionType,
    TreePosition,
)

# External (storefront) models read by the engine
from app.models.order import Order
from app.models.payout_request import PayoutRequest
from app.models.product import Product


__all__ = [
    "Base",
    # Affiliate network
    "Affiliate",
    "AffiliateConfig",
    "AffiliateTransaction",
    "PayoutRequest",
    # Storefront
    "Order",
    "Product",
    # Enums
    "AffiliateStatus",
    "COMMISSION_TYPES",
    "OrderStatus",
    "PayoutStatus",
    "TransactionStatus",
    "TransactionType",
    "TreePosition",
]

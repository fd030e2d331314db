"""
Enumerations shared by models and services.
"""

from enum import Enum


class AffiliateStatus(str, Enum):
    """Affiliate application status."""

    PENDING = "Pending"
    PENDING_PAYMENT = "PendingPayment"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class TreePosition(str, Enum):
    """Slot of a child under its structural parent."""

    LEFT = "left"
    RIGHT = "right"


class TransactionType(str, Enum):
    """Affiliate ledger entry type."""

    DIRECT = "direct"
    LEVEL1 = "level1"
    LEVEL2 = "level2"
    LEVEL3 = "level3"
    BONUS = "bonus"

    @classmethod
    def for_level(cls, level: int) -> "TransactionType":
        """Map commission level (0 = direct) to transaction type."""
        return {
            0: cls.DIRECT,
            1: cls.LEVEL1,
            2: cls.LEVEL2,
            3: cls.LEVEL3,
        }[level]


COMMISSION_TYPES = (
    TransactionType.DIRECT,
    TransactionType.LEVEL1,
    TransactionType.LEVEL2,
    TransactionType.LEVEL3,
)


class TransactionStatus(str, Enum):
    """Affiliate ledger entry status."""

    PENDING = "Pending"
    COMPLETED = "Completed"


class PayoutStatus(str, Enum):
    """Payout request status."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class OrderStatus(str, Enum):
    """Order lifecycle status (owned by the storefront)."""

    PENDING_VERIFICATION = "Pending Verification"
    PAYMENT_CONFIRMED = "Payment Confirmed"
    SHIPPING = "Shipping"
    DELIVERED = "Delivered"
    CANCEL = "Cancel"

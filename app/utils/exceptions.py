"""
Exception handling utilities.

Defines the affiliate-network integrity errors and helpers for
classifying database constraint violations.
"""

from sqlalchemy.exc import IntegrityError


class AffiliateIntegrityError(Exception):
    """Raised when an operation would break a network invariant.

    Integrity violations abort the triggering transaction and surface to the
    caller as hard failures.
    """
    pass


class SelfParentError(AffiliateIntegrityError):
    """Raised when an affiliate would become its own tree parent."""

    def __init__(self, affiliate_id: int) -> None:
        super().__init__(f"Affiliate {affiliate_id} cannot be its own parent")
        self.affiliate_id = affiliate_id


class TreeCycleError(AffiliateIntegrityError):
    """Raised when the parent chain loops back on itself."""

    def __init__(self, affiliate_id: int, chain: list[int]) -> None:
        super().__init__(
            f"Parent chain of affiliate {affiliate_id} cycles: {chain}"
        )
        self.affiliate_id = affiliate_id
        self.chain = chain


class SlotConflictError(AffiliateIntegrityError):
    """Raised when a tree slot is already occupied."""

    def __init__(self, parent_id: int | None, position: str | None) -> None:
        super().__init__(
            f"Slot {position} under affiliate {parent_id} is already occupied"
        )
        self.parent_id = parent_id
        self.position = position


class NegativeBalanceError(AffiliateIntegrityError):
    """Raised when a balance would drop below zero."""

    def __init__(self, affiliate_id: int, field: str, value: object) -> None:
        super().__init__(
            f"Balance {field} of affiliate {affiliate_id} would be negative: {value}"
        )
        self.affiliate_id = affiliate_id
        self.field = field
        self.value = value


class InvalidOrderTransition(AffiliateIntegrityError):
    """Raised when an order status change is not a legal transition."""

    def __init__(self, order_id: str, from_status: str, to_status: str) -> None:
        super().__init__(
            f"Order {order_id}: illegal transition {from_status!r} -> {to_status!r}"
        )
        self.order_id = order_id
        self.from_status = from_status
        self.to_status = to_status


class AffiliateNotFoundError(LookupError):
    """Raised when an affiliate does not exist."""

    def __init__(self, affiliate_id: int) -> None:
        super().__init__(f"Affiliate {affiliate_id} not found")
        self.affiliate_id = affiliate_id


def is_unique_violation(exc: IntegrityError, constraint: str) -> bool:
    """
    Check if an IntegrityError was caused by a given unique constraint.

    Drivers report constraint names differently (asyncpg gives the name,
    SQLite lists the columns), so both forms are matched.

    Args:
        exc: Error raised by flush/commit
        constraint: Constraint name, e.g. "uq_affiliates_parent_position"

    Returns:
        True if the message references the constraint
    """
    message = str(exc.orig) if exc.orig is not None else str(exc)
    if constraint in message:
        return True

    columns_by_constraint = {
        "uq_affiliates_parent_position": "affiliates.parent_id, affiliates.position",
        "uq_affiliate_tx_order_recipient": (
            "affiliate_transactions.order_id, affiliate_transactions.affiliate_id"
        ),
        "affiliates_coupon_code": "affiliates.coupon_code",
    }
    columns = columns_by_constraint.get(constraint)
    return bool(columns and columns in message)

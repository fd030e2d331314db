"""
Affiliate engine boundary records.

Loose inputs (order JSON, admin forms, storefront events) are validated once
here and passed around as frozen dataclasses.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from app.models.enums import OrderStatus
from app.models.order import Order
from app.models.product import Product


def _to_decimal(value: Any, field_name: str) -> Decimal:
    """Convert JSON number/string to Decimal or raise ValueError."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name} must be a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{field_name} must be a number, got {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"{field_name} must be finite, got {value!r}")
    return result


@dataclass(frozen=True)
class LineItem:
    """Single order line."""

    product_id: str
    quantity: int
    price: Decimal

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LineItem":
        """
        Build line item from an order JSON entry.

        Args:
            data: {"product_id": ..., "quantity": ..., "price": ...}

        Returns:
            Validated LineItem

        Raises:
            ValueError: If a field is missing or invalid
        """
        product_id = data.get("product_id")
        if not isinstance(product_id, str) or not product_id.strip():
            raise ValueError(f"Invalid product_id: {product_id!r}")

        quantity = data.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValueError(f"Invalid quantity: {quantity!r}")
        if quantity < 0:
            raise ValueError(f"Quantity must be non-negative: {quantity}")

        price = _to_decimal(data.get("price"), "price")
        if price < 0:
            raise ValueError(f"Price must be non-negative: {price}")

        return cls(product_id=product_id.strip(), quantity=quantity, price=price)

    @property
    def line_total(self) -> Decimal:
        """Price times quantity."""
        return self.price * self.quantity


@dataclass(frozen=True)
class OrderSnapshot:
    """Immutable view of an order as seen by the commission engine."""

    order_id: str
    coupon_code: str | None
    status: OrderStatus
    total_amount: Decimal
    items: tuple[LineItem, ...]
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, order: Order) -> "OrderSnapshot":
        """Build snapshot from a stored order."""
        return cls.from_mapping({
            "order_id": order.order_id,
            "coupon_code": order.coupon_code,
            "status": order.status,
            "total_amount": order.total_amount,
            "items": order.items or [],
            "created_at": order.created_at,
        })

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "OrderSnapshot":
        """
        Build snapshot from a loose mapping.

        Raises:
            ValueError: If order_id, status, amount or items are invalid
        """
        order_id = data.get("order_id")
        if not isinstance(order_id, str) or not order_id:
            raise ValueError(f"Invalid order_id: {order_id!r}")

        coupon_code = data.get("coupon_code")
        if coupon_code is not None and not isinstance(coupon_code, str):
            raise ValueError(f"Invalid coupon_code: {coupon_code!r}")
        if coupon_code is not None:
            coupon_code = coupon_code.strip() or None

        status = OrderStatus(data.get("status"))

        total_amount = _to_decimal(data.get("total_amount"), "total_amount")
        if total_amount < 0:
            raise ValueError(f"total_amount must be non-negative: {total_amount}")

        raw_items = data.get("items") or []
        if not isinstance(raw_items, (list, tuple)):
            raise ValueError(f"items must be a list, got {type(raw_items).__name__}")

        return cls(
            order_id=order_id,
            coupon_code=coupon_code,
            status=status,
            total_amount=total_amount,
            items=tuple(LineItem.from_mapping(item) for item in raw_items),
            created_at=data.get("created_at"),
        )


@dataclass(frozen=True)
class ProductCostConfig:
    """Cost configuration of a product."""

    product_id: str
    pool_percent: Decimal | None
    product_cost: Decimal = Decimal("0")
    packaging_cost: Decimal = Decimal("0")
    other_charges: Decimal = Decimal("0")

    @classmethod
    def from_model(cls, product: Product) -> "ProductCostConfig":
        """Build config from a stored product."""
        pool_percent = product.affiliate_pool_percent
        if pool_percent is not None:
            pool_percent = _to_decimal(pool_percent, "affiliate_pool_percent")
            if not Decimal("0") <= pool_percent <= Decimal("100"):
                raise ValueError(
                    f"Product {product.id} pool percent out of range: {pool_percent}"
                )
        return cls(
            product_id=product.id,
            pool_percent=pool_percent,
            product_cost=Decimal(str(product.product_cost)),
            packaging_cost=Decimal(str(product.packaging_cost)),
            other_charges=Decimal(str(product.other_charges)),
        )


@dataclass(frozen=True)
class AffiliateApprovalEvent:
    """Admin approval of an affiliate application."""

    affiliate_id: int
    referrer_id: int | None = None
    coupon_code: str | None = None


@dataclass(frozen=True)
class PayoutDecision:
    """Admin decision on a payout request."""

    request_id: int
    approve: bool
    admin_note: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PayoutDecision":
        """
        Build decision from an admin form payload.

        Args:
            data: {"request_id": 1, "status": "Approved"|"Rejected", "admin_note": ...}

        Raises:
            ValueError: If status is not Approved or Rejected
        """
        status = data.get("status")
        if status not in ("Approved", "Rejected"):
            raise ValueError(f"Invalid payout decision: {status!r}")
        return cls(
            request_id=int(data["request_id"]),
            approve=status == "Approved",
            admin_note=data.get("admin_note"),
        )

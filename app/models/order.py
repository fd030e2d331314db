"""
Order model.

Storefront orders. The commission engine only reads them; status changes
are made by the storefront and reported to the engine as transitions.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import OrderStatus
from app.models.types import MoneyType


class Order(Base):
    """Storefront order with JSON line items."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    order_id: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False
    )
    coupon_code: Mapped[str | None] = mapped_column(
        String(32), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(
        String(32),
        default=OrderStatus.PENDING_VERIFICATION.value,
        nullable=False,
        index=True,
    )
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    # [{"product_id": "...", "quantity": 2, "price": "120.00"}, ...]
    items: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Order(order_id={self.order_id}, "
            f"status={self.status}, "
            f"coupon_code={self.coupon_code}, "
            f"total_amount={self.total_amount})>"
        )

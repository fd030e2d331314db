"""
Affiliate model.

Represents a member of the affiliate network: identity, binary-tree
placement, tier progress and aggregate earnings/balances.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import AffiliateStatus
from app.models.types import MoneyType


class Affiliate(Base):
    """Affiliate model - network members earning commissions."""

    __tablename__ = "affiliates"
    __table_args__ = (
        # One child per slot: makes concurrent placements into the
        # same slot fail at the database level.
        UniqueConstraint(
            "parent_id", "position", name="uq_affiliates_parent_position"
        ),
        CheckConstraint(
            "parent_id IS NULL OR parent_id != id",
            name="check_affiliate_not_own_parent",
        ),
        CheckConstraint(
            "position IS NULL OR position IN ('left', 'right')",
            name="check_affiliate_position_valid",
        ),
        CheckConstraint(
            'pending_balance >= 0',
            name='check_affiliate_pending_balance_non_negative'
        ),
        CheckConstraint(
            'available_balance >= 0',
            name='check_affiliate_available_balance_non_negative'
        ),
        CheckConstraint(
            'paid_balance >= 0',
            name='check_affiliate_paid_balance_non_negative'
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Identity and contact
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mobile: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    upi_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Stored upper-cased and trimmed
    coupon_code: Mapped[str | None] = mapped_column(
        String(32), unique=True, nullable=True, index=True
    )

    # Who invited them (informational only)
    referrer_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliates.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Binary tree placement (structural, distinct from referrer)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliates.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    position: Mapped[str | None] = mapped_column(String(5), nullable=True)

    # Status
    status: Mapped[str] = mapped_column(
        String(20),
        default=AffiliateStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="Pending, PendingPayment, Approved, Rejected",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    is_paid: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Order stats
    total_orders: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    orders_since_paid: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Reset at paid-tier activation, drives tier progression",
    )
    total_sales_amount: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # Earnings (total = direct + level1 + level2 + level3)
    direct_earnings: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    level1_earnings: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    level2_earnings: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    level3_earnings: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_earnings: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    bonus_earnings: Mapped[Decimal] = mapped_column(
        MoneyType,
        default=Decimal("0"),
        nullable=False,
        comment="Referral bonuses, kept outside total_earnings",
    )

    # Balances
    pending_balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    available_balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    paid_balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    current_tier: Mapped[str] = mapped_column(
        String(20), default="Newbie", nullable=False
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def is_approved(self) -> bool:
        """Approved and active - eligible to earn commissions."""
        return (
            self.status == AffiliateStatus.APPROVED.value and self.is_active
        )

    @property
    def qualifying_order_count(self) -> int:
        """Order count used for tier classification."""
        return self.orders_since_paid if self.is_paid else self.total_orders

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Affiliate(id={self.id}, "
            f"coupon_code={self.coupon_code}, "
            f"status={self.status}, "
            f"parent_id={self.parent_id}, "
            f"position={self.position})>"
        )

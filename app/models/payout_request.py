"""
Payout request model.

Withdrawal of available balance requested by an affiliate and resolved by
an admin.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import PayoutStatus
from app.models.types import MoneyType


class PayoutRequest(Base):
    """Payout request - Pending until an admin approves or rejects it."""

    __tablename__ = "payout_requests"
    __table_args__ = (
        CheckConstraint(
            "amount > 0", name="check_payout_amount_positive"
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    affiliate_id: Mapped[int] = mapped_column(
        ForeignKey("affiliates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    upi_id: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=PayoutStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="Pending, Approved, Rejected",
    )
    admin_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def is_pending(self) -> bool:
        """Check if request still awaits a decision."""
        return self.status == PayoutStatus.PENDING.value

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PayoutRequest(id={self.id}, "
            f"affiliate_id={self.affiliate_id}, "
            f"amount={self.amount}, "
            f"status={self.status})>"
        )

"""
Affiliate transaction model.

Immutable ledger of commissions and bonuses credited to affiliates.
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
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import TransactionStatus
from app.models.types import MoneyType


class AffiliateTransaction(Base):
    """
    Ledger entry crediting an affiliate.

    One row per (order_id, affiliate_id): a second commission for the same
    order and recipient is rejected by the unique constraint. Bonus rows
    carry no order_id.
    """

    __tablename__ = "affiliate_transactions"
    __table_args__ = (
        UniqueConstraint(
            "order_id", "affiliate_id", name="uq_affiliate_tx_order_recipient"
        ),
        CheckConstraint(
            "amount > 0", name="check_affiliate_tx_amount_positive"
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Recipient
    affiliate_id: Mapped[int] = mapped_column(
        ForeignKey("affiliates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Whose order (or upgrade) triggered it
    from_affiliate_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliates.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    # External order id, NULL for referral bonuses
    order_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )

    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    type: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        index=True,
        comment="direct, level1, level2, level3, bonus",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=TransactionStatus.COMPLETED.value,
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<AffiliateTransaction(id={self.id}, "
            f"affiliate_id={self.affiliate_id}, "
            f"order_id={self.order_id}, "
            f"type={self.type}, "
            f"amount={self.amount})>"
        )

"""
Affiliate commission split configuration.

Single-row table (id=1) editable by admins.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import PercentType


class AffiliateConfig(Base):
    """Per-level split percentages applied to the order pool."""

    __tablename__ = "affiliate_config"

    SINGLETON_ID = 1

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    level1_split: Mapped[Decimal] = mapped_column(
        PercentType, default=Decimal("20"), nullable=False
    )
    level2_split: Mapped[Decimal] = mapped_column(
        PercentType, default=Decimal("18"), nullable=False
    )
    level3_split: Mapped[Decimal] = mapped_column(
        PercentType, default=Decimal("12"), nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def get_level_splits(self) -> dict[int, Decimal]:
        """Level number -> split percent."""
        return {
            1: self.level1_split,
            2: self.level2_split,
            3: self.level3_split,
        }

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<AffiliateConfig(level1={self.level1_split}, "
            f"level2={self.level2_split}, "
            f"level3={self.level3_split})>"
        )

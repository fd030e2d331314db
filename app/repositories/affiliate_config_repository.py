"""
AffiliateConfig repository.

Access to the single-row commission split configuration.
"""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.models.affiliate_config import AffiliateConfig
from app.repositories.base import BaseRepository


class AffiliateConfigRepository(BaseRepository[AffiliateConfig]):
    """AffiliateConfig repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize affiliate config repository."""
        super().__init__(AffiliateConfig, session)

    async def get_level_splits(self) -> dict[int, Decimal]:
        """
        Get per-level split percentages.

        Returns:
            Dict level -> percent; settings defaults if no row exists
        """
        config = await self.get_by_id(AffiliateConfig.SINGLETON_ID)
        if config is None:
            return settings.get_level_splits()
        return {
            level: Decimal(str(split))
            for level, split in config.get_level_splits().items()
        }

    async def set_level_splits(
        self, level1: Decimal, level2: Decimal, level3: Decimal
    ) -> AffiliateConfig:
        """
        Create or update the split row.

        Raises:
            ValueError: If a split is negative or the sum exceeds 100
        """
        splits = (level1, level2, level3)
        if any(split < 0 for split in splits) or sum(splits) > Decimal("100"):
            raise ValueError(f"Invalid level splits: {splits}")

        config = await self.get_by_id(AffiliateConfig.SINGLETON_ID)
        if config is None:
            return await self.create(
                id=AffiliateConfig.SINGLETON_ID,
                level1_split=level1,
                level2_split=level2,
                level3_split=level3,
            )

        config.level1_split = level1
        config.level2_split = level2
        config.level3_split = level3
        await self.session.flush()
        return config

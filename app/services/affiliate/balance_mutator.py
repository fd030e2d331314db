"""
Balance mutator.

Single place where affiliate aggregates change. Every mutation is one
UPDATE statement computed in SQL (col = col + delta), never a
read-modify-write in Python.
"""

from decimal import Decimal

from loguru import logger
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.affiliate import Affiliate
from app.services.affiliate.config import BALANCE_FIELDS, COUNTER_FIELDS
from app.utils.exceptions import AffiliateNotFoundError, NegativeBalanceError


class BalanceMutator:
    """Atomic signed-delta updates over named affiliate fields."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize balance mutator.

        Args:
            session: Async database session
        """
        self.session = session

    @staticmethod
    def _check_fields(fields) -> None:
        unknown = set(fields) - BALANCE_FIELDS - COUNTER_FIELDS
        if unknown:
            raise ValueError(f"Unknown balance fields: {sorted(unknown)}")

    async def apply(
        self, affiliate_id: int, deltas: dict[str, Decimal | int]
    ) -> None:
        """
        Apply signed deltas in one UPDATE.

        Args:
            affiliate_id: Affiliate ID
            deltas: Field name -> signed delta

        Raises:
            ValueError: If a field is not a balance/counter field
            AffiliateNotFoundError: If the affiliate does not exist
        """
        deltas = {name: delta for name, delta in deltas.items() if delta}
        if not deltas:
            return
        self._check_fields(deltas)

        stmt = (
            update(Affiliate)
            .where(Affiliate.id == affiliate_id)
            .values({
                name: getattr(Affiliate, name) + delta
                for name, delta in deltas.items()
            })
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise AffiliateNotFoundError(affiliate_id)

        logger.debug(
            "Affiliate balances updated",
            extra={
                "affiliate_id": affiliate_id,
                "deltas": {name: str(delta) for name, delta in deltas.items()},
            },
        )

    async def withdraw(
        self, affiliate_id: int, field_name: str, amount: Decimal
    ) -> None:
        """
        Guarded decrement: subtract only if the field covers the amount.

        Args:
            affiliate_id: Affiliate ID
            field_name: Balance field to decrement
            amount: Positive amount

        Raises:
            NegativeBalanceError: If the balance is smaller than amount
            AffiliateNotFoundError: If the affiliate does not exist
        """
        self._check_fields([field_name])
        if amount <= 0:
            raise ValueError(f"Withdraw amount must be positive: {amount}")

        column = getattr(Affiliate, field_name)
        stmt = (
            update(Affiliate)
            .where(Affiliate.id == affiliate_id, column >= amount)
            .values({field_name: column - amount})
        )
        result = await self.session.execute(stmt)
        if result.rowcount:
            return

        affiliate = await self.session.get(Affiliate, affiliate_id)
        if affiliate is None:
            raise AffiliateNotFoundError(affiliate_id)
        raise NegativeBalanceError(
            affiliate_id, field_name, getattr(affiliate, field_name) - amount
        )

    async def overwrite(
        self, affiliate_id: int, values: dict[str, Decimal | int | str]
    ) -> None:
        """
        Write recomputed aggregates (reconciliation only).

        Args:
            affiliate_id: Affiliate ID
            values: Field name -> absolute value
        """
        stmt = (
            update(Affiliate)
            .where(Affiliate.id == affiliate_id)
            .values(values)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise AffiliateNotFoundError(affiliate_id)

"""
Balance ledger.

Recomputes an affiliate's aggregates from the ledger (transactions, orders,
payout requests). Reconciliation is idempotent: running it twice changes
nothing the second time.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.affiliate import Affiliate
from app.models.enums import COMMISSION_TYPES, TransactionType
from app.repositories.affiliate_repository import AffiliateRepository
from app.repositories.affiliate_transaction_repository import (
    AffiliateTransactionRepository,
)
from app.repositories.order_repository import OrderRepository
from app.repositories.payout_request_repository import (
    PayoutRequestRepository,
)
from app.services.affiliate.balance_mutator import BalanceMutator
from app.services.affiliate.config import EARNINGS_FIELD_BY_TYPE
from app.services.affiliate.tiers import classify
from app.utils.exceptions import (
    AffiliateIntegrityError,
    AffiliateNotFoundError,
    NegativeBalanceError,
)


@dataclass
class ReconcileResult:
    """Result of reconciling one affiliate."""

    affiliate_id: int
    changes: dict[str, tuple[Any, Any]] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        """Check if any stored aggregate was corrected."""
        return bool(self.changes)


@dataclass
class ReconcileAllResult:
    """Result of a full resync."""

    pruned_transactions: int = 0
    reconciled: int = 0
    corrected: int = 0
    failed: list[int] = field(default_factory=list)


class BalanceLedger:
    """Ledger-driven recomputation of affiliate aggregates."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize balance ledger.

        Args:
            session: Async database session
        """
        self.session = session
        self.affiliate_repo = AffiliateRepository(session)
        self.transaction_repo = AffiliateTransactionRepository(session)
        self.order_repo = OrderRepository(session)
        self.payout_repo = PayoutRequestRepository(session)
        self.balances = BalanceMutator(session)

    async def reconcile(self, affiliate_id: int) -> ReconcileResult:
        """
        Reconcile one affiliate and commit.

        Args:
            affiliate_id: Affiliate ID

        Returns:
            ReconcileResult with corrected fields

        Raises:
            AffiliateNotFoundError: If affiliate does not exist
            NegativeBalanceError: If the ledger yields a negative balance
        """
        try:
            result = await self.reconcile_in_transaction(affiliate_id)
            await self.session.commit()
            return result
        except (AffiliateIntegrityError, AffiliateNotFoundError):
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Database error reconciling affiliate {affiliate_id}: {e}",
                exc_info=True,
            )
            raise

    async def reconcile_in_transaction(
        self, affiliate_id: int
    ) -> ReconcileResult:
        """
        Reconcile one affiliate without committing.

        Used by services that reconcile as part of a larger transaction.
        """
        affiliate = await self.affiliate_repo.get_for_update(affiliate_id)
        if affiliate is None:
            raise AffiliateNotFoundError(affiliate_id)

        expected = await self._compute(affiliate)

        changes = {
            name: (getattr(affiliate, name), value)
            for name, value in expected.items()
            if getattr(affiliate, name) != value
        }
        if changes:
            await self.balances.overwrite(affiliate_id, expected)
            await self.session.refresh(affiliate)
            logger.info(
                "Affiliate aggregates corrected",
                extra={
                    "affiliate_id": affiliate_id,
                    "changes": {
                        name: [str(old), str(new)]
                        for name, (old, new) in changes.items()
                    },
                },
            )

        return ReconcileResult(affiliate_id=affiliate_id, changes=changes)

    async def _compute(self, affiliate: Affiliate) -> dict[str, Any]:
        """Derive every aggregate from the ledger."""
        total_orders, total_sales = await self.order_repo.get_commissioned_stats(
            affiliate.id
        )
        orders_since_paid = 0
        if affiliate.is_paid:
            orders_since_paid, _ = await self.order_repo.get_commissioned_stats(
                affiliate.id, since=affiliate.paid_at
            )

        earnings = await self.transaction_repo.get_earnings_by_type(affiliate.id)
        total_earnings = sum(
            (earnings[tx_type.value] for tx_type in COMMISSION_TYPES),
            Decimal("0"),
        )

        settled, unsettled = await self.transaction_repo.get_settled_split(
            affiliate.id
        )
        locked = await self.payout_repo.get_locked_amount(affiliate.id)
        paid = Decimal(str(affiliate.paid_balance))

        if unsettled < 0:
            raise NegativeBalanceError(affiliate.id, "pending_balance", unsettled)
        for tx_type, amount in earnings.items():
            if amount < 0:
                raise NegativeBalanceError(
                    affiliate.id, EARNINGS_FIELD_BY_TYPE[tx_type], amount
                )

        available = max(Decimal("0"), settled - paid - locked)

        qualifying = orders_since_paid if affiliate.is_paid else total_orders
        tier = classify(qualifying, affiliate.is_paid)

        values: dict[str, Any] = {
            "total_orders": total_orders,
            "total_sales_amount": total_sales,
            "orders_since_paid": orders_since_paid,
            "total_earnings": total_earnings,
            "pending_balance": unsettled,
            "available_balance": available,
            "current_tier": tier.name.value,
        }
        for tx_type in TransactionType:
            values[EARNINGS_FIELD_BY_TYPE[tx_type.value]] = earnings[tx_type.value]
        return values

    async def reconcile_all(self) -> ReconcileAllResult:
        """
        Resync every affiliate.

        Prunes ledger entries whose order no longer exists, then reconciles
        each affiliate in its own transaction. Affiliates failing with an
        integrity violation are reported and skipped.

        Returns:
            ReconcileAllResult summary
        """
        result = ReconcileAllResult()

        try:
            result.pruned_transactions = await self.transaction_repo.delete_orphans()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to prune orphaned transactions: {e}", exc_info=True)
            raise

        if result.pruned_transactions:
            logger.warning(
                "Pruned orphaned affiliate transactions",
                extra={"count": result.pruned_transactions},
            )

        for affiliate_id in await self.affiliate_repo.get_all_ids():
            try:
                reconciled = await self.reconcile(affiliate_id)
            except (AffiliateIntegrityError, AffiliateNotFoundError) as e:
                logger.error(
                    "Affiliate reconciliation failed",
                    extra={"affiliate_id": affiliate_id, "error": str(e)},
                )
                result.failed.append(affiliate_id)
                continue

            result.reconciled += 1
            if reconciled.changed:
                result.corrected += 1

        logger.info(
            "Affiliate resync complete",
            extra={
                "pruned_transactions": result.pruned_transactions,
                "reconciled": result.reconciled,
                "corrected": result.corrected,
                "failed": len(result.failed),
            },
        )
        return result

"""
Payout service.

Payout requests reserve available balance when created; the admin
decision either moves the reserved amount to paid or returns it.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.models.enums import PayoutStatus
from app.repositories.affiliate_repository import AffiliateRepository
from app.repositories.payout_request_repository import (
    PayoutRequestRepository,
)
from app.services.affiliate.balance_mutator import BalanceMutator
from app.services.affiliate.records import PayoutDecision
from app.utils.exceptions import (
    AffiliateIntegrityError,
    AffiliateNotFoundError,
    NegativeBalanceError,
)


class PayoutOutcome(str, Enum):
    """Outcome of a payout operation."""

    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    BELOW_MINIMUM = "below_minimum"
    PENDING_EXISTS = "pending_exists"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    NO_UPI_ID = "no_upi_id"
    NOT_FOUND = "not_found"
    ALREADY_PROCESSED = "already_processed"


@dataclass
class PayoutResult:
    """Result of a payout operation."""

    outcome: PayoutOutcome
    request_id: int | None = None
    affiliate_id: int | None = None
    amount: Decimal = Decimal("0")

    @property
    def success(self) -> bool:
        """Check if the operation changed balances."""
        return self.outcome in (
            PayoutOutcome.REQUESTED,
            PayoutOutcome.APPROVED,
            PayoutOutcome.REJECTED,
        )


class PayoutService:
    """Payout request lifecycle."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize payout service.

        Args:
            session: Async database session
        """
        self.session = session
        self.affiliate_repo = AffiliateRepository(session)
        self.payout_repo = PayoutRequestRepository(session)
        self.balances = BalanceMutator(session)

    async def request_payout(
        self,
        affiliate_id: int,
        amount: Decimal,
        upi_id: str | None = None,
    ) -> PayoutResult:
        """
        Create a payout request and reserve the amount.

        Args:
            affiliate_id: Requesting affiliate
            amount: Requested amount (>= settings.min_payout_amount)
            upi_id: Destination; defaults to the affiliate's stored UPI ID

        Returns:
            PayoutResult (validation failures are no-op outcomes)

        Raises:
            AffiliateNotFoundError: If affiliate does not exist
        """
        amount = Decimal(str(amount))
        if amount < settings.min_payout_amount:
            return PayoutResult(
                outcome=PayoutOutcome.BELOW_MINIMUM,
                affiliate_id=affiliate_id,
                amount=amount,
            )

        try:
            affiliate = await self.affiliate_repo.get_for_update(affiliate_id)
            if affiliate is None:
                raise AffiliateNotFoundError(affiliate_id)

            destination = upi_id or affiliate.upi_id
            if not destination:
                await self.session.rollback()
                return PayoutResult(
                    outcome=PayoutOutcome.NO_UPI_ID,
                    affiliate_id=affiliate_id,
                    amount=amount,
                )

            if await self.payout_repo.has_pending(affiliate_id):
                await self.session.rollback()
                return PayoutResult(
                    outcome=PayoutOutcome.PENDING_EXISTS,
                    affiliate_id=affiliate_id,
                    amount=amount,
                )

            try:
                await self.balances.withdraw(
                    affiliate_id, "available_balance", amount
                )
            except NegativeBalanceError:
                await self.session.rollback()
                logger.info(
                    "Payout request exceeds available balance",
                    extra={"affiliate_id": affiliate_id, "amount": str(amount)},
                )
                return PayoutResult(
                    outcome=PayoutOutcome.INSUFFICIENT_BALANCE,
                    affiliate_id=affiliate_id,
                    amount=amount,
                )

            request = await self.payout_repo.create(
                affiliate_id=affiliate_id,
                amount=amount,
                upi_id=destination,
                status=PayoutStatus.PENDING.value,
            )
            await self.session.commit()

        except AffiliateNotFoundError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Failed to create payout request for affiliate {affiliate_id}: {e}",
                exc_info=True,
            )
            raise

        logger.info(
            "Payout requested",
            extra={
                "request_id": request.id,
                "affiliate_id": affiliate_id,
                "amount": str(amount),
            },
        )
        return PayoutResult(
            outcome=PayoutOutcome.REQUESTED,
            request_id=request.id,
            affiliate_id=affiliate_id,
            amount=amount,
        )

    async def resolve(self, decision: PayoutDecision) -> PayoutResult:
        """
        Apply an admin decision to a Pending payout request.

        Approve: reserved amount is added to paid_balance.
        Reject: reserved amount returns to available_balance.

        Args:
            decision: Admin decision

        Returns:
            PayoutResult (NOT_FOUND / ALREADY_PROCESSED are no-ops)
        """
        try:
            request = await self.payout_repo.get_for_update(decision.request_id)
            if request is None:
                await self.session.rollback()
                return PayoutResult(
                    outcome=PayoutOutcome.NOT_FOUND,
                    request_id=decision.request_id,
                )

            if not request.is_pending:
                logger.info(
                    "Payout request already processed",
                    extra={"request_id": request.id, "status": request.status},
                )
                result = PayoutResult(
                    outcome=PayoutOutcome.ALREADY_PROCESSED,
                    request_id=request.id,
                    affiliate_id=request.affiliate_id,
                    amount=request.amount,
                )
                await self.session.rollback()
                return result

            if decision.approve:
                await self.balances.apply(
                    request.affiliate_id, {"paid_balance": request.amount}
                )
                request.status = PayoutStatus.APPROVED.value
                outcome = PayoutOutcome.APPROVED
            else:
                await self.balances.apply(
                    request.affiliate_id, {"available_balance": request.amount}
                )
                request.status = PayoutStatus.REJECTED.value
                outcome = PayoutOutcome.REJECTED

            request.admin_note = decision.admin_note
            request.processed_at = datetime.now(UTC)
            await self.session.commit()

        except (AffiliateIntegrityError, AffiliateNotFoundError):
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Failed to resolve payout request {decision.request_id}: {e}",
                exc_info=True,
            )
            raise

        logger.info(
            "Payout request resolved",
            extra={
                "request_id": request.id,
                "affiliate_id": request.affiliate_id,
                "amount": str(request.amount),
                "outcome": outcome.value,
            },
        )
        return PayoutResult(
            outcome=outcome,
            request_id=request.id,
            affiliate_id=request.affiliate_id,
            amount=request.amount,
        )

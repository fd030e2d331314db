"""
Affiliate approval service.

Approval, rejection and paid-tier activation. Approval issues the coupon
code and places the affiliate in the binary tree; paid activation also
credits the referral bonus.
"""

import re
import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.models.affiliate import Affiliate
from app.models.enums import AffiliateStatus, TransactionStatus, TransactionType
from app.repositories.affiliate_repository import (
    AffiliateRepository,
    normalize_coupon,
)
from app.repositories.affiliate_transaction_repository import (
    AffiliateTransactionRepository,
)
from app.services.affiliate.balance_mutator import BalanceMutator
from app.services.affiliate.placement import Placement, PlacementResolver
from app.services.affiliate.records import AffiliateApprovalEvent
from app.services.affiliate.tiers import classify
from app.utils.exceptions import (
    AffiliateIntegrityError,
    AffiliateNotFoundError,
    SlotConflictError,
    is_unique_violation,
)


CouponGenerator = Callable[[str | None], str]

MAX_COUPON_ATTEMPTS = 10

APPROVABLE_STATUSES = (
    AffiliateStatus.PENDING.value,
    AffiliateStatus.PENDING_PAYMENT.value,
)


def generate_coupon_code(full_name: str | None = None) -> str:
    """
    Generate a coupon code.

    First word of the name (up to 5 letters) plus 4 random digits,
    or AFF plus 5 random digits when no usable name is given.

    Args:
        full_name: Affiliate full name

    Returns:
        Upper-case coupon code, e.g. "RAHUL4821"
    """
    prefix = ""
    if full_name and full_name.split():
        prefix = re.sub(r"[^A-Z0-9]", "", full_name.split()[0].upper())[:5]
    if prefix:
        return f"{prefix}{1000 + secrets.randbelow(9000)}"
    return f"AFF{10000 + secrets.randbelow(90000)}"


class ApprovalStatus(str, Enum):
    """Outcome of an approval or activation."""

    APPROVED = "approved"
    ACTIVATED = "activated"
    REJECTED = "rejected"
    ALREADY_APPROVED = "already_approved"
    ALREADY_ACTIVE = "already_active"
    ALREADY_REJECTED = "already_rejected"
    PAYMENT_NOT_VERIFIED = "payment_not_verified"
    INVALID_STATUS = "invalid_status"


@dataclass
class ApprovalResult:
    """Result of an approval service call."""

    status: ApprovalStatus
    affiliate_id: int
    coupon_code: str | None = None
    placement: Placement | None = None
    bonus_amount: Decimal = Decimal("0")
    bonus_recipient_id: int | None = None

    @property
    def changed(self) -> bool:
        """Check if the call modified the affiliate."""
        return self.status in (
            ApprovalStatus.APPROVED,
            ApprovalStatus.ACTIVATED,
            ApprovalStatus.REJECTED,
        )


class AffiliateApprovalService:
    """
    Affiliate approval service.

    Placement is written under the (parent_id, position) unique constraint;
    a concurrent approval that took the same slot makes the flush fail and
    the whole approval is retried with a fresh placement.
    """

    def __init__(
        self,
        session: AsyncSession,
        coupon_generator: CouponGenerator | None = None,
    ) -> None:
        """
        Initialize approval service.

        Args:
            session: Async database session
            coupon_generator: Callable producing a coupon code from the
                affiliate's full name (defaults to generate_coupon_code)
        """
        self.session = session
        self.coupon_generator = coupon_generator or generate_coupon_code
        self.affiliate_repo = AffiliateRepository(session)
        self.transaction_repo = AffiliateTransactionRepository(session)
        self.resolver = PlacementResolver(session)
        self.balances = BalanceMutator(session)

    async def approve(self, event: AffiliateApprovalEvent) -> ApprovalResult:
        """
        Approve a pending affiliate.

        Args:
            event: Approval event (affiliate, optional referrer and coupon)

        Returns:
            ApprovalResult

        Raises:
            AffiliateNotFoundError: If affiliate does not exist
            SlotConflictError: If placement kept colliding after retries
        """
        return await self._with_retry(
            event.affiliate_id, lambda: self._approve(event)
        )

    async def activate_paid(
        self, affiliate_id: int, payment_verified: bool
    ) -> ApprovalResult:
        """
        Activate the paid tier program after payment verification.

        Approves and places the affiliate if needed, resets the paid order
        counter and credits the referral bonus to the referrer.

        Args:
            affiliate_id: Affiliate ID
            payment_verified: Result of payment signature verification

        Returns:
            ApprovalResult (PAYMENT_NOT_VERIFIED / ALREADY_ACTIVE are no-ops)
        """
        if not payment_verified:
            logger.warning(
                "Paid activation rejected: payment not verified",
                extra={"affiliate_id": affiliate_id},
            )
            return ApprovalResult(
                status=ApprovalStatus.PAYMENT_NOT_VERIFIED,
                affiliate_id=affiliate_id,
            )

        return await self._with_retry(
            affiliate_id, lambda: self._activate_paid(affiliate_id)
        )

    async def reject(self, affiliate_id: int) -> ApprovalResult:
        """
        Reject an affiliate application.

        Args:
            affiliate_id: Affiliate ID

        Returns:
            ApprovalResult
        """
        try:
            affiliate = await self.affiliate_repo.get_for_update(affiliate_id)
            if affiliate is None:
                raise AffiliateNotFoundError(affiliate_id)

            if affiliate.status == AffiliateStatus.REJECTED.value:
                await self.session.commit()
                return ApprovalResult(
                    status=ApprovalStatus.ALREADY_REJECTED,
                    affiliate_id=affiliate_id,
                )

            affiliate.status = AffiliateStatus.REJECTED.value
            affiliate.is_active = False
            await self.session.commit()

        except AffiliateNotFoundError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Failed to reject affiliate {affiliate_id}: {e}",
                exc_info=True,
            )
            raise

        logger.info("Affiliate rejected", extra={"affiliate_id": affiliate_id})
        return ApprovalResult(
            status=ApprovalStatus.REJECTED, affiliate_id=affiliate_id
        )

    async def _with_retry(
        self,
        affiliate_id: int,
        operation: Callable[[], Awaitable[ApprovalResult]],
    ) -> ApprovalResult:
        """Run operation in a transaction, retrying on slot/coupon races."""
        max_attempts = settings.placement_max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                result = await operation()
                await self.session.commit()
                if result.changed:
                    logger.info(
                        "Affiliate approval applied",
                        extra={
                            "affiliate_id": affiliate_id,
                            "status": result.status.value,
                            "coupon_code": result.coupon_code,
                            "parent_id": result.placement.parent_id
                            if result.placement else None,
                            "position": result.placement.position
                            if result.placement else None,
                            "bonus_amount": str(result.bonus_amount),
                        },
                    )
                return result

            except IntegrityError as e:
                await self.session.rollback()
                slot_taken = is_unique_violation(e, "uq_affiliates_parent_position")
                coupon_taken = is_unique_violation(e, "affiliates_coupon_code")
                if not (slot_taken or coupon_taken):
                    logger.error(
                        f"Integrity error approving affiliate {affiliate_id}: {e}",
                        exc_info=True,
                    )
                    raise

                logger.warning(
                    "Concurrent approval conflict, retrying",
                    extra={
                        "affiliate_id": affiliate_id,
                        "attempt": attempt,
                        "slot_taken": slot_taken,
                        "coupon_taken": coupon_taken,
                    },
                )
                if attempt == max_attempts:
                    raise SlotConflictError(None, None) from e

            except (AffiliateIntegrityError, AffiliateNotFoundError, ValueError):
                await self.session.rollback()
                raise

            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error(
                    f"Database error approving affiliate {affiliate_id}: {e}",
                    exc_info=True,
                )
                raise

        raise SlotConflictError(None, None)

    async def _approve(self, event: AffiliateApprovalEvent) -> ApprovalResult:
        """Approval body; runs inside the retry transaction."""
        affiliate = await self.affiliate_repo.get_for_update(event.affiliate_id)
        if affiliate is None:
            raise AffiliateNotFoundError(event.affiliate_id)

        if affiliate.status == AffiliateStatus.APPROVED.value:
            return ApprovalResult(
                status=ApprovalStatus.ALREADY_APPROVED,
                affiliate_id=affiliate.id,
                coupon_code=affiliate.coupon_code,
            )
        if affiliate.status not in APPROVABLE_STATUSES:
            logger.info(
                "Affiliate cannot be approved from current status",
                extra={"affiliate_id": affiliate.id, "status": affiliate.status},
            )
            return ApprovalResult(
                status=ApprovalStatus.INVALID_STATUS, affiliate_id=affiliate.id
            )

        if event.referrer_id is not None:
            if event.referrer_id == affiliate.id:
                logger.warning(
                    "Ignoring self referral", extra={"affiliate_id": affiliate.id}
                )
            else:
                affiliate.referrer_id = event.referrer_id

        coupon_code = await self._issue_coupon(affiliate, event.coupon_code)
        placement = await self._place(affiliate)

        affiliate.status = AffiliateStatus.APPROVED.value
        affiliate.is_active = True
        affiliate.approved_at = datetime.now(UTC)
        await self.session.flush()

        return ApprovalResult(
            status=ApprovalStatus.APPROVED,
            affiliate_id=affiliate.id,
            coupon_code=coupon_code,
            placement=placement,
        )

    async def _activate_paid(self, affiliate_id: int) -> ApprovalResult:
        """Paid activation body; runs inside the retry transaction."""
        affiliate = await self.affiliate_repo.get_for_update(affiliate_id)
        if affiliate is None:
            raise AffiliateNotFoundError(affiliate_id)

        if affiliate.is_paid and affiliate.is_active:
            return ApprovalResult(
                status=ApprovalStatus.ALREADY_ACTIVE,
                affiliate_id=affiliate.id,
                coupon_code=affiliate.coupon_code,
            )

        coupon_code = await self._issue_coupon(affiliate)
        placement = await self._place(affiliate)

        now = datetime.now(UTC)
        affiliate.status = AffiliateStatus.APPROVED.value
        affiliate.is_active = True
        affiliate.is_paid = True
        affiliate.paid_at = now
        affiliate.orders_since_paid = 0
        affiliate.current_tier = classify(0, True).name.value
        if affiliate.approved_at is None:
            affiliate.approved_at = now
        await self.session.flush()

        result = ApprovalResult(
            status=ApprovalStatus.ACTIVATED,
            affiliate_id=affiliate.id,
            coupon_code=coupon_code,
            placement=placement,
        )
        await self._credit_referral_bonus(affiliate, result)
        return result

    async def _issue_coupon(
        self, affiliate: Affiliate, requested: str | None = None
    ) -> str:
        """Keep the existing coupon, else use requested or generate one."""
        if affiliate.coupon_code:
            return affiliate.coupon_code

        if requested:
            code = normalize_coupon(requested)
            if await self.affiliate_repo.coupon_exists(code):
                raise ValueError(f"Coupon code {code} is already taken")
            affiliate.coupon_code = code
            return code

        for _ in range(MAX_COUPON_ATTEMPTS):
            code = normalize_coupon(self.coupon_generator(affiliate.full_name))
            if not await self.affiliate_repo.coupon_exists(code):
                affiliate.coupon_code = code
                return code

        raise ValueError(
            f"Could not generate a unique coupon code for affiliate {affiliate.id}"
        )

    async def _place(self, affiliate: Affiliate) -> Placement:
        """Place affiliate in the tree unless it already has a position."""
        current = Placement(affiliate.parent_id, affiliate.position)
        if affiliate.parent_id is not None:
            return current
        if await self.affiliate_repo.get_children(affiliate.id):
            # Parentless node with children is an existing root
            return current

        placement = await self.resolver.resolve(
            affiliate.referrer_id, exclude_id=affiliate.id
        )
        affiliate.parent_id = placement.parent_id
        affiliate.position = placement.position
        await self.session.flush()
        return placement

    async def _credit_referral_bonus(
        self, affiliate: Affiliate, result: ApprovalResult
    ) -> None:
        """Credit the flat referral bonus to the referrer."""
        amount = settings.referral_bonus_amount
        referrer_id = affiliate.referrer_id
        if referrer_id is None or amount <= 0:
            return

        if not await self.affiliate_repo.exists(id=referrer_id):
            logger.warning(
                "Referrer not found for referral bonus",
                extra={"affiliate_id": affiliate.id, "referrer_id": referrer_id},
            )
            return

        if settings.referral_bonus_policy == "once" and (
            await self.transaction_repo.has_bonus_from(referrer_id, affiliate.id)
        ):
            logger.info(
                "Referral bonus already credited, skipping",
                extra={"affiliate_id": affiliate.id, "referrer_id": referrer_id},
            )
            return

        await self.transaction_repo.create(
            affiliate_id=referrer_id,
            from_affiliate_id=affiliate.id,
            order_id=None,
            amount=amount,
            type=TransactionType.BONUS.value,
            status=TransactionStatus.COMPLETED.value,
            description=f"Referral bonus for {affiliate.full_name} (Paid Upgrade)",
        )
        await self.balances.apply(
            referrer_id,
            {"bonus_earnings": amount, "pending_balance": amount},
        )

        result.bonus_amount = amount
        result.bonus_recipient_id = referrer_id

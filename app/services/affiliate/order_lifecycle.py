"""
Order lifecycle.

Explicit order status state machine. Transitions dispatch the commission
side effects: distribution on payment confirmation, settlement on
delivery, reconciliation on cancellation.
"""

from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import OrderStatus
from app.repositories.affiliate_repository import AffiliateRepository
from app.repositories.affiliate_transaction_repository import (
    AffiliateTransactionRepository,
)
from app.repositories.order_repository import OrderRepository
from app.services.affiliate.commission_distributor import (
    CommissionDistributor,
    DistributionResult,
)
from app.services.affiliate.ledger import BalanceLedger
from app.services.affiliate.records import OrderSnapshot
from app.utils.exceptions import InvalidOrderTransition


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_VERIFICATION: frozenset({
        OrderStatus.PAYMENT_CONFIRMED,
        OrderStatus.CANCEL,
    }),
    OrderStatus.PAYMENT_CONFIRMED: frozenset({
        OrderStatus.SHIPPING,
        OrderStatus.DELIVERED,
        OrderStatus.CANCEL,
    }),
    OrderStatus.SHIPPING: frozenset({
        OrderStatus.DELIVERED,
        OrderStatus.CANCEL,
    }),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCEL: frozenset(),
}


def check_transition(
    order_id: str, from_status: OrderStatus, to_status: OrderStatus
) -> None:
    """
    Validate a status change.

    Raises:
        InvalidOrderTransition: If to_status is not reachable from from_status
    """
    if to_status not in ALLOWED_TRANSITIONS[from_status]:
        raise InvalidOrderTransition(order_id, from_status.value, to_status.value)


@dataclass
class LifecycleResult:
    """Side effects of a handled transition."""

    order_id: str
    from_status: OrderStatus | None
    to_status: OrderStatus
    distribution: DistributionResult | None = None
    reconciled: list[int] = field(default_factory=list)


class OrderLifecycle:
    """Order status state machine with commission side effects."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize order lifecycle.

        Args:
            session: Async database session
        """
        self.session = session
        self.order_repo = OrderRepository(session)
        self.affiliate_repo = AffiliateRepository(session)
        self.transaction_repo = AffiliateTransactionRepository(session)
        self.distributor = CommissionDistributor(session)
        self.ledger = BalanceLedger(session)

    async def transition(
        self, order_id: str, to_status: OrderStatus | str
    ) -> LifecycleResult:
        """
        Move a stored order to a new status and dispatch side effects.

        Side effects are idempotent and run again when the order is already
        in to_status.

        Args:
            order_id: External order ID
            to_status: Target status

        Returns:
            LifecycleResult

        Raises:
            LookupError: If order does not exist
            InvalidOrderTransition: If the change is not allowed
        """
        to_status = OrderStatus(to_status)

        try:
            order = await self.order_repo.get_by_order_id(order_id, for_update=True)
            if order is None:
                raise LookupError(f"Order {order_id} not found")

            from_status = OrderStatus(order.status)
            # Same status: nothing to change, side effects are replayed
            if from_status != to_status:
                check_transition(order_id, from_status, to_status)
                order.status = to_status.value
            await self.session.commit()

        except (LookupError, InvalidOrderTransition):
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Failed to change status of order {order_id}: {e}",
                exc_info=True,
            )
            raise

        return await self._dispatch(order_id, order.coupon_code, from_status, to_status)

    async def handle(
        self,
        order: OrderSnapshot,
        previous_status: OrderStatus | str | None = None,
    ) -> LifecycleResult:
        """
        Handle a status change already applied by the storefront.

        Args:
            order: Order snapshot carrying the new status
            previous_status: Status before the change; None skips
                transition validation (initial or replayed events)

        Returns:
            LifecycleResult

        Raises:
            InvalidOrderTransition: If the change is not allowed
        """
        from_status = (
            OrderStatus(previous_status) if previous_status is not None else None
        )
        to_status = order.status

        if from_status is not None and from_status != to_status:
            check_transition(order.order_id, from_status, to_status)

        return await self._dispatch(
            order.order_id, order.coupon_code, from_status, to_status
        )

    async def _dispatch(
        self,
        order_id: str,
        coupon_code: str | None,
        from_status: OrderStatus | None,
        to_status: OrderStatus,
    ) -> LifecycleResult:
        """Run the side effects of entering to_status."""
        result = LifecycleResult(
            order_id=order_id, from_status=from_status, to_status=to_status
        )

        if to_status == OrderStatus.PAYMENT_CONFIRMED:
            result.distribution = await self.distributor.distribute(order_id)

        elif to_status == OrderStatus.DELIVERED:
            # Delivered without a prior confirmation event still pays out
            result.distribution = await self.distributor.distribute(order_id)
            recipients = await self.transaction_repo.get_recipient_ids_for_order(
                order_id
            )
            result.reconciled = await self._reconcile(recipients)

        elif to_status == OrderStatus.CANCEL:
            recipients = await self.transaction_repo.get_recipient_ids_for_order(
                order_id
            )
            if recipients:
                # TODO: clawback of commissions on cancelled orders once the
                # refund policy defines who absorbs the loss
                logger.warning(
                    "Cancelled order already had commissions, keeping them",
                    extra={"order_id": order_id, "recipients": recipients},
                )

            affiliate_ids = set(recipients)
            if coupon_code:
                owner = await self.affiliate_repo.get_by_coupon(coupon_code)
                if owner is not None:
                    affiliate_ids.add(owner.id)
            result.reconciled = await self._reconcile(sorted(affiliate_ids))

        logger.info(
            "Order transition handled",
            extra={
                "order_id": order_id,
                "from_status": from_status.value if from_status else None,
                "to_status": to_status.value,
                "distribution": result.distribution.status.value
                if result.distribution else None,
                "reconciled": result.reconciled,
            },
        )
        return result

    async def _reconcile(self, affiliate_ids: list[int]) -> list[int]:
        """Reconcile affiliates one by one."""
        reconciled = []
        for affiliate_id in affiliate_ids:
            await self.ledger.reconcile(affiliate_id)
            reconciled.append(affiliate_id)
        return reconciled

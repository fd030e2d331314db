"""
Network surgery.

Removes an affiliate from the network and rolls its tree children up to
the former parent, all in one transaction.
"""

from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.repositories.affiliate_repository import AffiliateRepository
from app.repositories.affiliate_transaction_repository import (
    AffiliateTransactionRepository,
)
from app.repositories.payout_request_repository import (
    PayoutRequestRepository,
)
from app.services.affiliate.ledger import BalanceLedger
from app.services.affiliate.placement import (
    SLOT_ORDER,
    Placement,
    PlacementResolver,
)
from app.utils.exceptions import (
    AffiliateIntegrityError,
    AffiliateNotFoundError,
    SlotConflictError,
    is_unique_violation,
)


@dataclass
class RemovalResult:
    """Result of affiliate removal."""

    affiliate_id: int
    deleted_transactions: int = 0
    deleted_payout_requests: int = 0
    cleared_referrer_links: int = 0
    relocated: list[tuple[int, Placement]] = field(default_factory=list)
    new_root_id: int | None = None
    reconciled: list[int] = field(default_factory=list)


class NetworkSurgery:
    """Affiliate removal with tree rollup."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize network surgery service.

        Args:
            session: Async database session
        """
        self.session = session
        self.affiliate_repo = AffiliateRepository(session)
        self.transaction_repo = AffiliateTransactionRepository(session)
        self.payout_repo = PayoutRequestRepository(session)
        self.resolver = PlacementResolver(session)
        self.ledger = BalanceLedger(session)

    async def remove(self, affiliate_id: int) -> RemovalResult:
        """
        Remove affiliate and roll its children up to its former parent.

        Children fill the removed node's former slot first, then the
        parent's other free slot, then the first free slot breadth-first
        under the parent. Removing a root promotes its first child.

        Args:
            affiliate_id: Affiliate to remove

        Returns:
            RemovalResult

        Raises:
            AffiliateNotFoundError: If affiliate does not exist
            SlotConflictError: If a concurrent placement took a rollup slot
        """
        try:
            result = await self._remove(affiliate_id)
            await self.session.commit()
        except (AffiliateIntegrityError, AffiliateNotFoundError):
            await self.session.rollback()
            raise
        except IntegrityError as e:
            await self.session.rollback()
            logger.error(
                f"Integrity error removing affiliate {affiliate_id}: {e}",
                exc_info=True,
            )
            if is_unique_violation(e, "uq_affiliates_parent_position"):
                raise SlotConflictError(None, None) from e
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Database error removing affiliate {affiliate_id}: {e}",
                exc_info=True,
            )
            raise

        logger.info(
            "Affiliate removed",
            extra={
                "affiliate_id": affiliate_id,
                "deleted_transactions": result.deleted_transactions,
                "deleted_payout_requests": result.deleted_payout_requests,
                "relocated": [
                    (child_id, p.parent_id, p.position)
                    for child_id, p in result.relocated
                ],
                "new_root_id": result.new_root_id,
            },
        )
        return result

    async def _remove(self, affiliate_id: int) -> RemovalResult:
        """Removal body; runs inside the caller's transaction."""
        node = await self.affiliate_repo.get_for_update(affiliate_id)
        if node is None:
            raise AffiliateNotFoundError(affiliate_id)

        result = RemovalResult(affiliate_id=affiliate_id)
        former_parent_id = node.parent_id
        former_position = node.position

        # Aggregates of these affiliates depend on the rows deleted below
        involved = await self.transaction_repo.get_involved_affiliate_ids(
            affiliate_id
        )

        result.deleted_transactions = (
            await self.transaction_repo.delete_for_affiliate(affiliate_id)
        )
        result.deleted_payout_requests = (
            await self.payout_repo.delete_for_affiliate(affiliate_id)
        )
        result.cleared_referrer_links = (
            await self.affiliate_repo.clear_referrer_links(affiliate_id)
        )

        children = await self.affiliate_repo.get_children(affiliate_id)
        child_ids = [child.id for child in children]

        # Free every slot involved before re-placing anyone
        await self.affiliate_repo.set_placement(affiliate_id, None, None)
        for child_id in child_ids:
            await self.affiliate_repo.set_placement(child_id, None, None)

        if former_parent_id is not None:
            for child_id in child_ids:
                placement = await self._rollup_slot(
                    former_parent_id, former_position, affiliate_id
                )
                await self.affiliate_repo.set_placement(
                    child_id, placement.parent_id, placement.position
                )
                result.relocated.append((child_id, placement))

        elif child_ids:
            new_root_id, *rest = child_ids
            result.new_root_id = new_root_id
            if settings.root_affiliate_id == affiliate_id:
                logger.warning(
                    "Configured root affiliate removed, update ROOT_AFFILIATE_ID",
                    extra={"removed_id": affiliate_id, "new_root_id": new_root_id},
                )
            for child_id in rest:
                placement = await self.resolver.find_slot(
                    new_root_id, exclude_id=affiliate_id
                )
                await self.affiliate_repo.set_placement(
                    child_id, placement.parent_id, placement.position
                )
                result.relocated.append((child_id, placement))

        await self.affiliate_repo.delete(affiliate_id)

        for other_id in sorted(involved):
            if await self.affiliate_repo.exists(id=other_id):
                await self.ledger.reconcile_in_transaction(other_id)
                result.reconciled.append(other_id)

        return result

    async def _rollup_slot(
        self,
        parent_id: int,
        preferred_position: str | None,
        removed_id: int,
    ) -> Placement:
        """
        Pick the slot for a rolled-up child under the former parent.

        Args:
            parent_id: Former parent of the removed node
            preferred_position: Slot the removed node occupied
            removed_id: Removed node (never a candidate parent)

        Returns:
            Placement directly under parent_id if a slot is free,
            else the first free slot breadth-first below it
        """
        rows = await self.affiliate_repo.get_child_slots([parent_id])
        occupied = {position for _, _, position in rows}

        candidates = [preferred_position] if preferred_position else []
        candidates += [p for p in SLOT_ORDER if p not in candidates]
        for position in candidates:
            if position not in occupied:
                return Placement(parent_id=parent_id, position=position)

        return await self.resolver.find_slot(parent_id, exclude_id=removed_id)

"""
Tree audit.

Integrity checks over the binary placement tree and repair of
self-referencing parent links.
"""

from collections import defaultdict
from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import TreePosition
from app.repositories.affiliate_repository import AffiliateRepository


VALID_POSITIONS = {position.value for position in TreePosition}


@dataclass
class TreeAuditReport:
    """Tree integrity findings."""

    total_nodes: int = 0
    roots: list[int] = field(default_factory=list)
    self_parents: list[int] = field(default_factory=list)
    cycles: list[list[int]] = field(default_factory=list)
    duplicate_slots: list[tuple[int, str, list[int]]] = field(default_factory=list)
    dangling_parents: list[tuple[int, int]] = field(default_factory=list)
    invalid_positions: list[tuple[int, str | None]] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        """Check if no problem was found."""
        return not (
            self.self_parents
            or self.cycles
            or self.duplicate_slots
            or self.dangling_parents
            or self.invalid_positions
        )


def find_cycles(parents: dict[int, int | None]) -> list[list[int]]:
    """
    Find parent-link cycles longer than one node.

    Args:
        parents: id -> parent_id

    Returns:
        Each cycle once, as the list of its node IDs starting at the smallest
    """
    cycles: list[list[int]] = []
    done: set[int] = set()

    for start in parents:
        if start in done:
            continue

        path: list[int] = []
        on_path: set[int] = set()
        node: int | None = start
        while node is not None and node not in done and node in parents:
            if node in on_path:
                cycle = path[path.index(node):]
                if len(cycle) > 1:
                    pivot = cycle.index(min(cycle))
                    cycles.append(cycle[pivot:] + cycle[:pivot])
                break
            path.append(node)
            on_path.add(node)
            node = parents[node]

        done.update(path)

    return cycles


class TreeAuditor:
    """Binary tree integrity auditor."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize tree auditor.

        Args:
            session: Async database session
        """
        self.session = session
        self.affiliate_repo = AffiliateRepository(session)

    async def audit(self) -> TreeAuditReport:
        """
        Audit the whole tree.

        Returns:
            TreeAuditReport
        """
        rows = await self.affiliate_repo.get_tree_rows()
        parents = {node_id: parent_id for node_id, parent_id, _ in rows}

        report = TreeAuditReport(total_nodes=len(rows))
        slots: dict[tuple[int, str], list[int]] = defaultdict(list)

        for node_id, parent_id, position in rows:
            if parent_id is None:
                report.roots.append(node_id)
                continue
            if parent_id == node_id:
                report.self_parents.append(node_id)
                continue
            if parent_id not in parents:
                report.dangling_parents.append((node_id, parent_id))
            if position not in VALID_POSITIONS:
                report.invalid_positions.append((node_id, position))
                continue
            slots[(parent_id, position)].append(node_id)

        report.duplicate_slots = [
            (parent_id, position, sorted(node_ids))
            for (parent_id, position), node_ids in sorted(slots.items())
            if len(node_ids) > 1
        ]
        report.cycles = find_cycles(parents)

        log = logger.info if report.healthy else logger.warning
        log(
            "Tree audit complete",
            extra={
                "total_nodes": report.total_nodes,
                "roots": len(report.roots),
                "self_parents": report.self_parents,
                "cycles": report.cycles,
                "duplicate_slots": report.duplicate_slots,
                "dangling_parents": report.dangling_parents,
                "invalid_positions": report.invalid_positions,
            },
        )
        return report

    async def repair_self_references(self) -> int:
        """
        Detach affiliates whose parent link points at themselves.

        Returns:
            Number of repaired affiliates
        """
        try:
            repaired = await self.affiliate_repo.clear_self_parents()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to repair self references: {e}", exc_info=True)
            raise

        if repaired:
            logger.warning(
                "Self-referencing parent links cleared",
                extra={"repaired": repaired},
            )
        return repaired

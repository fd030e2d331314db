#!/usr/bin/env python3
"""Audit the affiliate binary tree and optionally repair self references."""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from app.config.database import async_session_maker, engine
from app.services.affiliate import TreeAuditor

# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def audit(repair: bool) -> int:
    """Print audit findings; returns process exit code."""
    async with async_session_maker() as session:
        auditor = TreeAuditor(session)

        if repair:
            repaired = await auditor.repair_self_references()
            logger.info(f"Repaired self-referencing affiliates: {repaired}")

        report = await auditor.audit()

    logger.info(f"Nodes: {report.total_nodes}, roots: {report.roots}")

    if report.healthy:
        logger.success("Tree is healthy.")
        return 0

    for node_id in report.self_parents:
        logger.error(f"  - affiliate {node_id} is its own parent")
    for cycle in report.cycles:
        logger.error(f"  - parent cycle: {' -> '.join(map(str, cycle))}")
    for parent_id, position, node_ids in report.duplicate_slots:
        logger.error(f"  - slot {position} under {parent_id} held by {node_ids}")
    for node_id, parent_id in report.dangling_parents:
        logger.error(f"  - affiliate {node_id} points at missing parent {parent_id}")
    for node_id, position in report.invalid_positions:
        logger.error(f"  - affiliate {node_id} has invalid position {position!r}")
    return 1


def main():
    parser = argparse.ArgumentParser(
        description="Audit the affiliate placement tree"
    )
    parser.add_argument(
        "--repair",
        action="store_true",
        help="Clear self-referencing parent links before auditing"
    )

    args = parser.parse_args()

    async def run() -> int:
        try:
            return await audit(args.repair)
        finally:
            await engine.dispose()

    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Resync affiliate aggregates from the ledger.

Prunes commission entries whose order was deleted, then recomputes order
counts, earnings buckets and balances of every affiliate.
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from app.config.database import async_session_maker, engine
from app.services.affiliate import BalanceLedger
from app.utils.logging import setup_logging


async def resync(affiliate_id: int | None = None) -> int:
    """
    Run the resync.

    Args:
        affiliate_id: Reconcile only this affiliate (no pruning)

    Returns:
        Process exit code
    """
    async with async_session_maker() as session:
        ledger = BalanceLedger(session)

        if affiliate_id is not None:
            result = await ledger.reconcile(affiliate_id)
            if result.changed:
                for name, (old, new) in result.changes.items():
                    logger.info(f"  {name}: {old} -> {new}")
            else:
                logger.success(f"Affiliate {affiliate_id} already consistent")
            return 0

        summary = await ledger.reconcile_all()

    logger.info(f"Pruned orphaned transactions: {summary.pruned_transactions}")
    logger.info(f"Reconciled affiliates: {summary.reconciled}")
    logger.info(f"Corrected affiliates: {summary.corrected}")
    if summary.failed:
        logger.error(f"Failed affiliates: {summary.failed}")
        return 1

    logger.success("Resync complete")
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Recompute affiliate aggregates from the commission ledger"
    )
    parser.add_argument(
        "--affiliate-id",
        type=int,
        default=None,
        help="Reconcile a single affiliate"
    )

    args = parser.parse_args()

    setup_logging()

    async def run() -> int:
        try:
            return await resync(args.affiliate_id)
        finally:
            await engine.dispose()

    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()

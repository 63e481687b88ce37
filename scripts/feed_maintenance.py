"""Standalone feed maintenance script for a scheduled job.

Drops feed items older than the retention period and warm-path ledger rows
past their dedup window, then exits.
"""

import asyncio
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from feedwatch.config import load_config
from feedwatch.db.database import init_db
from feedwatch.db.feed_store import FeedStore
from feedwatch.db.kv_store import SQLiteKeyValueStore, StoreError
from feedwatch.resilience.ledgers import WarmPathLedger

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("feed_maintenance")


async def run_maintenance() -> dict:
    config = load_config()
    await init_db()
    store = SQLiteKeyValueStore()

    results = {}
    try:
        feed = FeedStore(store, heat_window_days=config.job_window_days)
        results["feed_items_removed"] = await feed.cleanup_older_than(config.feed_retention_days)
    except StoreError as e:
        logger.error("Feed cleanup failed: %s", e, exc_info=True)
        results["feed_items_removed"] = None

    try:
        ledger = WarmPathLedger(store, config.warm_path_window_days)
        results["warm_paths_pruned"] = await ledger.prune()
    except StoreError as e:
        logger.error("Warm path ledger prune failed: %s", e, exc_info=True)
        results["warm_paths_pruned"] = None

    return results


def main():
    logger.info("Starting feed maintenance")
    results = asyncio.run(run_maintenance())
    logger.info("Maintenance complete: %s", results)

    failed = [task for task, removed in results.items() if removed is None]
    if failed:
        logger.error("Failed tasks: %s", failed)
        sys.exit(1)


if __name__ == "__main__":
    main()

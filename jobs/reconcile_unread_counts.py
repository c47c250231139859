"""
Unread counter reconciliation job.

Recounts unread notifications for every user that has notifications or a
counter and overwrites the cached counter. The counters are kept exact by
the ledger; this repairs drift from writes interrupted between the
notification change and the counter update.

Usage:
    Run via CRON:
        30 3 * * * cd /path/to/project && python -m jobs.reconcile_unread_counts
"""

import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Dict, Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from common.database import mask_uri
from haven.config import settings
from haven.database import collections
from haven.services.notifications import NotificationLedger

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class ReconcileUnreadCountsJob:
    """
    Rebuilds every unread counter from the notifications collection.
    """

    def __init__(self, db: AsyncIOMotorDatabase, ledger: NotificationLedger):
        """
        Initialize the reconciliation job.

        Args:
            db: MongoDB database connection
            ledger: Performs the per-user recount
        """
        self._notifications = db[collections.NOTIFICATIONS]
        self._counters = db[collections.NOTIFICATION_COUNTERS]
        self._ledger = ledger

    async def run(self) -> Dict[str, Any]:
        """
        Execute the reconciliation.

        Returns:
            Dict with job results including counts and any errors
        """
        logger.info("Starting unread counter reconciliation")
        start_time = datetime.now(timezone.utc)

        results: Dict[str, Any] = {
            "startTime": start_time.isoformat(),
            "usersProcessed": 0,
            "errors": [],
        }

        user_ids = set(await self._notifications.distinct("recipientId"))
        user_ids.update(await self._counters.distinct("userId"))
        logger.info(f"Reconciling unread counters for {len(user_ids)} users")

        for user_id in user_ids:
            try:
                await self._ledger.reconcile_unread_count(str(user_id))
                results["usersProcessed"] += 1
            except Exception as e:
                logger.error(f"Failed to reconcile counter for user {user_id}: {e}")
                results["errors"].append(f"{user_id}: {e}")

        end_time = datetime.now(timezone.utc)
        results["endTime"] = end_time.isoformat()
        results["durationSeconds"] = (end_time - start_time).total_seconds()

        logger.info(f"Reconciliation finished: {results['usersProcessed']} users")
        return results


async def main():
    """Main entry point for the reconciliation job."""
    logger.info(f"Connecting to {mask_uri(settings.MONGODB_URI)}")
    client = AsyncIOMotorClient(settings.MONGODB_URI, tz_aware=True)
    db = client[settings.MONGODB_DATABASE]

    try:
        job = ReconcileUnreadCountsJob(db=db, ledger=NotificationLedger(db=db))
        results = await job.run()

        print("\n=== Unread Counter Reconciliation Results ===")
        print(f"Duration: {results['durationSeconds']:.2f} seconds")
        print(f"Users Processed: {results['usersProcessed']}")

        if results["errors"]:
            print(f"\nErrors ({len(results['errors'])}):")
            for error in results["errors"]:
                print(f"  - {error}")

        sys.exit(1 if results["errors"] else 0)
    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(main())

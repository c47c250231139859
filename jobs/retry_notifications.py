"""
Support Circle retry job.

Replays fan-out dispatches that were parked after running out of attempts
(friend alerts and recovery credits). Replays are idempotent, so running
the job more often than needed is harmless.

Usage:
    Run via CRON:
        */5 * * * * cd /path/to/project && python -m jobs.retry_notifications

    Or run directly:
        python -m jobs.retry_notifications
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from common.database import mask_uri
from haven import dependencies
from haven.config import Settings, settings
from haven.services.support_circle import FanOutDispatcher, SupportCircleNotifier

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class RetryNotificationsJob:
    """
    Drains due entries of the notificationretries collection.

    A replay that succeeds removes the parked entry; one that fails again
    is pushed back with a longer delay.
    """

    def __init__(
        self,
        dispatcher: FanOutDispatcher,
        notifier: SupportCircleNotifier,
        batch_size: int = 100
    ):
        """
        Initialize the retry job.

        Args:
            dispatcher: Owner of the parked-dispatch queue
            notifier: Replays one parked dispatch
            batch_size: Maximum parked dispatches per run
        """
        self._dispatcher = dispatcher
        self._notifier = notifier
        self._batch_size = batch_size

    @classmethod
    def from_database(cls, db: AsyncIOMotorDatabase, app_settings: Settings) -> "RetryNotificationsJob":
        """Wire the job with the same services the API uses."""
        dependencies.init_checkin_services(db, app_settings)
        dispatcher = FanOutDispatcher(
            db=db,
            concurrency=app_settings.SUPPORT_FANOUT_CONCURRENCY,
            max_attempts=app_settings.SUPPORT_FANOUT_MAX_ATTEMPTS,
            backoff_seconds=app_settings.SUPPORT_FANOUT_BACKOFF_SECONDS,
        )
        return cls(
            dispatcher=dispatcher,
            notifier=dependencies.get_support_circle_notifier(),
            batch_size=app_settings.RETRY_JOB_BATCH_SIZE,
        )

    async def run(self) -> Dict[str, Any]:
        """
        Execute one drain pass.

        Returns:
            Dict with job results including counts and any errors
        """
        logger.info("Starting Support Circle retry job")
        start_time = datetime.now(timezone.utc)

        results: Dict[str, Any] = {
            "startTime": start_time.isoformat(),
            "replayed": 0,
            "rescheduled": 0,
            "errors": [],
        }

        parked_batch = await self._dispatcher.fetch_due(limit=self._batch_size)
        logger.info(f"Found {len(parked_batch)} parked dispatches due")

        for parked in parked_batch:
            try:
                await self._notifier.replay(parked)
            except Exception as e:
                logger.warning(f"Replay of {parked['job']} {parked['_id']} failed again: {e}")
                await self._dispatcher.reschedule(parked, e)
                results["rescheduled"] += 1
                results["errors"].append(f"{parked['_id']}: {e}")
                continue

            await self._dispatcher.remove(parked["_id"])
            results["replayed"] += 1

        end_time = datetime.now(timezone.utc)
        results["endTime"] = end_time.isoformat()
        results["durationSeconds"] = (end_time - start_time).total_seconds()

        logger.info(
            f"Retry job finished: {results['replayed']} replayed, {results['rescheduled']} rescheduled"
        )
        return results


async def main():
    """Main entry point for the retry job."""
    logger.info(f"Connecting to {mask_uri(settings.MONGODB_URI)}")
    client = AsyncIOMotorClient(settings.MONGODB_URI, tz_aware=True)
    db = client[settings.MONGODB_DATABASE]

    try:
        job = RetryNotificationsJob.from_database(db, settings)
        results = await job.run()

        print("\n=== Support Circle Retry Job Results ===")
        print(f"Start Time: {results['startTime']}")
        print(f"End Time: {results['endTime']}")
        print(f"Duration: {results['durationSeconds']:.2f} seconds")
        print(f"Replayed: {results['replayed']}")
        print(f"Rescheduled: {results['rescheduled']}")
    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(main())

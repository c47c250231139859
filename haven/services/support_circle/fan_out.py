"""
Per-recipient fan-out.

Runs one handler per recipient with bounded parallelism. Every recipient
is retried on its own; a recipient that still fails is parked in the
notificationretries collection for the retry job and never affects the
others.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any, Callable, Awaitable, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from haven.database import collections
from haven.services.checkin.day_boundary import utcnow
from haven.services.ids import parse_object_id
from haven.services.retry import retry_async

logger = logging.getLogger(__name__)


@dataclass
class FanOutReport:
    """Outcome of one fan-out."""
    job: str
    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job": self.job,
            "succeeded": list(self.succeeded),
            "failed": list(self.failed),
        }


class FanOutDispatcher:
    """
    Bounded, isolated dispatch with a parked-retry queue.
    """

    # Upper bound for the delay between two retry-job attempts
    MAX_RETRY_DELAY = timedelta(hours=6)

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        concurrency: int = 8,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Initialize FanOutDispatcher.

        Args:
            db: MongoDB database connection
            concurrency: Recipients handled at the same time
            max_attempts: Attempts per recipient before parking
            backoff_seconds: Base delay for exponential back-off
            clock: Returns the current UTC time
        """
        self._retries = db[collections.NOTIFICATION_RETRIES]
        self._concurrency = max(concurrency, 1)
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._clock = clock

    async def dispatch(
        self,
        job: str,
        user_id: str,
        recipients: Sequence[str],
        handler: Callable[[str], Awaitable[Any]],
        entry_id: Optional[Any] = None,
        alert_ids: Optional[Dict[str, Any]] = None
    ) -> FanOutReport:
        """
        Run handler(recipient_id) for every recipient.

        Args:
            job: Job name, stored with parked dispatches for replay
            user_id: User the fan-out is about
            recipients: Recipient user ids
            handler: Coroutine function doing the work for one recipient
            entry_id: Mood entry that triggered the fan-out
            alert_ids: Alert record per recipient, stored with parked dispatches

        Returns:
            FanOutReport listing succeeded and failed recipients
        """
        report = FanOutReport(job=job)
        if not recipients:
            return report

        semaphore = asyncio.Semaphore(self._concurrency)

        async def run_one(recipient_id: str) -> Tuple[str, bool]:
            async with semaphore:
                try:
                    await retry_async(
                        lambda: handler(recipient_id),
                        description=f"{job} {user_id}->{recipient_id}",
                        max_attempts=self._max_attempts,
                        backoff_seconds=self._backoff_seconds,
                    )
                except Exception as e:
                    logger.error(f"{job} for recipient {recipient_id} failed after {self._max_attempts} attempts: {e}")
                    await self._park(
                        job=job,
                        user_id=user_id,
                        recipient_id=recipient_id,
                        entry_id=entry_id,
                        alert_id=(alert_ids or {}).get(recipient_id),
                        error=e,
                    )
                    return recipient_id, False
                return recipient_id, True

        results = await asyncio.gather(*(run_one(r) for r in recipients))

        for recipient_id, ok in results:
            if ok:
                report.succeeded.append(recipient_id)
            else:
                report.failed.append(recipient_id)

        logger.info(
            f"{job} for user {user_id}: {len(report.succeeded)} succeeded, {len(report.failed)} failed"
        )
        return report

    # ─────────────────────────────────────────────────────────────────
    # Parked dispatches
    # ─────────────────────────────────────────────────────────────────

    async def _park(
        self,
        job: str,
        user_id: str,
        recipient_id: str,
        entry_id: Optional[Any],
        alert_id: Optional[Any],
        error: Exception
    ) -> None:
        now = self._clock()
        try:
            await self._retries.insert_one({
                "job": job,
                "userId": parse_object_id(user_id),
                "recipientId": parse_object_id(recipient_id),
                "entryId": entry_id,
                "alertId": alert_id,
                "attempts": self._max_attempts,
                "lastError": str(error),
                "createdAt": now,
                "nextAttemptAt": now,
            })
        except Exception:
            logger.exception(f"Could not park {job} for recipient {recipient_id}")

    async def fetch_due(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Get parked dispatches whose next attempt is due, oldest first."""
        cursor = self._retries.find({"nextAttemptAt": {"$lte": self._clock()}})
        cursor = cursor.sort("nextAttemptAt", 1).limit(limit)
        return await cursor.to_list(length=limit)

    async def remove(self, parked_id: Any) -> None:
        """Drop a parked dispatch that was replayed successfully."""
        await self._retries.delete_one({"_id": parked_id})

    async def reschedule(self, parked: Dict[str, Any], error: Exception) -> None:
        """
        Push a parked dispatch back after another failed replay.

        The delay doubles with every replay and is capped at MAX_RETRY_DELAY.
        """
        replays = parked.get("attempts", self._max_attempts) - self._max_attempts + 1
        delay = timedelta(seconds=self._backoff_seconds * 60 * (2 ** replays))
        delay = min(delay, self.MAX_RETRY_DELAY)

        await self._retries.update_one(
            {"_id": parked["_id"]},
            {
                "$inc": {"attempts": 1},
                "$set": {"lastError": str(error), "nextAttemptAt": self._clock() + delay},
            }
        )

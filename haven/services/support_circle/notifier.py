"""
Support Circle notifier.

Reacts to a saved check-in by comparing it with the user's previous entry:

- A low mood (score <= 2) alerts every accepted friend once per episode.
- A good mood (score >= 4) ends every open episode: friends still in the
  circle are credited once and told the user is feeling better, friends
  who left the circle get their episode closed without credit.
- Anything in between does nothing.
"""

import logging
from typing import Optional, Dict, Any

from motor.motor_asyncio import AsyncIOMotorDatabase

from haven.database import collections
from haven.services.achievements import AchievementEngine
from haven.services.ids import parse_object_id
from haven.services.notifications import NotificationLedger
from haven.services.social import FriendGraphReader
from haven.services.stats import UserStatsService
from haven.services.support_circle.alert_store import (
    LowMoodAlertStore,
    FLAG_NOTIFIED,
    FLAG_CREDITED,
    FLAG_IMPROVEMENT_NOTIFIED,
    STATUS_OPEN,
    STATUS_RECOVERED,
)
from haven.services.support_circle.fan_out import FanOutDispatcher, FanOutReport

logger = logging.getLogger(__name__)


LOW_MOOD_MAX = 2
GOOD_MOOD_MIN = 4

JOB_LOW_MOOD_ALERT = "low_mood_alert"
JOB_RECOVERY_CREDIT = "recovery_credit"

DEFAULT_DISPLAY_NAME = "Your friend"


class SupportCircleNotifier:
    """
    Alerts friends about low moods and credits them for recoveries.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        alert_store: LowMoodAlertStore,
        dispatcher: FanOutDispatcher,
        friend_graph: FriendGraphReader,
        notification_ledger: NotificationLedger,
        stats_service: UserStatsService,
        achievement_engine: AchievementEngine
    ):
        """
        Initialize SupportCircleNotifier.

        Args:
            db: MongoDB database connection
            alert_store: Low-mood episode records
            dispatcher: Per-friend fan-out
            friend_graph: Accepted friends, read on every call
            notification_ledger: For friend-low-mood and mood-improved notifications
            stats_service: For moodsHelped credits
            achievement_engine: For re-evaluating credited friends
        """
        self._users = db[collections.USERS]
        self._entries = db[collections.MOOD_ENTRIES]
        self._alert_store = alert_store
        self._dispatcher = dispatcher
        self._friend_graph = friend_graph
        self._notification_ledger = notification_ledger
        self._stats_service = stats_service
        self._achievement_engine = achievement_engine

    async def process_checkin(
        self,
        user_id: str,
        entry: Dict[str, Any],
        previous: Optional[Dict[str, Any]] = None
    ) -> FanOutReport:
        """
        Run the Support Circle reaction to a saved entry.

        Args:
            user_id: User who checked in
            entry: The saved mood entry
            previous: Entry before this submission (logged only; episodes
                are tracked by the alert records)

        Returns:
            FanOutReport of the job that ran (empty "none" report for a
            neutral mood)
        """
        score = entry["score"]
        if previous is not None:
            logger.debug(f"User {user_id} mood {previous.get('score')} -> {score}")

        if score <= LOW_MOOD_MAX:
            return await self._alert_friends(user_id, entry)
        if score >= GOOD_MOOD_MIN:
            return await self._credit_recoveries(user_id, entry)
        return FanOutReport(job="none")

    # ─────────────────────────────────────────────────────────────────
    # Low mood
    # ─────────────────────────────────────────────────────────────────

    async def _alert_friends(self, user_id: str, entry: Dict[str, Any]) -> FanOutReport:
        friends = await self._friend_graph.get_accepted_friends(user_id)
        if not friends:
            return FanOutReport(job=JOB_LOW_MOOD_ALERT)

        user_name = await self._display_name(user_id)

        async def alert(friend_id: str) -> None:
            await self._alert_friend(user_id, user_name, friend_id, entry)

        return await self._dispatcher.dispatch(
            job=JOB_LOW_MOOD_ALERT,
            user_id=user_id,
            recipients=friends,
            handler=alert,
            entry_id=entry["_id"],
        )

    async def _alert_friend(
        self,
        user_id: str,
        user_name: str,
        friend_id: str,
        entry: Dict[str, Any]
    ) -> None:
        record = await self._alert_store.open_alert(user_id, friend_id, entry["_id"])
        if record is None:
            return

        if not await self._alert_store.claim_flag(record["_id"], FLAG_NOTIFIED):
            return

        try:
            await self._notification_ledger.notify_friend_low_mood(
                friend_id=friend_id,
                user_id=user_id,
                user_name=user_name,
                score=entry["score"],
                entry_id=entry["_id"]
            )
        except Exception:
            await self._alert_store.release_flag(record["_id"], FLAG_NOTIFIED)
            raise

    # ─────────────────────────────────────────────────────────────────
    # Recovery
    # ─────────────────────────────────────────────────────────────────

    async def _credit_recoveries(self, user_id: str, entry: Dict[str, Any]) -> FanOutReport:
        open_alerts = await self._alert_store.find_open_for_user(user_id)
        if not open_alerts:
            return FanOutReport(job=JOB_RECOVERY_CREDIT)

        friends = set(await self._friend_graph.get_accepted_friends(user_id))
        user_name = await self._display_name(user_id)

        alerts_by_friend: Dict[str, Dict[str, Any]] = {}
        for record in open_alerts:
            friend_id = str(record["friendId"])
            if friend_id in friends:
                alerts_by_friend[friend_id] = record
            else:
                await self._alert_store.close(record["_id"])

        async def credit(friend_id: str) -> None:
            await self._credit_recovery(user_id, user_name, alerts_by_friend[friend_id], entry)

        return await self._dispatcher.dispatch(
            job=JOB_RECOVERY_CREDIT,
            user_id=user_id,
            recipients=list(alerts_by_friend),
            handler=credit,
            entry_id=entry["_id"],
            alert_ids={f: r["_id"] for f, r in alerts_by_friend.items()},
        )

    async def _credit_recovery(
        self,
        user_id: str,
        user_name: str,
        record: Dict[str, Any],
        entry: Dict[str, Any]
    ) -> None:
        alert_id = record["_id"]
        friend_id = str(record["friendId"])

        if record.get("status") == STATUS_OPEN:
            await self._alert_store.mark_recovered(alert_id, entry["_id"])

        # Friends who were never told about the low mood get nothing
        if not record.get(FLAG_NOTIFIED):
            return

        if await self._alert_store.claim_flag(alert_id, FLAG_CREDITED):
            try:
                await self._stats_service.increment_moods_helped(friend_id, user_id)
            except Exception:
                await self._alert_store.release_flag(alert_id, FLAG_CREDITED)
                raise

        if await self._alert_store.claim_flag(alert_id, FLAG_IMPROVEMENT_NOTIFIED):
            try:
                await self._notification_ledger.notify_mood_improved(
                    friend_id=friend_id,
                    user_id=user_id,
                    user_name=user_name,
                    entry_id=entry["_id"]
                )
            except Exception:
                await self._alert_store.release_flag(alert_id, FLAG_IMPROVEMENT_NOTIFIED)
                raise

        # Credit flag is set here whether or not this call claimed it
        await self._achievement_engine.evaluate_user(friend_id)

    # ─────────────────────────────────────────────────────────────────
    # Replay
    # ─────────────────────────────────────────────────────────────────

    async def replay(self, parked: Dict[str, Any]) -> None:
        """
        Re-run one parked dispatch.

        Safe to call any number of times: the alert record flags make
        every side effect happen at most once.

        Args:
            parked: Document from notificationretries

        Raises:
            ValueError: Unknown job
            Exception: Whatever the handler raises; the caller reschedules
        """
        job = parked["job"]
        user_id = str(parked["userId"])
        friend_id = str(parked["recipientId"])

        entry = await self._entries.find_one({"_id": parked.get("entryId")})
        if entry is None:
            logger.info(f"Dropping parked {job} for user {user_id}: entry no longer exists")
            return

        user_name = await self._display_name(user_id)

        if job == JOB_LOW_MOOD_ALERT:
            friends = await self._friend_graph.get_accepted_friends(user_id)
            if friend_id not in friends:
                logger.info(f"Dropping parked {job}: {friend_id} left the circle of {user_id}")
                return
            await self._alert_friend(user_id, user_name, friend_id, entry)
            return

        if job == JOB_RECOVERY_CREDIT:
            alert_id = parked.get("alertId")
            record = await self._alert_store.get(alert_id) if alert_id else None
            if record is None or record.get("status") not in (STATUS_OPEN, STATUS_RECOVERED):
                return
            await self._credit_recovery(user_id, user_name, record, entry)
            return

        raise ValueError(f"Unknown fan-out job: {job}")

    async def _display_name(self, user_id: str) -> str:
        user = await self._users.find_one({"_id": parse_object_id(user_id)}, {"firstName": 1})
        if user and user.get("firstName"):
            return user["firstName"]
        return DEFAULT_DISPLAY_NAME

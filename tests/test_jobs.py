"""Tests for the scheduled jobs."""

import pytest
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId

from haven.database import collections
from haven.services.notifications import NotificationLedger
from jobs.reconcile_unread_counts import ReconcileUnreadCountsJob
from jobs.retry_notifications import RetryNotificationsJob


def _parked(job="low_mood_alert"):
    return {
        "_id": ObjectId(),
        "job": job,
        "userId": ObjectId(),
        "recipientId": ObjectId(),
        "entryId": ObjectId(),
        "attempts": 3,
    }


# ─────────────────────────────────────────────────────────────────
# RetryNotificationsJob
# ─────────────────────────────────────────────────────────────────


class TestRetryNotificationsJob:
    @pytest.fixture
    def dispatcher(self):
        dispatcher = MagicMock()
        dispatcher.fetch_due = AsyncMock(return_value=[])
        dispatcher.remove = AsyncMock()
        dispatcher.reschedule = AsyncMock()
        return dispatcher

    @pytest.fixture
    def notifier(self):
        notifier = MagicMock()
        notifier.replay = AsyncMock()
        return notifier

    @pytest.mark.asyncio
    async def test_successful_replay_removes_entry(self, dispatcher, notifier):
        parked = [_parked(), _parked("recovery_credit")]
        dispatcher.fetch_due.return_value = parked

        job = RetryNotificationsJob(dispatcher, notifier, batch_size=10)
        results = await job.run()

        dispatcher.fetch_due.assert_awaited_once_with(limit=10)
        assert notifier.replay.await_count == 2
        assert dispatcher.remove.await_count == 2
        dispatcher.reschedule.assert_not_awaited()
        assert results["replayed"] == 2
        assert results["rescheduled"] == 0
        assert results["errors"] == []

    @pytest.mark.asyncio
    async def test_failed_replay_is_rescheduled(self, dispatcher, notifier):
        failing, passing = _parked(), _parked()
        dispatcher.fetch_due.return_value = [failing, passing]
        error = ConnectionError("mongo down")
        notifier.replay.side_effect = [error, None]

        results = await RetryNotificationsJob(dispatcher, notifier).run()

        dispatcher.reschedule.assert_awaited_once_with(failing, error)
        dispatcher.remove.assert_awaited_once_with(passing["_id"])
        assert results["replayed"] == 1
        assert results["rescheduled"] == 1
        assert str(failing["_id"]) in results["errors"][0]

    @pytest.mark.asyncio
    async def test_nothing_due(self, dispatcher, notifier):
        results = await RetryNotificationsJob(dispatcher, notifier).run()

        notifier.replay.assert_not_awaited()
        assert results["replayed"] == 0
        assert "durationSeconds" in results


# ─────────────────────────────────────────────────────────────────
# ReconcileUnreadCountsJob
# ─────────────────────────────────────────────────────────────────


class TestReconcileUnreadCountsJob:
    @pytest.mark.asyncio
    async def test_repairs_drifted_counters(self, fake_db, clock, add_user):
        ledger = NotificationLedger(fake_db, clock=clock)
        reader = await add_user("Sam")
        stale = await add_user("Kim")

        await ledger.append(reader, "system", "Welcome", "Hello")
        await ledger.append(reader, "system", "Tip", "Check in daily")
        # Counter of a user whose notifications are all gone
        await fake_db[collections.NOTIFICATION_COUNTERS].insert_one(
            {"userId": ObjectId(stale), "unread": 4}
        )
        await fake_db[collections.NOTIFICATION_COUNTERS].update_one(
            {"userId": ObjectId(reader)}, {"$set": {"unread": 9}}
        )

        results = await ReconcileUnreadCountsJob(fake_db, ledger).run()

        assert results["usersProcessed"] == 2
        assert results["errors"] == []
        assert await ledger.unread_count(reader) == 2
        assert await ledger.unread_count(stale) == 0

    @pytest.mark.asyncio
    async def test_errors_are_collected(self, fake_db, clock, add_user):
        ledger = NotificationLedger(fake_db, clock=clock)
        user_id = await add_user()
        await ledger.append(user_id, "system", "Welcome", "Hello")

        failing = MagicMock()
        failing.reconcile_unread_count = AsyncMock(side_effect=RuntimeError("boom"))

        results = await ReconcileUnreadCountsJob(fake_db, failing).run()

        assert results["usersProcessed"] == 0
        assert len(results["errors"]) == 1
        assert "boom" in results["errors"][0]

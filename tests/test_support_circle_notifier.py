"""Unit tests for the Support Circle notifier and fan-out."""

import asyncio
from types import SimpleNamespace

import pytest
from unittest.mock import patch
from bson import ObjectId

from haven.database import collections
from haven.services.achievements import AchievementEngine
from haven.services.checkin import CheckInService
from haven.services.notifications import NotificationLedger
from haven.services.social import FriendGraphReader, ActivityCounter
from haven.services.stats import UserStatsService
from haven.services.support_circle import (
    LowMoodAlertStore,
    FanOutDispatcher,
    SupportCircleNotifier,
)
from haven.services.support_circle.notifier import JOB_LOW_MOOD_ALERT, JOB_RECOVERY_CREDIT


# ─────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────


@pytest.fixture
def services(fake_db, clock):
    ledger = NotificationLedger(fake_db, clock=clock)
    stats = UserStatsService(fake_db, clock=clock)
    graph = FriendGraphReader(fake_db)
    engine = AchievementEngine(
        db=fake_db,
        notification_ledger=ledger,
        stats_service=stats,
        friend_graph=graph,
        activity_counter=ActivityCounter(fake_db),
        max_attempts=1,
        backoff_seconds=0,
        clock=clock,
    )
    dispatcher = FanOutDispatcher(fake_db, concurrency=2, max_attempts=2, backoff_seconds=0, clock=clock)
    notifier = SupportCircleNotifier(
        db=fake_db,
        alert_store=LowMoodAlertStore(fake_db, clock=clock),
        dispatcher=dispatcher,
        friend_graph=graph,
        notification_ledger=ledger,
        stats_service=stats,
        achievement_engine=engine,
    )
    return SimpleNamespace(
        ledger=ledger,
        stats=stats,
        dispatcher=dispatcher,
        notifier=notifier,
        engine=engine,
        checkins=CheckInService(fake_db, clock=clock),
    )


@pytest.fixture
async def circle(add_user, befriend):
    """A user with two accepted friends and one pending request."""
    user_id = await add_user("Alex")
    friends = [await add_user("Sam"), await add_user("Kim")]
    pending = await add_user("Lee")

    await befriend(user_id, friends[0])
    await befriend(friends[1], user_id)
    await befriend(user_id, pending, status="pending")

    return SimpleNamespace(user_id=user_id, friends=friends, pending=pending)


async def submit(services, user_id, score):
    result = await services.checkins.check_in(user_id, {"score": score})
    return await services.notifier.process_checkin(user_id, result["entry"], result["previous"])


def notifications_of(fake_db, recipient_id, notification_type):
    return [
        n for n in fake_db[collections.NOTIFICATIONS].docs
        if n["recipientId"] == ObjectId(recipient_id) and n["type"] == notification_type
    ]


def alerts(fake_db):
    return fake_db[collections.LOW_MOOD_ALERTS].docs


# ─────────────────────────────────────────────────────────────────
# Low mood
# ─────────────────────────────────────────────────────────────────


class TestLowMood:
    @pytest.mark.asyncio
    async def test_alerts_every_accepted_friend(self, services, fake_db, circle):
        report = await submit(services, circle.user_id, 2)

        assert report.job == JOB_LOW_MOOD_ALERT
        assert sorted(report.succeeded) == sorted(circle.friends)
        for friend_id in circle.friends:
            sent = notifications_of(fake_db, friend_id, "friend-low-mood")
            assert len(sent) == 1
            assert "Alex is feeling down" in sent[0]["message"]
        assert notifications_of(fake_db, circle.pending, "friend-low-mood") == []

    @pytest.mark.asyncio
    async def test_no_duplicate_alert_same_day(self, services, fake_db, circle):
        await submit(services, circle.user_id, 2)
        await submit(services, circle.user_id, 1)

        for friend_id in circle.friends:
            assert len(notifications_of(fake_db, friend_id, "friend-low-mood")) == 1
        assert len(alerts(fake_db)) == 2

    @pytest.mark.asyncio
    async def test_no_duplicate_alert_while_episode_open(self, services, fake_db, clock, circle):
        await submit(services, circle.user_id, 2)
        clock.advance(days=1)
        await submit(services, circle.user_id, 1)

        for friend_id in circle.friends:
            assert len(notifications_of(fake_db, friend_id, "friend-low-mood")) == 1

    @pytest.mark.asyncio
    async def test_neutral_mood_does_nothing(self, services, fake_db, circle):
        report = await submit(services, circle.user_id, 3)

        assert report.job == "none"
        assert fake_db[collections.NOTIFICATIONS].docs == []
        assert alerts(fake_db) == []

    @pytest.mark.asyncio
    async def test_user_without_friends(self, services, fake_db, add_user):
        loner = await add_user("Jo")

        report = await submit(services, loner, 1)

        assert report.succeeded == []
        assert fake_db[collections.NOTIFICATIONS].docs == []


# ─────────────────────────────────────────────────────────────────
# Recovery
# ─────────────────────────────────────────────────────────────────


class TestRecovery:
    @pytest.mark.asyncio
    async def test_recovery_credits_alerted_friends(self, services, fake_db, clock, circle):
        await submit(services, circle.user_id, 2)
        clock.advance(days=1)

        report = await submit(services, circle.user_id, 5)

        assert report.job == JOB_RECOVERY_CREDIT
        for friend_id in circle.friends:
            stats = await services.stats.get_stats(friend_id)
            assert stats["moodsHelped"] == 1
            assert stats["helpedUserIds"] == [ObjectId(circle.user_id)]
            assert len(notifications_of(fake_db, friend_id, "mood-improved")) == 1

            earned = [
                a["achievementId"] for a in fake_db[collections.USER_ACHIEVEMENTS].docs
                if a["userId"] == ObjectId(friend_id)
            ]
            assert "mood-helper-1" in earned

        assert {a["status"] for a in alerts(fake_db)} == {"recovered"}

    @pytest.mark.asyncio
    async def test_same_day_recovery_counts(self, services, fake_db, circle):
        await submit(services, circle.user_id, 1)
        await submit(services, circle.user_id, 4)

        stats = await services.stats.get_stats(circle.friends[0])
        assert stats["moodsHelped"] == 1

    @pytest.mark.asyncio
    async def test_credit_once_per_episode(self, services, fake_db, clock, circle):
        await submit(services, circle.user_id, 2)
        clock.advance(days=1)
        await submit(services, circle.user_id, 5)
        clock.advance(days=1)
        await submit(services, circle.user_id, 4)

        stats = await services.stats.get_stats(circle.friends[0])
        assert stats["moodsHelped"] == 1
        assert len(notifications_of(fake_db, circle.friends[0], "mood-improved")) == 1

    @pytest.mark.asyncio
    async def test_new_episode_after_recovery(self, services, fake_db, clock, circle):
        await submit(services, circle.user_id, 2)
        clock.advance(days=1)
        await submit(services, circle.user_id, 5)
        clock.advance(days=1)
        await submit(services, circle.user_id, 1)
        clock.advance(days=1)
        await submit(services, circle.user_id, 4)

        friend_id = circle.friends[0]
        stats = await services.stats.get_stats(friend_id)
        assert stats["moodsHelped"] == 2
        assert stats["helpedUserIds"] == [ObjectId(circle.user_id)]
        assert len(notifications_of(fake_db, friend_id, "friend-low-mood")) == 2

        summary = await services.stats.get_summary(friend_id)
        assert summary["friendsHelped"] == 1

    @pytest.mark.asyncio
    async def test_removed_friend_not_credited(self, services, fake_db, clock, circle):
        await submit(services, circle.user_id, 2)
        removed = circle.friends[0]
        fake_db[collections.FRIENDSHIPS].docs[:] = [
            f for f in fake_db[collections.FRIENDSHIPS].docs
            if ObjectId(removed) not in (f["requester"], f["recipient"])
        ]
        clock.advance(days=1)

        report = await submit(services, circle.user_id, 5)

        assert report.succeeded == [circle.friends[1]]
        assert (await services.stats.get_stats(removed))["moodsHelped"] == 0
        assert notifications_of(fake_db, removed, "mood-improved") == []
        closed = [a for a in alerts(fake_db) if a["friendId"] == ObjectId(removed)]
        assert closed[0]["status"] == "closed"

    @pytest.mark.asyncio
    async def test_friend_added_after_low_mood_not_credited(self, services, fake_db, clock, circle, add_user, befriend):
        await submit(services, circle.user_id, 2)
        newcomer = await add_user("Ari")
        await befriend(circle.user_id, newcomer)
        clock.advance(days=1)

        await submit(services, circle.user_id, 5)

        assert (await services.stats.get_stats(newcomer))["moodsHelped"] == 0
        assert notifications_of(fake_db, newcomer, "mood-improved") == []

    @pytest.mark.asyncio
    async def test_good_mood_without_episode(self, services, fake_db, circle):
        report = await submit(services, circle.user_id, 5)

        assert report.job == JOB_RECOVERY_CREDIT
        assert report.succeeded == []
        assert fake_db[collections.NOTIFICATIONS].docs == []


# ─────────────────────────────────────────────────────────────────
# Failure isolation and replay
# ─────────────────────────────────────────────────────────────────


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_failing_friend_is_parked_and_others_notified(self, services, fake_db, circle):
        bad, good = circle.friends
        real_notify = services.ledger.notify_friend_low_mood

        async def flaky_notify(**kwargs):
            if kwargs["friend_id"] == bad:
                raise ConnectionError("socket closed")
            return await real_notify(**kwargs)

        with patch.object(services.ledger, "notify_friend_low_mood", side_effect=flaky_notify):
            report = await submit(services, circle.user_id, 1)

        assert report.failed == [bad]
        assert report.succeeded == [good]
        assert len(notifications_of(fake_db, good, "friend-low-mood")) == 1
        assert notifications_of(fake_db, bad, "friend-low-mood") == []

        parked = fake_db[collections.NOTIFICATION_RETRIES].docs
        assert len(parked) == 1
        assert parked[0]["job"] == JOB_LOW_MOOD_ALERT
        assert parked[0]["recipientId"] == ObjectId(bad)
        assert "socket closed" in parked[0]["lastError"]

        # Replay delivers exactly once
        await services.notifier.replay(parked[0])
        await services.notifier.replay(parked[0])
        assert len(notifications_of(fake_db, bad, "friend-low-mood")) == 1

    @pytest.mark.asyncio
    async def test_failed_credit_is_replayed_once(self, services, fake_db, clock, circle):
        await submit(services, circle.user_id, 2)
        clock.advance(days=1)

        with patch.object(services.stats, "increment_moods_helped", side_effect=ConnectionError("timeout")):
            report = await submit(services, circle.user_id, 5)

        assert sorted(report.failed) == sorted(circle.friends)
        parked = fake_db[collections.NOTIFICATION_RETRIES].docs
        assert {p["job"] for p in parked} == {JOB_RECOVERY_CREDIT}
        assert all(p["alertId"] is not None for p in parked)

        for p in list(parked):
            await services.notifier.replay(p)
            await services.notifier.replay(p)

        for friend_id in circle.friends:
            assert (await services.stats.get_stats(friend_id))["moodsHelped"] == 1
            assert len(notifications_of(fake_db, friend_id, "mood-improved")) == 1

    @pytest.mark.asyncio
    async def test_failed_evaluation_after_credit_is_retried(self, services, fake_db, clock, circle):
        await submit(services, circle.user_id, 2)
        clock.advance(days=1)

        real_evaluate = services.engine.evaluate_user
        failed_once = set()

        async def flaky_evaluate(friend_id):
            if friend_id not in failed_once:
                failed_once.add(friend_id)
                raise ConnectionError("timeout")
            return await real_evaluate(friend_id)

        with patch.object(services.engine, "evaluate_user", side_effect=flaky_evaluate):
            report = await submit(services, circle.user_id, 5)

        assert sorted(report.succeeded) == sorted(circle.friends)
        assert fake_db[collections.NOTIFICATION_RETRIES].docs == []
        held = {
            (str(r["userId"]), r["achievementId"])
            for r in fake_db[collections.USER_ACHIEVEMENTS].docs
        }
        for friend_id in circle.friends:
            assert (await services.stats.get_stats(friend_id))["moodsHelped"] == 1
            assert (friend_id, "mood-helper-1") in held

    @pytest.mark.asyncio
    async def test_replay_for_removed_friend_is_dropped(self, services, fake_db, circle):
        parked = {
            "job": JOB_LOW_MOOD_ALERT,
            "userId": ObjectId(circle.user_id),
            "recipientId": ObjectId(circle.pending),
            "entryId": (await services.checkins.check_in(circle.user_id, {"score": 1}))["entry"]["_id"],
        }

        await services.notifier.replay(parked)

        assert notifications_of(fake_db, circle.pending, "friend-low-mood") == []

    @pytest.mark.asyncio
    async def test_replay_unknown_job(self, services, circle):
        entry = (await services.checkins.check_in(circle.user_id, {"score": 1}))["entry"]

        with pytest.raises(ValueError):
            await services.notifier.replay({
                "job": "carrier_pigeon",
                "userId": ObjectId(circle.user_id),
                "recipientId": ObjectId(circle.friends[0]),
                "entryId": entry["_id"],
            })


# ─────────────────────────────────────────────────────────────────
# FanOutDispatcher
# ─────────────────────────────────────────────────────────────────


class TestFanOutDispatcher:
    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, fake_db, clock):
        dispatcher = FanOutDispatcher(fake_db, concurrency=3, max_attempts=1, backoff_seconds=0, clock=clock)
        active = 0
        peak = 0

        async def handler(recipient_id):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        recipients = [str(ObjectId()) for _ in range(10)]
        report = await dispatcher.dispatch("test", str(ObjectId()), recipients, handler)

        assert peak <= 3
        assert sorted(report.succeeded) == sorted(recipients)

    @pytest.mark.asyncio
    async def test_retries_before_parking(self, fake_db, clock):
        dispatcher = FanOutDispatcher(fake_db, concurrency=2, max_attempts=3, backoff_seconds=0, clock=clock)
        calls = []

        async def handler(recipient_id):
            calls.append(recipient_id)
            if len(calls) < 3:
                raise ConnectionError("flaky")

        recipient = str(ObjectId())
        report = await dispatcher.dispatch("test", str(ObjectId()), [recipient], handler)

        assert report.succeeded == [recipient]
        assert len(calls) == 3
        assert fake_db[collections.NOTIFICATION_RETRIES].docs == []

    @pytest.mark.asyncio
    async def test_fetch_due_and_reschedule(self, fake_db, clock):
        dispatcher = FanOutDispatcher(fake_db, concurrency=1, max_attempts=1, backoff_seconds=1, clock=clock)

        async def handler(recipient_id):
            raise RuntimeError("down")

        await dispatcher.dispatch("test", str(ObjectId()), [str(ObjectId())], handler)

        due = await dispatcher.fetch_due()
        assert len(due) == 1

        await dispatcher.reschedule(due[0], RuntimeError("still down"))
        assert await dispatcher.fetch_due() == []

        clock.advance(hours=7)
        due = await dispatcher.fetch_due()
        assert due[0]["attempts"] == 2
        assert due[0]["lastError"] == "still down"

        await dispatcher.remove(due[0]["_id"])
        assert fake_db[collections.NOTIFICATION_RETRIES].docs == []

"""Unit tests for CheckInService (one entry per user per day)."""

import asyncio

import pytest
from bson import ObjectId

from common.utils.exceptions import NotFoundException, ValidationException
from haven.database import collections
from haven.services.checkin import CheckInService


# ─────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────


@pytest.fixture
def service(fake_db, clock):
    return CheckInService(fake_db, clock=clock)


@pytest.fixture
async def user_id(add_user):
    return await add_user()


def entries(fake_db):
    return fake_db[collections.MOOD_ENTRIES].docs


# ─────────────────────────────────────────────────────────────────
# check_in
# ─────────────────────────────────────────────────────────────────


class TestCheckIn:
    @pytest.mark.asyncio
    async def test_first_checkin_creates_entry(self, service, fake_db, user_id):
        result = await service.check_in(user_id, {"score": 4, "tags": [" calm "], "notes": " ok "})

        assert result["created"] is True
        assert result["previous"] is None
        entry = result["entry"]
        assert entry["dateKey"] == "2026-03-10"
        assert entry["moodLabel"] == "good"
        assert entry["tags"] == ["calm"]
        assert entry["notes"] == "ok"
        assert len(entries(fake_db)) == 1

    @pytest.mark.asyncio
    async def test_second_checkin_same_day_updates(self, service, fake_db, user_id):
        await service.check_in(user_id, {"score": 2})
        result = await service.check_in(user_id, {"score": 5})

        assert result["created"] is False
        assert result["previous"]["score"] == 2
        assert result["entry"]["score"] == 5
        assert len(entries(fake_db)) == 1
        assert entries(fake_db)[0]["score"] == 5
        assert entries(fake_db)[0]["updates"][0]["score"] == 5

    @pytest.mark.asyncio
    async def test_concurrent_submissions_leave_one_entry(self, service, fake_db, user_id):
        await asyncio.gather(*(service.check_in(user_id, {"score": s}) for s in (1, 3, 5)))

        assert len(entries(fake_db)) == 1

    @pytest.mark.asyncio
    async def test_next_day_creates_new_entry_with_previous(self, service, fake_db, clock, user_id):
        await service.check_in(user_id, {"score": 2})
        clock.advance(days=1)

        result = await service.check_in(user_id, {"score": 4})

        assert result["created"] is True
        assert result["previous"]["score"] == 2
        assert result["previous"]["dateKey"] == "2026-03-10"
        assert len(entries(fake_db)) == 2

    @pytest.mark.asyncio
    async def test_invalid_score_rejected(self, service, fake_db, user_id):
        with pytest.raises(ValidationException):
            await service.check_in(user_id, {"score": 7})

        assert entries(fake_db) == []

    @pytest.mark.asyncio
    async def test_unknown_user_rejected(self, service):
        with pytest.raises(NotFoundException) as exc:
            await service.check_in(str(ObjectId()), {"score": 3})

        assert exc.value.code == "USER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_malformed_user_id_rejected(self, service):
        with pytest.raises(NotFoundException):
            await service.check_in("not-an-id", {"score": 3})


# ─────────────────────────────────────────────────────────────────
# update_todays_mood
# ─────────────────────────────────────────────────────────────────


class TestUpdateTodaysMood:
    @pytest.mark.asyncio
    async def test_update_records_reason(self, service, fake_db, user_id):
        await service.check_in(user_id, {"score": 2})

        result = await service.update_todays_mood(user_id, {"score": 4}, reason="Talked to a friend")

        assert result["created"] is False
        assert result["entry"]["updates"][-1]["reason"] == "Talked to a friend"
        assert entries(fake_db)[0]["updates"][-1]["reason"] == "Talked to a friend"

    @pytest.mark.asyncio
    async def test_update_without_entry_creates_one(self, service, fake_db, user_id):
        result = await service.update_todays_mood(user_id, {"score": 3})

        assert result["created"] is True
        assert len(entries(fake_db)) == 1
        assert entries(fake_db)[0]["activities"] == []
        assert entries(fake_db)[0]["notes"] == ""

    @pytest.mark.asyncio
    async def test_update_keeps_fields_not_sent(self, service, fake_db, user_id):
        await service.check_in(user_id, {
            "score": 2,
            "activities": ["sleep"],
            "tags": ["exam"],
            "notes": "rough night",
        })

        result = await service.update_todays_mood(user_id, {"score": 4}, reason="Talked to a friend")

        stored = entries(fake_db)[0]
        for entry in (result["entry"], stored):
            assert entry["score"] == 4
            assert entry["moodLabel"] == "good"
            assert entry["activities"] == ["sleep"]
            assert entry["tags"] == ["exam"]
            assert entry["notes"] == "rough night"

    @pytest.mark.asyncio
    async def test_update_changes_fields_that_are_sent(self, service, fake_db, user_id):
        await service.check_in(user_id, {"score": 2, "tags": ["exam"], "notes": "rough night"})

        await service.update_todays_mood(user_id, {"score": 3, "notes": ""})

        stored = entries(fake_db)[0]
        assert stored["notes"] == ""
        assert stored["tags"] == ["exam"]


# ─────────────────────────────────────────────────────────────────
# Reads
# ─────────────────────────────────────────────────────────────────


class TestReads:
    @pytest.mark.asyncio
    async def test_history_newest_first(self, service, clock, user_id):
        for score in (1, 2, 3):
            await service.check_in(user_id, {"score": score})
            clock.advance(days=1)

        history = await service.get_history(user_id, limit=2)

        assert [e["score"] for e in history] == [3, 2]
        assert await service.get_total_count(user_id) == 3

    @pytest.mark.asyncio
    async def test_date_keys_and_today(self, service, clock, user_id):
        await service.check_in(user_id, {"score": 3})
        clock.advance(days=1)

        assert await service.get_today_entry(user_id) is None
        assert await service.get_date_keys(user_id) == ["2026-03-10"]

    @pytest.mark.asyncio
    async def test_recent_entries_window(self, service, clock, user_id):
        for _ in range(4):
            await service.check_in(user_id, {"score": 4})
            clock.advance(days=1)
        clock.advance(days=-1)

        recent = await service.get_recent_entries(user_id, days=2)

        assert [e["dateKey"] for e in recent] == ["2026-03-13", "2026-03-12"]

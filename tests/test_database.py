from datetime import datetime, timedelta, timezone

import pytest

from api.database import EventStore, to_db_time
from scrapers.models import Category, RunLog, ScrapedEvent, ScraperStatus


def make_event(start, **overrides):
    fields = {
        "title": "Jazz Night",
        "start_date": start,
        "venue": "Maureen's",
        "city": "Nyack",
        "is_nyack_proper": True,
        "category": Category.MUSIC,
        "source_url": "https://visitnyack.org/event/jazz-night/",
        "source_name": "Visit Nyack",
    }
    fields.update(overrides)
    return ScrapedEvent(**fields)


def test_to_db_time_is_utc():
    local = datetime(2026, 11, 5, 20, 0, tzinfo=timezone(timedelta(hours=-5)))
    assert to_db_time(local) == "2026-11-06T01:00:00+00:00"
    assert to_db_time(None) is None


@pytest.mark.asyncio
async def test_create_and_update(settings, future):
    async with EventStore(settings.database_path) as store:
        event_id = await store.create_event(make_event(future, price="$15"), "hash-1")
        row = await store.get_event(event_id)
        assert row["title"] == "Jazz Night"
        assert row["is_nyack_proper"] is True
        assert row["category"] == "MUSIC"
        assert row["source_hash"] == "hash-1"

        changed = make_event(future, price="$20", venue="Somewhere Else", description="Now with a trio")
        await store.update_event("hash-1", changed)
        row = await store.get_event_by_hash("hash-1")
        assert row["id"] == event_id
        assert row["price"] == "$20"
        assert row["description"] == "Now with a trio"
        assert row["venue"] == "Maureen's"

        assert await store.get_event_by_hash("missing") is None


@pytest.mark.asyncio
async def test_list_and_count_filters(settings, future):
    async with EventStore(settings.database_path) as store:
        await store.create_event(make_event(future), "a")
        await store.create_event(
            make_event(future + timedelta(days=1), title="Kids Art", is_free=True,
                       is_family_friendly=True, category=Category.ART_GALLERIES),
            "b",
        )
        await store.create_event(
            make_event(future + timedelta(days=2), title="Comedy", city="West Nyack",
                       is_nyack_proper=False, category=Category.COMEDY),
            "c",
        )
        hidden_id = await store.create_event(make_event(future + timedelta(days=3), title="Hidden"), "d")
        await store.update_event_fields(hidden_id, {"is_hidden": True})

        all_rows = await store.list_events()
        assert [r["title"] for r in all_rows] == ["Jazz Night", "Kids Art", "Comedy"]
        assert await store.count_events() == 3
        assert await store.count_events(include_hidden=True) == 4
        assert [r["title"] for r in await store.list_events(is_hidden=True)] == ["Hidden"]
        newest = await store.list_events(include_hidden=True, newest_first=True)
        assert [r["title"] for r in newest] == ["Hidden", "Comedy", "Kids Art", "Jazz Night"]

        assert [r["title"] for r in await store.list_events(is_free=True)] == ["Kids Art"]
        assert [r["title"] for r in await store.list_events(is_nyack_proper=False)] == ["Comedy"]
        assert [r["title"] for r in await store.list_events(category="COMEDY")] == ["Comedy"]
        assert [r["title"] for r in await store.list_events(limit=1, offset=1)] == ["Kids Art"]
        window = await store.list_events(start=future, end=future + timedelta(hours=1))
        assert [r["title"] for r in window] == ["Jazz Night"]


@pytest.mark.asyncio
async def test_delete_events_before(settings, now):
    async with EventStore(settings.database_path) as store:
        await store.create_event(make_event(now - timedelta(days=10), title="Old"), "old")
        await store.create_event(make_event(now + timedelta(days=1), title="New"), "new")
        assert await store.delete_events_before(now) == 1
        assert await store.get_event_by_hash("old") is None
        assert await store.get_event_by_hash("new") is not None


@pytest.mark.asyncio
async def test_normalize_text(settings, future):
    async with EventStore(settings.database_path) as store:
        await store.create_event(make_event(future, title="Rock &amp;amp; Roll"), "x")
        await store.create_event(make_event(future, title="Plain"), "y")
        assert await store.normalize_text() == 1
        assert (await store.get_event_by_hash("x"))["title"] == "Rock & Roll"
        assert await store.normalize_text() == 0


@pytest.mark.asyncio
async def test_run_logs_newest_first(settings):
    async with EventStore(settings.database_path) as store:
        base = datetime(2026, 10, 1, tzinfo=timezone.utc)
        await store.append_log(RunLog(source_name="A", status=ScraperStatus.SUCCESS, run_at=base))
        await store.append_log(
            RunLog(source_name="B", status=ScraperStatus.ERROR, error_message="HTTP 500",
                   run_at=base + timedelta(hours=1))
        )
        logs = await store.list_logs()
        assert [log["source_name"] for log in logs] == ["B", "A"]
        assert [log["source_name"] for log in await store.list_logs(status="error")] == ["B"]
        assert [log["source_name"] for log in await store.list_logs(source_name="A")] == ["A"]
        assert len(await store.list_logs(limit=1)) == 1


@pytest.mark.asyncio
async def test_store_requires_context(settings):
    store = EventStore(settings.database_path)
    with pytest.raises(RuntimeError):
        await store.list_events()


@pytest.mark.asyncio
async def test_update_fields_and_delete_event(settings, now, future):
    async with EventStore(settings.database_path) as store:
        event_id = await store.create_event(make_event(future), "a")
        moved = future + timedelta(days=1)
        row = await store.update_event_fields(
            event_id, {"start_date": moved, "category": Category.COMEDY, "is_free": True}
        )
        assert row["start_date"] == to_db_time(moved)
        assert row["category"] == "COMEDY"
        assert row["is_free"] is True
        assert row["title"] == "Jazz Night"

        with pytest.raises(ValueError, match="source_hash"):
            await store.update_event_fields(event_id, {"source_hash": "forged"})
        assert await store.update_event_fields(999, {"title": "Ghost"}) is None

        await store.create_event(make_event(now - timedelta(days=1), title="Gone"), "b")
        assert [r["title"] for r in await store.list_events(include_hidden=True, before=now)] == ["Gone"]

        assert await store.delete_event(event_id) is True
        assert await store.get_event(event_id) is None
        assert await store.delete_event(event_id) is False


@pytest.mark.asyncio
async def test_activities(settings):
    fields = {"name": "Kayaking", "venue": "Memorial Park", "is_free": False}
    async with EventStore(settings.database_path) as store:
        kayak_id = await store.create_activity(fields)
        await store.create_activity({"name": "Art Walk", "venue": "Main Street", "is_active": False})

        assert [a["name"] for a in await store.list_activities()] == ["Kayaking"]
        everything = await store.list_activities(is_active=None)
        assert [a["name"] for a in everything] == ["Art Walk", "Kayaking"]

        row = await store.update_activity_fields(kayak_id, {"hours": "Sat 9-5", "is_active": False})
        assert row["hours"] == "Sat 9-5"
        assert row["is_active"] is False
        assert row["city"] == "Nyack"
        assert await store.list_activities() == []
        recent = await store.list_activities(is_active=False, recent_first=True, limit=1)
        assert len(recent) == 1

        with pytest.raises(ValueError):
            await store.create_activity({"name": "Bad", "venue": "X", "color": "red"})
        assert await store.delete_activity(kayak_id) is True
        assert await store.get_activity(kayak_id) is None


@pytest.mark.asyncio
async def test_stats(settings, now, future):
    async with EventStore(settings.database_path) as store:
        await store.create_event(make_event(future), "a")
        hidden_id = await store.create_event(make_event(future, title="Private"), "b")
        await store.update_event_fields(hidden_id, {"is_hidden": True})
        await store.create_event(make_event(now - timedelta(days=1), title="Gone"), "c")
        await store.create_activity({"name": "Kayaking", "venue": "Memorial Park"})
        for index in range(7):
            await store.append_log(RunLog(source_name=f"Source {index}", status=ScraperStatus.SUCCESS))

        stats = await store.stats(now)
        assert stats["total_events"] == 3
        assert stats["upcoming_events"] == 1
        assert stats["hidden_events"] == 1
        assert stats["total_activities"] == 1
        assert stats["active_activities"] == 1
        assert len(stats["recent_runs"]) == 5

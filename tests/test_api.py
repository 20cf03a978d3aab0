import asyncio
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from api.database import EventStore
from api.main import app, credential_matches, registered_scrapers
from scrapers.config import get_settings
from scrapers.models import Category, RunLog, ScrapedEvent, ScraperStatus

API_KEY = {"x-scraper-key": "test-key"}
ADMIN = {"x-admin-password": "test-admin"}


@pytest.fixture
def sources(make_scraper, future):
    return [
        make_scraper("Visit Nyack", [{
            "title": "Jazz Night",
            "venue": "Maureen's",
            "start_date": future,
            "source_url": "https://visitnyack.org/event/jazz-night/",
        }]),
        make_scraper("Eventbrite", error=RuntimeError("HTTP 503: Service Unavailable")),
    ]


@pytest.fixture
def client(settings, sources):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[registered_scrapers] = lambda: sources
    yield TestClient(app)
    app.dependency_overrides.clear()


def seed(settings, *events, logs=()):
    async def _seed():
        async with EventStore(settings.database_path) as store:
            for index, event in enumerate(events):
                await store.create_event(event, f"hash-{index}")
            for entry in logs:
                await store.append_log(entry)

    asyncio.run(_seed())


def event(start, **overrides):
    fields = {
        "title": "Jazz Night",
        "start_date": start,
        "venue": "Maureen's",
        "is_nyack_proper": True,
        "category": Category.MUSIC,
        "source_url": "https://visitnyack.org/event/jazz-night/",
        "source_name": "Visit Nyack",
    }
    fields.update(overrides)
    return ScrapedEvent(**fields)


def test_credential_matches():
    assert credential_matches("secret", "secret")
    assert not credential_matches("secret", "other")
    assert not credential_matches(None, "secret")
    assert not credential_matches("", None)
    assert not credential_matches(None, None)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_list_scrapers(client):
    body = client.get("/api/scrape").json()
    assert body["scrapers"] == ["Visit Nyack", "Eventbrite"]
    assert body["usage"]["runAll"] == "POST /api/scrape"


class TestTrigger:
    def test_requires_credentials(self, client):
        assert client.post("/api/scrape").status_code == 401
        assert client.post("/api/scrape", headers={"x-scraper-key": "wrong"}).status_code == 401

    def test_unconfigured_key_never_matches(self, client, settings):
        app.dependency_overrides[get_settings] = lambda: settings.model_copy(
            update={"scraper_api_key": None}
        )
        assert client.post("/api/scrape").status_code == 401
        assert client.post("/api/scrape", headers={"x-scraper-key": ""}).status_code == 401
        assert client.post("/api/scrape?source=Nope", headers=ADMIN).status_code == 404

    def test_unknown_source(self, client):
        resp = client.post("/api/scrape", params={"source": "Nope"}, headers=API_KEY)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Scraper not found: Nope"

    def test_run_one(self, client):
        resp = client.post("/api/scrape", params={"source": "visit nyack"}, headers=ADMIN)
        assert resp.status_code == 200
        assert resp.json()["result"] == {
            "sourceName": "Visit Nyack",
            "status": "success",
            "eventsFound": 1,
            "errorMessage": None,
        }

    def test_run_all(self, client):
        resp = client.post("/api/scrape", headers=API_KEY)
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "All scrapers completed"
        assert body["summary"] == {
            "totalEventsFound": 1,
            "totalEventsAdded": 1,
            "totalEventsUpdated": 0,
            "totalEventsDuplicate": 0,
        }
        assert body["results"][1] == {
            "sourceName": "Eventbrite",
            "status": "error",
            "eventsFound": 0,
            "errorMessage": "HTTP 503: Service Unavailable",
        }

    def test_cleanup_flag(self, client, settings, now):
        seed(settings, event(now - timedelta(days=10), title="Old"))
        resp = client.post("/api/scrape", params={"cleanup": "true", "source": "Eventbrite"}, headers=API_KEY)
        assert resp.status_code == 200

        async def count():
            async with EventStore(settings.database_path) as store:
                return await store.count_events()

        assert asyncio.run(count()) == 0


class TestEvents:
    def test_filters_and_pagination(self, client, settings, now, future):
        seed(
            settings,
            event(future),
            event(future + timedelta(days=1), title="Story Time", is_free=True,
                  is_family_friendly=True, category=Category.FAMILY_KIDS),
            event(future + timedelta(days=2), title="Comedy Hour", city="West Nyack",
                  is_nyack_proper=False, category=Category.COMEDY),
            event(now - timedelta(days=1), title="Yesterday"),
        )

        body = client.get("/api/events").json()
        assert [e["title"] for e in body["events"]] == ["Jazz Night", "Story Time", "Comedy Hour"]
        assert body["pagination"] == {"total": 3, "limit": 50, "offset": 0, "has_more": False}

        def titles(**params):
            return [e["title"] for e in client.get("/api/events", params=params).json()["events"]]

        assert titles(free="true") == ["Story Time"]
        assert titles(familyFriendly="true") == ["Story Time"]
        assert titles(nearbyOnly="true") == ["Comedy Hour"]
        assert titles(nyackOnly="true") == ["Jazz Night", "Story Time"]
        assert titles(category="COMEDY") == ["Comedy Hour"]
        assert titles(category="NOT_A_CATEGORY") == ["Jazz Night", "Story Time", "Comedy Hour"]

        page = client.get("/api/events", params={"limit": 1, "offset": 1}).json()
        assert [e["title"] for e in page["events"]] == ["Story Time"]
        assert page["pagination"]["has_more"] is True

    def test_limit_is_capped(self, client):
        body = client.get("/api/events", params={"limit": 500}).json()
        assert body["pagination"]["limit"] == 100

    def test_bad_date_keyword(self, client):
        assert client.get("/api/events", params={"date": "someday"}).status_code == 422


def test_activities_empty(client):
    assert client.get("/api/activities").json() == {"activities": []}


class TestAdminLogs:
    def test_requires_admin_password(self, client):
        assert client.get("/api/admin/scrapers").status_code == 401
        assert client.get("/api/admin/scrapers", headers=API_KEY).status_code == 401

    def test_lists_logs(self, client, settings):
        seed(
            settings,
            logs=[
                RunLog(source_name="Visit Nyack", status=ScraperStatus.SUCCESS, events_found=3),
                RunLog(source_name="Eventbrite", status=ScraperStatus.ERROR, error_message="HTTP 503"),
            ],
        )
        logs = client.get("/api/admin/scrapers", headers=ADMIN).json()["logs"]
        assert [entry["source_name"] for entry in logs] == ["Eventbrite", "Visit Nyack"]

        errors = client.get("/api/admin/scrapers", params={"status": "error"}, headers=ADMIN).json()
        assert [entry["source_name"] for entry in errors["logs"]] == ["Eventbrite"]


def test_categories_carry_labels(client):
    categories = client.get("/api/categories").json()["categories"]
    assert categories[0] == {"value": "MUSIC", "label": "Music"}
    assert {"value": "FAMILY_KIDS", "label": "Family & Kids"} in categories
    assert len(categories) == len(Category)


class TestAdminEvents:
    def test_requires_admin_password(self, client):
        assert client.get("/api/admin/events").status_code == 401
        assert client.get("/api/admin/events/1", headers=API_KEY).status_code == 401
        assert client.patch("/api/admin/events/1", json={"isHidden": True}).status_code == 401
        assert client.delete("/api/admin/events/1").status_code == 401
        assert client.post("/api/admin/events", json={}).status_code == 401
        assert client.get("/api/admin/stats").status_code == 401

    def test_hide_and_unhide(self, client, settings, future):
        seed(settings, event(future), event(future + timedelta(days=1), title="Story Time"))

        resp = client.patch("/api/admin/events/1", json={"isHidden": True}, headers=ADMIN)
        assert resp.status_code == 200
        assert resp.json()["event"]["is_hidden"] is True
        public = [e["title"] for e in client.get("/api/events").json()["events"]]
        assert public == ["Story Time"]

        hidden = client.get("/api/admin/events", params={"hidden": "true"}, headers=ADMIN).json()
        assert [e["title"] for e in hidden["events"]] == ["Jazz Night"]

        client.patch("/api/admin/events/1", json={"isHidden": False}, headers=ADMIN)
        public = [e["title"] for e in client.get("/api/events").json()["events"]]
        assert public == ["Jazz Night", "Story Time"]

    def test_edit_only_sent_fields(self, client, settings, future):
        seed(settings, event(future, price="$20"))
        resp = client.patch(
            "/api/admin/events/1",
            json={"title": "Jazz Night (Late Set)", "category": "COMEDY", "isFree": True},
            headers=ADMIN,
        )
        edited = resp.json()["event"]
        assert edited["title"] == "Jazz Night (Late Set)"
        assert edited["category"] == "COMEDY"
        assert edited["is_free"] is True
        assert edited["price"] == "$20"
        assert edited["venue"] == "Maureen's"

    def test_bad_edits_are_rejected(self, client, settings, future):
        seed(settings, event(future))
        assert client.patch("/api/admin/events/1", json={"category": "NOPE"}, headers=ADMIN).status_code == 422
        assert client.patch("/api/admin/events/1", json={"title": None}, headers=ADMIN).status_code == 422
        assert client.patch("/api/admin/events/99", json={"isHidden": True}, headers=ADMIN).status_code == 404

    def test_get_and_delete(self, client, settings, future):
        seed(settings, event(future))
        assert client.get("/api/admin/events/1", headers=ADMIN).json()["event"]["title"] == "Jazz Night"

        assert client.delete("/api/admin/events/1", headers=ADMIN).json() == {"success": True}
        resp = client.get("/api/admin/events/1", headers=ADMIN)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Event not found"
        assert client.delete("/api/admin/events/1", headers=ADMIN).status_code == 404

    def test_past_and_upcoming(self, client, settings, now, future):
        seed(
            settings,
            event(future, title="Soon"),
            event(future + timedelta(days=3), title="Later"),
            event(now - timedelta(days=2), title="Gone"),
        )

        def titles(**params):
            body = client.get("/api/admin/events", params=params, headers=ADMIN).json()
            return [e["title"] for e in body["events"]]

        assert titles() == ["Later", "Soon", "Gone"]
        assert titles(upcoming="true") == ["Soon", "Later"]
        assert titles(past="true") == ["Gone"]

    def test_create_manual_event(self, client, future):
        body = {
            "title": "Street Fair",
            "startDate": future.replace(tzinfo=None).isoformat(),
            "venue": "Main Street",
            "isFree": True,
        }
        resp = client.post("/api/admin/events", json=body, headers=ADMIN)
        assert resp.status_code == 201
        created = resp.json()["event"]
        assert created["source_name"] == "Manual Entry"
        assert created["city"] == "Nyack"
        assert created["is_nyack_proper"] is True
        assert created["category"] == "OTHER"
        assert created["is_free"] is True
        assert created["is_hidden"] is False

        public = client.get("/api/events").json()["events"]
        assert [e["title"] for e in public] == ["Street Fair"]
        assert client.post("/api/admin/events", json=body, headers=ADMIN).status_code == 409

    def test_create_requires_title_date_and_venue(self, client, future):
        resp = client.post("/api/admin/events", json={"title": "Street Fair"}, headers=ADMIN)
        assert resp.status_code == 422
        missing = {tuple(error["loc"]) for error in resp.json()["detail"]}
        assert missing == {("body", "startDate"), ("body", "venue")}

    def test_create_hidden(self, client, future):
        body = {"title": "Draft", "startDate": future.isoformat(), "venue": "Nyack Center", "isHidden": True}
        assert client.post("/api/admin/events", json=body, headers=ADMIN).json()["event"]["is_hidden"] is True
        assert client.get("/api/events").json()["events"] == []


class TestAdminActivities:
    ACTIVITY = {
        "name": "Hudson River Kayaking",
        "description": "Guided paddles from Memorial Park.",
        "venue": "Memorial Park",
        "address": "Piermont Ave, Nyack, NY 10960",
        "sourceUrl": "https://example.com/kayak",
        "category": "SPORTS_RECREATION",
    }

    def test_requires_admin_password(self, client):
        assert client.get("/api/admin/activities").status_code == 401
        assert client.post("/api/admin/activities", json=self.ACTIVITY).status_code == 401

    def test_lifecycle(self, client):
        resp = client.post("/api/admin/activities", json=self.ACTIVITY, headers=ADMIN)
        assert resp.status_code == 201
        activity = resp.json()["activity"]
        assert activity["is_active"] is True
        assert activity["city"] == "Nyack"
        assert [a["name"] for a in client.get("/api/activities").json()["activities"]] == ["Hudson River Kayaking"]

        url = f"/api/admin/activities/{activity['id']}"
        updated = client.patch(url, json={"isActive": False, "hours": "Sat 9-5"}, headers=ADMIN).json()
        assert updated["activity"]["hours"] == "Sat 9-5"
        assert client.get("/api/activities").json() == {"activities": []}
        inactive = client.get("/api/admin/activities", params={"active": "false"}, headers=ADMIN).json()
        assert [a["id"] for a in inactive["activities"]] == [activity["id"]]

        assert client.delete(url, headers=ADMIN).json() == {"success": True}
        assert client.get(url, headers=ADMIN).status_code == 404

    def test_create_requires_fields(self, client):
        body = {key: value for key, value in self.ACTIVITY.items() if key != "sourceUrl"}
        assert client.post("/api/admin/activities", json=body, headers=ADMIN).status_code == 422


def test_admin_stats(client, settings, now, future):
    seed(
        settings,
        event(future),
        event(future + timedelta(days=1), title="Story Time"),
        event(now - timedelta(days=1), title="Yesterday"),
        logs=[RunLog(source_name="Visit Nyack", status=ScraperStatus.SUCCESS, events_found=3, events_added=2)],
    )
    client.patch("/api/admin/events/2", json={"isHidden": True}, headers=ADMIN)

    stats = client.get("/api/admin/stats", headers=ADMIN).json()
    assert stats["totalEvents"] == 3
    assert stats["upcomingEvents"] == 1
    assert stats["hiddenEvents"] == 1
    assert stats["totalActivities"] == 0
    assert stats["activeActivities"] == 0
    (run,) = stats["recentScraperRuns"]
    assert run["sourceName"] == "Visit Nyack"
    assert run["eventsFound"] == 3
    assert run["eventsAdded"] == 2

"""Nyack Today API."""

from __future__ import annotations

import logging
import secrets
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime, tzinfo
from typing import Annotated

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from scrapers.base import BaseScraper, get_scrapers
from scrapers.config import Settings, get_settings
from scrapers.dedup import generate_event_hash
from scrapers.models import Category, ScrapedEvent, SourceSummary
from scrapers.notifications import Notifier
from scrapers.orchestrator import Orchestrator

from .database import EventStore, init_db
from .dates import DateFilter, get_date_range
from .schemas import ActivityCreate, ActivityUpdate, EventCreate, EventUpdate

log = logging.getLogger(__name__)

MAX_EVENTS_LIMIT = 100
MAX_ADMIN_LIMIT = 200
MANUAL_SOURCE = "Manual Entry"

SettingsDep = Annotated[Settings, Depends(get_settings)]


def registered_scrapers() -> list[type[BaseScraper]]:
    return get_scrapers()


ScrapersDep = Annotated[list[type[BaseScraper]], Depends(registered_scrapers)]


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db(get_settings().database_path)
    yield


app = FastAPI(title="Nyack Today", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def credential_matches(provided: str | None, expected: str | None) -> bool:
    """Constant-time compare; an unset expected value never matches."""
    if not expected or not provided:
        return False
    return secrets.compare_digest(provided.encode(), expected.encode())


def require_admin(
    settings: SettingsDep,
    x_admin_password: Annotated[str | None, Header()] = None,
) -> None:
    if not credential_matches(x_admin_password, settings.admin_password):
        raise HTTPException(status_code=401, detail="Unauthorized")


admin = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])


def _localize(value: datetime | None, tz: tzinfo) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value


def _source_result(source: SourceSummary) -> dict:
    return {
        "sourceName": source.source_name,
        "status": source.status.value,
        "eventsFound": source.events_found,
        "errorMessage": source.error_message,
    }


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/events")
async def list_events(
    settings: SettingsDep,
    date: DateFilter | None = None,
    category: str | None = None,
    free: bool = False,
    family_friendly: bool = Query(False, alias="familyFriendly"),
    nyack_only: bool = Query(False, alias="nyackOnly"),
    nearby_only: bool = Query(False, alias="nearbyOnly"),
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
):
    """List upcoming visible events with filtering and offset pagination."""
    now = datetime.now(settings.tz)
    if date is not None:
        start, end = get_date_range(date, now)
    else:
        start, end = now, None

    is_nyack_proper = None
    if nyack_only:
        is_nyack_proper = True
    elif nearby_only:
        is_nyack_proper = False

    filters = {
        "start": start,
        "end": end,
        "category": category if category in Category.__members__ else None,
        "is_free": True if free else None,
        "is_family_friendly": True if family_friendly else None,
        "is_nyack_proper": is_nyack_proper,
    }
    limit = min(limit, MAX_EVENTS_LIMIT)

    async with EventStore(settings.database_path) as store:
        events = await store.list_events(limit=limit, offset=offset, **filters)
        total = await store.count_events(**filters)

    return {
        "events": events,
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + len(events) < total,
        },
    }


@app.get("/api/activities")
async def list_activities(settings: SettingsDep):
    async with EventStore(settings.database_path) as store:
        return {"activities": await store.list_activities()}


@app.get("/api/categories")
async def list_categories():
    return {"categories": [{"value": c.value, "label": c.label} for c in Category]}


@app.get("/api/scrape")
async def list_scrapers(scrapers: ScrapersDep):
    """List available scrapers."""
    return {
        "scrapers": [scraper.name for scraper in scrapers],
        "usage": {
            "runAll": "POST /api/scrape",
            "runOne": "POST /api/scrape?source=Visit%20Nyack",
            "withCleanup": "POST /api/scrape?cleanup=true",
        },
    }


@app.post("/api/scrape")
async def run_scrapers(
    settings: SettingsDep,
    scrapers: ScrapersDep,
    source: str | None = None,
    cleanup: bool = False,
    x_scraper_key: Annotated[str | None, Header()] = None,
    x_admin_password: Annotated[str | None, Header()] = None,
):
    """Trigger a scraper run, for cron jobs (API key) or the dashboard (admin password)."""
    if not (
        credential_matches(x_scraper_key, settings.scraper_api_key)
        or credential_matches(x_admin_password, settings.admin_password)
    ):
        raise HTTPException(status_code=401, detail="Unauthorized")

    notifier = Notifier.from_settings(settings)
    try:
        async with EventStore(settings.database_path) as store:
            orchestrator = Orchestrator(settings, store, notifier=notifier, scrapers=scrapers)
            if cleanup:
                await orchestrator.cleanup()
            if source:
                result = await orchestrator.run_one(source)
            else:
                summary = await orchestrator.run_all()
    except Exception as exc:
        log.exception("Scrape error")
        message = str(exc) or type(exc).__name__
        await notifier.notify_scraper_error(message)
        raise HTTPException(
            status_code=500, detail={"error": "Scraping failed", "message": message}
        ) from exc

    if source:
        if result is None:
            raise HTTPException(status_code=404, detail=f"Scraper not found: {source}")
        return {"message": f"Scraper {source} completed", "result": _source_result(result)}

    return {
        "message": "All scrapers completed",
        "summary": {
            "totalEventsFound": summary.total_events_found,
            "totalEventsAdded": summary.total_events_added,
            "totalEventsUpdated": summary.total_events_updated,
            "totalEventsDuplicate": summary.total_events_duplicate,
        },
        "results": [_source_result(r) for r in summary.results],
    }


@admin.get("/scrapers")
async def list_scraper_logs(
    settings: SettingsDep,
    status: str | None = None,
    source: str | None = None,
    limit: int = Query(50, ge=1),
):
    """Scraper run logs, newest first."""
    async with EventStore(settings.database_path) as store:
        logs = await store.list_logs(
            status=status, source_name=source, limit=min(limit, MAX_ADMIN_LIMIT)
        )
    return {"logs": logs}


@admin.get("/events")
async def admin_list_events(
    settings: SettingsDep,
    hidden: bool = False,
    past: bool = False,
    upcoming: bool = False,
    limit: int = Query(50, ge=1),
):
    """All events including hidden ones; upcoming lists soonest first, otherwise newest first."""
    now = datetime.now(settings.tz)
    filters: dict = {"include_hidden": True}
    if hidden:
        filters["is_hidden"] = True
    if past:
        filters["before"] = now
    elif upcoming:
        filters["start"] = now

    async with EventStore(settings.database_path) as store:
        events = await store.list_events(
            limit=min(limit, MAX_ADMIN_LIMIT), newest_first=not upcoming, **filters
        )
    return {"events": events}


@admin.post("/events", status_code=201)
async def admin_create_event(settings: SettingsDep, body: EventCreate):
    fields = body.model_dump()
    is_hidden = fields.pop("is_hidden")
    fields["start_date"] = _localize(fields["start_date"], settings.tz)
    fields["end_date"] = _localize(fields["end_date"], settings.tz)
    event = ScrapedEvent(source_name=MANUAL_SOURCE, **fields)
    source_hash = generate_event_hash(event.title, event.venue, event.start_date, settings.tz)

    async with EventStore(settings.database_path) as store:
        try:
            event_id = await store.create_event(event, source_hash)
        except sqlite3.IntegrityError as exc:
            raise HTTPException(
                status_code=409, detail="An event with this title, venue and date already exists"
            ) from exc
        if is_hidden:
            row = await store.update_event_fields(event_id, {"is_hidden": True})
        else:
            row = await store.get_event(event_id)
    log.info("Created manual event %d: %s", event_id, event.title)
    return {"event": row}


@admin.get("/events/{event_id}")
async def admin_get_event(event_id: int, settings: SettingsDep):
    async with EventStore(settings.database_path) as store:
        event = await store.get_event(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return {"event": event}


@admin.patch("/events/{event_id}")
async def admin_update_event(event_id: int, settings: SettingsDep, body: EventUpdate):
    """Edit an event; only the fields present in the body change. Hiding goes through here too."""
    changes = body.model_dump(exclude_unset=True)
    for key in ("start_date", "end_date"):
        if key in changes:
            changes[key] = _localize(changes[key], settings.tz)

    async with EventStore(settings.database_path) as store:
        event = await store.update_event_fields(event_id, changes)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return {"event": event}


@admin.delete("/events/{event_id}")
async def admin_delete_event(event_id: int, settings: SettingsDep):
    async with EventStore(settings.database_path) as store:
        deleted = await store.delete_event(event_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Event not found")
    log.info("Deleted event %d", event_id)
    return {"success": True}


@admin.get("/activities")
async def admin_list_activities(
    settings: SettingsDep,
    active: bool | None = None,
    limit: int = Query(50, ge=1),
):
    async with EventStore(settings.database_path) as store:
        activities = await store.list_activities(
            is_active=active, limit=min(limit, MAX_ADMIN_LIMIT), recent_first=True
        )
    return {"activities": activities}


@admin.post("/activities", status_code=201)
async def admin_create_activity(settings: SettingsDep, body: ActivityCreate):
    async with EventStore(settings.database_path) as store:
        activity_id = await store.create_activity(body.model_dump())
        activity = await store.get_activity(activity_id)
    return {"activity": activity}


@admin.get("/activities/{activity_id}")
async def admin_get_activity(activity_id: int, settings: SettingsDep):
    async with EventStore(settings.database_path) as store:
        activity = await store.get_activity(activity_id)
    if activity is None:
        raise HTTPException(status_code=404, detail="Activity not found")
    return {"activity": activity}


@admin.patch("/activities/{activity_id}")
async def admin_update_activity(activity_id: int, settings: SettingsDep, body: ActivityUpdate):
    async with EventStore(settings.database_path) as store:
        activity = await store.update_activity_fields(
            activity_id, body.model_dump(exclude_unset=True)
        )
    if activity is None:
        raise HTTPException(status_code=404, detail="Activity not found")
    return {"activity": activity}


@admin.delete("/activities/{activity_id}")
async def admin_delete_activity(activity_id: int, settings: SettingsDep):
    async with EventStore(settings.database_path) as store:
        deleted = await store.delete_activity(activity_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Activity not found")
    return {"success": True}


@admin.get("/stats")
async def admin_stats(settings: SettingsDep):
    async with EventStore(settings.database_path) as store:
        stats = await store.stats(datetime.now(settings.tz))
    return {
        "totalEvents": stats["total_events"],
        "upcomingEvents": stats["upcoming_events"],
        "hiddenEvents": stats["hidden_events"],
        "totalActivities": stats["total_activities"],
        "activeActivities": stats["active_activities"],
        "recentScraperRuns": [
            {
                "sourceName": run["source_name"],
                "status": run["status"],
                "eventsFound": run["events_found"],
                "eventsAdded": run["events_added"],
                "runAt": run["run_at"],
            }
            for run in stats["recent_runs"]
        ],
    }


app.include_router(admin)

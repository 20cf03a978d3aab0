"""SQLite persistence for events, activities and scraper run logs."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite

from scrapers.models import RunLog, ScrapedEvent
from scrapers.normalize import decode_html_entities

SCHEMA = """
    CREATE TABLE IF NOT EXISTS events (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        description TEXT,
        start_date TEXT NOT NULL,
        end_date TEXT,
        venue TEXT NOT NULL,
        address TEXT,
        city TEXT NOT NULL DEFAULT 'Nyack',
        is_nyack_proper INTEGER NOT NULL DEFAULT 0,
        category TEXT NOT NULL DEFAULT 'OTHER',
        price TEXT,
        is_free INTEGER NOT NULL DEFAULT 0,
        is_family_friendly INTEGER NOT NULL DEFAULT 0,
        source_url TEXT NOT NULL,
        source_name TEXT NOT NULL,
        source_hash TEXT NOT NULL UNIQUE,
        image_url TEXT,
        is_hidden INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_events_start_date ON events(start_date);
    CREATE INDEX IF NOT EXISTS idx_events_category ON events(category);
    CREATE INDEX IF NOT EXISTS idx_events_source_name ON events(source_name);
    CREATE INDEX IF NOT EXISTS idx_events_is_free ON events(is_free);

    CREATE TABLE IF NOT EXISTS activities (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        description TEXT,
        venue TEXT NOT NULL,
        address TEXT,
        city TEXT NOT NULL DEFAULT 'Nyack',
        is_nyack_proper INTEGER NOT NULL DEFAULT 0,
        category TEXT NOT NULL DEFAULT 'OTHER',
        price TEXT,
        is_free INTEGER NOT NULL DEFAULT 0,
        is_family_friendly INTEGER NOT NULL DEFAULT 0,
        hours TEXT,
        source_url TEXT,
        image_url TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now')),
        updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now'))
    );

    CREATE TABLE IF NOT EXISTS scraper_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        source_name TEXT NOT NULL,
        status TEXT NOT NULL,
        events_found INTEGER NOT NULL DEFAULT 0,
        events_added INTEGER NOT NULL DEFAULT 0,
        error_message TEXT,
        run_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_scraper_logs_run_at ON scraper_logs(run_at);
"""

_BOOL_COLUMNS = ("is_nyack_proper", "is_free", "is_family_friendly", "is_hidden", "is_active")

# Fields a later sighting from the same source may refresh.
MUTABLE_FIELDS = (
    "title",
    "description",
    "end_date",
    "address",
    "price",
    "is_free",
    "is_family_friendly",
    "image_url",
    "source_url",
)

_TEXT_FIELDS = ("title", "description", "venue", "address", "city")

# Columns an admin may edit by hand.
EDITABLE_EVENT_FIELDS = (
    "title",
    "description",
    "start_date",
    "end_date",
    "venue",
    "address",
    "city",
    "is_nyack_proper",
    "category",
    "price",
    "is_free",
    "is_family_friendly",
    "source_url",
    "image_url",
    "is_hidden",
)

ACTIVITY_FIELDS = (
    "name",
    "description",
    "venue",
    "address",
    "city",
    "is_nyack_proper",
    "category",
    "price",
    "is_free",
    "is_family_friendly",
    "hours",
    "source_url",
    "image_url",
    "is_active",
)


def to_db_time(value: datetime | None) -> str | None:
    """UTC ISO-8601 text, so that string order is time order."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row(row: aiosqlite.Row) -> dict[str, Any]:
    data = dict(row)
    for column in _BOOL_COLUMNS:
        if column in data:
            data[column] = bool(data[column])
    return data


def _db_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_db_time(value)
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, Enum):
        return value.value
    return value


async def get_db(path: Path | str) -> aiosqlite.Connection:
    """Get a database connection with row factory enabled."""
    db = await aiosqlite.connect(path)
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA foreign_keys=ON")
    return db


async def init_db(path: Path | str) -> None:
    """Create tables and indexes if they do not exist yet."""
    async with aiosqlite.connect(path) as db:
        await db.executescript(SCHEMA)
        await db.commit()


class EventStore:
    """Row-level access to the events database.

    Every write commits on its own; a run that dies half way leaves the rows
    it already wrote in place.

    Usage::

        async with EventStore(settings.database_path) as store:
            await store.get_event_by_hash(source_hash)
    """

    def __init__(self, path: Path | str) -> None:
        self.path = path
        self._db: aiosqlite.Connection | None = None

    async def __aenter__(self) -> EventStore:
        await init_db(self.path)
        self._db = await get_db(self.path)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("EventStore used outside 'async with'")
        return self._db

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def get_event_by_hash(self, source_hash: str) -> dict[str, Any] | None:
        cursor = await self.db.execute("SELECT * FROM events WHERE source_hash = ?", (source_hash,))
        row = await cursor.fetchone()
        return _row(row) if row else None

    async def get_event(self, event_id: int) -> dict[str, Any] | None:
        cursor = await self.db.execute("SELECT * FROM events WHERE id = ?", (event_id,))
        row = await cursor.fetchone()
        return _row(row) if row else None

    async def create_event(self, event: ScrapedEvent, source_hash: str) -> int:
        data = event.model_dump()
        columns = list(data) + ["source_hash", "created_at", "updated_at"]
        now = _now()
        values = [_db_value(v) for v in data.values()] + [source_hash, now, now]
        cursor = await self.db.execute(
            f"INSERT INTO events ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})",
            values,
        )
        await self.db.commit()
        return cursor.lastrowid

    async def update_event(self, source_hash: str, event: ScrapedEvent) -> None:
        """Refresh the mutable fields; id, start date, venue, city and category stay."""
        assignments = ", ".join(f"{field} = ?" for field in MUTABLE_FIELDS)
        values = [_db_value(getattr(event, f)) for f in MUTABLE_FIELDS]
        await self.db.execute(
            f"UPDATE events SET {assignments}, updated_at = ? WHERE source_hash = ?",
            values + [_now(), source_hash],
        )
        await self.db.commit()

    async def update_event_fields(self, event_id: int, fields: dict[str, Any]) -> dict[str, Any] | None:
        """Apply an admin edit and return the updated row, or None if it is gone."""
        if not await self._update_row("events", EDITABLE_EVENT_FIELDS, event_id, fields):
            return None
        return await self.get_event(event_id)

    async def delete_event(self, event_id: int) -> bool:
        cursor = await self.db.execute("DELETE FROM events WHERE id = ?", (event_id,))
        await self.db.commit()
        return cursor.rowcount > 0

    async def delete_events_before(self, cutoff: datetime) -> int:
        cursor = await self.db.execute(
            "DELETE FROM events WHERE start_date < ?", (to_db_time(cutoff),)
        )
        await self.db.commit()
        return cursor.rowcount

    @staticmethod
    def _event_filters(
        start: datetime | None = None,
        end: datetime | None = None,
        category: str | None = None,
        is_free: bool | None = None,
        is_family_friendly: bool | None = None,
        is_nyack_proper: bool | None = None,
        source_name: str | None = None,
        is_hidden: bool | None = None,
        before: datetime | None = None,
        include_hidden: bool = False,
    ) -> tuple[str, list[Any]]:
        conditions: list[str] = []
        params: list[Any] = []
        if is_hidden is not None:
            conditions.append("is_hidden = ?")
            params.append(int(is_hidden))
        elif not include_hidden:
            conditions.append("is_hidden = 0")
        if before is not None:
            conditions.append("start_date < ?")
            params.append(to_db_time(before))
        if start is not None:
            conditions.append("start_date >= ?")
            params.append(to_db_time(start))
        if end is not None:
            conditions.append("start_date <= ?")
            params.append(to_db_time(end))
        if category:
            conditions.append("category = ?")
            params.append(category)
        for column, value in (
            ("is_free", is_free),
            ("is_family_friendly", is_family_friendly),
            ("is_nyack_proper", is_nyack_proper),
        ):
            if value is not None:
                conditions.append(f"{column} = ?")
                params.append(int(value))
        if source_name:
            conditions.append("source_name = ?")
            params.append(source_name)

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)
        return where_clause, params

    async def count_events(self, **filters: Any) -> int:
        where_clause, params = self._event_filters(**filters)
        cursor = await self.db.execute(f"SELECT COUNT(*) FROM events {where_clause}", params)
        return (await cursor.fetchone())[0]

    async def list_events(
        self, limit: int = 50, offset: int = 0, newest_first: bool = False, **filters: Any
    ) -> list[dict[str, Any]]:
        where_clause, params = self._event_filters(**filters)
        order = "DESC" if newest_first else "ASC"
        cursor = await self.db.execute(
            f"SELECT * FROM events {where_clause} ORDER BY start_date {order} LIMIT ? OFFSET ?",
            params + [limit, offset],
        )
        return [_row(row) for row in await cursor.fetchall()]

    async def _update_row(
        self, table: str, allowed: tuple[str, ...], row_id: int, fields: dict[str, Any]
    ) -> bool:
        unknown = set(fields) - set(allowed)
        if unknown:
            raise ValueError(f"Cannot update {table} columns: {', '.join(sorted(unknown))}")
        assignments = [f"{field} = ?" for field in fields] + ["updated_at = ?"]
        values = [_db_value(value) for value in fields.values()] + [_now()]
        cursor = await self.db.execute(
            f"UPDATE {table} SET {', '.join(assignments)} WHERE id = ?", values + [row_id]
        )
        await self.db.commit()
        return cursor.rowcount > 0

    async def normalize_text(self) -> int:
        """Decode HTML entities already stored in event text; returns rows changed."""
        cursor = await self.db.execute(f"SELECT id, {', '.join(_TEXT_FIELDS)} FROM events")
        updated = 0
        for row in await cursor.fetchall():
            changes = {}
            for field in _TEXT_FIELDS:
                value = row[field]
                if value is None:
                    continue
                decoded = decode_html_entities(value).strip()
                if decoded != value:
                    changes[field] = decoded
            if not changes:
                continue
            assignments = ", ".join(f"{field} = ?" for field in changes)
            await self.db.execute(
                f"UPDATE events SET {assignments}, updated_at = ? WHERE id = ?",
                list(changes.values()) + [_now(), row["id"]],
            )
            updated += 1
        await self.db.commit()
        return updated

    # ------------------------------------------------------------------
    # Run logs
    # ------------------------------------------------------------------

    async def append_log(self, entry: RunLog) -> int:
        cursor = await self.db.execute(
            """
            INSERT INTO scraper_logs (
                source_name, status, events_found, events_added, error_message, run_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                entry.source_name,
                entry.status.value,
                entry.events_found,
                entry.events_added,
                entry.error_message,
                to_db_time(entry.run_at),
            ),
        )
        await self.db.commit()
        return cursor.lastrowid

    async def list_logs(
        self, status: str | None = None, source_name: str | None = None, limit: int = 50
    ) -> list[dict[str, Any]]:
        conditions: list[str] = []
        params: list[Any] = []
        if status:
            conditions.append("status = ?")
            params.append(status)
        if source_name:
            conditions.append("source_name = ?")
            params.append(source_name)
        where_clause = "WHERE " + " AND ".join(conditions) if conditions else ""
        cursor = await self.db.execute(
            f"SELECT * FROM scraper_logs {where_clause} ORDER BY run_at DESC, id DESC LIMIT ?",
            params + [limit],
        )
        return [dict(row) for row in await cursor.fetchall()]

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------

    async def list_activities(
        self, is_active: bool | None = True, limit: int | None = None, recent_first: bool = False
    ) -> list[dict[str, Any]]:
        """Activities by name, or most recently edited first for the admin view."""
        where_clause = ""
        params: list[Any] = []
        if is_active is not None:
            where_clause = "WHERE is_active = ?"
            params.append(int(is_active))
        order = "updated_at DESC, id DESC" if recent_first else "name ASC"
        sql = f"SELECT * FROM activities {where_clause} ORDER BY {order}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        cursor = await self.db.execute(sql, params)
        return [_row(row) for row in await cursor.fetchall()]

    async def get_activity(self, activity_id: int) -> dict[str, Any] | None:
        cursor = await self.db.execute("SELECT * FROM activities WHERE id = ?", (activity_id,))
        row = await cursor.fetchone()
        return _row(row) if row else None

    async def create_activity(self, fields: dict[str, Any]) -> int:
        unknown = set(fields) - set(ACTIVITY_FIELDS)
        if unknown:
            raise ValueError(f"Unknown activity columns: {', '.join(sorted(unknown))}")
        now = _now()
        columns = list(fields) + ["created_at", "updated_at"]
        values = [_db_value(value) for value in fields.values()] + [now, now]
        cursor = await self.db.execute(
            f"INSERT INTO activities ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})",
            values,
        )
        await self.db.commit()
        return cursor.lastrowid

    async def update_activity_fields(
        self, activity_id: int, fields: dict[str, Any]
    ) -> dict[str, Any] | None:
        if not await self._update_row("activities", ACTIVITY_FIELDS, activity_id, fields):
            return None
        return await self.get_activity(activity_id)

    async def delete_activity(self, activity_id: int) -> bool:
        cursor = await self.db.execute("DELETE FROM activities WHERE id = ?", (activity_id,))
        await self.db.commit()
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    async def stats(self, now: datetime) -> dict[str, Any]:
        """Counts for the admin dashboard plus the five latest run logs."""

        async def scalar(sql: str, *params: Any) -> int:
            cursor = await self.db.execute(sql, params)
            return (await cursor.fetchone())[0]

        return {
            "total_events": await scalar("SELECT COUNT(*) FROM events"),
            "upcoming_events": await self.count_events(start=now),
            "hidden_events": await scalar("SELECT COUNT(*) FROM events WHERE is_hidden = 1"),
            "total_activities": await scalar("SELECT COUNT(*) FROM activities"),
            "active_activities": await scalar("SELECT COUNT(*) FROM activities WHERE is_active = 1"),
            "recent_runs": await self.list_logs(limit=5),
        }

"""Run source scrapers, upsert their events and keep the run log."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Protocol, Sequence

import httpx

from scrapers.base import BaseScraper, get_scrapers
from scrapers.config import Settings
from scrapers.dedup import generate_event_hash
from scrapers.models import (
    RunLog,
    RunSummary,
    SaveOutcome,
    ScrapedEvent,
    ScraperResult,
    ScraperStatus,
    SourceSummary,
)
from scrapers.notifications import Notifier

log = logging.getLogger(__name__)


class EventRepository(Protocol):
    """What the orchestrator needs from persistence."""

    async def get_event_by_hash(self, source_hash: str) -> dict[str, Any] | None: ...

    async def create_event(self, event: ScrapedEvent, source_hash: str) -> Any: ...

    async def update_event(self, source_hash: str, event: ScrapedEvent) -> None: ...

    async def append_log(self, entry: RunLog) -> Any: ...

    async def delete_events_before(self, cutoff: datetime) -> int: ...


class Orchestrator:
    """Sequential scraper runner.

    Sources run one after another, never in parallel, in registration
    order. A failing source is logged and skipped; it never stops the run.
    """

    def __init__(
        self,
        settings: Settings,
        store: EventRepository,
        notifier: Notifier | None = None,
        scrapers: Sequence[type[BaseScraper]] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.notifier = notifier or Notifier.from_settings(settings)
        self.scrapers = list(scrapers) if scrapers is not None else get_scrapers()
        self.client = client

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run_all(self) -> RunSummary:
        summary = RunSummary()
        for scraper_cls in self.scrapers:
            source = await self._run_scraper(scraper_cls)
            summary.results.append(source)
            summary.total_events_found += source.events_found
            summary.total_events_added += source.events_added
            summary.total_events_updated += source.events_updated
            summary.total_events_duplicate += source.events_duplicate
            summary.total_events_failed += source.events_failed

        log.info(
            "Scraping complete: found=%d added=%d updated=%d duplicates=%d",
            summary.total_events_found,
            summary.total_events_added,
            summary.total_events_updated,
            summary.total_events_duplicate,
        )

        try:
            await self.notifier.notify_scraper_complete(
                total_found=summary.total_events_found,
                total_added=summary.total_events_added,
                total_updated=summary.total_events_updated,
                failed_sources=summary.failed_sources,
            )
        except Exception:
            log.exception("Failed to send run summary notification")
        return summary

    async def run_one(self, name: str) -> SourceSummary | None:
        """Run the scraper called *name* (any case); ``None`` if there is none."""
        scraper_cls = self._find(name)
        if scraper_cls is None:
            log.error("Scraper not found: %s", name)
            return None
        return await self._run_scraper(scraper_cls)

    async def cleanup(self, now: datetime | None = None) -> int:
        """Delete events that started more than ``retention_days`` ago."""
        now = now or datetime.now(self.settings.tz)
        cutoff = now - timedelta(days=self.settings.retention_days)
        removed = await self.store.delete_events_before(cutoff)
        log.info("Cleaned up %d old events", removed)
        return removed

    # ------------------------------------------------------------------
    # Per-source work
    # ------------------------------------------------------------------

    def _find(self, name: str) -> type[BaseScraper] | None:
        wanted = name.strip().lower()
        for scraper_cls in self.scrapers:
            if scraper_cls.name.lower() == wanted:
                return scraper_cls
        return None

    async def _scrape(self, scraper_cls: type[BaseScraper]) -> ScraperResult:
        try:
            scraper = scraper_cls(self.settings, client=self.client)
            return await scraper.scrape()
        except Exception as exc:
            log.exception("Error running %s", scraper_cls.name)
            return ScraperResult(
                source_name=scraper_cls.name,
                status=ScraperStatus.ERROR,
                error_message=str(exc) or type(exc).__name__,
            )

    async def _run_scraper(self, scraper_cls: type[BaseScraper]) -> SourceSummary:
        log.info("Running scraper: %s", scraper_cls.name)
        result = await self._scrape(scraper_cls)
        log.info("  Found %d events (%s)", len(result.events), result.status.value)

        source = SourceSummary(
            source_name=result.source_name,
            status=result.status,
            events_found=len(result.events),
            error_message=result.error_message,
        )
        for event in result.events:
            outcome = await self.save_event(event)
            if outcome is SaveOutcome.ADDED:
                source.events_added += 1
            elif outcome is SaveOutcome.UPDATED:
                source.events_updated += 1
            elif outcome is SaveOutcome.DUPLICATE:
                source.events_duplicate += 1
            else:
                source.events_failed += 1

        await self._log_run(source)
        return source

    async def save_event(self, event: ScrapedEvent) -> SaveOutcome:
        """Upsert one event by fingerprint.

        New fingerprint: create. Same fingerprint from the same source:
        refresh the mutable fields. Same fingerprint from another source:
        keep the first source's row and report a duplicate.
        """
        try:
            source_hash = generate_event_hash(
                event.title, event.venue, event.start_date, self.settings.tz
            )
            existing = await self.store.get_event_by_hash(source_hash)
            if existing is None:
                await self.store.create_event(event, source_hash)
                return SaveOutcome.ADDED
            if existing["source_name"] == event.source_name:
                await self.store.update_event(source_hash, event)
                return SaveOutcome.UPDATED
            return SaveOutcome.DUPLICATE
        except Exception:
            log.exception("Error saving event %r from %s", event.title, event.source_name)
            return SaveOutcome.ERROR

    async def _log_run(self, source: SourceSummary) -> None:
        try:
            await self.store.append_log(
                RunLog(
                    source_name=source.source_name,
                    status=source.status,
                    events_found=source.events_found,
                    events_added=source.events_added,
                    error_message=source.error_message,
                )
            )
        except Exception:
            log.exception("Error logging scraper run for %s", source.source_name)

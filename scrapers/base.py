"""Abstract base scraper with httpx, timeouts, retries and a source registry."""

from __future__ import annotations

import abc
import asyncio
import logging
from datetime import datetime
from typing import Any

import httpx
from pydantic import ValidationError

from scrapers.config import Settings
from scrapers.models import ScrapedEvent, ScraperResult, ScraperStatus
from scrapers.normalize import (
    guess_category,
    guess_family_friendly,
    is_in_coverage_area,
    is_nyack_proper,
)

log = logging.getLogger(__name__)

_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


class ScraperError(Exception):
    """Base class for recoverable scraper failures."""


class FetchError(ScraperError, RuntimeError):
    """The remote resource could not be fetched (network, timeout, non-2xx)."""


class ParseError(ScraperError):
    """The fetch worked but no parseable events were found."""


class BaseScraper(abc.ABC):
    """Abstract base scraper that all source scrapers must subclass."""

    #: Source name, stored on every event and run log, e.g. "Visit Nyack".
    name: str = ""

    #: Use the longer request timeout for this source.
    slow: bool = False

    #: Minimum seconds between requests to the same source.
    rate_limit: float = 1.0

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        if not self.name:
            raise ValueError("Scraper subclass must set 'name'")
        self.settings = settings
        self.events: list[ScrapedEvent] = []
        self.errors: list[str] = []
        self._client = client
        self._owns_client = client is None
        self._last_request: float | None = None

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    @property
    def timeout(self) -> float:
        if self.slow:
            return self.settings.slow_request_timeout
        return self.settings.request_timeout

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self.settings.user_agent, "Accept": _ACCEPT},
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    async def _rate_limit_wait(self) -> None:
        loop = asyncio.get_running_loop()
        if self._last_request is not None:
            elapsed = loop.time() - self._last_request
            if elapsed < self.rate_limit:
                await asyncio.sleep(self.rate_limit - elapsed)
        self._last_request = loop.time()

    async def fetch(self, url: str, **kwargs: Any) -> httpx.Response:
        """GET *url* with a per-call timeout, retrying transport errors and 5xx.

        The timeout bounds the whole request, including a server that keeps
        trickling bytes.

        Raises :class:`FetchError` once the attempts are used up, or right
        away for a 4xx response.
        """
        client = await self._ensure_client()
        attempts = max(1, self.settings.max_retries)
        message = ""
        last_exc: Exception | None = None
        for attempt in range(1, attempts + 1):
            await self._rate_limit_wait()
            try:
                async with asyncio.timeout(self.timeout):
                    resp = await client.get(url, timeout=self.timeout, **kwargs)
            except (httpx.TimeoutException, TimeoutError) as exc:
                last_exc = exc
                message = f"Timed out after {self.timeout:g}s fetching {url}"
            except httpx.TransportError as exc:
                last_exc = exc
                message = f"{type(exc).__name__}: {exc}"
            else:
                if resp.is_success:
                    return resp
                last_exc = None
                message = f"HTTP {resp.status_code}: {resp.reason_phrase}"
                if resp.status_code < 500:
                    break
            if attempt < attempts:
                log.debug("[%s] %s failed (%s), retrying", self.name, url, message)
                await asyncio.sleep(self.settings.retry_backoff * attempt)
        raise FetchError(message) from last_exc

    async def aclose(self) -> None:
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Candidate events
    # ------------------------------------------------------------------

    def now(self) -> datetime:
        return datetime.now(self.settings.tz)

    def localize(self, value: datetime) -> datetime:
        """Attach the configured timezone to a naive datetime."""
        if value.tzinfo is None:
            return value.replace(tzinfo=self.settings.tz)
        return value

    def build_event(self, **fields: Any) -> ScrapedEvent | None:
        """Fill inferred fields and validate one candidate.

        Returns ``None`` for anything that should be silently skipped: a
        missing title or start date, a start date in the past, or a city
        outside the coverage area.
        """
        title = fields.get("title")
        start = fields.get("start_date")
        if not title or not isinstance(start, datetime):
            return None
        start = fields["start_date"] = self.localize(start)
        if isinstance(fields.get("end_date"), datetime):
            fields["end_date"] = self.localize(fields["end_date"])

        if start < self.now():
            return None

        city = (fields.get("city") or self.settings.home_city).strip()
        if not is_in_coverage_area(city, self.settings.coverage_cities):
            return None
        fields["city"] = city

        description = fields.get("description")
        fields.setdefault("is_nyack_proper", is_nyack_proper(city, self.settings.nyack_proper_cities))
        if fields.get("category") is None:
            fields["category"] = guess_category(title, description)
        if fields.get("is_family_friendly") is None:
            fields["is_family_friendly"] = guess_family_friendly(title, description)
        fields.setdefault("source_name", self.name)

        try:
            return ScrapedEvent(**fields)
        except ValidationError as exc:
            log.debug("[%s] skipping invalid event %r: %s", self.name, title, exc)
            return None

    def add(self, event: ScrapedEvent | None) -> None:
        if event is not None:
            self.events.append(event)

    def record_error(self, message: str) -> None:
        """Note a failed sub-fetch without abandoning the rest of the run."""
        log.warning("[%s] %s", self.name, message)
        self.errors.append(message)

    # ------------------------------------------------------------------
    # Scrape contract
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def collect(self) -> None:
        """Fetch this source and append candidates via :meth:`add`."""

    def _result(self, status: ScraperStatus, message: str | None = None) -> ScraperResult:
        return ScraperResult(
            source_name=self.name,
            events=list(self.events),
            status=status,
            error_message=message,
        )

    async def scrape(self) -> ScraperResult:
        """Run :meth:`collect` and classify the outcome.

        Events collected before a failure are always returned.
        """
        self.events = []
        self.errors = []
        try:
            await self.collect()
        except ParseError as exc:
            return self._result(ScraperStatus.PARTIAL, str(exc))
        except FetchError as exc:
            log.warning("[%s] fetch failed: %s", self.name, exc)
            status = ScraperStatus.PARTIAL if self.events else ScraperStatus.ERROR
            return self._result(status, str(exc))
        except Exception as exc:
            log.exception("[%s] unexpected error", self.name)
            status = ScraperStatus.PARTIAL if self.events else ScraperStatus.ERROR
            return self._result(status, str(exc) or type(exc).__name__)
        finally:
            await self.aclose()

        if self.errors:
            status = ScraperStatus.PARTIAL if self.events else ScraperStatus.ERROR
            return self._result(status, "; ".join(self.errors))
        return self._result(ScraperStatus.SUCCESS)


# ------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------

_registry: dict[str, type[BaseScraper]] = {}


def register(cls: type[BaseScraper]) -> type[BaseScraper]:
    """Class decorator that registers a scraper by its *name*."""
    _registry[cls.name.lower()] = cls
    return cls


def get_scrapers() -> list[type[BaseScraper]]:
    """Registered scrapers in registration order."""
    import scrapers.sources  # noqa: F401

    return list(_registry.values())


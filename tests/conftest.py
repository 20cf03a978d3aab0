"""Pytest configuration and fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable

import httpx
import pytest

from scrapers.base import BaseScraper
from scrapers.config import Settings


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from the environment, with a throwaway database."""
    return Settings(
        _env_file=None,
        database_path=tmp_path / "events.db",
        max_retries=1,
        retry_backoff=0,
        scraper_api_key="test-key",
        admin_password="test-admin",
        discord_webhook_url=None,
        slack_webhook_url=None,
    )


@pytest.fixture
def now(settings) -> datetime:
    return datetime.now(settings.tz).replace(microsecond=0)


@pytest.fixture
def future(now) -> datetime:
    """A start time comfortably in the future, at 8pm local time."""
    return (now + timedelta(days=30)).replace(hour=20, minute=0, second=0)


@pytest.fixture
def mock_client() -> Callable[..., httpx.AsyncClient]:
    """Build an AsyncClient answering from a ``{url: response}`` map.

    Values may be a string (200 with that body), an int (empty response
    with that status), an ``httpx.Response`` or an exception to raise.
    Every request made is appended to ``client.requests``.
    """

    def build(routes: dict[str, Any]) -> httpx.AsyncClient:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            answer = routes.get(str(request.url))
            if answer is None:
                return httpx.Response(404)
            if isinstance(answer, Exception):
                raise answer
            if isinstance(answer, int):
                return httpx.Response(answer)
            if isinstance(answer, httpx.Response):
                return answer
            return httpx.Response(200, text=answer)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client.requests = requests
        return client

    return build


@pytest.fixture
def make_scraper() -> Callable[..., type[BaseScraper]]:
    """Build an unregistered scraper class that yields fixed candidates."""

    def build(
        name: str,
        candidates: list[dict[str, Any]] | Callable[[], list[dict[str, Any]]] = (),
        error: Exception | None = None,
    ) -> type[BaseScraper]:
        class StaticScraper(BaseScraper):
            async def collect(self) -> None:
                fields_list = candidates() if callable(candidates) else candidates
                for fields in fields_list:
                    self.add(self.build_event(**fields))
                if error is not None:
                    raise error

        StaticScraper.name = name
        return StaticScraper

    return build

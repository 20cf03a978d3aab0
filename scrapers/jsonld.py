"""schema.org JSON-LD helpers for sources that embed structured event data.

Most venue sites here run WordPress calendar plugins (The Events Calendar,
Modern Events Calendar) that print one ``<script type="application/ld+json">``
block per page holding an Event object, a list of them, or a ``@graph``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, tzinfo
from typing import Any, Iterator

from bs4 import BeautifulSoup

from scrapers.base import BaseScraper, ParseError
from scrapers.models import ScrapedEvent
from scrapers.normalize import clean_text, parse_price

log = logging.getLogger(__name__)


def iter_jsonld_blocks(soup: BeautifulSoup) -> Iterator[Any]:
    """Yield the decoded payload of every JSON-LD script, skipping bad JSON."""
    for script in soup.find_all("script", type="application/ld+json"):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            yield json.loads(raw)
        except json.JSONDecodeError:
            log.debug("ignoring unparsable JSON-LD block")
            continue


def _types(item: dict) -> list[str]:
    value = item.get("@type")
    if isinstance(value, list):
        return [str(v) for v in value]
    return [str(value)] if value else []


def is_event(item: Any) -> bool:
    """True for ``Event`` and its schema.org subtypes (``ComedyEvent`` ...)."""
    if not isinstance(item, dict):
        return False
    return any(t == "Event" or t.endswith("Event") for t in _types(item))


def _flatten(data: Any) -> Iterator[dict]:
    if isinstance(data, list):
        for entry in data:
            yield from _flatten(entry)
    elif isinstance(data, dict):
        graph = data.get("@graph")
        if isinstance(graph, (list, dict)):
            yield from _flatten(graph)
        else:
            yield data


def extract_jsonld_events(html: str | BeautifulSoup) -> list[dict]:
    """Every Event object on the page, whether single, listed or in ``@graph``."""
    soup = html if isinstance(html, BeautifulSoup) else BeautifulSoup(html, "html.parser")
    events: list[dict] = []
    for data in iter_jsonld_blocks(soup):
        events.extend(item for item in _flatten(data) if is_event(item))
    return events


def find_item_list(html: str | BeautifulSoup) -> dict | None:
    """The last ``ItemList`` block with an ``itemListElement``, if any."""
    soup = html if isinstance(html, BeautifulSoup) else BeautifulSoup(html, "html.parser")
    found = None
    for data in iter_jsonld_blocks(soup):
        for item in _flatten(data):
            if "ItemList" in _types(item) and item.get("itemListElement"):
                found = item
    return found


def parse_jsonld_date(value: Any, tz: tzinfo | None = None) -> datetime | None:
    """Parse an ISO-8601 schema.org date; naive values get *tz* attached."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None and tz is not None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _image_url(value: Any) -> str | None:
    image = _first(value)
    if isinstance(image, dict):
        image = image.get("url") or image.get("contentUrl")
    return image if isinstance(image, str) and image else None


def _location(item: dict) -> tuple[str | None, str | None, str | None]:
    location = _first(item.get("location"))
    if not isinstance(location, dict):
        return None, None, None
    venue = clean_text(location.get("name"))
    address = location.get("address")
    if isinstance(address, dict):
        return venue, clean_text(address.get("streetAddress")), clean_text(address.get("addressLocality"))
    if isinstance(address, str):
        return venue, clean_text(address), None
    return venue, None, None


def _offer_price(item: dict) -> Any:
    offer = _first(item.get("offers"))
    if isinstance(offer, dict):
        return offer.get("price")
    return None


def jsonld_fields(item: dict, default_url: str, tz: tzinfo | None = None) -> dict[str, Any]:
    """Map one schema.org Event onto ``ScrapedEvent`` keyword arguments.

    Only translation happens here; validation (required fields, past dates,
    coverage area) is left to ``BaseScraper.build_event``.
    """
    venue, address, city = _location(item)
    price, is_free = parse_price(_offer_price(item))
    url = item.get("url")
    return {
        "title": clean_text(item.get("name")),
        "description": clean_text(item.get("description")),
        "start_date": parse_jsonld_date(item.get("startDate"), tz),
        "end_date": parse_jsonld_date(item.get("endDate"), tz),
        "venue": venue,
        "address": address,
        "city": city,
        "price": price,
        "is_free": is_free,
        "source_url": url if isinstance(url, str) and url else default_url,
        "image_url": _image_url(item.get("image")),
    }


class JsonLdScraper(BaseScraper):
    """A source whose page carries schema.org Event markup.

    Subclasses set ``url`` and, for single-purpose venues, ``overrides``
    with the fields that are always the same (venue, category, ...).
    """

    url: str = ""

    #: Fixed values that replace whatever the markup says.
    overrides: dict[str, Any] = {}

    #: Report ``partial`` when markup exists but no event survives filtering.
    require_events: bool = False

    async def collect(self) -> None:
        resp = await self.fetch(self.url)
        items = self.find_items(resp.text)
        if not items:
            raise ParseError("No JSON-LD events found on page")

        for item in items:
            try:
                self.add(self.convert(item))
            except (ValueError, TypeError, AttributeError) as exc:
                log.debug("[%s] skipping malformed JSON-LD item: %s", self.name, exc)

        if self.require_events and not self.events:
            raise ParseError("No upcoming JSON-LD events found on page")

    def find_items(self, html: str) -> list[dict]:
        return extract_jsonld_events(html)

    def convert(self, item: dict) -> ScrapedEvent | None:
        fields = jsonld_fields(item, self.url, self.settings.tz)
        fields.update(self.overrides)
        return self.build_event(**fields)

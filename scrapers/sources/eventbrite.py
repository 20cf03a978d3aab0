"""Eventbrite scraper – Nyack-area search listings."""

from __future__ import annotations

from bs4 import BeautifulSoup

from scrapers.base import ParseError, register
from scrapers.jsonld import (
    JsonLdScraper,
    extract_jsonld_events,
    find_item_list,
    is_event,
    jsonld_fields,
)
from scrapers.models import ScrapedEvent


@register
class EventbriteScraper(JsonLdScraper):
    name = "Eventbrite"
    url = "https://www.eventbrite.com/d/ny--nyack/events/"
    slow = True

    async def collect(self) -> None:
        resp = await self.fetch(self.url)
        soup = BeautifulSoup(resp.text, "html.parser")

        # Strategy 1: the search page's ItemList (most reliable)
        items = self._from_item_list(soup)

        # Strategy 2: plain Event objects, as on organizer pages
        if not items:
            items = extract_jsonld_events(soup)

        if not items:
            raise ParseError("No ItemList JSON-LD found on page")

        for item in items:
            try:
                self.add(self.convert(item))
            except (ValueError, TypeError, AttributeError):
                continue

    @staticmethod
    def _from_item_list(soup: BeautifulSoup) -> list[dict]:
        item_list = find_item_list(soup)
        if not item_list:
            return []
        items = []
        for element in item_list.get("itemListElement") or []:
            # Entries are either Events or ListItems wrapping one.
            if isinstance(element, dict) and not is_event(element):
                element = element.get("item")
            if is_event(element):
                items.append(element)
        return items

    def convert(self, item: dict) -> ScrapedEvent | None:
        # Search results always link to the event page; skip those that don't.
        if not item.get("url"):
            return None
        fields = jsonld_fields(item, self.url, self.settings.tz)
        fields["venue"] = fields["venue"] or "See event details"
        return self.build_event(**fields)

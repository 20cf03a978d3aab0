"""Visit Nyack – the chamber of commerce calendar at visitnyack.org."""

from __future__ import annotations

from scrapers.base import register
from scrapers.jsonld import JsonLdScraper


@register
class VisitNyackScraper(JsonLdScraper):
    name = "Visit Nyack"
    url = "https://visitnyack.org/calendar/"

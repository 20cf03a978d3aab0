"""The Angel Nyack – music and events at theangelnyack.com."""

from __future__ import annotations

from scrapers.base import register
from scrapers.jsonld import JsonLdScraper


@register
class TheAngelNyackScraper(JsonLdScraper):
    name = "The Angel Nyack"
    url = "https://theangelnyack.com/events/"

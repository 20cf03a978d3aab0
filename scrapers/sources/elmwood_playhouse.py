"""Elmwood Playhouse – community theater, Modern Events Calendar JSON-LD."""

from __future__ import annotations

from scrapers.base import register
from scrapers.jsonld import JsonLdScraper
from scrapers.models import Category


@register
class ElmwoodPlayhouseScraper(JsonLdScraper):
    name = "Elmwood Playhouse"
    url = "https://www.elmwoodplayhouse.com/"

    # Every show is at the playhouse itself, whatever the markup says.
    overrides = {
        "venue": "Elmwood Playhouse",
        "address": "10 Park Street, Nyack, NY 10960",
        "city": "Nyack",
        "is_nyack_proper": True,
        "category": Category.THEATER,
    }

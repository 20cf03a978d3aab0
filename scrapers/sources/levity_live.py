"""Levity Live – comedy club at the Palisades Center, JSON-LD in ``@graph``."""

from __future__ import annotations

from scrapers.base import register
from scrapers.jsonld import JsonLdScraper
from scrapers.models import Category


@register
class LevityLiveScraper(JsonLdScraper):
    name = "Levity Live"
    url = "https://www.levitylive.com/nyack"
    slow = True
    require_events = True

    overrides = {
        "venue": "Levity Live",
        "address": "4210 Palisades Center Dr, West Nyack, NY 10994",
        "city": "West Nyack",
        "is_nyack_proper": False,
        "category": Category.COMEDY,
    }

"""Text, price and classification helpers shared by every source scraper.

Everything here is pure: no I/O, no clock, no configuration lookups beyond
the optional city lists a caller passes in.
"""

from __future__ import annotations

import re
from typing import Iterable, NamedTuple

from scrapers.models import Category

NYACK_PROPER_CITIES: tuple[str, ...] = ("nyack", "south nyack", "upper nyack")

COVERAGE_AREA_CITIES: tuple[str, ...] = (
    "nyack",
    "south nyack",
    "upper nyack",
    "west nyack",
    "valley cottage",
    "piermont",
    "grandview",
    "grand view",
    "sparkill",
    "tappan",
    "orangeburg",
    "blauvelt",
    "palisades",
    "nanuet",
    "new city",
    "congers",
    "haverstraw",
    "garnerville",
    "stony point",
    "ossining",
    "tarrytown",
    "sleepy hollow",
    "irvington",
)

_NAMED_ENTITIES = {
    "amp": "&",
    "lt": "<",
    "gt": ">",
    "quot": '"',
    "apos": "'",
    "nbsp": " ",
}

_ENTITY_RE = re.compile(r"&(#[xX][0-9a-fA-F]+|#[0-9]+|[a-zA-Z]+);")
_TAG_RE = re.compile(r"<[^>]*?>")

_FREE_MARKERS = {"0", "free", "$0", "$0.00"}

_FAMILY_KEYWORDS = (
    "family",
    "kids",
    "children",
    "all ages",
    "youth",
    "teens",
    "child-friendly",
    "kid-friendly",
    "family-friendly",
)

_ADULT_KEYWORDS = (
    "21+",
    "21 and over",
    "adults only",
    "bar",
    "cocktail",
    "wine tasting",
    "beer tasting",
    "late night",
)

# Checked in enumeration order; the first category with a hit wins.
CATEGORY_KEYWORDS: dict[Category, tuple[str, ...]] = {
    Category.MUSIC: ("concert", "music", "jazz", "band", "live music", "orchestra", "symphony", "singer", "dj"),
    Category.COMEDY: ("comedy", "comedian", "stand-up", "standup", "laugh", "improv", "levity"),
    Category.MOVIES: ("movie", "film", "cinema", "screening", "documentary"),
    Category.THEATER: ("theater", "theatre", "play", "musical", "performance", "drama", "broadway"),
    Category.FAMILY_KIDS: ("kids", "children", "family", "child", "youth", "teen", "ages"),
    Category.FOOD_DRINK: ("food", "wine", "beer", "tasting", "dinner", "brunch", "cocktail", "restaurant"),
    Category.SPORTS_RECREATION: ("sports", "game", "fitness", "yoga", "run", "race", "golf", "tennis"),
    Category.COMMUNITY_GOVERNMENT: (
        "town hall", "meeting", "council", "village", "community", "civic", "government", "board",
    ),
    Category.ART_GALLERIES: ("art", "gallery", "exhibit", "exhibition", "artist", "painting", "sculpture"),
    Category.CLASSES_WORKSHOPS: ("class", "workshop", "learn", "lesson", "course", "training", "seminar"),
}

_MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}


class PriceInfo(NamedTuple):
    price: str | None
    is_free: bool


# ------------------------------------------------------------------
# Text
# ------------------------------------------------------------------


def _replace_entity(match: re.Match[str]) -> str:
    entity = match.group(1)
    if entity[:2] in ("#x", "#X"):
        code_point = int(entity[2:], 16)
    elif entity.startswith("#"):
        code_point = int(entity[1:])
    else:
        return _NAMED_ENTITIES.get(entity, match.group(0))
    try:
        return chr(code_point)
    except (ValueError, OverflowError):
        return match.group(0)


def decode_html_entities(text: str | None) -> str | None:
    """Decode numeric and common named entities.

    Two passes, so double-encoded input such as ``&amp;amp;`` comes out as
    ``&``. Unknown named entities are left untouched.
    """
    if not text:
        return text
    output = text
    for _ in range(2):
        output = _ENTITY_RE.sub(_replace_entity, output)
    return output


def strip_html(text: str) -> str:
    """Remove ``<...>`` tags."""
    return _TAG_RE.sub("", text).strip()


def clean_text(text: str | None) -> str | None:
    """Strip tags, decode entities and trim; ``None`` or blank gives ``None``."""
    if not text:
        return None
    cleaned = (decode_html_entities(strip_html(text)) or "").strip()
    return cleaned or None


def truncate(text: str | None, limit: int = 500) -> str | None:
    if text is None or len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


# ------------------------------------------------------------------
# Price
# ------------------------------------------------------------------


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return f"${int(value)}"
    return f"${value}"


def parse_price(raw: str | int | float | None) -> PriceInfo:
    """Turn a raw price into display text plus a free flag.

    Arbitrary strings are never treated as free; only zero and the exact
    markers ``0``, ``free``, ``$0`` and ``$0.00`` are.
    """
    if raw is None or isinstance(raw, bool):
        return PriceInfo(None, False)
    if isinstance(raw, (int, float)):
        if raw == 0:
            return PriceInfo(None, True)
        return PriceInfo(_format_number(raw), False)

    price = str(raw).strip().lower()
    if not price:
        return PriceInfo(None, False)
    if price in _FREE_MARKERS:
        return PriceInfo(None, True)
    return PriceInfo(price if price.startswith("$") else f"${price}", False)


# ------------------------------------------------------------------
# Classification
# ------------------------------------------------------------------


def _haystack(title: str, description: str | None) -> str:
    return f"{title} {description or ''}".lower()


def guess_family_friendly(title: str, description: str | None = None) -> bool:
    text = _haystack(title, description)
    if any(keyword in text for keyword in _ADULT_KEYWORDS):
        return False
    return any(keyword in text for keyword in _FAMILY_KEYWORDS)


def guess_category(title: str, description: str | None = None) -> Category:
    text = _haystack(title, description)
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(keyword in text for keyword in keywords):
            return category
    return Category.OTHER


def _in_cities(city: str | None, cities: Iterable[str]) -> bool:
    if not city:
        return False
    return city.strip().lower() in {c.lower() for c in cities}


def is_nyack_proper(city: str | None, cities: Iterable[str] = NYACK_PROPER_CITIES) -> bool:
    return _in_cities(city, cities)


def is_in_coverage_area(city: str | None, cities: Iterable[str] = COVERAGE_AREA_CITIES) -> bool:
    return _in_cities(city, cities)


def month_number(name: str) -> int | None:
    """``"January"``/``"jan"``/``"Sept"`` -> 1-12, or ``None``."""
    return _MONTHS.get(name.strip().lower().rstrip("."))

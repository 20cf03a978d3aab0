"""Rivertown Film Society – screenings at the Nyack Center.

The site is a Divi page with no structured data. Each film sits in its own
``.et_pb_row`` holding an ``<h2>`` title, a line such as
"Wednesday, January 28, 8:00 pm" and an eventive.org ticket link.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime

from bs4 import BeautifulSoup, Tag

from scrapers.base import BaseScraper, ParseError, register
from scrapers.models import Category, ScrapedEvent
from scrapers.normalize import clean_text, month_number, truncate

log = logging.getLogger(__name__)

SOURCE_URL = "https://rivertownfilm.org/"
TICKET_DOMAIN = "eventive.org"

_MONTH = (
    r"\b(?P<month>Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?"
    r"|Aug(?:ust)?|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)\.?"
)
_WEEKDAY = r"\b(?:Monday|Tuesday|Wednesday|Thursday|Friday|Saturday|Sunday)"
_TIME = r"(?P<hour>\d{1,2}):(?P<minute>\d{2})\s*(?P<ampm>[ap])\.?m\b\.?"

# Tried in order; the first that yields a real date wins.
DATE_PATTERNS = (
    # "January 28, 2026, 8:00 pm"
    re.compile(_MONTH + r"\s+(?P<day>\d{1,2}),?\s+(?P<year>\d{4}),?\s+(?:at\s+)?" + _TIME, re.I),
    # "Wednesday, January 28, 8:00 pm"
    re.compile(_WEEKDAY + r",?\s+" + _MONTH + r"\s+(?P<day>\d{1,2}),?\s+(?:at\s+)?" + _TIME, re.I),
    # "Jan 28, 8:00 pm"
    re.compile(_MONTH + r"\s+(?P<day>\d{1,2}),?\s+(?:at\s+)?" + _TIME, re.I),
)

_PRICE_RE = re.compile(r"\$[\d,]+(?:\.\d{2})?(?:\s*[,-]\s*\$[\d,]+(?:\.\d{2})?)*")


def parse_screening_date(text: str, now: datetime) -> datetime | None:
    """Find the first screening date/time in *text*.

    Accepted forms: ``Month D, YYYY, H:MM am|pm``, ``Weekday, Month D,
    H:MM am|pm`` and ``Mon D, H:MM am|pm``. Without a year the current one
    is assumed, rolling over to next year if that date has already passed.
    The result carries *now*'s timezone.
    """
    for pattern in DATE_PATTERNS:
        for match in pattern.finditer(text):
            month = month_number(match.group("month"))
            if month is None:
                continue
            hour = int(match.group("hour")) % 12
            if match.group("ampm").lower() == "p":
                hour += 12
            explicit_year = match.groupdict().get("year")
            year = int(explicit_year) if explicit_year else now.year
            try:
                value = datetime(
                    year, month, int(match.group("day")), hour, int(match.group("minute")),
                    tzinfo=now.tzinfo,
                )
            except ValueError:
                continue
            if not explicit_year and value < now:
                try:
                    value = value.replace(year=year + 1)
                except ValueError:
                    continue
            return value
    return None


def parse_ticket_price(text: str) -> tuple[str | None, bool]:
    """``"Tickets $12"`` -> ``("$12", False)``; ``"Free RSVP"`` -> ``(None, True)``."""
    match = _PRICE_RE.search(text)
    if match:
        return match.group(0), False
    if "free" in text.lower():
        return None, True
    return None, False


@register
class RivertownFilmScraper(BaseScraper):
    name = "Rivertown Film"

    VENUE = "The Nyack Center"
    ADDRESS = "58 Depew Ave, Nyack, NY 10960"
    CITY = "Nyack"

    async def collect(self) -> None:
        resp = await self.fetch(SOURCE_URL)
        soup = BeautifulSoup(resp.text, "html.parser")

        for section in self._film_sections(soup):
            try:
                self.add(self._parse_section(section))
            except (ValueError, TypeError, AttributeError) as exc:
                log.debug("[%s] skipping film section: %s", self.name, exc)

        if not self.events:
            raise ParseError("No film events found on page")

    @staticmethod
    def _film_sections(soup: BeautifulSoup) -> list[Tag]:
        sections: list[Tag] = []
        seen: set[int] = set()

        def keep(section: Tag | None) -> None:
            if section is not None and id(section) not in seen:
                seen.add(id(section))
                sections.append(section)

        # Rows with a ticket link
        for link in soup.select(f"a[href*='{TICKET_DOMAIN}']"):
            keep(link.find_parent(class_="et_pb_row"))

        # Rows with a heading and something that looks like screening info
        for h2 in soup.find_all("h2"):
            text = h2.get_text(strip=True)
            if not text or "Menu" in text or "Navigation" in text:
                continue
            row = h2.find_parent(class_="et_pb_row")
            if row is None:
                continue
            row_text = row.get_text(" ", strip=True)
            if re.search(r"\d\s*[ap]\.?m\b", row_text, re.I) or "Nyack Center" in row_text:
                keep(row)
        return sections

    def _parse_section(self, section: Tag) -> ScrapedEvent | None:
        heading = section.find("h2") or section.find("h3") or section.find("strong")
        title = clean_text(heading.get_text(" ", strip=True)) if heading else None
        if not title:
            return None

        start = parse_screening_date(section.get_text(" ", strip=True), self.now())
        if start is None:
            return None

        ticket = section.select_one(f"a[href*='{TICKET_DOMAIN}']")
        source_url = SOURCE_URL
        price, is_free = None, False
        if ticket is not None:
            source_url = ticket.get("href") or SOURCE_URL
            price, is_free = parse_ticket_price(ticket.get_text(" ", strip=True))

        description = None
        for p in section.find_all("p"):
            text = p.get_text(" ", strip=True)
            if len(text) > 50:
                description = truncate(clean_text(text))
                break

        image_url = None
        img = section.find("img")
        if img is not None:
            image_url = img.get("src") or img.get("data-src") or None

        return self.build_event(
            title=title,
            description=description,
            start_date=start,
            venue=self.VENUE,
            address=self.ADDRESS,
            city=self.CITY,
            is_nyack_proper=True,
            category=Category.MOVIES,
            price=price,
            is_free=is_free,
            is_family_friendly=False,
            source_url=source_url,
            image_url=image_url,
        )

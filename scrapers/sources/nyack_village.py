"""Village of Nyack – government calendar RSS feeds from nyack.gov.

The CivicPlus feeds put dates in vendor fields next to the usual RSS ones::

    <item>
      <title>Village Board of Trustees Meeting</title>
      <link>https://www.nyack.gov/Calendar.aspx?EID=123</link>
      <dates_times:start_date>Thursday, January 22, 2026</dates_times:start_date>
      <dates_times:start_time>7:00 PM</dates_times:start_time>
      <dates_times:end_time>9:00 PM</dates_times:end_time>
    </item>
"""

from __future__ import annotations

import logging
import re
from datetime import datetime

from bs4 import BeautifulSoup, Tag

from scrapers.base import BaseScraper, FetchError, register
from scrapers.models import Category, ScrapedEvent
from scrapers.normalize import clean_text, month_number, truncate

log = logging.getLogger(__name__)

FEEDS = (
    ("Village Events", "https://www.nyack.gov/rss/calendar/577/"),
    ("Village Board of Trustees", "https://www.nyack.gov/rss/calendar/578/"),
)

CALENDAR_URL = "https://www.nyack.gov/calendar"
VILLAGE_HALL = "9 N Broadway, Nyack, NY 10960"
MAIN_STREET = "Main Street, Nyack, NY 10960"

_WEEKDAY_RE = re.compile(r"^(?:Monday|Tuesday|Wednesday|Thursday|Friday|Saturday|Sunday),?\s*", re.I)
_DATE_RE = re.compile(r"(?P<month>[A-Za-z]+)\.?\s+(?P<day>\d{1,2})(?:,?\s*(?P<year>\d{4}))?")
_TIME_RE = re.compile(r"(?P<hour>\d{1,2}):(?P<minute>\d{2})\s*(?P<ampm>AM|PM)", re.I)

_FAMILY_KEYWORDS = ("parade", "halloween", "street fair", "penguin plunge", "festival", "celebration")


def parse_time(text: str) -> tuple[int, int] | None:
    """``"7:00 PM"`` -> ``(19, 0)``."""
    match = _TIME_RE.search(text or "")
    if not match:
        return None
    hour = int(match.group("hour")) % 12
    if match.group("ampm").upper() == "PM":
        hour += 12
    minute = int(match.group("minute"))
    if hour > 23 or minute > 59:
        return None
    return hour, minute


def parse_feed_datetime(date_str: str, time_str: str | None, now: datetime) -> datetime | None:
    """Combine the feed's date and time fields.

    Date: optional weekday, month name, day, optional year
    (``"Thursday, January 22, 2026"``, ``"Jan 22"``). Time: ``H:MM AM|PM``,
    midnight when missing. A date without a year is taken in the current
    year, or the next one if it has already passed.
    """
    match = _DATE_RE.search(_WEEKDAY_RE.sub("", date_str.strip()))
    if not match:
        return None
    month = month_number(match.group("month"))
    if month is None:
        return None
    hour, minute = parse_time(time_str or "") or (0, 0)
    year = int(match.group("year")) if match.group("year") else now.year
    try:
        value = datetime(year, month, int(match.group("day")), hour, minute, tzinfo=now.tzinfo)
    except ValueError:
        return None
    if not match.group("year") and value < now:
        value = value.replace(year=year + 1)
    return value


def is_noise(title: str, description: str | None) -> bool:
    """Closures, holiday notices and trash pickup are not events."""
    title = title.lower()
    description = (description or "").lower()
    if "closed" in title or "closure" in title:
        return True
    if "holiday" in title and "closed" in description:
        return True
    return "bulk trash" in title or "collection" in title


def venue_for(title: str) -> tuple[str, str]:
    """Pick venue and address from what the title says the event is."""
    title = title.lower()
    if "street fair" in title:
        return "Main Street", MAIN_STREET
    if "halloween" in title or "parade" in title:
        return "Downtown Nyack", MAIN_STREET
    if "board" in title or "trustees" in title or "meeting" in title:
        return "Nyack Village Hall", VILLAGE_HALL
    if "penguin" in title or "plunge" in title:
        return "Memorial Park Beach", "Memorial Park, Nyack, NY 10960"
    return "Village of Nyack", VILLAGE_HALL


def _field(item: Tag, name: str) -> str:
    tag = item.find([f"dates_times:{name}", name])
    return tag.get_text(strip=True) if tag else ""


@register
class NyackVillageScraper(BaseScraper):
    name = "Village of Nyack"
    rate_limit = 0.5

    async def collect(self) -> None:
        for feed_name, url in FEEDS:
            try:
                resp = await self.fetch(url)
            except FetchError as exc:
                self.record_error(f"{feed_name}: {exc}")
                continue
            before = len(self.events)
            self.parse_feed(resp.text)
            log.debug("[%s] %s: %d event(s)", self.name, feed_name, len(self.events) - before)

    def parse_feed(self, xml: str) -> None:
        soup = BeautifulSoup(xml, "xml")
        for item in soup.find_all("item"):
            try:
                self.add(self._parse_item(item))
            except (ValueError, TypeError, AttributeError) as exc:
                log.debug("[%s] skipping feed item: %s", self.name, exc)

    def _parse_item(self, item: Tag) -> ScrapedEvent | None:
        title_el = item.find("title")
        title = clean_text(title_el.get_text()) if title_el else None
        date_str = _field(item, "start_date")
        if not title or not date_str:
            return None

        now = self.now()
        start = parse_feed_datetime(date_str, _field(item, "start_time"), now)
        if start is None:
            return None

        end = None
        end_time = parse_time(_field(item, "end_time"))
        if end_time:
            end = start.replace(hour=end_time[0], minute=end_time[1])

        desc_el = item.find("description")
        description = truncate(clean_text(desc_el.get_text())) if desc_el else None

        if is_noise(title, description):
            return None

        link_el = item.find("link")
        source_url = (link_el.get_text(strip=True) if link_el else "") or CALENDAR_URL
        venue, address = venue_for(title)

        return self.build_event(
            title=title,
            description=description,
            start_date=start,
            end_date=end,
            venue=venue,
            address=address,
            city="Nyack",
            is_nyack_proper=True,
            category=Category.COMMUNITY_GOVERNMENT,
            price=None,
            is_free=True,
            is_family_friendly=any(k in title.lower() for k in _FAMILY_KEYWORDS),
            source_url=source_url,
        )

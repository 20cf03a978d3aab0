"""Event fingerprinting used as the natural key for upserts.

The fingerprint is ``sha256(title|venue|YYYY-MM-DD)`` truncated to 32 hex
characters. Time of day is dropped on purpose: two showings of the same
title at the same venue on the same day collide and are stored once.
"""

from __future__ import annotations

import hashlib
import re
from datetime import datetime, tzinfo

HASH_LENGTH = 32

TITLE_PREFIXES = (
    "film screening:",
    "screening:",
    "concert:",
    "live music:",
    "comedy:",
    "theater:",
    "theatre:",
)

_WHITESPACE_RE = re.compile(r"\s+")


def _collapse(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_title(title: str) -> str:
    value = _collapse(title.lower())
    for prefix in TITLE_PREFIXES:
        if value.startswith(prefix):
            value = value[len(prefix):]
            break
    return value.strip()


def normalize_venue(venue: str) -> str:
    value = venue.lower().strip()
    # "Maureen's, 3 S Broadway" and "Maureen's" are the same place.
    value = value.split(",", 1)[0].strip()
    if value.startswith("the "):
        value = value[4:]
    return _collapse(value)


def event_day(start_date: datetime, tz: tzinfo | None = None) -> str:
    """Local calendar date of *start_date* as ``YYYY-MM-DD``."""
    if tz is not None and start_date.tzinfo is not None:
        start_date = start_date.astimezone(tz)
    return start_date.date().isoformat()


def generate_event_hash(
    title: str, venue: str, start_date: datetime, tz: tzinfo | None = None
) -> str:
    key = f"{normalize_title(title)}|{normalize_venue(venue)}|{event_day(start_date, tz)}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:HASH_LENGTH]

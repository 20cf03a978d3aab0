"""Shared Pydantic models for Nyack Today."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

UNKNOWN_VENUE = "Unknown Venue"


class Category(str, Enum):
    MUSIC = "MUSIC"
    COMEDY = "COMEDY"
    MOVIES = "MOVIES"
    THEATER = "THEATER"
    FAMILY_KIDS = "FAMILY_KIDS"
    FOOD_DRINK = "FOOD_DRINK"
    SPORTS_RECREATION = "SPORTS_RECREATION"
    COMMUNITY_GOVERNMENT = "COMMUNITY_GOVERNMENT"
    ART_GALLERIES = "ART_GALLERIES"
    CLASSES_WORKSHOPS = "CLASSES_WORKSHOPS"
    OTHER = "OTHER"

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]


_CATEGORY_LABELS = {
    Category.MUSIC: "Music",
    Category.COMEDY: "Comedy",
    Category.MOVIES: "Movies",
    Category.THEATER: "Theater",
    Category.FAMILY_KIDS: "Family & Kids",
    Category.FOOD_DRINK: "Food & Drink",
    Category.SPORTS_RECREATION: "Sports & Recreation",
    Category.COMMUNITY_GOVERNMENT: "Community",
    Category.ART_GALLERIES: "Art & Galleries",
    Category.CLASSES_WORKSHOPS: "Classes & Workshops",
    Category.OTHER: "Other",
}


class ScraperStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


class SaveOutcome(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    DUPLICATE = "duplicate"
    ERROR = "error"


class ScrapedEvent(BaseModel):
    """An event produced by a source scraper, not yet persisted."""

    title: str = Field(min_length=1)
    description: str | None = None
    start_date: datetime
    end_date: datetime | None = None
    venue: str = UNKNOWN_VENUE
    address: str | None = None
    city: str = "Nyack"
    is_nyack_proper: bool = False
    category: Category = Category.OTHER
    price: str | None = None
    is_free: bool = False
    is_family_friendly: bool = False
    source_url: str
    source_name: str
    image_url: str | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("venue", mode="before")
    @classmethod
    def _default_venue(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return UNKNOWN_VENUE
        return value.strip() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _drop_bad_end_date(self) -> ScrapedEvent:
        # A malformed end date is discarded, never the event itself.
        if self.end_date is not None:
            try:
                if self.end_date < self.start_date:
                    self.end_date = None
            except TypeError:
                self.end_date = None
        return self


class ScraperResult(BaseModel):
    source_name: str
    events: list[ScrapedEvent] = Field(default_factory=list)
    status: ScraperStatus
    error_message: str | None = None


class RunLog(BaseModel):
    """One row of the append-only scraper run log."""

    source_name: str
    status: ScraperStatus
    events_found: int = 0
    events_added: int = 0
    error_message: str | None = None
    run_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SourceSummary(BaseModel):
    source_name: str
    status: ScraperStatus
    events_found: int = 0
    events_added: int = 0
    events_updated: int = 0
    events_duplicate: int = 0
    events_failed: int = 0
    error_message: str | None = None


class RunSummary(BaseModel):
    results: list[SourceSummary] = Field(default_factory=list)
    total_events_found: int = 0
    total_events_added: int = 0
    total_events_updated: int = 0
    total_events_duplicate: int = 0
    total_events_failed: int = 0

    @property
    def failed_sources(self) -> list[str]:
        return [r.source_name for r in self.results if r.status is ScraperStatus.ERROR]

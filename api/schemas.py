"""Request bodies for the admin endpoints.

Bodies use camelCase keys like the rest of the dashboard payloads; snake_case
field names are accepted too.
"""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from scrapers.models import Category


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class _Patch(_Body):
    # Columns that are NOT NULL in the database.
    not_nullable: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def _reject_nulls(self):
        for name in self.not_nullable:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class EventCreate(_Body):
    title: str = Field(min_length=1)
    start_date: datetime
    venue: str = Field(min_length=1)
    description: str | None = None
    end_date: datetime | None = None
    address: str | None = None
    city: str = "Nyack"
    is_nyack_proper: bool = True
    category: Category = Category.OTHER
    price: str | None = None
    is_free: bool = False
    is_family_friendly: bool = False
    source_url: str = ""
    image_url: str | None = None
    is_hidden: bool = False


class EventUpdate(_Patch):
    not_nullable = (
        "title",
        "start_date",
        "venue",
        "city",
        "is_nyack_proper",
        "category",
        "is_free",
        "is_family_friendly",
        "source_url",
        "is_hidden",
    )

    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    venue: str | None = Field(default=None, min_length=1)
    address: str | None = None
    city: str | None = None
    is_nyack_proper: bool | None = None
    category: Category | None = None
    price: str | None = None
    is_free: bool | None = None
    is_family_friendly: bool | None = None
    source_url: str | None = None
    image_url: str | None = None
    is_hidden: bool | None = None


class ActivityCreate(_Body):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    venue: str = Field(min_length=1)
    address: str = Field(min_length=1)
    source_url: str = Field(min_length=1)
    city: str = "Nyack"
    is_nyack_proper: bool = True
    category: Category = Category.OTHER
    price: str | None = None
    is_free: bool = False
    is_family_friendly: bool = False
    hours: str | None = None
    image_url: str | None = None
    is_active: bool = True


class ActivityUpdate(_Patch):
    not_nullable = (
        "name",
        "venue",
        "city",
        "is_nyack_proper",
        "category",
        "is_free",
        "is_family_friendly",
        "is_active",
    )

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    venue: str | None = Field(default=None, min_length=1)
    address: str | None = None
    city: str | None = None
    is_nyack_proper: bool | None = None
    category: Category | None = None
    price: str | None = None
    is_free: bool | None = None
    is_family_friendly: bool | None = None
    hours: str | None = None
    source_url: str | None = None
    image_url: str | None = None
    is_active: bool | None = None

"""Person and Family records as read from the backing store."""
from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Sex(str, Enum):
    """Recorded sex of a person."""

    MALE = "M"
    FEMALE = "F"
    UNKNOWN = "U"


class DateAccuracy(str, Enum):
    """How precisely a birth or death date is known."""

    EXACT = "EXACT"
    ESTIMATED = "ESTIMATED"
    RANGE = "RANGE"
    UNKNOWN = "UNKNOWN"


class ResearchStatus(str, Enum):
    """Research progress on a person."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PARTIAL = "partial"
    VERIFIED = "verified"
    NEEDS_REVIEW = "needs_review"
    BRICK_WALL = "brick_wall"


class Person(BaseModel):
    """An individual in the family graph.

    Records are read-only snapshots; trees share them across cache hits.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name_full: str = ""
    name_given: str | None = None
    name_surname: str | None = None
    sex: Sex = Sex.UNKNOWN

    birth_year: int | None = None
    birth_date: str | None = None
    birth_place: str | None = None
    birth_date_accuracy: DateAccuracy | None = None

    death_year: int | None = None
    death_date: str | None = None
    death_place: str | None = None
    death_date_accuracy: DateAccuracy | None = None

    living: bool = False
    is_placeholder: bool = Field(default=False, description="Stand-in for an unidentified parent")
    is_notable: bool = False
    notable_description: str | None = None

    source_count: int = Field(default=0, ge=0)
    research_status: ResearchStatus = ResearchStatus.NOT_STARTED
    research_priority: int = Field(default=0, ge=0, le=10)
    last_researched: datetime | None = None

    @field_validator("sex", "research_status", "research_priority", "source_count", mode="before")
    @classmethod
    def _null_to_default(cls, value, info):
        # Store columns are nullable; fall back to the field default.
        if value is None:
            return cls.model_fields[info.field_name].default
        return value

    @property
    def display_name(self) -> str:
        if self.name_full:
            return self.name_full
        parts = [p for p in (self.name_given, self.name_surname) if p]
        return " ".join(parts) or self.id

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")


class Family(BaseModel):
    """A couple and the container of their parent-child edges."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    husband_id: str | None = None
    wife_id: str | None = None
    marriage_date: str | None = None
    marriage_year: int | None = None
    marriage_place: str | None = None

    @property
    def parent_ids(self) -> list[str]:
        """Husband and wife ids that are present, in that order."""
        return [pid for pid in (self.husband_id, self.wife_id) if pid]

    def partner_of(self, person_id: str) -> str | None:
        """Return the co-parent of ``person_id`` in this family."""
        if self.husband_id == person_id:
            return self.wife_id
        if self.wife_id == person_id:
            return self.husband_id
        return None

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")

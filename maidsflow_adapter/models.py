from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel


class Frequency(str, Enum):
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"
    BIMONTHLY = "bimonthly"


class CalendarDate(BaseModel):
    """A calendar day with no timezone attached."""

    model_config = {"frozen": True}

    year: int = Field(ge=1, le=9999)
    month: int = Field(ge=1, le=12)
    day: int = Field(ge=1, le=31)

    @model_validator(mode="after")
    def _real_date(self) -> "CalendarDate":
        # raises ValueError for e.g. Feb 30
        date(self.year, self.month, self.day)
        return self

    @classmethod
    def from_date(cls, d: date) -> "CalendarDate":
        return cls(year=d.year, month=d.month, day=d.day)

    def to_date(self) -> date:
        return date(self.year, self.month, self.day)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"


class TimeOfDay(BaseModel):
    model_config = {"frozen": True}

    hour: int = Field(default=0, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


MIDNIGHT = TimeOfDay()


class UntilDate(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["until"] = "until"
    until: CalendarDate


class OccurrenceCount(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["count"] = "count"
    count: int = Field(ge=1)


class Forever(BaseModel):
    """Open-ended series; expands to one year of weekly occurrences."""

    model_config = {"frozen": True}

    kind: Literal["forever"] = "forever"


TerminationCondition = Annotated[Union[UntilDate, OccurrenceCount, Forever], Field(discriminator="kind")]


class RecurrenceRule(BaseModel):
    """Immutable description of a recurring series.

    The end time is not required to be after the start time here; that check
    runs once against the first generated occurrence.
    """

    model_config = {"frozen": True}

    frequency: Frequency
    anchor_date: CalendarDate
    time_of_day_start: TimeOfDay = MIDNIGHT
    time_of_day_end: TimeOfDay = MIDNIGHT
    termination: TerminationCondition = Field(default_factory=Forever)


class Occurrence(BaseModel):
    model_config = {"frozen": True}

    start: datetime  # aware, UTC
    end: datetime


class AppointmentTemplate(BaseModel):
    """Fields copied unchanged into every occurrence's create request."""

    model_config = {"populate_by_name": True, "alias_generator": to_camel}

    title: str = ""
    address: str = ""
    company_id: int | None = None
    customer_id: int
    team_id: int | None = None
    professional_id: int | None = None
    status: int = 0
    type: int = 0
    notes: str | None = None


class AppointmentCreate(AppointmentTemplate):
    start: str  # ISO-8601 instant
    end: str


class AppointmentBasic(BaseModel):
    model_config = {"populate_by_name": True, "alias_generator": to_camel}

    id: int | str
    title: str | None = None
    start: str | None = None
    end: str | None = None
    status: int | str | None = None
    company_id: int | None = None
    customer_id: int | None = None
    team_id: int | None = None
    professional_id: int | None = None


class RecurrencePayload(BaseModel):
    """Body of POST /Recurrence, the backend's own recurrence record."""

    model_config = {"populate_by_name": True, "alias_generator": to_camel}

    title: str
    customer_id: int
    address: str
    team_id: int | None = None
    company_id: int
    frequency: int  # 1=Weekly, 2=Monthly, 3=Bimonthly
    day: int  # weekly: 0-6 (Sun=0); monthly/bimonthly: 1-31
    time: dict[str, int]  # {"ticks": ...}
    duration: int  # minutes
    status: int
    type: int
    start_date: str
    end_date: str
    notes: str | None = None


class OccurrenceOutcome(BaseModel):
    index: int
    occurrence: Occurrence
    appointment_id: int | str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SeriesResult(BaseModel):
    requested: int
    created: int
    failures: list[OccurrenceOutcome] = Field(default_factory=list)

    @computed_field
    @property
    def summary(self) -> str:
        return f"Created {self.created} of {self.requested} recurring appointments"

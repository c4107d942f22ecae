"""Pydantic request and response models for the HTTP API."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from meal_parser.domain.foods import FoodRecord


class ParseRequest(BaseModel):
    """Free-text meal description."""

    text: str
    session_id: str = "default"


class AbandonRequest(BaseModel):
    """Request to drop a retry chain."""

    session_id: str = "default"


class EditRequest(BaseModel):
    """Free-text edit instruction for one entry."""

    instruction: str


class EntryUpdate(BaseModel):
    """Manual field changes for an entry."""

    name: str | None = Field(default=None, min_length=1)
    calories: int | None = Field(default=None, ge=0)
    protein_g: float | None = Field(default=None, ge=0.0)
    carbs_g: float | None = Field(default=None, ge=0.0)
    fat_g: float | None = Field(default=None, ge=0.0)
    timestamp: datetime | None = None
    notes: str | None = None


class EntryModel(BaseModel):
    """Food entry as exposed over HTTP."""

    id: UUID
    name: str
    calories: int
    protein_g: float
    carbs_g: float
    fat_g: float
    total_macros: float
    timestamp: datetime
    notes: str | None = None
    assumptions: str | None = None

    @classmethod
    def from_record(cls, record: FoodRecord) -> "EntryModel":
        """Build the API model from a domain record."""
        return cls(
            id=record.id,
            name=record.name,
            calories=record.calories,
            protein_g=record.protein_g,
            carbs_g=record.carbs_g,
            fat_g=record.fat_g,
            total_macros=record.total_macros,
            timestamp=record.timestamp,
            notes=record.notes,
            assumptions=record.assumptions,
        )


class ParseResponse(BaseModel):
    """Outcome of processing a meal description."""

    outcome: str
    message: str
    attempt: int
    confidence: float
    caveat: str | None = None
    entries: list[EntryModel]


class EditResponse(BaseModel):
    """Outcome of an edit instruction."""

    changed: bool
    message: str
    entry: EntryModel


class DailyTotalsModel(BaseModel):
    """Totals for one day."""

    day: date
    calories: int
    protein_g: float
    carbs_g: float
    fat_g: float


class DailyCaloriesModel(BaseModel):
    """Calories for one day in a series."""

    day_start: datetime
    calories: int


class SeriesResponse(BaseModel):
    """Per-day calories with averages."""

    days: list[DailyCaloriesModel]
    total_calories: int
    avg_calories: float

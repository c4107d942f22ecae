"""Domain models for food records and extraction results."""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class FoodRecord:
    """A committed food entry with a stable identity."""

    id: UUID
    name: str
    calories: int
    protein_g: float
    carbs_g: float
    fat_g: float
    timestamp: datetime
    notes: str | None = None
    assumptions: str | None = None

    @property
    def total_macros(self) -> float:
        """Return protein, carbs and fat summed in grams."""
        return self.protein_g + self.carbs_g + self.fat_g


@dataclass(frozen=True)
class FoodDraft:
    """An extracted food entry that has not been committed yet."""

    name: str
    calories: int
    protein_g: float
    carbs_g: float
    fat_g: float
    timestamp: datetime
    assumptions: str | None = None

    def to_record(self, record_id: UUID) -> FoodRecord:
        """Promote the draft to a record under the given id."""
        return FoodRecord(
            id=record_id,
            name=self.name,
            calories=self.calories,
            protein_g=self.protein_g,
            carbs_g=self.carbs_g,
            fat_g=self.fat_g,
            timestamp=self.timestamp,
            notes=self.assumptions,
            assumptions=self.assumptions,
        )


@dataclass(frozen=True)
class ExtractionResult:
    """Candidate drafts extracted from one utterance."""

    drafts: list[FoodDraft] = field(default_factory=list)
    confidence: float = 0.0
    notes: str | None = None


@dataclass(frozen=True)
class EditInstruction:
    """Free-text edit aimed at exactly one existing record."""

    text: str
    record_id: UUID

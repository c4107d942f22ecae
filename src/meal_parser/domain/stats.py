"""Domain models for statistics."""

from dataclasses import dataclass
from datetime import date, datetime


@dataclass(frozen=True)
class DailyTotals:
    """Daily total calories and macros."""

    day: date
    calories: int
    protein_g: float
    carbs_g: float
    fat_g: float


@dataclass(frozen=True)
class DailyCalories:
    """Calories logged on one calendar day."""

    day_start: datetime
    calories: int


@dataclass(frozen=True)
class PeriodSummary:
    """Per-day calories over a period with averages."""

    daily: list[DailyCalories]
    total_calories: int
    avg_calories: float

"""Daily and periodic aggregation over committed food records."""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from typing import Protocol

from meal_parser.domain.foods import FoodRecord
from meal_parser.domain.stats import DailyCalories, DailyTotals, PeriodSummary


class RecordSource(Protocol):
    """Read access to committed records."""

    def all(self) -> list[FoodRecord]:
        """Return every record in insertion order."""


def daily_totals(
    records: Iterable[FoodRecord], day: date, tz: tzinfo = UTC
) -> DailyTotals:
    """Sum records whose timestamp falls on ``day`` in the given timezone."""
    calories = 0
    protein = carbs = fat = 0.0
    for record in records:
        if record.timestamp.astimezone(tz).date() != day:
            continue
        calories += record.calories
        protein += record.protein_g
        carbs += record.carbs_g
        fat += record.fat_g
    return DailyTotals(
        day=day, calories=calories, protein_g=protein, carbs_g=carbs, fat_g=fat
    )


def series(
    records: Iterable[FoodRecord], days: int, today: date, tz: tzinfo = UTC
) -> list[DailyCalories]:
    """Return calories for the ``days`` calendar days ending today, oldest first."""
    snapshot = list(records)
    result = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        totals = daily_totals(snapshot, day, tz)
        day_start = datetime.combine(day, time.min, tzinfo=tz)
        result.append(DailyCalories(day_start=day_start, calories=totals.calories))
    return result


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class StatsService:
    """Aggregates the record store in the configured timezone."""

    records: RecordSource
    tz: tzinfo = UTC
    clock: Callable[[], datetime] = _utc_now

    def today(self) -> date:
        """Return the local calendar date."""
        return self.clock().astimezone(self.tz).date()

    def get_today(self) -> DailyTotals:
        """Return today's totals."""
        return daily_totals(self.records.all(), self.today(), self.tz)

    def get_series(self, days: int = 7) -> list[DailyCalories]:
        """Return per-day calories for the most recent days."""
        return series(self.records.all(), days, self.today(), self.tz)

    def get_period(self, days: int = 7) -> PeriodSummary:
        """Return per-day calories with the period average."""
        daily = self.get_series(days)
        total = sum(entry.calories for entry in daily)
        return PeriodSummary(
            daily=daily,
            total_calories=total,
            avg_calories=total / max(len(daily), 1),
        )

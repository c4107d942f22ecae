"""Deterministic edit grammar applied as deltas to an existing record.

Rule groups run in a fixed order: size, calorie adjustment, ingredient
addition, ingredient removal. Each group applies at most one rule, and every
applied rule replaces the assumption note, so the last one wins.
"""

import logging
import math
from dataclasses import replace

from meal_parser.domain.foods import FoodRecord

_logger = logging.getLogger(__name__)

LARGE_FACTOR = 1.5
SMALL_FACTOR = 0.75
EXTRA_FACTOR = 1.2
NO_SAUCE_CALORIE_FACTOR = 0.9
NO_SAUCE_FAT_FACTOR = 0.8


def apply_edit(original: FoodRecord, instruction: str) -> FoodRecord:
    """Return ``original`` with every matching edit rule applied."""
    lowered = instruction.lower()
    edited = _apply_size(original, lowered)
    edited = _apply_calorie_adjustment(edited, lowered)
    edited = _apply_addition(edited, lowered)
    edited = _apply_removal(edited, lowered)
    if edited != original:
        _logger.info("Edit applied: %s -> %s", original.name, edited.name)
    return replace(edited, id=original.id)


def describe_edit(original: FoodRecord, edited: FoodRecord) -> str:
    """Summarize what an edit changed for the confirmation message."""
    if original == edited:
        return "nothing changed"

    changes: list[str] = []
    if original.name != edited.name:
        changes.append(f"updated to {edited.name}")
    calorie_diff = edited.calories - original.calories
    if calorie_diff:
        changes.append(f"{calorie_diff:+d} cal")
    protein_diff = int(edited.protein_g - original.protein_g)
    if protein_diff:
        changes.append(f"{protein_diff:+d}g protein")
    if not changes:
        return f"updated {edited.name}"
    return "updated: " + ", ".join(changes)


def round_half_up(value: float) -> int:
    """Round a non-negative value to the nearest integer, halves going up."""
    return max(0, math.floor(value + 0.5))


def _scale(record: FoodRecord, factor: float) -> FoodRecord:
    return replace(
        record,
        calories=round_half_up(record.calories * factor),
        protein_g=record.protein_g * factor,
        carbs_g=record.carbs_g * factor,
        fat_g=record.fat_g * factor,
    )


def _large_name(name: str) -> str:
    if "fries" in name.lower() and "Medium" in name:
        return name.replace("Medium", "Large")
    return f"Large {name}"


def _apply_size(record: FoodRecord, lowered: str) -> FoodRecord:
    if "large" in lowered:
        return replace(
            _scale(record, LARGE_FACTOR),
            name=_large_name(record.name),
            assumptions="Adjusted to large portion size (1.5x)",
        )
    if "small" in lowered:
        return replace(
            _scale(record, SMALL_FACTOR),
            name=f"Small {record.name}",
            assumptions="Adjusted to small portion size (0.75x)",
        )
    return record


def _apply_calorie_adjustment(record: FoodRecord, lowered: str) -> FoodRecord:
    if "add 100" in lowered:
        return replace(
            record,
            calories=record.calories + 100,
            assumptions="Added 100 calories as requested",
        )
    if "add 200" in lowered:
        return replace(
            record,
            calories=record.calories + 200,
            assumptions="Added 200 calories as requested",
        )
    if ("remove" in lowered or "subtract" in lowered) and "100" in lowered:
        return replace(
            record,
            calories=max(0, record.calories - 100),
            assumptions="Removed 100 calories as requested",
        )
    return record


def _apply_addition(record: FoodRecord, lowered: str) -> FoodRecord:
    if "with cheese" in lowered:
        return replace(
            record,
            name=f"{record.name} with cheese",
            calories=record.calories + 100,
            protein_g=record.protein_g + 6,
            fat_g=record.fat_g + 8,
            assumptions="Added cheese (+100 cal, +6g protein, +8g fat)",
        )
    if "with extra" in lowered:
        return replace(
            record,
            name=f"{record.name} (extra)",
            calories=round_half_up(record.calories * EXTRA_FACTOR),
            assumptions="Added extra portions (+20%)",
        )
    return record


def _apply_removal(record: FoodRecord, lowered: str) -> FoodRecord:
    if "without" in lowered or "no sauce" in lowered or "no mayo" in lowered:
        return replace(
            record,
            calories=round_half_up(record.calories * NO_SAUCE_CALORIE_FACTOR),
            fat_g=record.fat_g * NO_SAUCE_FAT_FACTOR,
            assumptions="Removed sauce/condiments (-10% calories, -20% fat)",
        )
    return record

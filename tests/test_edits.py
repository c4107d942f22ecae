"""Tests for the edit grammar."""

from uuid import uuid4

import pytest

from meal_parser.domain.foods import FoodRecord
from meal_parser.services.edits import apply_edit, describe_edit, round_half_up
from tests.conftest import FIXED_NOW


def _record(**overrides: object) -> FoodRecord:
    values: dict[str, object] = {
        "id": uuid4(),
        "name": "Fries",
        "calories": 333,
        "protein_g": 4.0,
        "carbs_g": 43.0,
        "fat_g": 16.0,
        "timestamp": FIXED_NOW,
        "notes": "from lunch",
        "assumptions": "McDonald's fries, medium size",
    }
    values.update(overrides)
    return FoodRecord(**values)


def test_empty_instruction_returns_equal_record() -> None:
    original = _record()

    assert apply_edit(original, "") == original


def test_unmatched_instruction_keeps_assumptions() -> None:
    original = _record()

    edited = apply_edit(original, "actually it was tasty")

    assert edited == original
    assert edited.assumptions == original.assumptions


def test_make_it_large_scales_and_renames() -> None:
    original = _record()

    edited = apply_edit(original, "make it large")

    assert edited.calories == 500
    assert edited.name == "Large Fries"
    assert edited.protein_g == 6.0
    assert edited.carbs_g == 64.5
    assert edited.fat_g == 24.0
    assert edited.assumptions == "Adjusted to large portion size (1.5x)"
    assert edited.id == original.id


def test_large_replaces_medium_in_fries_name() -> None:
    edited = apply_edit(_record(name="Medium Fries"), "large")

    assert edited.name == "Large Fries"


def test_small_scales_down() -> None:
    edited = apply_edit(_record(name="Big Mac", calories=563), "small one")

    assert edited.name == "Small Big Mac"
    assert edited.calories == 422
    assert edited.fat_g == 12.0


def test_add_and_remove_calories() -> None:
    original = _record(calories=50)

    assert apply_edit(original, "add 100").calories == 150
    assert apply_edit(original, "add 200 please").calories == 250
    assert apply_edit(original, "remove 100").calories == 0
    assert apply_edit(original, "subtract 100 cal").assumptions == (
        "Removed 100 calories as requested"
    )


def test_remove_without_amount_is_ignored() -> None:
    original = _record()

    assert apply_edit(original, "remove it") == original


def test_with_cheese_adds_macros_and_suffix() -> None:
    edited = apply_edit(_record(name="Burger", calories=500), "with cheese")

    assert edited.name == "Burger with cheese"
    assert edited.calories == 600
    assert edited.protein_g == 10.0
    assert edited.fat_g == 24.0


def test_with_extra_applies_after_earlier_rules() -> None:
    edited = apply_edit(_record(name="Rice", calories=100), "add 100 with extra")

    assert edited.calories == 240
    assert edited.name == "Rice (extra)"
    assert edited.assumptions == "Added extra portions (+20%)"


def test_without_sauce_reduces_calories_and_fat() -> None:
    edited = apply_edit(_record(name="Wrap", calories=400, fat_g=20.0), "no mayo")

    assert edited.calories == 360
    assert edited.fat_g == pytest.approx(16.0)


def test_rules_compose_and_last_note_wins() -> None:
    original = _record(name="Burger", calories=500, fat_g=20.0)

    edited = apply_edit(original, "large with cheese without sauce")

    assert edited.name == "Large Burger with cheese"
    assert edited.calories == round_half_up((500 * 1.5 + 100) * 0.9)
    assert edited.assumptions == "Removed sauce/condiments (-10% calories, -20% fat)"


def test_identity_and_timestamp_preserved_for_any_instruction() -> None:
    original = _record()

    for instruction in ["large", "small", "add 100", "with cheese", "no sauce", "?"]:
        edited = apply_edit(original, instruction)
        assert edited.id == original.id
        assert edited.timestamp == original.timestamp
        assert edited.notes == original.notes


def test_round_half_up() -> None:
    assert round_half_up(499.5) == 500
    assert round_half_up(0.49) == 0
    assert round_half_up(2.5) == 3


def test_describe_edit_reports_changes() -> None:
    original = _record()
    edited = apply_edit(original, "make it large")

    message = describe_edit(original, edited)

    assert message == "updated: updated to Large Fries, +167 cal, +2g protein"


def test_describe_edit_reports_nothing_changed() -> None:
    original = _record()

    assert describe_edit(original, original) == "nothing changed"

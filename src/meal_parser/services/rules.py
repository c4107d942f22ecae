"""Deterministic phrase-matching extractor used when no remote model is usable."""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from meal_parser.domain.foods import ExtractionResult, FoodDraft

FALLBACK_CONFIDENCE = 0.8
GENERIC_ASSUMPTION = "could not parse specific food, using generic estimate"
BREAKFAST_HOUR = 8

_SIZE_WORDS = ("large", "medium")
_CLAUSE_BREAK = re.compile(r"[,;.]|\band\b|\bwith\b|\bplus\b|\bthen\b")

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NutritionRow:
    """Fixed nutrition values for one serving."""

    calories: int
    protein_g: float
    carbs_g: float
    fat_g: float


@dataclass(frozen=True)
class FoodRule:
    """Maps trigger phrases to a fixed nutrition row.

    Rules with ``sizes`` pick a row by a "large"/"medium" qualifier found in
    the same clause as the phrase, falling back to ``default_size``.
    """

    name: str
    phrases: tuple[str, ...]
    nutrition: NutritionRow
    assumption: str
    sizes: dict[str, NutritionRow] = field(default_factory=dict)
    default_size: str | None = None

    def match(self, lowered: str) -> int | None:
        """Return the index of the first matching phrase, if any."""
        for phrase in self.phrases:
            index = lowered.find(phrase)
            if index >= 0:
                return index
        return None


GENERIC_ROW = NutritionRow(calories=200, protein_g=10, carbs_g=20, fat_g=8)

DEFAULT_RULES: tuple[FoodRule, ...] = (
    FoodRule(
        name="Big Mac",
        phrases=("big mac",),
        nutrition=NutritionRow(calories=563, protein_g=26, carbs_g=45, fat_g=33),
        assumption="Standard McDonald's Big Mac",
    ),
    FoodRule(
        name="Fries",
        phrases=("french fries", "fries"),
        nutrition=NutritionRow(calories=333, protein_g=4, carbs_g=43, fat_g=16),
        assumption="McDonald's fries",
        sizes={
            "medium": NutritionRow(calories=333, protein_g=4, carbs_g=43, fat_g=16),
            "large": NutritionRow(calories=444, protein_g=5, carbs_g=57, fat_g=22),
        },
        default_size="medium",
    ),
    FoodRule(
        name="Diet Coke",
        phrases=("diet coke", "diet cola"),
        nutrition=NutritionRow(calories=0, protein_g=0, carbs_g=0, fat_g=0),
        assumption="Standard diet cola",
    ),
    FoodRule(
        name="Egg Sandwich",
        phrases=("egg",),
        nutrition=NutritionRow(calories=320, protein_g=18, carbs_g=28, fat_g=14),
        assumption="Standard egg sandwich with bread",
    ),
    FoodRule(
        name="Bagel with Cream Cheese",
        phrases=("bagel",),
        nutrition=NutritionRow(calories=380, protein_g=13, carbs_g=56, fat_g=11),
        assumption="Plain bagel with 2 tbsp cream cheese",
    ),
)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class RuleBasedExtractor:
    """Extractor that never fails and always returns at least one draft."""

    rules: list[FoodRule] = field(default_factory=lambda: list(DEFAULT_RULES))
    clock: Callable[[], datetime] = _utc_now
    source: str = "rules"

    async def extract(self, text: str, attempt: int) -> ExtractionResult:
        """Strategy entrypoint; the attempt index does not change the result."""
        return self.extract_fallback(text)

    def extract_fallback(self, text: str) -> ExtractionResult:
        """Match known phrases in the text and build one draft per match."""
        lowered = text.lower()
        timestamp = resolve_timestamp(lowered, self.clock())
        drafts: list[FoodDraft] = []
        for rule in self.rules:
            index = rule.match(lowered)
            if index is None:
                continue
            drafts.append(_draft_for_rule(rule, lowered, index, timestamp))

        if not drafts:
            drafts.append(
                FoodDraft(
                    name="Unrecognized food",
                    calories=GENERIC_ROW.calories,
                    protein_g=GENERIC_ROW.protein_g,
                    carbs_g=GENERIC_ROW.carbs_g,
                    fat_g=GENERIC_ROW.fat_g,
                    timestamp=timestamp,
                    assumptions=GENERIC_ASSUMPTION,
                )
            )

        _logger.info("Rule-based extraction produced %s drafts", len(drafts))
        return ExtractionResult(
            drafts=drafts,
            confidence=FALLBACK_CONFIDENCE,
            notes=_summary_note(len(drafts)),
        )


def resolve_timestamp(lowered: str, now: datetime) -> datetime:
    """Pin the timestamp from temporal words that apply to the whole utterance."""
    timestamp = now
    if "breakfast" in lowered:
        timestamp = timestamp.replace(
            hour=BREAKFAST_HOUR, minute=0, second=0, microsecond=0
        )
    if "yesterday" in lowered:
        timestamp = timestamp - timedelta(days=1)
    return timestamp


def _draft_for_rule(
    rule: FoodRule, lowered: str, index: int, timestamp: datetime
) -> FoodDraft:
    size = None
    if rule.sizes:
        size = _size_in_clause(lowered, index)
        if size not in rule.sizes:
            size = rule.default_size
    if size is None:
        return FoodDraft(
            name=rule.name,
            calories=rule.nutrition.calories,
            protein_g=rule.nutrition.protein_g,
            carbs_g=rule.nutrition.carbs_g,
            fat_g=rule.nutrition.fat_g,
            timestamp=timestamp,
            assumptions=rule.assumption,
        )
    row = rule.sizes.get(size, rule.nutrition)
    return FoodDraft(
        name=f"{size.title()} {rule.name}",
        calories=row.calories,
        protein_g=row.protein_g,
        carbs_g=row.carbs_g,
        fat_g=row.fat_g,
        timestamp=timestamp,
        assumptions=f"{rule.assumption}, {size} size",
    )


def _size_in_clause(lowered: str, index: int) -> str | None:
    """Return a size word from the clause that ends at ``index``."""
    prefix = lowered[:index]
    start = 0
    for boundary in _CLAUSE_BREAK.finditer(prefix):
        start = boundary.end()
    clause = prefix[start:]
    for word in _SIZE_WORDS:
        if re.search(rf"\b{word}\b", clause):
            return word
    return None


def _summary_note(count: int) -> str:
    noun = "item" if count == 1 else "items"
    return f"Estimated {count} {noun} from typical values"

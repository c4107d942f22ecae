"""Remote extraction contract and the strategy that validates it."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime, tzinfo
from typing import Protocol

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from meal_parser.domain.foods import ExtractionResult, FoodDraft, FoodRecord
from meal_parser.errors import ExtractionUnavailableError, MalformedResponseError

_logger = logging.getLogger(__name__)

EXTRACTION_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "foods": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "calories": {"type": "integer", "minimum": 0},
                    "protein": {"type": "number", "minimum": 0},
                    "carbs": {"type": "number", "minimum": 0},
                    "fat": {"type": "number", "minimum": 0},
                    "timestampISO8601": {"type": "string"},
                    "assumptions": {"anyOf": [{"type": "string"}, {"type": "null"}]},
                },
                "required": [
                    "name",
                    "calories",
                    "protein",
                    "carbs",
                    "fat",
                    "timestampISO8601",
                    "assumptions",
                ],
                "additionalProperties": False,
            },
        },
        "confidence": {"type": "number", "minimum": 0.0, "maximum": 1.0},
        "notes": {"anyOf": [{"type": "string"}, {"type": "null"}]},
    },
    "required": ["foods", "confidence", "notes"],
    "additionalProperties": False,
}


class EditTarget(BaseModel):
    """Existing entry that an edit instruction applies to."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    calories: int
    protein: float
    carbs: float
    fat: float
    timestamp: str = Field(alias="timestampISO8601")

    @classmethod
    def from_record(cls, record: FoodRecord) -> "EditTarget":
        """Describe a stored record in wire terms."""
        return cls(
            name=record.name,
            calories=record.calories,
            protein=record.protein_g,
            carbs=record.carbs_g,
            fat=record.fat_g,
            timestamp=record.timestamp.isoformat(),
        )


class ExtractionRequest(BaseModel):
    """Request sent to a remote extraction service.

    When ``edit_target`` is set, ``raw_text`` is an edit instruction for that
    entry and the reply describes the edited entry as its first food.
    """

    model_config = ConfigDict(populate_by_name=True)

    raw_text: str = Field(alias="rawText")
    attempt_index: int = Field(alias="attemptIndex", ge=0)
    current_time: str = Field(alias="currentTimeISO8601")
    edit_target: EditTarget | None = Field(default=None, alias="editTarget")


class RemoteFood(BaseModel):
    """Single food as returned by the remote extractor."""

    name: str = Field(min_length=1)
    calories: int = Field(ge=0)
    protein: float = Field(ge=0.0)
    carbs: float = Field(ge=0.0)
    fat: float = Field(ge=0.0)
    timestamp: str = Field(
        validation_alias=AliasChoices("timestampISO8601", "timestamp")
    )
    assumptions: str | None = None


class RemoteExtraction(BaseModel):
    """Structured response of the remote extractor."""

    foods: list[RemoteFood]
    confidence: float = Field(ge=0.0, le=1.0)
    notes: str | None = None


class ExtractionClient(Protocol):
    """Transport to a remote extraction service."""

    async def extract(self, request: ExtractionRequest) -> dict[str, object]:
        """Return the raw response payload for a request."""


class Extractor(Protocol):
    """Strategy that turns text into an extraction result."""

    source: str

    async def extract(self, text: str, attempt: int) -> ExtractionResult:
        """Extract drafts from text for the given zero-based attempt."""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class RemoteExtractor:
    """Extractor backed by a remote client with strict contract validation.

    Any transport failure raises ``ExtractionUnavailableError``; a reply that
    does not validate raises ``MalformedResponseError``.
    """

    client: ExtractionClient
    clock: Callable[[], datetime] = _utc_now
    source: str = "remote"

    async def extract(self, text: str, attempt: int) -> ExtractionResult:
        """Call the remote client and convert its reply into drafts."""
        now = self.clock()
        request = ExtractionRequest(
            raw_text=text,
            attempt_index=attempt,
            current_time=now.isoformat(),
        )
        parsed = await _fetch(self.client, request)
        drafts = [_to_draft(food, now) for food in parsed.foods]
        return ExtractionResult(
            drafts=drafts, confidence=parsed.confidence, notes=parsed.notes
        )


@dataclass
class RemoteEditor:
    """Applies edit instructions through the remote client.

    The edited entry is the first food of the reply. It keeps the original
    id and notes; name, macros, timestamp and assumptions come from the
    reply. Failures raise the same errors as ``RemoteExtractor``.
    """

    client: ExtractionClient
    clock: Callable[[], datetime] = _utc_now

    async def edit(self, original: FoodRecord, instruction: str) -> FoodRecord:
        """Return the edited copy of ``original``."""
        request = ExtractionRequest(
            raw_text=instruction,
            attempt_index=0,
            current_time=self.clock().isoformat(),
            edit_target=EditTarget.from_record(original),
        )
        parsed = await _fetch(self.client, request)
        if not parsed.foods:
            raise MalformedResponseError("Edit reply contains no food")
        food = parsed.foods[0]
        return replace(
            original,
            name=food.name,
            calories=food.calories,
            protein_g=food.protein,
            carbs_g=food.carbs,
            fat_g=food.fat,
            timestamp=parse_timestamp(food.timestamp, original.timestamp),
            assumptions=food.assumptions,
        )


async def _fetch(
    client: ExtractionClient, request: ExtractionRequest
) -> RemoteExtraction:
    try:
        raw = await client.extract(request)
    except ExtractionUnavailableError:
        raise
    except Exception as exc:
        raise ExtractionUnavailableError(str(exc)) from exc

    try:
        return RemoteExtraction.model_validate(raw)
    except ValidationError as exc:
        raise MalformedResponseError(str(exc)) from exc


def _to_draft(food: RemoteFood, now: datetime) -> FoodDraft:
    return FoodDraft(
        name=food.name,
        calories=food.calories,
        protein_g=food.protein,
        carbs_g=food.carbs,
        fat_g=food.fat,
        timestamp=parse_timestamp(food.timestamp, now),
        assumptions=food.assumptions,
    )


def parse_timestamp(raw: str, default: datetime) -> datetime:
    """Parse an ISO 8601 timestamp, falling back to ``default``.

    Naive values are read in the timezone of ``default``.
    """
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        _logger.warning("Failed to parse timestamp %r, using %s", raw, default)
        return default
    if parsed.tzinfo is None:
        zone: tzinfo = default.tzinfo or UTC
        parsed = parsed.replace(tzinfo=zone)
    return parsed

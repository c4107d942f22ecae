"""Domain models for parse decisions and retry sessions."""

from dataclasses import dataclass, field
from enum import Enum

from meal_parser.domain.foods import FoodDraft, FoodRecord

CONFIDENCE_THRESHOLD = 0.5
MAX_ATTEMPTS = 3


class ParseDecision(str, Enum):
    """What the caller should do with an extraction."""

    RETRY = "retry"
    COMMIT = "commit"
    FAILED = "failed"
    ABANDONED = "abandoned"


class SessionState(str, Enum):
    """States of a retry conversation."""

    IDLE = "idle"
    ATTEMPTED = "attempted"
    COMMITTED = "committed"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class ParseOutcome:
    """Result of one orchestrated extraction attempt."""

    decision: ParseDecision
    attempt: int
    next_attempt: int
    confidence: float
    drafts: list[FoodDraft] = field(default_factory=list)
    message: str | None = None
    notes: str | None = None
    caveat: str | None = None
    source: str = "rules"


@dataclass(frozen=True)
class LogOutcome:
    """Outcome of processing an utterance, after any commit."""

    decision: ParseDecision
    message: str
    attempt: int
    confidence: float
    entries: list[FoodRecord] = field(default_factory=list)
    caveat: str | None = None


@dataclass(frozen=True)
class EditOutcome:
    """Outcome of applying an edit instruction."""

    record: FoodRecord
    changed: bool
    message: str

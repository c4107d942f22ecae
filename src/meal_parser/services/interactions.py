"""In-memory log of extraction and edit interactions for debugging."""

from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

MAX_INTERACTIONS = 100


class InteractionType(str, Enum):
    """Kind of interaction entry."""

    REQUEST = "request"
    RESPONSE = "response"
    ERROR = "error"


@dataclass(frozen=True)
class Interaction:
    """A single recorded interaction."""

    timestamp: datetime
    kind: InteractionType
    input: str
    output: str | None


@dataclass
class InteractionLog:
    """Bounded, newest-first record of interactions."""

    max_entries: int = MAX_INTERACTIONS
    _entries: deque[Interaction] = field(init=False)

    def __post_init__(self) -> None:
        self._entries = deque(maxlen=self.max_entries)

    def record(
        self, kind: InteractionType, input_text: str, output: str | None = None
    ) -> None:
        """Store an interaction, dropping the oldest when full."""
        self._entries.appendleft(
            Interaction(
                timestamp=datetime.now(tz=UTC),
                kind=kind,
                input=input_text,
                output=output,
            )
        )

    def entries(self) -> list[Interaction]:
        """Return interactions, newest first."""
        return list(self._entries)

    def clear(self) -> None:
        """Drop all interactions."""
        self._entries.clear()

    def export_text(self) -> str:
        """Render interactions as plain text."""
        lines = ["=== Interactions ==="]
        for entry in self._entries:
            lines.append(f"[{entry.timestamp.isoformat()}] {entry.kind.value}")
            lines.append(f"Input: {entry.input}")
            if entry.output is not None:
                lines.append(f"Output: {entry.output}")
        return "\n".join(lines)

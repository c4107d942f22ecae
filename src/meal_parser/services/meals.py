"""Meal logging service that commits extractions and applies edits."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from uuid import UUID, uuid4

from meal_parser.domain.foods import EditInstruction, FoodRecord
from meal_parser.domain.parsing import (
    EditOutcome,
    LogOutcome,
    ParseDecision,
    SessionState,
)
from meal_parser.errors import (
    ExtractionUnavailableError,
    InputValidationError,
    MalformedResponseError,
    RecordNotFoundError,
)
from meal_parser.services.edits import apply_edit, describe_edit
from meal_parser.services.extraction import RemoteEditor
from meal_parser.services.interactions import InteractionLog, InteractionType
from meal_parser.services.parsing import ParsingOrchestrator, RetrySession
from meal_parser.services.records import RecordStore

DEFAULT_SESSION = "default"
ABANDONED_MESSAGE = "Okay, dropped that one."

_logger = logging.getLogger(__name__)


@dataclass
class KeyedLocks:
    """One ``asyncio.Lock`` per key, kept only while the key is in use."""

    _locks: dict[str, asyncio.Lock] = field(default_factory=dict)
    _users: dict[str, int] = field(default_factory=dict)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Serialize callers that use the same key."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def in_use(self, key: str) -> bool:
        """Return whether any caller holds or waits for a key."""
        return key in self._users

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class MealLogService:
    """Drives the orchestrator, owns retry sessions, and writes the store.

    Calls for the same session key are serialized, and so are changes to
    the same record. Sessions are only kept while a clarification chain is
    pending.
    """

    orchestrator: ParsingOrchestrator
    store: RecordStore
    interactions: InteractionLog | None = None
    editor: RemoteEditor | None = None
    _sessions: dict[str, RetrySession] = field(default_factory=dict)
    _session_locks: KeyedLocks = field(default_factory=KeyedLocks)
    _record_locks: KeyedLocks = field(default_factory=KeyedLocks)

    def session(self, session_id: str = DEFAULT_SESSION) -> RetrySession:
        """Return the retry session for a key; unknown keys read as fresh."""
        return self._sessions.get(session_id) or RetrySession()

    async def process_text(
        self, text: str, session_id: str = DEFAULT_SESSION
    ) -> LogOutcome:
        """Extract foods from text and commit them unless a retry is needed."""
        cleaned = text.strip()
        if not cleaned:
            raise InputValidationError("Meal description must not be empty")

        try:
            async with self._session_locks.hold(session_id):
                session = self._sessions.setdefault(session_id, RetrySession())
                attempt = session.current_attempt()
                generation = session.generation
                _logger.info(
                    "Processing text for session %s (attempt %s)",
                    session_id,
                    attempt + 1,
                )
                outcome = await self.orchestrator.extract(cleaned, attempt)
                if session.generation != generation:
                    _logger.info("Session %s was abandoned mid-attempt", session_id)
                    return LogOutcome(
                        decision=ParseDecision.ABANDONED,
                        message=ABANDONED_MESSAGE,
                        attempt=attempt,
                        confidence=outcome.confidence,
                    )
                session.record(outcome)

                entries: list[FoodRecord] = []
                if outcome.decision is ParseDecision.COMMIT:
                    for draft in outcome.drafts:
                        record = draft.to_record(uuid4())
                        self.store.append(record)
                        entries.append(record)
                    _logger.info("Committed %s entries", len(entries))
        finally:
            self._forget_idle_session(session_id)

        return LogOutcome(
            decision=outcome.decision,
            message=outcome.message or "",
            attempt=outcome.attempt,
            confidence=outcome.confidence,
            entries=entries,
            caveat=outcome.caveat,
        )

    def abandon(self, session_id: str = DEFAULT_SESSION) -> None:
        """Abandon the retry chain for a session key, including a running attempt."""
        session = self._sessions.get(session_id)
        if session is None:
            return
        session.abandon()
        self._forget_idle_session(session_id)

    async def edit_entry(self, edit: EditInstruction) -> EditOutcome:
        """Apply a free-text edit to its target record and store the result."""
        record_id = edit.record_id
        async with self._record_locks.hold(str(record_id)):
            original = self._require(record_id)
            edited = await self._apply_edit(original, edit.text)
            message = describe_edit(original, edited)
            self._record_interaction(
                f"Original: {original.name} ({original.calories} cal) | "
                f"Edit: {edit.text}",
                message,
            )
            changed = edited != original
            if changed:
                self.store.replace(record_id, edited)
        return EditOutcome(record=edited, changed=changed, message=message)

    async def update_entry(self, record_id: UUID, **changes: object) -> FoodRecord:
        """Overwrite fields of a record directly, keeping its id."""
        async with self._record_locks.hold(str(record_id)):
            original = self._require(record_id)
            changes.pop("id", None)
            updated = replace(original, **changes)
            self.store.replace(record_id, updated)
        return updated

    async def delete_entry(self, record_id: UUID) -> None:
        """Remove a record."""
        async with self._record_locks.hold(str(record_id)):
            self._require(record_id)
            self.store.remove(record_id)

    def list_entries(self) -> list[FoodRecord]:
        """Return all records in insertion order."""
        return self.store.all()

    async def _apply_edit(self, original: FoodRecord, instruction: str) -> FoodRecord:
        if self.editor is not None:
            try:
                return await self.editor.edit(original, instruction)
            except MalformedResponseError as exc:
                _logger.warning("Remote editor returned malformed data: %s", exc)
            except ExtractionUnavailableError as exc:
                _logger.info("Remote editor unavailable, using rules: %s", exc)
        return apply_edit(original, instruction)

    def _require(self, record_id: UUID) -> FoodRecord:
        record = self.store.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    def _forget_idle_session(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is None or self._session_locks.in_use(session_id):
            return
        if session.state is not SessionState.ATTEMPTED:
            del self._sessions[session_id]

    def _record_interaction(self, input_text: str, output: str) -> None:
        if self.interactions is not None:
            self.interactions.record(InteractionType.RESPONSE, input_text, output)

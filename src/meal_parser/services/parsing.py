"""Parsing orchestrator and the bounded retry state machine."""

import logging
from dataclasses import dataclass

from meal_parser.domain.foods import ExtractionResult
from meal_parser.domain.parsing import (
    CONFIDENCE_THRESHOLD,
    MAX_ATTEMPTS,
    ParseDecision,
    ParseOutcome,
    SessionState,
)
from meal_parser.errors import ExtractionUnavailableError, MalformedResponseError
from meal_parser.services.extraction import Extractor
from meal_parser.services.interactions import InteractionLog, InteractionType
from meal_parser.services.rules import RuleBasedExtractor

_logger = logging.getLogger(__name__)

CLARIFY_MESSAGE = "I'm not quite sure I understood. Could you clarify?"
FAILURE_MESSAGE = "Hmm, I could not understand that. Mind trying again?"
LOW_CONFIDENCE_CAVEAT = "Low confidence estimate, please review these entries."


def decide(confidence: float, attempt: int) -> ParseDecision:
    """Gate a result on confidence while attempts remain."""
    if confidence < CONFIDENCE_THRESHOLD and attempt < MAX_ATTEMPTS - 1:
        return ParseDecision.RETRY
    return ParseDecision.COMMIT


@dataclass
class ParsingOrchestrator:
    """Selects remote or rule-based extraction and decides retry vs commit."""

    fallback: RuleBasedExtractor
    remote: Extractor | None = None
    interactions: InteractionLog | None = None

    async def extract(self, text: str, attempt: int) -> ParseOutcome:
        """Run one extraction attempt and return the decision for the caller."""
        self._record(InteractionType.REQUEST, text, f"attempt {attempt + 1}")
        try:
            result, source = await self._extract_with_fallback(text, attempt)
        except Exception as exc:
            _logger.exception("Extraction failed on every channel")
            self._record(InteractionType.ERROR, text, str(exc))
            return ParseOutcome(
                decision=ParseDecision.FAILED,
                attempt=attempt,
                next_attempt=attempt,
                confidence=0.0,
                message=FAILURE_MESSAGE,
            )

        self._record(
            InteractionType.RESPONSE,
            text,
            f"{source}: {len(result.drafts)} items, confidence {result.confidence}",
        )
        decision = decide(result.confidence, attempt)
        if decision is ParseDecision.RETRY:
            _logger.info(
                "Low confidence (%s) on attempt %s, requesting clarification",
                result.confidence,
                attempt + 1,
            )
            message = CLARIFY_MESSAGE
            if result.notes:
                message = f"{CLARIFY_MESSAGE} {result.notes}"
            return ParseOutcome(
                decision=decision,
                attempt=attempt,
                next_attempt=attempt + 1,
                confidence=result.confidence,
                message=message,
                notes=result.notes,
                source=source,
            )

        caveat = None
        if result.confidence < CONFIDENCE_THRESHOLD:
            caveat = LOW_CONFIDENCE_CAVEAT
        return ParseOutcome(
            decision=decision,
            attempt=attempt,
            next_attempt=0,
            confidence=result.confidence,
            drafts=list(result.drafts),
            message=_commit_message(result),
            notes=result.notes,
            caveat=caveat,
            source=source,
        )

    async def _extract_with_fallback(
        self, text: str, attempt: int
    ) -> tuple[ExtractionResult, str]:
        if self.remote is not None:
            try:
                return await self.remote.extract(text, attempt), self.remote.source
            except MalformedResponseError as exc:
                _logger.warning("Remote extractor returned malformed data: %s", exc)
            except ExtractionUnavailableError as exc:
                _logger.info("Remote extractor unavailable, using rules: %s", exc)
        return self.fallback.extract_fallback(text), self.fallback.source

    def _record(self, kind: InteractionType, text: str, output: str) -> None:
        if self.interactions is not None:
            self.interactions.record(kind, text, output)


def _commit_message(result: ExtractionResult) -> str:
    calories = sum(draft.calories for draft in result.drafts)
    protein = sum(draft.protein_g for draft in result.drafts)
    return f"Got it! Logged {calories} calories, {int(protein)}g protein."


@dataclass
class RetrySession:
    """Attempt counter for one utterance chain.

    The counter only moves when an outcome is recorded, so an attempt that
    was cancelled before returning leaves the session untouched. Every
    abandon starts a new ``generation``; callers compare it around an
    attempt to drop outcomes of a chain that was abandoned meanwhile.
    """

    attempt: int = 0
    state: SessionState = SessionState.IDLE
    last_confidence: float | None = None
    last_note: str | None = None
    generation: int = 0

    def current_attempt(self) -> int:
        """Return the attempt index for the next utterance."""
        if self.state in {SessionState.ABANDONED, SessionState.COMMITTED}:
            self.attempt = 0
            self.state = SessionState.IDLE
        return self.attempt

    def record(self, outcome: ParseOutcome) -> None:
        """Apply the transition for a completed attempt."""
        if outcome.decision is ParseDecision.FAILED:
            return
        self.last_confidence = outcome.confidence
        self.last_note = outcome.notes
        if outcome.decision is ParseDecision.COMMIT:
            self.attempt = 0
            self.state = SessionState.COMMITTED
            return
        self.attempt = outcome.next_attempt
        self.state = SessionState.ATTEMPTED

    def abandon(self) -> None:
        """Give up on the current chain; the next utterance starts fresh."""
        self.state = SessionState.ABANDONED
        self.generation += 1

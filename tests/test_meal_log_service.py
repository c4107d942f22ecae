"""Tests for the meal logging service."""

import asyncio
from dataclasses import dataclass
from uuid import uuid4

import pytest

from meal_parser.domain.foods import EditInstruction
from meal_parser.domain.parsing import LogOutcome, ParseDecision, SessionState
from meal_parser.errors import (
    ExtractionUnavailableError,
    InputValidationError,
    RecordNotFoundError,
)
from meal_parser.services.extraction import RemoteEditor
from meal_parser.services.interactions import InteractionLog
from meal_parser.services.meals import MealLogService
from meal_parser.services.records import RecordStore
from tests.conftest import (
    FIXED_NOW,
    FakeExtractionClient,
    InMemoryBlobStore,
    build_orchestrator,
    fixed_clock,
)


def _service(
    client: FakeExtractionClient | None = None,
    editor_client: FakeExtractionClient | None = None,
) -> MealLogService:
    editor = (
        RemoteEditor(client=editor_client, clock=fixed_clock)
        if editor_client is not None
        else None
    )
    return MealLogService(
        orchestrator=build_orchestrator(client),
        store=RecordStore(blob_store=InMemoryBlobStore()),
        interactions=InteractionLog(),
        editor=editor,
    )


def _low_confidence_client() -> FakeExtractionClient:
    client = FakeExtractionClient()
    client.payload = {**client.payload, "confidence": 0.2}
    return client


def test_process_text_commits_drafts() -> None:
    service = _service()

    outcome = asyncio.run(service.process_text("  a Big Mac and large fries "))

    assert outcome.decision is ParseDecision.COMMIT
    assert [entry.name for entry in outcome.entries] == ["Big Mac", "Large Fries"]
    assert service.list_entries() == outcome.entries
    assert outcome.entries[0].notes == "Standard McDonald's Big Mac"
    assert outcome.message == "Got it! Logged 1007 calories, 31g protein."


def test_blank_text_is_rejected() -> None:
    service = _service()

    with pytest.raises(InputValidationError):
        asyncio.run(service.process_text("   "))


def test_retry_then_forced_commit() -> None:
    service = _service(_low_confidence_client())

    first = asyncio.run(service.process_text("umm food", session_id="s1"))
    second = asyncio.run(service.process_text("the burrito", session_id="s1"))
    third = asyncio.run(service.process_text("a burrito!", session_id="s1"))

    assert [first.decision, second.decision, third.decision] == [
        ParseDecision.RETRY,
        ParseDecision.RETRY,
        ParseDecision.COMMIT,
    ]
    assert first.entries == []
    assert third.caveat is not None
    assert len(service.list_entries()) == 1
    assert service.session("s1").current_attempt() == 0


def test_sessions_are_independent() -> None:
    service = _service(_low_confidence_client())

    asyncio.run(service.process_text("hmm", session_id="a"))

    assert service.session("a").attempt == 1
    assert service.session("b").attempt == 0


def test_abandon_resets_next_utterance() -> None:
    service = _service(_low_confidence_client())
    asyncio.run(service.process_text("hmm", session_id="s"))

    service.abandon("s")
    outcome = asyncio.run(service.process_text("new meal", session_id="s"))

    assert service.session("s").state is SessionState.ATTEMPTED
    assert outcome.attempt == 0
    assert outcome.decision is ParseDecision.RETRY


def test_edit_entry_updates_store_and_keeps_id() -> None:
    service = _service()
    logged = asyncio.run(service.process_text("medium fries")).entries[0]
    edit = EditInstruction("make it large", logged.id)

    outcome = asyncio.run(service.edit_entry(edit))

    assert outcome.changed is True
    assert outcome.record.id == logged.id
    assert outcome.record.name == "Large Fries"
    assert outcome.record.calories == 500
    assert service.list_entries() == [outcome.record]


def test_edit_without_matching_rule_reports_nothing_changed() -> None:
    service = _service()
    logged = asyncio.run(service.process_text("bagel")).entries[0]
    writes_before = service.store.blob_store.writes
    edit = EditInstruction("hmm not sure", logged.id)

    outcome = asyncio.run(service.edit_entry(edit))

    assert outcome.changed is False
    assert outcome.message == "nothing changed"
    assert outcome.record == logged
    assert service.store.blob_store.writes == writes_before


def test_edit_unknown_entry_raises() -> None:
    service = _service()

    with pytest.raises(RecordNotFoundError):
        asyncio.run(service.edit_entry(EditInstruction("large", uuid4())))


def test_update_and_delete_entry() -> None:
    service = _service()
    logged = asyncio.run(service.process_text("diet coke")).entries[0]

    updated = asyncio.run(
        service.update_entry(logged.id, calories=1, id=uuid4(), notes="")
    )
    assert updated.id == logged.id
    assert updated.calories == 1
    assert updated.notes == ""

    asyncio.run(service.delete_entry(logged.id))
    assert service.list_entries() == []
    with pytest.raises(RecordNotFoundError):
        asyncio.run(service.delete_entry(logged.id))


@dataclass
class _SlowClient(FakeExtractionClient):
    delay: float = 0.05

    async def extract(self, request):  # type: ignore[no-untyped-def]
        self.requests.append(request)
        await asyncio.sleep(self.delay)
        return self.payload


async def _abandon_mid_attempt(
    service: MealLogService, session_id: str = "s"
) -> tuple[LogOutcome, LogOutcome]:
    task = asyncio.create_task(service.process_text("hmm", session_id=session_id))
    await asyncio.sleep(0.01)
    service.abandon(session_id)
    first = await task
    second = await service.process_text("new meal", session_id=session_id)
    return first, second


def test_abandon_during_attempt_keeps_counter_at_zero() -> None:
    client = _SlowClient()
    client.payload = {**client.payload, "confidence": 0.2}
    service = _service(client)

    first, second = asyncio.run(_abandon_mid_attempt(service))

    assert first.decision is ParseDecision.ABANDONED
    assert first.entries == []
    assert second.attempt == 0
    assert [request.attempt_index for request in client.requests] == [0, 0]
    assert service.session("s").attempt == 1


def test_abandon_during_confident_attempt_commits_nothing() -> None:
    client = _SlowClient()
    service = _service(client)

    first, second = asyncio.run(_abandon_mid_attempt(service))

    assert first.decision is ParseDecision.ABANDONED
    assert second.decision is ParseDecision.COMMIT
    assert len(service.list_entries()) == 1


def test_finished_sessions_and_locks_are_released() -> None:
    service = _service(_low_confidence_client())
    asyncio.run(service.process_text("hmm", session_id="pending"))
    asyncio.run(service.process_text("hmm", session_id="dropped"))

    service.abandon("dropped")

    assert set(service._sessions) == {"pending"}
    assert len(service._session_locks) == 0


def test_committed_session_and_record_locks_are_released() -> None:
    service = _service()
    logged = asyncio.run(service.process_text("bagel", session_id="b")).entries[0]

    asyncio.run(service.edit_entry(EditInstruction("large", logged.id)))
    asyncio.run(service.update_entry(logged.id, calories=10))
    asyncio.run(service.delete_entry(logged.id))

    assert "b" not in service._sessions
    assert service.session("b").state is SessionState.IDLE
    assert len(service._session_locks) == 0
    assert len(service._record_locks) == 0


def test_edit_uses_remote_editor_and_keeps_identity() -> None:
    editor_client = FakeExtractionClient()
    service = _service(editor_client=editor_client)
    logged = asyncio.run(service.process_text("bagel")).entries[0]

    outcome = asyncio.run(
        service.edit_entry(EditInstruction("it was a burrito", logged.id))
    )

    assert outcome.changed is True
    assert outcome.record.id == logged.id
    assert outcome.record.notes == logged.notes
    assert outcome.record.name == "Chicken Burrito"
    assert outcome.record.calories == 650
    assert outcome.record.assumptions == "Standard burrito with rice and beans"
    assert outcome.record.timestamp == FIXED_NOW.replace(minute=0)
    request = editor_client.requests[0]
    assert request.raw_text == "it was a burrito"
    assert request.edit_target is not None
    assert request.edit_target.name == "Bagel with Cream Cheese"
    assert request.edit_target.calories == 380


@pytest.mark.parametrize(
    "editor_client",
    [
        FakeExtractionClient(error=ExtractionUnavailableError("offline")),
        FakeExtractionClient(error=OSError("reset")),
        FakeExtractionClient(payload={"foods": [], "confidence": 0.9, "notes": None}),
        FakeExtractionClient(payload={"foods": [{"name": "x"}], "confidence": 0.9}),
    ],
)
def test_edit_falls_back_to_rules_when_remote_fails(
    editor_client: FakeExtractionClient,
) -> None:
    service = _service(editor_client=editor_client)
    logged = asyncio.run(service.process_text("bagel")).entries[0]

    outcome = asyncio.run(service.edit_entry(EditInstruction("large", logged.id)))

    assert outcome.record.id == logged.id
    assert outcome.record.name == "Large Bagel with Cream Cheese"
    assert outcome.record.calories == 570

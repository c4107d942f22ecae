"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from meal_parser.config import Settings
from meal_parser.containers import AppContainer
from meal_parser.errors import ExtractionUnavailableError
from meal_parser.services.extraction import (
    ExtractionClient,
    ExtractionRequest,
    RemoteExtractor,
)
from meal_parser.services.interactions import InteractionLog
from meal_parser.services.meals import MealLogService
from meal_parser.services.parsing import ParsingOrchestrator
from meal_parser.services.records import BlobStore, RecordStore
from meal_parser.services.rules import RuleBasedExtractor
from meal_parser.services.stats import StatsService

FIXED_NOW = datetime(2026, 3, 10, 12, 30, tzinfo=UTC)


def fixed_clock() -> datetime:
    return FIXED_NOW


@dataclass
class InMemoryBlobStore(BlobStore):
    """In-memory blob store for tests."""

    blobs: dict[str, str] = field(default_factory=dict)
    writes: int = 0
    fail_writes: bool = False

    def read(self, key: str) -> str | None:
        return self.blobs.get(key)

    def write(self, key: str, data: str) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.writes += 1
        self.blobs[key] = data


@dataclass
class FakeExtractionClient(ExtractionClient):
    """Fake remote client returning a fixed payload or raising."""

    payload: dict[str, object] = field(
        default_factory=lambda: {
            "foods": [
                {
                    "name": "Chicken Burrito",
                    "calories": 650,
                    "protein": 35.0,
                    "carbs": 70.0,
                    "fat": 22.0,
                    "timestampISO8601": "2026-03-10T12:00:00+00:00",
                    "assumptions": "Standard burrito with rice and beans",
                }
            ],
            "confidence": 0.9,
            "notes": None,
        }
    )
    error: Exception | None = None
    requests: list[ExtractionRequest] = field(default_factory=list)

    async def extract(self, request: ExtractionRequest) -> dict[str, object]:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.payload


def unavailable_client() -> FakeExtractionClient:
    return FakeExtractionClient(error=ExtractionUnavailableError("connection refused"))


def build_orchestrator(
    client: ExtractionClient | None = None,
    interactions: InteractionLog | None = None,
) -> ParsingOrchestrator:
    remote = (
        RemoteExtractor(client=client, clock=fixed_clock)
        if client is not None
        else None
    )
    return ParsingOrchestrator(
        fallback=RuleBasedExtractor(clock=fixed_clock),
        remote=remote,
        interactions=interactions,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        extraction_backend="rules",
        timezone="UTC",
        data_dir="/tmp/meal-parser-tests",
        api_token=None,
    )


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def extraction_client() -> FakeExtractionClient:
    return FakeExtractionClient()


@pytest.fixture
def container(
    settings: Settings,
    blob_store: InMemoryBlobStore,
    extraction_client: FakeExtractionClient,
) -> AppContainer:
    record_store = RecordStore.load(blob_store)
    interactions = InteractionLog()
    orchestrator = build_orchestrator(extraction_client, interactions)
    meal_log_service = MealLogService(
        orchestrator=orchestrator,
        store=record_store,
        interactions=interactions,
    )
    stats_service = StatsService(records=record_store, clock=fixed_clock)

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        record_store=record_store,
        orchestrator=orchestrator,
        meal_log_service=meal_log_service,
        stats_service=stats_service,
        interactions=interactions,
        close_resources=close_resources,
    )

"""Dependency container wiring for the application."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from supabase import create_client

from meal_parser.adapters.file_blob_store import FileBlobStore
from meal_parser.adapters.http_extraction_client import HttpxExtractionClient
from meal_parser.adapters.openai_extraction_client import OpenAIExtractionClient
from meal_parser.adapters.supabase_blob_store import SupabaseBlobStore
from meal_parser.config import Settings, resolve_backend
from meal_parser.services.extraction import RemoteEditor, RemoteExtractor
from meal_parser.services.interactions import InteractionLog
from meal_parser.services.meals import MealLogService
from meal_parser.services.parsing import ParsingOrchestrator
from meal_parser.services.records import BlobStore, RecordStore
from meal_parser.services.rules import RuleBasedExtractor
from meal_parser.services.stats import StatsService

_logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    record_store: RecordStore
    orchestrator: ParsingOrchestrator
    meal_log_service: MealLogService
    stats_service: StatsService
    interactions: InteractionLog
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    tz = resolved_settings.tz

    def clock() -> datetime:
        return datetime.now(tz=tz)

    blob_store: BlobStore
    if resolved_settings.uses_supabase:
        blob_store = SupabaseBlobStore(
            create_client(
                resolved_settings.supabase_url, resolved_settings.supabase_service_key
            )
        )
    else:
        blob_store = FileBlobStore(Path(resolved_settings.data_dir))
    record_store = RecordStore.load(blob_store)

    backend = resolve_backend(resolved_settings)
    _logger.info("Using %s extraction backend", backend)
    remote_client: HttpxExtractionClient | OpenAIExtractionClient | None = None
    if backend == "http":
        remote_client = HttpxExtractionClient.create(
            url=resolved_settings.extraction_url,
            api_key=resolved_settings.extraction_api_key,
            timeout_seconds=resolved_settings.extraction_timeout_seconds,
        )
    elif backend == "openai":
        remote_client = OpenAIExtractionClient.create(
            api_key=resolved_settings.openai_api_key,
            model=resolved_settings.openai_model,
            timeout_seconds=resolved_settings.extraction_timeout_seconds,
        )
    remote: RemoteExtractor | None = None
    editor: RemoteEditor | None = None
    if remote_client is not None:
        remote = RemoteExtractor(client=remote_client, clock=clock)
        editor = RemoteEditor(client=remote_client, clock=clock)

    interactions = InteractionLog()
    orchestrator = ParsingOrchestrator(
        fallback=RuleBasedExtractor(clock=clock),
        remote=remote,
        interactions=interactions,
    )
    meal_log_service = MealLogService(
        orchestrator=orchestrator,
        store=record_store,
        interactions=interactions,
        editor=editor,
    )
    stats_service = StatsService(records=record_store, tz=tz, clock=clock)

    async def close_resources() -> None:
        if remote_client is not None:
            await remote_client.close()

    return AppContainer(
        settings=resolved_settings,
        record_store=record_store,
        orchestrator=orchestrator,
        meal_log_service=meal_log_service,
        stats_service=stats_service,
        interactions=interactions,
        close_resources=close_resources,
    )

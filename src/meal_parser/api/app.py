"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from uuid import UUID

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

from meal_parser.api.schemas import (
    AbandonRequest,
    DailyCaloriesModel,
    DailyTotalsModel,
    EditRequest,
    EditResponse,
    EntryModel,
    EntryUpdate,
    ParseRequest,
    ParseResponse,
    SeriesResponse,
)
from meal_parser.app_logging import configure_logging
from meal_parser.containers import AppContainer
from meal_parser.domain.foods import EditInstruction
from meal_parser.errors import InputValidationError, RecordNotFoundError

_REQUIRED_FIELDS = {"name", "calories", "protein_g", "carbs_g", "fat_g", "timestamp"}
MAX_SERIES_DAYS = 366


def _container(request: Request) -> AppContainer:
    return request.app.state.container


async def require_token(
    request: Request, x_api_token: str | None = Header(default=None)
) -> None:
    """Check the API token when one is configured."""
    expected = _container(request).settings.api_token
    if expected and x_api_token != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container
    guarded = [Depends(require_token)]

    @app.exception_handler(InputValidationError)
    async def handle_invalid_input(
        request: Request, exc: InputValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc)},
        )

    @app.exception_handler(RecordNotFoundError)
    async def handle_not_found(
        request: Request, exc: RecordNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)}
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/meals/parse", dependencies=guarded)
    async def parse_meal(body: ParseRequest, request: Request) -> ParseResponse:
        """Extract foods from a description and log them when confident."""
        service = _container(request).meal_log_service
        outcome = await service.process_text(body.text, session_id=body.session_id)
        logger.info(
            "Parse outcome %s for session %s", outcome.decision.value, body.session_id
        )
        return ParseResponse(
            outcome=outcome.decision.value,
            message=outcome.message,
            attempt=outcome.attempt,
            confidence=outcome.confidence,
            caveat=outcome.caveat,
            entries=[EntryModel.from_record(entry) for entry in outcome.entries],
        )

    @app.post("/meals/abandon", dependencies=guarded)
    async def abandon(body: AbandonRequest, request: Request) -> dict[str, str]:
        """Drop the pending clarification chain for a session."""
        _container(request).meal_log_service.abandon(body.session_id)
        return {"status": "ok"}

    @app.get("/entries", dependencies=guarded)
    async def list_entries(request: Request) -> list[EntryModel]:
        """Return all entries in insertion order."""
        entries = _container(request).meal_log_service.list_entries()
        return [EntryModel.from_record(entry) for entry in entries]

    @app.put("/entries/{entry_id}", dependencies=guarded)
    async def update_entry(
        entry_id: UUID, body: EntryUpdate, request: Request
    ) -> EntryModel:
        """Overwrite entry fields manually."""
        changes = {
            key: value
            for key, value in body.model_dump(exclude_unset=True).items()
            if value is not None or key not in _REQUIRED_FIELDS
        }
        container = _container(request)
        timestamp = changes.get("timestamp")
        if isinstance(timestamp, datetime) and timestamp.tzinfo is None:
            changes["timestamp"] = timestamp.replace(tzinfo=container.settings.tz)
        updated = await container.meal_log_service.update_entry(entry_id, **changes)
        return EntryModel.from_record(updated)

    @app.delete("/entries/{entry_id}", dependencies=guarded)
    async def delete_entry(entry_id: UUID, request: Request) -> dict[str, str]:
        """Delete an entry."""
        await _container(request).meal_log_service.delete_entry(entry_id)
        return {"status": "ok"}

    @app.post("/entries/{entry_id}/edit", dependencies=guarded)
    async def edit_entry(
        entry_id: UUID, body: EditRequest, request: Request
    ) -> EditResponse:
        """Apply a free-text edit instruction to an entry."""
        outcome = await _container(request).meal_log_service.edit_entry(
            EditInstruction(text=body.instruction, record_id=entry_id)
        )
        return EditResponse(
            changed=outcome.changed,
            message=outcome.message,
            entry=EntryModel.from_record(outcome.record),
        )

    @app.get("/stats/today", dependencies=guarded)
    async def stats_today(request: Request) -> DailyTotalsModel:
        """Return today's totals."""
        totals = _container(request).stats_service.get_today()
        return DailyTotalsModel(
            day=totals.day,
            calories=totals.calories,
            protein_g=totals.protein_g,
            carbs_g=totals.carbs_g,
            fat_g=totals.fat_g,
        )

    @app.get("/stats/daily", dependencies=guarded)
    async def stats_daily(request: Request, days: int = 7) -> SeriesResponse:
        """Return per-day calories for the most recent days."""
        if days < 1 or days > MAX_SERIES_DAYS:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"days must be between 1 and {MAX_SERIES_DAYS}",
            )
        summary = _container(request).stats_service.get_period(days)
        return SeriesResponse(
            days=[
                DailyCaloriesModel(day_start=entry.day_start, calories=entry.calories)
                for entry in summary.daily
            ],
            total_calories=summary.total_calories,
            avg_calories=summary.avg_calories,
        )

    @app.get("/debug/interactions", dependencies=guarded)
    async def interactions(request: Request) -> dict[str, object]:
        """Return recent extraction and edit interactions."""
        entries = _container(request).interactions.entries()
        return {
            "interactions": [
                {
                    "timestamp": entry.timestamp.isoformat(),
                    "type": entry.kind.value,
                    "input": entry.input,
                    "output": entry.output,
                }
                for entry in entries
            ]
        }

    @app.get(
        "/debug/interactions/export",
        dependencies=guarded,
        response_class=PlainTextResponse,
    )
    async def export_interactions(request: Request) -> str:
        """Return recent interactions as plain text."""
        return _container(request).interactions.export_text()

    return app

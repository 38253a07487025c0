"""FastAPI JSON surface for the review queues."""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog
from fastapi import FastAPI, Header, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from boardreview.errors import (
    AccessDeniedError,
    InvalidDecisionCodeError,
    QueueNotFoundError,
    ReviewQueueError,
    StaleQueueError,
    UnknownQueueTypeError,
    UnknownReviewerError,
)
from boardreview.log import configure_logging
from boardreview.models import QueueSpecification, QueueView, SubmitOutcome
from boardreview.services import ReviewQueueService
from boardreview.settings import Settings, get_settings

logger = structlog.get_logger(__name__)

ERROR_STATUS = {
    AccessDeniedError: status.HTTP_403_FORBIDDEN,
    QueueNotFoundError: status.HTTP_404_NOT_FOUND,
    UnknownReviewerError: status.HTTP_404_NOT_FOUND,
    StaleQueueError: status.HTTP_409_CONFLICT,
    UnknownQueueTypeError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidDecisionCodeError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


class FilterUpdate(BaseModel):
    queue_type: Optional[str] = None
    board: Optional[int] = None
    topics: Optional[list[int]] = None
    cycle: Optional[int] = None
    tag: Optional[int] = None
    title: Optional[str] = None
    journal: Optional[str] = None
    sort: Optional[str] = None
    format: Optional[str] = None
    page_size: Optional[int] = None
    review_boards: Optional[str] = None


class DecisionUpdate(BaseModel):
    code: int


class SubmitRequest(BaseModel):
    decisions: Optional[dict[str, int]] = None


class DisplayDefaults(BaseModel):
    sort: Optional[str] = None
    format: Optional[str] = None
    page_size: Optional[int] = None
    review_boards: Optional[str] = None


class QueueCreated(BaseModel):
    queue_id: int


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Factory used by uvicorn."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(title="Board Review Queues")

    def queues() -> ReviewQueueService:
        return ReviewQueueService(settings)

    @app.exception_handler(ReviewQueueError)
    async def review_queue_error(request: Request, exc: ReviewQueueError) -> JSONResponse:
        code = ERROR_STATUS.get(type(exc))
        if code is None:
            logger.error("web.request_failed", path=request.url.path, error=str(exc))
            return JSONResponse(
                {"detail": "The review queue request could not be completed."},
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return JSONResponse({"detail": str(exc)}, status_code=code)

    @app.exception_handler(ValueError)
    async def invalid_value(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(
            {"detail": str(exc)}, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY
        )

    @app.post("/queues", status_code=status.HTTP_201_CREATED)
    async def open_queue(x_reviewer_id: int = Header(...)) -> QueueCreated:
        queue_id = await asyncio.to_thread(queues().reset_queue, x_reviewer_id)
        return QueueCreated(queue_id=queue_id)

    @app.get("/queues/{queue_id}")
    async def show_queue(
        queue_id: int, page: int = 0, x_reviewer_id: int = Header(...)
    ) -> QueueView:
        return await asyncio.to_thread(
            queues().build_queue_view, queue_id, x_reviewer_id, page
        )

    @app.post("/queues/{queue_id}/filters", status_code=status.HTTP_201_CREATED)
    async def filter_queue(
        queue_id: int, update: FilterUpdate, x_reviewer_id: int = Header(...)
    ) -> QueueCreated:
        fields = update.model_dump(exclude_none=True)
        new_id = await asyncio.to_thread(
            lambda: queues().update_filters(queue_id, x_reviewer_id, **fields)
        )
        return QueueCreated(queue_id=new_id)

    @app.put("/queues/{queue_id}/decisions/{article_id}/{topic_id}")
    async def queue_decision(
        queue_id: int,
        article_id: int,
        topic_id: int,
        update: DecisionUpdate,
        x_reviewer_id: int = Header(...),
    ) -> QueueSpecification:
        return await asyncio.to_thread(
            queues().toggle_decision, queue_id, x_reviewer_id, article_id, topic_id, update.code
        )

    @app.post("/queues/{queue_id}/submit")
    async def submit_queue(
        queue_id: int,
        payload: Optional[SubmitRequest] = None,
        x_reviewer_id: int = Header(...),
    ) -> SubmitOutcome:
        decisions = payload.decisions if payload else None
        return await asyncio.to_thread(
            queues().submit_decisions, queue_id, x_reviewer_id, decisions
        )

    @app.post("/queues/{queue_id}/defaults")
    async def save_defaults(
        queue_id: int,
        display: Optional[DisplayDefaults] = None,
        x_reviewer_id: int = Header(...),
    ) -> QueueSpecification:
        options = display.model_dump(exclude_none=True) if display else {}
        return await asyncio.to_thread(
            lambda: queues().save_as_default(queue_id, x_reviewer_id, **options)
        )

    return app

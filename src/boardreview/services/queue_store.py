"""Persistence of review queue specifications across requests."""

from __future__ import annotations

import json
from typing import Any

import structlog
from pydantic import ValidationError
from sqlmodel import Session

from boardreview.db import SavedRequest
from boardreview.errors import QueueNotFoundError, StaleQueueError
from boardreview.models import QueueSpecification

logger = structlog.get_logger(__name__)

QUEUE_KIND = "review queue"


class QueueSessionStore:
    def __init__(self, engine) -> None:
        self._engine = engine

    def save_parameters(self, kind: str, parameters: dict[str, Any]) -> int:
        with Session(self._engine, expire_on_commit=False) as session:
            record = SavedRequest(kind=kind, parameters=json.dumps(parameters))
            session.add(record)
            session.commit()
            session.refresh(record)
            return record.id

    def load_parameters(self, request_id: int) -> dict[str, Any]:
        with Session(self._engine) as session:
            record = session.get(SavedRequest, request_id)
            if record is None:
                raise QueueNotFoundError(f"saved request {request_id} not found")
            return json.loads(record.parameters or "{}")

    def create(self, spec: QueueSpecification) -> int:
        queue_id = self.save_parameters(QUEUE_KIND, spec.model_dump(mode="json"))
        logger.debug("queue.created", queue_id=queue_id, queue_type=spec.queue_type.value)
        return queue_id

    def load(self, queue_id: int) -> QueueSpecification:
        with Session(self._engine) as session:
            record = session.get(SavedRequest, queue_id)
            if record is None or record.kind != QUEUE_KIND:
                raise QueueNotFoundError(f"review queue {queue_id} not found")
            payload = json.loads(record.parameters or "{}")
        try:
            return QueueSpecification.model_validate(payload)
        except ValidationError as exc:
            logger.error("queue.unreadable", queue_id=queue_id, error=str(exc))
            raise QueueNotFoundError(f"review queue {queue_id} is unreadable") from exc

    def replace(self, queue_id: int, spec: QueueSpecification) -> QueueSpecification:
        """Store ``spec`` over the queue if nobody replaced it since it was loaded.

        ``spec.version`` must equal the stored version; the stored copy gets
        the next version number, which is returned.
        """
        with Session(self._engine, expire_on_commit=False) as session, session.begin():
            record = session.get(SavedRequest, queue_id, with_for_update=True)
            if record is None or record.kind != QUEUE_KIND:
                raise QueueNotFoundError(f"review queue {queue_id} not found")
            stored_version = json.loads(record.parameters or "{}").get("version", 1)
            if stored_version != spec.version:
                raise StaleQueueError(
                    f"review queue {queue_id} changed (version {stored_version}, "
                    f"expected {spec.version})"
                )
            updated = spec.model_copy(update={"version": spec.version + 1})
            record.parameters = json.dumps(updated.model_dump(mode="json"))
            session.add(record)
        return updated

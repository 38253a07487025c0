from __future__ import annotations

import json

import pytest
from sqlmodel import Session

from boardreview.db import SavedRequest
from boardreview.errors import QueueNotFoundError, StaleQueueError
from boardreview.models import QueueSpecification, QueueType, SortKey
from boardreview.services import QueueSessionStore


def test_create_and_load(engine):
    store = QueueSessionStore(engine)
    spec = QueueSpecification(
        queue_type=QueueType.FULL_TEXT, board=2, topics=(5, 6), decisions={"1|5": 4}
    )

    queue_id = store.create(spec)
    loaded = store.load(queue_id)

    assert loaded == spec
    assert loaded.queued_decision(1, 5) == 4
    assert loaded.queued_decision(1, 6) == 0


def test_replace_bumps_version(engine):
    store = QueueSessionStore(engine)
    queue_id = store.create(QueueSpecification(queue_type=QueueType.ABSTRACT))
    spec = store.load(queue_id)

    updated = store.replace(queue_id, spec.model_copy(update={"sort": SortKey.CORE}))

    assert updated.version == 2
    assert store.load(queue_id).sort is SortKey.CORE


def test_replace_with_stale_copy_is_rejected(engine):
    store = QueueSessionStore(engine)
    queue_id = store.create(QueueSpecification(queue_type=QueueType.ABSTRACT))
    first = store.load(queue_id)
    second = store.load(queue_id)
    store.replace(queue_id, first.model_copy(update={"decisions": {"1|2": 4}}))

    with pytest.raises(StaleQueueError):
        store.replace(queue_id, second.model_copy(update={"decisions": {"3|4": 3}}))

    assert store.load(queue_id).decisions == {"1|2": 4}


def test_missing_or_foreign_requests_are_not_queues(engine):
    store = QueueSessionStore(engine)
    other = store.save_parameters("search", {"query": "lung"})

    assert store.load_parameters(other) == {"query": "lung"}
    with pytest.raises(QueueNotFoundError):
        store.load(other)
    with pytest.raises(QueueNotFoundError):
        store.load(9999)
    with pytest.raises(QueueNotFoundError):
        store.replace(9999, QueueSpecification(queue_type=QueueType.ABSTRACT))


def test_unreadable_queue_is_not_found(engine):
    store = QueueSessionStore(engine)
    with Session(engine) as session:
        record = SavedRequest(kind="review queue", parameters=json.dumps({"page_size": 0}))
        session.add(record)
        session.commit()
        queue_id = record.id

    with pytest.raises(QueueNotFoundError):
        store.load(queue_id)

from __future__ import annotations

import pytest
from sqlmodel import Session

from boardreview.db import Topic
from boardreview.errors import AccessDeniedError, UnknownReviewerError
from boardreview.models import QueueType
from boardreview.services import PermissionGate, load_reviewer


def _load(engine, reviewer_id):
    with Session(engine) as session:
        return load_reviewer(session, reviewer_id)


def test_authorized_queue_types_follow_permissions(engine, world):
    gate = PermissionGate()

    assert gate.authorized_queue_types(_load(engine, world.librarian)) == [QueueType.LIBRARIAN]
    assert gate.authorized_queue_types(_load(engine, world.member)) == [
        QueueType.ABSTRACT,
        QueueType.FULL_TEXT,
        QueueType.ON_HOLD,
    ]
    with pytest.raises(AccessDeniedError):
        gate.authorized_queue_types(_load(engine, world.outsider))


def test_default_queue_prefers_abstract_review(engine, world):
    gate = PermissionGate()

    assert gate.default_queue_type(_load(engine, world.manager)) is QueueType.ABSTRACT
    assert gate.default_queue_type(_load(engine, world.librarian)) is QueueType.LIBRARIAN


def test_require_queue_rejects_unauthorized_type(engine, world):
    gate = PermissionGate()
    librarian = _load(engine, world.librarian)

    gate.require_queue(librarian, QueueType.LIBRARIAN)
    with pytest.raises(AccessDeniedError):
        gate.require_queue(librarian, QueueType.FULL_TEXT)


def test_topic_decisions_respect_board_assignment(engine, world):
    gate = PermissionGate()
    member = _load(engine, world.member)
    manager = _load(engine, world.manager)
    librarian = _load(engine, world.librarian)
    with Session(engine) as session:
        breast = session.get(Topic, world.breast)
        leukemia = session.get(Topic, world.leukemia)

    assert member.board_ids == (world.adult,)
    assert gate.can_decide_topic(member, breast, QueueType.ABSTRACT)
    assert not gate.can_decide_topic(member, leukemia, QueueType.ABSTRACT)
    assert gate.can_decide_topic(manager, leukemia, QueueType.FULL_TEXT)
    # Librarians screen every topic.
    assert gate.can_decide_topic(librarian, leukemia, QueueType.LIBRARIAN)
    assert not gate.can_decide_topic(member, breast, QueueType.LIBRARIAN)


def test_load_reviewer_unknown_id(engine, world):
    with pytest.raises(UnknownReviewerError):
        _load(engine, 424242)

from __future__ import annotations

import pytest
from sqlmodel import Session, select

from boardreview.db import Reviewer, StateRecord
from boardreview.errors import (
    AccessDeniedError,
    InvalidDecisionCodeError,
    StaleQueueError,
    UnknownReviewerError,
)
from boardreview.models import DisplayFormat, QueueType, ReviewBoardsMode, SortKey
from boardreview.services import RecordingObserver, ReviewQueueService
from boardreview.services.review_queue import APPLIED_MESSAGE


@pytest.fixture
def service(settings, world) -> ReviewQueueService:
    return ReviewQueueService(settings, observer=RecordingObserver())


def test_reset_queue_uses_reviewer_defaults(service, world):
    queue_id = service.reset_queue(world.member)
    spec = service.load_queue(queue_id)

    assert spec.queue_type is QueueType.ABSTRACT
    assert spec.board == world.adult
    assert spec.page_size == 10
    assert spec.decisions == {}
    assert not spec.filtered


def test_build_queue_view(service, world):
    queue_id = service.reset_queue(world.member)

    view = service.build_queue_view(queue_id, world.member)

    assert view.title == "Articles Waiting for Abstract Review (3)"
    assert view.pager.total == 3
    assert view.pager.pages == 1
    assert view.pager.start == 1
    assert [article.article_id for article in view.articles] == [
        world.articles["alpha"],
        world.articles["beta"],
    ]
    assert view.filter_options.queue_types == [
        "Abstract Review",
        "Full Text Review",
        "On Hold Review",
    ]
    assert list(view.filter_options.topics) == ["My Topics (2)", "Other Topics (1)"]
    assert view.filter_options.page_sizes == [10, 25, 50, 100]


def test_full_text_queue_shows_both_decision_sets(service, world):
    queue_id = service.update_filters(
        service.reset_queue(world.member), world.member, queue_type="Full Text Review"
    )

    view = service.build_queue_view(queue_id, world.member)

    assert view.pager.total == 2
    (article,) = view.articles
    topics = [topic for board in article.boards for topic in board.topics]
    assert len(topics) == 2
    assert all(len(topic.buttons) == 5 for topic in topics)


def test_nonexistent_topic_gives_empty_view(service, world):
    queue_id = service.update_filters(
        service.reset_queue(world.manager), world.manager, topics=[999999]
    )

    view = service.build_queue_view(queue_id, world.manager)

    assert view.pager.total == 0
    assert view.articles == []
    assert view.title == "Articles Waiting for Abstract Review (0)"


def test_view_denied_for_unauthorized_queue(service, world):
    queue_id = service.reset_queue(world.member)

    with pytest.raises(AccessDeniedError):
        service.build_queue_view(queue_id, world.librarian)
    with pytest.raises(AccessDeniedError):
        service.reset_queue(world.outsider)
    with pytest.raises(UnknownReviewerError):
        service.reset_queue(5150)


def test_update_filters_stores_new_queue(service, world):
    original = service.reset_queue(world.member)
    service.toggle_decision(original, world.member, world.articles["alpha"], world.breast, 4)

    filtered = service.update_filters(
        original, world.member, sort="core", page_size=25, topics=[world.breast]
    )
    spec = service.load_queue(filtered)

    assert filtered != original
    assert spec.sort is SortKey.CORE
    assert spec.page_size == 25
    assert spec.topics == (world.breast,)
    assert spec.decisions == {}
    assert spec.filtered
    assert service.load_queue(original).decisions == {f"{world.articles['alpha']}|{world.breast}": 4}


def test_board_change_drops_foreign_topics(service, world):
    queue_id = service.update_filters(
        service.reset_queue(world.manager), world.manager, board=world.adult, topics=[world.breast]
    )

    moved = service.load_queue(
        service.update_filters(queue_id, world.manager, board=world.pediatric)
    )

    assert moved.board == world.pediatric
    assert moved.topics == ()


def test_update_filters_rejects_unknown_fields(service, world):
    queue_id = service.reset_queue(world.member)

    with pytest.raises(ValueError):
        service.update_filters(queue_id, world.member, colour="blue")
    with pytest.raises(AccessDeniedError):
        service.update_filters(queue_id, world.member, queue_type="Librarian Review")


def test_toggle_decision(service, world):
    queue_id = service.reset_queue(world.member)
    article_id = world.articles["alpha"]

    spec = service.toggle_decision(queue_id, world.member, article_id, world.breast, 4)
    assert spec.decisions == {f"{article_id}|{world.breast}": 4}
    assert spec.version == 2
    assert service.queued_decision_items(spec) == [f"Article {article_id} approve for Breast Cancer"]

    spec = service.toggle_decision(queue_id, world.member, article_id, world.breast, 0)
    assert spec.decisions == {}
    assert spec.version == 3

    with pytest.raises(InvalidDecisionCodeError):
        service.toggle_decision(queue_id, world.member, article_id, world.breast, 1)


def test_toggle_decision_checks_the_reviewer(service, world):
    queue_id = service.reset_queue(world.member)
    article_id = world.articles["alpha"]

    with pytest.raises(AccessDeniedError):
        service.toggle_decision(queue_id, world.outsider, article_id, world.breast, 4)
    with pytest.raises(AccessDeniedError):
        service.toggle_decision(queue_id, world.librarian, article_id, world.breast, 4)
    with pytest.raises(AccessDeniedError):
        service.toggle_decision(queue_id, world.member, article_id, world.leukemia, 4)
    with pytest.raises(UnknownReviewerError):
        service.toggle_decision(queue_id, 5150, article_id, world.breast, 4)

    spec = service.load_queue(queue_id)
    assert spec.decisions == {}
    assert spec.version == 1


def test_queued_decisions_are_checked_in_view(service, world):
    queue_id = service.reset_queue(world.member)
    service.toggle_decision(queue_id, world.member, world.articles["beta"], world.breast, 3)

    view = service.build_queue_view(queue_id, world.member)

    beta = next(a for a in view.articles if a.article_id == world.articles["beta"])
    (topic,) = beta.boards[0].topics
    assert [button.checked for button in topic.buttons] == [False, True, False]
    assert view.queued_decisions == [f"Article {world.articles['beta']} reject for Breast Cancer"]


def test_submit_decisions_applies_and_resets(service, world, engine):
    queue_id = service.reset_queue(world.member)
    service.toggle_decision(queue_id, world.member, world.articles["alpha"], world.breast, 4)

    outcome = service.submit_decisions(queue_id, world.member)

    assert outcome.applied_count == 1
    assert outcome.message == APPLIED_MESSAGE
    assert outcome.queue_id != queue_id
    fresh = service.load_queue(outcome.queue_id)
    assert fresh.decisions == {}
    assert fresh.board == world.adult
    assert service.build_queue_view(outcome.queue_id, world.member).pager.total == 2
    with Session(engine) as session:
        current = session.exec(
            select(StateRecord).where(
                StateRecord.article_id == world.articles["alpha"],
                StateRecord.topic_id == world.breast,
                StateRecord.is_current == True,  # noqa: E712
            )
        ).all()
    assert [service.catalog.symbolic_name(record.state_id) for record in current] == [
        "passed_bm_review"
    ]


def test_submit_explicit_decisions_reports_warnings(service, world):
    queue_id = service.reset_queue(world.librarian)

    outcome = service.submit_decisions(
        queue_id, world.librarian, {f"{world.articles['delta']}|{world.breast}": 2}
    )

    assert outcome.applied_count == 0
    assert len(outcome.warnings) == 1
    assert outcome.message == "No decisions were applied."


def test_save_as_default_updates_reviewer(service, world, engine):
    queue_id = service.reset_queue(world.member)

    spec = service.save_as_default(
        queue_id, world.member, sort="journal", format="abstract", page_size=25, review_boards="mine"
    )

    assert spec.version == 2
    with Session(engine) as session:
        reviewer = session.get(Reviewer, world.member)
        assert (reviewer.review_sort, reviewer.review_format) == ("journal", "abstract")
        assert (reviewer.review_per_page, reviewer.review_boards) == (25, "mine")
    fresh = service.load_queue(service.reset_queue(world.member))
    assert fresh.sort is SortKey.JOURNAL
    assert fresh.format is DisplayFormat.ABSTRACT
    assert fresh.review_boards is ReviewBoardsMode.MINE
    with pytest.raises(ValueError):
        service.save_as_default(queue_id, world.member, board=1)


def test_save_as_default_keeps_preferences_on_stale_queue(service, world, engine, monkeypatch):
    queue_id = service.reset_queue(world.member)

    def stale(queue_id, spec):
        raise StaleQueueError(f"queue {queue_id} changed")

    monkeypatch.setattr(service._store, "replace", stale)
    with pytest.raises(StaleQueueError):
        service.save_as_default(queue_id, world.member, sort="journal", page_size=25)

    with Session(engine) as session:
        reviewer = session.get(Reviewer, world.member)
        assert (reviewer.review_sort, reviewer.review_per_page) == (None, None)


def test_save_as_default_unknown_reviewer_keeps_queue_version(service, world):
    queue_id = service.reset_queue(world.member)

    with pytest.raises(UnknownReviewerError):
        service.save_as_default(queue_id, 5150, sort="journal")

    assert service.load_queue(queue_id).version == 1

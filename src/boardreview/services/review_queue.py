"""Review queue workflows: build a queue page, queue decisions, apply them."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Mapping

import structlog
from sqlmodel import Session, select

from boardreview.db import Board, Cycle, Reviewer, TagTerm, Topic, get_engine
from boardreview.errors import AccessDeniedError, UnknownReviewerError
from boardreview.models import (
    SORT_LABELS,
    Decision,
    DisplayFormat,
    FilterOptions,
    PagerInfo,
    QueueSpecification,
    QueueView,
    ReviewBoardsMode,
    SortKey,
    SubmitOutcome,
    decision_key,
)
from boardreview.services.articles import load_articles
from boardreview.services.decisions import DecisionApplicationEngine, parse_decision_key, state_for_decision
from boardreview.services.permissions import PermissionGate, ReviewerContext, load_reviewer
from boardreview.services.picklist import TopicPicklistBuilder
from boardreview.services.planner import QueueQueryPlanner, unique_ids
from boardreview.services.queue_store import QueueSessionStore
from boardreview.services.renderer import ArticleDecisionRenderer, RenderContext, TypeAncestry
from boardreview.services.states import StateCatalog, ensure_workflow_states
from boardreview.services.trace import StructlogObserver, TraceObserver
from boardreview.settings import PAGE_SIZES, Settings

logger = structlog.get_logger(__name__)

FILTER_FIELDS = frozenset(
    {
        "queue_type",
        "board",
        "topics",
        "cycle",
        "tag",
        "title",
        "journal",
        "sort",
        "format",
        "page_size",
        "review_boards",
    }
)
DISPLAY_FIELDS = frozenset({"sort", "format", "page_size", "review_boards"})
APPLIED_MESSAGE = "Queued decisions have been applied."


class ReviewQueueService:
    def __init__(self, settings: Settings, observer: TraceObserver | None = None) -> None:
        self._settings = settings
        self._engine = get_engine(str(settings.db_path))
        self._observer = observer or StructlogObserver()
        self._gate = PermissionGate()
        self._store = QueueSessionStore(self._engine)
        with Session(self._engine) as session:
            ensure_workflow_states(session)
            self._catalog = StateCatalog.load(session)
        self._planner = QueueQueryPlanner(self._catalog, self._observer)
        self._picklists = TopicPicklistBuilder(self._catalog, self._observer)
        self._decisions = DecisionApplicationEngine(
            self._engine, self._catalog, self._gate, self._observer
        )

    @property
    def catalog(self) -> StateCatalog:
        return self._catalog

    def reset_queue(self, user_id: int) -> int:
        """Start a brand-new queue from the user's saved defaults."""
        with Session(self._engine) as session:
            reviewer = load_reviewer(session, user_id)
        spec = self._default_spec(reviewer)
        return self._store.create(spec)

    def load_queue(self, queue_id: int) -> QueueSpecification:
        return self._store.load(queue_id)

    def build_queue_view(self, queue_id: int, user_id: int, page: int = 0) -> QueueView:
        spec = self._store.load(queue_id)
        page = max(page, 0)
        with Session(self._engine) as session:
            reviewer = load_reviewer(session, user_id)
            queue_types = self._gate.authorized_queue_types(reviewer)
            if spec.queue_type not in queue_types:
                raise AccessDeniedError(f"not authorized for the {spec.queue_type.value} queue")
            state = spec.queue_type.target_state
            picklist = self._picklists.build(session, spec.board, state, reviewer.id)
            result = self._planner.execute(session, spec, page)
            bundles = load_articles(session, unique_ids(result.article_ids), self._catalog)
            renderer = ArticleDecisionRenderer(
                self._gate,
                TypeAncestry.load(session, self._observer),
                pubmed_base_url=self._settings.pubmed_base_url,
                observer=self._observer,
            )
            context = RenderContext(
                queue_type=spec.queue_type,
                reviewer=reviewer,
                decisions=spec.decisions,
                format=spec.format,
                review_boards=spec.review_boards,
            )
            articles = [renderer.render(bundle, context) for bundle in bundles]
            options = self._filter_options(session, queue_types)
            options.topics = picklist.as_options()
            queued = self._decision_items(session, spec)
        pager = PagerInfo(
            total=result.total,
            page=page,
            page_size=spec.page_size,
            start=1 + page * spec.page_size,
            pages=math.ceil(result.total / spec.page_size),
        )
        return QueueView(
            queue_id=queue_id,
            queue_type=spec.queue_type,
            title=f"Articles Waiting for {spec.queue_type.value} ({result.total})",
            specification=spec,
            filter_options=options,
            articles=articles,
            pager=pager,
            queued_decisions=queued,
        )

    def update_filters(self, queue_id: int, user_id: int, **fields: Any) -> int:
        """Store a new, filtered specification and return its id."""
        unknown = set(fields) - FILTER_FIELDS
        if unknown:
            raise ValueError(f"unknown queue fields: {', '.join(sorted(unknown))}")
        spec = self._store.load(queue_id)
        payload = spec.model_dump()
        payload.update(fields)
        payload.update(decisions={}, filtered=True, version=1)
        updated = QueueSpecification.model_validate(payload)
        with Session(self._engine) as session:
            reviewer = load_reviewer(session, user_id)
            self._gate.require_queue(reviewer, updated.queue_type)
            if updated.board != spec.board and updated.topics and updated.board is not None:
                picklist = self._picklists.build(
                    session, updated.board, updated.queue_type.target_state, reviewer.id
                )
                allowed = set(picklist.topic_ids)
                updated = updated.model_copy(
                    update={"topics": tuple(t for t in updated.topics if t in allowed)}
                )
        return self._store.create(updated)

    def toggle_decision(
        self, queue_id: int, user_id: int, article_id: int, topic_id: int, code: int
    ) -> QueueSpecification:
        """Record (or clear, for code 0) a pending decision on the stored queue."""
        spec = self._store.load(queue_id)
        state_for_decision(spec.queue_type, code)
        with Session(self._engine) as session:
            reviewer = load_reviewer(session, user_id)
            self._gate.require_queue(reviewer, spec.queue_type)
            topic = session.get(Topic, topic_id)
            if topic is None or not self._gate.can_decide_topic(reviewer, topic, spec.queue_type):
                raise AccessDeniedError(f"not authorized to review topic {topic_id}")
        decisions = dict(spec.decisions)
        key = decision_key(article_id, topic_id)
        if code == Decision.NONE:
            decisions.pop(key, None)
        else:
            decisions[key] = int(code)
        return self._store.replace(queue_id, spec.model_copy(update={"decisions": decisions}))

    def submit_decisions(
        self,
        queue_id: int,
        user_id: int,
        decisions: Mapping[str | tuple[int, int], int] | None = None,
        now: datetime | None = None,
    ) -> SubmitOutcome:
        """Apply ``decisions`` (or the queued ones) and start a fresh queue."""
        spec = self._store.load(queue_id)
        with Session(self._engine) as session:
            reviewer = load_reviewer(session, user_id)
        batch = spec.decisions if decisions is None else decisions
        outcome = self._decisions.apply(batch, spec.queue_type, reviewer, now)
        fresh = spec.model_copy(update={"decisions": {}, "filtered": False, "version": 1})
        outcome.queue_id = self._store.create(fresh)
        outcome.message = APPLIED_MESSAGE if outcome.applied_count else "No decisions were applied."
        return outcome

    def save_as_default(self, queue_id: int, user_id: int, **display: Any) -> QueueSpecification:
        """Make the queue's display options the user's defaults.

        The queue is replaced first, so a stale queue leaves the saved
        preferences untouched.
        """
        unknown = set(display) - DISPLAY_FIELDS
        if unknown:
            raise ValueError(f"unknown display options: {', '.join(sorted(unknown))}")
        spec = self._store.load(queue_id)
        if display:
            payload = spec.model_dump()
            payload.update(display)
            spec = QueueSpecification.model_validate(payload)
        with Session(self._engine) as session:
            if session.get(Reviewer, user_id) is None:
                raise UnknownReviewerError(f"reviewer {user_id} not found")
        updated = self._store.replace(queue_id, spec)
        with Session(self._engine) as session:
            reviewer = session.get(Reviewer, user_id)
            reviewer.review_sort = updated.sort.value
            reviewer.review_format = updated.format.value
            reviewer.review_per_page = updated.page_size
            reviewer.review_boards = updated.review_boards.value
            session.add(reviewer)
            session.commit()
        logger.info("queue.defaults_saved", queue_id=queue_id, user_id=user_id)
        return updated

    def queued_decision_items(self, spec: QueueSpecification) -> list[str]:
        with Session(self._engine) as session:
            return self._decision_items(session, spec)

    def _default_spec(self, reviewer: ReviewerContext) -> QueueSpecification:
        return QueueSpecification(
            queue_type=self._gate.default_queue_type(reviewer),
            board=reviewer.board_ids[0] if reviewer.board_ids else None,
            sort=reviewer.review_sort or SortKey.ASSOCIATION,
            format=reviewer.review_format or DisplayFormat.BRIEF,
            page_size=reviewer.review_per_page or self._settings.default_page_size,
            review_boards=reviewer.review_boards or ReviewBoardsMode.ALL,
        )

    def _filter_options(self, session: Session, queue_types) -> FilterOptions:
        boards = session.exec(select(Board).order_by(Board.name)).all()
        cycles = session.exec(select(Cycle).order_by(Cycle.start.desc())).all()
        tags = session.exec(select(TagTerm).order_by(TagTerm.name)).all()
        return FilterOptions(
            queue_types=[queue_type.value for queue_type in queue_types],
            boards={board.id: board.name for board in boards},
            cycles={cycle.id: cycle.name for cycle in cycles},
            tags={tag.id: tag.name for tag in tags},
            sorts={key.value: label for key, label in SORT_LABELS.items()},
            page_sizes=list(PAGE_SIZES),
        )

    def _decision_items(self, session: Session, spec: QueueSpecification) -> list[str]:
        items = []
        for key, value in spec.decisions.items():
            ids = parse_decision_key(key)
            if ids is None:
                continue
            article_id, topic_id = ids
            topic = session.get(Topic, topic_id)
            topic_name = topic.name if topic else f"topic {topic_id}"
            try:
                decision = Decision(int(value)).label.lower()
            except ValueError:
                decision = "unrecognized decision"
            if decision == "fyi":
                decision = "marked as FYI"
            items.append(f"Article {article_id} {decision} for {topic_name}")
        return items

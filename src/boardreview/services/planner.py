"""Build and run the query behind a review queue page.

A queue specification is first turned into a :class:`QueryPlan`: a list of
named filter clauses, each carrying the SQL condition it contributes and
the joins it needs, plus an ordering. The plan is compiled once into a
SQLAlchemy select, so each clause can be inspected and tested on its own.

Rows are current state records (one per article/topic association), so
the same article id can appear more than once in a page; callers
de-duplicate before loading full records.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy import and_, func, or_
from sqlmodel import Session, select

from boardreview.db import Article, ArticleAuthor, ArticleTag, ArticleTopic, Journal, StateRecord, Topic
from boardreview.models import QueuePage, QueueSpecification, QueueType, SortKey, parse_queue_type
from boardreview.services.states import StateCatalog
from boardreview.services.trace import NullObserver, TraceObserver

# Optional joins, keyed by name and applied in this order.
JOINS: dict[str, Callable[[Any], Any]] = {
    "article": lambda stmt: stmt.join(Article, Article.id == StateRecord.article_id),
    "association": lambda stmt: stmt.join(
        ArticleTopic, ArticleTopic.id == StateRecord.article_topic_id
    ),
    "journal": lambda stmt: stmt.outerjoin(
        Journal, Journal.source_id == Article.source_journal_id
    ),
    "first_author": lambda stmt: stmt.outerjoin(
        ArticleAuthor,
        and_(ArticleAuthor.article_id == Article.id, ArticleAuthor.position == 0),
    ),
}

JOIN_DEPENDENCIES = {
    "journal": ("article",),
    "first_author": ("article",),
}


@dataclass(frozen=True, slots=True)
class Clause:
    name: str
    condition: Any
    requires: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Ordering:
    key: SortKey
    columns: tuple[Any, ...]
    requires: tuple[str, ...] = ()


ORDERINGS: dict[SortKey, Ordering] = {
    SortKey.ASSOCIATION: Ordering(
        SortKey.ASSOCIATION, (StateRecord.article_id, StateRecord.article_topic_id)
    ),
    SortKey.SOURCE_ID: Ordering(SortKey.SOURCE_ID, (Article.source_id,), ("article",)),
    SortKey.AUTHOR: Ordering(
        SortKey.AUTHOR, (ArticleAuthor.search_name, Article.title), ("first_author",)
    ),
    SortKey.TITLE: Ordering(SortKey.TITLE, (Article.search_title,), ("article",)),
    SortKey.JOURNAL: Ordering(
        SortKey.JOURNAL, (Article.journal_title, Article.title), ("article",)
    ),
    SortKey.YEAR: Ordering(SortKey.YEAR, (Article.year, Article.title), ("article",)),
    SortKey.CORE: Ordering(
        SortKey.CORE,
        (func.coalesce(Journal.core, False).desc(), Article.journal_title, Article.title),
        ("journal",),
    ),
}


@dataclass(frozen=True, slots=True)
class QueryPlan:
    queue_type: QueueType
    state_id: int
    clauses: tuple[Clause, ...]
    ordering: Ordering
    page_size: int

    @property
    def clause_names(self) -> list[str]:
        return [clause.name for clause in self.clauses]

    def joins(self, *, ordered: bool) -> list[str]:
        wanted: set[str] = set()
        requirements = [req for clause in self.clauses for req in clause.requires]
        if ordered:
            requirements.extend(self.ordering.requires)
        for name in requirements:
            wanted.add(name)
            wanted.update(JOIN_DEPENDENCIES.get(name, ()))
        return [name for name in JOINS if name in wanted]


class QueueQueryPlanner:
    def __init__(self, catalog: StateCatalog, observer: TraceObserver | None = None) -> None:
        self._catalog = catalog
        self._observer = observer or NullObserver()

    def plan(self, spec: QueueSpecification) -> QueryPlan:
        queue_type = parse_queue_type(spec.queue_type)
        state_id = self._catalog.state_id(queue_type.target_state)
        clauses = [
            Clause("current-state", and_(StateRecord.is_current == True, StateRecord.state_id == state_id)),  # noqa: E712
            Clause("active-topic", Topic.active == True),  # noqa: E712
        ]
        clauses.extend(self._topic_clauses(spec))
        clauses.extend(self._queue_clauses(queue_type, spec))
        if spec.cycle is not None:
            clauses.append(Clause("cycle", ArticleTopic.cycle_id == spec.cycle, ("association",)))
        if spec.tag is not None and queue_type is not QueueType.LIBRARIAN:
            clauses.append(Clause("tag", self._tag_condition(spec.tag)))
        ordering = ORDERINGS.get(SortKey.coerce(spec.sort), ORDERINGS[SortKey.ASSOCIATION])
        return QueryPlan(
            queue_type=queue_type,
            state_id=state_id,
            clauses=tuple(clauses),
            ordering=ordering,
            page_size=spec.page_size,
        )

    def compile(self, plan: QueryPlan, *, ordered: bool = True):
        stmt = select(StateRecord.article_id).join(Topic, Topic.id == StateRecord.topic_id)
        for name in plan.joins(ordered=ordered):
            stmt = JOINS[name](stmt)
        stmt = stmt.where(*(clause.condition for clause in plan.clauses))
        if ordered:
            stmt = stmt.order_by(*plan.ordering.columns, StateRecord.id)
        return stmt

    def count(self, session: Session, plan: QueryPlan) -> int:
        filtered = self.compile(plan, ordered=False).subquery()
        return session.exec(select(func.count()).select_from(filtered)).one()

    def execute(self, session: Session, spec: QueueSpecification, page: int = 0) -> QueuePage:
        plan = self.plan(spec)
        total = self.count(session, plan)
        page = max(page, 0)
        stmt = self.compile(plan).offset(page * plan.page_size).limit(plan.page_size)
        article_ids = list(session.exec(stmt).all())
        self._observer.emit(
            "queue.planned",
            queue_type=plan.queue_type.value,
            clauses=plan.clause_names,
            sort=plan.ordering.key.value,
            total=total,
            page=page,
            rows=len(article_ids),
        )
        return QueuePage(total=total, article_ids=article_ids)

    def _topic_clauses(self, spec: QueueSpecification) -> list[Clause]:
        if spec.topics:
            return [Clause("topics", StateRecord.topic_id.in_(spec.topics))]
        if spec.board is not None:
            return [Clause("board", Topic.board_id == spec.board)]
        return []

    def _queue_clauses(self, queue_type: QueueType, spec: QueueSpecification) -> list[Clause]:
        clauses: list[Clause] = []
        if queue_type in (QueueType.FULL_TEXT, QueueType.ON_HOLD):
            clauses.append(Clause("full-text", Article.full_text_file.is_not(None), ("article",)))
        if queue_type is QueueType.LIBRARIAN:
            if spec.title:
                clauses.append(
                    Clause("title", Article.search_title.icontains(spec.title, autoescape=True), ("article",))
                )
            if spec.journal:
                clauses.append(
                    Clause(
                        "journal",
                        Article.brief_journal_title.icontains(spec.journal, autoescape=True),
                        ("article",),
                    )
                )
        return clauses

    @staticmethod
    def _tag_condition(tag_id: int):
        on_article = (
            select(ArticleTag.id)
            .where(
                ArticleTag.article_id == StateRecord.article_id,
                ArticleTag.article_topic_id.is_(None),
                ArticleTag.tag_id == tag_id,
            )
            .exists()
        )
        on_topic = (
            select(ArticleTag.id)
            .where(
                ArticleTag.article_topic_id == StateRecord.article_topic_id,
                ArticleTag.tag_id == tag_id,
            )
            .exists()
        )
        return or_(on_article, on_topic)


def unique_ids(article_ids: list[int]) -> list[int]:
    """Drop repeated article ids, keeping first-seen order."""
    return list(dict.fromkeys(article_ids))

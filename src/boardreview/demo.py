"""Sample boards, reviewers and articles for trying the queues locally."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Sequence

from sqlmodel import Session, select

from boardreview.db import (
    AbstractParagraph,
    Article,
    ArticleAuthor,
    ArticleTag,
    ArticleTopic,
    ArticleType,
    Board,
    Cycle,
    Journal,
    Reviewer,
    ReviewerBoard,
    ReviewerPermission,
    ReviewerTopic,
    SiteConfig,
    StateRecord,
    TagTerm,
    Topic,
)
from boardreview.models import QUEUE_PERMISSIONS, REVIEW_ALL_TOPICS, QueueType
from boardreview.services.renderer import TYPE_ANCESTORS_CONFIG
from boardreview.services.states import StateCatalog, ensure_workflow_states

TYPE_ANCESTORS = {
    "randomized controlled trial": ["Clinical Trial", "Journal Article"],
    "clinical trial, phase iii": ["Clinical Trial", "Journal Article"],
    "clinical trial": ["Journal Article"],
    "systematic review": ["Review", "Journal Article"],
    "review": ["Journal Article"],
}


@dataclass(slots=True)
class DemoSummary:
    boards: int
    topics: int
    reviewers: int
    articles: int


def add_reviewer(
    session: Session,
    name: str,
    permissions: Iterable[str],
    *,
    boards: Iterable[int] = (),
    topics: Iterable[int] = (),
) -> Reviewer:
    reviewer = Reviewer(name=name)
    session.add(reviewer)
    session.flush()
    for permission in permissions:
        session.add(ReviewerPermission(reviewer_id=reviewer.id, permission=permission))
    for board_id in boards:
        session.add(ReviewerBoard(reviewer_id=reviewer.id, board_id=board_id))
    for topic_id in topics:
        session.add(ReviewerTopic(reviewer_id=reviewer.id, topic_id=topic_id))
    session.flush()
    return reviewer


def add_article(
    session: Session,
    *,
    source_id: str,
    title: str,
    journal_title: str | None = None,
    brief_journal_title: str | None = None,
    source_journal_id: str | None = None,
    year: int | None = None,
    authors: Sequence[tuple[str, str]] = (),
    types: Sequence[str] = (),
    abstract: Sequence[tuple[str | None, str]] = (),
    full_text_file: str | None = None,
) -> Article:
    article = Article(
        source_id=source_id,
        title=title,
        search_title=title.lower(),
        journal_title=journal_title,
        brief_journal_title=brief_journal_title,
        source_journal_id=source_journal_id,
        year=year,
        full_text_file=full_text_file,
    )
    session.add(article)
    session.flush()
    for position, (last_name, initials) in enumerate(authors):
        session.add(
            ArticleAuthor(
                article_id=article.id,
                position=position,
                last_name=last_name,
                initials=initials,
                search_name=f"{last_name} {initials}".lower(),
            )
        )
    for position, value in enumerate(types):
        session.add(ArticleType(article_id=article.id, position=position, value=value))
    for position, (label, text) in enumerate(abstract):
        session.add(AbstractParagraph(article_id=article.id, position=position, label=label, text=text))
    session.flush()
    return article


def assign_topic(
    session: Session,
    catalog: StateCatalog,
    article: Article,
    topic: Topic,
    state: str,
    *,
    cycle_id: int | None = None,
    user_id: int | None = None,
    entered: datetime | None = None,
) -> ArticleTopic:
    """Attach ``article`` to ``topic`` with ``state`` as its current state."""
    association = ArticleTopic(article_id=article.id, topic_id=topic.id, cycle_id=cycle_id)
    session.add(association)
    session.flush()
    record = StateRecord(
        article_topic_id=association.id,
        article_id=article.id,
        topic_id=topic.id,
        state_id=catalog.state_id(state),
        user_id=user_id,
    )
    if entered is not None:
        record.entered = entered
    session.add(record)
    session.flush()
    return association


def add_tag(
    session: Session,
    tag: TagTerm,
    article: Article,
    association: ArticleTopic | None = None,
    *,
    active: bool = True,
) -> ArticleTag:
    item = ArticleTag(
        article_id=article.id,
        article_topic_id=association.id if association else None,
        tag_id=tag.id,
        active=active,
    )
    session.add(item)
    session.flush()
    return item


def seed_demo(session: Session) -> DemoSummary | None:
    """Populate an empty database; returns ``None`` when data already exists."""
    if session.exec(select(Board)).first() is not None:
        return None
    ensure_workflow_states(session)
    catalog = StateCatalog.load(session)
    session.add(SiteConfig(name=TYPE_ANCESTORS_CONFIG, value=json.dumps(TYPE_ANCESTORS)))

    adult = Board(name="Adult Treatment")
    pediatric = Board(name="Pediatric Treatment")
    screening = Board(name="Screening and Prevention")
    session.add_all([adult, pediatric, screening])
    session.flush()
    topics = {
        "breast": Topic(name="Breast Cancer", board_id=adult.id),
        "lung": Topic(name="Non-Small Cell Lung Cancer", board_id=adult.id),
        "leukemia": Topic(name="Childhood Leukemia", board_id=pediatric.id),
        "colorectal": Topic(name="Colorectal Cancer Screening", board_id=screening.id),
    }
    session.add_all(topics.values())
    session.add_all(
        [
            Journal(source_id="J1", title="The Lancet Oncology", core=True),
            Journal(source_id="J2", title="Cancer Epidemiology", core=False),
        ]
    )
    cycle = Cycle(name="January 2024", start=datetime(2024, 1, 1))
    session.add(cycle)
    session.flush()

    librarian = add_reviewer(
        session, "Medical Librarian", [QUEUE_PERMISSIONS[QueueType.LIBRARIAN]]
    )
    manager = add_reviewer(
        session,
        "Board Manager",
        ["perform abstract article review", "perform full text article review"],
        boards=[adult.id],
    )
    add_reviewer(
        session,
        "Branch Manager",
        set(QUEUE_PERMISSIONS.values()) | {REVIEW_ALL_TOPICS},
    )
    topics["breast"].nci_reviewer_id = manager.id
    session.add(topics["breast"])

    priority = TagTerm(name="High Priority")
    session.add(priority)
    session.flush()

    samples = [
        ("38000001", "Adjuvant therapy outcomes in early breast cancer", "J1", 2023, "ready_init_review", "breast"),
        ("38000002", "Screening intervals for colorectal cancer", "J2", 2022, "ready_init_review", "colorectal"),
        ("38000003", "Immunotherapy in advanced lung cancer", "J1", 2024, "published", "lung"),
        ("38000004", "Radiation dosing after lumpectomy", "J2", 2021, "published", "breast"),
        ("38000005", "Maintenance chemotherapy in childhood leukemia", "J1", 2023, "passed_bm_review", "leukemia"),
        ("38000006", "Targeted therapy resistance in NSCLC", "J2", 2020, "on_hold", "lung"),
    ]
    journals = {"J1": ("The Lancet Oncology", "Lancet Oncol"), "J2": ("Cancer Epidemiology", "Cancer Epidemiol")}
    for source_id, title, journal_id, year, state, topic_key in samples:
        full_title, brief = journals[journal_id]
        article = add_article(
            session,
            source_id=source_id,
            title=title,
            journal_title=full_title,
            brief_journal_title=brief,
            source_journal_id=journal_id,
            year=year,
            authors=[("Smith", "J"), ("Garcia", "M")],
            types=["Journal Article", "Randomized Controlled Trial", "Clinical Trial"],
            abstract=[("BACKGROUND", "Background text."), ("RESULTS", "Results text.")],
            full_text_file=f"{source_id}.pdf" if state in ("passed_bm_review", "on_hold") else None,
        )
        association = assign_topic(
            session, catalog, article, topics[topic_key], state, cycle_id=cycle.id, user_id=librarian.id
        )
        if state == "published":
            add_tag(session, priority, article, association)
    session.commit()
    return DemoSummary(boards=3, topics=len(topics), reviewers=3, articles=len(samples))

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import pytest
from sqlmodel import Session

from boardreview.db import Board, Cycle, Journal, TagTerm, Topic, get_engine
from boardreview.demo import add_article, add_reviewer, add_tag, assign_topic
from boardreview.models import QUEUE_PERMISSIONS, REVIEW_ALL_TOPICS, QueueType
from boardreview.services import StateCatalog, ensure_workflow_states
from boardreview.settings import Settings

LIBRARIAN = QUEUE_PERMISSIONS[QueueType.LIBRARIAN]
ABSTRACT = QUEUE_PERMISSIONS[QueueType.ABSTRACT]
FULL_TEXT = QUEUE_PERMISSIONS[QueueType.FULL_TEXT]


@dataclass
class World:
    adult: int
    pediatric: int
    breast: int
    lung: int
    leukemia: int
    retired: int
    cycle_jan: int
    cycle_feb: int
    priority: int
    librarian: int
    member: int
    manager: int
    outsider: int
    articles: dict[str, int]


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(data_dir=tmp_path)


@pytest.fixture
def engine(settings):
    return get_engine(str(settings.db_path))


@pytest.fixture
def catalog(engine) -> StateCatalog:
    with Session(engine) as session:
        ensure_workflow_states(session)
        return StateCatalog.load(session)


@pytest.fixture
def world(engine, catalog) -> World:
    """Two boards, four topics and a handful of articles in every queue state."""
    with Session(engine, expire_on_commit=False) as session:
        adult = Board(name="Adult Treatment")
        pediatric = Board(name="Pediatric Treatment")
        session.add_all([adult, pediatric])
        session.flush()
        breast = Topic(name="Breast Cancer", board_id=adult.id)
        lung = Topic(name="Lung Cancer", board_id=adult.id)
        retired = Topic(name="Retired Topic", board_id=adult.id, active=False)
        leukemia = Topic(name="Childhood Leukemia", board_id=pediatric.id)
        session.add_all([breast, lung, retired, leukemia])
        session.add_all(
            [
                Journal(source_id="J1", title="Core Journal", core=True),
                Journal(source_id="J2", title="Other Journal", core=False),
            ]
        )
        jan = Cycle(name="January 2024", start=datetime(2024, 1, 1))
        feb = Cycle(name="February 2024", start=datetime(2024, 2, 1))
        priority = TagTerm(name="High Priority")
        session.add_all([jan, feb, priority])
        session.flush()

        librarian = add_reviewer(session, "Librarian", [LIBRARIAN])
        member = add_reviewer(session, "Board Member", [ABSTRACT, FULL_TEXT], boards=[adult.id])
        manager = add_reviewer(
            session, "Branch Manager", [LIBRARIAN, ABSTRACT, FULL_TEXT, REVIEW_ALL_TOPICS]
        )
        outsider = add_reviewer(session, "Visitor", [])
        breast.nci_reviewer_id = member.id
        session.add(breast)

        ids: dict[str, int] = {}

        def article(key, title, journal, year, last_name, **extra):
            created = add_article(
                session,
                source_id=f"3000000{len(ids) + 1}",
                title=title,
                journal_title="Core Journal" if journal == "J1" else "Other Journal",
                brief_journal_title="Core J" if journal == "J1" else "Other J",
                source_journal_id=journal,
                year=year,
                authors=[(last_name, "A")],
                **extra,
            )
            ids[key] = created.id
            return created

        # Abstract review: three published associations on the adult board.
        a1 = article("alpha", "Alpha trial of adjuvant therapy", "J2", 2020, "Zimmer")
        alpha_breast = assign_topic(session, catalog, a1, breast, "published", cycle_id=jan.id)
        assign_topic(session, catalog, a1, lung, "published", cycle_id=feb.id)
        add_tag(session, priority, a1, alpha_breast)
        a2 = article("beta", "Beta study of radiation", "J1", 2021, "Young")
        assign_topic(session, catalog, a2, breast, "published", cycle_id=jan.id)
        a3 = article("gamma", "Gamma cohort of survivors", "J2", 2019, "Adams")
        assign_topic(session, catalog, a3, leukemia, "published", cycle_id=jan.id)
        add_tag(session, priority, a3)
        a4 = article("retired", "Archived trial", "J1", 2018, "Baker")
        assign_topic(session, catalog, a4, retired, "published")

        # Librarian review.
        a5 = article("delta", "Delta screening 100% trial", "J1", 2022, "Clark")
        assign_topic(session, catalog, a5, breast, "ready_init_review")
        a6 = article("epsilon", "Epsilon observational study", "J2", 2023, "Diaz")
        assign_topic(session, catalog, a6, lung, "ready_init_review")

        # Full text review: one article with two associations, one without a file.
        a7 = article("zeta", "Zeta randomized trial", "J1", 2024, "Evans", full_text_file="zeta.pdf")
        assign_topic(session, catalog, a7, breast, "passed_bm_review")
        assign_topic(session, catalog, a7, lung, "passed_bm_review")
        a8 = article("eta", "Eta pilot study", "J2", 2024, "Fox")
        assign_topic(session, catalog, a8, lung, "passed_bm_review")

        # On hold.
        a9 = article("theta", "Theta follow-up", "J2", 2017, "Gray", full_text_file="theta.pdf")
        assign_topic(session, catalog, a9, breast, "on_hold")
        session.commit()

        return World(
            adult=adult.id,
            pediatric=pediatric.id,
            breast=breast.id,
            lung=lung.id,
            leukemia=leukemia.id,
            retired=retired.id,
            cycle_jan=jan.id,
            cycle_feb=feb.id,
            priority=priority.id,
            librarian=librarian.id,
            member=member.id,
            manager=manager.id,
            outsider=outsider.id,
            articles=ids,
        )

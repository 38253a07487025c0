"""SQLite persistence layer for the review queues."""

from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path

from sqlalchemy import Index, UniqueConstraint, text
from sqlmodel import Field, SQLModel, create_engine


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Board(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True)


class Reviewer(SQLModel, table=True):
    """A board member, librarian or manager; carries saved queue preferences."""

    id: int | None = Field(default=None, primary_key=True)
    name: str
    review_sort: str | None = None
    review_format: str | None = None
    review_per_page: int | None = None
    review_boards: str | None = None


class ReviewerPermission(SQLModel, table=True):
    reviewer_id: int = Field(foreign_key="reviewer.id", primary_key=True)
    permission: str = Field(primary_key=True)


class ReviewerBoard(SQLModel, table=True):
    reviewer_id: int = Field(foreign_key="reviewer.id", primary_key=True)
    board_id: int = Field(foreign_key="board.id", primary_key=True)


class ReviewerTopic(SQLModel, table=True):
    reviewer_id: int = Field(foreign_key="reviewer.id", primary_key=True)
    topic_id: int = Field(foreign_key="topic.id", primary_key=True)


class Topic(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    board_id: int = Field(foreign_key="board.id", index=True)
    active: bool = True
    nci_reviewer_id: int | None = Field(default=None, foreign_key="reviewer.id")


class StateType(SQLModel, table=True):
    """Vocabulary of workflow states, keyed by a stable text id."""

    id: int | None = Field(default=None, primary_key=True)
    text_id: str = Field(unique=True)
    name: str
    sequence: int = 0


class Journal(SQLModel, table=True):
    source_id: str = Field(primary_key=True)
    title: str
    core: bool = False


class Article(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    source_id: str = Field(index=True)
    title: str
    search_title: str
    journal_title: str | None = None
    brief_journal_title: str | None = None
    source_journal_id: str | None = None
    year: int | None = None
    volume: str | None = None
    issue: str | None = None
    pagination: str | None = None
    legacy_id: int | None = None
    full_text_file: str | None = None
    imported_at: datetime = Field(default_factory=utcnow)


class ArticleAuthor(SQLModel, table=True):
    article_id: int = Field(foreign_key="article.id", primary_key=True)
    position: int = Field(primary_key=True)
    last_name: str | None = None
    initials: str | None = None
    collective_name: str | None = None
    search_name: str | None = None


class ArticleType(SQLModel, table=True):
    article_id: int = Field(foreign_key="article.id", primary_key=True)
    position: int = Field(primary_key=True)
    value: str


class AbstractParagraph(SQLModel, table=True):
    article_id: int = Field(foreign_key="article.id", primary_key=True)
    position: int = Field(primary_key=True)
    label: str | None = None
    text: str


class ArticleRelation(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    related_from: int = Field(foreign_key="article.id", index=True)
    related_to: int = Field(foreign_key="article.id", index=True)
    relation_type: str = "related"


class Cycle(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    name: str
    start: datetime


class ArticleTopic(SQLModel, table=True):
    """One article assigned to one topic for one review cycle."""

    __table_args__ = (UniqueConstraint("article_id", "topic_id"),)

    id: int | None = Field(default=None, primary_key=True)
    article_id: int = Field(foreign_key="article.id", index=True)
    topic_id: int = Field(foreign_key="topic.id", index=True)
    cycle_id: int | None = Field(default=None, foreign_key="cycle.id")


class StateRecord(SQLModel, table=True):
    """Append-only workflow history; one row per association is current."""

    __table_args__ = (
        Index(
            "ix_staterecord_one_current",
            "article_topic_id",
            unique=True,
            sqlite_where=text("is_current = 1"),
            postgresql_where=text("is_current"),
        ),
        Index("ix_staterecord_queue", "state_id", "is_current", "topic_id"),
    )

    id: int | None = Field(default=None, primary_key=True)
    article_topic_id: int = Field(foreign_key="articletopic.id")
    article_id: int = Field(foreign_key="article.id", index=True)
    topic_id: int = Field(foreign_key="topic.id")
    state_id: int = Field(foreign_key="statetype.id")
    user_id: int | None = Field(default=None, foreign_key="reviewer.id")
    entered: datetime = Field(default_factory=utcnow)
    is_current: bool = True


class TagTerm(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True)


class ArticleTag(SQLModel, table=True):
    """Tag attached to an article, or to one of its topic assignments."""

    id: int | None = Field(default=None, primary_key=True)
    article_id: int = Field(foreign_key="article.id", index=True)
    article_topic_id: int | None = Field(default=None, foreign_key="articletopic.id", index=True)
    tag_id: int = Field(foreign_key="tagterm.id")
    user_id: int | None = Field(default=None, foreign_key="reviewer.id")
    assigned: datetime = Field(default_factory=utcnow)
    active: bool = True


class ArticleTopicComment(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    article_topic_id: int = Field(foreign_key="articletopic.id", index=True)
    user_id: int | None = Field(default=None, foreign_key="reviewer.id")
    body: str
    entered: datetime = Field(default_factory=utcnow)


class SavedRequest(SQLModel, table=True):
    """Opaque keyed parameter blobs, e.g. review queue specifications."""

    id: int | None = Field(default=None, primary_key=True)
    kind: str
    parameters: str = Field(default="{}")
    created_at: datetime = Field(default_factory=utcnow)


class SiteConfig(SQLModel, table=True):
    name: str = Field(primary_key=True)
    value: str


def create_engine_for_path(db_path: Path):
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False},
    )


def init_db(engine) -> None:
    SQLModel.metadata.create_all(engine)


@lru_cache(maxsize=4)
def get_engine(path_str: str):
    engine = create_engine_for_path(Path(path_str))
    init_db(engine)
    return engine

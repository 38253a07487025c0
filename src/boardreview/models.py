"""Core data models used throughout the review queue application."""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from boardreview.errors import UnknownQueueTypeError
from boardreview.settings import DEFAULT_PAGE_SIZE


class QueueType(str, Enum):
    LIBRARIAN = "Librarian Review"
    ABSTRACT = "Abstract Review"
    FULL_TEXT = "Full Text Review"
    ON_HOLD = "On Hold Review"

    @property
    def target_state(self) -> str:
        return QUEUE_STATES[self]

    @property
    def permission(self) -> str:
        return QUEUE_PERMISSIONS[self]


# Workflow state each queue is populated from.
QUEUE_STATES = {
    QueueType.LIBRARIAN: "ready_init_review",
    QueueType.ABSTRACT: "published",
    QueueType.FULL_TEXT: "passed_bm_review",
    QueueType.ON_HOLD: "on_hold",
}

QUEUE_PERMISSIONS = {
    QueueType.LIBRARIAN: "perform initial article review",
    QueueType.ABSTRACT: "perform abstract article review",
    QueueType.FULL_TEXT: "perform full text article review",
    QueueType.ON_HOLD: "perform full text article review",
}

REVIEW_ALL_TOPICS = "perform all topic reviews"


def parse_queue_type(value: Any) -> QueueType:
    """Return the queue type for ``value`` or raise ``UnknownQueueTypeError``."""
    if isinstance(value, QueueType):
        return value
    try:
        return QueueType(value)
    except ValueError:
        raise UnknownQueueTypeError(f"unknown review queue type {value!r}") from None


class Decision(IntEnum):
    """Reviewer decisions. The integer is the code stored in a queue."""

    NONE = 0
    FYI = 1
    ON_HOLD = 2
    REJECT = 3
    APPROVE = 4

    @property
    def label(self) -> str:
        return DECISION_LABELS[self]


DECISION_LABELS = {
    Decision.NONE: "None",
    Decision.FYI: "FYI",
    Decision.ON_HOLD: "On Hold",
    Decision.REJECT: "Reject",
    Decision.APPROVE: "Approve",
}


class SortKey(str, Enum):
    ASSOCIATION = "association"
    SOURCE_ID = "source_id"
    AUTHOR = "author"
    TITLE = "title"
    JOURNAL = "journal"
    YEAR = "year"
    CORE = "core"

    @classmethod
    def coerce(cls, value: Any) -> "SortKey":
        """Unrecognized keys fall back to the default ordering."""
        try:
            return cls(value)
        except ValueError:
            return cls.ASSOCIATION


SORT_LABELS = {
    SortKey.ASSOCIATION: "EBMS ID #",
    SortKey.SOURCE_ID: "PMID #",
    SortKey.AUTHOR: "Author",
    SortKey.TITLE: "Title",
    SortKey.JOURNAL: "Journal",
    SortKey.YEAR: "Publication Date",
    SortKey.CORE: "Core Journals",
}


class DisplayFormat(str, Enum):
    BRIEF = "brief"
    ABSTRACT = "abstract"


class ReviewBoardsMode(str, Enum):
    ALL = "all"
    MINE = "mine"


def decision_key(article_id: int, topic_id: int) -> str:
    return f"{article_id}|{topic_id}"


class QueueSpecification(BaseModel):
    """Filter, sort, paging and queued-decision state of one review queue.

    Instances are immutable; every change produces a new object through
    ``model_copy(update=...)`` and is stored whole.
    """

    model_config = ConfigDict(frozen=True)

    queue_type: QueueType
    board: int | None = None
    topics: tuple[int, ...] = ()
    cycle: int | None = None
    tag: int | None = None
    title: str = ""
    journal: str = ""
    sort: SortKey = SortKey.ASSOCIATION
    format: DisplayFormat = DisplayFormat.BRIEF
    page_size: int = DEFAULT_PAGE_SIZE
    review_boards: ReviewBoardsMode = ReviewBoardsMode.ALL
    decisions: dict[str, int] = Field(default_factory=dict)
    filtered: bool = False
    version: int = 1

    @field_validator("queue_type", mode="before")
    @classmethod
    def _queue_type(cls, value: Any) -> QueueType:
        return parse_queue_type(value)

    @field_validator("sort", mode="before")
    @classmethod
    def _sort(cls, value: Any) -> SortKey:
        return SortKey.coerce(value)

    @field_validator("board", "cycle", "tag", mode="before")
    @classmethod
    def _blank_is_none(cls, value: Any) -> Any:
        if value in ("", 0, "0"):
            return None
        return value

    @field_validator("page_size")
    @classmethod
    def _positive_page_size(cls, value: int) -> int:
        if value < 1:
            raise ValueError("page size must be positive")
        return value

    def queued_decision(self, article_id: int, topic_id: int) -> int:
        return int(self.decisions.get(decision_key(article_id, topic_id), 0))


class QueuePage(BaseModel):
    total: int
    article_ids: list[int] = Field(default_factory=list)


class DecisionButton(BaseModel):
    id: str
    name: str
    label: str
    value: int
    checked: bool = False


class TopicDisplay(BaseModel):
    topic_id: int
    name: str
    state: str
    buttons: list[DecisionButton] = Field(default_factory=list)
    tags: str = ""
    comments: list[str] = Field(default_factory=list)
    can_tag: bool = False


class BoardDisplay(BaseModel):
    name: str
    topics: list[TopicDisplay] = Field(default_factory=list)


class RelatedCitation(BaseModel):
    citation: str
    url: str
    pmid: str


class AbstractSection(BaseModel):
    label: str | None = None
    text: str


class ArticleDisplay(BaseModel):
    article_id: int
    pmid: str
    legacy_id: int | None = None
    title: str
    authors: str = ""
    publication: str = ""
    tags: str = ""
    types: str = ""
    related: list[RelatedCitation] = Field(default_factory=list)
    abstract: list[AbstractSection] = Field(default_factory=list)
    full_text: str | None = None
    boards: list[BoardDisplay] = Field(default_factory=list)


class PagerInfo(BaseModel):
    total: int
    page: int
    page_size: int
    start: int
    pages: int


class FilterOptions(BaseModel):
    queue_types: list[str] = Field(default_factory=list)
    boards: dict[int, str] = Field(default_factory=dict)
    topics: dict[Any, Any] = Field(default_factory=dict)
    cycles: dict[int, str] = Field(default_factory=dict)
    tags: dict[int, str] = Field(default_factory=dict)
    sorts: dict[str, str] = Field(default_factory=dict)
    page_sizes: list[int] = Field(default_factory=list)


class QueueView(BaseModel):
    queue_id: int
    queue_type: QueueType
    title: str
    specification: QueueSpecification
    filter_options: FilterOptions
    articles: list[ArticleDisplay] = Field(default_factory=list)
    pager: PagerInfo
    queued_decisions: list[str] = Field(default_factory=list)


class SubmitOutcome(BaseModel):
    applied_count: int = 0
    warnings: list[str] = Field(default_factory=list)
    queue_id: int | None = None
    message: str | None = None

"""Topic picklists annotated with the number of articles waiting in a state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import func
from sqlmodel import Session, select

from boardreview.db import Article, StateRecord, Topic
from boardreview.services.states import StateCatalog
from boardreview.services.trace import NullObserver, TraceObserver

PLACEHOLDER = "Select a board"

# States whose queues do not depend on the article having full text.
NO_FULL_TEXT_STATES = frozenset({"published", "ready_init_review"})


@dataclass(slots=True)
class TopicPicklist:
    """Either a flat mapping of topic options or two labeled groups."""

    options: dict[int, str] = field(default_factory=dict)
    groups: dict[str, dict[int, str]] = field(default_factory=dict)
    placeholder: bool = False

    @property
    def partitioned(self) -> bool:
        return bool(self.groups)

    @property
    def topic_ids(self) -> list[int]:
        if self.placeholder:
            return []
        if self.groups:
            return [topic_id for group in self.groups.values() for topic_id in group]
        return list(self.options)

    def as_options(self) -> dict:
        return self.groups if self.groups else self.options


def placeholder_picklist() -> TopicPicklist:
    return TopicPicklist(options={0: PLACEHOLDER}, placeholder=True)


class TopicPicklistBuilder:
    def __init__(self, catalog: StateCatalog, observer: TraceObserver | None = None) -> None:
        self._catalog = catalog
        self._observer = observer or NullObserver()

    def build(
        self,
        session: Session,
        board: int | Iterable[int] | None,
        state: str,
        reviewer_id: int | None = None,
    ) -> TopicPicklist:
        board_ids = self._board_ids(board)
        if not board_ids:
            return placeholder_picklist()
        topics = session.exec(
            select(Topic)
            .where(Topic.board_id.in_(board_ids), Topic.active == True)  # noqa: E712
            .order_by(Topic.name, Topic.id)
        ).all()
        if not topics:
            return placeholder_picklist()

        topic_ids = [topic.id for topic in topics]
        counts = self._pending_counts(session, topic_ids, state)
        options = {topic.id: f"{topic.name} ({counts.get(topic.id, 0)})" for topic in topics}
        mine = {
            topic.id
            for topic in topics
            if reviewer_id is not None and topic.nci_reviewer_id == reviewer_id
        }
        self._observer.emit(
            "picklist.built", boards=board_ids, state=state, topics=len(topics), mine=len(mine)
        )

        # Only the abstract review splits the list, and only for a partial NCI reviewer.
        if state != "published" or not mine or len(mine) == len(options):
            return TopicPicklist(options=options)
        my_options = {tid: label for tid, label in options.items() if tid in mine}
        other_options = {tid: label for tid, label in options.items() if tid not in mine}
        my_count = sum(counts.get(tid, 0) for tid in my_options)
        other_count = sum(counts.get(tid, 0) for tid in other_options)
        return TopicPicklist(
            groups={
                f"My Topics ({my_count})": my_options,
                f"Other Topics ({other_count})": other_options,
            }
        )

    def _pending_counts(self, session: Session, topic_ids: list[int], state: str) -> dict[int, int]:
        stmt = (
            select(StateRecord.topic_id, func.count())
            .where(
                StateRecord.state_id == self._catalog.state_id(state),
                StateRecord.topic_id.in_(topic_ids),
                StateRecord.is_current == True,  # noqa: E712
            )
            .group_by(StateRecord.topic_id)
        )
        if state not in NO_FULL_TEXT_STATES:
            stmt = stmt.join(Article, Article.id == StateRecord.article_id).where(
                Article.full_text_file.is_not(None)
            )
        return {topic_id: count for topic_id, count in session.exec(stmt).all()}

    @staticmethod
    def _board_ids(board: int | Iterable[int] | None) -> list[int]:
        if board is None or board == "" or board == 0:
            return []
        if isinstance(board, int):
            return [board]
        if isinstance(board, str):
            return [int(board)]
        return [int(item) for item in board if item]

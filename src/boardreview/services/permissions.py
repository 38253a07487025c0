"""Who may see which review queue and decide which topics."""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlmodel import Session, select

from boardreview.db import Reviewer, ReviewerBoard, ReviewerPermission, ReviewerTopic, Topic
from boardreview.errors import AccessDeniedError, UnknownReviewerError
from boardreview.models import QUEUE_PERMISSIONS, REVIEW_ALL_TOPICS, QueueType

# Checked in this order when picking a user's default queue.
DEFAULT_QUEUES = (
    ("perform abstract article review", QueueType.ABSTRACT),
    ("perform initial article review", QueueType.LIBRARIAN),
)


@dataclass(frozen=True, slots=True)
class ReviewerContext:
    """The acting user with the assignments the gate needs."""

    id: int
    name: str
    permissions: frozenset[str] = frozenset()
    board_ids: tuple[int, ...] = ()
    topic_ids: frozenset[int] = frozenset()
    review_sort: str | None = None
    review_format: str | None = None
    review_per_page: int | None = None
    review_boards: str | None = None

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions

    @property
    def can_review_all_topics(self) -> bool:
        return REVIEW_ALL_TOPICS in self.permissions


def load_reviewer(session: Session, reviewer_id: int) -> ReviewerContext:
    reviewer = session.get(Reviewer, reviewer_id)
    if reviewer is None:
        raise UnknownReviewerError(f"reviewer {reviewer_id} not found")
    permissions = session.exec(
        select(ReviewerPermission.permission).where(ReviewerPermission.reviewer_id == reviewer_id)
    ).all()
    boards = session.exec(
        select(ReviewerBoard.board_id)
        .where(ReviewerBoard.reviewer_id == reviewer_id)
        .order_by(ReviewerBoard.board_id)
    ).all()
    topics = session.exec(
        select(ReviewerTopic.topic_id).where(ReviewerTopic.reviewer_id == reviewer_id)
    ).all()
    return ReviewerContext(
        id=reviewer_id,
        name=reviewer.name,
        permissions=frozenset(permissions),
        board_ids=tuple(boards),
        topic_ids=frozenset(topics),
        review_sort=reviewer.review_sort,
        review_format=reviewer.review_format,
        review_per_page=reviewer.review_per_page,
        review_boards=reviewer.review_boards,
    )


@dataclass
class PermissionGate:
    """Single place where queue and topic authorization is decided."""

    queue_permissions: dict[QueueType, str] = field(default_factory=lambda: dict(QUEUE_PERMISSIONS))

    def authorized_queue_types(self, user: ReviewerContext) -> list[QueueType]:
        allowed = [
            queue_type
            for queue_type, permission in self.queue_permissions.items()
            if user.has_permission(permission)
        ]
        if not allowed:
            raise AccessDeniedError("not an authorized reviewer")
        return allowed

    def default_queue_type(self, user: ReviewerContext) -> QueueType:
        for permission, queue_type in DEFAULT_QUEUES:
            if user.has_permission(permission):
                return queue_type
        return self.authorized_queue_types(user)[0]

    def require_queue(self, user: ReviewerContext, queue_type: QueueType) -> None:
        if queue_type not in self.authorized_queue_types(user):
            raise AccessDeniedError(f"not authorized for the {queue_type.value} queue")

    def is_assigned(self, user: ReviewerContext, topic: Topic) -> bool:
        """True for the user's own topics, topics of their boards, or review-all users."""
        return (
            user.can_review_all_topics
            or topic.id in user.topic_ids
            or topic.board_id in user.board_ids
        )

    def can_decide_topic(self, user: ReviewerContext, topic: Topic, queue_type: QueueType) -> bool:
        if queue_type is QueueType.LIBRARIAN:
            return user.has_permission(self.queue_permissions[queue_type])
        if user.can_review_all_topics:
            return True
        return self.is_assigned(user, topic)

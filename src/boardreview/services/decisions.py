"""Apply queued reviewer decisions as new workflow state records."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Mapping

from sqlmodel import Session, select

from boardreview.db import ArticleTopic, StateRecord, Topic, utcnow
from boardreview.errors import InvalidDecisionCodeError, ReviewQueueError
from boardreview.models import Decision, QueueType, SubmitOutcome
from boardreview.services.permissions import PermissionGate, ReviewerContext
from boardreview.services.states import StateCatalog
from boardreview.services.trace import NullObserver, TraceObserver

# Decision code -> new workflow state, per queue. Codes are Decision values,
# never positions in a list of buttons, so reordering the buttons is safe.
DECISION_STATES: dict[QueueType, dict[Decision, str]] = {
    QueueType.LIBRARIAN: {
        Decision.REJECT: "reject_init_review",
        Decision.APPROVE: "passed_init_review",
    },
    QueueType.ABSTRACT: {
        Decision.REJECT: "reject_bm_review",
        Decision.APPROVE: "passed_bm_review",
    },
    QueueType.FULL_TEXT: {
        Decision.FYI: "fyi",
        Decision.ON_HOLD: "on_hold",
        Decision.REJECT: "reject_full_review",
        Decision.APPROVE: "passed_full_review",
    },
    QueueType.ON_HOLD: {
        Decision.REJECT: "reject_full_review",
        Decision.APPROVE: "passed_full_review",
    },
}

DECISION_KEY = re.compile(r"^(?:topic-action-)?(\d+)\|(\d+)$")


class _SkippedDecision(ReviewQueueError):
    pass


def parse_decision_key(key: str | tuple[int, int]) -> tuple[int, int] | None:
    """Return ``(article_id, topic_id)`` for a key like ``"12|7"``."""
    if isinstance(key, tuple):
        return int(key[0]), int(key[1])
    match = DECISION_KEY.match(str(key).strip())
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def state_for_decision(queue_type: QueueType, code: int) -> str | None:
    """Map a decision code to its new state; ``None`` means no transition."""
    if code == Decision.NONE:
        return None
    try:
        return DECISION_STATES[queue_type][Decision(code)]
    except (KeyError, ValueError):
        raise InvalidDecisionCodeError(queue_type.value, code) from None


class DecisionApplicationEngine:
    """Writes each decision in its own transaction; the batch is best effort."""

    def __init__(
        self,
        engine,
        catalog: StateCatalog,
        gate: PermissionGate,
        observer: TraceObserver | None = None,
    ) -> None:
        self._engine = engine
        self._catalog = catalog
        self._gate = gate
        self._observer = observer or NullObserver()

    def apply(
        self,
        decisions: Mapping[str | tuple[int, int], int],
        queue_type: QueueType,
        user: ReviewerContext,
        now: datetime | None = None,
    ) -> SubmitOutcome:
        self._gate.require_queue(user, queue_type)
        now = now or utcnow()
        outcome = SubmitOutcome()
        for key, raw_code in decisions.items():
            ids = parse_decision_key(key)
            if ids is None:
                outcome.warnings.append(f"Skipped malformed decision key {key!r}.")
                continue
            article_id, topic_id = ids
            try:
                code = int(raw_code)
                state = state_for_decision(queue_type, code)
            except (TypeError, ValueError):
                outcome.warnings.append(
                    f"Article {article_id} topic {topic_id}: unreadable decision {raw_code!r}."
                )
                continue
            except InvalidDecisionCodeError as exc:
                self._observer.emit(
                    "decisions.invalid_code",
                    article_id=article_id,
                    topic_id=topic_id,
                    code=exc.code,
                    queue_type=queue_type.value,
                )
                outcome.warnings.append(f"Article {article_id} topic {topic_id}: {exc}.")
                continue
            if state is None:
                continue
            state_id = self._catalog.state_id(state)
            try:
                self._apply_one(article_id, topic_id, state_id, queue_type, user, now)
            except _SkippedDecision as exc:
                outcome.warnings.append(f"Article {article_id} topic {topic_id}: {exc}.")
                continue
            outcome.applied_count += 1
            self._observer.emit(
                "decisions.applied",
                article_id=article_id,
                topic_id=topic_id,
                state=state,
                user_id=user.id,
            )
        self._observer.emit(
            "decisions.batch_applied",
            queue_type=queue_type.value,
            applied=outcome.applied_count,
            warnings=len(outcome.warnings),
        )
        return outcome

    def _apply_one(
        self,
        article_id: int,
        topic_id: int,
        state_id: int,
        queue_type: QueueType,
        user: ReviewerContext,
        now: datetime,
    ) -> None:
        # Clearing the old current record and inserting the new one commit together.
        with Session(self._engine) as session, session.begin():
            association = session.exec(
                select(ArticleTopic).where(
                    ArticleTopic.article_id == article_id,
                    ArticleTopic.topic_id == topic_id,
                )
            ).first()
            if association is None:
                raise _SkippedDecision("article is not assigned to this topic")
            topic = session.get(Topic, topic_id)
            if topic is None or not self._gate.can_decide_topic(user, topic, queue_type):
                raise _SkippedDecision("not authorized to review this topic")
            current = session.exec(
                select(StateRecord)
                .where(
                    StateRecord.article_topic_id == association.id,
                    StateRecord.is_current == True,  # noqa: E712
                )
                .with_for_update()
            ).all()
            for record in current:
                record.is_current = False
                session.add(record)
            session.flush()
            session.add(
                StateRecord(
                    article_topic_id=association.id,
                    article_id=article_id,
                    topic_id=topic_id,
                    state_id=state_id,
                    user_id=user.id,
                    entered=now,
                    is_current=True,
                )
            )

"""Turn loaded articles into display records with per-topic decision buttons."""

from __future__ import annotations

import json
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Mapping

from sqlmodel import Session

from boardreview.db import Article, SiteConfig
from boardreview.models import (
    AbstractSection,
    ArticleDisplay,
    BoardDisplay,
    Decision,
    DecisionButton,
    DisplayFormat,
    QueueType,
    RelatedCitation,
    ReviewBoardsMode,
    TopicDisplay,
    decision_key,
)
from boardreview.services.articles import ArticleBundle, AssociationBundle, RelatedArticle, author_display
from boardreview.services.permissions import PermissionGate, ReviewerContext
from boardreview.services.trace import NullObserver, TraceObserver

TYPE_ANCESTORS_CONFIG = "article-type-ancestors"
MAX_AUTHORS = 10

FULL_TEXT_ACTIONS = (Decision.NONE, Decision.FYI, Decision.ON_HOLD, Decision.REJECT, Decision.APPROVE)
REDUCED_ACTIONS = (Decision.NONE, Decision.REJECT, Decision.APPROVE)


def actions_for_state(state: str) -> tuple[Decision, ...]:
    """Full text review gets every decision; other queues only reject/approve."""
    return FULL_TEXT_ACTIONS if state == "passed_bm_review" else REDUCED_ACTIONS


class TypeAncestry:
    """Lookup of publication type ancestors, keyed by lowercased type name."""

    def __init__(self, hierarchy: Mapping[str, list[str]] | None = None) -> None:
        self._hierarchy = {key.lower(): list(value) for key, value in (hierarchy or {}).items()}

    @classmethod
    def load(cls, session: Session, observer: TraceObserver | None = None) -> "TypeAncestry":
        row = session.get(SiteConfig, TYPE_ANCESTORS_CONFIG)
        if row is None:
            return cls()
        try:
            return cls(json.loads(row.value))
        except json.JSONDecodeError as exc:
            (observer or NullObserver()).emit("renderer.type_ancestors_unreadable", error=str(exc))
            return cls()

    def ancestors_of(self, type_name: str) -> set[str]:
        return set(self._hierarchy.get(type_name.lower(), ()))


def filter_publication_types(types: list[str], ancestry: TypeAncestry) -> list[str]:
    """Drop types that are ancestors of another listed type, and 'journal article'."""
    ancestors: set[str] = set()
    for type_name in types:
        ancestors.update(name.lower() for name in ancestry.ancestors_of(type_name))
    kept = [
        type_name
        for type_name in types
        if type_name.lower() not in ancestors and type_name.lower() != "journal article"
    ]
    return sorted(kept)


def publication_label(article: Article) -> str:
    label = article.brief_journal_title or article.journal_title or ""
    if article.year:
        label = f"{label} {article.year}".strip()
    if article.volume:
        label += f";{article.volume}"
    if article.issue:
        label += f"({article.issue})"
    if article.pagination:
        label += f":{article.pagination}"
    return label


@dataclass(slots=True)
class RenderContext:
    queue_type: QueueType
    reviewer: ReviewerContext
    decisions: Mapping[str, int] = field(default_factory=dict)
    format: DisplayFormat = DisplayFormat.BRIEF
    review_boards: ReviewBoardsMode = ReviewBoardsMode.ALL

    @property
    def state(self) -> str:
        return self.queue_type.target_state


class ArticleDecisionRenderer:
    def __init__(
        self,
        gate: PermissionGate,
        ancestry: TypeAncestry,
        *,
        pubmed_base_url: str = "https://pubmed.ncbi.nlm.nih.gov",
        observer: TraceObserver | None = None,
    ) -> None:
        self._gate = gate
        self._ancestry = ancestry
        self._pubmed = pubmed_base_url.rstrip("/")
        self._observer = observer or NullObserver()

    def render(self, bundle: ArticleBundle, context: RenderContext) -> ArticleDisplay:
        article = bundle.article
        boards: dict[str, list[TopicDisplay]] = defaultdict(list)
        for item in bundle.associations:
            display = self._topic_display(article.id, item, context)
            if display is not None:
                boards[item.board_name].append(display)
        board_displays = [
            BoardDisplay(
                name=name,
                topics=sorted(boards[name], key=lambda topic: (not topic.buttons, topic.name)),
            )
            for name in sorted(boards)
        ]
        abstract: list[AbstractSection] = []
        if context.format is DisplayFormat.ABSTRACT:
            abstract = [AbstractSection(label=p.label, text=p.text) for p in bundle.abstract]
        full_text = None
        if context.state != "published" and article.full_text_file:
            full_text = article.full_text_file
        self._observer.emit(
            "renderer.article",
            article_id=article.id,
            boards=len(board_displays),
            topics=sum(len(board.topics) for board in board_displays),
        )
        return ArticleDisplay(
            article_id=article.id,
            pmid=article.source_id,
            legacy_id=article.legacy_id,
            title=article.title,
            authors=", ".join(
                name for name in (author_display(a) for a in bundle.authors[:MAX_AUTHORS]) if name
            ),
            publication=publication_label(article),
            tags=", ".join(sorted(bundle.tags)),
            types=", ".join(filter_publication_types(bundle.types, self._ancestry)),
            related=self._related(bundle.related),
            abstract=abstract,
            full_text=full_text,
            boards=board_displays,
        )

    def _topic_display(
        self, article_id: int, item: AssociationBundle, context: RenderContext
    ) -> TopicDisplay | None:
        topic = item.topic
        mine = self._gate.is_assigned(context.reviewer, topic)
        if not mine and context.review_boards is ReviewBoardsMode.MINE:
            return None
        show_buttons = item.state == context.state and self._gate.can_decide_topic(
            context.reviewer, topic, context.queue_type
        )
        buttons: list[DecisionButton] = []
        if show_buttons:
            name = decision_key(article_id, topic.id)
            checked = int(context.decisions.get(name, 0))
            buttons = [
                DecisionButton(
                    id=f"{name}-{int(decision)}",
                    name=name,
                    label=decision.label,
                    value=int(decision),
                    checked=checked == int(decision),
                )
                for decision in actions_for_state(context.state)
            ]
        return TopicDisplay(
            topic_id=topic.id,
            name=topic.name,
            state=item.state,
            buttons=buttons,
            tags=", ".join(sorted(item.tags)),
            comments=list(item.comments),
            can_tag=mine,
        )

    def _related(self, related: list[RelatedArticle]) -> list[RelatedCitation]:
        citations = []
        for item in related:
            parts = []
            if item.first_author:
                parts.append(item.first_author)
            journal = (item.article.brief_journal_title or "").strip()
            if journal:
                parts.append(journal)
            if item.article.year:
                parts.append(str(item.article.year))
            pmid = item.article.source_id.strip()
            citations.append(
                RelatedCitation(citation=" ".join(parts), url=f"{self._pubmed}/{pmid}", pmid=pmid)
            )
        return sorted(citations, key=lambda citation: citation.citation.lower())

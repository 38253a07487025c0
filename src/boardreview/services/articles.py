"""Bulk loading of the article records shown on a queue page."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field

from sqlmodel import Session, select

from boardreview.db import (
    AbstractParagraph,
    Article,
    ArticleAuthor,
    ArticleRelation,
    ArticleTag,
    ArticleTopic,
    ArticleTopicComment,
    ArticleType,
    Board,
    StateRecord,
    TagTerm,
    Topic,
)
from boardreview.services.states import StateCatalog


@dataclass(slots=True)
class AssociationBundle:
    association: ArticleTopic
    topic: Topic
    board_name: str
    state: str
    tags: list[str] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)


@dataclass(slots=True)
class RelatedArticle:
    article: Article
    first_author: str | None = None


@dataclass(slots=True)
class ArticleBundle:
    article: Article
    authors: list[ArticleAuthor] = field(default_factory=list)
    types: list[str] = field(default_factory=list)
    abstract: list[AbstractParagraph] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    associations: list[AssociationBundle] = field(default_factory=list)
    related: list[RelatedArticle] = field(default_factory=list)


def author_display(author: ArticleAuthor) -> str:
    if author.last_name:
        return " ".join(part for part in (author.last_name, author.initials) if part)
    return author.collective_name or ""


def load_articles(session: Session, article_ids: list[int], catalog: StateCatalog) -> list[ArticleBundle]:
    """Return bundles for ``article_ids`` in the given order, skipping unknown ids."""
    if not article_ids:
        return []
    articles = session.exec(select(Article).where(Article.id.in_(article_ids))).all()
    bundles = {article.id: ArticleBundle(article=article) for article in articles}
    ids = list(bundles)

    for author in session.exec(
        select(ArticleAuthor).where(ArticleAuthor.article_id.in_(ids)).order_by(ArticleAuthor.position)
    ).all():
        bundles[author.article_id].authors.append(author)
    for item in session.exec(
        select(ArticleType).where(ArticleType.article_id.in_(ids)).order_by(ArticleType.position)
    ).all():
        bundles[item.article_id].types.append(item.value)
    for paragraph in session.exec(
        select(AbstractParagraph)
        .where(AbstractParagraph.article_id.in_(ids))
        .order_by(AbstractParagraph.position)
    ).all():
        bundles[paragraph.article_id].abstract.append(paragraph)

    topic_tags: dict[int, list[str]] = defaultdict(list)
    for tag, name in session.exec(
        select(ArticleTag, TagTerm.name)
        .join(TagTerm, TagTerm.id == ArticleTag.tag_id)
        .where(ArticleTag.article_id.in_(ids), ArticleTag.active == True)  # noqa: E712
    ).all():
        if tag.article_topic_id is None:
            bundles[tag.article_id].tags.append(name)
        else:
            topic_tags[tag.article_topic_id].append(name)

    _load_associations(session, bundles, topic_tags, catalog)
    _load_related(session, bundles)
    return [bundles[article_id] for article_id in article_ids if article_id in bundles]


def _load_associations(
    session: Session,
    bundles: dict[int, ArticleBundle],
    topic_tags: dict[int, list[str]],
    catalog: StateCatalog,
) -> None:
    rows = session.exec(
        select(ArticleTopic, Topic, Board.name)
        .join(Topic, Topic.id == ArticleTopic.topic_id)
        .join(Board, Board.id == Topic.board_id)
        .where(ArticleTopic.article_id.in_(list(bundles)))
        .order_by(ArticleTopic.id)
    ).all()
    if not rows:
        return
    association_ids = [association.id for association, _, _ in rows]
    current = {
        record.article_topic_id: record.state_id
        for record in session.exec(
            select(StateRecord).where(
                StateRecord.article_topic_id.in_(association_ids),
                StateRecord.is_current == True,  # noqa: E712
            )
        ).all()
    }
    comments: dict[int, list[str]] = defaultdict(list)
    for comment in session.exec(
        select(ArticleTopicComment)
        .where(ArticleTopicComment.article_topic_id.in_(association_ids))
        .order_by(ArticleTopicComment.entered)
    ).all():
        comments[comment.article_topic_id].append(comment.body)
    for association, topic, board_name in rows:
        state_id = current.get(association.id)
        bundles[association.article_id].associations.append(
            AssociationBundle(
                association=association,
                topic=topic,
                board_name=board_name,
                state=catalog.symbolic_name(state_id) if state_id is not None else "",
                tags=topic_tags.get(association.id, []),
                comments=comments.get(association.id, []),
            )
        )


def _load_related(session: Session, bundles: dict[int, ArticleBundle]) -> None:
    ids = list(bundles)
    relations = session.exec(
        select(ArticleRelation).where(
            ArticleRelation.related_from.in_(ids) | ArticleRelation.related_to.in_(ids)
        )
    ).all()
    links: dict[int, list[int]] = defaultdict(list)
    for relation in relations:
        if relation.related_from in bundles:
            links[relation.related_from].append(relation.related_to)
        if relation.related_to in bundles:
            links[relation.related_to].append(relation.related_from)
    other_ids = {other for targets in links.values() for other in targets}
    if not other_ids:
        return
    others = {
        article.id: article
        for article in session.exec(select(Article).where(Article.id.in_(other_ids))).all()
    }
    first_authors: dict[int, str] = {}
    for author in session.exec(
        select(ArticleAuthor)
        .where(ArticleAuthor.article_id.in_(other_ids))
        .order_by(ArticleAuthor.position)
    ).all():
        if author.last_name and author.article_id not in first_authors:
            first_authors[author.article_id] = author.last_name
    for article_id, targets in links.items():
        for other_id in dict.fromkeys(targets):
            if other_id in others:
                bundles[article_id].related.append(
                    RelatedArticle(article=others[other_id], first_author=first_authors.get(other_id))
                )

"""
Map enriched MIND records onto graph upserts, reciprocal links and aliases.
"""

from __future__ import annotations

import logging

from ..core.graph_schema import (
    EDGE_PAIRS,
    NODE_TYPES,
    Article,
    Category,
    Edges,
    Entity,
    NegativeImpressionPolicy,
    Subcategory,
    User,
)
from ..core.graph_store import GraphStore, NodeRef
from ..core.models import EPOCH, ArticleRecord, EnrichedContent, ImpressionRecord

logger = logging.getLogger(__name__)

DEFAULT_ALIAS_LANGUAGE = "en"


class GraphBuilder:
    """Writes articles, entities, categories and user interactions to a graph store.

    Args:
        store: Graph store receiving the mutations
        negative_policy: How non-clicked impressions are linked
        alias_language: Language tag for entity surface forms
        track_categories: Whether Category/Subcategory nodes are built
    """

    def __init__(
        self,
        store: GraphStore,
        negative_policy: NegativeImpressionPolicy = NegativeImpressionPolicy.IGNORED,
        alias_language: str = DEFAULT_ALIAS_LANGUAGE,
        track_categories: bool = True,
    ):
        self.store = store
        self.negative_policy = NegativeImpressionPolicy(negative_policy)
        self.alias_language = alias_language
        self.track_categories = track_categories

    def register_schema(self) -> None:
        for node_cls in NODE_TYPES:
            self.store.create_node_schema(node_cls)
        self.store.create_edge_schema(*(name for pair in EDGE_PAIRS for name in pair))

    def build_article(self, article: ArticleRecord, content: EnrichedContent) -> NodeRef:
        """Upsert one article with its categories and entities."""
        article_node = self.store.upsert(Article(
            id=article.id,
            title=article.title,
            abstract=article.abstract,
            url=article.url,
            html=content.html,
            full_text=content.full_text,
            timestamp=content.date or EPOCH,
        ))

        if self.track_categories:
            self._build_categories(article, article_node)

        for entity in article.entities:
            if not entity.wikidata_id:
                continue
            entity_node = self.store.upsert(Entity(
                wikidata_id=entity.wikidata_id,
                label=entity.label,
                wikidata_type=entity.type,
            ))
            self.store.link(article_node, entity_node, Edges.Mentions, Edges.AppearsIn)
            for surface_form in entity.surface_forms:
                self.store.add_alias(entity_node, self.alias_language, surface_form, False)

        return article_node

    def _build_categories(self, article: ArticleRecord, article_node: NodeRef) -> None:
        category_node = None
        if article.category:
            category_node = self.store.upsert(Category(name=article.category))
            self.store.link(article_node, category_node, Edges.HasCategory, Edges.CategoryOf)
        if article.subcategory:
            subcategory_node = self.store.upsert(Subcategory(name=article.subcategory))
            self.store.link(article_node, subcategory_node, Edges.HasSubcategory, Edges.SubcategoryOf)
            if category_node is not None:
                self.store.link(category_node, subcategory_node, Edges.HasSubcategory, Edges.SubcategoryOf)

    def build_impression(self, impression: ImpressionRecord) -> NodeRef:
        """Upsert the user and link it to the articles it viewed or ignored.

        Articles are referenced by key only; they are expected to have been
        committed during the article pass.
        """
        user_node = self.store.upsert(User(id=impression.user_id))

        for article_id in impression.history:
            article_node = self.store.node_ref(Article.node_type, article_id)
            self.store.link(user_node, article_node, Edges.Viewed, Edges.ViewedBy)

        for token in impression.impressions:
            article_node = self.store.node_ref(Article.node_type, token.article_id)
            if token.clicked or self.negative_policy is NegativeImpressionPolicy.VIEWED:
                self.store.link(user_node, article_node, Edges.Viewed, Edges.ViewedBy)
            else:
                self.store.link(user_node, article_node, Edges.Ignored, Edges.IgnoredBy)

        return user_node


__all__ = ["GraphBuilder", "DEFAULT_ALIAS_LANGUAGE"]

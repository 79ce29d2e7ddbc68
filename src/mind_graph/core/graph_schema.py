"""
Node and edge definitions of the MIND graph.

Every node type declares a natural key; edges always come in
(forward, inverse) pairs.
"""

from __future__ import annotations

import datetime
import enum
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional, Tuple

from .models import EPOCH


class Node:
    """Base class for graph node dataclasses.

    Subclasses set ``node_type`` and ``key_field``.
    """

    node_type: str = ""
    key_field: str = ""

    @property
    def key(self) -> str:
        return getattr(self, self.key_field)

    def properties(self) -> Dict[str, Any]:
        """Return non-key properties as JSON-friendly values."""
        props: Dict[str, Any] = {}
        for f in fields(self):
            if f.name == self.key_field:
                continue
            value = getattr(self, f.name)
            if isinstance(value, datetime.datetime):
                value = value.isoformat()
            props[f.name] = value
        return props


@dataclass
class Article(Node):
    node_type = "Article"
    key_field = "id"

    id: str
    title: Optional[str] = None
    abstract: Optional[str] = None
    url: Optional[str] = None
    html: Optional[str] = None
    full_text: Optional[str] = None
    timestamp: datetime.datetime = EPOCH


@dataclass
class User(Node):
    node_type = "User"
    key_field = "id"

    id: str


@dataclass
class Entity(Node):
    node_type = "Entity"
    key_field = "wikidata_id"

    wikidata_id: str
    label: Optional[str] = None
    wikidata_type: Optional[str] = None


@dataclass
class Category(Node):
    node_type = "Category"
    key_field = "name"

    name: str


@dataclass
class Subcategory(Node):
    node_type = "Subcategory"
    key_field = "name"

    name: str


NODE_TYPES = (Article, User, Entity, Category, Subcategory)


class Edges:
    Ignored = "Ignored"
    IgnoredBy = "IgnoredBy"
    Viewed = "Viewed"
    ViewedBy = "ViewedBy"
    CategoryOf = "CategoryOf"
    HasCategory = "HasCategory"
    SubcategoryOf = "SubcategoryOf"
    HasSubcategory = "HasSubcategory"
    AppearsIn = "AppearsIn"
    Mentions = "Mentions"


EDGE_PAIRS: List[Tuple[str, str]] = [
    (Edges.Viewed, Edges.ViewedBy),
    (Edges.Ignored, Edges.IgnoredBy),
    (Edges.HasCategory, Edges.CategoryOf),
    (Edges.HasSubcategory, Edges.SubcategoryOf),
    (Edges.Mentions, Edges.AppearsIn),
]


class NegativeImpressionPolicy(str, enum.Enum):
    """How a served-but-not-clicked impression is linked to its user."""

    IGNORED = "ignored"
    VIEWED = "viewed"


__all__ = [
    "Node",
    "Article",
    "User",
    "Entity",
    "Category",
    "Subcategory",
    "NODE_TYPES",
    "Edges",
    "EDGE_PAIRS",
    "NegativeImpressionPolicy",
]

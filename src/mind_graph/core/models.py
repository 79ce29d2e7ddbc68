"""
Record types read from the MIND archives and produced by enrichment.

Records are immutable; each is consumed once by the enricher and the graph
builder.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# Timestamp stored on articles whose publication date could not be extracted.
EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)

IMPRESSION_TIME_FORMAT = "%m/%d/%Y %I:%M:%S %p"


@dataclass(frozen=True)
class EntityMention:
    """A Wikidata entity recognised in an article title or abstract."""

    label: str
    type: str
    wikidata_id: str
    confidence: float = 0.0
    occurrence_offsets: Tuple[int, ...] = ()
    surface_forms: Tuple[str, ...] = ()

    @classmethod
    def from_json(cls, obj: Dict[str, Any]) -> "EntityMention":
        """Build a mention from one object of the archive's entity JSON arrays."""
        return cls(
            label=obj["Label"],
            type=obj["Type"],
            wikidata_id=obj["WikidataId"],
            confidence=float(obj.get("Confidence") or 0.0),
            occurrence_offsets=tuple(int(o) for o in obj.get("OccurrenceOffsets") or ()),
            surface_forms=tuple(obj.get("SurfaceForms") or ()),
        )


@dataclass(frozen=True)
class ArticleRecord:
    id: str
    category: str
    subcategory: str
    title: str
    abstract: str
    url: str
    title_entities: Tuple[EntityMention, ...] = ()
    abstract_entities: Tuple[EntityMention, ...] = ()

    @property
    def entities(self) -> List[EntityMention]:
        """Title entities followed by abstract entities."""
        return list(self.title_entities) + list(self.abstract_entities)


@dataclass(frozen=True)
class ImpressionToken:
    """One candidate of a served impression list: ``<article id>-<label>``."""

    article_id: str
    label: int

    @property
    def clicked(self) -> bool:
        return self.label == 1

    @classmethod
    def parse(cls, token: str) -> "ImpressionToken":
        """Split *token* at its last hyphen; the suffix must be an integer label.

        Raises:
            ValueError: If the token has no hyphen, an empty id, or a non-integer label.
        """
        article_id, sep, label = token.rpartition("-")
        if not sep or not article_id:
            raise ValueError(f"Impression token without a label suffix: {token!r}")
        try:
            return cls(article_id=article_id, label=int(label))
        except ValueError:
            raise ValueError(f"Impression token with a non-integer label: {token!r}") from None


@dataclass(frozen=True)
class ImpressionRecord:
    id: str
    user_id: str
    time: Optional[datetime.datetime]
    history: Tuple[str, ...] = ()
    impressions: Tuple[ImpressionToken, ...] = ()


@dataclass(frozen=True)
class EnrichedContent:
    """Page content resolved for one article; None fields mean extraction failed."""

    html: Optional[str] = None
    full_text: Optional[str] = None
    date: Optional[datetime.datetime] = None

    @classmethod
    def empty(cls) -> "EnrichedContent":
        return cls()


@dataclass(frozen=True)
class EnrichmentResult:
    """Outcome of enriching one article: success(content) or failure(reason)."""

    content: EnrichedContent = field(default_factory=EnrichedContent.empty)
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def success(cls, content: EnrichedContent) -> "EnrichmentResult":
        return cls(content=content)

    @classmethod
    def failure(cls, reason: str) -> "EnrichmentResult":
        return cls(content=EnrichedContent.empty(), reason=reason)


__all__ = [
    "EPOCH",
    "IMPRESSION_TIME_FORMAT",
    "EntityMention",
    "ArticleRecord",
    "ImpressionToken",
    "ImpressionRecord",
    "EnrichedContent",
    "EnrichmentResult",
]

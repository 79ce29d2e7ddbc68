"""
Two-phase ingestion of one MIND archive into the graph.

Phase 1 enriches and builds every article under the scheduler's bound, then
flushes the store (barrier). Phase 2 streams impressions, which reference
articles by key, committing every N records and once at the end.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from ..core.models import ArticleRecord
from .commit_batcher import CommitBatcher
from .content_enricher import ContentEnricher
from .graph_builder import GraphBuilder
from .record_reader import RecordReader
from .scheduler import BoundedScheduler

logger = logging.getLogger(__name__)


@dataclass
class IngestSummary:
    articles: int = 0
    enrichment_failures: int = 0
    impressions: int = 0
    flushes: int = 0


class IngestPipeline:
    """Reader -> enricher -> builder -> batcher, orchestrated by the scheduler."""

    def __init__(
        self,
        reader: RecordReader,
        enricher: ContentEnricher,
        builder: GraphBuilder,
        batcher: CommitBatcher,
        scheduler: BoundedScheduler,
    ):
        self.reader = reader
        self.enricher = enricher
        self.builder = builder
        self.batcher = batcher
        self.scheduler = scheduler
        self.summary = IngestSummary()
        self._lock = threading.Lock()

    def _ingest_article(self, article: ArticleRecord) -> None:
        logger.debug(f"Ingesting article {article.title}\n\t{article.url}")
        result = self.enricher.enrich(article)
        self.builder.build_article(article, result.content)
        with self._lock:
            self.summary.articles += 1
            if not result.ok:
                self.summary.enrichment_failures += 1

    def ingest_articles(self) -> int:
        logger.info(f"Reading articles from {self.reader.archive_path.name}...")
        self.scheduler.run(self.reader.read_news(), self._ingest_article)
        logger.info(
            f"Ingested {self.summary.articles} articles "
            f"({self.summary.enrichment_failures} without page content)"
        )
        return self.summary.articles

    def ingest_impressions(self) -> int:
        logger.info(f"Reading impressions from {self.reader.archive_path.name}...")
        for impression in self.reader.read_impressions():
            self.builder.build_impression(impression)
            self.summary.impressions += 1
            self.batcher.record()
        return self.summary.impressions

    def run(self) -> IngestSummary:
        self.ingest_articles()
        self.batcher.barrier()
        self.ingest_impressions()
        self.batcher.finish()
        self.summary.flushes = self.batcher.flushes
        return self.summary


__all__ = ["IngestPipeline", "IngestSummary"]

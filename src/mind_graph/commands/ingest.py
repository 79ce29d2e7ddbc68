"""
Ingest one MIND release into a graph store.

Steps
-----

- Resolve the dataset for the ``small``/``large`` selector and download any
  missing archive plus the document-type map.
- Connect to the graph store and register node and edge schemas.
- Article pass: enrich pages (cache first, then network) and build article,
  category and entity nodes with at most ``ingest.max_in_flight`` units in
  flight; flush.
- Impression pass: build users and their Viewed/Ignored links, committing every
  ``ingest.commit_every`` impressions and once at the end.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..core.command_context import CommandContext
from ..core.graph_schema import NegativeImpressionPolicy
from ..core.graph_store import connect
from ..core.html_cache import HtmlCache
from ..processors.commit_batcher import DEFAULT_COMMIT_EVERY, CommitBatcher
from ..processors.content_enricher import ContentEnricher
from ..processors.graph_builder import DEFAULT_ALIAS_LANGUAGE, GraphBuilder
from ..processors.pipeline import IngestPipeline, IngestSummary
from ..processors.record_reader import RecordReader
from ..processors.scheduler import DEFAULT_MAX_IN_FLIGHT, BoundedScheduler

logger = logging.getLogger(__name__)


def run(
    config_path: Optional[str],
    size: str,
    server: str,
    token: str,
    *,
    split: Optional[str] = None,
    negatives: Optional[str] = None,
    max_in_flight: Optional[int] = None,
    commit_every: Optional[int] = None,
) -> IngestSummary:
    """Download (if needed) and ingest the MIND archive selected by *size*.

    Args:
        config_path: Path to the main configuration file (None = default location)
        size: Dataset size selector, ``small`` or ``large``
        server: Graph store address (``http(s)://`` server or SQLite path)
        token: Access token for the graph server
        split: ``train`` or ``dev``; overrides ``dataset.split``
        negatives: ``ignored`` or ``viewed``; overrides ``ingest.negative_impressions``
        max_in_flight: Overrides ``ingest.max_in_flight``
        commit_every: Overrides ``ingest.commit_every``

    Raises:
        ValueError: On an invalid selector or configuration
    """
    with CommandContext(config_path) as ctx:
        spec = ctx.dataset_spec(size)
        split = split or ctx.get('dataset', 'split', 'train')
        policy = NegativeImpressionPolicy(negatives or ctx.get('ingest', 'negative_impressions', 'ignored'))
        max_in_flight = max_in_flight or int(ctx.get('ingest', 'max_in_flight', DEFAULT_MAX_IN_FLIGHT))
        commit_every = commit_every or int(ctx.get('ingest', 'commit_every', DEFAULT_COMMIT_EVERY))

        type_map = ctx.downloader.download(spec)
        archive_path = ctx.downloader.archive_path(spec, split)

        enricher = ContentEnricher(
            type_map,
            HtmlCache(ctx.cache_dir),
            ctx.http,
            timeout=float(ctx.get('enrichment', 'timeout', 600)),
        )

        with connect(server, token, ctx.get('ingest', 'graph_name', 'MIND')) as graph:
            builder = GraphBuilder(
                graph,
                negative_policy=policy,
                alias_language=ctx.get('ingest', 'alias_language', DEFAULT_ALIAS_LANGUAGE),
                track_categories=bool(ctx.get('ingest', 'track_categories', True)),
            )
            builder.register_schema()

            pipeline = IngestPipeline(
                reader=RecordReader(archive_path),
                enricher=enricher,
                builder=builder,
                batcher=CommitBatcher(graph, commit_every=commit_every),
                scheduler=BoundedScheduler(max_in_flight=max_in_flight, name="article"),
            )
            summary = pipeline.run()

        logger.info(
            f"Ingested {summary.articles} articles and {summary.impressions} impressions "
            f"from {archive_path.name} ({summary.flushes} commits)"
        )
        return summary

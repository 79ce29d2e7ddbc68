"""Periodic flushing of the graph store's pending-mutation buffer."""

from __future__ import annotations

import logging

from ..core.graph_store import GraphStore

logger = logging.getLogger(__name__)

DEFAULT_COMMIT_EVERY = 10000


class CommitBatcher:
    """Sole authority for flushing the store during ingestion.

    ``record()`` flushes after every ``commit_every`` impression records,
    ``barrier()`` flushes between the article and impression passes, and
    ``finish()`` performs the one unconditional final flush.
    """

    def __init__(self, store: GraphStore, commit_every: int = DEFAULT_COMMIT_EVERY):
        if commit_every < 1:
            raise ValueError(f"commit_every must be at least 1 (got {commit_every})")
        self.store = store
        self.commit_every = commit_every
        self.processed = 0
        self.periodic_flushes = 0
        self.barrier_flushes = 0
        self.final_flushes = 0

    @property
    def flushes(self) -> int:
        return self.periodic_flushes + self.barrier_flushes + self.final_flushes

    def record(self) -> bool:
        """Count one processed impression; returns True when it triggered a flush."""
        self.processed += 1
        if self.processed % self.commit_every:
            return False
        written = self.store.commit_pending()
        self.periodic_flushes += 1
        logger.info(f"Ingested {self.processed:,} impressions, committed {written} mutations")
        return True

    def barrier(self) -> int:
        written = self.store.commit_pending()
        self.barrier_flushes += 1
        logger.info(f"Article pass committed ({written} mutations)")
        return written

    def finish(self) -> int:
        written = self.store.commit_pending()
        self.final_flushes += 1
        logger.info(f"Final commit after {self.processed:,} impressions ({written} mutations)")
        return written


__all__ = ["CommitBatcher", "DEFAULT_COMMIT_EVERY"]

"""
Bounded-concurrency execution of per-record units of work.

At most ``max_in_flight`` units are outstanding. When the bound is reached the
scheduler waits for any one unit to finish, prunes every finished unit, and
only then admits the next record. The first failing unit aborts the run: its
exception is re-raised after queued units are cancelled.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Iterable, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_IN_FLIGHT = 20


class BoundedScheduler:
    """Runs ``fn(item)`` for every item with a fixed bound on in-flight units."""

    def __init__(self, max_in_flight: int = DEFAULT_MAX_IN_FLIGHT, name: str = "unit"):
        if max_in_flight < 1:
            raise ValueError(f"max_in_flight must be at least 1 (got {max_in_flight})")
        self.max_in_flight = max_in_flight
        self.name = name
        self.submitted = 0
        self.completed = 0
        self.peak_in_flight = 0
        self._running = 0
        self._lock = threading.Lock()

    def _track(self, fn: Callable[[T], object]) -> Callable[[T], object]:
        def unit(item: T) -> object:
            with self._lock:
                self._running += 1
                self.peak_in_flight = max(self.peak_in_flight, self._running)
            try:
                return fn(item)
            finally:
                with self._lock:
                    self._running -= 1
        return unit

    def _prune(self, done: Set[Future]) -> None:
        for future in done:
            # Propagates the unit's exception, if any.
            future.result()
            self.completed += 1

    def run(self, items: Iterable[T], fn: Callable[[T], object]) -> int:
        """Process every item; returns the number of completed units."""
        unit = self._track(fn)
        pending: Set[Future] = set()
        executor = ThreadPoolExecutor(max_workers=self.max_in_flight, thread_name_prefix=self.name)
        try:
            for item in items:
                while len(pending) >= self.max_in_flight:
                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    self._prune(done)
                pending.add(executor.submit(unit, item))
                self.submitted += 1

            while pending:
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                self._prune(done)
        except BaseException:
            for future in pending:
                future.cancel()
            logger.error(f"Aborting after {self.completed} completed {self.name}s; {len(pending)} outstanding")
            raise
        finally:
            executor.shutdown(wait=True)

        logger.debug(f"{self.completed} {self.name}s completed (peak in flight: {self.peak_in_flight})")
        return self.completed


__all__ = ["BoundedScheduler", "DEFAULT_MAX_IN_FLIGHT"]

"""
Garbage collection strategies for unreferenced objects.

A collector only decides which objects to reclaim; removing them is
BlobStore.run_gc()'s job.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, List

from ..errors import ObjectNotFoundError
from ..model.blob import Blob

logger = logging.getLogger(__name__)


class GarbageCollector(ABC):
    """Strategy that finds removal candidates in a store."""

    @abstractmethod
    def find(self, store) -> List[Blob]:
        """
        Return the objects that may be removed.

        `store` is a BlobStore. Candidates are recomputed from scratch on
        every call; nothing is remembered between runs.
        """
        ...


class MarkAndSweepCollector(GarbageCollector):
    """
    Default collector.

    1. Mark: every object named by a staging link is live
    2. Enumerate: every committed object
    3. Candidates: committed objects that no link names
    """

    def find(self, store) -> List[Blob]:
        linked = store.linked()
        candidates = [obj for obj in store.list() if obj not in linked]
        logger.debug(
            "Mark-and-sweep: %d linked, %d candidates",
            len(linked),
            len(candidates),
        )
        return candidates


class GracePeriodCollector(GarbageCollector):
    """
    Mark-and-sweep that spares recently committed objects.

    Objects committed less than `grace_seconds` ago are kept even when
    nothing links to them yet, so a writer has time to commit and then
    link. The age is taken from the object file's modification time.
    """

    def __init__(self, grace_seconds: float, clock: Callable[[], float] = time.time):
        if grace_seconds < 0:
            raise ValueError("grace_seconds must not be negative")
        self.grace_seconds = grace_seconds
        self.clock = clock
        self._inner = MarkAndSweepCollector()

    def find(self, store) -> List[Blob]:
        cutoff = self.clock() - self.grace_seconds
        candidates = []
        for obj in self._inner.find(store):
            try:
                modified = store.modified_time(obj)
            except ObjectNotFoundError:
                # Removed by someone else since it was listed.
                continue
            if modified < cutoff:
                candidates.append(obj)
        return candidates

    def __repr__(self) -> str:
        return f"GracePeriodCollector(grace_seconds={self.grace_seconds})"

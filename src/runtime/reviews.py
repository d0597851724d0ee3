"""
Registry of in-progress photo reviews for the HTTP layer.

Reviews that are never committed or discarded are dropped once they have
not been used for `ttl_seconds`; when more than `max_open` are open the least
recently used go first.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Callable, Dict, Optional, Tuple

from counting.workflow import CountingWorkflow
from models.errors import NotFoundError

DEFAULT_REVIEW_TTL_SECONDS = 3600.0
DEFAULT_MAX_OPEN_REVIEWS = 100


class ReviewRegistry:
    """Maps review ids to live CountingWorkflow instances."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_REVIEW_TTL_SECONDS,
        max_open: int = DEFAULT_MAX_OPEN_REVIEWS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_open = max_open
        self._clock = clock
        # Ordered least recently used first
        self._reviews: Dict[str, Tuple[CountingWorkflow, float]] = {}
        self._lock = threading.Lock()

    def _prune(self) -> None:
        """Drop expired reviews, then the oldest ones beyond max_open. Caller holds the lock."""
        cutoff = self._clock() - self.ttl_seconds
        expired = [rid for rid, (_, used) in self._reviews.items() if used <= cutoff]
        for rid in expired:
            del self._reviews[rid]
        if expired:
            logging.info(f"Expired {len(expired)} abandoned review(s)")

        while len(self._reviews) > self.max_open:
            rid = next(iter(self._reviews))
            del self._reviews[rid]
            logging.warning(f"Review {rid} evicted, more than {self.max_open} open")

    def add(self, workflow: CountingWorkflow) -> str:
        review_id = f"review_{uuid.uuid4().hex}"
        with self._lock:
            self._reviews[review_id] = (workflow, self._clock())
            self._prune()
        logging.debug(f"Review {review_id} opened for {workflow.photo_path}")
        return review_id

    def get(self, review_id: str) -> CountingWorkflow:
        """Look up a review and mark it as used."""
        with self._lock:
            self._prune()
            entry = self._reviews.pop(review_id, None)
            if entry is not None:
                self._reviews[review_id] = (entry[0], self._clock())
        if entry is None:
            raise NotFoundError(f"Review not found: {review_id}")
        return entry[0]

    def discard(self, review_id: str) -> Optional[CountingWorkflow]:
        with self._lock:
            entry = self._reviews.pop(review_id, None)
        if entry is None:
            return None
        logging.debug(f"Review {review_id} closed")
        return entry[0]

    def __len__(self) -> int:
        with self._lock:
            self._prune()
            return len(self._reviews)

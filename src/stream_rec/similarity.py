"""Pairwise content-to-content similarity."""
import logging
import threading
from typing import Collection

from .config import (
    DURATION_CLOSE_SECONDS,
    DURATION_NEAR_SECONDS,
    SHORT_MAX_SECONDS,
    MEDIUM_MAX_SECONDS,
)
from .models import ContentItem, DurationBucket
from .weights import ScoringWeights

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS = ScoringWeights()


def duration_bucket(duration: int) -> DurationBucket:
    if duration < SHORT_MAX_SECONDS:
        return DurationBucket.SHORT
    if duration < MEDIUM_MAX_SECONDS:
        return DurationBucket.MEDIUM
    return DurationBucket.LONG


def jaccard(a: Collection[str], b: Collection[str]) -> float:
    """|a ∩ b| / |a ∪ b|, 0.0 for two empty sets."""
    set_a, set_b = set(a), set(b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def similarity(a: ContentItem, b: ContentItem, weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    """
    Additive attribute-overlap score between two items.

    Each term is skipped when the attribute is missing on either side, so
    two items sharing nothing comparable score exactly 0.0.
    """
    score = 0.0

    if a.genre is not None and b.genre is not None and a.genre == b.genre:
        score += weights.genre

    if a.category_id is not None and b.category_id is not None and a.category_id == b.category_id:
        score += weights.category

    if a.content_type is not None and b.content_type is not None and a.content_type == b.content_type:
        score += weights.content_type

    if a.tags is not None and b.tags is not None:
        score += jaccard(a.tags, b.tags) * weights.tag

    if a.duration is not None and b.duration is not None:
        diff = abs(a.duration - b.duration)
        if diff < DURATION_CLOSE_SECONDS:
            score += weights.duration
        elif diff < DURATION_NEAR_SECONDS:
            score += weights.duration * 0.5

    return score


class SimilarityCache:
    """
    Thread-safe memo of pairwise similarities.

    Keys are unordered content-id pairs, so it is only valid for one catalog
    version and one weight record; build a new cache when either changes.
    """

    def __init__(self, weights: ScoringWeights = DEFAULT_WEIGHTS):
        self.weights = weights
        self._scores: dict[frozenset[int], float] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def similarity(self, a: ContentItem, b: ContentItem) -> float:
        key = frozenset((a.id, b.id))
        with self._lock:
            cached = self._scores.get(key)
            if cached is not None:
                self.hits += 1
                return cached
        score = similarity(a, b, self.weights)
        with self._lock:
            self._scores[key] = score
            self.misses += 1
        return score

    def clear(self) -> None:
        with self._lock:
            self._scores.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._scores)

from dataclasses import dataclass
import logging
import random
from collections import Counter
from datetime import datetime
from typing import Callable, Collection, Iterable, Mapping, Sequence

import numpy as np

from .models import (
    ContentItem,
    ContentType,
    InvalidArgument,
    WatchHistoryEntry,
    utcnow,
    validate_limit,
    validate_ratings,
)
from .profile import UserPreferenceProfile, build_profile
from .scoring import CandidateScorer
from .similarity import SimilarityCache, similarity
from .weights import ScoringWeights

logger = logging.getLogger(__name__)


@dataclass
class Recommendation:
    item: ContentItem
    score: float

    @property
    def content_id(self) -> int:
        return self.item.id

    @property
    def title(self) -> str:
        return self.item.title


def _rank(items: Sequence[ContentItem], scores: Sequence[float], limit: int) -> list[Recommendation]:
    """
    Top ``limit`` items by descending score.

    Uses a stable sort on negated scores so equal scores keep input order.
    """
    if not items or limit == 0:
        return []
    order = np.argsort(-np.asarray(scores, dtype=float), kind="stable")[:limit]
    return [Recommendation(item=items[i], score=float(scores[i])) for i in order]


class ContentRecommender:
    """
    Rank catalog items for a viewer, for an item, or for the whole audience.

    Stateless between calls: every method works only on the inputs it is
    given. Time and randomness are injected (``clock``, ``rng``) so results
    are reproducible in tests.
    """

    def __init__(
        self,
        weights: ScoringWeights | None = None,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
        similarity_cache: SimilarityCache | None = None,
    ):
        if weights is None:
            weights = similarity_cache.weights if similarity_cache is not None else ScoringWeights()
        if similarity_cache is not None and similarity_cache.weights != weights:
            raise InvalidArgument("similarity_cache was built with different weights than the recommender")
        self.weights = weights
        self.clock = clock or utcnow
        self.rng = rng or random.Random()
        self.similarity_cache = similarity_cache

    def _similarity(self, a: ContentItem, b: ContentItem) -> float:
        if self.similarity_cache is not None:
            return self.similarity_cache.similarity(a, b)
        return similarity(a, b, self.weights)

    def profile(
        self,
        catalog: Sequence[ContentItem],
        watch_history: Sequence[WatchHistoryEntry],
        ratings: Mapping[int, int] | None = None,
    ) -> UserPreferenceProfile:
        return build_profile(watch_history, catalog, ratings)

    def recommend(
        self,
        catalog: Sequence[ContentItem],
        watch_history: Sequence[WatchHistoryEntry],
        ratings: Mapping[int, int] | None = None,
        limit: int = 10,
        exclude: Collection[int] | None = None,
        content_type: ContentType | None = None,
    ) -> list[Recommendation]:
        """
        Personalized recommendations for one viewer.

        Watched items are never returned. With no watch history there is no
        personalization signal, so the result is a random sample of the
        catalog (minus ``exclude``) drawn from ``self.rng``.

        Args:
            catalog: Candidate catalog, in display order
            watch_history: Viewer's watch history snapshot
            ratings: Optional explicit ratings (content id -> 1..5)
            limit: Maximum number of results
            exclude: Content ids to leave out (e.g. the watchlist)
            content_type: Only consider catalog items of this type

        Raises:
            InvalidArgument: if ``limit`` is negative or a rating is out of range
        """
        validate_limit(limit)
        ratings = validate_ratings(ratings)
        excluded = set(exclude or ())

        if content_type is not None:
            catalog = [item for item in catalog if item.content_type == content_type]
        if not catalog or limit == 0:
            return []

        if not watch_history:
            pool = [item for item in catalog if item.id not in excluded]
            logger.debug(f"No watch history; returning random sample of {len(pool)} items")
            sample = self.rng.sample(pool, min(limit, len(pool)))
            return [Recommendation(item=item, score=0.0) for item in sample]

        watched_ids = {entry.content_id for entry in watch_history}
        candidates = [
            item for item in catalog
            if item.id not in watched_ids and item.id not in excluded
        ]
        if not candidates:
            return []

        profile = build_profile(watch_history, catalog, ratings)
        scorer = CandidateScorer(self.weights, now=self.clock(), similarity_cache=self.similarity_cache)
        scores = scorer.score_all(candidates, profile, watch_history, catalog, ratings)

        logger.debug(f"Scored {len(candidates)} candidates ({len(watched_ids)} watched)")
        return _rank(candidates, scores, limit)

    def similar_to(
        self,
        target: ContentItem,
        catalog: Sequence[ContentItem],
        limit: int = 5,
    ) -> list[Recommendation]:
        """Items most similar to ``target`` by attributes alone; never ``target`` itself."""
        validate_limit(limit)
        candidates = [item for item in catalog if item.id != target.id]
        scores = [self._similarity(target, item) for item in candidates]
        return _rank(candidates, scores, limit)

    def trending(
        self,
        catalog: Sequence[ContentItem],
        history_pool: Iterable[WatchHistoryEntry | int],
        limit: int = 10,
    ) -> list[Recommendation]:
        """
        Items ranked by watch count across a history pool.

        The pool may span many viewers and may hold entries or bare content
        ids. Items nobody watched still appear, with a count of 0, after
        every watched item.
        """
        validate_limit(limit)
        counts = Counter(
            entry.content_id if isinstance(entry, WatchHistoryEntry) else int(entry)
            for entry in history_pool
        )
        scores = [counts.get(item.id, 0) for item in catalog]
        return _rank(list(catalog), scores, limit)

    def popular(self, catalog: Sequence[ContentItem], limit: int = 10) -> list[Recommendation]:
        """
        Anonymous-visitor ranking: popularity, then newer release year.

        Items without a popularity score rank as 0.
        """
        validate_limit(limit)
        items = list(catalog)
        if not items or limit == 0:
            return []
        popularity = np.array([item.popularity or 0.0 for item in items], dtype=float)
        years = np.array([item.release_year for item in items], dtype=float)
        # lexsort sorts by the last key first and is stable
        order = np.lexsort((-years, -popularity))[:limit]
        return [Recommendation(item=items[i], score=float(popularity[i])) for i in order]

    def recommend_by_category(
        self,
        catalog: Sequence[ContentItem],
        watch_history: Sequence[WatchHistoryEntry],
        limit: int = 10,
        exclude: Collection[int] | None = None,
    ) -> list[Recommendation]:
        """
        Category-frequency ranking for callers that want the simple variant.

        Each unwatched item scores the number of history entries in its
        category. Falls back to ``recommend`` (random sample) without history.
        """
        if not watch_history:
            return self.recommend(catalog, watch_history, limit=limit, exclude=exclude)
        validate_limit(limit)

        items_by_id = {item.id: item for item in catalog}
        category_counts = Counter(
            items_by_id[entry.content_id].category_id
            for entry in watch_history
            if entry.content_id in items_by_id and items_by_id[entry.content_id].category_id is not None
        )
        watched_ids = {entry.content_id for entry in watch_history}
        excluded = set(exclude or ())
        candidates = [
            item for item in catalog
            if item.id not in watched_ids and item.id not in excluded
        ]
        scores = [category_counts.get(item.category_id, 0) for item in candidates]
        return _rank(candidates, scores, limit)


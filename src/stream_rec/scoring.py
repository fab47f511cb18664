"""
Per-candidate scoring for personalized recommendations.

A candidate's score is the sum of:
- base attractiveness (popularity, premium and duration preference match)
- profile match (favored genres, categories, content types, tags)
- collaborative terms: similarity to every watched item, scaled by how
  fully and how recently it was watched
- rating terms: similarity to every item the viewer rated 4 or 5

Scores are relative ranking signals only; nothing is normalized or clamped.
"""
import logging
import math
from datetime import datetime
from typing import Callable, Iterable, Mapping, Sequence

import numpy as np

from .config import MIN_POSITIVE_RATING, PARTIAL_WATCH_FACTOR, RECENCY_DECAY_RATE
from .models import ContentItem, InvalidArgument, WatchHistoryEntry, to_naive_utc
from .profile import UserPreferenceProfile
from .similarity import SimilarityCache, duration_bucket, similarity
from .weights import ScoringWeights

logger = logging.getLogger(__name__)

SimilarityFunc = Callable[[ContentItem, ContentItem], float]


def _index(catalog: Iterable[ContentItem] | Mapping[int, ContentItem]) -> Mapping[int, ContentItem]:
    if isinstance(catalog, Mapping):
        return catalog
    return {item.id: item for item in catalog}


def days_between(earlier: datetime, later: datetime) -> float:
    """Fractional days from ``earlier`` to ``later``; future timestamps count as 0."""
    delta = to_naive_utc(later) - to_naive_utc(earlier)
    return max(0.0, delta.total_seconds() / 86400)


def recency_factor(days_since_watched: float, recency_weight: float) -> float:
    """
    Boost for recent watches with exponential decay.

    1 + exp(-0.1 * days) * weight: a watch from today counts (1 + weight)
    times, one from a month ago barely more than once.
    """
    return 1 + math.exp(-RECENCY_DECAY_RATE * days_since_watched) * recency_weight


class CandidateScorer:
    """
    Score unwatched candidates against one viewer's signals.

    ``now`` is the reference time for recency decay. It is passed in rather
    than read from the wall clock so identical inputs give identical scores.
    """

    def __init__(
        self,
        weights: ScoringWeights | None = None,
        now: datetime | None = None,
        similarity_cache: SimilarityCache | None = None,
    ):
        if now is None:
            raise ValueError("CandidateScorer needs an explicit reference time")
        if weights is None:
            weights = similarity_cache.weights if similarity_cache is not None else ScoringWeights()
        if similarity_cache is not None and similarity_cache.weights != weights:
            raise InvalidArgument("similarity_cache was built with different weights than the scorer")
        self.weights = weights
        self.now = to_naive_utc(now)
        if similarity_cache is not None:
            self._similarity: SimilarityFunc = similarity_cache.similarity
        else:
            self._similarity = lambda a, b: similarity(a, b, self.weights)

    def watch_multiplier(self, entry: WatchHistoryEntry) -> float:
        """Completion scale times recency factor for one history entry."""
        if entry.completed:
            multiplier = self.weights.completion_bonus
        else:
            multiplier = (entry.watch_time_percentage / 100) * PARTIAL_WATCH_FACTOR
        days = days_between(entry.watched_at, self.now)
        return multiplier * recency_factor(days, self.weights.recency)

    def _collaborative_anchors(
        self,
        watch_history: Sequence[WatchHistoryEntry],
        items_by_id: Mapping[int, ContentItem],
    ) -> tuple[list[ContentItem], np.ndarray]:
        """Watched items (one per history entry) and their multipliers."""
        items: list[ContentItem] = []
        multipliers: list[float] = []
        for entry in watch_history:
            item = items_by_id.get(entry.content_id)
            if item is None:
                continue
            items.append(item)
            multipliers.append(self.watch_multiplier(entry))
        return items, np.asarray(multipliers, dtype=float)

    @staticmethod
    def _rating_anchors(
        ratings: Mapping[int, int] | None,
        items_by_id: Mapping[int, ContentItem],
    ) -> tuple[list[ContentItem], np.ndarray]:
        """Highly rated catalog items and their rating / 5 factors."""
        items: list[ContentItem] = []
        factors: list[float] = []
        for content_id, rating in (ratings or {}).items():
            if rating < MIN_POSITIVE_RATING:
                continue
            item = items_by_id.get(content_id)
            if item is None:
                logger.debug(f"Rated content {content_id} not in catalog, skipping")
                continue
            items.append(item)
            factors.append(rating / 5)
        return items, np.asarray(factors, dtype=float)

    def base_score(self, candidate: ContentItem, profile: UserPreferenceProfile) -> float:
        """Popularity plus preference-profile terms, independent of history items."""
        w = self.weights
        score = 0.0

        if candidate.popularity is not None:
            score += (candidate.popularity / 100) * w.popularity

        if profile.prefers_premium is not None and candidate.is_premium == profile.prefers_premium:
            score += w.premium

        if (
            profile.preferred_duration is not None
            and candidate.duration is not None
            and duration_bucket(candidate.duration) == profile.preferred_duration
        ):
            score += w.duration_preference

        if profile.favorite_genres and candidate.genre in profile.favorite_genres:
            score += w.genre

        if profile.favorite_categories and candidate.category_id in profile.favorite_categories:
            score += w.category

        if profile.favorite_content_types and candidate.content_type in profile.favorite_content_types:
            score += w.content_type

        if profile.favorite_tags and candidate.tags:
            matching = sum(1 for tag in candidate.tags if tag in profile.favorite_tags)
            score += (matching / len(candidate.tags)) * w.tag

        return score

    def _anchor_score(self, candidate: ContentItem, anchors: list[ContentItem], factors: np.ndarray) -> float:
        if not anchors:
            return 0.0
        sims = np.fromiter(
            (self._similarity(candidate, anchor) for anchor in anchors),
            dtype=float,
            count=len(anchors),
        )
        return float(sims @ factors)

    def score_all(
        self,
        candidates: Sequence[ContentItem],
        profile: UserPreferenceProfile,
        watch_history: Sequence[WatchHistoryEntry],
        catalog: Iterable[ContentItem] | Mapping[int, ContentItem],
        ratings: Mapping[int, int] | None = None,
    ) -> np.ndarray:
        """
        Score a batch of candidates, in input order.

        History multipliers and rating anchors are resolved once per call and
        shared by every candidate.
        """
        items_by_id = _index(catalog)
        watched, multipliers = self._collaborative_anchors(watch_history, items_by_id)
        rating_map = profile.ratings if profile.ratings is not None else ratings
        rated, rating_factors = self._rating_anchors(rating_map, items_by_id)

        logger.debug(
            f"Scoring {len(candidates)} candidates against {len(watched)} watches "
            f"and {len(rated)} positive ratings"
        )

        scores = np.zeros(len(candidates), dtype=float)
        for i, candidate in enumerate(candidates):
            scores[i] = (
                self.base_score(candidate, profile)
                + self._anchor_score(candidate, watched, multipliers)
                + self._anchor_score(candidate, rated, rating_factors)
            )
        return scores

    def score(
        self,
        candidate: ContentItem,
        profile: UserPreferenceProfile,
        watch_history: Sequence[WatchHistoryEntry],
        catalog: Iterable[ContentItem] | Mapping[int, ContentItem],
        ratings: Mapping[int, int] | None = None,
    ) -> float:
        return float(self.score_all([candidate], profile, watch_history, catalog, ratings)[0])

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Hashable, Iterable, Mapping, Sequence

from .config import MAX_FAVORITE_TAGS
from .models import ContentItem, ContentType, DurationBucket, WatchHistoryEntry, validate_ratings
from .similarity import duration_bucket

logger = logging.getLogger(__name__)

# Tie order for the preferred duration bucket
_BUCKET_ORDER = (DurationBucket.SHORT, DurationBucket.MEDIUM, DurationBucket.LONG)


@dataclass(frozen=True)
class UserPreferenceProfile:
    """
    Implicit taste profile derived from one viewer's history and ratings.

    Ranked fields are ordered by descending weight. Every field is None when
    there was no signal for it, so scoring can skip it without checking for
    empty containers.
    """
    favorite_genres: tuple[str, ...] | None = None
    favorite_categories: tuple[int, ...] | None = None
    favorite_content_types: tuple[ContentType, ...] | None = None
    favorite_tags: tuple[str, ...] | None = None
    preferred_duration: DurationBucket | None = None
    prefers_premium: bool | None = None
    ratings: dict[int, int] | None = None

    @property
    def is_empty(self) -> bool:
        """True for the default profile (no personalization signal)."""
        return self == UserPreferenceProfile()


def _rank(weights: Mapping[Hashable, float], limit: int | None = None) -> tuple | None:
    """
    Keys by descending weight; ties keep insertion order (sorted is stable).

    Returns None instead of an empty tuple.
    """
    ranked = [key for key, _ in sorted(weights.items(), key=lambda kv: -kv[1])]
    if limit is not None:
        ranked = ranked[:limit]
    return tuple(ranked) if ranked else None


def _preferred_bucket(bucket_weights: Mapping[DurationBucket, float]) -> DurationBucket | None:
    if not bucket_weights:
        return None
    # max() keeps the first maximal element, so ties resolve short > medium > long
    return max(_BUCKET_ORDER, key=lambda b: bucket_weights.get(b, 0.0))


def build_profile(
    watch_history: Sequence[WatchHistoryEntry],
    catalog: Iterable[ContentItem] | Mapping[int, ContentItem],
    ratings: Mapping[int, int] | None = None,
) -> UserPreferenceProfile:
    """
    Build preference profile from a viewer's watch history and ratings.

    Weighting strategy (per history entry, re-watches accumulate):
    - Completed watch:  2.0
    - Partial watch:    watch_time_percentage / 100

    Tags share their item's weight evenly, so an item with many tags does
    not outweigh single-tag items. Entries whose content id is not in the
    catalog are skipped.

    Args:
        watch_history: Viewer's history entries
        catalog: Catalog items, or a mapping of content id -> item
        ratings: Optional explicit ratings (content id -> 1..5)

    Returns:
        UserPreferenceProfile; the default (empty) profile when no history
        entry matched the catalog.
    """
    if isinstance(catalog, Mapping):
        items_by_id = catalog
    else:
        items_by_id = {item.id: item for item in catalog}
    rating_map = validate_ratings(ratings) or None

    genre_weights: dict[str, float] = defaultdict(float)
    category_weights: dict[int, float] = defaultdict(float)
    type_weights: dict[ContentType, float] = defaultdict(float)
    tag_weights: dict[str, float] = defaultdict(float)
    bucket_weights: dict[DurationBucket, float] = defaultdict(float)
    premium_weight = 0.0
    free_weight = 0.0

    # Re-watches accumulate; items are then visited in catalog order so that
    # equal weights rank by catalog position.
    watch_weights: dict[int, float] = defaultdict(float)
    skipped = 0
    for entry in watch_history:
        if entry.content_id not in items_by_id:
            skipped += 1
            continue
        watch_weights[entry.content_id] += entry.weight

    for content_id, item in items_by_id.items():
        if content_id not in watch_weights:
            continue
        weight = watch_weights[content_id]

        if item.genre is not None:
            genre_weights[item.genre] += weight
        if item.category_id is not None:
            category_weights[item.category_id] += weight
        if item.content_type is not None:
            type_weights[item.content_type] += weight
        if item.tags:
            share = weight / len(item.tags)
            for tag in item.tags:
                tag_weights[tag] += share
        if item.duration is not None:
            bucket_weights[duration_bucket(item.duration)] += weight
        if item.is_premium:
            premium_weight += weight
        else:
            free_weight += weight

    if skipped:
        logger.debug(f"Skipped {skipped} history entries not present in catalog")

    if not watch_weights:
        return UserPreferenceProfile()

    return UserPreferenceProfile(
        favorite_genres=_rank(genre_weights),
        favorite_categories=_rank(category_weights),
        favorite_content_types=_rank(type_weights),
        favorite_tags=_rank(tag_weights, limit=MAX_FAVORITE_TAGS),
        preferred_duration=_preferred_bucket(bucket_weights),
        prefers_premium=premium_weight > free_weight,
        ratings=rating_map,
    )

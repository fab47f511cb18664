"""
Catalog, watch-history and rating types consumed by the recommender.

Everything here is immutable: the engine reads catalog and history
snapshots but never changes them. Optional attributes are ``None`` when
absent so scoring can skip them explicitly.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from .config import COMPLETED_PROGRESS, COMPLETED_WATCH_WEIGHT, MAX_RATING, MIN_RATING

logger = logging.getLogger(__name__)


class InvalidArgument(ValueError):
    """Raised when a caller passes a value outside the engine's contract."""


class ContentType(Enum):
    MOVIE = "movie"
    SERIES = "series"
    MUSIC_VIDEO = "music_video"
    TRAILER = "trailer"
    SHORT_FILM = "short_film"


class DurationBucket(Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


def parse_timestamp_naive(timestamp_str: str) -> datetime:
    """
    Parse ISO format timestamp string to naive UTC datetime.

    Aware timestamps are converted to UTC before dropping tzinfo, so values
    from different zones stay comparable with each other and with the clock.
    """
    if timestamp_str.endswith("Z"):
        timestamp_str = timestamp_str[:-1] + "+00:00"
    dt = datetime.fromisoformat(timestamp_str)
    return to_naive_utc(dt)


def to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utcnow() -> datetime:
    """Default clock: current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class ContentItem:
    """Catalog entry as served by the platform."""
    id: int
    title: str
    description: str = ""
    category_id: int | None = None
    genre: str | None = None
    tags: tuple[str, ...] | None = None
    content_type: ContentType | None = None
    release_year: int = 0
    duration: int | None = None      # seconds
    is_premium: bool = False
    popularity: float | None = None  # 0-100
    rating: str | None = None        # content rating label, e.g. "PG"

    def __post_init__(self) -> None:
        if self.duration is not None and self.duration < 0:
            raise InvalidArgument(f"Content {self.id}: duration must be non-negative, got {self.duration}")
        if self.popularity is not None and not 0 <= self.popularity <= 100:
            raise InvalidArgument(f"Content {self.id}: popularity must be within 0-100, got {self.popularity}")
        if self.tags is not None and not isinstance(self.tags, tuple):
            object.__setattr__(self, "tags", tuple(self.tags))


@dataclass(frozen=True)
class WatchHistoryEntry:
    """One viewing of one content item. Re-watches are separate entries."""
    content_id: int
    watched_at: datetime
    watch_time_percentage: float = 0.0
    completed: bool = False

    def __post_init__(self) -> None:
        if not 0 <= self.watch_time_percentage <= 100:
            raise InvalidArgument(
                f"Watch of content {self.content_id}: watch_time_percentage must be within 0-100, "
                f"got {self.watch_time_percentage}"
            )
        object.__setattr__(self, "watched_at", to_naive_utc(self.watched_at))

    @property
    def weight(self) -> float:
        """Strength of this watch as a taste signal."""
        if self.completed:
            return COMPLETED_WATCH_WEIGHT
        return self.watch_time_percentage / 100


def validate_ratings(ratings: Mapping[int, int] | None) -> dict[int, int]:
    """Return a plain ``{content_id: rating}`` dict, rejecting out-of-range ratings."""
    validated: dict[int, int] = {}
    for content_id, rating in (ratings or {}).items():
        if not MIN_RATING <= rating <= MAX_RATING:
            raise InvalidArgument(
                f"Rating for content {content_id} must be within {MIN_RATING}-{MAX_RATING}, got {rating}"
            )
        validated[int(content_id)] = rating
    return validated


def validate_limit(limit: int) -> int:
    if limit < 0:
        raise InvalidArgument(f"limit must be non-negative, got {limit}")
    return limit


def _first(payload: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present, non-blank value among camelCase/snake_case aliases."""
    for key in keys:
        value = payload.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return default


def _parse_content_type(value: Any) -> ContentType | None:
    if value is None:
        return None
    if isinstance(value, ContentType):
        return value
    try:
        return ContentType(str(value).strip().lower())
    except ValueError:
        logger.warning(f"Unknown content type '{value}', ignoring")
        return None


def content_item_from_dict(payload: Mapping[str, Any]) -> ContentItem:
    """Build a ContentItem from platform JSON (camelCase) or snake_case keys."""
    try:
        content_id = int(payload["id"])
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidArgument(f"Content item without a valid id: {payload!r}") from exc

    tags = _first(payload, "tags")
    if isinstance(tags, str):
        tags = [t.strip() for t in tags.split(",") if t.strip()]
    category_id = _first(payload, "categoryId", "category_id")
    duration = _first(payload, "duration")
    popularity = _first(payload, "popularity")

    return ContentItem(
        id=content_id,
        title=str(_first(payload, "title", default="")),
        description=str(_first(payload, "description", default="")),
        category_id=int(category_id) if category_id is not None else None,
        genre=_first(payload, "genre"),
        tags=tuple(tags) if tags else None,
        content_type=_parse_content_type(_first(payload, "contentType", "content_type")),
        release_year=int(_first(payload, "releaseYear", "release_year", default=0)),
        duration=int(duration) if duration is not None else None,
        is_premium=bool(_first(payload, "isPremium", "is_premium", default=False)),
        popularity=float(popularity) if popularity is not None else None,
        rating=_first(payload, "rating"),
    )


def watch_entry_from_dict(payload: Mapping[str, Any]) -> WatchHistoryEntry:
    """
    Build a WatchHistoryEntry from a platform history row.

    Platform rows carry ``progress`` and ``updatedAt``/``createdAt`` rather
    than the engine's field names; rows without an explicit completed flag
    count as completed once progress reaches the "continue watching" cut-off.
    """
    try:
        content_id = int(_first(payload, "contentId", "content_id"))
    except (TypeError, ValueError) as exc:
        raise InvalidArgument(f"Watch history entry without a valid content id: {payload!r}") from exc

    raw_time = _first(payload, "watchedAt", "watched_at", "lastWatched", "updatedAt", "createdAt")
    if raw_time is None:
        raise InvalidArgument(f"Watch history entry for content {content_id} has no timestamp")
    try:
        watched_at = raw_time if isinstance(raw_time, datetime) else parse_timestamp_naive(str(raw_time))
    except ValueError as exc:
        raise InvalidArgument(f"Invalid timestamp '{raw_time}' for content {content_id}") from exc

    percentage = float(_first(payload, "watchTimePercentage", "watch_time_percentage", "progress", default=0))
    percentage = max(0.0, min(100.0, percentage))
    completed = _first(payload, "completed")
    if completed is None:
        completed = percentage >= COMPLETED_PROGRESS

    return WatchHistoryEntry(
        content_id=content_id,
        watched_at=watched_at,
        watch_time_percentage=percentage,
        completed=bool(completed),
    )


def ratings_from_rows(rows: list[Mapping[str, Any]]) -> dict[int, int]:
    """Collapse platform rating rows into a rating map (last row per content wins)."""
    ratings: dict[int, int] = {}
    for row in rows:
        content_id = _first(row, "contentId", "content_id")
        rating = _first(row, "rating")
        if content_id is None or rating is None:
            logger.warning(f"Skipping malformed rating row: {row!r}")
            continue
        if not MIN_RATING <= int(rating) <= MAX_RATING:
            logger.warning(f"Skipping out-of-range rating {rating} for content {content_id}")
            continue
        ratings[int(content_id)] = int(rating)
    return ratings

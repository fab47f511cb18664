"""
Load recommender inputs from a JSON snapshot file.

Expected shape (every key but ``catalog`` is optional)::

    {
        "catalog": [{"id": 1, "title": "...", "categoryId": 2, ...}],
        "history": [{"contentId": 1, "watchedAt": "2024-01-01T00:00:00Z",
                     "watchTimePercentage": 80, "completed": false}],
        "ratings": {"1": 5} or [{"contentId": 1, "rating": 5}],
        "watchlist": [3, 4],
        "history_pool": [1, 1, 2] or [{"contentId": 1, ...}]
    }

Keys may be camelCase (as served by the platform API) or snake_case.
"""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .models import (
    ContentItem,
    InvalidArgument,
    WatchHistoryEntry,
    content_item_from_dict,
    ratings_from_rows,
    validate_ratings,
    watch_entry_from_dict,
)

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    catalog: list[ContentItem]
    history: list[WatchHistoryEntry] = field(default_factory=list)
    ratings: dict[int, int] = field(default_factory=dict)
    watchlist: set[int] = field(default_factory=set)
    history_pool: list[int] = field(default_factory=list)

    def find(self, content_id: int) -> ContentItem | None:
        for item in self.catalog:
            if item.id == content_id:
                return item
        return None


def _parse_ratings(raw: Any) -> dict[int, int]:
    if not raw:
        return {}
    if isinstance(raw, dict):
        return validate_ratings({int(k): int(v) for k, v in raw.items()})
    if isinstance(raw, list):
        return ratings_from_rows(raw)
    raise InvalidArgument(f"Unsupported ratings format: {type(raw).__name__}")


def _pool_id(entry: Any) -> int:
    if isinstance(entry, dict):
        return watch_entry_from_dict(entry).content_id
    return int(entry)


def snapshot_from_dict(payload: dict[str, Any]) -> Snapshot:
    if not isinstance(payload, dict) or "catalog" not in payload:
        raise InvalidArgument("Snapshot must be a JSON object with a 'catalog' list")

    try:
        catalog = [content_item_from_dict(row) for row in payload["catalog"]]
        history = [watch_entry_from_dict(row) for row in payload.get("history") or []]
        ratings = _parse_ratings(payload.get("ratings"))
        watchlist = {int(cid) for cid in payload.get("watchlist") or []}
        raw_pool = payload.get("history_pool", payload.get("historyPool"))
        if raw_pool is None:
            history_pool = [entry.content_id for entry in history]
        else:
            history_pool = [_pool_id(entry) for entry in raw_pool]
    except InvalidArgument:
        raise
    except (TypeError, ValueError) as e:
        raise InvalidArgument(f"Malformed snapshot: {e}") from e

    logger.debug(
        f"Loaded snapshot: {len(catalog)} items, {len(history)} history entries, "
        f"{len(ratings)} ratings, {len(watchlist)} watchlisted"
    )
    return Snapshot(
        catalog=catalog,
        history=history,
        ratings=ratings,
        watchlist=watchlist,
        history_pool=history_pool,
    )


def load_snapshot(path: str | Path) -> Snapshot:
    snapshot_path = Path(path)
    try:
        payload = json.loads(snapshot_path.read_text())
    except FileNotFoundError as e:
        raise InvalidArgument(f"Snapshot file not found: {snapshot_path}") from e
    except json.JSONDecodeError as e:
        raise InvalidArgument(f"Snapshot {snapshot_path} is not valid JSON: {e}") from e
    return snapshot_from_dict(payload)
